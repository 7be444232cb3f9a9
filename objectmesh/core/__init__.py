"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for objectmesh:
- Result/Either monads for zero-exception control flow
- Error hierarchy with stable error codes
- Configuration management with validation
"""

from objectmesh.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    ByteRange,
)
from objectmesh.core.errors import (
    ErrorCode,
    ObjectMeshError,
    StorageError,
    ConfigurationError,
    CheckpointError,
    TransferError,
)
from objectmesh.core.config import (
    TransferConfig,
    ObservabilityConfig,
    ObjectMeshConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "ByteRange",
    "ErrorCode",
    "ObjectMeshError",
    "StorageError",
    "ConfigurationError",
    "CheckpointError",
    "TransferError",
    "TransferConfig",
    "ObservabilityConfig",
    "ObjectMeshConfig",
]
