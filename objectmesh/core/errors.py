"""
Error Hierarchy for the Object Transfer Engine

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Never swallow errors or use null for absence
- Carry full error context for debugging

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation with transfer logs

Usage:
    result = await downloader.download_file("key", "/tmp/out.bin")
    match result:
        case Ok(summary):
            report(summary)
        case Err(ConfigurationError() as error):
            fix_arguments(error)
        case Err(error):
            retry_later(error)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from objectmesh.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Storage (collaborator) errors
    - 2xxx: Configuration errors
    - 3xxx: Checkpoint errors
    - 4xxx: Transfer errors
    - 9xxx: Internal/unknown errors
    """

    # Storage errors (1xxx)
    STORAGE_OBJECT_NOT_FOUND = 1001
    STORAGE_REQUEST_FAILED = 1002
    STORAGE_NOT_CONNECTED = 1003
    STORAGE_DEPENDENCY_MISSING = 1004

    # Configuration errors (2xxx)
    CONFIG_INVALID_PART_SIZE = 2001
    CONFIG_EMPTY_OBJECT_KEY = 2002
    CONFIG_FILE_NOT_FOUND = 2003
    CONFIG_TOO_MANY_PARTS = 2004
    CONFIG_INVALID_VALUE = 2005

    # Checkpoint errors (3xxx)
    CHECKPOINT_LOAD_FAILED = 3001
    CHECKPOINT_DUMP_FAILED = 3002
    CHECKPOINT_CORRUPTED = 3003

    # Transfer errors (4xxx)
    TRANSFER_PART_FAILED = 4001
    TRANSFER_SHORT_READ = 4002
    TRANSFER_ASSEMBLY_FAILED = 4003
    TRANSFER_SESSION_FAILED = 4004
    TRANSFER_CHECKSUM_MISMATCH = 4005

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class ObjectMeshError(Exception):
    """
    Base class for all objectmesh errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for logging.

        Note: Excludes cause stack trace.
        """
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORAGE ERRORS (OBJECT CLIENT COLLABORATORS)
# =============================================================================
@dataclass
class StorageError(ObjectMeshError):
    """
    Errors reported by the object-storage client.

    Covers missing objects, failed requests and client lifecycle issues.
    """

    @classmethod
    def object_not_found(cls, object_key: str) -> StorageError:
        """Object does not exist (HTTP 404 / NoSuchKey)."""
        return cls(
            code=ErrorCode.STORAGE_OBJECT_NOT_FOUND,
            message=f"Object not found: {object_key}",
            context={"object_key": object_key},
        )

    @classmethod
    def request_failed(
        cls,
        operation: str,
        object_key: str,
        cause: Optional[BaseException] = None,
        detail: str = "",
    ) -> StorageError:
        """A request to the storage service failed."""
        reason = detail or (str(cause) if cause else "unknown error")
        return cls(
            code=ErrorCode.STORAGE_REQUEST_FAILED,
            message=f"{operation} failed for '{object_key}': {reason}",
            cause=cause,
            context={"operation": operation, "object_key": object_key},
        )

    @classmethod
    def not_connected(cls) -> StorageError:
        """Client used before connect()."""
        return cls(
            code=ErrorCode.STORAGE_NOT_CONNECTED,
            message="Storage client is not connected",
        )

    @classmethod
    def dependency_missing(cls, package: str) -> StorageError:
        """Optional client library is not installed."""
        return cls(
            code=ErrorCode.STORAGE_DEPENDENCY_MISSING,
            message=f"{package} package not installed: pip install {package}",
            context={"package": package},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(ObjectMeshError):
    """
    Invalid caller arguments or configuration.

    Raised (as Err) before any I/O or checkpoint activity.
    """

    @classmethod
    def invalid_part_size(
        cls,
        part_size: int,
        min_size: int,
        max_size: int,
    ) -> ConfigurationError:
        """Part size outside configured bounds."""
        return cls(
            code=ErrorCode.CONFIG_INVALID_PART_SIZE,
            message=f"Part size {part_size} is outside [{min_size}, {max_size}]",
            context={"part_size": part_size, "min": min_size, "max": max_size},
        )

    @classmethod
    def empty_object_key(cls) -> ConfigurationError:
        """Object key is empty."""
        return cls(
            code=ErrorCode.CONFIG_EMPTY_OBJECT_KEY,
            message="Object key must not be empty",
        )

    @classmethod
    def file_not_found(cls, file_path: str) -> ConfigurationError:
        """Local source file for upload does not exist."""
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Local file not found: {file_path}",
            context={"file_path": file_path},
        )

    @classmethod
    def too_many_parts(
        cls,
        part_count: int,
        max_parts: int,
    ) -> ConfigurationError:
        """Part size too small for the file: part count exceeds service limit."""
        return cls(
            code=ErrorCode.CONFIG_TOO_MANY_PARTS,
            message=f"Transfer needs {part_count} parts, limit is {max_parts}",
            context={"part_count": part_count, "max_parts": max_parts},
        )

    @classmethod
    def invalid_value(cls, name: str, reason: str) -> ConfigurationError:
        """Generic invalid configuration value."""
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid {name}: {reason}",
            context={"name": name},
        )


# =============================================================================
# CHECKPOINT ERRORS
# =============================================================================
@dataclass
class CheckpointError(ObjectMeshError):
    """Errors reading or writing checkpoint files."""

    @classmethod
    def load_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> CheckpointError:
        """Checkpoint file could not be read or parsed."""
        return cls(
            code=ErrorCode.CHECKPOINT_LOAD_FAILED,
            message=f"Failed to load checkpoint {path}: {cause}",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def dump_failed(
        cls,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> CheckpointError:
        """Checkpoint file could not be written."""
        return cls(
            code=ErrorCode.CHECKPOINT_DUMP_FAILED,
            message=f"Failed to write checkpoint {path}: {cause}",
            cause=cause,
            context={"path": path},
        )

    @classmethod
    def corrupted(cls, path: str, reason: str) -> CheckpointError:
        """Checkpoint content is structurally inconsistent."""
        return cls(
            code=ErrorCode.CHECKPOINT_CORRUPTED,
            message=f"Corrupted checkpoint {path}: {reason}",
            context={"path": path, "reason": reason},
        )


# =============================================================================
# TRANSFER ERRORS
# =============================================================================
@dataclass
class TransferError(ObjectMeshError):
    """
    Errors from the multipart transfer engine itself.

    Part failures end the current run; assembly failures leave the
    checkpoint on disk so the transfer can be resumed.
    """

    @classmethod
    def part_failed(
        cls,
        part_index: int,
        object_key: str,
        cause: Optional[BaseException] = None,
    ) -> TransferError:
        """A single part transfer raised."""
        return cls(
            code=ErrorCode.TRANSFER_PART_FAILED,
            message=f"Part {part_index} of '{object_key}' failed: {cause}",
            cause=cause,
            context={"part_index": part_index, "object_key": object_key},
        )

    @classmethod
    def short_read(
        cls,
        part_index: int,
        expected: int,
        actual: int,
    ) -> TransferError:
        """Fewer bytes returned than the part requested."""
        return cls(
            code=ErrorCode.TRANSFER_SHORT_READ,
            message=f"Part {part_index} returned {actual} bytes, expected {expected}",
            context={"part_index": part_index, "expected": expected, "actual": actual},
        )

    @classmethod
    def assembly_failed(
        cls,
        target: str,
        cause: Optional[BaseException] = None,
    ) -> TransferError:
        """Final rename of the working file failed."""
        return cls(
            code=ErrorCode.TRANSFER_ASSEMBLY_FAILED,
            message=f"Failed to assemble {target}: {cause}",
            cause=cause,
            context={"target": target},
        )

    @classmethod
    def session_failed(
        cls,
        object_key: str,
        upload_id: str,
        reason: str,
    ) -> TransferError:
        """Multipart session could not be completed."""
        return cls(
            code=ErrorCode.TRANSFER_SESSION_FAILED,
            message=f"Multipart session {upload_id} for '{object_key}' failed: {reason}",
            context={"object_key": object_key, "upload_id": upload_id},
        )

    @classmethod
    def checksum_mismatch(
        cls,
        target: str,
        expected: str,
        actual: str,
    ) -> TransferError:
        """Assembled content does not match the object's CRC32C."""
        return cls(
            code=ErrorCode.TRANSFER_CHECKSUM_MISMATCH,
            message=f"CRC32C of {target} is {actual}, object reports {expected}",
            context={"target": target, "expected": expected, "actual": actual},
        )
