"""
Configuration Management for the Object Transfer Engine

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from objectmesh.core.types import Result, Ok, Err
from objectmesh.core import constants as C


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name, "").strip().lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


@dataclass(frozen=True)
class TransferConfig:
    """
    Multipart transfer configuration.

    Attributes:
        part_size: Default byte length of each part.
        min_part_size: Smallest part size accepted by the orchestrators.
        max_part_size: Largest part size accepted by the orchestrators.
        routines: Number of concurrent part workers.
        checkpoint_enabled: Persist per-part progress for resume.
        checkpoint_dir: Directory for checkpoint files; None places the
            checkpoint next to the local file.
        verify_checksum: Compare the assembled download against the
            object's CRC32C when the store reports one.
    """

    part_size: int = C.DEFAULT_PART_SIZE
    min_part_size: int = C.MIN_PART_SIZE
    max_part_size: int = C.MAX_PART_SIZE
    routines: int = C.DEFAULT_ROUTINES
    checkpoint_enabled: bool = True
    checkpoint_dir: Optional[Path] = None
    verify_checksum: bool = True

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if self.min_part_size < 1:
            raise ValueError(f"min_part_size must be >= 1, got {self.min_part_size}")
        if self.max_part_size < self.min_part_size:
            raise ValueError(
                f"max_part_size ({self.max_part_size}) must be >= "
                f"min_part_size ({self.min_part_size})"
            )
        if not (1 <= self.routines <= C.MAX_ROUTINES):
            raise ValueError(f"routines must be in [1, {C.MAX_ROUTINES}], got {self.routines}")

    @classmethod
    def from_env(cls, prefix: str = "OBJECTMESH") -> TransferConfig:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_PART_SIZE: Part size in bytes
        - {prefix}_MIN_PART_SIZE / {prefix}_MAX_PART_SIZE: Part size bounds
        - {prefix}_ROUTINES: Worker count
        - {prefix}_CHECKPOINT: Enable checkpoints (default: true)
        - {prefix}_CHECKPOINT_DIR: Checkpoint directory
        - {prefix}_VERIFY_CHECKSUM: Verify CRC32C on download (default: true)

        Raises:
            ValueError: On unparsable or invalid values.
        """
        checkpoint_dir = os.getenv(f"{prefix}_CHECKPOINT_DIR")
        return cls(
            part_size=int(os.getenv(f"{prefix}_PART_SIZE", str(C.DEFAULT_PART_SIZE))),
            min_part_size=int(os.getenv(f"{prefix}_MIN_PART_SIZE", str(C.MIN_PART_SIZE))),
            max_part_size=int(os.getenv(f"{prefix}_MAX_PART_SIZE", str(C.MAX_PART_SIZE))),
            routines=int(os.getenv(f"{prefix}_ROUTINES", str(C.DEFAULT_ROUTINES))),
            checkpoint_enabled=_env_bool(f"{prefix}_CHECKPOINT", True),
            checkpoint_dir=Path(checkpoint_dir) if checkpoint_dir else None,
            verify_checksum=_env_bool(f"{prefix}_VERIFY_CHECKSUM", True),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging and metrics configuration."""

    log_level: str = "INFO"
    log_json: bool = False
    metrics_enabled: bool = True


@dataclass(frozen=True)
class ObjectMeshConfig:
    """Root configuration."""

    transfer: TransferConfig = field(default_factory=TransferConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[ObjectMeshConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with OBJECTMESH_.
        Example: OBJECTMESH_PART_SIZE, OBJECTMESH_LOG_LEVEL
        """
        try:
            transfer = TransferConfig.from_env()
            observability = ObservabilityConfig(
                log_level=os.getenv("OBJECTMESH_LOG_LEVEL", "INFO").upper(),
                log_json=_env_bool("OBJECTMESH_LOG_JSON", False),
                metrics_enabled=_env_bool("OBJECTMESH_METRICS", True),
            )
            return Ok(cls(transfer=transfer, observability=observability))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate cross-field invariants."""
        t = self.transfer
        if not (t.min_part_size <= t.part_size <= t.max_part_size):
            return Err(
                f"part_size {t.part_size} outside [{t.min_part_size}, {t.max_part_size}]"
            )
        if self.observability.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return Err(f"Unknown log level: {self.observability.log_level}")
        return Ok(None)
