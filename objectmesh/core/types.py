"""
Core Type Definitions for the Object Transfer Engine

Implements Result/Either monads for zero-exception control flow, plus the
small value types shared by every layer (timestamps, byte ranges).

Design Principles:
- Never use null for absence (use Optional or Result)
- Fallible operations return Result; exceptions are reserved for bugs
- Immutable value types (frozen dataclasses) safe to pass between tasks

Complexity: O(1) for all type operations
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        """O(1) success check."""
        return True

    def is_err(self) -> Literal[False]:
        """O(1) error check."""
        return False

    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.

        Returns:
            T: The wrapped success value
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Immutable container for error information.
    Carries full error context for exhaustive handling.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp for event ordering.

    Stores nanoseconds since Unix epoch.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time with nanosecond precision."""
        return cls(nanos=time.time_ns())

    def elapsed_nanos(self) -> int:
        """Nanoseconds elapsed since this timestamp."""
        return time.time_ns() - self.nanos

    def elapsed_seconds(self) -> float:
        """Seconds elapsed since this timestamp."""
        return self.elapsed_nanos() / NANOS_PER_SECOND


# =============================================================================
# BYTE RANGE
# =============================================================================
@dataclass(frozen=True, slots=True)
class ByteRange:
    """
    Requested byte range of an object, as carried by an HTTP Range header.

    Either bound may be absent:
        bytes=100-199  -> start=100, end=199
        bytes=100-     -> start=100, end=None (to end of object)
        bytes=-50      -> start=None, end=50  (last 50 bytes)

    Resolution against a concrete object size happens in
    `objectmesh.transfer.partitioner.resolve_span`.
    """

    start: Optional[int] = None
    end: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate range invariants."""
        if self.start is None and self.end is None:
            raise ValueError("at least one of start or end is required")
        if self.start is not None and self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end is not None and self.end < 0:
            raise ValueError(f"end must be >= 0, got {self.end}")

    @property
    def is_suffix(self) -> bool:
        """True for `bytes=-N` (last N bytes of the object)."""
        return self.start is None

    def to_http_header(self) -> str:
        """Convert to HTTP Range header value."""
        start = "" if self.start is None else str(self.start)
        end = "" if self.end is None else str(self.end)
        return f"bytes={start}-{end}"

    @classmethod
    def from_http_header(cls, header: str) -> Result[ByteRange, str]:
        """
        Parse HTTP Range header.

        Supports: bytes=START-END, bytes=START-, bytes=-SUFFIX
        """
        header = header.strip()
        if not header.startswith("bytes="):
            return Err(f"Invalid range header format: {header}")

        range_spec = header[6:]
        if "," in range_spec:
            return Err(f"Multiple ranges are not supported: {header}")

        try:
            start_str, end_str = range_spec.split("-")
            start = int(start_str) if start_str.strip() else None
            end = int(end_str) if end_str.strip() else None
            return Ok(cls(start=start, end=end))
        except ValueError as e:
            return Err(f"Failed to parse range header: {e}")

    def __repr__(self) -> str:
        return f"ByteRange({self.to_http_header()})"
