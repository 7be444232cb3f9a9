"""
Range Partitioner: Byte-Range Plan of a Multipart Transfer

Splits an inclusive byte span into consecutive parts of a fixed size:

    span [0, 249], part_size 100  ->  [0-99] [100-199] [200-249]

Every part except the last is exactly `part_size` long, the parts are
contiguous and non-overlapping, and a non-empty span never yields zero
parts. `offset` is the span start for every part; a part lands at
`start - offset` in the local working file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from objectmesh.core.types import ByteRange


# =============================================================================
# PART
# =============================================================================
@dataclass(frozen=True, slots=True)
class Part:
    """
    One byte range of a multipart transfer.

    Attributes:
        index: 0-based emission order.
        start: First byte (inclusive).
        end: Last byte (inclusive).
        offset: Start of the whole span.
    """
    index: int
    start: int
    end: int
    offset: int

    @property
    def number(self) -> int:
        """1-based part number used by multipart upload sessions."""
        return self.index + 1

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def local_offset(self) -> int:
        """Position of this part inside the local file."""
        return self.start - self.offset

    def to_dict(self) -> dict[str, int]:
        return {
            "index": self.index,
            "start": self.start,
            "end": self.end,
            "offset": self.offset,
            "number": self.number,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Part:
        return cls(
            index=int(data["index"]),
            start=int(data["start"]),
            end=int(data["end"]),
            offset=int(data["offset"]),
        )


# =============================================================================
# PARTITIONING
# =============================================================================
def partition(span_start: int, span_end: int, part_size: int) -> list[Part]:
    """
    Split the inclusive span [span_start, span_end] into parts.

    Raises:
        ValueError: If part_size < 1 or span_start > span_end.
    """
    if part_size < 1:
        raise ValueError(f"part_size must be >= 1, got {part_size}")
    if span_start > span_end:
        raise ValueError(f"span_start ({span_start}) must be <= span_end ({span_end})")

    return [
        Part(
            index=index,
            start=start,
            end=min(start + part_size - 1, span_end),
            offset=span_start,
        )
        for index, start in enumerate(range(span_start, span_end + 1, part_size))
    ]


def plan_parts(span_start: int, span_end: int, part_size: int) -> list[Part]:
    """Like partition(), but an empty span (end < start) plans no parts."""
    if span_end < span_start:
        if part_size < 1:
            raise ValueError(f"part_size must be >= 1, got {part_size}")
        return []
    return partition(span_start, span_end, part_size)


def resolve_span(byte_range: Optional[ByteRange], object_size: int) -> tuple[int, int]:
    """
    Resolve a requested range against the object size.

    Returns the inclusive (start, end) span. A missing, unsatisfiable or
    out-of-bounds range selects the whole object; an empty object resolves
    to the empty span (0, -1).

        bytes=10-19  on 100 bytes  ->  (10, 19)
        bytes=90-    on 100 bytes  ->  (90, 99)
        bytes=-30    on 100 bytes  ->  (70, 99)
        bytes=50-150 on 100 bytes  ->  (0, 99)
    """
    whole = (0, object_size - 1)
    if byte_range is None or object_size <= 0:
        return whole

    start, end = byte_range.start, byte_range.end

    if start is not None and end is not None:
        if start >= object_size or end >= object_size or start > end:
            return whole
        return (start, end)

    if start is not None:
        if start >= object_size:
            return whole
        return (start, object_size - 1)

    # Suffix range: last `end` bytes
    assert end is not None
    if end == 0 or end > object_size:
        return whole
    return (object_size - end, object_size - 1)


def total_bytes(parts: Iterable[Part]) -> int:
    """Sum of part lengths."""
    return sum(part.length for part in parts)
