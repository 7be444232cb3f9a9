"""
Unit Tests: Range Partitioner

Tests:
    - Part coverage, contiguity and sizing
    - Edge cases (one byte, oversized part, exact multiples)
    - Range resolution against object size
"""

import pytest

from objectmesh.core.types import ByteRange
from objectmesh.transfer.partitioner import (
    Part,
    partition,
    plan_parts,
    resolve_span,
    total_bytes,
)


class TestPartition:
    """Tests for partition()."""

    def test_three_parts(self):
        """Test 250 bytes in parts of 100."""
        parts = partition(0, 249, 100)
        assert [(p.start, p.end) for p in parts] == [(0, 99), (100, 199), (200, 249)]
        assert [p.index for p in parts] == [0, 1, 2]
        assert [p.number for p in parts] == [1, 2, 3]
        assert [p.length for p in parts] == [100, 100, 50]

    def test_offset_is_span_start(self):
        """Test every part carries the span start as offset."""
        parts = partition(1000, 1349, 100)
        assert all(p.offset == 1000 for p in parts)
        assert [p.local_offset for p in parts] == [0, 100, 200, 300]

    def test_one_byte_span(self):
        """Test a single-byte span yields one part."""
        parts = partition(5, 5, 100)
        assert len(parts) == 1
        assert parts[0].length == 1

    def test_part_larger_than_span(self):
        """Test an oversized part size yields one part covering the span."""
        parts = partition(0, 49, 1000)
        assert parts == [Part(index=0, start=0, end=49, offset=0)]

    def test_exact_multiple(self):
        """Test no empty trailing part on exact multiples."""
        parts = partition(0, 299, 100)
        assert len(parts) == 3
        assert parts[-1].end == 299

    @pytest.mark.parametrize("size,part_size", [(1, 1), (7, 3), (1000, 7), (4096, 4096), (10, 11)])
    def test_coverage(self, size, part_size):
        """Test parts are contiguous and cover the span exactly once."""
        parts = partition(0, size - 1, part_size)
        assert len(parts) == -(-size // part_size)
        assert parts[0].start == 0
        assert parts[-1].end == size - 1
        for prev, nxt in zip(parts, parts[1:]):
            assert nxt.start == prev.end + 1
        assert all(p.length == part_size for p in parts[:-1])
        assert all(p.length > 0 for p in parts)
        assert total_bytes(parts) == size

    def test_rejects_non_positive_part_size(self):
        """Test part_size < 1 is rejected."""
        with pytest.raises(ValueError):
            partition(0, 10, 0)
        with pytest.raises(ValueError):
            partition(0, 10, -5)

    def test_rejects_inverted_span(self):
        """Test start > end is rejected."""
        with pytest.raises(ValueError):
            partition(10, 9, 100)

    def test_plan_parts_empty_span(self):
        """Test an empty span plans no parts."""
        assert plan_parts(0, -1, 100) == []
        assert plan_parts(0, 99, 100) == partition(0, 99, 100)

    def test_part_dict_round_trip(self):
        """Test Part serialization."""
        part = Part(index=2, start=200, end=249, offset=0)
        data = part.to_dict()
        assert data == {"index": 2, "start": 200, "end": 249, "offset": 0, "number": 3}
        assert Part.from_dict(data) == part


class TestResolveSpan:
    """Tests for resolve_span()."""

    def test_no_range(self):
        assert resolve_span(None, 100) == (0, 99)

    def test_closed_range(self):
        assert resolve_span(ByteRange(10, 19), 100) == (10, 19)

    def test_open_ended_range(self):
        assert resolve_span(ByteRange(start=90), 100) == (90, 99)

    def test_suffix_range(self):
        assert resolve_span(ByteRange(end=30), 100) == (70, 99)

    def test_out_of_bounds_falls_back_to_whole_object(self):
        """Test unsatisfiable ranges select the whole object."""
        assert resolve_span(ByteRange(50, 150), 100) == (0, 99)
        assert resolve_span(ByteRange(start=100), 100) == (0, 99)
        assert resolve_span(ByteRange(end=500), 100) == (0, 99)
        assert resolve_span(ByteRange(60, 40), 100) == (0, 99)

    def test_empty_object(self):
        """Test an empty object resolves to the empty span."""
        assert resolve_span(None, 0) == (0, -1)
        assert resolve_span(ByteRange(0, 10), 0) == (0, -1)
