"""
Tests for the lazy byte cell source.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from byte_cells import ByteCellSource, Cell, to_bytes


class TestCell:
    """Tests for Cell bit access."""

    def test_binary_is_zero_padded(self):
        assert Cell(0x0E, 3).binary == '00001110'

    def test_bit_offset(self):
        assert Cell(0, 0).bit_offset == 0
        assert Cell(0, 5).bit_offset == 40

    def test_bit_msb_first(self):
        cell = Cell(0x81, 0)
        assert cell.bit(0) == 1
        assert cell.bit(1) == 0
        assert cell.bit(7) == 1

    def test_bit_out_of_range(self):
        with pytest.raises(IndexError):
            Cell(0, 0).bit(8)

    def test_bits_ranges(self):
        """0x81 = 1000 0001: opcode nibble is 1, flag bit is 1."""
        cell = Cell(0x81, 0)
        assert cell.bits(0, 1) == 1
        assert cell.bits(1, 4) == 0
        assert cell.bits(4, 8) == 1
        assert cell.bits() == 0x81

    def test_bits_invalid_range(self):
        with pytest.raises(IndexError):
            Cell(0xFF, 0).bits(4, 4)
        with pytest.raises(IndexError):
            Cell(0xFF, 0).bits(0, 9)


class TestToBytes:

    def test_accepts_buffers(self):
        assert to_bytes(b'\x01') == b'\x01'
        assert to_bytes(bytearray(b'\x02')) == b'\x02'
        assert to_bytes(memoryview(b'\x03')) == b'\x03'

    def test_accepts_int_iterables(self):
        assert to_bytes([1, 2, 255]) == b'\x01\x02\xff'
        assert to_bytes(x for x in (4, 5)) == b'\x04\x05'


class TestByteCellSource:
    """Tests for ByteCellSource iteration and look-ahead."""

    def test_iterates_in_order(self):
        cells = list(ByteCellSource(b'\x0a\x0b\x0c'))
        assert [c.value for c in cells] == [10, 11, 12]
        assert [c.index for c in cells] == [0, 1, 2]

    def test_len_is_total_cells(self):
        source = ByteCellSource(b'\x00' * 5)
        next(source)
        assert len(source) == 5
        assert source.remaining == 4
        assert source.position == 1

    def test_empty_source(self):
        source = ByteCellSource(b'')
        assert list(source) == []
        assert source.take(8) == []
        assert source.peek(3) == []

    def test_peek_does_not_consume(self):
        source = ByteCellSource(b'\x01\x02\x03')
        assert [c.value for c in source.peek(2)] == [1, 2]
        assert source.position == 0
        assert next(source).value == 1

    def test_peek_near_end_returns_fewer(self):
        source = ByteCellSource(b'\x01\x02')
        source.take(1)
        assert [c.index for c in source.peek(5)] == [1]

    def test_peek_negative_count(self):
        with pytest.raises(ValueError):
            ByteCellSource(b'\x01').peek(-1)

    def test_take_groups(self):
        source = ByteCellSource(bytes(range(9)))
        assert len(source.take(8)) == 8
        last = source.take(8)
        assert [c.index for c in last] == [8]
        assert source.take(8) == []

    def test_sources_are_repeatable(self):
        data = b'\x81\x83\x5a'
        assert list(ByteCellSource(data)) == list(ByteCellSource(data))

    def test_window_reads_taken_and_upcoming_bytes(self):
        source = ByteCellSource(b'\x5a\x3b\x3b\x00')
        source.take(2)
        assert source.window(0, 3) == b'\x5a\x3b\x3b'
        assert source.window(3, 4) == b'\x00'
        assert source.position == 2

    def test_window_rejects_negative_bounds(self):
        with pytest.raises(ValueError):
            ByteCellSource(b'\x01').window(-1, 1)
