#!/usr/bin/env python3
"""
byte_cells.py - Lazy byte cell source for bit table rendering

Wraps a byte buffer and hands out one Cell per byte, on demand. A cell knows
its value, its position in the buffer and can extract any run of its 8 bits.
Bit positions are numbered 0 = most significant, matching on-wire order.

Usage:
    from byte_cells import ByteCellSource

    source = ByteCellSource(b'\\x81\\x83')
    source.peek(2)        # look ahead without consuming
    for cell in source:
        print(cell.index, cell.binary)
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

BITS_IN_BYTE = 8

BufferLike = Union[bytes, bytearray, memoryview, Iterable[int]]


@dataclass(frozen=True)
class Cell:
    """One byte of the source buffer plus its position metadata."""
    value: int
    index: int

    @property
    def bit_offset(self) -> int:
        """Global bit offset of this cell's most significant bit."""
        return self.index * BITS_IN_BYTE

    @property
    def binary(self) -> str:
        return f"{self.value:08b}"

    def bit(self, position: int) -> int:
        """Return the bit at ``position`` (0 = MSB)."""
        if not 0 <= position < BITS_IN_BYTE:
            raise IndexError(f"Bit position out of range: {position}")
        return (self.value >> (BITS_IN_BYTE - 1 - position)) & 1

    def bits(self, start: int = 0, end: int = BITS_IN_BYTE) -> int:
        """
        Extract bits ``[start, end)`` as an integer, MSB first.

        Args:
            start: First bit position (0 = MSB)
            end: One past the last bit position

        Returns:
            Value of the selected bits
        """
        if not 0 <= start < end <= BITS_IN_BYTE:
            raise IndexError(f"Invalid bit range [{start}, {end})")
        width = end - start
        return (self.value >> (BITS_IN_BYTE - end)) & ((1 << width) - 1)


def to_bytes(data: BufferLike) -> bytes:
    """Normalize a bytes-like object or an iterable of ints to bytes."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    return bytes(list(data))


class ByteCellSource:
    """
    Finite, single-pass sequence of Cells over a byte buffer.

    Cells are created lazily as the source is iterated. ``peek`` looks ahead
    without consuming. Re-creating a source from the same buffer yields an
    identical sequence.
    """

    def __init__(self, data: BufferLike):
        self._data = to_bytes(data)
        self._pos = 0

    def __iter__(self) -> 'ByteCellSource':
        return self

    def __next__(self) -> Cell:
        if self._pos >= len(self._data):
            raise StopIteration
        cell = Cell(self._data[self._pos], self._pos)
        self._pos += 1
        return cell

    def __len__(self) -> int:
        """Total number of cells the source provides."""
        return len(self._data)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def position(self) -> int:
        """Index of the next cell to be produced."""
        return self._pos

    def peek(self, count: int = 1) -> List[Cell]:
        """
        Return up to ``count`` upcoming cells without consuming them.

        Fewer cells are returned near the end of the buffer.
        """
        if count < 0:
            raise ValueError(f"Peek count must be non-negative, got {count}")
        end = min(self._pos + count, len(self._data))
        return [Cell(self._data[i], i) for i in range(self._pos, end)]

    def take(self, count: int) -> List[Cell]:
        """Consume and return up to ``count`` cells."""
        cells = self.peek(count)
        self._pos += len(cells)
        return cells

    def window(self, start: int, count: int) -> bytes:
        """
        Raw bytes ``[start, start + count)`` by absolute buffer index.

        The cursor does not move, so cells already taken can be read back.
        Fewer bytes are returned past the end of the buffer.
        """
        if start < 0 or count < 0:
            raise ValueError(f"Invalid window: start={start}, count={count}")
        return self._data[start:start + count]
