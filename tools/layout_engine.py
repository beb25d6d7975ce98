#!/usr/bin/env python3
"""
layout_engine.py - Tile byte cells into rows and cut them into segments

The layout engine consumes a cell sequence and a FormatDescriptor and
produces Rows ready for rendering:

    1. cells are grouped into rows of ``cells_per_row`` (the last row may be
       partial)
    2. each annotation intersecting a row is clipped to it and tagged with a
       continuation marker (whole / first / middle / last, or truncated when
       the buffer ends inside the field) and part number
    3. every cell is cut at field boundaries that fall inside it, giving
       Segments; cells without an inner boundary stay whole
    4. transforms (xor unmask, ascii, lookup) are evaluated per segment,
       with key fields read from the same buffer

Rows are produced lazily, one per group of cells.

Usage:
    from layout_engine import LayoutEngine

    engine = LayoutEngine(descriptor)
    for row in engine.rows(payload_bytes):
        print(row.label_text, [s.binary() for s in row.segments])
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from byte_cells import BITS_IN_BYTE, BufferLike, ByteCellSource, Cell
from format_descriptor import FieldAnnotation, FormatDescriptor
from value_transforms import printable_char, apply_transforms

logger = logging.getLogger(__name__)


class Continuation(Enum):
    """Where a row's piece of a field sits within the whole field."""
    WHOLE = 'whole'
    FIRST = 'first'
    MIDDLE = 'middle'
    LAST = 'last'
    TRUNCATED = 'truncated'  # the buffer ends before the field does


@dataclass(frozen=True)
class FieldSpan:
    """The part of one field that falls inside one row."""
    field: FieldAnnotation
    start_bit: int
    bit_length: int
    part: int
    continuation: Continuation

    @property
    def end_bit(self) -> int:
        return self.start_bit + self.bit_length

    @property
    def is_truncated(self) -> bool:
        return self.continuation == Continuation.TRUNCATED

    @property
    def is_continued(self) -> bool:
        if self.is_truncated:
            return self.part > 1
        return self.continuation != Continuation.WHOLE

    @property
    def label(self) -> str:
        label = self.field.display_label
        if self.is_continued:
            label = f"{label} {self.field.continuation_suffix(self.part)}"
        return label

    def contains(self, bit: int) -> bool:
        return self.start_bit <= bit < self.end_bit


@dataclass(frozen=True)
class Segment:
    """
    Atomic renderable unit: a whole cell or a bit-range fragment of one.

    ``start``/``end`` are bit positions inside the cell (0 = MSB).
    ``transformed`` is the value after a value-changing transform (xor);
    ``text`` is a decoded character or lookup name.
    """
    cell: Cell
    start: int = 0
    end: int = BITS_IN_BYTE
    field: Optional[FieldAnnotation] = None
    transformed: Optional[int] = None
    text: Optional[str] = None

    @property
    def bit_length(self) -> int:
        return self.end - self.start

    @property
    def start_bit(self) -> int:
        return self.cell.bit_offset + self.start

    @property
    def end_bit(self) -> int:
        return self.cell.bit_offset + self.end

    @property
    def value(self) -> int:
        return self.cell.bits(self.start, self.end)

    @property
    def is_whole_cell(self) -> bool:
        return self.start == 0 and self.end == BITS_IN_BYTE

    @property
    def is_transformed(self) -> bool:
        return self.transformed is not None

    def binary(self, value: Optional[int] = None) -> str:
        """Binary digits of the raw value (or of ``value``), zero padded."""
        if value is None:
            value = self.value
        return f"{value:0{self.bit_length}b}"


@dataclass(frozen=True)
class Row:
    """One rendered line-group of cells under a shared label."""
    index: int
    label: str
    cells: Tuple[Cell, ...]
    segments: Tuple[Segment, ...]
    spans: Tuple[FieldSpan, ...]
    descriptor: FormatDescriptor = field(repr=False, compare=False)

    @property
    def label_text(self) -> str:
        return f"{self.label} {self.index}"

    @property
    def cell_count(self) -> int:
        return len(self.cells)

    @property
    def is_partial(self) -> bool:
        return self.cell_count < self.descriptor.cells_per_row

    @property
    def start_bit(self) -> int:
        return self.cells[0].bit_offset

    @property
    def end_bit(self) -> int:
        return self.start_bit + BITS_IN_BYTE * self.cell_count

    def span_at(self, bit: int) -> Optional[FieldSpan]:
        """Field span covering global ``bit``, if any."""
        for span in self.spans:
            if span.contains(bit):
                return span
        return None


def read_bits(buf: bytes, start: int, length: int) -> int:
    """Read ``length`` bits starting at global bit ``start`` (MSB first)."""
    first = start // BITS_IN_BYTE
    last = (start + length - 1) // BITS_IN_BYTE
    chunk = int.from_bytes(buf[first:last + 1], 'big')
    shift = (last - first + 1) * BITS_IN_BYTE - (start - first * BITS_IN_BYTE) - length
    return (chunk >> shift) & ((1 << length) - 1)


class LayoutEngine:
    """
    Turns a cell sequence into Rows according to one FormatDescriptor.

    The engine holds no per-buffer state; every call to ``rows`` starts a
    fresh layout, so one engine can be shared between renders.
    """

    def __init__(self, descriptor: FormatDescriptor):
        self.descriptor = descriptor

    def layout(self, data: Union[BufferLike, ByteCellSource]) -> List[Row]:
        """Lay out a whole buffer and return the list of rows."""
        return list(self.rows(data))

    def rows(self, data: Union[BufferLike, ByteCellSource]) -> Iterator[Row]:
        """
        Lazily produce rows for ``data``.

        A ByteCellSource that has already been advanced is laid out from its
        current position; row indices and key reads stay absolute.

        Args:
            data: A ByteCellSource or any bytes-like buffer

        Yields:
            Row objects in buffer order
        """
        source = data if isinstance(data, ByteCellSource) else ByteCellSource(data)
        descriptor = self.descriptor
        annotations = descriptor.annotations
        per_row = descriptor.cells_per_row

        keys: Dict[str, Optional[Tuple[int, int]]] = {}
        field_pos = 0
        row_count = 0
        byte_count = 0

        while True:
            cells = source.take(per_row)
            if not cells:
                break
            row_index = cells[0].index // per_row + 1
            row_count += 1
            byte_count += len(cells)

            row_start = cells[0].bit_offset
            row_end = row_start + BITS_IN_BYTE * len(cells)
            at_end = source.remaining == 0

            # Annotations are sorted and disjoint, so end bits are sorted too
            while field_pos < len(annotations) and annotations[field_pos].end_bit <= row_start:
                field_pos += 1

            spans = []
            for ann in annotations[field_pos:]:
                if ann.bit_offset >= row_end:
                    break
                spans.append(self._clip(ann, row_start, row_end, row_index, at_end))

            for span in spans:
                for key in span.field.key_fields:
                    if key not in keys:
                        keys[key] = self._resolve_key(key, source)

            segments = self._segment(cells, spans, keys, source)
            yield Row(
                index=row_index,
                label=descriptor.row_label,
                cells=tuple(cells),
                segments=tuple(segments),
                spans=tuple(spans),
                descriptor=descriptor,
            )

        logger.debug("Laid out %d %s row(s) for %d byte(s)",
                     row_count, descriptor.row_label, byte_count)

    def _clip(self, ann: FieldAnnotation, row_start: int, row_end: int,
              row_index: int, at_end: bool) -> FieldSpan:
        start = max(ann.bit_offset, row_start)
        end = min(ann.end_bit, row_end)
        first = start == ann.bit_offset
        last = end == ann.end_bit

        if not last and at_end:
            # Buffer ends inside the field
            continuation = Continuation.TRUNCATED
        elif first and last:
            continuation = Continuation.WHOLE
        elif first:
            continuation = Continuation.FIRST
        elif last:
            continuation = Continuation.LAST
        else:
            continuation = Continuation.MIDDLE

        part = row_index - ann.bit_offset // self.descriptor.row_bits
        return FieldSpan(field=ann, start_bit=start, bit_length=end - start,
                         part=part, continuation=continuation)

    def _read_field(self, ann: FieldAnnotation, source: ByteCellSource) -> Optional[int]:
        """Value of a whole field, or None if the buffer ends inside it."""
        first_byte = ann.bit_offset // BITS_IN_BYTE
        count = (ann.end_bit - 1) // BITS_IN_BYTE - first_byte + 1
        buf = source.window(first_byte, count)
        if len(buf) < count:
            return None
        return read_bits(buf, ann.bit_offset - first_byte * BITS_IN_BYTE, ann.bit_length)

    def _resolve_key(self, name: str, source: ByteCellSource) -> Optional[Tuple[int, int]]:
        """Read a key field's bits from the source buffer, wherever they lie."""
        key = self.descriptor.get_field(name)
        value = self._read_field(key, source)
        if value is None:
            logger.debug("Key field '%s' lies beyond the end of the buffer", name)
            return None
        return value, key.bit_length

    def _segment(self, cells: Sequence[Cell], spans: Sequence[FieldSpan],
                 keys: Dict[str, Optional[Tuple[int, int]]],
                 source: ByteCellSource) -> List[Segment]:
        boundaries = set()
        for span in spans:
            boundaries.add(span.start_bit)
            boundaries.add(span.end_bit)

        segments = []
        for cell in cells:
            base = cell.bit_offset
            cuts = sorted({0, BITS_IN_BYTE} | {b - base for b in boundaries
                                               if base < b < base + BITS_IN_BYTE})
            for start, end in zip(cuts, cuts[1:]):
                segments.append(self._make_segment(cell, start, end, spans, keys, source))
        return segments

    def _make_segment(self, cell: Cell, start: int, end: int,
                      spans: Sequence[FieldSpan],
                      keys: Dict[str, Optional[Tuple[int, int]]],
                      source: ByteCellSource) -> Segment:
        bit = cell.bit_offset + start
        span = next((s for s in spans if s.contains(bit)), None)

        if span is None:
            text = None
            if self.descriptor.show_chars and end - start == BITS_IN_BYTE:
                char = printable_char(cell.value)
                text = f"'{char}'" if char is not None else None
            return Segment(cell, start, end, text=text)

        ann = span.field
        if not ann.transform:
            return Segment(cell, start, end, field=ann)

        nbits = end - start
        whole_field = bit == ann.bit_offset and nbits == ann.bit_length
        resolved = {name: value for name, value in keys.items() if value is not None}
        result = apply_transforms(ann.transform, cell.bits(start, end), nbits,
                                  bit - ann.bit_offset, whole_field, resolved)
        text = result.text

        # A field cut into several segments shows its whole-field text
        # (lookup name, character) on its final segment
        if not whole_field and cell.bit_offset + end == ann.end_bit:
            full = self._read_field(ann, source)
            if full is not None:
                field_text = apply_transforms(ann.transform, full, ann.bit_length,
                                              0, True, resolved).text
                if field_text is not None:
                    text = field_text

        return Segment(cell, start, end, field=ann,
                       transformed=result.value, text=text)


def layout_rows(data: BufferLike, descriptor: FormatDescriptor) -> List[Row]:
    """Convenience function to lay out a buffer."""
    return LayoutEngine(descriptor).layout(data)
