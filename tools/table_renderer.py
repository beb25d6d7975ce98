#!/usr/bin/env python3
"""
table_renderer.py - Draw laid-out rows as a bordered text table

Two layouts are produced, depending on the descriptor:

Compact (plain byte tables)::

    +-------+--------+--------+
    | Bytes | Byte 0 | Byte 1 |
    +-------+--------+--------+
    | WORD  |10000001|10000011|
    |   1   |   (129)|   (131)|
    +-------+--------+--------+

Spaced (annotated frames): every bit is two characters wide, so fields that
split a byte stay aligned with the bit index header. Field labels span all
segments of the field in that row and wrap onto extra lines when they do not
fit; fields continued on another row get a part suffix.

Rendering is a pure function of the rows and the resolved style.

Usage:
    from table_renderer import render_table, format_table

    lines = render_table(payload, descriptor)
    print(format_table(payload, descriptor, style={'border_glyphs': 'unicode'}))
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Set, Tuple

from byte_cells import BITS_IN_BYTE, BufferLike
from format_descriptor import FormatDescriptor
from layout_engine import FieldSpan, LayoutEngine, Row, Segment
from style_resolver import (
    BORDER, BYTE, HEADER, LABEL, MASKED_BYTE, UNMASKED_BYTE,
    ResolvedStyle, resolve_style,
)

logger = logging.getLogger(__name__)

COMPACT_MIN_WIDTH = BITS_IN_BYTE
LABEL_PADDING = 2


@dataclass(frozen=True)
class Column:
    """One cell of one text line."""
    text: str
    width: int
    align: str = '^'
    keys: Tuple[Optional[str], ...] = ()


Line = List[Column]


def _bounds(line: Line) -> Set[int]:
    """x positions of the vertical borders of a line."""
    bounds = {0}
    x = 0
    for column in line:
        x += column.width + 1
        bounds.add(x)
    return bounds


def wrap_label(text: str, width: int) -> List[str]:
    """
    Greedy word wrap into ``width``; words longer than ``width`` are cut
    into pieces, so a one-bit field stacks its label one letter per line.
    """
    if len(text) <= width:
        return [text]

    lines = []
    current = ''
    for word in text.split():
        while len(word) > width:
            if current:
                lines.append(current)
                current = ''
            lines.append(word[:width])
            word = word[width:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or ['']


def _first_fit(candidates: Sequence[str], width: int) -> str:
    for text in candidates:
        if text and len(text) <= width:
            return text
    return ''


def value_candidates(segment: Segment) -> List[str]:
    """Annotations for a segment's raw value, most detailed first."""
    value = f"({segment.value})"
    if segment.text and not segment.is_transformed:
        return [f"{value} {segment.text}", segment.text, value]
    return [value]


def transformed_candidates(segment: Segment) -> List[str]:
    value = f"({segment.transformed})"
    if segment.text:
        return [f"{value} {segment.text}", value]
    return [value]


class TableRenderer:
    """Renders a full Row sequence with one resolved style.

    ``render`` keeps per-table geometry on the instance; use one renderer per
    thread (the module-level ``render`` builds a fresh one per call).
    """

    def __init__(self, style: Any = None):
        self.style: ResolvedStyle = resolve_style(style)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def render(self, rows: Sequence[Row]) -> List[str]:
        """
        Render rows to text lines.

        Args:
            rows: Rows from LayoutEngine, all sharing one descriptor

        Returns:
            List of text lines (empty when there are no rows)
        """
        rows = list(rows)
        if not rows:
            return []

        descriptor = rows[0].descriptor
        self._descriptor = descriptor
        self._spaced = bool(descriptor.spaced_bits)
        self._label_width = max(
            len(descriptor.row_label),
            len(str(rows[-1].index)),
            max((len(t) for t in descriptor.title), default=0),
        ) + LABEL_PADDING
        self._cell_width = self._compute_cell_width(rows)

        blocks = [self._header_block()] + [self._row_block(row) for row in rows]

        lines = []
        previous: Optional[Set[int]] = None
        for block in blocks:
            lines.append(self._separator(previous, _bounds(block[0])))
            lines.extend(self._draw(line) for line in block)
            previous = _bounds(block[-1])
        lines.append(self._separator(previous, None))

        logger.debug("Rendered %d row(s) into %d line(s)", len(rows), len(lines))
        return lines

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    def _compute_cell_width(self, rows: Sequence[Row]) -> int:
        """Width of one whole-byte column."""
        if self._spaced:
            return 2 * BITS_IN_BYTE - 1

        widest_header = len(f"Byte {self._descriptor.cells_per_row - 1}")
        widest_value = max((len(value_candidates(seg)[0])
                            for row in rows for seg in row.segments), default=0)
        return max(COMPACT_MIN_WIDTH, widest_header, widest_value)

    def _segment_width(self, segment: Segment) -> int:
        if self._spaced:
            return 2 * segment.bit_length - 1
        return self._cell_width

    def _bits_text(self, bits: str) -> str:
        return ' '.join(bits) if self._spaced else bits

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _label_column(self, text: str) -> Column:
        return Column(text, self._label_width, '^', (LABEL,))

    def _header_block(self) -> List[Line]:
        per_row = self._descriptor.cells_per_row
        width = self._cell_width

        content = [[Column(f"Byte {j}", width, '^', (HEADER,)) for j in range(per_row)]]
        if self._spaced:
            tens = []
            units = []
            for j in range(per_row):
                positions = range(j * BITS_IN_BYTE, (j + 1) * BITS_IN_BYTE)
                tens.append(' '.join(str(p // 10 % 10) if p % 10 == 0 else ' '
                                     for p in positions))
                units.append(' '.join(str(p % 10) for p in positions))
            content.append([Column(t, width, '^', (HEADER,)) for t in tens])
            content.append([Column(u, width, '^', (HEADER,)) for u in units])

        title = list(self._descriptor.title)
        height = max(len(content), len(title))
        blank = [Column('', width) for _ in range(per_row)]

        block = []
        for i in range(height):
            caption = title[i] if i < len(title) else ''
            columns = content[i] if i < len(content) else blank
            block.append([Column(caption, self._label_width, '^', (HEADER,))] + columns)
        return block

    def _row_block(self, row: Row) -> List[Line]:
        style_align = '^' if self._spaced else '>'
        segments = row.segments

        bits_line = [self._label_column(row.label)]
        value_line = [self._label_column(str(row.index))]
        xbits_line = [self._label_column('')]
        xvalue_line = [self._label_column('')]
        has_value = not self._spaced
        has_transformed = False

        for seg in segments:
            width = self._segment_width(seg)
            name = seg.field.name if seg.field is not None else None
            raw_keys = (name, MASKED_BYTE if seg.is_transformed else BYTE)
            show_value = seg.field is None or seg.field.show_value

            bits_line.append(Column(self._bits_text(seg.binary()), width, style_align, raw_keys))

            value = ''
            if show_value:
                if self._spaced:
                    value = _first_fit(value_candidates(seg), width)
                else:
                    value = value_candidates(seg)[0]
            has_value = has_value or bool(value)
            value_line.append(Column(value, width, style_align, raw_keys))

            if seg.is_transformed:
                has_transformed = True
                x_keys = (name, UNMASKED_BYTE)
                xbits_line.append(Column(self._bits_text(seg.binary(seg.transformed)),
                                         width, style_align, x_keys))
                xvalue = _first_fit(transformed_candidates(seg), width) if show_value else ''
                xvalue_line.append(Column(xvalue, width, style_align, x_keys))
            else:
                xbits_line.append(Column('', width))
                xvalue_line.append(Column('', width))

        block = [bits_line]
        if has_value:
            block.append(value_line)
        if has_transformed:
            block.extend([xbits_line, xvalue_line])
        if self._spaced and row.spans:
            block.extend(self._label_lines(row))

        if len(block) == 1:
            # Row number still needs a line of its own
            block.append([self._label_column(str(row.index))] +
                         [Column('', column.width) for column in bits_line[1:]])
        elif not has_value:
            # The row number lives on the second line whatever it holds
            second = block[1]
            block[1] = [self._label_column(str(row.index))] + second[1:]
        return block

    def _label_lines(self, row: Row) -> List[Line]:
        """Field label sub-rows: one column per field span (or bare segment)."""
        groups: List[Tuple[Optional[FieldSpan], int]] = []
        for seg in row.segments:
            width = self._segment_width(seg)
            span = row.span_at(seg.start_bit)
            if span is not None and groups and groups[-1][0] is span:
                groups[-1] = (span, groups[-1][1] + width + 1)
            else:
                groups.append((span, width))

        texts = [self._span_text(span, width) if span is not None else []
                 for span, width in groups]
        height = max((len(t) for t in texts), default=0)

        lines = []
        for i in range(height):
            line = [self._label_column('')]
            for (span, width), text in zip(groups, texts):
                keys = (span.field.name, LABEL) if span is not None else ()
                line.append(Column(text[i] if i < len(text) else '', width, '^', keys))
            lines.append(line)
        return lines

    def _span_text(self, span: FieldSpan, width: int) -> List[str]:
        lines = wrap_label(span.label, width)
        if span.field.show_length:
            n = span.bit_length
            unit = 'bit' if n == 1 else 'bits'
            candidates = [f"({n} {unit})", f"({n} b)"]
            if span.is_truncated:
                candidates.insert(0, f"({n}/{span.field.bit_length} bits)")
            caption = _first_fit(candidates, width)
            if caption:
                lines.append(caption)
        return lines

    # -------------------------------------------------------------------------
    # Drawing
    # -------------------------------------------------------------------------

    def _draw(self, line: Line) -> str:
        vertical = self.style.paint(self.style.glyphs.vertical, BORDER)
        cells = []
        for column in line:
            text = column.text[:column.width]
            padded = f"{text:{column.align}{column.width}}"
            cells.append(self.style.paint(padded, *column.keys) if text else padded)
        return vertical + vertical.join(cells) + vertical

    def _separator(self, upper: Optional[Set[int]], lower: Optional[Set[int]]) -> str:
        glyphs = self.style.glyphs
        bounds = (upper or set()) | (lower or set())
        extent = max(bounds)

        chars = []
        for x in range(extent + 1):
            if x not in bounds:
                chars.append(glyphs.horizontal)
            elif upper is None and x == 0:
                chars.append(glyphs.top_left)
            elif upper is None and x == extent:
                chars.append(glyphs.top_right)
            elif lower is None and x == 0:
                chars.append(glyphs.bottom_left)
            elif lower is None and x == extent:
                chars.append(glyphs.bottom_right)
            else:
                chars.append(glyphs.junction)
        return self.style.paint(''.join(chars), BORDER)


def render(rows: Sequence[Row], style: Any = None) -> List[str]:
    """Render laid-out rows with an optional style configuration."""
    return TableRenderer(style).render(rows)


def render_table(data: BufferLike, descriptor: Optional[FormatDescriptor] = None,
                 style: Any = None) -> List[str]:
    """Lay out and render a buffer; defaults to a plain QWORD byte table."""
    if descriptor is None:
        descriptor = FormatDescriptor()
    return render(LayoutEngine(descriptor).rows(data), style)


def format_table(data: BufferLike, descriptor: Optional[FormatDescriptor] = None,
                 style: Any = None) -> str:
    """Render a buffer to a single newline-terminated string."""
    lines = render_table(data, descriptor, style)
    return ''.join(f"{line}\n" for line in lines)
