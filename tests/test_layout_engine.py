"""
Tests for row tiling, field clipping and segmentation.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from byte_cells import ByteCellSource
from format_descriptor import FieldAnnotation, FormatDescriptor
from layout_engine import Continuation, LayoutEngine, layout_rows, read_bits

# header 01 02 03 | key 5A 0E | body 'ab' masked with the key
SPLIT_KEY_DATA = bytes([0x01, 0x02, 0x03, 0x5A, 0x0E, 0x3B, 0x6C])


class TestRowTiling:
    """Tests for grouping cells into rows."""

    def test_nine_bytes_qword(self, nine_bytes):
        rows = layout_rows(nine_bytes, FormatDescriptor())
        assert [r.cell_count for r in rows] == [8, 1]
        assert [r.index for r in rows] == [1, 2]
        assert rows[0].label_text == 'QWORD 1'
        assert not rows[0].is_partial
        assert rows[1].is_partial

    @pytest.mark.parametrize('size,expected', [(8, 9), (16, 5), (32, 3), (64, 2)])
    def test_row_counts(self, nine_bytes, size, expected):
        rows = layout_rows(nine_bytes, FormatDescriptor(word_size=size))
        assert len(rows) == expected
        assert sum(r.cell_count for r in rows) == 9

    def test_empty_buffer(self):
        assert layout_rows(b'', FormatDescriptor()) == []

    def test_plain_rows_have_whole_segments(self, nine_bytes):
        rows = layout_rows(nine_bytes, FormatDescriptor(word_size=32))
        for row in rows:
            assert row.spans == ()
            assert all(s.is_whole_cell and s.field is None for s in row.segments)
            assert [s.cell for s in row.segments] == list(row.cells)

    def test_rows_are_lazy(self, nine_bytes):
        source = ByteCellSource(nine_bytes)
        rows = LayoutEngine(FormatDescriptor(word_size=16)).rows(source)
        first = next(rows)
        assert first.cell_count == 2
        assert source.position == 2

    def test_source_already_advanced(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('key', 0, 8),
            FieldAnnotation('body', 8, 16, transform=[{'xor': 'key'}]),
        ])
        source = ByteCellSource(bytes([0x5A, 0x3B, 0x3B]))
        source.take(1)
        rows = LayoutEngine(descriptor).layout(source)

        assert [r.index for r in rows] == [2, 3]
        assert [r.spans[0].part for r in rows] == [1, 2]
        assert [r.segments[0].transformed for r in rows] == [0x61, 0x61]

    def test_engine_is_reusable(self, nine_bytes):
        engine = LayoutEngine(FormatDescriptor(word_size=32))
        assert engine.layout(nine_bytes) == engine.layout(nine_bytes)

    def test_bit_ranges(self, nine_bytes):
        rows = layout_rows(nine_bytes, FormatDescriptor(word_size=32))
        assert (rows[1].start_bit, rows[1].end_bit) == (32, 64)
        assert (rows[2].start_bit, rows[2].end_bit) == (64, 72)


class TestSegmentation:

    def test_sub_byte_fields_cut_cells(self, masked_frame, websocket_header_fields):
        descriptor = FormatDescriptor.from_dict({
            'word_size': 32, 'annotations': websocket_header_fields})
        row = layout_rows(masked_frame, descriptor)[0]

        lengths = [s.bit_length for s in row.segments]
        assert lengths == [1, 1, 1, 1, 4, 1, 7, 8, 8]
        assert [s.binary() for s in row.segments[:7]] == [
            '1', '0', '0', '0', '0001', '1', '0000011']
        assert row.segments[6].value == 3
        assert row.segments[7].field is None

    def test_segments_partition_each_cell(self, masked_frame, websocket_header_fields):
        descriptor = FormatDescriptor.from_dict({
            'word_size': 32, 'annotations': websocket_header_fields})
        for row in layout_rows(masked_frame, descriptor):
            for cell in row.cells:
                parts = [s for s in row.segments if s.cell == cell]
                assert sum(s.bit_length for s in parts) == 8
                assert parts[0].start == 0 and parts[-1].end == 8

    def test_show_chars(self):
        rows = layout_rows(b'a\x01', FormatDescriptor(show_chars=True))
        assert [s.text for s in rows[0].segments] == ["'a'", None]


class TestContinuation:
    """Fields crossing row boundaries get continuation markers and parts."""

    def test_split_key(self, split_key_descriptor):
        rows = layout_rows(SPLIT_KEY_DATA, split_key_descriptor)
        assert len(rows) == 2

        first = {s.field.name: s for s in rows[0].spans}
        second = {s.field.name: s for s in rows[1].spans}

        assert first['header'].continuation == Continuation.WHOLE
        assert first['key'].continuation == Continuation.FIRST
        assert (first['key'].start_bit, first['key'].bit_length, first['key'].part) == (24, 8, 1)
        assert first['key'].label == 'key (part 1)'

        assert second['key'].continuation == Continuation.LAST
        assert (second['key'].start_bit, second['key'].bit_length, second['key'].part) == (32, 8, 2)
        assert second['key'].label == 'key (part 2)'
        assert second['body'].continuation == Continuation.WHOLE
        assert second['body'].label == 'body'

    def test_middle_part(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('long', 4, 16),
        ])
        rows = layout_rows(b'\xff\xff\xff', descriptor)
        spans = [row.spans[0] for row in rows]
        assert [s.continuation for s in spans] == [
            Continuation.FIRST, Continuation.MIDDLE, Continuation.LAST]
        assert [s.part for s in spans] == [1, 2, 3]
        assert [s.bit_length for s in spans] == [4, 8, 4]
        assert [len(row.segments) for row in rows] == [2, 1, 2]

    def test_field_cut_by_end_of_buffer(self):
        descriptor = FormatDescriptor(word_size=32, annotations=[
            FieldAnnotation('len', 0, 64),
        ])
        span = layout_rows(b'\x01\x02', descriptor)[0].spans[0]
        assert span.continuation == Continuation.TRUNCATED
        assert span.is_truncated
        assert span.bit_length == 16
        assert span.label == 'len'

    def test_continued_field_cut_by_end_of_buffer(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('long', 0, 24),
        ])
        spans = [row.spans[0] for row in layout_rows(b'\xff\xff', descriptor)]
        assert [s.continuation for s in spans] == [
            Continuation.FIRST, Continuation.TRUNCATED]
        assert [s.label for s in spans] == ['long (part 1)', 'long (part 2)']

    def test_span_at(self, split_key_descriptor):
        row = layout_rows(SPLIT_KEY_DATA, split_key_descriptor)[1]
        assert row.span_at(36).field.name == 'key'
        assert row.span_at(48).field.name == 'body'
        assert row.span_at(70) is None


class TestTransforms:

    def test_xor_with_split_key(self, split_key_descriptor):
        row = layout_rows(SPLIT_KEY_DATA, split_key_descriptor)[1]
        body = [s for s in row.segments if s.field.name == 'body']
        assert [s.value for s in body] == [0x3B, 0x6C]
        assert [s.transformed for s in body] == [ord('a'), ord('b')]
        assert [s.text for s in body] == ["'a'", "'b'"]

    def test_key_read_ahead_of_row(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('body', 0, 8, transform=[{'xor': 'key'}]),
            FieldAnnotation('key', 8, 8),
        ])
        row = layout_rows(bytes([0x3B, 0x5A]), descriptor)[0]
        assert row.segments[0].transformed == 0x61

    def test_key_beyond_buffer(self):
        descriptor = FormatDescriptor(word_size=32, annotations=[
            FieldAnnotation('body', 0, 16, transform=[{'xor': 'key'}, 'ascii']),
            FieldAnnotation('key', 16, 32),
        ])
        row = layout_rows(bytes([0x61, 0x62, 0x00, 0x00]), descriptor)[0]
        body = [s for s in row.segments if s.field.name == 'body']
        assert all(not s.is_transformed for s in body)
        assert [s.text for s in body] == ["'a'", "'b'"]

    def test_lookup_on_whole_field(self, masked_frame):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('flags', 0, 4),
            FieldAnnotation('opcode', 4, 4, transform=[{'lookup': {1: 'text'}}]),
        ])
        row = layout_rows(masked_frame, descriptor)[0]
        assert row.segments[1].text == 'text'
        assert not row.segments[1].is_transformed


    def test_lookup_on_field_across_cells(self):
        descriptor = FormatDescriptor(word_size=16, annotations=[
            FieldAnnotation('code', 0, 16, transform=[{'lookup': {0x0102: 'hello'}}]),
        ])
        row = layout_rows(b'\x01\x02', descriptor)[0]
        assert [s.text for s in row.segments] == [None, 'hello']

    def test_lookup_after_xor_across_rows(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('key', 0, 8),
            FieldAnnotation('code', 8, 12,
                            transform=[{'xor': 'key'}, {'lookup': {0x00F: 'ok'}}]),
        ])
        # raw 0x5AA, key bits repeated over 12 bits give 0x5A5
        rows = layout_rows(bytes([0x5A, 0x5A, 0xA0]), descriptor)
        code = [s for r in rows for s in r.segments if s.field and s.field.name == 'code']
        assert code[-1].text == 'ok'
        assert all(s.text is None for s in code[:-1])

    def test_lookup_skipped_when_field_is_cut_short(self):
        descriptor = FormatDescriptor(word_size=8, annotations=[
            FieldAnnotation('code', 0, 16, transform=[{'lookup': {0x01: 'x'}}]),
        ])
        row = layout_rows(b'\x01', descriptor)[0]
        assert row.segments[0].text is None


class TestReadBits:

    def test_across_bytes(self):
        buf = bytes([0x81, 0x83, 0x5A])
        assert read_bits(buf, 9, 7) == 3
        assert read_bits(buf, 4, 8) == 0x18
        assert read_bits(buf, 0, 24) == 0x81835A
