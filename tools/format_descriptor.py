#!/usr/bin/env python3
"""
format_descriptor.py - Immutable table format and bit-field annotation schema

A FormatDescriptor declares how a buffer is tiled into rows (the word size)
and which named bit ranges are overlaid on it. Descriptors are validated once
at construction; a descriptor that exists is always renderable.

Validation rules:
    1. word_size is one of 8, 16, 32, 64              -> InvalidWordSize
    2. every field has offset >= 0 and length > 0     -> DegenerateAnnotation
       no two fields share a bit                      -> OverlappingAnnotation
       field names are unique                         -> DuplicateAnnotationName
    3. fully annotated (protocol frame) descriptors
       tile bits from 0 with no gaps, ending on a
       byte boundary                                  -> IncompleteAnnotationCoverage
    4. transform ops are known, xor keys name
       another field of the same descriptor           -> InvalidTransform

Usage:
    from format_descriptor import FormatDescriptor, FieldAnnotation

    table = FormatDescriptor(word_size=64)
    frame = FormatDescriptor(word_size=32, fully_annotated=True, annotations=[
        FieldAnnotation('fin', 0, 1),
        FieldAnnotation('opcode', 1, 7),
    ])

    # Or from a YAML-loaded mapping
    descriptor = FormatDescriptor.from_dict(yaml.safe_load(f))
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from byte_cells import BITS_IN_BYTE
from value_transforms import KNOWN_OPS, LOOKUP, XOR, TransformOp

logger = logging.getLogger(__name__)

# Row label prefix per word size
WORD_LABELS = {
    8: 'BYTE',
    16: 'WORD',
    32: 'DWORD',
    64: 'QWORD',
}

DEFAULT_TITLE = ('Bytes',)
DEFAULT_CONTINUATION = '(part {part})'


# =============================================================================
# Errors
# =============================================================================

class DescriptorError(ValueError):
    """Base class for descriptor validation failures.

    Carries the failed rule plus the offending field names and bit offsets.
    """
    rule = 'invalid-descriptor'

    def __init__(self, message: str, field_names: Iterable[str] = (),
                 bit_offsets: Iterable[int] = ()):
        self.field_names = tuple(field_names)
        self.bit_offsets = tuple(bit_offsets)
        super().__init__(f"[{self.rule}] {message}")


class InvalidWordSize(DescriptorError):
    rule = 'invalid-word-size'


class OverlappingAnnotation(DescriptorError):
    rule = 'overlapping-annotation'


class IncompleteAnnotationCoverage(DescriptorError):
    rule = 'incomplete-annotation-coverage'


class DegenerateAnnotation(DescriptorError):
    rule = 'degenerate-annotation'


class DuplicateAnnotationName(DescriptorError):
    rule = 'duplicate-annotation-name'


class InvalidTransform(DescriptorError):
    rule = 'invalid-transform'


# =============================================================================
# Transform parsing
# =============================================================================

def _parse_lookup(table: Any, field_name: str) -> Tuple[Tuple[int, str], ...]:
    if not isinstance(table, dict):
        raise InvalidTransform(f"field '{field_name}': lookup must be a mapping",
                               field_names=(field_name,))
    entries = []
    for key, name in table.items():
        try:
            value = int(key, 0) if isinstance(key, str) else int(key)
        except (TypeError, ValueError):
            raise InvalidTransform(
                f"field '{field_name}': lookup key {key!r} is not an integer",
                field_names=(field_name,))
        entries.append((value, str(name)))
    return tuple(sorted(entries))


def parse_transform(spec: Any, field_name: str) -> Tuple[TransformOp, ...]:
    """
    Normalize a transform chain.

    Accepts TransformOp instances, single-key mappings such as
    ``{'xor': 'masking_key'}`` and bare op names such as ``'ascii'``.
    """
    if spec is None:
        return ()
    if isinstance(spec, (str, dict, TransformOp)):
        spec = [spec]
    if not isinstance(spec, (list, tuple)):
        raise InvalidTransform(f"field '{field_name}': transform must be a list",
                               field_names=(field_name,))

    ops = []
    for i, item in enumerate(spec):
        if isinstance(item, TransformOp):
            op, arg = item.op, item.arg
        elif isinstance(item, str):
            op, arg = item, None
        elif isinstance(item, dict) and len(item) == 1:
            op, arg = next(iter(item.items()))
        else:
            raise InvalidTransform(
                f"field '{field_name}': transform[{i}] must be an op name or a single-key mapping",
                field_names=(field_name,))

        if op not in KNOWN_OPS:
            raise InvalidTransform(
                f"field '{field_name}': unknown transform op '{op}' "
                f"(expected one of {', '.join(KNOWN_OPS)})",
                field_names=(field_name,))
        if op == XOR:
            if not isinstance(arg, str) or not arg:
                raise InvalidTransform(
                    f"field '{field_name}': xor needs the name of a key field",
                    field_names=(field_name,))
        elif op == LOOKUP:
            if not isinstance(arg, tuple):
                arg = _parse_lookup(arg, field_name)
        else:
            arg = None
        ops.append(TransformOp(op, arg))
    return tuple(ops)


# =============================================================================
# Annotations and descriptors
# =============================================================================

@dataclass(frozen=True)
class FieldAnnotation:
    """A named, contiguous bit range overlaid on the buffer."""
    name: str
    bit_offset: int
    bit_length: int
    transform: Tuple[TransformOp, ...] = ()
    label: Optional[str] = None
    continuation_format: str = DEFAULT_CONTINUATION
    show_value: bool = True
    show_length: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'transform', parse_transform(self.transform, self.name))

    @property
    def end_bit(self) -> int:
        return self.bit_offset + self.bit_length

    @property
    def display_label(self) -> str:
        return self.label if self.label is not None else self.name

    @property
    def key_fields(self) -> Tuple[str, ...]:
        return tuple(op.arg for op in self.transform if op.op == XOR)

    def continuation_suffix(self, part: int) -> str:
        return self.continuation_format.format(part=part)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class FormatDescriptor:
    """
    Immutable table format: word size, annotations and display options.

    ``spaced_bits`` gives every bit a fixed two-character pitch so sub-byte
    fields line up; it is always on for annotated descriptors and optional
    for plain byte tables.
    """
    word_size: int = 64
    annotations: Tuple[FieldAnnotation, ...] = ()
    fully_annotated: bool = False
    title: Tuple[str, ...] = DEFAULT_TITLE
    show_chars: bool = False
    spaced_bits: Optional[bool] = None
    _by_name: Dict[str, FieldAnnotation] = field(default_factory=dict, init=False,
                                                repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.title, str):
            object.__setattr__(self, 'title', (self.title,))
        else:
            object.__setattr__(self, 'title', tuple(str(t) for t in self.title))
        if self.annotations:
            object.__setattr__(self, 'spaced_bits', True)
        elif self.spaced_bits is None:
            object.__setattr__(self, 'spaced_bits', False)

        self._validate_ranges(self.annotations)
        annotations = tuple(sorted(self.annotations, key=lambda a: (a.bit_offset, a.bit_length)))
        object.__setattr__(self, 'annotations', annotations)
        self._validate()
        object.__setattr__(self, '_by_name', {a.name: a for a in annotations})
        logger.debug("Built %s descriptor with %d annotation(s)",
                     self.row_label, len(annotations))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate_ranges(self, annotations: Sequence[FieldAnnotation]):
        if not _is_int(self.word_size) or self.word_size not in WORD_LABELS:
            raise InvalidWordSize(
                f"word size must be one of {sorted(WORD_LABELS)}, got {self.word_size!r}")

        for ann in annotations:
            if not _is_int(ann.bit_offset) or ann.bit_offset < 0:
                raise DegenerateAnnotation(
                    f"field '{ann.name}': bit offset must be a non-negative integer, "
                    f"got {ann.bit_offset!r}",
                    field_names=(ann.name,),
                    bit_offsets=(ann.bit_offset,) if _is_int(ann.bit_offset) else ())
            if not _is_int(ann.bit_length) or ann.bit_length <= 0:
                raise DegenerateAnnotation(
                    f"field '{ann.name}': bit length must be a positive integer, "
                    f"got {ann.bit_length!r}",
                    field_names=(ann.name,), bit_offsets=(ann.bit_offset,))

    def _validate(self):
        seen = set()
        for ann in self.annotations:
            if ann.name in seen:
                raise DuplicateAnnotationName(
                    f"field name '{ann.name}' is declared more than once",
                    field_names=(ann.name,))
            seen.add(ann.name)

        for prev, cur in zip(self.annotations, self.annotations[1:]):
            if cur.bit_offset < prev.end_bit:
                raise OverlappingAnnotation(
                    f"fields '{prev.name}' [{prev.bit_offset}, {prev.end_bit}) and "
                    f"'{cur.name}' [{cur.bit_offset}, {cur.end_bit}) share bits "
                    f"{cur.bit_offset}..{min(prev.end_bit, cur.end_bit) - 1}",
                    field_names=(prev.name, cur.name),
                    bit_offsets=(prev.bit_offset, cur.bit_offset))

        if self.fully_annotated and self.annotations:
            self._validate_coverage()

        for ann in self.annotations:
            for key in ann.key_fields:
                if key == ann.name or key not in seen:
                    raise InvalidTransform(
                        f"field '{ann.name}': xor key field '{key}' is not another "
                        f"field of this descriptor",
                        field_names=(ann.name, key), bit_offsets=(ann.bit_offset,))

    def _validate_coverage(self):
        expected = 0
        previous = None
        for ann in self.annotations:
            if ann.bit_offset != expected:
                before = f"'{previous.name}'" if previous else "start of frame"
                raise IncompleteAnnotationCoverage(
                    f"bits {expected}..{ann.bit_offset - 1} between {before} and "
                    f"'{ann.name}' are not annotated",
                    field_names=tuple(n for n in (previous.name if previous else None,
                                                  ann.name) if n),
                    bit_offsets=(expected, ann.bit_offset))
            expected = ann.end_bit
            previous = ann

        if expected % BITS_IN_BYTE:
            raise IncompleteAnnotationCoverage(
                f"annotations cover {expected} bits, ending inside a byte after "
                f"'{previous.name}'; coverage must end on a byte boundary",
                field_names=(previous.name,), bit_offsets=(expected,))

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def cells_per_row(self) -> int:
        return self.word_size // BITS_IN_BYTE

    @property
    def row_bits(self) -> int:
        return self.word_size

    @property
    def row_label(self) -> str:
        return WORD_LABELS[self.word_size]

    @property
    def is_annotated(self) -> bool:
        return bool(self.annotations)

    @property
    def annotated_bits(self) -> int:
        """Bit offset just past the last annotation (0 without annotations)."""
        return max((a.end_bit for a in self.annotations), default=0)

    def get_field(self, name: str) -> FieldAnnotation:
        return self._by_name[name]

    def key_field_names(self) -> List[str]:
        """Names of fields used as XOR keys by other fields."""
        names = []
        for ann in self.annotations:
            for key in ann.key_fields:
                if key not in names:
                    names.append(key)
        return names

    # -------------------------------------------------------------------------
    # Construction from configuration
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'FormatDescriptor':
        """
        Build a descriptor from a plain mapping, e.g. a YAML document.

        Recognized keys: word_size, annotations, fully_annotated, title,
        show_chars, spaced_bits. An annotation without ``bit_offset`` starts
        where the previous one ended.
        """
        if not isinstance(config, dict):
            raise DescriptorError(f"descriptor must be a mapping, got {type(config).__name__}")

        annotations = _annotations_from_list(config.get('annotations') or [])

        kwargs = {
            'word_size': config.get('word_size', 64),
            'annotations': annotations,
            'fully_annotated': bool(config.get('fully_annotated', False)),
            'show_chars': bool(config.get('show_chars', False)),
            'spaced_bits': config.get('spaced_bits'),
        }
        if 'title' in config:
            title = config['title']
            kwargs['title'] = (title,) if isinstance(title, str) else tuple(title)
        return cls(**kwargs)


def _annotations_from_list(entries: Sequence[Any]) -> List[FieldAnnotation]:
    if not isinstance(entries, (list, tuple)):
        raise DescriptorError("'annotations' must be a list")

    annotations = []
    next_offset = 0
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise DegenerateAnnotation(f"annotations[{i}]: must be a mapping")
        name = entry.get('name')
        if not name:
            raise DegenerateAnnotation(f"annotations[{i}]: missing 'name'")
        name = str(name)
        if 'bit_length' not in entry:
            raise DegenerateAnnotation(f"annotations[{i}] ({name}): missing 'bit_length'",
                                       field_names=(name,))

        offset = entry.get('bit_offset', next_offset)
        length = entry['bit_length']
        annotations.append(FieldAnnotation(
            name=name,
            bit_offset=offset,
            bit_length=length,
            transform=entry.get('transform'),
            label=entry.get('label'),
            continuation_format=entry.get('continuation', DEFAULT_CONTINUATION),
            show_value=bool(entry.get('show_value', True)),
            show_length=bool(entry.get('show_length', True)),
        ))
        if _is_int(offset) and _is_int(length):
            next_offset = offset + length
    return annotations
