#!/usr/bin/env python3
"""
value_transforms.py - Display transforms applied to annotated bit values

A field annotation may carry a chain of transform ops, written in
descriptor files the same way as a field transform array:

    transform:
      - xor: masking_key        # unmask with the bits of another field
      - ascii: true             # show printable bytes as characters
      - lookup: {1: text}       # map a whole-field value to a name

Transforms never touch the source bytes. They produce a secondary value
and/or a short text shown next to the raw value.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

XOR = 'xor'
ASCII = 'ascii'
LOOKUP = 'lookup'

KNOWN_OPS = (XOR, ASCII, LOOKUP)


@dataclass(frozen=True)
class TransformOp:
    """A single transform step.

    For ``xor`` the argument is the name of the key field; for ``lookup`` it
    is a tuple of ``(value, name)`` pairs; ``ascii`` takes no argument.
    """
    op: str
    arg: Any = None

    @property
    def key_field(self) -> Optional[str]:
        return self.arg if self.op == XOR else None

    def lookup_table(self) -> Dict[int, str]:
        return dict(self.arg) if self.op == LOOKUP else {}


@dataclass(frozen=True)
class TransformResult:
    """Outcome of a transform chain for one segment."""
    value: Optional[int] = None  # set only when the numeric value changed
    text: Optional[str] = None


def xor_mask(data: bytes, key: bytes) -> bytes:
    """
    XOR ``data`` with ``key`` repeated cyclically (RFC 6455 masking).

    The operation is its own inverse.
    """
    if not key:
        return bytes(data)
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


# Masking and unmasking are the same XOR
mask = xor_mask
unmask = xor_mask


def key_mask(key_value: int, key_bits: int, offset: int, nbits: int) -> int:
    """
    Build the XOR mask for ``nbits`` bits starting ``offset`` bits into a field.

    The key is treated as a bit string of length ``key_bits`` (MSB first)
    that repeats over the field, so byte-aligned fields with a 32-bit key
    behave exactly like RFC 6455 payload masking.
    """
    result = 0
    for i in range(nbits):
        pos = (offset + i) % key_bits
        bit = (key_value >> (key_bits - 1 - pos)) & 1
        result = (result << 1) | bit
    return result


def printable_char(value: int) -> Optional[str]:
    """Return the character for a printable ASCII byte, else None."""
    if 0x20 <= value < 0x7F:
        return chr(value)
    return None


def apply_transforms(ops: Sequence[TransformOp], raw: int, nbits: int,
                     field_offset: int, whole_field: bool,
                     keys: Dict[str, Tuple[int, int]]) -> TransformResult:
    """
    Run a transform chain over one segment's raw value.

    Args:
        ops: Transform chain of the owning field
        raw: Raw value of the segment's bits
        nbits: Number of bits in the segment
        field_offset: Bit offset of the segment inside its field
        whole_field: True when the segment holds the entire field
        keys: Resolved key fields, name -> (value, bit length)

    Returns:
        TransformResult with the changed value (if any) and display text
    """
    value = raw
    changed = False
    text = None

    for op in ops:
        if op.op == XOR:
            key = keys.get(op.arg)
            if key is None:
                # Key bits not present in the buffer
                continue
            key_value, key_bits = key
            value ^= key_mask(key_value, key_bits, field_offset, nbits)
            changed = True
        elif op.op == ASCII:
            if nbits == 8:
                char = printable_char(value)
                text = f"'{char}'" if char is not None else None
        elif op.op == LOOKUP:
            if whole_field:
                text = op.lookup_table().get(value, text)

    return TransformResult(value=value if changed else None, text=text)
