#!/usr/bin/env python3
"""
websocket_frame.py - RFC 6455 frame schema for the bit table renderer

Builds a fully annotated DWORD descriptor for one WebSocket frame by reading
the header bits of the buffer. The length encoding policy (7-bit, 16-bit or
64-bit payload length) lives here, not in the layout engine.

Frame layout::

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +-+-+-+-+-------+-+-------------+-------------------------------+
    |F|R|R|R| opcode|M| Payload len |    Extended payload length    |
    |I|S|S|S|  (4)  |A|     (7)     |             (16/64)           |
    |N|V|V|V|       |S|             |   (if payload len==126/127)   |
    | |1|2|3|       |K|             |                               |
    +-+-+-+-+-------+-+-------------+ - - - - - - - - - - - - - - - +
    |     Extended payload length continued, if payload len == 127  |
    + - - - - - - - - - - - - - - - +-------------------------------+
    |                               |Masking-key, if MASK set to 1  |
    +-------------------------------+-------------------------------+
    | Masking-key (continued)       |          Payload Data         |
    +-------------------------------- - - - - - - - - - - - - - - - +

Malformed frames are rendered as far as the bytes go; nothing is rejected.

Usage:
    from websocket_frame import format_frame

    print(format_frame(base64.b64decode('gYNaDpE2O2zy')))
"""

import logging
import os
from enum import Enum
from typing import Any, List, Optional, Union

from byte_cells import BufferLike, to_bytes
from format_descriptor import FieldAnnotation, FormatDescriptor
from layout_engine import read_bits
from table_renderer import format_table, render_table
from value_transforms import xor_mask

logger = logging.getLogger(__name__)

SHORT_LENGTH_MAX = 125
MEDIUM_LENGTH = 126
LONG_LENGTH = 127
MASKING_KEY_BITS = 32


class WebSocketOpCode(Enum):
    CONTINUATION = 'continuation'
    TEXT = 'text'
    BINARY = 'binary'
    CLOSE_CONNECTION = 'close'
    PING = 'ping'
    PONG = 'pong'
    RESERVED_FUTURE = 'reserved'
    UNRECOGNIZED = 'unrecognized'

    @classmethod
    def from_bit_value(cls, opcode_bits: int) -> 'WebSocketOpCode':
        """Get an opcode from its 4-bit value."""
        if opcode_bits in _OPCODE_BY_VALUE:
            return _OPCODE_BY_VALUE[opcode_bits]
        if 0 <= opcode_bits <= 0x0F:
            return cls.RESERVED_FUTURE
        return cls.UNRECOGNIZED

    @property
    def bit_value(self) -> Optional[int]:
        return _VALUE_BY_OPCODE.get(self)


_VALUE_BY_OPCODE = {
    WebSocketOpCode.CONTINUATION: 0x0,
    WebSocketOpCode.TEXT: 0x1,
    WebSocketOpCode.BINARY: 0x2,
    WebSocketOpCode.CLOSE_CONNECTION: 0x8,
    WebSocketOpCode.PING: 0x9,
    WebSocketOpCode.PONG: 0xA,
}
_OPCODE_BY_VALUE = {v: k for k, v in _VALUE_BY_OPCODE.items()}

# Short names that fit the 4-bit opcode column (7 characters)
OPCODE_LABELS = {
    WebSocketOpCode.CONTINUATION: 'cont',
    WebSocketOpCode.TEXT: 'text',
    WebSocketOpCode.BINARY: 'binary',
    WebSocketOpCode.CLOSE_CONNECTION: 'close',
    WebSocketOpCode.PING: 'ping',
    WebSocketOpCode.PONG: 'pong',
    WebSocketOpCode.RESERVED_FUTURE: 'rsvd',
}

OPCODE_LOOKUP = {
    value: OPCODE_LABELS[WebSocketOpCode.from_bit_value(value)] for value in range(16)
}


def _header_fields() -> List[FieldAnnotation]:
    no_length = {'show_length': False, 'show_value': False}
    return [
        FieldAnnotation('fin', 0, 1, label='FIN', **no_length),
        FieldAnnotation('rsv1', 1, 1, label='RSV1', **no_length),
        FieldAnnotation('rsv2', 2, 1, label='RSV2', **no_length),
        FieldAnnotation('rsv3', 3, 1, label='RSV3', **no_length),
        FieldAnnotation('opcode', 4, 4, label='op code',
                        transform=[{'lookup': OPCODE_LOOKUP}]),
        FieldAnnotation('mask', 8, 1, label='MASK', **no_length),
        FieldAnnotation('payload_len', 9, 7, label='Payload len'),
    ]


def length_class(payload_len7: int) -> str:
    """Short / Medium / Long, from the 7-bit payload length."""
    if payload_len7 <= SHORT_LENGTH_MAX:
        return 'Short'
    if payload_len7 == MEDIUM_LENGTH:
        return 'Medium'
    return 'Long'


def frame_descriptor(data: BufferLike) -> FormatDescriptor:
    """
    Build the annotation schema for the frame held in ``data``.

    Args:
        data: Raw frame bytes (header first)

    Returns:
        Fully annotated 32-bit descriptor for this frame
    """
    buf = to_bytes(data)
    annotations = _header_fields()
    offset = 16

    masked = len(buf) >= 2 and bool(buf[1] & 0x80)
    payload_len7 = buf[1] & 0x7F if len(buf) >= 2 else 0
    payload_len: Optional[int] = payload_len7

    if payload_len7 in (MEDIUM_LENGTH, LONG_LENGTH):
        ext_bits = 16 if payload_len7 == MEDIUM_LENGTH else 64
        annotations.append(FieldAnnotation('extended_payload_len', offset, ext_bits,
                                           label='Extended payload length'))
        if len(buf) * 8 >= offset + ext_bits:
            payload_len = read_bits(buf, offset, ext_bits)
        else:
            payload_len = None
            logger.debug("Frame truncated inside the extended payload length")
        offset += ext_bits

    if masked:
        annotations.append(FieldAnnotation('masking_key', offset, MASKING_KEY_BITS,
                                           label='Masking-key', show_value=False))
        offset += MASKING_KEY_BITS

    if payload_len:
        transform: List[Any] = [{'xor': 'masking_key'}] if masked else []
        transform.append('ascii')
        annotations.append(FieldAnnotation('payload', offset, payload_len * 8,
                                           label='Payload Data', transform=transform,
                                           show_length=False))

    title = (
        'Frame Data',
        '(Masked)' if masked else '(Unmasked)',
        f"({length_class(payload_len7)})",
    )
    return FormatDescriptor(word_size=32, annotations=annotations,
                            fully_annotated=True, title=title)


def encode_frame(payload: bytes, opcode: Union[WebSocketOpCode, int] = WebSocketOpCode.TEXT,
                 masking_key: Optional[bytes] = None, fin: bool = True,
                 mask: bool = False) -> bytes:
    """
    Build a single WebSocket frame.

    Args:
        payload: Application data
        opcode: Opcode enum member or raw 4-bit value
        masking_key: 4-byte key; a random key is used when ``mask`` is set
        fin: Final fragment flag
        mask: Mask the payload even without an explicit key

    Returns:
        Frame bytes
    """
    if isinstance(opcode, WebSocketOpCode):
        value = opcode.bit_value
        if value is None:
            raise ValueError(f"Opcode {opcode.name} has no wire value")
    else:
        value = opcode
    if not 0 <= value <= 0x0F:
        raise ValueError(f"Opcode must fit in 4 bits, got {value}")
    if masking_key is None and mask:
        masking_key = os.urandom(4)
    if masking_key is not None and len(masking_key) != 4:
        raise ValueError(f"Masking key must be 4 bytes, got {len(masking_key)}")

    frame = bytearray([(0x80 if fin else 0) | value])
    mask_bit = 0x80 if masking_key is not None else 0
    length = len(payload)
    if length <= SHORT_LENGTH_MAX:
        frame.append(mask_bit | length)
    elif length <= 0xFFFF:
        frame.append(mask_bit | MEDIUM_LENGTH)
        frame.extend(length.to_bytes(2, 'big'))
    else:
        frame.append(mask_bit | LONG_LENGTH)
        frame.extend(length.to_bytes(8, 'big'))

    if masking_key is not None:
        frame.extend(masking_key)
        frame.extend(xor_mask(payload, masking_key))
    else:
        frame.extend(payload)
    return bytes(frame)


def render_frame(data: BufferLike, style: Any = None) -> List[str]:
    """Render a WebSocket frame as table lines."""
    buf = to_bytes(data)
    return render_table(buf, frame_descriptor(buf), style)


def format_frame(data: BufferLike, style: Any = None) -> str:
    """Render a WebSocket frame as a single string."""
    buf = to_bytes(data)
    return format_table(buf, frame_descriptor(buf), style)


if __name__ == '__main__':
    import base64

    print("=== WebSocket Frame Demo ===\n")
    frame = base64.b64decode('gYNaDpE2O2zy')
    print(f"Frame: {frame.hex().upper()}\n")
    print(format_frame(frame))
