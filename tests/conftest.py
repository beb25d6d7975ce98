"""
pytest configuration and fixtures for bit table renderer tests.

Provides reusable fixtures for:
- Sample buffers (plain bytes, WebSocket frames)
- Annotated descriptors (WebSocket header, split key)
- Hypothesis property-based testing configuration
"""

import base64
import os
import sys
from pathlib import Path

import pytest
from hypothesis import settings

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

# HYPOTHESIS_PROFILE=quick runs ten examples per property
settings.register_profile("default", max_examples=100, deadline=None)
settings.register_profile("quick", max_examples=10, deadline=None)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


# 0x81 0x83 | key 5A 0E 91 36 | masked "abc"
MASKED_FRAME_B64 = "gYNaDpE2O2zy"


@pytest.fixture
def nine_bytes():
    """The 9-byte buffer used throughout the renderer tests."""
    return bytes([0x81, 0x83, 0x5A, 0x0E, 0x91, 0x36, 0x3B, 0x6C, 0xF2])


@pytest.fixture
def masked_frame():
    """Masked, FIN text frame carrying 'abc'."""
    return base64.b64decode(MASKED_FRAME_B64)


@pytest.fixture
def websocket_header_fields():
    """
    The first 16 bits of a WebSocket frame as annotation dicts.

    Usage:
        def test_header(websocket_header_fields):
            FormatDescriptor.from_dict({'word_size': 32,
                                        'annotations': websocket_header_fields})
    """
    return [
        {'name': 'fin', 'bit_offset': 0, 'bit_length': 1},
        {'name': 'rsv1', 'bit_offset': 1, 'bit_length': 1},
        {'name': 'rsv2', 'bit_offset': 2, 'bit_length': 1},
        {'name': 'rsv3', 'bit_offset': 3, 'bit_length': 1},
        {'name': 'opcode', 'bit_offset': 4, 'bit_length': 4},
        {'name': 'mask', 'bit_offset': 8, 'bit_length': 1},
        {'name': 'payload_len', 'bit_offset': 9, 'bit_length': 7},
    ]


@pytest.fixture
def split_key_descriptor():
    """DWORD descriptor with a 16-bit key at bit 24, crossing rows 1 and 2."""
    from format_descriptor import FieldAnnotation, FormatDescriptor

    return FormatDescriptor(word_size=32, annotations=[
        FieldAnnotation('header', 0, 24),
        FieldAnnotation('key', 24, 16),
        FieldAnnotation('body', 40, 16, transform=[{'xor': 'key'}, 'ascii']),
    ])


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
