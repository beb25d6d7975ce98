#!/usr/bin/env python3
"""
render_buffer.py - Render a binary buffer as a bit table

Usage:
    python tools/render_buffer.py data.bin
    python tools/render_buffer.py --hex "81 83 5A 0E 91 36 3B 6C F2"
    python tools/render_buffer.py --base64 gYNaDpE2O2zy --websocket
    python tools/render_buffer.py data.bin -d descriptors/websocket_header.yaml
    python tools/render_buffer.py data.bin -w 32 --chars --unicode
    python tools/render_buffer.py data.bin --style style.yaml --color payload=green

Features:
    - Plain byte tables with 8/16/32/64-bit rows
    - Bit field annotations from a YAML descriptor
    - WebSocket frame schema built from the frame header
    - Border glyph presets and ANSI colors
"""

import argparse
import base64
import binascii
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from format_descriptor import DescriptorError, FormatDescriptor
from log_setup import get_logger, setup_logging
from table_renderer import render_table
from websocket_frame import frame_descriptor

logger = get_logger('render_buffer')


def parse_hex(text: str) -> bytes:
    """
    Decode a hex dump such as ``81 83 5a``, ``0x81,0x83`` or ``81:83``.

    Tokens are split on whitespace, commas and colons; a ``0x`` prefix on a
    token is dropped before the digits are joined.
    """
    tokens = text.replace(',', ' ').replace(':', ' ').split()
    digits = ''.join(t[2:] if t[:2].lower() == '0x' else t for t in tokens)
    if len(digits) % 2:
        raise ValueError(f"Odd number of hex digits in '{text}'")
    return bytes.fromhex(digits)


def load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML mapping; an empty file gives an empty mapping."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_color_args(pairs: List[str]) -> Dict[str, str]:
    colors = {}
    for pair in pairs:
        key, sep, color = pair.partition('=')
        if not sep or not key or not color:
            raise ValueError(f"--color expects NAME=COLOR, got '{pair}'")
        colors[key] = color
    return colors


def read_input(args: argparse.Namespace) -> bytes:
    if args.hex is not None:
        return parse_hex(args.hex)
    if args.base64 is not None:
        return base64.b64decode(args.base64, validate=True)
    if args.input is None or args.input == '-':
        return sys.stdin.buffer.read()
    return Path(args.input).read_bytes()


def build_style(args: argparse.Namespace, descriptor_style: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge style sources: descriptor file, --style file, then flags."""
    style: Dict[str, Any] = {}
    for source in (descriptor_style, load_yaml(args.style) if args.style else None):
        if source:
            style.update(source)

    if args.unicode:
        style['border_glyphs'] = 'unicode'
    if args.color:
        colors = dict(style.get('colors') or {})
        colors.update(parse_color_args(args.color))
        style['colors'] = colors
    if args.no_color:
        style.pop('colors', None)
    return style


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Render a binary buffer as a bordered, bit-annotated table'
    )
    parser.add_argument('input', nargs='?',
                        help='Input file (default: stdin, or use --hex/--base64)')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--hex', help='Buffer as hex string')
    source.add_argument('--base64', help='Buffer as base64 string')

    layout = parser.add_mutually_exclusive_group()
    layout.add_argument('-d', '--descriptor', help='YAML table descriptor')
    layout.add_argument('--websocket', action='store_true',
                        help='Annotate the buffer as a WebSocket frame')

    parser.add_argument('-w', '--word-size', type=int,
                        help='Row width in bits: 8, 16, 32 or 64 (default: 64)')
    parser.add_argument('--chars', action='store_true',
                        help='Show printable bytes as characters')
    parser.add_argument('--style', help='YAML style file (border_glyphs, colors)')
    parser.add_argument('--unicode', action='store_true',
                        help='Use box-drawing border glyphs')
    parser.add_argument('--color', action='append', default=[], metavar='NAME=COLOR',
                        help='Color a field or value class (repeatable)')
    parser.add_argument('--no-color', action='store_true',
                        help='Disable all colors')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging on stderr')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = get_parser()
    args = parser.parse_args(argv)
    if args.websocket and (args.word_size is not None or args.chars):
        parser.error("--word-size and --chars are not allowed with --websocket")
    setup_logging(args.verbose)

    try:
        data = read_input(args)
    except (OSError, ValueError, binascii.Error) as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1
    logger.debug("Read %d byte(s)", len(data))

    descriptor_style = None
    try:
        if args.websocket:
            descriptor = frame_descriptor(data)
        elif args.descriptor:
            config = load_yaml(args.descriptor)
            descriptor_style = config.pop('style', None)
            if args.word_size is not None:
                config['word_size'] = args.word_size
            if args.chars:
                config['show_chars'] = True
            descriptor = FormatDescriptor.from_dict(config)
        else:
            descriptor = FormatDescriptor(
                word_size=64 if args.word_size is None else args.word_size,
                show_chars=args.chars)
        style = build_style(args, descriptor_style)
    except DescriptorError as e:
        print(f"Descriptor error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    for line in render_table(data, descriptor, style):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
