#!/usr/bin/env python3
"""
style_resolver.py - Resolve partial style configuration into render directives

Recognized options:
    border_glyphs: top_left, top_right, bottom_left, bottom_right,
                   horizontal, vertical, junction  (or a preset name:
                   'ascii', 'unicode')
    colors:        field name or value class -> color name

Value classes: masked-byte, unmasked-byte, byte, label, header, border.
Anything left out falls back to plain ASCII ('+', '-', '|') with no color.
Resolution never fails; unusable entries are logged and ignored.

Usage:
    from style_resolver import resolve_style

    style = resolve_style({'border_glyphs': 'unicode',
                           'colors': {'payload': 'green', 'border': 'blue'}})
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

ANSI_RESET = '\033[0m'

# Value classes understood by the renderer
MASKED_BYTE = 'masked-byte'
UNMASKED_BYTE = 'unmasked-byte'
BYTE = 'byte'
LABEL = 'label'
HEADER = 'header'
BORDER = 'border'


class Color(Enum):
    RED = 'red'
    BLUE = 'blue'
    GREEN = 'green'
    YELLOW = 'yellow'
    MAGENTA = 'magenta'
    CYAN = 'cyan'
    WHITE = 'white'
    BLACK = 'black'

    def __str__(self) -> str:
        return self.value

    @property
    def ansi(self) -> str:
        return ANSI_CODES[self]


ANSI_CODES = {
    Color.BLACK: '\033[30m',
    Color.RED: '\033[31m',
    Color.GREEN: '\033[32m',
    Color.YELLOW: '\033[33m',
    Color.BLUE: '\033[34m',
    Color.MAGENTA: '\033[35m',
    Color.CYAN: '\033[36m',
    Color.WHITE: '\033[37m',
}


@dataclass(frozen=True)
class BorderGlyphs:
    top_left: str = '+'
    top_right: str = '+'
    bottom_left: str = '+'
    bottom_right: str = '+'
    horizontal: str = '-'
    vertical: str = '|'
    junction: str = '+'


ASCII_GLYPHS = BorderGlyphs()

UNICODE_GLYPHS = BorderGlyphs(
    top_left='┌',
    top_right='┐',
    bottom_left='└',
    bottom_right='┘',
    horizontal='─',
    vertical='│',
    junction='┼',
)

GLYPH_PRESETS = {
    'ascii': ASCII_GLYPHS,
    'unicode': UNICODE_GLYPHS,
}

GLYPH_NAMES = tuple(BorderGlyphs.__dataclass_fields__)


@dataclass(frozen=True)
class StyleConfig:
    """Partially specified style, as supplied by the caller."""
    border_glyphs: Optional[Union[str, Mapping[str, str]]] = None
    colors: Optional[Mapping[str, Union[str, Color]]] = None


@dataclass(frozen=True)
class ResolvedStyle:
    """Fully resolved style: every glyph set, colors as a read-only map."""
    glyphs: BorderGlyphs = ASCII_GLYPHS
    colors: Mapping[str, Color] = field(default_factory=lambda: MappingProxyType({}))

    def color_for(self, *keys: Optional[str]) -> Optional[Color]:
        """First color found for the given field names / classes."""
        for key in keys:
            if key is not None and key in self.colors:
                return self.colors[key]
        return None

    def paint(self, text: str, *keys: Optional[str]) -> str:
        """Wrap ``text`` in the ANSI color for the first matching key."""
        color = self.color_for(*keys)
        if color is None or not text:
            return text
        return f"{color.ansi}{text}{ANSI_RESET}"


DEFAULT_STYLE = ResolvedStyle()


def parse_color(value: Any) -> Optional[Color]:
    """Parse a color name (case-insensitive) or Color; None if unknown."""
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        try:
            return Color(value.strip().lower())
        except ValueError:
            return None
    return None


def _resolve_glyphs(spec: Any) -> BorderGlyphs:
    if spec is None:
        return ASCII_GLYPHS
    if isinstance(spec, BorderGlyphs):
        return spec
    if isinstance(spec, str):
        preset = GLYPH_PRESETS.get(spec.lower())
        if preset is None:
            logger.warning("Unknown border glyph preset '%s', using ascii", spec)
            return ASCII_GLYPHS
        return preset
    if not isinstance(spec, Mapping):
        logger.warning("Ignoring border_glyphs of type %s", type(spec).__name__)
        return ASCII_GLYPHS

    glyphs = {}
    for name, glyph in spec.items():
        if name not in GLYPH_NAMES:
            logger.warning("Ignoring unknown border glyph '%s'", name)
            continue
        if not isinstance(glyph, str) or len(glyph) != 1:
            logger.warning("Border glyph '%s' must be a single character, got %r", name, glyph)
            continue
        glyphs[name] = glyph
    return BorderGlyphs(**glyphs)


def _resolve_colors(spec: Any) -> Mapping[str, Color]:
    colors: Dict[str, Color] = {}
    if spec is None:
        return MappingProxyType(colors)
    if not isinstance(spec, Mapping):
        logger.warning("Ignoring colors of type %s", type(spec).__name__)
        return MappingProxyType(colors)

    for key, value in spec.items():
        color = parse_color(value)
        if color is None:
            logger.warning("Ignoring unknown color %r for '%s'", value, key)
            continue
        colors[str(key)] = color
    return MappingProxyType(colors)


def resolve_style(config: Union[None, StyleConfig, ResolvedStyle, Mapping[str, Any]] = None) -> ResolvedStyle:
    """
    Resolve a partial style configuration.

    Args:
        config: None, a StyleConfig, an already resolved style, or a mapping
            with optional 'border_glyphs' and 'colors' keys

    Returns:
        ResolvedStyle with every option filled in
    """
    if isinstance(config, ResolvedStyle):
        return config
    if config is None:
        return DEFAULT_STYLE
    if isinstance(config, StyleConfig):
        glyph_spec, color_spec = config.border_glyphs, config.colors
    elif isinstance(config, Mapping):
        for key in config:
            if key not in ('border_glyphs', 'colors'):
                logger.warning("Ignoring unknown style option '%s'", key)
        glyph_spec, color_spec = config.get('border_glyphs'), config.get('colors')
    else:
        logger.warning("Ignoring style of type %s", type(config).__name__)
        return DEFAULT_STYLE

    return ResolvedStyle(glyphs=_resolve_glyphs(glyph_spec),
                         colors=_resolve_colors(color_spec))
