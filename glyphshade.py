#!/usr/bin/env python3
"""
🔤 glyphshade - Terminal Image Viewer
=====================================
Copyright (c) 2025 PNGN-Tec LLC

Draws an image in the terminal using the characters of the terminal's
own font, picked by measured glyph brightness. Redraws on resize; q,
Esc or Ctrl-C quits.

Example Usage
=============
```
glyphshade photo.png --font "DejaVu Sans Mono"
glyphshade logo.png --plain --clean
```
"""

import sys
import logging
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from matplotlib import font_manager

from config import EVENT_POLL_TIMEOUT, SystemConfig, get_config
from shade_cache import CacheIOError, ProfileCache
from shade_profile import FontProfiler
from shade_raster import FontProgram, InvalidFontError
from shade_render import AsciiRenderer, ImageDecodeError, load_image
from shade_terminal import TerminalSink, is_quit_key, raw_mode, read_key, terminal_size

# Configure logging
logger = logging.getLogger('glyphshade')

DEFAULT_FONT_FAMILY = 'monospace'


@dataclass
class ViewerContext:
    """Process-wide resources, built once at startup"""
    config: SystemConfig
    cache: ProfileCache
    profiler: FontProfiler

    @classmethod
    def create(cls, config: Optional[SystemConfig] = None) -> 'ViewerContext':
        config = config or get_config()
        return cls(
            config=config,
            cache=ProfileCache(config=config.cache),
            profiler=FontProfiler(config),
        )


def resolve_font(family: Optional[str]) -> FontProgram:
    """
    Locate an installed font by family name.

    Unknown families fall back to matplotlib's default font.

    Raises:
        InvalidFontError: The resolved file is not a usable font
    """
    properties = font_manager.FontProperties(family=family or DEFAULT_FONT_FAMILY)
    path = font_manager.findfont(properties, fallback_to_default=True)
    logger.info(f"Resolved font family '{family or DEFAULT_FONT_FAMILY}' to {path}")
    try:
        return FontProgram.from_path(path)
    except OSError as e:
        raise InvalidFontError(f"Could not read font file {path}: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='glyphshade',
        description='Render an image in the terminal using brightness-matched font glyphs',
    )
    parser.add_argument('path', type=Path, help='The path to an image.')
    parser.add_argument('-f', '--font', default=None,
                        help='Font family used by the terminal, for more accurate character brightnesses.')
    parser.add_argument('-c', '--clean', action='store_true',
                        help='Delete all cached profiles before running.')
    parser.add_argument('-p', '--plain', action='store_true',
                        help='Draw the image without color.')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log debug output to stderr.')
    return parser


def configure_logging(config: SystemConfig, verbose: bool = False):
    level = 'DEBUG' if verbose or config.debug_mode else config.log_level.upper()
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def run_viewer(renderer: AsciiRenderer, image, sink: TerminalSink):
    """Draw once, then redraw on every size change until a quit key or EOF"""
    size = terminal_size()
    renderer.render(sink, image, size)

    while True:
        try:
            key = read_key(EVENT_POLL_TIMEOUT)
        except EOFError:
            logger.debug("Input closed - leaving viewer")
            break
        if is_quit_key(key):
            break

        current = terminal_size()
        if current != size:
            size = current
            renderer.render(sink, image, size)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    context = ViewerContext.create()
    configure_logging(context.config, args.verbose)

    try:
        if args.clean:
            context.cache.clear()

        image = load_image(args.path)
        font = resolve_font(args.font)
        profile = context.cache.load_or_compute(font, context.profiler)
    except (InvalidFontError, ImageDecodeError, CacheIOError) as e:
        logger.error(str(e))
        return 1

    use_color = context.config.rendering.use_color and not args.plain
    renderer = AsciiRenderer(profile, context.config.rendering, use_color=use_color)
    sink = TerminalSink(sys.stdout)

    try:
        with raw_mode(sys.stdin):
            run_viewer(renderer, image, sink)
    except KeyboardInterrupt:
        pass
    finally:
        sink.reset_color()
        sink.print('\n')
        sink.flush()

    logger.debug(f"Render stats: {renderer.get_stats()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
