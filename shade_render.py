#!/usr/bin/env python3
"""
🔤 glyphshade - Image Rendering Module
======================================
Copyright (c) 2025 PNGN-Tec LLC

Image-to-Glyph Rendering System
===============================
Turns an RGBA image into positioned, optionally colored characters
chosen from a font's brightness profile.

Rendering Pipeline
==================
1. Aspect correction: stretch the image to twice its width, then resize
   to the character grid (triangle filter both times)
2. Mapping: skip fully transparent cells; every other cell gets the
   profile character nearest to its luma x alpha
3. Emission: clear, then per cell move to row and column, set the
   foreground color when enabled, print; flush once at the end

The two-step resize is deliberate: the intermediate horizontal stretch
changes the sampling footprint of the second resize.

Module Interface
================
- load_image(): decode any Pillow-readable file to RGBA
- stretch_for_cells(), scale_to_grid(): aspect-corrected resizing
- map_image(): image -> DrawInstruction list
- draw_image(): map and emit one frame onto a TerminalSink
- AsciiRenderer: profile-bound renderer with timing statistics
"""

import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from PIL import Image

from config import RenderingConfig, get_rendering_config
from shade_profile import BrightnessProfile
from shade_raster import weighted_luma
from shade_terminal import TerminalSink

# Configure logging
logger = logging.getLogger('glyphshade.render')

RGBColor = Tuple[int, int, int]
GridSize = Tuple[int, int]


class ImageDecodeError(ValueError):
    """Source image could not be read or decoded."""


@dataclass
class DrawInstruction:
    """Single character to draw at a grid cell"""
    char: str
    x: int
    y: int
    fg_color: Optional[RGBColor] = None


def load_image(path: Union[str, Path]) -> Image.Image:
    """
    Decode an image file to RGBA.

    Raises:
        ImageDecodeError: The file is missing, unreadable or not an image
    """
    try:
        with Image.open(path) as source:
            source.load()
            image = source.convert('RGBA')
    except (OSError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Could not decode image {path}: {e}") from e

    logger.info(f"Loaded image {path}: {image.width}x{image.height}")
    return image


# ============================================================================
# ASPECT-CORRECTED SCALING
# ============================================================================

def stretch_for_cells(image: Image.Image, stretch: int = 2,
                      resample: int = Image.BILINEAR) -> Image.Image:
    """Widen ``image`` by ``stretch`` to offset tall terminal cells"""
    return image.resize((image.width * stretch, image.height), resample)


def fit_within(size: GridSize, bounds: GridSize) -> GridSize:
    """Largest size with the aspect ratio of ``size`` that fits ``bounds``"""
    width, height = size
    max_width, max_height = bounds
    ratio = min(max_width / width, max_height / height)
    return (
        min(max_width, max(1, round(width * ratio))),
        min(max_height, max(1, round(height * ratio))),
    )


def scale_to_grid(image: Image.Image, width: int, height: int,
                  config: Optional[RenderingConfig] = None) -> Image.Image:
    """
    Resize ``image`` to one pixel per character cell.

    Args:
        image: Source image
        width: Grid width in cells
        height: Grid height in cells
        config: Rendering configuration (uses the global one if None)

    Returns:
        Exactly ``width x height`` image, or the largest aspect-preserving
        fit when ``config.preserve_aspect`` is set
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Grid size must be positive, got {width}x{height}")

    config = config or get_rendering_config()
    stretched = stretch_for_cells(image, config.cell_stretch, config.resample)

    target = (width, height)
    if config.preserve_aspect:
        target = fit_within(stretched.size, target)

    return stretched.resize(target, config.resample)


# ============================================================================
# MAPPING AND EMISSION
# ============================================================================

def map_image(image: Image.Image, profile: BrightnessProfile,
              use_color: bool = True) -> List[DrawInstruction]:
    """
    Map every visible pixel to its nearest-brightness character.

    Args:
        image: Grid-sized image, one pixel per cell
        profile: Brightness profile to match against
        use_color: Attach each cell's RGB as its foreground color

    Returns:
        Draw instructions in row-major order; alpha-zero cells are omitted
    """
    pixels = np.asarray(image.convert('RGBA'), dtype=np.uint8)
    rows, columns = np.nonzero(pixels[..., 3] > 0)
    visible = pixels[rows, columns]
    chars = profile.closest_many(weighted_luma(visible))

    instructions = []
    for y, x, char, rgba in zip(rows.tolist(), columns.tolist(), chars.tolist(), visible.tolist()):
        color = (rgba[0], rgba[1], rgba[2]) if use_color else None
        instructions.append(DrawInstruction(char=char, x=x, y=y, fg_color=color))

    return instructions


def emit_instructions(sink: TerminalSink, instructions: List[DrawInstruction]):
    """Clear the surface, draw every instruction and flush"""
    sink.clear_all()
    for instruction in instructions:
        sink.move_to_row(instruction.y)
        sink.move_to_column(instruction.x)
        if instruction.fg_color is not None:
            sink.set_foreground(instruction.fg_color)
        sink.print(instruction.char)
    sink.flush()


def draw_image(sink: TerminalSink, profile: BrightnessProfile, image: Image.Image,
               grid_size: GridSize, use_color: bool = True,
               config: Optional[RenderingConfig] = None) -> List[DrawInstruction]:
    """
    Render one frame of ``image`` onto ``sink``.

    Args:
        sink: Terminal output
        profile: Brightness profile to match against
        image: Source image
        grid_size: (columns, rows) of the output grid
        use_color: Emit 24-bit foreground colors
        config: Rendering configuration (uses the global one if None)

    Returns:
        The emitted draw instructions
    """
    scaled = scale_to_grid(image, grid_size[0], grid_size[1], config)
    instructions = map_image(scaled, profile, use_color)
    emit_instructions(sink, instructions)
    return instructions


class AsciiRenderer:
    """
    Renderer bound to one brightness profile.

    The profile is shared read-only across frames; every ``render`` call
    draws a complete frame and blocks until it is flushed.
    """

    def __init__(self, profile: BrightnessProfile,
                 config: Optional[RenderingConfig] = None,
                 use_color: Optional[bool] = None):
        self.profile = profile
        self.config = config or get_rendering_config()
        self.use_color = self.config.use_color if use_color is None else use_color
        self.render_times: List[float] = []
        self.cells_drawn = 0

        if not profile:
            logger.warning("Empty brightness profile - every visible cell renders as a space")

    def render(self, sink: TerminalSink, image: Image.Image, grid_size: GridSize) -> List[DrawInstruction]:
        """Draw ``image`` at ``grid_size`` and record timing"""
        start_time = time.time()
        instructions = draw_image(sink, self.profile, image, grid_size, self.use_color, self.config)

        render_time = (time.time() - start_time) * 1000
        self.render_times.append(render_time)
        self.cells_drawn += len(instructions)

        logger.debug(f"Rendered {len(instructions)} cells at {grid_size[0]}x{grid_size[1]} "
                     f"in {render_time:.1f}ms")
        return instructions

    def get_stats(self) -> Dict[str, Any]:
        """Get render statistics"""
        if not self.render_times:
            return {'status': 'No renders yet'}

        return {
            'avg_render_time': sum(self.render_times) / len(self.render_times),
            'min_render_time': min(self.render_times),
            'max_render_time': max(self.render_times),
            'renders_completed': len(self.render_times),
            'cells_drawn': self.cells_drawn,
            'profile_size': len(self.profile),
            'use_color': self.use_color,
        }
