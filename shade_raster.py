#!/usr/bin/env python3
"""
🔤 glyphshade - Glyph Rasterization Module
==========================================
Copyright (c) 2025 PNGN-Tec LLC

Glyph Rasterization System
==========================
Turns single characters of a font program into straight-alpha RGBA
bitmaps for brightness measurement.

Core Features
=============
- Font program parsing and validation (fontTools)
- Ordered source chain: color outline, color bitmap, monochrome outline
- Best-fit strike selection for color bitmap fonts
- Lock-guarded FreeType faces shared by parallel workers
- Shared luma x alpha weighting used by profiling and rendering

Technical Implementation
========================
- fontTools reads the tables (cmap, head, COLR, CBLC, sbix, glyf/CFF)
  once, up front, so worker threads never touch lazy table loading
- Pillow's FreeType binding draws the glyph onto a transparent canvas;
  the blended canvas holds premultiplied samples and is reinterpreted
  as ``RGBa`` before converting back to straight ``RGBA``
- A single ``threading.Lock`` guards all faces of a ``RasterContext``
  and is held for exactly one glyph

Module Interface
================
- FontProgram: parsed font identity, bytes and table summary
- RasterContext: rasterize(char) through the source chain
- GlyphRaster: one rasterized glyph
- weighted_luma(): luma x alpha per pixel
"""

import io
import threading
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont
from fontTools.ttLib import TTFont

from config import DEFAULT_GLYPH_COLOR, RGBAColor

# Configure logging
logger = logging.getLogger('glyphshade.raster')

# Pillow's fixed-point ITU-R 601-2 luma weights (L = R*299/1000 + ...)
LUMA_WEIGHTS = (19595, 38470, 7471)
LUMA_ROUNDING = 0x8000
LUMA_SHIFT = 16


class InvalidFontError(ValueError):
    """Font bytes do not parse as a supported font program."""


class RasterSource(Enum):
    """Glyph representations, in order of preference"""
    COLOR_OUTLINE = "color_outline"
    COLOR_BITMAP = "color_bitmap"
    OUTLINE = "outline"


DEFAULT_SOURCES = (
    RasterSource.COLOR_OUTLINE,
    RasterSource.COLOR_BITMAP,
    RasterSource.OUTLINE,
)


def weighted_luma(pixels: np.ndarray) -> np.ndarray:
    """
    Compute luma x alpha for straight RGBA samples.

    Args:
        pixels: Array of shape (..., 4) with uint8 RGBA samples

    Returns:
        uint32 array of shape (...) with values in [0, 255 * 255]
    """
    rgba = pixels.astype(np.uint32)
    luma = (rgba[..., 0] * LUMA_WEIGHTS[0]
            + rgba[..., 1] * LUMA_WEIGHTS[1]
            + rgba[..., 2] * LUMA_WEIGHTS[2]
            + LUMA_ROUNDING) >> LUMA_SHIFT
    return luma * rgba[..., 3]


@dataclass
class GlyphRaster:
    """Rasterized glyph with straight-alpha RGBA samples"""
    char: str
    width: int
    height: int
    pixels: np.ndarray
    source: RasterSource

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def flat(self) -> np.ndarray:
        """Pixels as an (N, 4) array"""
        return self.pixels.reshape(-1, 4)


# ============================================================================
# FONT PROGRAM
# ============================================================================

class FontProgram:
    """
    Parsed font program.

    Holds the identity used for cache naming, the raw bytes handed to
    FreeType, and a summary of the tables the raster strategies need.
    Only the face at ``index`` is considered.
    """

    def __init__(self, name: str, data: bytes, index: int = 0):
        if not name:
            raise ValueError("Font name must not be empty")

        self.name = name
        self.data = bytes(data)
        self.index = index

        try:
            tt = TTFont(io.BytesIO(self.data), fontNumber=index)
            self.units_per_em = int(tt['head'].unitsPerEm)
            self.cmap: Dict[int, str] = dict(tt.getBestCmap() or {})
            self.color_glyphs = _collect_color_glyphs(tt)
            self.bitmap_strikes = _collect_bitmap_strikes(tt)
            self.has_outlines = any(tag in tt for tag in ('glyf', 'CFF ', 'CFF2'))
            tt.close()
        except Exception as e:
            raise InvalidFontError(f"Could not parse font '{name}': {e}") from e

        if self.units_per_em <= 0:
            raise InvalidFontError(f"Font '{name}' has no usable units per em")

        logger.info(f"Parsed font '{name}': {len(self.cmap)} mapped code points, "
                    f"{len(self.color_glyphs)} color glyphs, "
                    f"{len(self.bitmap_strikes)} bitmap strikes")

    @classmethod
    def from_path(cls, path: Union[str, Path], name: Optional[str] = None,
                  index: int = 0) -> 'FontProgram':
        """
        Load a font program from disk.

        Args:
            path: Font file path
            name: Identity (defaults to the font's full name, then the stem)
            index: Face index inside a collection
        """
        path = Path(path)
        data = path.read_bytes()
        return cls(name or read_full_name(data, index) or path.stem, data, index)

    def glyph_name(self, char: str) -> Optional[str]:
        """Glyph mapped to ``char``, or None when unmapped"""
        return self.cmap.get(ord(char))

    def open_face(self, size: int) -> ImageFont.FreeTypeFont:
        """Open a FreeType face of this program at ``size`` pixels"""
        return ImageFont.truetype(io.BytesIO(self.data), size=size, index=self.index)


def read_full_name(data: bytes, index: int = 0) -> Optional[str]:
    """Full font name (name ID 4) from raw font bytes"""
    try:
        tt = TTFont(io.BytesIO(data), fontNumber=index, lazy=True)
        name = tt['name'].getDebugName(4) or tt['name'].getDebugName(1)
        tt.close()
        return name
    except Exception as e:
        raise InvalidFontError(f"Could not read font name: {e}") from e


def _collect_color_glyphs(tt: TTFont) -> Set[str]:
    """Base glyph names with COLR layers or paints"""
    if 'COLR' not in tt:
        return set()

    colr = tt['COLR']
    names = set(getattr(colr, 'ColorLayers', None) or ())

    table = getattr(colr, 'table', None)
    if table is not None:
        records = getattr(table, 'BaseGlyphRecordArray', None)
        if records is not None:
            names.update(r.BaseGlyph for r in records.BaseGlyphRecord)
        paints = getattr(table, 'BaseGlyphList', None)
        if paints is not None:
            names.update(r.BaseGlyph for r in paints.BaseGlyphPaintRecord)

    return names


def _collect_bitmap_strikes(tt: TTFont) -> Dict[int, Set[str]]:
    """Map strike ppem -> glyph names present in that strike"""
    strikes: Dict[int, Set[str]] = {}

    if 'CBLC' in tt and 'CBDT' in tt:
        for strike in tt['CBLC'].strikes:
            ppem = int(strike.bitmapSizeTable.ppemY)
            glyphs = strikes.setdefault(ppem, set())
            for subtable in strike.indexSubTables:
                glyphs.update(subtable.names)

    if 'sbix' in tt:
        for ppem, strike in tt['sbix'].strikes.items():
            glyphs = strikes.setdefault(int(ppem), set())
            glyphs.update(name for name, glyph in strike.glyphs.items()
                          if getattr(glyph, 'imageData', None))

    return strikes


def choose_strike(available: Iterable[int], size: int) -> Optional[int]:
    """
    Best-fit strike: the smallest strike at least ``size`` pixels,
    otherwise the largest one.
    """
    strikes = sorted(available)
    if not strikes:
        return None
    for ppem in strikes:
        if ppem >= size:
            return ppem
    return strikes[-1]


# ============================================================================
# RASTER STRATEGIES
# ============================================================================

class RasterStrategy(ABC):
    """One glyph representation the context can draw from"""

    source: RasterSource
    embedded_color = False

    def __init__(self, font: FontProgram, size: int):
        self.font = font
        self.size = size
        self._face: Optional[ImageFont.FreeTypeFont] = None
        self._face_failed = False

    @abstractmethod
    def supports(self, glyph_name: str) -> bool:
        """Whether this source has a representation of the glyph"""

    def face_size(self) -> int:
        return self.size

    def face(self) -> Optional[ImageFont.FreeTypeFont]:
        """FreeType face for this source, opened on first use"""
        if self._face is None and not self._face_failed:
            try:
                self._face = self.font.open_face(self.face_size())
            except OSError as e:
                self._face_failed = True
                logger.warning(f"{self.source.value} source unavailable for "
                               f"'{self.font.name}': {e}")
        return self._face

    def render(self, char: str, color: RGBAColor) -> Optional[GlyphRaster]:
        """Draw ``char`` and return its straight-alpha raster"""
        face = self.face()
        if face is None:
            return None

        mode = 'RGBA' if self.embedded_color else 'L'
        try:
            left, top, right, bottom = face.getbbox(char, mode=mode)
        except OSError as e:
            logger.debug(f"No {self.source.value} bbox for {char!r}: {e}")
            return None

        width, height = right - left, bottom - top
        if width <= 0 or height <= 0:
            return None

        canvas = Image.new('RGBA', (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(canvas)
        draw.text((-left, -top), char, font=face, fill=color,
                  embedded_color=self.embedded_color)

        # Blending onto transparent black leaves premultiplied samples
        straight = Image.frombytes('RGBa', canvas.size, canvas.tobytes()).convert('RGBA')

        return GlyphRaster(
            char=char,
            width=width,
            height=height,
            pixels=np.asarray(straight, dtype=np.uint8),
            source=self.source,
        )


class ColorOutlineStrategy(RasterStrategy):
    """Layered color vector glyphs (COLR)"""

    source = RasterSource.COLOR_OUTLINE
    embedded_color = True

    def supports(self, glyph_name: str) -> bool:
        return glyph_name in self.font.color_glyphs


class ColorBitmapStrategy(RasterStrategy):
    """Embedded color bitmaps (CBDT/sbix) at the best-fit strike"""

    source = RasterSource.COLOR_BITMAP
    embedded_color = True

    def __init__(self, font: FontProgram, size: int):
        super().__init__(font, size)
        self.strike = choose_strike(font.bitmap_strikes, size)

    def face_size(self) -> int:
        return self.strike

    def supports(self, glyph_name: str) -> bool:
        if self.strike is None:
            return False
        return glyph_name in self.font.bitmap_strikes[self.strike]


class OutlineStrategy(RasterStrategy):
    """Monochrome vector outlines (glyf/CFF)"""

    source = RasterSource.OUTLINE

    def supports(self, glyph_name: str) -> bool:
        return self.font.has_outlines


STRATEGY_TYPES = {
    RasterSource.COLOR_OUTLINE: ColorOutlineStrategy,
    RasterSource.COLOR_BITMAP: ColorBitmapStrategy,
    RasterSource.OUTLINE: OutlineStrategy,
}


# ============================================================================
# RASTER CONTEXT
# ============================================================================

class RasterContext:
    """
    Shared, lock-guarded rasterization handle for one font.

    FreeType faces are not safe to use from several threads at once, so
    every strategy's face sits behind one lock which ``rasterize`` holds
    for a single glyph.
    """

    def __init__(self, font: FontProgram,
                 size: Optional[int] = None,
                 sources: Sequence[RasterSource] = DEFAULT_SOURCES,
                 default_color: RGBAColor = DEFAULT_GLYPH_COLOR):
        self.font = font
        self.size = size or font.units_per_em
        self.default_color = tuple(default_color)
        self._lock = threading.Lock()
        self._strategies: List[RasterStrategy] = [
            STRATEGY_TYPES[source](font, self.size) for source in sources
        ]

        logger.debug(f"RasterContext for '{font.name}' at {self.size}px, "
                     f"sources={[s.value for s in sources]}")

    def rasterize(self, char: str) -> Optional[GlyphRaster]:
        """
        Rasterize one character through the source chain.

        Returns:
            The first raster any source produces, or None when the
            character is unmapped or every source comes up empty
        """
        glyph_name = self.font.glyph_name(char)
        if glyph_name is None:
            return None

        with self._lock:
            for strategy in self._strategies:
                if not strategy.supports(glyph_name):
                    continue
                raster = strategy.render(char, self.default_color)
                if raster is not None:
                    return raster

        return None
