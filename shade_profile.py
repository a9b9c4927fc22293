#!/usr/bin/env python3
"""
🔤 glyphshade - Brightness Profiling Module
===========================================
Copyright (c) 2025 PNGN-Tec LLC

Font Brightness Profiling System
================================
Measures how much "ink" every usable printable character of a font
covers and normalizes the result onto ``[0, MAX_BRIGHTNESS]``.

Core Features
=============
- Fixed character domain (U+0020..U+007F minus whitespace/control)
- Parallel rasterization over a worker pool
- Chunked luma x alpha reduction per glyph, optionally parallel
- Shared per-font normalization denominator (max width x max height)
- Global normalization against the brightest glyph
- Deterministic output for a given font and raster size

Technical Implementation
========================
1. Fork: every character is rasterized on the worker pool; the shared
   ``RasterContext`` lock is held for one glyph at a time
2. Join: max glyph width/height are known only once all rasters exist
3. Fork: raw brightness = sum(luma x alpha) // (max_w x max_h) per glyph
4. Join: normalization needs the global maximum

Module Interface
================
- BrightnessProfile: immutable char -> brightness mapping with nearest
  lookups
- FontProfiler: profile(font) -> BrightnessProfile
- character_domain(): the candidate characters
- glyph_brightness_sum(): chunked luma x alpha reduction
- normalize_brightness(): global normalization
"""

import time
import logging
import unicodedata
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from config import (
    CHARACTER_RANGE, MAX_BRIGHTNESS,
    SystemConfig, get_config,
)
from shade_raster import FontProgram, GlyphRaster, RasterContext, weighted_luma

# Configure logging
logger = logging.getLogger('glyphshade.profile')


def character_domain() -> List[str]:
    """Printable characters in CHARACTER_RANGE, minus whitespace and control"""
    start, end = CHARACTER_RANGE
    return [
        char for char in map(chr, range(start, end + 1))
        if not char.isspace() and unicodedata.category(char) != 'Cc'
    ]


# ============================================================================
# BRIGHTNESS PROFILE
# ============================================================================

@dataclass(frozen=True)
class BrightnessProfile:
    """
    Immutable per-font mapping from character to brightness.

    Nearest lookups break ties on the lowest code point, so the same
    profile always picks the same character.
    """
    values: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        ordered = sorted(self.values.items(), key=lambda item: ord(item[0]))
        object.__setattr__(self, 'values', dict(ordered))
        object.__setattr__(self, '_chars', np.array([c for c, _ in ordered], dtype='<U1'))
        object.__setattr__(self, '_levels', np.array([v for _, v in ordered], dtype=np.int64))

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, char: object) -> bool:
        return char in self.values

    def __getitem__(self, char: str) -> int:
        return self.values[char]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BrightnessProfile):
            return self.values == other.values
        if isinstance(other, Mapping):
            return self.values == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self.values.items()))

    def to_dict(self) -> Dict[str, int]:
        return dict(self.values)

    def closest(self, brightness: int) -> str:
        """Character whose brightness is nearest; space for an empty profile"""
        return str(self.closest_many(np.array([brightness]))[0])

    def closest_many(self, brightness: np.ndarray) -> np.ndarray:
        """
        Vectorized nearest lookup.

        Args:
            brightness: Integer array of target brightness values

        Returns:
            Array of single-character strings of the same shape
        """
        targets = np.asarray(brightness, dtype=np.int64)
        if not len(self.values):
            return np.full(targets.shape, ' ', dtype='<U1')

        distance = np.abs(targets[..., np.newaxis] - self._levels)
        # argmin keeps the first minimum, and entries are sorted by code point
        return self._chars[np.argmin(distance, axis=-1)]


# ============================================================================
# BRIGHTNESS MATH
# ============================================================================

def glyph_brightness_sum(raster: GlyphRaster, chunk_size: int,
                         executor: Optional[Executor] = None) -> int:
    """
    Sum luma x alpha over a glyph in fixed-size pixel chunks.

    Args:
        raster: Rasterized glyph
        chunk_size: Pixels per chunk
        executor: Pool for the per-chunk sums (sequential when None)

    Returns:
        Total weighted luma of the glyph
    """
    pixels = raster.flat()
    chunks = [pixels[i:i + chunk_size] for i in range(0, len(pixels), chunk_size)]

    def chunk_sum(chunk: np.ndarray) -> int:
        return int(weighted_luma(chunk).sum(dtype=np.uint64))

    if executor is None:
        return sum(chunk_sum(chunk) for chunk in chunks)
    return sum(executor.map(chunk_sum, chunks))


def normalize_brightness(raw: Mapping[str, int]) -> Dict[str, int]:
    """
    Scale raw brightness so the brightest character lands on MAX_BRIGHTNESS.

    Values are truncated, so the maximum can end up one below
    MAX_BRIGHTNESS. When every raw value is zero there is nothing to
    scale against and the raw values are returned unchanged.
    """
    if not raw:
        return {}

    scale = max(raw.values()) / MAX_BRIGHTNESS
    if scale == 0:
        logger.warning("All glyphs measured zero brightness - skipping normalization")
        return dict(raw)

    return {char: int(value / scale) for char, value in raw.items()}


# ============================================================================
# FONT PROFILER
# ============================================================================

class FontProfiler:
    """
    Builds brightness profiles from font programs.

    Pure transform: persistence belongs to ``ProfileCache``.

    Attributes:
        stats: Dictionary containing profiling statistics
    """

    def __init__(self, config: Optional[SystemConfig] = None):
        """
        Initialize profiler.

        Args:
            config: System configuration (uses the global one if None)
        """
        config = config or get_config()
        self._profiling = config.profiling
        self._performance = config.performance

        self.stats = {
            'fonts_profiled': 0,
            'glyphs_rasterized': 0,
            'glyphs_missing': 0,
            'empty_profiles': 0,
            'total_profile_time_ms': 0.0,
        }

        logger.info(f"FontProfiler initialized: workers={self._performance.max_worker_threads}, "
                    f"chunk_size={self._profiling.chunk_size}, "
                    f"raster_size={self._profiling.raster_size or 'units per em'}")

    def profile(self, font: FontProgram) -> BrightnessProfile:
        """
        Measure and normalize every character of the domain.

        Args:
            font: Parsed font program

        Returns:
            Brightness profile covering the characters the font rasterized
        """
        start_time = time.time()
        context = RasterContext(
            font,
            size=self._profiling.raster_size,
            default_color=self._profiling.default_color,
        )
        domain = character_domain()

        with ThreadPoolExecutor(max_workers=self._performance.max_worker_threads,
                                thread_name_prefix="GlyphRaster") as pool:
            rasters = [r for r in pool.map(context.rasterize, domain) if r is not None]

        self.stats['glyphs_rasterized'] += len(rasters)
        self.stats['glyphs_missing'] += len(domain) - len(rasters)

        raw = self._raw_brightness(rasters)
        profile = BrightnessProfile(normalize_brightness(raw))

        self.stats['fonts_profiled'] += 1
        if not profile:
            self.stats['empty_profiles'] += 1
        elapsed = (time.time() - start_time) * 1000
        self.stats['total_profile_time_ms'] += elapsed

        logger.info(f"Profiled '{font.name}': {len(profile)}/{len(domain)} characters "
                    f"in {elapsed:.0f}ms")
        return profile

    def _raw_brightness(self, rasters: List[GlyphRaster]) -> Dict[str, int]:
        """Weighted luma per glyph over the shared max-width x max-height cell"""
        max_width = max((r.width for r in rasters), default=0)
        max_height = max((r.height for r in rasters), default=0)
        pixels_per_cell = max_width * max_height

        if pixels_per_cell == 0:
            logger.warning("No glyph produced a bitmap - profile is empty")
            return {}

        chunk_size = self._profiling.chunk_size
        threshold = self._performance.batch_size_threshold

        with ThreadPoolExecutor(max_workers=self._performance.chunk_worker_threads,
                                thread_name_prefix="GlyphChunk") as chunk_pool:

            def measure(raster: GlyphRaster) -> Tuple[str, int]:
                chunks = -(-raster.pixel_count // chunk_size)
                executor = chunk_pool if chunks > threshold else None
                total = glyph_brightness_sum(raster, chunk_size, executor)
                return raster.char, total // pixels_per_cell

            with ThreadPoolExecutor(max_workers=self._performance.max_worker_threads,
                                    thread_name_prefix="GlyphBrightness") as pool:
                raw = dict(pool.map(measure, rasters))

        logger.debug(f"Raw brightness over {max_width}x{max_height} cell: "
                     f"max={max(raw.values())}")
        return raw

    def get_stats(self) -> Dict[str, Any]:
        """Get profiler statistics"""
        stats = self.stats.copy()
        if stats['fonts_profiled'] > 0:
            stats['avg_profile_time_ms'] = stats['total_profile_time_ms'] / stats['fonts_profiled']
        else:
            stats['avg_profile_time_ms'] = 0.0
        return stats


def compute_profile(font: FontProgram, config: Optional[SystemConfig] = None) -> BrightnessProfile:
    """
    Profile a font with a one-off profiler.

    Args:
        font: Parsed font program
        config: System configuration (uses the global one if None)

    Returns:
        Brightness profile
    """
    return FontProfiler(config).profile(font)
