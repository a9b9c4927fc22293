"""
Tests for glyph rasterization: luma weighting, font parsing, strike
selection and the raster source chain.
"""
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from config import MAX_BRIGHTNESS
from shade_raster import (
    FontProgram, InvalidFontError, RasterContext, RasterSource,
    choose_strike, weighted_luma,
)


# =============================================================================
# Luma
# =============================================================================

class TestWeightedLuma:

    def test_opaque_white_is_max(self):
        assert int(weighted_luma(np.array([255, 255, 255, 255], dtype=np.uint8))) == MAX_BRIGHTNESS

    def test_transparent_is_zero(self):
        assert int(weighted_luma(np.array([255, 255, 255, 0], dtype=np.uint8))) == 0

    def test_pure_red(self):
        # (255 * 19595 + 0x8000) >> 16 == 76
        assert int(weighted_luma(np.array([255, 0, 0, 255], dtype=np.uint8))) == 76 * 255

    def test_shape_preserved(self):
        pixels = np.zeros((3, 5, 4), dtype=np.uint8)
        assert weighted_luma(pixels).shape == (3, 5)


# =============================================================================
# Strikes
# =============================================================================

class TestChooseStrike:

    def test_no_strikes(self):
        assert choose_strike([], 32) is None

    def test_smallest_at_least_size(self):
        assert choose_strike([109, 20, 64], 32) == 64

    def test_exact_match(self):
        assert choose_strike([20, 64], 64) == 64

    def test_falls_back_to_largest(self):
        assert choose_strike([20, 64, 109], 200) == 109


# =============================================================================
# Font program
# =============================================================================

class TestFontProgram:

    def test_garbage_bytes_rejected(self):
        with pytest.raises(InvalidFontError):
            FontProgram('junk', b'definitely not a font')

    def test_empty_name_rejected(self, font_path):
        with pytest.raises(ValueError):
            FontProgram('', font_path.read_bytes())

    def test_garbage_file_rejected(self, tmp_path):
        path = tmp_path / 'broken.ttf'
        path.write_bytes(b'\x00' * 64)
        with pytest.raises(InvalidFontError):
            FontProgram.from_path(path)

    def test_parsed_tables(self, font):
        assert font.name == 'DejaVu Sans Mono'
        assert font.units_per_em == 2048
        assert font.has_outlines
        assert not font.color_glyphs
        assert not font.bitmap_strikes

    def test_glyph_lookup(self, font):
        assert font.glyph_name('A') is not None
        assert font.glyph_name('\U0001F600') is None

    def test_explicit_name(self, font_path):
        assert FontProgram.from_path(font_path, name='terminal').name == 'terminal'


# =============================================================================
# Raster context
# =============================================================================

@pytest.mark.slow
class TestRasterContext:

    def test_outline_raster(self, font):
        raster = RasterContext(font, size=32).rasterize('@')

        assert raster is not None
        assert raster.char == '@'
        assert raster.source is RasterSource.OUTLINE
        assert raster.pixels.shape == (raster.height, raster.width, 4)
        assert raster.pixels[..., 3].max() == 255

    def test_straight_alpha_keeps_glyph_color(self, font):
        raster = RasterContext(font, size=32).rasterize('M')
        covered = raster.pixels[raster.pixels[..., 3] > 0]
        assert covered[:, :3].min() >= 250

    def test_default_size_is_units_per_em(self, font):
        assert RasterContext(font).size == font.units_per_em

    def test_unmapped_character(self, font):
        assert RasterContext(font, size=32).rasterize('\U0001F600') is None

    def test_missing_source_yields_nothing(self, font):
        context = RasterContext(font, size=32, sources=(RasterSource.COLOR_OUTLINE,))
        assert context.rasterize('A') is None

    def test_concurrent_rasterization_is_stable(self, font):
        context = RasterContext(font, size=24)
        expected = context.rasterize('#').pixels

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(context.rasterize, ['#'] * 16))

        for raster in results:
            assert np.array_equal(raster.pixels, expected)
