"""
Tests for configuration dataclasses, environment overrides and the
configuration manager.
"""
import pytest

from config import (
    MAX_BRIGHTNESS, CacheConfig, PerformanceConfig, ProfilingConfig,
    RenderingConfig, ScalingAlgorithm, SystemConfig,
    ConfigurationManager, apply_environment_overrides, get_config, load_config,
)
from PIL import Image


class TestDefaults:

    def test_defaults_validate(self):
        assert SystemConfig().validate()

    def test_max_brightness(self):
        assert MAX_BRIGHTNESS == 65025

    def test_default_resample_is_bilinear(self):
        assert RenderingConfig().resample == Image.BILINEAR
        assert RenderingConfig(scaling=ScalingAlgorithm.NEAREST).resample == Image.NEAREST


class TestValidation:

    @pytest.mark.parametrize("config", [
        ProfilingConfig(raster_size=0),
        ProfilingConfig(chunk_size=0),
        ProfilingConfig(default_color=(255, 255, 255)),
        CacheConfig(subfolder=''),
        RenderingConfig(cell_stretch=0),
        PerformanceConfig(max_worker_threads=0),
        PerformanceConfig(batch_size_threshold=-1),
    ])
    def test_invalid_values_rejected(self, config):
        with pytest.raises(ValueError):
            config.validate()

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValueError):
            SystemConfig(log_level='chatty').validate()


class TestEnvironmentOverrides:

    def test_overrides_applied(self):
        config = apply_environment_overrides(SystemConfig(), {
            'GLYPHSHADE_RASTER_SIZE': '48',
            'GLYPHSHADE_CHUNK_SIZE': '512',
            'GLYPHSHADE_CACHE_DIR': '/tmp/shades',
            'GLYPHSHADE_MAX_THREADS': '2',
            'GLYPHSHADE_DEBUG': 'yes',
            'GLYPHSHADE_LOG_LEVEL': 'info',
        })
        assert config.profiling.raster_size == 48
        assert config.profiling.chunk_size == 512
        assert config.cache.cache_dir == '/tmp/shades'
        assert config.performance.max_worker_threads == 2
        assert config.debug_mode is True
        assert config.log_level == 'INFO'

    def test_empty_environment_keeps_defaults(self):
        assert apply_environment_overrides(SystemConfig(), {}) == SystemConfig()


class TestCacheRoot:

    def test_explicit_directory(self, tmp_path):
        assert CacheConfig(cache_dir=str(tmp_path)).resolve_root() == tmp_path

    def test_xdg_cache_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path))
        assert CacheConfig().resolve_root() == tmp_path / 'glyphshade'


class TestLoadConfig:

    def test_valid_overrides_kept(self):
        config = load_config({'GLYPHSHADE_MAX_THREADS': '8'})
        assert config.performance.max_worker_threads == 8

    @pytest.mark.parametrize("environ", [
        {'GLYPHSHADE_MAX_THREADS': '0'},
        {'GLYPHSHADE_CHUNK_SIZE': 'lots'},
        {'GLYPHSHADE_LOG_LEVEL': 'chatty'},
    ])
    def test_invalid_overrides_fall_back_to_defaults(self, environ):
        config = load_config(environ)
        assert config == SystemConfig()
        assert config.validate()


class TestConfigurationManager:

    def test_singleton(self):
        assert ConfigurationManager() is ConfigurationManager()
        assert ConfigurationManager().config is get_config()

    def test_global_config_is_valid(self):
        assert get_config().validate()
