#!/usr/bin/env python3
"""
🔤 glyphshade - Configuration Module
====================================
Copyright (c) 2025 PNGN-Tec LLC

Centralized Configuration System
=================================
Complete configuration for glyph profiling and terminal image rendering:
- Character domain and brightness scale constants
- Glyph rasterization and brightness accumulation settings
- Profile cache location
- Image-to-grid scaling settings
- Worker pool limits

Configuration Overview
======================
Every setting lives in a dataclass with a ``validate()`` method. A
thread-safe singleton ``ConfigurationManager`` owns the active
``SystemConfig``, built once at startup from ``GLYPHSHADE_*``
environment overrides and validated, falling back to defaults when
they are invalid.
"""

import threading
import logging
import os
from pathlib import Path
from typing import Tuple, Optional, Mapping
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image

# Configure logging
logger = logging.getLogger('glyphshade.config')

# Type alias for RGBA colors
RGBAColor = Tuple[int, int, int, int]

# ============================================================================
# CHARACTER DOMAIN AND BRIGHTNESS SCALE
# ============================================================================

# Inclusive code point range of candidate characters
CHARACTER_RANGE = (0x20, 0x7F)

# Product of the two maximum 8-bit channel values (luma x alpha)
MAX_BRIGHTNESS = 255 * 255

# Default rasterization foreground: opaque white
DEFAULT_GLYPH_COLOR: RGBAColor = (255, 255, 255, 255)

# ============================================================================
# INTERACTION SETTINGS
# ============================================================================

EVENT_POLL_TIMEOUT = 1.0 / 60   # Seconds between input/resize polls
APPLICATION_NAME = "glyphshade"
CACHE_SUBFOLDER = "ascii"

# ============================================================================
# CONFIGURATION ENUMS
# ============================================================================

class ScalingAlgorithm(Enum):
    """Image scaling algorithms"""
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    BICUBIC = "bicubic"
    LANCZOS = "lanczos"


# PIL algorithm mapping (BILINEAR is PIL's triangle filter)
ALGORITHM_MAP = {
    ScalingAlgorithm.NEAREST: Image.NEAREST,
    ScalingAlgorithm.BILINEAR: Image.BILINEAR,
    ScalingAlgorithm.BICUBIC: Image.BICUBIC,
    ScalingAlgorithm.LANCZOS: Image.LANCZOS,
}


# ============================================================================
# PROFILING CONFIGURATION
# ============================================================================

@dataclass
class ProfilingConfig:
    """
    Glyph rasterization and brightness accumulation parameters.

    Attributes:
        raster_size: Pixel size used to rasterize outlines (None = the
            font's units per em, i.e. unscaled glyphs)
        chunk_size: Pixels per chunk in the brightness reduction
        default_color: Foreground used when rasterizing glyphs
    """

    raster_size: Optional[int] = None
    chunk_size: int = 4096
    default_color: RGBAColor = DEFAULT_GLYPH_COLOR

    def validate(self) -> bool:
        """Validate profiling configuration"""
        if self.raster_size is not None and self.raster_size <= 0:
            raise ValueError("Raster size must be positive")
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if len(self.default_color) != 4 or not all(0 <= c <= 255 for c in self.default_color):
            raise ValueError("Default color must be four 8-bit channels")
        return True


# ============================================================================
# CACHE CONFIGURATION
# ============================================================================

@dataclass
class CacheConfig:
    """
    Profile cache parameters.

    Attributes:
        cache_dir: Cache root (None = platform default)
        subfolder: Folder beneath the root holding profile files
        enable_caching: Master switch for reading and writing profiles
    """

    cache_dir: Optional[str] = None
    subfolder: str = CACHE_SUBFOLDER
    enable_caching: bool = True

    def resolve_root(self) -> Path:
        """Resolve the per-application cache root"""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()

        xdg_cache = os.environ.get('XDG_CACHE_HOME')
        base = Path(xdg_cache) if xdg_cache else Path.home() / '.cache'
        return base / APPLICATION_NAME

    def validate(self) -> bool:
        """Validate cache configuration"""
        if not self.subfolder or os.sep in self.subfolder:
            raise ValueError("Cache subfolder must be a single path component")
        return True


# ============================================================================
# RENDERING CONFIGURATION
# ============================================================================

@dataclass
class RenderingConfig:
    """Image-to-grid rendering configuration"""

    use_color: bool = True

    # Fit inside the grid instead of filling it exactly
    preserve_aspect: bool = False

    # Terminal cells are roughly twice as tall as wide
    cell_stretch: int = 2
    scaling: ScalingAlgorithm = ScalingAlgorithm.BILINEAR

    @property
    def resample(self) -> int:
        """PIL resampling filter for the configured algorithm"""
        return ALGORITHM_MAP.get(self.scaling, Image.BILINEAR)

    def validate(self) -> bool:
        """Validate rendering configuration"""
        if self.cell_stretch <= 0:
            raise ValueError("Cell stretch must be positive")
        return True


# ============================================================================
# PERFORMANCE CONFIGURATION
# ============================================================================

@dataclass
class PerformanceConfig:
    """Worker pool limits"""

    # Per-character rasterization and brightness pool
    max_worker_threads: int = 4

    # Per-glyph chunk reduction pool
    chunk_worker_threads: int = 2

    # Chunk count above which a glyph's reduction is parallelized
    batch_size_threshold: int = 8

    def validate(self) -> bool:
        """Validate performance configuration"""
        if self.max_worker_threads <= 0:
            raise ValueError("Max worker threads must be positive")
        if self.chunk_worker_threads <= 0:
            raise ValueError("Chunk worker threads must be positive")
        if self.batch_size_threshold <= 0:
            raise ValueError("Batch size threshold must be positive")
        return True


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

@dataclass
class SystemConfig:
    """Complete system configuration"""

    # Sub-configurations
    profiling: ProfilingConfig = field(default_factory=ProfilingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    rendering: RenderingConfig = field(default_factory=RenderingConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    # System-wide settings
    debug_mode: bool = False
    log_level: str = "WARNING"

    def validate(self) -> bool:
        """Validate entire configuration"""
        self.profiling.validate()
        self.cache.validate()
        self.rendering.validate()
        self.performance.validate()
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        return True


def apply_environment_overrides(config: SystemConfig,
                                environ: Optional[Mapping[str, str]] = None) -> SystemConfig:
    """
    Apply ``GLYPHSHADE_*`` environment overrides to a configuration.

    Args:
        config: Configuration to update in place
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        The updated configuration
    """
    env = os.environ if environ is None else environ

    # Profiling settings
    if 'GLYPHSHADE_RASTER_SIZE' in env:
        config.profiling.raster_size = int(env['GLYPHSHADE_RASTER_SIZE'])
    if 'GLYPHSHADE_CHUNK_SIZE' in env:
        config.profiling.chunk_size = int(env['GLYPHSHADE_CHUNK_SIZE'])

    # Cache settings
    if 'GLYPHSHADE_CACHE_DIR' in env:
        config.cache.cache_dir = env['GLYPHSHADE_CACHE_DIR']

    # Performance settings
    if 'GLYPHSHADE_MAX_THREADS' in env:
        config.performance.max_worker_threads = int(env['GLYPHSHADE_MAX_THREADS'])
    if 'GLYPHSHADE_CHUNK_THREADS' in env:
        config.performance.chunk_worker_threads = int(env['GLYPHSHADE_CHUNK_THREADS'])
    if 'GLYPHSHADE_BATCH_THRESHOLD' in env:
        config.performance.batch_size_threshold = int(env['GLYPHSHADE_BATCH_THRESHOLD'])

    # Debug mode and logging
    if 'GLYPHSHADE_DEBUG' in env:
        config.debug_mode = env['GLYPHSHADE_DEBUG'].lower() in ('true', '1', 'yes')
    if 'GLYPHSHADE_LOG_LEVEL' in env:
        config.log_level = env['GLYPHSHADE_LOG_LEVEL'].upper()

    return config


def load_config(environ: Optional[Mapping[str, str]] = None) -> SystemConfig:
    """
    Build the startup configuration from defaults and the environment.

    Args:
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated configuration; plain defaults when the overrides are
        malformed or fail validation
    """
    config = SystemConfig()
    try:
        apply_environment_overrides(config, environ)
        config.validate()
    except ValueError as e:
        logger.error(f"Ignoring invalid GLYPHSHADE_* environment settings: {e}")
        config = SystemConfig()
    return config


# ============================================================================
# CONFIGURATION MANAGER (SINGLETON)
# ============================================================================

class ConfigurationManager:
    """
    Singleton configuration manager.
    Thread-safe owner of the global configuration, loaded once from the
    environment.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = load_config()
        self._config_lock = threading.RLock()

        self._initialized = True
        logger.info("Configuration manager initialized")

    @property
    def config(self) -> SystemConfig:
        """Get current configuration"""
        with self._config_lock:
            return self._config


# ============================================================================
# PUBLIC API FUNCTIONS
# ============================================================================

_manager = ConfigurationManager()

def get_config() -> SystemConfig:
    """Get current system configuration"""
    return _manager.config

def get_cache_config() -> CacheConfig:
    """Get cache configuration"""
    return _manager.config.cache

def get_rendering_config() -> RenderingConfig:
    """Get rendering configuration"""
    return _manager.config.rendering
