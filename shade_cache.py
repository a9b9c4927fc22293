#!/usr/bin/env python3
"""
🔤 glyphshade - Profile Cache Module
====================================
Copyright (c) 2025 PNGN-Tec LLC

Persistent Brightness Profile Cache
===================================
Keeps one JSON file per font identity so a font's character set is
rasterized once, not on every run.

Core Features
=============
- All-or-nothing loads with validation
- Self-healing: unreadable entries are deleted and recomputed
- Whole-file rewrites through a temporary file and ``os.replace``
- Wholesale clearing of the cache root

Cache Layout
============
``<root>/<subfolder>/<font identity>.json`` holding a flat object
mapping each character to its integer brightness.

Module Interface
================
- ProfileCache: load(), store(), clear(), load_or_compute()
- CacheIOError: filesystem failure (fatal)
"""

import os
import json
import shutil
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from config import MAX_BRIGHTNESS, CacheConfig, get_cache_config
from shade_profile import BrightnessProfile, FontProfiler
from shade_raster import FontProgram

# Configure logging
logger = logging.getLogger('glyphshade.cache')

CACHE_EXTENSION = '.json'


class CacheIOError(OSError):
    """Filesystem failure while reading, writing or deleting cache files."""


class CacheCorruptError(ValueError):
    """Stored profile could not be parsed. Never leaves this module."""


def parse_profile(text: str) -> BrightnessProfile:
    """
    Parse and validate serialized profile data.

    Raises:
        CacheCorruptError: Data is not a flat char -> brightness object
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise CacheCorruptError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CacheCorruptError(f"expected an object, got {type(data).__name__}")

    for char, value in data.items():
        if len(char) != 1:
            raise CacheCorruptError(f"key {char!r} is not a single character")
        if isinstance(value, bool) or not isinstance(value, int):
            raise CacheCorruptError(f"value for {char!r} is not an integer")
        if not 0 <= value <= MAX_BRIGHTNESS:
            raise CacheCorruptError(f"value for {char!r} out of range: {value}")

    return BrightnessProfile(data)


def serialize_profile(profile: BrightnessProfile) -> str:
    """Canonical JSON form of a profile"""
    return json.dumps(profile.to_dict(), sort_keys=True, ensure_ascii=False)


class ProfileCache:
    """
    One-file-per-font brightness profile store.

    Attributes:
        root: Per-application cache root (removed by ``clear``)
        directory: Folder holding the profile files
        stats: Dictionary containing cache statistics
    """

    def __init__(self, root: Optional[Union[str, Path]] = None,
                 config: Optional[CacheConfig] = None):
        """
        Initialize cache.

        Args:
            root: Cache root (resolved from configuration if None)
            config: Cache configuration (uses the global one if None)
        """
        config = config or get_cache_config()
        self.root = Path(root) if root is not None else config.resolve_root()
        self.directory = self.root / config.subfolder
        self.enabled = config.enable_caching

        self.stats = {
            'cache_hits': 0,
            'cache_misses': 0,
            'corrupt_entries': 0,
            'writes': 0,
        }

        logger.info(f"ProfileCache at {self.directory} (enabled={self.enabled})")

    def path_for(self, identity: str) -> Path:
        """Cache file for a font identity"""
        if not identity:
            raise ValueError("Font identity must not be empty")
        safe_name = identity.replace('/', '_').replace(os.sep, '_')
        return self.directory / f"{safe_name}{CACHE_EXTENSION}"

    def load(self, identity: str) -> Optional[BrightnessProfile]:
        """
        Load a stored profile.

        Returns:
            The profile, or None when absent or unreadable (an unreadable
            file is deleted)

        Raises:
            CacheIOError: The corrupt file could not be deleted
        """
        if not self.enabled:
            return None

        path = self.path_for(identity)
        try:
            text = path.read_text(encoding='utf-8')
            profile = parse_profile(text)
        except FileNotFoundError:
            self.stats['cache_misses'] += 1
            return None
        except OSError as e:
            raise CacheIOError(f"Could not read cache file {path}: {e}") from e
        except (UnicodeDecodeError, CacheCorruptError) as e:
            logger.warning(f"Discarding unreadable cache entry {path}: {e}")
            self.stats['corrupt_entries'] += 1
            self.stats['cache_misses'] += 1
            self._discard(path)
            return None

        self.stats['cache_hits'] += 1
        logger.info(f"Loaded cached profile for '{identity}' ({len(profile)} characters)")
        return profile

    def store(self, identity: str, profile: BrightnessProfile) -> Path:
        """
        Write a profile, replacing any previous file for the identity.

        Returns:
            Path of the written file

        Raises:
            CacheIOError: Directories or the file could not be written
        """
        path = self.path_for(identity)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.stem, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                    handle.write(serialize_profile(profile))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheIOError(f"Could not write cache file {path}: {e}") from e

        self.stats['writes'] += 1
        logger.info(f"Stored profile for '{identity}' at {path}")
        return path

    def clear(self):
        """Delete the whole cache root"""
        if not self.root.exists():
            logger.debug(f"Cache root {self.root} already absent")
            return
        try:
            shutil.rmtree(self.root)
        except OSError as e:
            raise CacheIOError(f"Could not clear cache root {self.root}: {e}") from e
        logger.info(f"Cleared cache root {self.root}")

    def load_or_compute(self, font: FontProgram, profiler: FontProfiler) -> BrightnessProfile:
        """
        Cached profile for ``font``, profiling and storing it on a miss.

        Args:
            font: Parsed font program
            profiler: Profiler used on a cache miss

        Returns:
            Brightness profile
        """
        profile = self.load(font.name)
        if profile is not None:
            return profile

        profile = profiler.profile(font)
        if self.enabled:
            self.store(font.name, profile)
        return profile

    def _discard(self, path: Path):
        """Delete an unreadable cache file"""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheIOError(f"Could not delete corrupt cache file {path}: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        stats = self.stats.copy()
        total_requests = stats['cache_hits'] + stats['cache_misses']
        if total_requests > 0:
            stats['cache_hit_rate'] = stats['cache_hits'] / total_requests
        else:
            stats['cache_hit_rate'] = 0.0
        return stats
