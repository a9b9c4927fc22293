"""
Tests for the persistent profile cache: round trips, self-healing of
unreadable entries, clearing and the load-or-compute flow.
"""
import json

import pytest

from config import CacheConfig
from shade_cache import CacheIOError, ProfileCache, parse_profile, CacheCorruptError
from shade_profile import BrightnessProfile


@pytest.fixture
def cache(tmp_path) -> ProfileCache:
    return ProfileCache(root=tmp_path / 'root', config=CacheConfig())


PROFILE = BrightnessProfile({'#': 65025, '.': 1200, '@': 50000})


class FakeFont:
    name = 'Fake Mono'


class CountingProfiler:

    def __init__(self, profile):
        self.calls = 0
        self._profile = profile

    def profile(self, font):
        self.calls += 1
        return self._profile


# =============================================================================
# Parsing
# =============================================================================

class TestParseProfile:

    @pytest.mark.parametrize("text", [
        'not json',
        '[1, 2]',
        '{"ab": 1}',
        '{"a": "bright"}',
        '{"a": true}',
        '{"a": 70000}',
        '{"a": -1}',
    ])
    def test_rejects_malformed(self, text):
        with pytest.raises(CacheCorruptError):
            parse_profile(text)

    def test_accepts_flat_object(self):
        assert parse_profile('{"a": 1, "b": 65025}') == {'a': 1, 'b': 65025}


# =============================================================================
# Store and load
# =============================================================================

class TestProfileCache:

    def test_layout(self, cache, tmp_path):
        assert cache.path_for('DejaVu Sans Mono') == tmp_path / 'root' / 'ascii' / 'DejaVu Sans Mono.json'

    def test_identity_separators_sanitized(self, cache):
        path = cache.path_for('Vendor/Font')
        assert path.parent == cache.directory
        assert path.name == 'Vendor_Font.json'

    def test_empty_identity_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.path_for('')

    def test_round_trip(self, cache):
        path = cache.store('Mono', PROFILE)

        assert path.exists()
        assert json.loads(path.read_text()) == PROFILE.to_dict()
        assert cache.load('Mono') == PROFILE

    def test_missing_entry(self, cache):
        assert cache.load('Nothing') is None
        assert cache.stats['cache_misses'] == 1

    def test_overwrite_replaces_whole_file(self, cache):
        cache.store('Mono', PROFILE)
        cache.store('Mono', BrightnessProfile({'x': 3}))

        assert cache.load('Mono') == {'x': 3}
        assert [p.name for p in cache.directory.iterdir()] == ['Mono.json']

    def test_corrupt_entry_is_deleted(self, cache):
        path = cache.path_for('Mono')
        path.parent.mkdir(parents=True)
        path.write_text('{"#": 12')

        assert cache.load('Mono') is None
        assert not path.exists()
        assert cache.stats['corrupt_entries'] == 1

    def test_non_utf8_entry_is_deleted(self, cache):
        path = cache.path_for('Mono')
        path.parent.mkdir(parents=True)
        path.write_bytes(b'\xff\xfe\x00')

        assert cache.load('Mono') is None
        assert not path.exists()

    def test_unwritable_root_raises(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('')
        cache = ProfileCache(root=blocker, config=CacheConfig())

        with pytest.raises(CacheIOError):
            cache.store('Mono', PROFILE)

    def test_clear(self, cache):
        cache.store('Mono', PROFILE)
        cache.clear()

        assert not cache.root.exists()
        assert cache.load('Mono') is None

    def test_clear_missing_root(self, cache):
        cache.clear()
        cache.clear()

    def test_disabled_cache_never_loads(self, tmp_path):
        cache = ProfileCache(root=tmp_path, config=CacheConfig(enable_caching=False))
        profiler = CountingProfiler(PROFILE)

        cache.load_or_compute(FakeFont(), profiler)
        cache.load_or_compute(FakeFont(), profiler)

        assert profiler.calls == 2
        assert not (tmp_path / 'ascii').exists()


class TestLoadOrCompute:

    def test_profiles_once(self, cache):
        profiler = CountingProfiler(PROFILE)

        first = cache.load_or_compute(FakeFont(), profiler)
        second = cache.load_or_compute(FakeFont(), profiler)

        assert first == second == PROFILE
        assert profiler.calls == 1
        assert cache.get_stats()['cache_hit_rate'] == 0.5

    def test_recomputes_after_corruption(self, cache):
        profiler = CountingProfiler(PROFILE)
        cache.load_or_compute(FakeFont(), profiler)
        cache.path_for(FakeFont.name).write_text('garbage')

        assert cache.load_or_compute(FakeFont(), profiler) == PROFILE
        assert profiler.calls == 2
        assert cache.load(FakeFont.name) == PROFILE

    def test_empty_profile_is_cached(self, cache):
        profiler = CountingProfiler(BrightnessProfile({}))
        cache.load_or_compute(FakeFont(), profiler)

        assert cache.load(FakeFont.name) == {}
