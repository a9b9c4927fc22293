"""
Pytest configuration for glyphshade tests.

Adds the project root to sys.path so the flat modules import, and
defines shared fixtures.
"""
import io
import sys
from pathlib import Path

import matplotlib
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import SystemConfig  # noqa: E402
from shade_raster import FontProgram  # noqa: E402
from shade_terminal import TerminalSink  # noqa: E402


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: Rasterizes a real font")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def font_path() -> Path:
    """DejaVu Sans Mono as shipped with matplotlib."""
    path = Path(matplotlib.get_data_path()) / 'fonts' / 'ttf' / 'DejaVuSansMono.ttf'
    if not path.exists():
        pytest.skip("DejaVuSansMono.ttf not bundled with this matplotlib")
    return path


@pytest.fixture(scope="session")
def font(font_path) -> FontProgram:
    return FontProgram.from_path(font_path)


@pytest.fixture
def system_config(tmp_path) -> SystemConfig:
    """Small, fast configuration with an isolated cache root."""
    config = SystemConfig()
    config.profiling.raster_size = 32
    config.profiling.chunk_size = 64
    config.performance.batch_size_threshold = 1
    config.cache.cache_dir = str(tmp_path / 'cache')
    return config


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def sink(output) -> TerminalSink:
    return TerminalSink(output)

