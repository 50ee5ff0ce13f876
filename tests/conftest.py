"""Root-level pytest fixtures for the hexrollup test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture plus small factories for points and cells.
All tests should use these fixtures instead of creating raw dict configs.
"""

import pytest
from pathlib import Path
from datetime import datetime, timezone
import tempfile
import shutil

import h3

from hexrollup.grid.models import PointObservation
from hexrollup.schemas import ParamConfig, UserConfig, resolve_config
from hexrollup.setup_directories import setup_output_directories


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_levels(make_config):
    ...     config = make_config(LEVELS=[{"resolution": 5}])
    ...     assert [l.resolution for l in config.levels] == [5]
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard output directory structure (base, db, exports, plots, logs)."""
    return setup_output_directories(temp_dir / "output")


# =============================================================================
# Data Fixtures
# =============================================================================

T1 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
T3 = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def times():
    """Three increasing UTC timestamps (T1 < T2 < T3)."""
    return T1, T2, T3


@pytest.fixture
def paris_points():
    """Two Paris observations that land in one resolution-7 cell."""
    return [
        PointObservation(48.85, 2.35, 5, T1),
        PointObservation(48.8501, 2.3501, 9, T2),
    ]


@pytest.fixture
def sibling_cells():
    """Factory: ``n`` distinct children at ``res`` of one parent at ``parent_res``."""
    def _make(n=3, res=3, parent_res=2, lat=40.4, lon=-3.7):
        parent = h3.latlng_to_cell(lat, lon, parent_res)
        children = sorted(h3.cell_to_children(parent, res))
        return parent, children[:n]
    return _make
