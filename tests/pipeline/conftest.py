import logging
from datetime import datetime, timezone

import pytest

from hexrollup.grid.models import PointObservation
from hexrollup.pipeline.run_tracker import RunTracker
from hexrollup.storage import InMemoryPointSource


@pytest.fixture
def tracker(temp_dir):
    t = RunTracker(temp_dir / "ledger.db")
    yield t
    t.close()


@pytest.fixture
def city_points():
    """Five European cities plus one point with an impossible latitude."""
    t1 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    t2 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    t3 = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)
    return [
        PointObservation(48.85, 2.35, 5, t1),        # Paris
        PointObservation(48.8501, 2.3501, 9, t2),    # Paris
        PointObservation(40.4168, -3.7038, 3, t1),   # Madrid
        PointObservation(38.7223, -9.1393, 2, t2),   # Lisbon
        PointObservation(41.3874, 2.1686, 4, t3),    # Barcelona
        PointObservation(95.0, 0.0, 1, t1),
    ]


@pytest.fixture
def city_source(city_points):
    return InMemoryPointSource(city_points)


@pytest.fixture
def pipeline_config(make_config):
    """Two levels (3 everywhere, 5 in Iberia), no plots, rollup 3 -> 2 -> 1."""
    return make_config(
        LEVELS=[
            {"resolution": 3},
            {
                "resolution": 5,
                "region": {"north": 43.7914, "west": -9.3015,
                           "south": 35.9468, "east": 4.6362},
            },
        ],
        PLOTS=False,
        ROLLUP_FROM=3,
        ROLLUP_TO=[2, 1],
        store={"retry_delay_sec": 0},
    )


@pytest.fixture
def restore_logging():
    """Put root logger handlers back after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
