import pytest

from event_engine.config import EngineConfig
from event_engine.spatial_index import AreaIndexHolder
from event_engine.vessel_state import VesselStateStore

from tests.helpers import square_area


@pytest.fixture
def area():
    return square_area("AREA-1")


@pytest.fixture
def holder(area):
    return AreaIndexHolder([area])


@pytest.fixture
def make_store(holder):
    """Build a state store over the test area with config overrides."""
    def factory(**overrides):
        settings = {'shard_count': 1}
        settings.update(overrides)
        return VesselStateStore(EngineConfig(**settings), holder)
    return factory


@pytest.fixture
def store(make_store):
    return make_store()


def run(store, reports):
    """Apply reports in order and collect every event."""
    events = []
    for r in reports:
        events.extend(store.apply(r))
    return events
