"""Tests for report validation, the sharded state store and eviction."""

from datetime import datetime, timedelta, timezone

import pytest

from event_engine.data_structures import PositionReport, EventKind, EventStatus
from event_engine.errors import ValidationError, StaleReportError
from event_engine.vessel_state import validate_report
from tests.conftest import run
from tests.helpers import at, report, steady, of_kind

MMSI = 235000001


class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        {'lat': 91.0},
        {'lat': -90.5},
        {'lon': 180.5},
        {'sog': -0.1},
        {'sog': float('nan')},
        {'lat': float('inf')},
    ])
    def test_invalid_reports_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            validate_report(report(MMSI, 0, **kwargs))

    def test_missing_identity(self):
        bad = PositionReport(mmsi=None, timestamp=at(0), lat=0.0, lon=0.0, sog=0.0)
        with pytest.raises(ValidationError):
            validate_report(bad)

    def test_missing_timestamp(self):
        bad = PositionReport(mmsi=MMSI, timestamp=None, lat=0.0, lon=0.0, sog=0.0)
        with pytest.raises(ValidationError):
            validate_report(bad)

    def test_edge_values_accepted(self):
        validate_report(report(MMSI, 0, lat=90.0, lon=-180.0, sog=0.0))


class TestVesselStateStore:

    def test_invalid_report_does_not_touch_state(self, store):
        with pytest.raises(ValidationError):
            store.apply(report(MMSI, 0, lat=123.0))
        assert store.get_state(MMSI) is None
        assert store.stats['validation_errors'] == 1

    def test_unroutable_report(self, store):
        with pytest.raises(ValidationError):
            store.apply(PositionReport(mmsi=None, timestamp=at(0), lat=0.0, lon=0.0, sog=0.0))
        assert store.stats['validation_errors'] == 1

    def test_state_created_and_updated(self, store):
        store.apply(report(MMSI, 0, lat=1.0, lon=2.0, sog=3.0, cog=45.0))
        store.apply(report(MMSI, 60, lat=1.1, lon=2.1, sog=4.0, cog=50.0))
        state = store.get_state(MMSI)
        assert state['last_seen'] == at(60).isoformat()
        assert (state['lat'], state['lon'], state['sog'], state['cog']) == (1.1, 2.1, 4.0, 50.0)
        assert state['report_count'] == 2
        assert store.vessel_count == 1

    def test_stale_report_discarded(self, store):
        store.apply(report(MMSI, 100, lat=1.0))
        with pytest.raises(StaleReportError):
            store.apply(report(MMSI, 90, lat=2.0))
        state = store.get_state(MMSI)
        assert state['lat'] == 1.0
        assert state['last_seen'] == at(100).isoformat()
        assert store.stats['stale_reports'] == 1

    def test_report_within_jitter_applied_without_rewinding(self, store):
        store.apply(report(MMSI, 100, lat=1.0))
        store.apply(report(MMSI, 97, lat=1.5))
        state = store.get_state(MMSI)
        assert state['lat'] == 1.5
        assert state['last_seen'] == at(100).isoformat()

    def test_naive_timestamps_treated_as_utc(self, store):
        naive = datetime(2024, 1, 1, 0, 1)
        store.apply(PositionReport(mmsi=MMSI, timestamp=naive, lat=0.0, lon=0.0, sog=0.0))
        assert store.get_state(MMSI)['last_seen'] == datetime(2024, 1, 1, 0, 1, tzinfo=timezone.utc).isoformat()

    def test_sharding_is_stable_and_exclusive(self, make_store):
        store = make_store(shard_count=4)
        mmsis = [211000000 + i for i in range(200)]
        for i, m in enumerate(mmsis):
            store.apply(report(m, 0, lat=0.0, lon=-90.0 + i * 0.5))
        for m in mmsis:
            owners = [s.shard_id for s in store.shards if m in s.vessels]
            assert owners == [store.shard_index(m)]
        assert sum(len(s) for s in store.shards) == 200
        assert all(len(s) > 0 for s in store.shards)
        assert store.shard_index(mmsis[0]) == make_store(shard_count=4).shard_index(mmsis[0])


class TestEviction:

    def test_inactive_vessel_evicted_with_expired_markers(self, store):
        run(store, steady(MMSI, 0, 3600, sog=0.1))
        events = store.evict_inactive(at(3600) + timedelta(hours=24, seconds=1))

        assert {(e.kind, e.status) for e in events} == {
            (EventKind.DOCKING, EventStatus.EXPIRED),
            (EventKind.IDLE, EventStatus.EXPIRED),
        }
        docking = of_kind(events, EventKind.DOCKING)[0]
        assert docking.start == at(0)
        assert docking.end == at(3600)
        assert store.get_state(MMSI) is None
        assert store.proximity.get(MMSI) is None
        assert store.stats['evicted'] == 1

    def test_active_vessel_kept(self, store):
        store.apply(report(MMSI, 0))
        assert store.evict_inactive(at(3600)) == []
        assert store.get_state(MMSI) is not None

    def test_eviction_uses_stream_time(self, store):
        other = MMSI + 1
        store.apply(report(MMSI, 0, lat=0.0, lon=0.0, sog=5.0))
        store.apply(report(other, 90000, lat=0.0, lon=1.0, sog=5.0))
        assert store.evict_inactive() == []
        assert store.get_state(MMSI) is None
        assert store.get_state(other) is not None

    def test_candidate_dwell_discarded_silently(self, store):
        run(store, steady(MMSI, 0, 600, sog=0.1))
        assert store.evict_inactive(at(600) + timedelta(days=2)) == []
        assert store.get_state(MMSI) is None

    def test_evicted_vessel_starts_fresh(self, store):
        run(store, steady(MMSI, 0, 1800, sog=0.1))
        store.evict_inactive(at(1800) + timedelta(days=2))
        events = run(store, steady(MMSI, 200000, 200000 + 1800, sog=0.1))
        docking = of_kind(events, EventKind.DOCKING)
        assert [e.start for e in docking] == [at(200000)]
