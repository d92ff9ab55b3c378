"""Tests for the spatial area index and area loaders."""

import json

import pytest

from event_engine.errors import IndexUnavailable
from event_engine.spatial_index import AreaIndex, AreaIndexHolder, load_areas
from tests.helpers import AREA_LAT, AREA_LON, offset, square_area


class TestAreaIndex:

    def test_point_inside_and_outside(self, area):
        index = AreaIndex([area])
        assert index.areas_containing(AREA_LAT, AREA_LON) == {area}
        assert index.areas_containing(AREA_LAT + 0.02, AREA_LON) == set()

    def test_boundary_point_counts_as_inside(self, area):
        index = AreaIndex([area])
        assert index.areas_containing(AREA_LAT + 0.005, AREA_LON) == {area}

    def test_overlapping_areas(self):
        a = square_area("A")
        b = square_area("B", lat=AREA_LAT + 0.004)
        index = AreaIndex([a, b])
        assert {x.area_id for x in index.areas_containing(AREA_LAT + 0.002, AREA_LON)} == {"A", "B"}
        assert {x.area_id for x in index.areas_containing(AREA_LAT - 0.002, AREA_LON)} == {"A"}

    def test_empty_index(self):
        index = AreaIndex([])
        assert len(index) == 0
        assert index.areas_containing(0.0, 0.0) == set()
        assert index.areas_within(0.0, 0.0, 5000) == set()

    def test_many_areas_are_pruned_to_the_right_one(self):
        areas = [square_area(f"P{i:04d}", lat=-60 + i * 0.05, lon=0.0, half_deg=0.01)
                 for i in range(2000)]
        index = AreaIndex(areas)
        hits = index.areas_containing(-60 + 1234 * 0.05, 0.0)
        assert [a.area_id for a in hits] == ["P1234"]

    def test_duplicate_ids_rejected(self, area):
        with pytest.raises(ValueError):
            AreaIndex([area, square_area("AREA-1", lat=0.0)])

    def test_distance_to_centroid(self, area):
        index = AreaIndex([area])
        lat, lon = offset(AREA_LAT, AREA_LON, north_m=1500)
        assert index.distance_to_centroid(lat, lon, area) == pytest.approx(1500, rel=0.01)

    def test_distance_to_boundary_inside(self, area):
        index = AreaIndex([area])
        # Nearest edges from the centre are the east/west ones (~548 m at 10N)
        assert index.distance_to_boundary(AREA_LAT, AREA_LON, area) == pytest.approx(548, rel=0.02)

    def test_distance_to_area(self, area):
        index = AreaIndex([area])
        assert index.distance_to_area(AREA_LAT, AREA_LON, area) == 0.0
        lat, lon = offset(AREA_LAT + 0.005, AREA_LON, north_m=1000)
        assert index.distance_to_area(lat, lon, area) == pytest.approx(1000, rel=0.02)

    def test_areas_within_radius(self, area):
        index = AreaIndex([area])
        lat, lon = offset(AREA_LAT + 0.005, AREA_LON, north_m=1500)
        assert index.areas_within(lat, lon, 2000) == {area}
        assert index.areas_within(lat, lon, 1000) == set()

    def test_centroid_derived_from_polygon(self, area):
        assert area.centroid == pytest.approx((AREA_LAT, AREA_LON))


class TestAreaIndexHolder:

    def test_swap_replaces_snapshot(self, area):
        holder = AreaIndexHolder([area])
        old = holder.current
        new = holder.swap([square_area("AREA-2", lat=0.0, lon=0.0)])
        assert holder.current is new
        assert new.version == old.version + 1
        # The old snapshot is untouched for readers still holding it
        assert old.areas_containing(AREA_LAT, AREA_LON) == {area}
        assert new.areas_containing(AREA_LAT, AREA_LON) == set()

    def test_failed_reload_keeps_last_good_snapshot(self, area):
        calls = []

        def loader():
            calls.append(1)
            if len(calls) > 1:
                raise IOError("area service down")
            return [area]

        holder = AreaIndexHolder(loader=loader)
        assert holder.reload() is True
        good = holder.current
        assert holder.reload() is False
        assert holder.current is good
        assert holder.degraded is True
        assert holder.reload_failures == 1

    def test_strict_reload_raises_index_unavailable(self, area):
        def loader():
            raise IOError("area service down")

        holder = AreaIndexHolder([area], loader=loader)
        with pytest.raises(IndexUnavailable, match="area service down"):
            holder.reload(raise_on_error=True)
        assert holder.current.get(area.area_id) is area
        assert holder.reload_failures == 1

    def test_rejected_snapshot_keeps_version(self, area):
        holder = AreaIndexHolder([area], loader=lambda: [area, area])
        assert holder.reload() is False
        assert holder.current.version == 0
        assert holder.degraded is True
        assert holder.swap([area]).version == 1

    def test_reload_without_loader(self):
        assert AreaIndexHolder().reload() is False


class TestLoaders:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "areas.yaml"
        path.write_text(
            "areas:\n"
            "  - id: P1\n"
            "    name: Pier One\n"
            "    polygon: [[10.0, 20.0], [10.0, 20.01], [10.01, 20.01], [10.01, 20.0]]\n"
        )
        areas = load_areas(str(path))
        assert len(areas) == 1
        assert areas[0].area_id == "P1"
        assert areas[0].name == "Pier One"
        index = AreaIndex(areas)
        assert index.areas_containing(10.005, 20.005) == set(areas)

    def test_load_geojson(self, tmp_path):
        path = tmp_path / "areas.geojson"
        path.write_text(json.dumps({
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature",
                 "properties": {"id": "G1", "name": "Geo One"},
                 "geometry": {"type": "Polygon",
                              "coordinates": [[[20.0, 10.0], [20.01, 10.0], [20.01, 10.01],
                                               [20.0, 10.01], [20.0, 10.0]]]}},
                {"type": "Feature",
                 "properties": {"id": "pt"},
                 "geometry": {"type": "Point", "coordinates": [0.0, 0.0]}},
            ],
        }))
        areas = load_areas(str(path))
        assert [a.area_id for a in areas] == ["G1"]
        assert areas[0].centroid == pytest.approx((10.005, 20.005))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "areas.txt"
        path.write_text("nothing")
        with pytest.raises(ValueError):
            load_areas(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_areas(str(tmp_path / "missing.yaml"))
