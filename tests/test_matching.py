"""Unit tests for the proximity matcher and the PostGIS query builders."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.dialects import postgresql

from src.domain.matching import km_to_meters, nearest_within
from src.infrastructure.repositories import (
    nearby_bookings_statement,
    nearby_drivers_statement,
)

CENTER = (40.7128, -74.0060)


@dataclass
class Point:
    name: str
    lat: Optional[float]
    lng: Optional[float]


def coords(p: Point):
    if p.lat is None or p.lng is None:
        return None
    return (p.lat, p.lng)


class TestNearestWithin:
    def test_orders_nearest_first(self):
        far = Point("far", 40.7306, -73.9352)  # ~6.3 km
        near = Point("near", 40.7138, -74.0050)  # ~0.1 km
        mid = Point("mid", 40.7200, -74.0000)  # ~1 km
        result = nearest_within(CENTER, [far, near, mid], coords)
        assert [p.name for p in result] == ["near", "mid", "far"]

    def test_radius_excludes_distant(self):
        jfk = Point("jfk", 40.6413, -73.7781)  # ~21 km
        near = Point("near", 40.7138, -74.0050)
        result = nearest_within(CENTER, [jfk, near], coords, radius_km=10)
        assert [p.name for p in result] == ["near"]

    def test_ties_keep_insertion_order(self):
        a = Point("a", 40.7200, -74.0060)
        b = Point("b", 40.7200, -74.0060)
        c = Point("c", 40.7200, -74.0060)
        result = nearest_within(CENTER, [b, a, c], coords)
        assert [p.name for p in result] == ["b", "a", "c"]

    def test_limit(self):
        points = [Point(str(i), 40.7128 + i * 0.001, -74.0060) for i in range(30)]
        result = nearest_within(CENTER, points, coords, limit=20)
        assert len(result) == 20
        assert result[0].name == "0"

    def test_skips_missing_location(self):
        result = nearest_within(
            CENTER, [Point("none", None, None), Point("here", 40.7128, -74.0060)], coords
        )
        assert [p.name for p in result] == ["here"]

    def test_empty(self):
        assert nearest_within(CENTER, [], coords) == []


class TestPostgisStatements:
    @staticmethod
    def _sql(statement) -> str:
        return str(statement.compile(dialect=postgresql.dialect()))

    def test_km_to_meters(self):
        assert km_to_meters(10) == 10_000

    def test_bookings_statement_uses_geography_index(self):
        sql = self._sql(nearby_bookings_statement(40.7, -74.0, 10, 20))
        assert "ST_DWithin" in sql
        assert "ST_Distance" in sql
        assert "geography" in sql.lower()
        assert "bookings.status" in sql

    def test_drivers_statement_filters_active_drivers(self):
        sql = self._sql(nearby_drivers_statement(40.7, -74.0, 5, 20))
        assert "ST_DWithin" in sql
        assert "users.role" in sql
        assert "users.current_lat IS NOT NULL" in sql
