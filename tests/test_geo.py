from __future__ import annotations

import math

import pytest

from safeparking.models import Coordinate
from safeparking.services.geo import distance_km, parse_coordinate

from conftest import CITY_HALL, GANGNAM


def _reference_haversine(a: Coordinate, b: Coordinate) -> float:
    lat1, lng1, lat2, lng2 = map(math.radians, (a.lat, a.lng, b.lat, b.lng))
    h = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    return 2 * 6371.0 * math.asin(math.sqrt(h))


def test_distance_to_self_is_zero():
    assert distance_km(GANGNAM, GANGNAM) == 0.0


def test_distance_is_symmetric():
    assert distance_km(GANGNAM, CITY_HALL) == pytest.approx(distance_km(CITY_HALL, GANGNAM))


def test_small_latitude_offset():
    # 0.001 degree of latitude is roughly 111 meters
    north = Coordinate(lat=GANGNAM.lat + 0.001, lng=GANGNAM.lng)
    assert 0.110 < distance_km(GANGNAM, north) < 0.112


@pytest.mark.parametrize(
    "other",
    [
        CITY_HALL,
        Coordinate(lat=35.1796, lng=129.0756),  # Busan, ~325 km
        Coordinate(lat=33.4996, lng=126.5312),  # Jeju, ~450 km
    ],
)
def test_matches_reference_haversine(other):
    expected = _reference_haversine(GANGNAM, other)
    assert distance_km(GANGNAM, other) == pytest.approx(expected, rel=1e-3)


def test_gangnam_to_city_hall_is_about_nine_km():
    assert 8.5 < distance_km(GANGNAM, CITY_HALL) < 9.5


@pytest.mark.parametrize(
    "lat,lng",
    [
        (37.5, 127.0),
        ("37.5", "127.0"),
        (" 37.5 ", "127.0"),
        (-90, 180),
    ],
)
def test_parse_coordinate_accepts_numbers_and_numeric_strings(lat, lng):
    point = parse_coordinate(lat, lng)
    assert point is not None
    assert point.lat == float(str(lat).strip())


@pytest.mark.parametrize(
    "lat,lng",
    [
        (float("nan"), 127.0),
        (37.5, float("inf")),
        (200, 127.0),
        (37.5, -300),
        (None, 127.0),
        ("", "127.0"),
        ("abc", "127.0"),
        (True, 127.0),
    ],
)
def test_parse_coordinate_rejects_malformed_values(lat, lng):
    assert parse_coordinate(lat, lng) is None


@pytest.mark.parametrize("x", [0.01, 0.08, 0.12, 0.31, 1.0, 45.0, 89.99])
def test_near_antipodal_points_do_not_raise(x):
    d = distance_km(Coordinate(lat=x, lng=0), Coordinate(lat=-x, lng=180))
    assert d == pytest.approx(math.pi * 6371.0, rel=1e-6)
