from __future__ import annotations

import math

import pytest

from haven_resilience.errors import RequestValidationError
from haven_resilience.geo import (
    KM_PER_DEGREE,
    degree_distance,
    distance,
    offset,
    parse_coordinates,
    require_numeric_coordinates,
    validate_coordinates,
)
from haven_resilience.models import Location


def test_distance_uses_flat_degree_scale() -> None:
    origin = Location(latitude=0.0, longitude=0.0)
    north = Location(latitude=1.0, longitude=0.0)
    east = Location(latitude=0.0, longitude=1.0)

    assert distance(origin, north) == pytest.approx(KM_PER_DEGREE)
    assert distance(origin, east) == pytest.approx(KM_PER_DEGREE)


def test_distance_longitude_scaled_by_origin_latitude() -> None:
    origin = Location(latitude=60.0, longitude=10.0)
    east = Location(latitude=60.0, longitude=11.0)
    assert distance(origin, east) == pytest.approx(KM_PER_DEGREE * 0.5, rel=1e-6)


def test_distance_wraps_across_antimeridian() -> None:
    west = Location(latitude=0.0, longitude=179.9)
    east = Location(latitude=0.0, longitude=-179.9)
    assert distance(west, east) == pytest.approx(0.2 * KM_PER_DEGREE, rel=1e-6)


@pytest.mark.parametrize("bearing", [0.0, math.pi / 3, math.pi, 1.5 * math.pi])
def test_offset_is_inverse_of_distance(bearing: float) -> None:
    origin = Location(latitude=37.0, longitude=-122.0)
    moved = offset(origin, bearing, 5.0)
    assert distance(origin, moved) == pytest.approx(5.0, rel=1e-6)


def test_offset_zero_distance_keeps_point_and_sets_address() -> None:
    origin = Location(latitude=10.0, longitude=20.0)
    moved = offset(origin, 1.0, 0.0, address="1 Main St, Downtown, State")
    assert (moved.latitude, moved.longitude) == (10.0, 20.0)
    assert moved.address == "1 Main St, Downtown, State"


def test_offset_clamps_latitude_near_pole() -> None:
    origin = Location(latitude=89.99, longitude=0.0)
    moved = offset(origin, 0.0, 50.0)
    assert moved.latitude == 90.0


def test_degree_distance() -> None:
    a = Location(latitude=0.0, longitude=0.0)
    b = Location(latitude=0.6, longitude=0.8)
    assert degree_distance(a, b) == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.1), (0.0, -181.0), (float("nan"), 0.0)],
)
def test_validate_coordinates_rejects_out_of_range(lat: float, lon: float) -> None:
    with pytest.raises(RequestValidationError) as excinfo:
        validate_coordinates(lat, lon)
    assert excinfo.value.message == "Coordinates out of valid range"


def test_validate_coordinates_accepts_bounds() -> None:
    assert validate_coordinates(90.0, -180.0) == Location(latitude=90.0, longitude=-180.0)


@pytest.mark.parametrize(("lat", "lon"), [(None, "1"), ("abc", "1"), ("1", ""), ("nan", "1")])
def test_parse_coordinates_rejects_non_numeric(lat: object, lon: object) -> None:
    with pytest.raises(RequestValidationError) as excinfo:
        parse_coordinates(lat, lon)
    assert excinfo.value.message == "Invalid latitude or longitude parameters"


def test_parse_coordinates_parses_strings() -> None:
    location = parse_coordinates("34.05", "-118.25")
    assert location.latitude == pytest.approx(34.05)
    assert location.longitude == pytest.approx(-118.25)


def test_parse_coordinates_range_error_after_parsing() -> None:
    with pytest.raises(RequestValidationError, match="Coordinates out of valid range"):
        parse_coordinates("95", "0")


@pytest.mark.parametrize(("lat", "lon"), [("34", 1.0), (True, 1.0), (None, 1.0)])
def test_require_numeric_coordinates_rejects_non_numbers(lat: object, lon: object) -> None:
    with pytest.raises(RequestValidationError, match="Invalid latitude or longitude parameters"):
        require_numeric_coordinates(lat, lon)


def test_require_numeric_coordinates_accepts_ints() -> None:
    assert require_numeric_coordinates(10, -20).longitude == -20.0


def test_require_numeric_coordinates_rejects_oversized_ints() -> None:
    with pytest.raises(RequestValidationError, match="Invalid latitude or longitude parameters"):
        require_numeric_coordinates(10**400, 0)
