import pytest

from mealrelay.domain.entities.driver import estimate_pickup_minutes
from mealrelay.domain.value_objects.geo import (
    GeoPoint,
    bounding_box,
    haversine_km,
    travel_minutes,
)

NYC = GeoPoint(40.7128, -74.0060)
LONDON = GeoPoint(51.5074, -0.1278)


class TestGeoPoint:
    def test_valid_extremes(self):
        GeoPoint(90.0, 180.0)
        GeoPoint(-90.0, -180.0)

    @pytest.mark.parametrize("lat,lng", [(90.1, 0.0), (-90.1, 0.0), (0.0, 180.1), (0.0, -180.1)])
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValueError):
            GeoPoint(lat, lng)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(NYC, NYC) == 0

    def test_new_york_to_london(self):
        assert haversine_km(NYC, LONDON) == pytest.approx(5570, rel=0.01)

    def test_symmetric(self):
        assert haversine_km(NYC, LONDON) == pytest.approx(haversine_km(LONDON, NYC))

    def test_one_degree_of_latitude(self):
        assert haversine_km(GeoPoint(0, 0), GeoPoint(1, 0)) == pytest.approx(111.19, abs=0.01)

    def test_across_antimeridian(self):
        assert haversine_km(GeoPoint(0, 179.9), GeoPoint(0, -179.9)) == pytest.approx(22.24, abs=0.01)


class TestBoundingBox:
    def test_contains_points_at_radius(self):
        box = bounding_box(NYC, 10)
        assert box.min_latitude < NYC.latitude < box.max_latitude
        assert box.min_longitude < NYC.longitude < box.max_longitude
        # ~0.09 degrees of latitude per 10 km
        assert box.max_latitude - NYC.latitude == pytest.approx(0.0899, abs=0.001)

    def test_clamped_at_pole(self):
        box = bounding_box(GeoPoint(89.99, 0), 50)
        assert box.max_latitude == 90.0
        assert box.max_longitude - box.min_longitude == pytest.approx(360.0)


class TestEstimates:
    def test_pickup_minutes_at_three_minutes_per_km(self):
        assert estimate_pickup_minutes(3.99) == 12
        assert estimate_pickup_minutes(0.1) == 1
        assert estimate_pickup_minutes(0) == 0

    def test_travel_minutes_round_up(self):
        assert travel_minutes(24, 48) == 30
        assert travel_minutes(24.1, 48) == 31
