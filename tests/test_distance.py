import pytest

from propval.geo.distance import (
    DistanceAnalyzer,
    classify_accessibility,
    haversine_km,
    parse_admin_names,
    parse_dms,
)


def test_haversine_known_distances():
    assert haversine_km(21.0285, 105.8542, 21.0285, 105.8542) == 0.0
    # Hanoi to Ho Chi Minh City, roughly 1,140 km
    assert haversine_km(21.0285, 105.8542, 10.7769, 106.7009) == pytest.approx(1143, abs=15)
    # Rounded to two decimals
    d = haversine_km(21.0285, 105.8542, 21.0181, 105.8294)
    assert d == round(d, 2)


@pytest.mark.parametrize(
    "km, tier",
    [(0.0, "excellent"), (2.0, "excellent"), (2.01, "good"), (5.0, "good"), (7.5, "fair"),
     (10.0, "fair"), (10.01, "poor"), (None, "poor")],
)
def test_accessibility_tiers(km, tier):
    assert classify_accessibility(km)[0] == tier


def test_parse_admin_names_takes_city_and_nearest_district():
    city, district = parse_admin_names("Số 5 Láng Hạ, Phường Láng Thượng, Quận Đống Đa, Hà Nội")
    assert (city, district) == ("Hà Nội", "Quận Đống Đa")


def test_parse_admin_names_strips_coordinate_prefix():
    city, district = parse_admin_names('21°01\'05.2"N 105°49\'45.8"E, Phường 25, Quận Bình Thạnh, Hồ Chí Minh')
    assert city == "Hồ Chí Minh"
    assert district == "Quận Bình Thạnh"
    assert parse_admin_names("") == (None, None)


def test_parse_dms():
    assert parse_dms('21°01\'41.9"N') == pytest.approx(21.028306, abs=1e-6)
    assert parse_dms('105°50\'29.6"E') == pytest.approx(105.841556, abs=1e-6)
    assert parse_dms('33°52\'S') == pytest.approx(-33.866667, abs=1e-6)
    assert parse_dms("north-ish") is None


def test_analyze_at_district_centre_is_excellent():
    result = DistanceAnalyzer().analyze(21.0181, 105.8294, "Phường Láng Thượng, Quận Đống Đa, Hà Nội")

    assert result.to_district_center.name == "Quận Đống Đa"
    assert result.to_district_center.distance_km == 0.0
    assert result.to_city_center.name == "Thành phố Hà Nội"
    assert result.to_city_center.distance_km > 0
    assert result.accessibility_tier == "excellent"


def test_analyze_matches_platform_codes_when_address_is_blank():
    result = DistanceAnalyzer().analyze(10.7843, 106.6844, "", city_hint="ho_chi_minh", district_hint="quan_3")

    assert result.to_city_center.name == "Thành phố Hồ Chí Minh"
    assert result.to_district_center.name == "Quận 3"
    assert result.accessibility_tier == "excellent"


def test_analyze_does_not_confuse_numbered_districts():
    result = DistanceAnalyzer().analyze(10.7729, 106.6680, "Phường 12, Quận 10, Hồ Chí Minh")
    assert result.to_district_center.name == "Quận 10"


def test_analyze_unknown_locality_is_poor_with_no_centres():
    result = DistanceAnalyzer().analyze(48.85, 2.35, "Rue de Rivoli, Paris")

    assert result.to_city_center is None
    assert result.to_district_center is None
    assert result.accessibility_tier == "poor"
