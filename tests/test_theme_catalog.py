import json

import pytest

from explorer.catalog.theme_cities import ThemeCatalog
from explorer.catalog.themes import THEMES
from explorer.errors import CatalogError


@pytest.mark.parametrize("theme", THEMES)
def test_cities_for_theme_respects_threshold_and_order(catalog, theme):
    for min_score in (0, 50, 60, 85):
        cities = catalog.cities_for_theme(theme, min_score)
        scores = [c.theme_scores.score_for(theme) for c in cities]
        assert all(s >= min_score for s in scores)
        assert scores == sorted(scores, reverse=True)


def test_cities_for_theme_unknown_theme_is_empty(catalog):
    assert catalog.cities_for_theme("skiing") == []
    assert catalog.top_cities_for_theme("skiing", 5) == []


def test_cities_for_theme_is_case_insensitive(catalog):
    assert catalog.cities_for_theme("Adventure") == catalog.cities_for_theme("adventure")


def test_equal_scores_keep_table_order(city_factory):
    a = city_factory("AAA", adventure=90)
    b = city_factory("BBB", adventure=95)
    c = city_factory("CCC", adventure=90)
    cat = ThemeCatalog([a, b, c])
    assert [x.iata_code for x in cat.cities_for_theme("adventure")] == ["BBB", "AAA", "CCC"]


def test_top_cities_truncates(catalog):
    top = catalog.top_cities_for_theme("party", 3)
    assert len(top) == 3
    assert top == catalog.cities_for_theme("party")[:3]


def test_city_by_code(catalog):
    kef = catalog.city_by_code("kef")
    assert kef is not None
    assert kef.city_name == "Reykjavik"
    assert catalog.city_by_code("ZZZ") is None
    assert catalog.city_by_code("") is None


def test_cities_by_multiple_themes_intersection_and_mean_order(catalog):
    themes = ["party", "beach"]
    cities = catalog.cities_by_multiple_themes(themes, min_score=70)
    assert cities
    for c in cities:
        assert c.theme_scores.party >= 70 and c.theme_scores.beach >= 70
    means = [(c.theme_scores.party + c.theme_scores.beach) / 2 for c in cities]
    assert means == sorted(means, reverse=True)


def test_cities_by_multiple_themes_rejects_unknown_or_empty(catalog):
    assert catalog.cities_by_multiple_themes(["party", "skiing"]) == []
    assert catalog.cities_by_multiple_themes([]) == []


def test_themes_for_city_sorted_by_score(catalog):
    themes = catalog.themes_for_city("BCN")
    city = catalog.city_by_code("BCN")
    scores = [city.theme_scores.score_for(t) for t in themes]
    assert themes[0] == "beach"
    assert scores == sorted(scores, reverse=True)
    assert catalog.themes_for_city("ZZZ") == []


def test_statistics_are_derived_counts(catalog):
    stats = catalog.statistics()
    assert stats.total_cities == len(catalog)
    assert sum(stats.by_price_tier.values()) == stats.total_cities
    for theme in THEMES:
        assert stats.by_theme[theme] == len(catalog.cities_for_theme(theme))


def test_price_range_and_month_filters(catalog):
    assert all(c.price_range == "budget" for c in catalog.cities_by_price_range("budget"))
    assert all("Aug" in c.best_months for c in catalog.cities_for_month("Aug"))


def test_popular_cities_are_unique_and_limited(catalog):
    popular = catalog.popular_cities(10)
    codes = [c.iata_code for c in popular]
    assert len(codes) == len(set(codes))
    assert len(codes) <= 10
    assert codes[0] == catalog.top_cities_for_theme("party", 1)[0].iata_code


def test_iata_codes_unique_in_shipped_table(catalog):
    codes = [c.iata_code for c in catalog.cities]
    assert len(codes) == len(set(codes))


def test_duplicate_codes_rejected(city_factory):
    with pytest.raises(CatalogError):
        ThemeCatalog([city_factory("AAA"), city_factory("AAA")])


def test_out_of_range_score_rejected(tmp_path):
    row = {
        "iata_code": "XXX", "city_name": "X", "country_name": "X", "country_code": "XX",
        "theme_scores": {"party": 120, "adventure": 1, "learn": 1, "shopping": 1, "beach": 1},
        "highlights": [], "average_flight_time": 2, "price_range": "budget", "best_months": [],
    }
    path = tmp_path / "cities.json"
    path.write_text(json.dumps([row]))
    with pytest.raises(CatalogError):
        ThemeCatalog.from_json(str(path))


def test_missing_file_raises_catalog_error(tmp_path):
    with pytest.raises(CatalogError):
        ThemeCatalog.from_json(str(tmp_path / "missing.json"))


@pytest.mark.parametrize("flight_time", [float("nan"), float("inf"), -1.0])
def test_non_finite_or_negative_flight_time_rejected(tmp_path, flight_time):
    row = {
        "iata_code": "XXX", "city_name": "X", "country_name": "X", "country_code": "XX",
        "theme_scores": {"party": 10, "adventure": 1, "learn": 1, "shopping": 1, "beach": 1},
        "highlights": [], "average_flight_time": flight_time, "price_range": "budget", "best_months": [],
    }
    path = tmp_path / "cities.json"
    path.write_text(json.dumps([row]))
    with pytest.raises(CatalogError):
        ThemeCatalog.from_json(str(path))


def test_available_themes(catalog):
    themes = catalog.available_themes()
    assert themes == THEMES
    assert all(catalog.is_theme_supported(t) for t in themes)
    assert not catalog.is_theme_supported("mixed")
