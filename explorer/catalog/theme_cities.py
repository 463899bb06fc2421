from typing import List, Dict, Optional, Iterable
import json

from pydantic import ValidationError

from explorer.catalog.themes import THEMES, normalize_theme, is_theme_supported
from explorer.errors import CatalogError
from explorer.types import ThemeCityRecord, CatalogStatistics


class ThemeCatalog:
    """Read-only table of destination cities scored against the five themes.

    Loaded once from a JSON export and never mutated afterwards, so a single
    instance is shared by every request without locking. All queries are pure
    functions of the table; ``sorted`` is stable, so cities with equal scores
    keep their table order.
    """

    def __init__(self, cities: Iterable[ThemeCityRecord]):
        self._cities: tuple = tuple(cities)
        self._by_code: Dict[str, ThemeCityRecord] = {}
        for city in self._cities:
            code = city.iata_code.upper()
            if code in self._by_code:
                raise CatalogError(f"Duplicate IATA code in theme catalog: {code}")
            self._by_code[code] = city

    @classmethod
    def from_json(cls, json_path: str) -> "ThemeCatalog":
        try:
            with open(json_path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Could not read theme catalog {json_path}: {e}") from e

        cities = []
        for i, row in enumerate(rows):
            try:
                cities.append(ThemeCityRecord.model_validate(row))
            except ValidationError as e:
                raise CatalogError(f"Invalid theme city at index {i}: {e}") from e
        return cls(cities)

    def __len__(self) -> int:
        return len(self._cities)

    @property
    def cities(self) -> List[ThemeCityRecord]:
        return list(self._cities)

    def available_themes(self) -> List[str]:
        return list(THEMES)

    def is_theme_supported(self, theme: str) -> bool:
        return is_theme_supported(theme)

    def cities_for_theme(self, theme: str, min_score: int = 60) -> List[ThemeCityRecord]:
        key = normalize_theme(theme)
        if not is_theme_supported(key):
            return []
        matching = [c for c in self._cities if c.theme_scores.score_for(key) >= min_score]
        return sorted(matching, key=lambda c: c.theme_scores.score_for(key), reverse=True)

    def top_cities_for_theme(self, theme: str, limit: int = 10) -> List[ThemeCityRecord]:
        return self.cities_for_theme(theme)[:max(0, limit)]

    def city_by_code(self, iata_code: str) -> Optional[ThemeCityRecord]:
        if not iata_code:
            return None
        return self._by_code.get(iata_code.strip().upper())

    def themes_for_city(self, iata_code: str, min_score: int = 60) -> List[str]:
        city = self.city_by_code(iata_code)
        if city is None:
            return []
        themes = [t for t in THEMES if city.theme_scores.score_for(t) >= min_score]
        return sorted(themes, key=city.theme_scores.score_for, reverse=True)

    def cities_by_multiple_themes(self, themes: List[str], min_score: int = 50) -> List[ThemeCityRecord]:
        keys = [normalize_theme(t) for t in themes]
        if not keys or not all(is_theme_supported(k) for k in keys):
            return []

        def mean_score(city: ThemeCityRecord) -> float:
            return sum(city.theme_scores.score_for(k) for k in keys) / len(keys)

        matching = [
            c for c in self._cities
            if all(c.theme_scores.score_for(k) >= min_score for k in keys)
        ]
        return sorted(matching, key=mean_score, reverse=True)

    def cities_by_price_range(self, price_range: str) -> List[ThemeCityRecord]:
        return [c for c in self._cities if c.price_range == price_range]

    def cities_for_month(self, month: str) -> List[ThemeCityRecord]:
        return [c for c in self._cities if month in c.best_months]

    def popular_cities(self, limit: int = 10) -> List[ThemeCityRecord]:
        # A cross-theme mix for the landing page, most social first
        mix = (
            self.top_cities_for_theme("party", 3)
            + self.top_cities_for_theme("adventure", 3)
            + self.top_cities_for_theme("beach", 2)
            + self.top_cities_for_theme("learn", 2)
        )
        seen = set()
        popular = []
        for city in mix:
            if city.iata_code in seen:
                continue
            seen.add(city.iata_code)
            popular.append(city)
        return popular[:max(0, limit)]

    def statistics(self) -> CatalogStatistics:
        by_price_tier = {"budget": 0, "mid-range": 0, "luxury": 0}
        for city in self._cities:
            by_price_tier[city.price_range] += 1
        return CatalogStatistics(
            total_cities=len(self._cities),
            by_price_tier=by_price_tier,
            by_theme={theme: len(self.cities_for_theme(theme)) for theme in THEMES},
        )
