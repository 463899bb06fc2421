import os
import sys
import asyncio
import inspect

import pytest

# Ensure project root is on sys.path so `import explorer` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from explorer.catalog.theme_cities import ThemeCatalog  # noqa: E402
from explorer.config import DEFAULT_THEME_CITIES_PATH  # noqa: E402
from explorer.types import ThemeCityRecord, ThemeScores  # noqa: E402


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


@pytest.fixture(scope="session")
def catalog():
    return ThemeCatalog.from_json(DEFAULT_THEME_CITIES_PATH)


def make_city(code, country="ES", flight_time=2.0, price_range="mid-range", highlights=None, **scores):
    base = {"party": 50, "adventure": 50, "learn": 50, "shopping": 50, "beach": 50}
    base.update(scores)
    return ThemeCityRecord(
        iata_code=code,
        city_name=f"City {code}",
        country_name=f"Country {country}",
        country_code=country,
        theme_scores=ThemeScores(**base),
        highlights=highlights if highlights is not None else [f"{code} highlight"],
        average_flight_time=flight_time,
        price_range=price_range,
        best_months=["May"],
        description=f"Description of {code}",
    )


@pytest.fixture
def city_factory():
    return make_city
