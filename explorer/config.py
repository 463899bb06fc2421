# explorer/config.py
from pathlib import Path
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_THEME_CITIES_PATH = str(Path(__file__).resolve().parent / "data" / "theme_cities.json")


class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"

    # Amadeus (direct pricing provider, tier 2)
    AMADEUS_CLIENT_ID: str = ""
    AMADEUS_CLIENT_SECRET: str = ""
    AMADEUS_ENV: str = "sandbox"  # or "production"

    # Recommendation backend (tier 1)
    RECOMMENDATION_BACKEND_URL: str = "http://localhost:8081"
    BACKEND_ENABLED: bool = True
    BACKEND_TIMEOUT_SECONDS: float = 30.0
    DEFAULT_BACKEND_MAX_FLIGHT_HOURS: float = 12.0

    # Direct provider pipeline
    DIRECT_PROVIDER_ENABLED: bool = True
    PRICE_BATCH_SIZE: int = 5
    PRICE_BATCH_DELAY_MS: int = 200
    PRICE_LOOKUP_TIMEOUT_SECONDS: float = 15.0
    FLIGHT_TIME_BUFFER_HOURS: float = 2.0
    PROVIDER_FAILURE_THRESHOLD: int = 5
    PROVIDER_RECOVERY_SECONDS: int = 60

    # Result limits
    DEFAULT_MAX_RESULTS: int = 20
    MAX_DESTINATION_RESULTS: int = 50

    # Catalog
    THEME_CITIES_PATH: str = DEFAULT_THEME_CITIES_PATH

    # Redis (optional, rate limiting only)
    REDIS_URL: str = ""
    RATE_LIMIT_PER_MINUTE: int = 100

    # read .env and ignore any extra keys so this doesn't break again
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def amadeus_configured(self) -> bool:
        return bool(self.AMADEUS_CLIENT_ID and self.AMADEUS_CLIENT_SECRET)


settings = Settings()
