from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal, Dict

PriceTier = Literal["budget", "mid-range", "luxury"]
PriceRangeFilter = Literal["budget", "mid-range", "luxury", "any"]
QuoteSource = Literal["live", "estimated"]

CURRENCY_SYMBOLS = {"EUR": "€", "GBP": "£", "USD": "$"}


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case in Python; both accepted inbound
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ThemeScores(FrozenCamelModel):
    party: int = Field(..., ge=0, le=100)      # Social & Entertainment
    adventure: int = Field(..., ge=0, le=100)  # Active & Outdoor
    learn: int = Field(..., ge=0, le=100)      # Cultural & Creative
    shopping: int = Field(..., ge=0, le=100)   # Luxury & Indulgent
    beach: int = Field(..., ge=0, le=100)      # Relaxation & Family

    def score_for(self, theme: str) -> int:
        return getattr(self, theme)

    def best(self) -> int:
        return max(self.party, self.adventure, self.learn, self.shopping, self.beach)


class ThemeCityRecord(FrozenCamelModel):
    iata_code: str
    city_name: str
    country_name: str
    country_code: str
    theme_scores: ThemeScores
    highlights: List[str] = Field(default_factory=list)
    average_flight_time: float = Field(..., ge=0, allow_inf_nan=False)  # hours, from European origins
    price_range: PriceTier
    best_months: List[str] = Field(default_factory=list)
    description: str = ""


def format_amount(amount: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    value = f"{round(amount):d}"
    return f"{symbol}{value}" if symbol else f"{currency.upper()} {value}"


def format_amount_range(low: float, high: float, currency: str) -> str:
    if round(low) == round(high):
        return format_amount(low, currency)
    return f"{format_amount(low, currency)}-{round(high):d}"


class PriceQuote(FrozenCamelModel):
    destination_code: str
    currency: str = "EUR"
    amount_low: float
    amount_high: float
    source: QuoteSource

    @property
    def midpoint(self) -> float:
        return (self.amount_low + self.amount_high) / 2

    @property
    def display(self) -> str:
        return format_amount_range(self.amount_low, self.amount_high, self.currency)


class DestinationInfo(FrozenCamelModel):
    iata_code: str
    city_name: str
    country_name: str
    country_code: str
    description: str = ""
    highlights: List[str] = Field(default_factory=list)
    best_months: List[str] = Field(default_factory=list)
    price_tier: PriceTier = "mid-range"
    theme_scores: Optional[ThemeScores] = None


class FlightRouteSummary(FrozenCamelModel):
    origin: str
    destination: str
    duration_hours: int
    duration_minutes: int
    total_duration_minutes: int


class DestinationRecommendation(FrozenCamelModel):
    destination: DestinationInfo
    flight_route: FlightRouteSummary
    match_score: int = Field(..., ge=0, le=100)
    activity_matches: List[str] = Field(default_factory=list)
    reason_for_recommendation: str
    estimated_flight_price: str
    price_quote: PriceQuote


class CountrySummary(FrozenCamelModel):
    country_code: str
    country_name: str
    city_count: int
    average_score: float
    price_range: str
    top_cities: List[str]


class ThemeSearchRequest(CamelModel):
    origin: str = Field(..., min_length=3, max_length=3, description="IATA airport code")
    theme: str
    max_flight_time_hours: Optional[float] = Field(None, gt=0)
    price_range: Optional[PriceRangeFilter] = None
    countries: Optional[List[str]] = None
    max_results: Optional[int] = Field(None, ge=1, le=100)

    @field_validator("origin")
    @classmethod
    def _upper_origin(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("countries")
    @classmethod
    def _upper_countries(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [c.strip().upper() for c in v if c and c.strip()]


class SearchMetadata(FrozenCamelModel):
    theme: str
    origin: str
    searched_at: str  # ISO 8601, UTC
    processing_time_ms: int
    filters_applied: List[str] = Field(default_factory=list)


class ThemeSearchResponse(FrozenCamelModel):
    destinations: List[DestinationRecommendation]
    total_results: int
    country_summary: List[CountrySummary]
    search_metadata: SearchMetadata


class CatalogStatistics(FrozenCamelModel):
    total_cities: int
    by_price_tier: Dict[str, int]
    by_theme: Dict[str, int]
