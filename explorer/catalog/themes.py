"""Theme definitions and the activity vocabularies derived from them."""

from typing import Dict, List

MIXED_THEME = "mixed"

THEME_DEFINITIONS: Dict[str, Dict] = {
    "party": {
        "name": "Social & Entertainment",
        "description": "Nightlife, bars, clubs, music festivals, food scenes, social dining experiences",
        "keywords": ["nightlife", "bars", "clubs", "restaurants", "music", "festivals", "social"],
    },
    "adventure": {
        "name": "Active & Outdoor",
        "description": "Hiking, extreme sports, nature activities, budget backpacking, outdoor wellness",
        "keywords": ["hiking", "sports", "nature", "outdoor", "backpacking", "adventure", "mountains"],
    },
    "learn": {
        "name": "Cultural & Creative",
        "description": "Museums, history, arts districts, creative scenes, digital nomad hubs, education",
        "keywords": ["museums", "history", "culture", "arts", "creative", "learning", "architecture"],
    },
    "shopping": {
        "name": "Luxury & Indulgent",
        "description": "Fashion, luxury shopping, spas, wellness experiences, romantic getaways, premium services",
        "keywords": ["shopping", "luxury", "fashion", "spas", "wellness", "romance", "premium"],
    },
    "beach": {
        "name": "Relaxation & Family",
        "description": "Coastal destinations, family activities, leisure travel, beach wellness, water sports",
        "keywords": ["beach", "coast", "family", "relaxation", "water", "leisure", "islands"],
    },
}

THEMES: List[str] = list(THEME_DEFINITIONS)

# Categories shown on a recommendation card
ACTIVITY_MATCHES: Dict[str, List[str]] = {
    "party": ["nightlife", "restaurants", "bars"],
    "adventure": ["outdoor", "sports", "nature"],
    "learn": ["culture", "museums", "history"],
    "shopping": ["shopping", "luxury", "wellness"],
    "beach": ["beach", "water-sports", "relaxation"],
}

# Activity types understood by the recommendation backend
BACKEND_ACTIVITIES: Dict[str, List[str]] = {
    "party": ["nightlife", "restaurants", "activities"],
    "adventure": ["adventure", "nature", "activities"],
    "learn": ["culture", "sightseeing", "activities"],
    "shopping": ["shopping", "activities"],
    "beach": ["beaches", "relaxation", "nature"],
}

# Reverse of BACKEND_ACTIVITIES, used to rebuild theme scores from backend activity data
BACKEND_ACTIVITY_THEMES: Dict[str, str] = {
    "nightlife": "party",
    "restaurants": "party",
    "adventure": "adventure",
    "nature": "adventure",
    "culture": "learn",
    "sightseeing": "learn",
    "shopping": "shopping",
    "beaches": "beach",
    "relaxation": "beach",
}


def normalize_theme(theme: str) -> str:
    return (theme or "").strip().lower()


def is_theme_supported(theme: str) -> bool:
    return normalize_theme(theme) in THEME_DEFINITIONS


def activity_matches_for(theme: str) -> List[str]:
    return list(ACTIVITY_MATCHES.get(normalize_theme(theme), ["activities"]))


def backend_activities_for(theme: str) -> List[str]:
    return list(BACKEND_ACTIVITIES.get(normalize_theme(theme), ["activities"]))
