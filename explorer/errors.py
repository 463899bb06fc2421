"""Domain exceptions for the destination explorer."""

from typing import Dict, Optional


class ExplorerError(Exception):
    pass


class CatalogError(ExplorerError):
    """The theme city table failed validation at load time."""


class UnsupportedThemeError(ExplorerError, ValueError):
    def __init__(self, theme: str):
        self.theme = theme
        super().__init__(f"Unsupported theme: {theme!r}")


class TierUnavailableError(ExplorerError):
    """A recommendation tier is disabled or has no client configured."""


class AllTiersFailedError(ExplorerError):
    def __init__(self, failures: Optional[Dict[str, str]] = None):
        self.failures = failures or {}
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        super().__init__(f"All recommendation tiers failed ({detail})" if detail else "All recommendation tiers failed")
