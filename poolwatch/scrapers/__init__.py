"""Browser-facing stages of the pools scrape."""

from poolwatch.scrapers.base import (
    ConfigurationError,
    ListingUnavailableError,
    RaceNavigationError,
    ScraperError,
)

__all__ = [
    "ConfigurationError",
    "ListingUnavailableError",
    "RaceNavigationError",
    "ScraperError",
]
