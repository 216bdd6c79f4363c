"""Exceptions shared by the scraping stages."""


class ScraperError(Exception):
    """Exception raised when scraping fails."""

    pass


class ListingUnavailableError(ScraperError):
    """The races listing page could not be loaded or never rendered its rows.

    Fatal for a run: without the listing there is nothing to match.
    """

    pass


class RaceNavigationError(ScraperError):
    """Re-navigation from the listing to a race's detail view failed."""

    pass


class ConfigurationError(Exception):
    """Required configuration is missing or unusable."""

    pass
