"""PoolWatch - pari-mutuel pools and time-to-post scraper for today's races."""

__version__ = "0.1.0"
