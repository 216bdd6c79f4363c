"""Today's races listing: load the page and turn its rows into race descriptors."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from playwright.async_api import Page

from poolwatch.config import settings
from poolwatch.scrapers.base import ListingUnavailableError
from poolwatch.scrapers.normalize import clean_track_name, parse_race_number
from poolwatch.scrapers.playwright_base import retry_with_backoff, screenshot_debug

logger = logging.getLogger(__name__)

ROW_SELECTOR = ".track.track-list--row"
RACE_NUMBER_SELECTOR = ".race-number span"

# Tried in order, first non-empty text wins
TRACK_NAME_SELECTORS = (
    '.track-name[id*="track-name"]',
    ".track-race-info .track-name",
    ".track-name",
)

BLOCKED_MARKERS = ("Access Denied", "Attention Required", "captcha")

_BODY_TEXT_JS = "() => document.body ? document.body.innerText.substring(0, 2000) : ''"

_EXTRACT_ROWS_JS = """([rowSelector, trackSelectors, raceNumberSelector]) => {
    const text = (el) => (el ? (el.textContent || '').trim() : null);
    return Array.from(document.querySelectorAll(rowSelector)).map((row, index) => {
        const trackNames = {};
        for (const sel of trackSelectors) {
            trackNames[sel] = text(row.querySelector(sel));
        }
        return {
            index: index,
            elementId: row.id || null,
            trackNames: trackNames,
            raceNumberText: text(row.querySelector(raceNumberSelector)),
        };
    });
}"""

_PAGE_CLASSES_JS = """() => {
    const classes = new Set();
    document.querySelectorAll('*').forEach(el => {
        if (typeof el.className === 'string') {
            el.className.split(' ').forEach(cls => {
                if (cls.includes('track') || cls.includes('race')) classes.add(cls);
            });
        }
    });
    return Array.from(classes).slice(0, 20);
}"""


@dataclass
class RaceDescriptor:
    """A race found on the listing page during this run."""

    track_name_raw: Optional[str]
    track_name: str
    race_number: int
    element_id: Optional[str]
    index: int

    @property
    def element_selector(self) -> Optional[str]:
        """Selector that re-locates the row on a freshly loaded listing."""
        if not self.element_id:
            return None
        escaped = self.element_id.replace("\\", "\\\\").replace('"', '\\"')
        return f'[id="{escaped}"]'

    @property
    def label(self) -> str:
        return f"{self.track_name} R{self.race_number}"


def resolve_track_name(track_names: dict[str, Optional[str]]) -> Optional[str]:
    """Apply the track-name fallback chain to one row's candidate texts."""
    for selector in TRACK_NAME_SELECTORS:
        text = track_names.get(selector)
        if text and text.strip():
            return text.strip()
    return None


def parse_listing_rows(rows: Iterable[dict[str, Any]]) -> list[RaceDescriptor]:
    """Turn raw listing rows into descriptors, dropping rows without a name and number."""
    descriptors = []
    for position, row in enumerate(rows):
        raw = resolve_track_name(row.get("trackNames") or {})
        track_name = clean_track_name(raw)
        race_number = parse_race_number(row.get("raceNumberText"))

        if not track_name or not race_number or race_number < 1:
            logger.debug(f"Dropping listing row {row.get('index')}: track={raw!r}, race={row.get('raceNumberText')!r}")
            continue

        descriptors.append(RaceDescriptor(
            track_name_raw=raw,
            track_name=track_name,
            race_number=race_number,
            element_id=row.get("elementId"),
            index=row.get("index", position),
        ))
    return descriptors


async def open_listing(page: Page, url: Optional[str] = None) -> None:
    """Navigate to the listing and wait for the race rows to render.

    Raises ListingUnavailableError if the page cannot be reached, is blocked,
    or never renders a race row.
    """
    url = url or settings.listing_url
    logger.info(f"Loading races listing: {url}")
    try:
        await retry_with_backoff(
            lambda: page.goto(url, wait_until="domcontentloaded", timeout=settings.listing_timeout_ms),
            max_attempts=settings.listing_attempts,
            base_delay=settings.retry_base_delay,
        )
    except Exception as e:
        raise ListingUnavailableError(f"Could not load listing {url}: {e}") from e

    title = await page.title()
    body_text = await page.evaluate(_BODY_TEXT_JS)
    if any(marker in title or marker in (body_text or "") for marker in BLOCKED_MARKERS):
        await screenshot_debug(page, "listing-blocked")
        raise ListingUnavailableError(f"Listing page blocked or behind a captcha (title: {title!r})")

    try:
        await page.wait_for_selector(ROW_SELECTOR, timeout=settings.selector_timeout_ms)
    except Exception as e:
        await screenshot_debug(page, "listing-no-rows")
        try:
            classes = await page.evaluate(_PAGE_CLASSES_JS)
        except Exception:
            classes = []
        logger.error(f"No race rows on listing. Track/race classes present: {classes}")
        raise ListingUnavailableError(f"Race rows never rendered on {url}") from e


async def extract_descriptors(page: Page) -> list[RaceDescriptor]:
    """Read the rendered listing rows and return race descriptors in row order."""
    rows = await page.evaluate(
        _EXTRACT_ROWS_JS,
        [ROW_SELECTOR, list(TRACK_NAME_SELECTORS), RACE_NUMBER_SELECTOR],
    )
    descriptors = parse_listing_rows(rows or [])
    logger.info(f"Listing: {len(descriptors)} races from {len(rows or [])} rows")
    for d in descriptors:
        logger.debug(f"  {d.index}: {d.label} ({d.element_id})")
    return descriptors
