"""Race detail view: re-navigate from the listing, read MTP and the pools table."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from playwright.async_api import Page

from poolwatch.config import settings
from poolwatch.scrapers.base import RaceNavigationError
from poolwatch.scrapers.listing import ROW_SELECTOR, RaceDescriptor
from poolwatch.scrapers.normalize import parse_leading_int, parse_minutes_to_post
from poolwatch.scrapers.playwright_base import new_page

logger = logging.getLogger(__name__)

MTP_BADGE_SELECTOR = ".mtp-badge"
MTP_VALUE_SELECTOR = ".mtp-badge .mtp-value"
POOLS_TAB_SELECTOR = "#pools"
POOLS_TABLE_SELECTOR = ".pools-basic"

_MTP_TEXT_JS = """(selector) => {
    const el = document.querySelector(selector);
    return el ? (el.textContent || '').trim() : null;
}"""

_POOLS_JS = """() => {
    const text = (root, sel) => {
        const el = root.querySelector(sel);
        return el ? (el.textContent || '').trim() : null;
    };
    const data = { totals: {}, rows: [] };
    const header = document.querySelector('.pools-header-totals');
    if (header) {
        data.totals = {
            win: text(header, '.pools-row__win'),
            place: text(header, '.pools-row__place'),
            show: text(header, '.pools-row__show'),
        };
    }
    document.querySelectorAll('.pools-basic .pools-row').forEach(row => {
        data.rows.push({
            post: text(row, '.saddle-cloth'),
            odds: text(row, '.pools-odds'),
            win: text(row, '.pools-row__win .amount'),
            place: text(row, '.pools-row__place .amount'),
            show: text(row, '.pools-row__show .amount'),
        });
    });
    return data;
}"""


@dataclass
class PoolTotals:
    win: Optional[str] = None
    place: Optional[str] = None
    show: Optional[str] = None


@dataclass
class RunnerPoolRow:
    """One runner's line in the pools table, as displayed."""

    post_position: int
    odds_raw: Optional[str] = None
    win_amount_raw: Optional[str] = None
    place_amount_raw: Optional[str] = None
    show_amount_raw: Optional[str] = None


@dataclass
class PoolSnapshot:
    totals: PoolTotals = field(default_factory=PoolTotals)
    rows: list[RunnerPoolRow] = field(default_factory=list)


def parse_pool_snapshot(data: Optional[dict[str, Any]]) -> PoolSnapshot:
    """Build a snapshot from the raw pools extraction.

    Rows without a numeric post position (e.g. "SCR") are left out, and a
    repeated post position keeps its first row.
    """
    data = data or {}
    totals = data.get("totals") or {}
    snapshot = PoolSnapshot(totals=PoolTotals(
        win=totals.get("win"),
        place=totals.get("place"),
        show=totals.get("show"),
    ))

    seen: set[int] = set()
    for raw in data.get("rows") or []:
        post = parse_leading_int(raw.get("post"))
        if post is None or post < 1:
            logger.debug(f"Skipping pools row without post position: {raw.get('post')!r}")
            continue
        if post in seen:
            logger.debug(f"Duplicate pools row for post {post}, keeping the first")
            continue
        seen.add(post)
        snapshot.rows.append(RunnerPoolRow(
            post_position=post,
            odds_raw=raw.get("odds"),
            win_amount_raw=raw.get("win"),
            place_amount_raw=raw.get("place"),
            show_amount_raw=raw.get("show"),
        ))
    return snapshot


class RaceDetailScraper:
    """Drives a fresh browsing context through one race's detail view."""

    def __init__(self, page_factory: Callable = new_page, listing_url: Optional[str] = None):
        self.page_factory = page_factory
        self.listing_url = listing_url or settings.listing_url

    @asynccontextmanager
    async def open_race(self, descriptor: RaceDescriptor):
        """Yield a page showing the race's detail view.

        The listing is reloaded in a new context and the row looked up again
        by its element id; handles from earlier pages are never reused.
        """
        selector = descriptor.element_selector
        if not selector:
            raise RaceNavigationError(f"{descriptor.label} has no element id to navigate by")

        async with self.page_factory(timeout=settings.race_navigation_timeout_ms) as page:
            try:
                await page.goto(
                    self.listing_url,
                    wait_until="domcontentloaded",
                    timeout=settings.race_navigation_timeout_ms,
                )
                await page.wait_for_selector(ROW_SELECTOR, timeout=settings.selector_timeout_ms)
                await page.wait_for_selector(selector, timeout=settings.selector_timeout_ms)
                async with page.expect_navigation(
                    wait_until="domcontentloaded",
                    timeout=settings.race_navigation_timeout_ms,
                ):
                    await page.click(selector)
            except Exception as e:
                raise RaceNavigationError(f"Could not navigate to {descriptor.label}: {e}") from e

            logger.info(f"Navigated to {descriptor.label}: {page.url}")
            yield page

    async def extract_mtp(self, page: Page) -> Optional[int]:
        """Minutes to post from the badge, or None when there is no badge."""
        try:
            await page.wait_for_selector(MTP_BADGE_SELECTOR, timeout=settings.mtp_timeout_ms)
            text = await page.evaluate(_MTP_TEXT_JS, MTP_VALUE_SELECTOR)
        except Exception as e:
            logger.info(f"No MTP badge: {e}")
            return None
        mtp = parse_minutes_to_post(text)
        logger.info(f"Extracted MTP: {mtp} minutes")
        return mtp

    async def extract_pools(self, page: Page) -> PoolSnapshot:
        """Open the pools view and read totals and runner rows."""
        await page.click(POOLS_TAB_SELECTOR)
        await page.wait_for_selector(POOLS_TABLE_SELECTOR, timeout=settings.pools_timeout_ms)
        # Pool amounts are filled in after the table shell renders
        await asyncio.sleep(settings.pools_settle_seconds)
        data = await page.evaluate(_POOLS_JS)
        snapshot = parse_pool_snapshot(data)
        logger.info(
            f"Extracted pools for {len(snapshot.rows)} runners "
            f"(totals win={snapshot.totals.win}, place={snapshot.totals.place}, show={snapshot.totals.show})"
        )
        return snapshot
