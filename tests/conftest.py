"""Shared test fixtures for PoolWatch."""

from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncGenerator, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from poolwatch.config import settings
from poolwatch.models.database import Base
from poolwatch.models.schedule import ScheduledRace, ScheduledRunner
from poolwatch.schedule.store import ScheduleStore
from poolwatch.scrapers import listing, race_detail

RUN_DAY = date(2026, 10, 19)
RUN_DATE = "10/19/2026"


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No real waiting between steps or retries in tests."""
    monkeypatch.setattr(settings, "pools_settle_seconds", 0)
    monkeypatch.setattr(settings, "inter_race_delay", 0)
    monkeypatch.setattr(settings, "retry_base_delay", 0)
    monkeypatch.setattr(settings, "capture_screenshots", False)
    monkeypatch.setattr(settings, "listing_url", "https://example.test/todays-races")


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory) -> ScheduleStore:
    return ScheduleStore(session_factory)


async def add_race(session_factory, race_id, track_name, race_number, race_date=RUN_DATE, purse=None, runners=()):
    """Insert a scheduled race with (post_position, horse_name) runners."""
    async with session_factory() as db:
        db.add(ScheduledRace(
            race_id=race_id,
            track_name=track_name,
            race_number=race_number,
            race_date=race_date,
            purse=purse,
        ))
        for post, horse in runners:
            db.add(ScheduledRunner(
                runner_id=f"{race_id}-{post}",
                race_id=race_id,
                horse_name=horse,
                post_position=post,
            ))
        await db.commit()


async def get_runner(session_factory, runner_id) -> Optional[ScheduledRunner]:
    async with session_factory() as db:
        return await db.get(ScheduledRunner, runner_id)


async def get_race(session_factory, race_id) -> Optional[ScheduledRace]:
    async with session_factory() as db:
        return await db.get(ScheduledRace, race_id)


# ── Fake Playwright page ────────────────────────────────────────────────────


def listing_row(index, track_text, race_text, element_id=None, selector=".track-name"):
    """A raw listing row as returned by the in-page extraction script."""
    track_names = {sel: None for sel in listing.TRACK_NAME_SELECTORS}
    track_names[selector] = track_text
    return {
        "index": index,
        "elementId": element_id,
        "trackNames": track_names,
        "raceNumberText": race_text,
    }


def pools_row(post, odds=None, win=None, place=None, show=None):
    return {"post": post, "odds": odds, "win": win, "place": place, "show": show}


class _Navigation:
    def __init__(self, page):
        self.page = page

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.page.url = "https://example.test/race-detail"
        return False


class FakePage:
    """Scriptable stand-in for a Playwright page.

    ``fail_on`` holds keys that raise a Playwright timeout: "goto", or any
    selector passed to wait_for_selector / click.
    """

    def __init__(
        self,
        rows=None,
        title="Today's Races",
        body_text="Today's races",
        mtp_text="5",
        pools=None,
        fail_on=(),
    ):
        self.rows = rows or []
        self._title = title
        self.body_text = body_text
        self.mtp_text = mtp_text
        self.pools = pools if pools is not None else {"totals": {}, "rows": []}
        self.fail_on = set(fail_on)
        self.url = "about:blank"
        self.calls = []
        self.closed = False

    def _maybe_fail(self, key):
        if key in self.fail_on:
            raise PlaywrightTimeoutError(f"Timeout 5000ms exceeded waiting for {key}")

    async def goto(self, url, **kwargs):
        self.calls.append(("goto", url))
        self._maybe_fail("goto")
        self.url = url

    async def title(self):
        return self._title

    async def wait_for_selector(self, selector, **kwargs):
        self.calls.append(("wait_for_selector", selector))
        self._maybe_fail(selector)

    async def click(self, selector, **kwargs):
        self.calls.append(("click", selector))
        self._maybe_fail(selector)

    def expect_navigation(self, **kwargs):
        return _Navigation(self)

    async def evaluate(self, script, arg=None):
        if script == listing._BODY_TEXT_JS:
            return self.body_text
        if script == listing._EXTRACT_ROWS_JS:
            return self.rows
        if script == listing._PAGE_CLASSES_JS:
            return ["track-list"]
        if script == race_detail._MTP_TEXT_JS:
            return self.mtp_text
        if script == race_detail._POOLS_JS:
            return self.pools
        raise AssertionError(f"Unexpected script: {script[:40]}")

    async def screenshot(self, **kwargs):
        return b""


class PageFactory:
    """Stands in for ``new_page``: every call opens a new page from ``make_page``."""

    def __init__(self, make_page):
        self.make_page = make_page
        self.pages = []

    def __call__(self, timeout=None):
        @asynccontextmanager
        async def _open():
            page = self.make_page()
            self.pages.append(page)
            try:
                yield page
            finally:
                page.closed = True

        return _open()
