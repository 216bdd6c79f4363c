"""End-to-end tests for the pools scrape pipeline with a fake browser."""

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest

from poolwatch.config import settings
from poolwatch.schedule.matcher import MatchKind
from poolwatch.scrapers.base import ListingUnavailableError
from poolwatch.scrapers.listing import ROW_SELECTOR
from poolwatch.scrapers.orchestrator import RunSummary, run_pools_scrape
from poolwatch.scrapers.race_detail import POOLS_TABLE_SELECTOR
from tests.conftest import (
    RUN_DATE,
    RUN_DAY,
    FakePage,
    PageFactory,
    add_race,
    get_race,
    get_runner,
    listing_row,
    pools_row,
)

LISTING_ROWS = [
    listing_row(0, "ExpertEGulfstream ParkRace 3", "Race 3", "race-gp-3"),
    listing_row(1, "Aqueduct", "Race 5", "race-aqu-5"),
]

POOLS = {
    "totals": {"win": "$20,000", "place": "$9,000", "show": "$5,000"},
    "rows": [
        pools_row("1", "1/9", "$13,686", "$5,001", "$2,500"),
        pools_row("2", "15", "$1,020", "$640", "$301"),
        pools_row("SCR", "SCR", "SCR", "SCR", "SCR"),
    ],
}


async def _seed(session_factory):
    await add_race(session_factory, "GP-3", "Gulfstream Park", 3, purse="$40,000",
                   runners=[(1, "Gulf One"), (2, "Gulf Two")])
    await add_race(session_factory, "AQU-5", "Aqueduct Racetrack", 5,
                   runners=[(1, "Aqu One"), (2, "Aqu Two")])


class TestRunPoolsScrape:
    @pytest.mark.asyncio
    async def test_exact_and_fuzzy_scenario(self, store, session_factory):
        await _seed(session_factory)
        factory = PageFactory(lambda: FakePage(rows=LISTING_ROWS, mtp_text="9", pools=POOLS))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert summary.race_date == RUN_DATE
        assert summary.scraped == 2
        assert summary.exact == 1
        assert summary.fuzzy == 1
        assert summary.unmatched == 0
        assert summary.matched == 2
        assert [m.kind for m in summary.matches] == [MatchKind.EXACT, MatchKind.FUZZY]

    @pytest.mark.asyncio
    async def test_writes_mtp_and_pools(self, store, session_factory):
        await _seed(session_factory)
        factory = PageFactory(lambda: FakePage(rows=LISTING_ROWS, mtp_text="9", pools=POOLS))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert summary.races_ok == 2
        assert (await get_race(session_factory, "GP-3")).mtp == 9
        assert (await get_race(session_factory, "AQU-5")).mtp == 9
        runner = await get_runner(session_factory, "GP-3-1")
        assert runner.pool_odds == 1.11
        assert runner.win == 13686
        assert (await get_runner(session_factory, "AQU-5-2")).pool_odds == 16.0
        assert [o.runners_updated for o in summary.outcomes] == [2, 2]
        assert [o.runners_seen for o in summary.outcomes] == [2, 2]

    @pytest.mark.asyncio
    async def test_races_scraped_in_listing_order_with_fresh_pages(self, store, session_factory):
        await _seed(session_factory)
        factory = PageFactory(lambda: FakePage(rows=LISTING_ROWS, pools=POOLS))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        # one listing page plus one page per matched race
        assert len(factory.pages) == 3
        assert all(p.closed for p in factory.pages)
        clicked = [c[1] for p in factory.pages[1:] for c in p.calls if c[0] == "click" and "id=" in c[1]]
        assert clicked == ['[id="race-gp-3"]', '[id="race-aqu-5"]']
        assert [o.race_id for o in summary.outcomes] == ["GP-3", "AQU-5"]

    @pytest.mark.asyncio
    async def test_pause_between_races_not_after_last(self, store, session_factory, monkeypatch):
        await _seed(session_factory)
        await add_race(session_factory, "BEL-7", "Belmont", 7)
        rows = LISTING_ROWS + [listing_row(2, "Belmont", "Race 7", "race-bel-7")]
        factory = PageFactory(lambda: FakePage(rows=rows, pools=POOLS))
        monkeypatch.setattr(settings, "inter_race_delay", 2)

        with patch.object(asyncio, "sleep", new=AsyncMock()) as sleep:
            summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert summary.matched == 3
        assert [c for c in sleep.await_args_list if c == call(2)] == [call(2), call(2)]

    @pytest.mark.asyncio
    async def test_unmatched_races_not_scraped(self, store, session_factory):
        await add_race(session_factory, "GP-3", "Gulfstream Park", 3)
        factory = PageFactory(lambda: FakePage(rows=LISTING_ROWS, pools=POOLS))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert summary.exact == 1
        assert summary.unmatched == 1
        assert [d.label for d in summary.unmatched_races] == ["Aqueduct R5"]
        assert len(summary.outcomes) == 1

    @pytest.mark.asyncio
    async def test_one_race_failing_does_not_stop_the_next(self, store, session_factory):
        await _seed(session_factory)
        pages = iter([
            FakePage(rows=LISTING_ROWS),
            FakePage(rows=LISTING_ROWS, fail_on={POOLS_TABLE_SELECTOR}),
            FakePage(rows=LISTING_ROWS, mtp_text="3", pools=POOLS),
        ])
        factory = PageFactory(lambda: next(pages))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        first, second = summary.outcomes
        assert not first.ok
        assert first.error
        assert first.mtp == 5  # written before the pools step failed
        assert second.ok
        assert summary.races_failed == 1
        assert (await get_runner(session_factory, "GP-3-1")).win is None
        assert (await get_runner(session_factory, "AQU-5-1")).win == 13686

    @pytest.mark.asyncio
    async def test_navigation_failure_skips_race(self, store, session_factory):
        await _seed(session_factory)
        pages = iter([
            FakePage(rows=LISTING_ROWS),
            FakePage(fail_on={ROW_SELECTOR}),
            FakePage(pools=POOLS),
        ])
        factory = PageFactory(lambda: next(pages))

        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert [o.ok for o in summary.outcomes] == [False, True]
        assert "navigate" in summary.outcomes[0].error
        assert (await get_race(session_factory, "GP-3")).mtp is None

    @pytest.mark.asyncio
    async def test_listing_unreachable_is_fatal(self, store):
        factory = PageFactory(lambda: FakePage(fail_on={"goto"}))
        with pytest.raises(ListingUnavailableError):
            await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

    @pytest.mark.asyncio
    async def test_empty_listing(self, store):
        factory = PageFactory(lambda: FakePage(rows=[]))
        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        assert summary.scraped == 0
        assert summary.matched == 0
        assert summary.outcomes == []
        assert len(factory.pages) == 1


class TestRunSummary:
    @pytest.mark.asyncio
    async def test_report_flags_fuzzy_matches(self, store, session_factory):
        await _seed(session_factory)
        factory = PageFactory(lambda: FakePage(rows=LISTING_ROWS, pools=POOLS))
        summary = await run_pools_scrape(store, page_factory=factory, today=RUN_DAY)

        report = "\n".join(summary.format_report())
        assert "Matched: 2 (exact 1, fuzzy 1)" in report
        assert "fuzzy: 'Aqueduct' -> 'Aqueduct Racetrack'" in report
        assert "PASS Gulfstream Park R3 [exact]" in report
        assert "PASS Aqueduct R5 [fuzzy]" in report

    def test_to_dict_counts(self):
        summary = RunSummary(race_date=RUN_DATE, scraped=3, exact=1, fuzzy=1, unmatched=1)
        data = summary.to_dict()
        assert data["matched"] == 2
        assert data["unmatched"] == 1
        assert data["races"] == []

    def test_empty_report(self):
        report = RunSummary(race_date=RUN_DATE).format_report()
        assert "Races scraped from listing: 0" in report
