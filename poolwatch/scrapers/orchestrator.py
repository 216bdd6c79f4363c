"""Pools scrape orchestrator: listing -> schedule match -> per-race detail -> store."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from poolwatch.config import format_race_date, local_today, settings
from poolwatch.schedule.matcher import MatchResult, RaceMatcher
from poolwatch.schedule.store import ScheduleStore
from poolwatch.schedule.updater import PersistenceUpdater
from poolwatch.scrapers.listing import RaceDescriptor, extract_descriptors, open_listing
from poolwatch.scrapers.playwright_base import new_page
from poolwatch.scrapers.race_detail import RaceDetailScraper

logger = logging.getLogger(__name__)


@dataclass
class RaceOutcome:
    """What happened to one matched race during the detail pass."""

    track_name: str
    race_number: int
    race_id: str
    match_kind: str
    stored_track_name: str
    mtp: Optional[int] = None
    runners_seen: int = 0
    runners_updated: int = 0
    runners_skipped: int = 0
    ok: bool = False
    error: Optional[str] = None

    @classmethod
    def from_match(cls, match: MatchResult) -> "RaceOutcome":
        return cls(
            track_name=match.descriptor.track_name,
            race_number=match.descriptor.race_number,
            race_id=match.race.race_id,
            match_kind=match.kind.value,
            stored_track_name=match.race.track_name,
        )

    def to_dict(self) -> dict:
        return {
            "track_name": self.track_name,
            "race_number": self.race_number,
            "race_id": self.race_id,
            "match_kind": self.match_kind,
            "stored_track_name": self.stored_track_name,
            "mtp": self.mtp,
            "runners_seen": self.runners_seen,
            "runners_updated": self.runners_updated,
            "runners_skipped": self.runners_skipped,
            "ok": self.ok,
            "error": self.error,
        }


@dataclass
class RunSummary:
    """Counts and per-race notes for one run."""

    race_date: str
    scraped: int = 0
    exact: int = 0
    fuzzy: int = 0
    unmatched: int = 0
    lookup_errors: int = 0
    matches: list[MatchResult] = field(default_factory=list)
    unmatched_races: list[RaceDescriptor] = field(default_factory=list)
    outcomes: list[RaceOutcome] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def matched(self) -> int:
        return self.exact + self.fuzzy

    @property
    def races_ok(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def races_failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def record_matches(self, results: list[MatchResult]) -> None:
        for result in results:
            if result.unmatched:
                self.unmatched += 1
                self.unmatched_races.append(result.descriptor)
                if result.lookup_error:
                    self.lookup_errors += 1
            elif result.is_fuzzy:
                self.fuzzy += 1
                self.matches.append(result)
            else:
                self.exact += 1
                self.matches.append(result)

    def to_dict(self) -> dict:
        return {
            "race_date": self.race_date,
            "scraped": self.scraped,
            "matched": self.matched,
            "exact": self.exact,
            "fuzzy": self.fuzzy,
            "unmatched": self.unmatched,
            "lookup_errors": self.lookup_errors,
            "races_ok": self.races_ok,
            "races_failed": self.races_failed,
            "unmatched_races": [
                {"track_name": d.track_name, "race_number": d.race_number} for d in self.unmatched_races
            ],
            "races": [o.to_dict() for o in self.outcomes],
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }

    def format_report(self) -> list[str]:
        """Operator-facing report lines."""
        lines = [
            "=" * 60,
            "POOLS SCRAPE SUMMARY",
            "=" * 60,
            f"Date: {self.race_date}",
            f"Races scraped from listing: {self.scraped}",
            f"Matched: {self.matched} (exact {self.exact}, fuzzy {self.fuzzy})",
            f"Unmatched: {self.unmatched}" + (f" ({self.lookup_errors} lookup errors)" if self.lookup_errors else ""),
        ]

        if self.matches:
            lines.append("MATCHED RACES:")
            for i, m in enumerate(self.matches, 1):
                lines.append(f"  {i}. {m.descriptor.label} -> {m.race.race_id} | Purse: {m.race.purse or 'N/A'}")
                if m.is_fuzzy:
                    lines.append(f"     fuzzy: {m.descriptor.track_name!r} -> {m.race.track_name!r}")

        if self.unmatched_races:
            lines.append("UNMATCHED RACES:")
            for i, d in enumerate(self.unmatched_races, 1):
                lines.append(f"  {i}. {d.label}")

        if self.outcomes:
            lines.append(f"DETAIL PASS: {self.races_ok} ok, {self.races_failed} failed")
            for o in self.outcomes:
                if o.ok:
                    lines.append(
                        f"  PASS {o.track_name} R{o.race_number} [{o.match_kind}]: mtp={o.mtp}, "
                        f"runners {o.runners_updated}/{o.runners_seen} updated"
                    )
                else:
                    lines.append(f"  FAIL {o.track_name} R{o.race_number} [{o.match_kind}]: {o.error}")

        lines.append(f"Elapsed: {self.elapsed_seconds:.1f}s")
        lines.append("=" * 60)
        return lines


async def scrape_race(detail: RaceDetailScraper, updater: PersistenceUpdater, match: MatchResult) -> RaceOutcome:
    """Detail pass for one matched race. Never raises: failures end up on the outcome."""
    outcome = RaceOutcome.from_match(match)
    race_id = outcome.race_id
    label = match.descriptor.label
    logger.info(f"Scraping {label} ({race_id}, {outcome.match_kind} match)")

    try:
        async with detail.open_race(match.descriptor) as page:
            outcome.mtp = await detail.extract_mtp(page)
            await updater.update_race_time_to_post(race_id, outcome.mtp)

            snapshot = await detail.extract_pools(page)
            outcome.runners_seen = len(snapshot.rows)
            for row in snapshot.rows:
                if await updater.update_runner_pools(race_id, row):
                    outcome.runners_updated += 1
                else:
                    outcome.runners_skipped += 1
        outcome.ok = True
        logger.info(f"Completed {label}: {outcome.runners_updated}/{outcome.runners_seen} runners updated")
    except Exception as e:
        outcome.error = str(e)
        logger.error(f"Error scraping {label} ({race_id}): {e}")
    return outcome


async def run_pools_scrape(
    store: ScheduleStore,
    page_factory: Callable = new_page,
    today: Optional[date] = None,
    listing_url: Optional[str] = None,
    inter_race_delay: Optional[float] = None,
) -> RunSummary:
    """Run the whole pipeline once and return its summary.

    Only a failure to read the listing escapes (ListingUnavailableError or a
    browser launch error); every per-race failure is recorded on the summary.
    """
    started = time.monotonic()
    race_date = format_race_date(today or local_today())
    delay = settings.inter_race_delay if inter_race_delay is None else inter_race_delay
    summary = RunSummary(race_date=race_date)
    logger.info(f"Pools scrape starting for {race_date}")

    async with page_factory(timeout=settings.listing_timeout_ms) as page:
        await open_listing(page, listing_url)
        descriptors = await extract_descriptors(page)
    summary.scraped = len(descriptors)

    results = await RaceMatcher(store, race_date).match_all(descriptors)
    summary.record_matches(results)
    logger.info(
        f"Matched {summary.matched}/{summary.scraped} races "
        f"(exact {summary.exact}, fuzzy {summary.fuzzy}, unmatched {summary.unmatched})"
    )

    if not summary.matches:
        logger.warning(f"No matched races to process; check the schedule holds races for {race_date}")
    detail = RaceDetailScraper(page_factory=page_factory, listing_url=listing_url)
    updater = PersistenceUpdater(store)
    total = len(summary.matches)
    for i, match in enumerate(summary.matches, 1):
        logger.info(f"Processing race {i} of {total}")
        summary.outcomes.append(await scrape_race(detail, updater, match))
        if i < total and delay > 0:
            await asyncio.sleep(delay)

    summary.elapsed_seconds = time.monotonic() - started
    logger.info(f"Pools scrape complete in {summary.elapsed_seconds:.0f}s: {summary.races_ok} ok, {summary.races_failed} failed")
    return summary
