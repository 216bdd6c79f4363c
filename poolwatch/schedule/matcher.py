"""Reconcile listing races with the stored schedule for today."""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from poolwatch.schedule.store import PersistedRace, ScheduleStore
from poolwatch.scrapers.listing import RaceDescriptor

logger = logging.getLogger(__name__)


class MatchKind(str, enum.Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass
class MatchResult:
    """Outcome of matching one descriptor. ``race`` is None when unmatched."""

    descriptor: RaceDescriptor
    race: Optional[PersistedRace] = None
    kind: Optional[MatchKind] = None
    lookup_error: Optional[str] = None

    @property
    def unmatched(self) -> bool:
        return self.race is None

    @property
    def is_fuzzy(self) -> bool:
        return self.kind == MatchKind.FUZZY


def fuzzy_token(track_name: str) -> str:
    """First whitespace-delimited token of a clean track name."""
    parts = track_name.split()
    return parts[0] if parts else ""


class RaceMatcher:
    """Exact-then-fuzzy lookup of each descriptor against one race date.

    The fuzzy pass matches on the first word of the track name only and takes
    the first stored race it finds. "Saratoga" is unambiguous; "Penn National"
    against a schedule that also holds "Penn Downs" is not, so fuzzy matches
    are reported separately from exact ones.
    """

    def __init__(self, store: ScheduleStore, race_date: str):
        self.store = store
        self.race_date = race_date

    async def match(self, descriptor: RaceDescriptor) -> MatchResult:
        try:
            race = await self.store.find_exact_race(
                descriptor.track_name, descriptor.race_number, self.race_date
            )
            if race:
                logger.info(f"MATCH: {descriptor.label} -> {race.race_id}")
                return MatchResult(descriptor, race, MatchKind.EXACT)

            token = fuzzy_token(descriptor.track_name)
            candidates = await self.store.find_fuzzy_races(token, descriptor.race_number, self.race_date)
        except SQLAlchemyError as e:
            logger.error(f"Schedule lookup failed for {descriptor.label}: {e}")
            return MatchResult(descriptor, lookup_error=str(e))

        if candidates:
            race = candidates[0]
            if len(candidates) > 1:
                logger.warning(
                    f"Fuzzy match for {descriptor.label} is ambiguous "
                    f"({len(candidates)} candidates), using {race.track_name!r}"
                )
            logger.info(f"FUZZY MATCH: {descriptor.track_name!r} -> {race.track_name!r} R{race.race_number} ({race.race_id})")
            return MatchResult(descriptor, race, MatchKind.FUZZY)

        logger.info(f"NO MATCH: {descriptor.label}")
        return MatchResult(descriptor)

    async def match_all(self, descriptors: list[RaceDescriptor]) -> list[MatchResult]:
        """One MatchResult per descriptor, in listing order."""
        logger.info(f"Matching {len(descriptors)} races against schedule for {self.race_date}")
        return [await self.match(d) for d in descriptors]
