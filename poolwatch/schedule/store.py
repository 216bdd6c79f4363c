"""Request/response access to the stored race schedule.

Each call opens its own session and commits on its own: there is no
transaction spanning two calls, and every update is an independent write.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from poolwatch.models.schedule import ScheduledRace, ScheduledRunner

logger = logging.getLogger(__name__)

# Columns the pools scrape is allowed to write on a runner
RUNNER_POOL_FIELDS = frozenset({"pool_odds", "win", "place", "show"})


@dataclass(frozen=True)
class PersistedRace:
    """Read-only view of a scheduled race."""

    race_id: str
    track_name: str
    race_number: int
    race_date: str
    purse: Optional[str] = None

    @classmethod
    def from_model(cls, race: ScheduledRace) -> "PersistedRace":
        return cls(
            race_id=race.race_id,
            track_name=race.track_name,
            race_number=race.race_number,
            race_date=race.race_date,
            purse=race.purse,
        )


@dataclass(frozen=True)
class RunnerRef:
    """Identity of a stored runner."""

    runner_id: str
    horse_name: str
    post_position: int


class ScheduleStore:
    """Queries and updates over the drf_races / drf_runners tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_exact_race(self, track_name: str, race_number: int, race_date: str) -> Optional[PersistedRace]:
        """Race with this exact track name, number and date, if any."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ScheduledRace)
                .where(
                    ScheduledRace.track_name == track_name,
                    ScheduledRace.race_number == race_number,
                    ScheduledRace.race_date == race_date,
                )
                .limit(1)
            )
            race = result.scalars().first()
            return PersistedRace.from_model(race) if race else None

    async def find_fuzzy_races(self, token: str, race_number: int, race_date: str) -> list[PersistedRace]:
        """Races whose track name contains ``token`` (case-insensitive), same number and date."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ScheduledRace)
                .where(
                    ScheduledRace.track_name.icontains(token, autoescape=True),
                    ScheduledRace.race_number == race_number,
                    ScheduledRace.race_date == race_date,
                )
                .order_by(ScheduledRace.race_id)
            )
            return [PersistedRace.from_model(r) for r in result.scalars().all()]

    async def set_minutes_to_post(self, race_id: str, minutes: int) -> int:
        """Write minutes-to-post for a race. Returns the number of rows updated."""
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScheduledRace).where(ScheduledRace.race_id == race_id).values(mtp=minutes)
            )
            await db.commit()
            return result.rowcount

    async def find_runners(self, race_id: str, post_position: int) -> list[RunnerRef]:
        """All runners stored for a race at a post position (normally one)."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ScheduledRunner).where(
                    ScheduledRunner.race_id == race_id,
                    ScheduledRunner.post_position == post_position,
                )
            )
            return [
                RunnerRef(runner_id=r.runner_id, horse_name=r.horse_name, post_position=r.post_position)
                for r in result.scalars().all()
            ]

    async def update_runner(self, runner_id: str, values: dict[str, Any]) -> int:
        """Apply a partial update to one runner. Returns the number of rows updated."""
        unknown = set(values) - RUNNER_POOL_FIELDS
        if unknown:
            raise ValueError(f"Not a runner pools field: {sorted(unknown)}")
        if not values:
            return 0
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScheduledRunner).where(ScheduledRunner.runner_id == runner_id).values(**values)
            )
            await db.commit()
            return result.rowcount
