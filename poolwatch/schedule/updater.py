"""Write normalised time-to-post and pools figures back to the schedule."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from poolwatch.schedule.store import ScheduleStore
from poolwatch.scrapers.normalize import clean_amount, odds_to_decimal
from poolwatch.scrapers.race_detail import RunnerPoolRow

logger = logging.getLogger(__name__)


@dataclass
class NormalizedRunnerUpdate:
    """Fields that normalised successfully for one runner. None means "leave as stored"."""

    post_position: int
    decimal_odds: Optional[float] = None
    win: Optional[float] = None
    place: Optional[float] = None
    show: Optional[float] = None

    @classmethod
    def from_row(cls, row: RunnerPoolRow) -> "NormalizedRunnerUpdate":
        return cls(
            post_position=row.post_position,
            decimal_odds=odds_to_decimal(row.odds_raw),
            win=clean_amount(row.win_amount_raw),
            place=clean_amount(row.place_amount_raw),
            show=clean_amount(row.show_amount_raw),
        )

    def to_values(self) -> dict:
        """Column values to write, omitting anything that did not normalise."""
        values = {
            "pool_odds": self.decimal_odds,
            "win": self.win,
            "place": self.place,
            "show": self.show,
        }
        return {k: v for k, v in values.items() if v is not None}


class PersistenceUpdater:
    """Per-race and per-runner writes. Failures are logged, never raised."""

    def __init__(self, store: ScheduleStore):
        self.store = store

    async def update_race_time_to_post(self, race_id: str, minutes: Optional[int]) -> bool:
        """Store minutes-to-post for a race; no-op when ``minutes`` is None."""
        if minutes is None:
            return False
        try:
            updated = await self.store.set_minutes_to_post(race_id, minutes)
        except SQLAlchemyError as e:
            logger.error(f"Error updating MTP for {race_id}: {e}")
            return False
        if not updated:
            logger.warning(f"No stored race {race_id} to update MTP on")
            return False
        logger.info(f"Updated MTP for {race_id}: {minutes} minutes")
        return True

    async def update_runner_pools(self, race_id: str, row: RunnerPoolRow) -> bool:
        """Apply one pools row to the stored runner at its post position.

        Returns True only when a runner was written.
        """
        post = row.post_position
        try:
            runners = await self.store.find_runners(race_id, post)
        except SQLAlchemyError as e:
            logger.error(f"Error finding runner for {race_id} post {post}: {e}")
            return False

        if not runners:
            logger.info(f"No runner found for race {race_id} post position {post}")
            return False
        if len(runners) > 1:
            logger.warning(
                f"{len(runners)} runners stored for race {race_id} post position {post} "
                f"({', '.join(r.runner_id for r in runners)}), skipping"
            )
            return False

        runner = runners[0]
        normalized = NormalizedRunnerUpdate.from_row(row)
        values = normalized.to_values()
        if not values:
            logger.debug(f"Nothing to update for {runner.horse_name} (post {post}) in {race_id}")
            return False

        try:
            updated = await self.store.update_runner(runner.runner_id, values)
        except SQLAlchemyError as e:
            logger.error(f"Error updating runner {runner.runner_id}: {e}")
            return False
        if not updated:
            logger.warning(f"Runner {runner.runner_id} disappeared before its pools update")
            return False

        logger.info(
            f"Updated {runner.horse_name} (post {post}): odds={normalized.decimal_odds}, "
            f"win={normalized.win}, place={normalized.place}, show={normalized.show}"
        )
        return True
