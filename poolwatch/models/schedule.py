"""Models for the persisted race schedule and its runners."""

from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from poolwatch.models.database import Base


class ScheduledRace(Base):
    """A race on the stored daily schedule."""

    __tablename__ = "drf_races"
    __table_args__ = (Index("ix_drf_races_date_number", "race_date", "race_number"),)

    race_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    track_name: Mapped[str] = mapped_column(String(100))
    race_number: Mapped[int] = mapped_column(Integer)
    race_date: Mapped[str] = mapped_column(String(10))  # MM/DD/YYYY
    purse: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    mtp: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # minutes to post

    runners: Mapped[List["ScheduledRunner"]] = relationship(
        "ScheduledRunner", back_populates="race", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "race_id": self.race_id,
            "track_name": self.track_name,
            "race_number": self.race_number,
            "race_date": self.race_date,
            "purse": self.purse,
            "mtp": self.mtp,
        }


class ScheduledRunner(Base):
    """A runner entered in a scheduled race."""

    __tablename__ = "drf_runners"
    __table_args__ = (Index("ix_drf_runners_race_post", "race_id", "post_position"),)

    runner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    race_id: Mapped[str] = mapped_column(String(64), ForeignKey("drf_races.race_id"))
    horse_name: Mapped[str] = mapped_column(String(100))
    post_position: Mapped[int] = mapped_column(Integer)

    # Pari-mutuel figures written by the pools scrape
    pool_odds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    win: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    place: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    show: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    race: Mapped["ScheduledRace"] = relationship("ScheduledRace", back_populates="runners")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "runner_id": self.runner_id,
            "race_id": self.race_id,
            "horse_name": self.horse_name,
            "post_position": self.post_position,
            "pool_odds": self.pool_odds,
            "win": self.win,
            "place": self.place,
            "show": self.show,
        }
