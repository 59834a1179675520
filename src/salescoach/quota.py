"""
Demo-tier quota enforcement.

Demo accounts get a fixed number of sessions and a fixed budget of minutes
per deployment. Checking is a pure function of the profile's counters;
consuming goes through single-statement conditional updates in
``ProfileRepository`` so concurrent session starts cannot double-spend.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from salescoach.config import settings
from salescoach.db.repositories import ProfileRepository
from salescoach.models.db import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemoLimits:
    """Per-deployment demo quota."""

    max_sessions: int = 1
    max_minutes: float = 2.0

    @classmethod
    def from_settings(cls) -> "DemoLimits":
        return cls(
            max_sessions=settings.demo_max_sessions,
            max_minutes=settings.demo_max_minutes,
        )


@dataclass(frozen=True)
class DemoUsage:
    """Snapshot of a demo profile's consumption against its limits."""

    max_sessions: int
    max_minutes: float
    sessions_used: int
    minutes_used: float

    @property
    def sessions_left(self) -> int:
        return max(0, self.max_sessions - self.sessions_used)

    @property
    def minutes_left(self) -> float:
        return max(0.0, self.max_minutes - self.minutes_used)

    @property
    def can_start_session(self) -> bool:
        return self.sessions_left > 0 and self.minutes_left > 0

    def as_dict(self) -> dict:
        return {
            "max_sessions": self.max_sessions,
            "max_minutes": self.max_minutes,
            "sessions_used": self.sessions_used,
            "minutes_used": self.minutes_used,
            "sessions_left": self.sessions_left,
            "minutes_left": self.minutes_left,
            "can_start_session": self.can_start_session,
        }


class DemoQuotaGuard:
    """Decide whether a profile may start a session, and record consumption."""

    def __init__(self, session: Session, limits: DemoLimits | None = None):
        self.limits = limits or DemoLimits.from_settings()
        self.profiles = ProfileRepository(session)

    def can_start(self, profile: Profile) -> bool:
        """Non-demo roles always pass; demo roles pass while both counters are under limit."""
        if not profile.is_demo:
            return True
        return self.usage(profile).can_start_session

    def usage(self, profile: Profile) -> DemoUsage:
        return DemoUsage(
            max_sessions=self.limits.max_sessions,
            max_minutes=self.limits.max_minutes,
            sessions_used=profile.demo_sessions_used or 0,
            minutes_used=profile.demo_minutes_used or 0.0,
        )

    def consume_session(self, profile_id: uuid.UUID) -> bool:
        """
        Consume one demo session slot.

        Returns:
            True if a slot was consumed, False if the profile was already at
            its limit (e.g. a concurrent request won the race)
        """
        consumed = self.profiles.increment_demo_sessions(
            profile_id, self.limits.max_sessions
        )
        if not consumed:
            logger.warning(f"Demo session slot for {profile_id} already consumed")
        return consumed

    def consume_minutes(self, profile_id: uuid.UUID, minutes: float) -> None:
        """Add fractional minutes to a demo profile's usage."""
        self.profiles.increment_demo_minutes(profile_id, minutes)
        logger.info(f"Recorded {minutes:.2f} demo minutes for {profile_id}")
