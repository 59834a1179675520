"""
Dashboard statistics.

The result is a tagged union: ``RealStats`` for a provisioned, paying (or
admin) profile, and ``DemoStats`` carrying the reason the real numbers are
not available.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Literal, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.auth import Credentials
from salescoach.db.repositories import (
    ProfileRepository,
    SubscriptionRepository,
    TrainingSessionRepository,
    UsageRepository,
)
from salescoach.models.db import Profile
from salescoach.quota import DemoLimits, DemoQuotaGuard

logger = logging.getLogger(__name__)

DEFAULT_MINUTES_LEFT = 100.0
DEFAULT_TIER = "starter"

DemoReason = Literal["unauthenticated", "profile_not_found", "demo_account", "database_error"]


@dataclass
class RealStats:
    minutes_left: float
    sessions_today: int
    total_sessions: int
    total_minutes_used: float
    average_score: float
    progress_score: float
    streak_days: int
    subscription_tier: str
    kind: Literal["real"] = "real"


@dataclass
class DemoStats:
    reason: DemoReason
    minutes_left: float
    sessions_today: int = 0
    total_sessions: int = 0
    total_minutes_used: float = 0.0
    average_score: float = 0.0
    progress_score: float = 0.0
    streak_days: int = 0
    demo_limits: Optional[dict[str, Any]] = field(default=None)
    kind: Literal["demo"] = "demo"


DashboardStats = Union[RealStats, DemoStats]


def _as_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def streak_days(session_dates: list[date], today: date) -> int:
    """
    Count consecutive days with at least one session.

    The streak only counts if the most recent session day is today or
    yesterday.
    """
    days = sorted(set(session_dates), reverse=True)
    if not days or days[0] < today - timedelta(days=1):
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


class DashboardStatsService:
    """Builds dashboard stats for the resolved caller."""

    def __init__(self, session: Session, limits: DemoLimits | None = None):
        self.limits = limits or DemoLimits.from_settings()
        self.quota = DemoQuotaGuard(session, self.limits)
        self.profiles = ProfileRepository(session)
        self.sessions = TrainingSessionRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.usage = UsageRepository(session)

    def for_credentials(self, credentials: Credentials) -> DashboardStats:
        if credentials.user is None:
            return self._demo("unauthenticated")

        try:
            profile = self.profiles.get_by_auth_id(credentials.user.id)
            if profile is None:
                logger.warning(f"No profile for authenticated user {credentials.user.id}")
                return self._demo("profile_not_found")

            if profile.is_demo:
                return self._demo_account(profile)

            return self._real(profile)
        except SQLAlchemyError as e:
            logger.error(f"Could not load dashboard stats: {e}", exc_info=True)
            return self._demo("database_error")

    def _demo(self, reason: DemoReason) -> DemoStats:
        return DemoStats(reason=reason, minutes_left=self.limits.max_minutes)

    def _demo_account(self, profile: Profile) -> DemoStats:
        usage = self.quota.usage(profile)
        return DemoStats(
            reason="demo_account",
            minutes_left=usage.minutes_left,
            sessions_today=usage.sessions_used,
            total_sessions=usage.sessions_used,
            total_minutes_used=usage.minutes_used,
            demo_limits=usage.as_dict(),
        )

    def _real(self, profile: Profile) -> RealStats:
        now = datetime.now(timezone.utc)
        today = now.date()
        start_of_day = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
        start_of_month = datetime(today.year, today.month, 1, tzinfo=timezone.utc)

        subscription = self.subscriptions.get_active(profile.id)
        if subscription is not None:
            minutes_left = max(0.0, subscription.minutes_limit - subscription.minutes_used)
        else:
            minutes_left = DEFAULT_MINUTES_LEFT

        finished = self.sessions.get_finished_by_profile(profile.id)
        average = self.sessions.average_score(profile.id) or 0.0
        average = round(float(average), 1)

        return RealStats(
            minutes_left=minutes_left,
            sessions_today=self.sessions.count_since(profile.id, start_of_day),
            total_sessions=len(finished),
            total_minutes_used=self.usage.total_minutes_since(profile.id, start_of_month),
            average_score=average,
            progress_score=average,
            streak_days=streak_days([_as_date(s.created_at) for s in finished], today),
            subscription_tier=subscription.plan_name if subscription else DEFAULT_TIER,
        )
