"""
Tests for dashboard statistics.
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from salescoach.auth import ANONYMOUS, AuthUser, Credentials
from salescoach.db.repositories import UsageRepository
from salescoach.models.db import ProfileRole, SessionStatus
from salescoach.quota import DemoLimits
from salescoach.stats import DashboardStatsService, DemoStats, RealStats, streak_days

TODAY = date(2026, 10, 17)


def signed_in(auth_id: str) -> Credentials:
    return Credentials(method="bearer", user=AuthUser(id=auth_id), access_token="t")


class TestStreakDays:
    def test_no_sessions(self):
        assert streak_days([], TODAY) == 0

    def test_consecutive_days_ending_today(self):
        days = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]
        assert streak_days(days, TODAY) == 3

    def test_streak_may_end_yesterday(self):
        days = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]
        assert streak_days(days, TODAY) == 2

    def test_gap_breaks_streak(self):
        days = [TODAY, TODAY - timedelta(days=2), TODAY - timedelta(days=3)]
        assert streak_days(days, TODAY) == 1

    def test_stale_streak_is_zero(self):
        assert streak_days([TODAY - timedelta(days=3)], TODAY) == 0

    def test_duplicate_days_count_once(self):
        assert streak_days([TODAY, TODAY, TODAY - timedelta(days=1)], TODAY) == 2


class TestDashboardStatsService:
    @pytest.fixture
    def service(self, db_session) -> DashboardStatsService:
        return DashboardStatsService(db_session, DemoLimits(max_sessions=1, max_minutes=2.0))

    def test_anonymous(self, service):
        stats = service.for_credentials(ANONYMOUS)

        assert isinstance(stats, DemoStats)
        assert stats.reason == "unauthenticated"
        assert stats.minutes_left == 2.0
        assert stats.kind == "demo"

    def test_missing_profile(self, service):
        stats = service.for_credentials(signed_in("nobody"))
        assert stats.reason == "profile_not_found"

    def test_demo_account(self, service, make_profile):
        make_profile(
            "auth-d", role=ProfileRole.DEMO_USER, demo_sessions_used=1, demo_minutes_used=0.5
        )

        stats = service.for_credentials(signed_in("auth-d"))

        assert stats.reason == "demo_account"
        assert stats.minutes_left == pytest.approx(1.5)
        assert stats.total_sessions == 1
        assert stats.demo_limits["can_start_session"] is False

    def test_database_error_degrades_to_demo(self, service):
        with patch(
            "salescoach.db.repositories.profile.ProfileRepository.get_by_auth_id",
            side_effect=OperationalError("SELECT", {}, Exception("gone")),
        ):
            stats = service.for_credentials(signed_in("auth-x"))

        assert stats.reason == "database_error"

    def test_real_stats(
        self, db_session, service, user_profile, make_session, make_subscription
    ):
        make_session(user_profile, status=SessionStatus.ANALYZED, overall_score=8.0)
        make_session(user_profile, status=SessionStatus.COMPLETED, overall_score=7.0)
        make_session(user_profile, status=SessionStatus.ACTIVE)
        make_subscription(user_profile, plan_name="pro", minutes_limit=300, minutes_used=45)
        UsageRepository(db_session).record(user_profile.id, 12.5)
        db_session.commit()

        stats = service.for_credentials(signed_in(user_profile.auth_id))

        assert isinstance(stats, RealStats)
        assert stats.kind == "real"
        assert stats.total_sessions == 2
        assert stats.sessions_today == 3
        assert stats.average_score == 7.5
        assert stats.progress_score == 7.5
        assert stats.minutes_left == 255
        assert stats.total_minutes_used == pytest.approx(12.5)
        assert stats.subscription_tier == "pro"
        assert stats.streak_days == 1

    def test_real_stats_without_subscription(self, service, user_profile):
        stats = service.for_credentials(signed_in(user_profile.auth_id))

        assert stats.minutes_left == 100.0
        assert stats.subscription_tier == "starter"
        assert stats.average_score == 0.0
        assert stats.streak_days == 0
