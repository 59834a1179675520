"""
Tests for startup dependency checks.
"""

from unittest.mock import MagicMock, patch

import pytest

from salescoach import startup
from salescoach.config import settings
from salescoach.startup import (
    StartupCheckError,
    check_database_connection,
    check_database_migrations,
    check_required_environment,
    run_all_startup_checks,
)


def _failing_session_factory(message: str) -> MagicMock:
    session = MagicMock()
    session.__enter__.return_value = session
    session.execute.side_effect = Exception(message)
    return MagicMock(return_value=MagicMock(return_value=session))


class TestStartupCheckError:
    def test_str_includes_hint(self):
        error = StartupCheckError("Database down", "Start postgres")
        text = str(error)

        assert "STARTUP CHECK FAILED" in text
        assert "Database down" in text
        assert "Hint: Start postgres" in text

    def test_str_without_hint(self):
        assert "Hint" not in str(StartupCheckError("Broken"))


class TestCheckRequiredEnvironment:
    def test_missing_auth_settings(self):
        with patch.object(settings, "sqlalchemy_url", "sqlite://"), \
                patch.object(settings, "supabase_url", ""), \
                patch.object(settings, "supabase_anon_key", ""):
            with pytest.raises(StartupCheckError) as exc_info:
                check_required_environment()

        assert "SUPABASE_URL" in exc_info.value.message
        assert "SUPABASE_ANON_KEY" in exc_info.value.message
        assert "POSTGRES_HOST" not in exc_info.value.message

    def test_missing_postgres_settings(self):
        with patch.object(settings, "sqlalchemy_url", ""), \
                patch.object(settings, "postgres_host", ""), \
                patch.object(settings, "supabase_url", "https://auth.example.com"), \
                patch.object(settings, "supabase_anon_key", "anon"):
            with pytest.raises(StartupCheckError) as exc_info:
                check_required_environment()

        assert "POSTGRES_HOST" in exc_info.value.message

    def test_all_present(self):
        with patch.object(settings, "sqlalchemy_url", "sqlite://"), \
                patch.object(settings, "supabase_url", "https://auth.example.com"), \
                patch.object(settings, "supabase_anon_key", "anon"):
            check_required_environment()


class TestCheckDatabaseConnection:
    def test_connection_refused_hint(self):
        factory = _failing_session_factory("could not connect to server: Connection refused")
        with patch("salescoach.startup.get_session_factory", factory):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_connection()

        assert "PostgreSQL is not running" in exc_info.value.hint

    def test_authentication_hint(self):
        factory = _failing_session_factory("password authentication failed for user")
        with patch("salescoach.startup.get_session_factory", factory):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_connection()

        assert "authentication failed" in exc_info.value.hint

    def test_healthy(self):
        session = MagicMock()
        session.__enter__.return_value = session
        session.execute.return_value.scalar.return_value = 1
        factory = MagicMock(return_value=MagicMock(return_value=session))

        with patch("salescoach.startup.get_session_factory", factory):
            check_database_connection()


class TestCheckDatabaseMigrations:
    def test_skipped_for_sqlite(self):
        with patch.object(settings, "sqlalchemy_url", "sqlite://"), \
                patch("salescoach.startup.get_engine") as get_engine:
            check_database_migrations()

        get_engine.assert_not_called()


class TestRunAllStartupChecks:
    def test_exits_on_failed_check(self):
        with patch(
            "salescoach.startup.check_required_environment",
            side_effect=StartupCheckError("Missing required environment variables"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                run_all_startup_checks()

        assert exc_info.value.code == 1

    def test_records_metrics_when_all_pass(self):
        with patch("salescoach.startup.check_required_environment"), \
                patch("salescoach.startup.check_database_connection"), \
                patch("salescoach.startup.check_database_migrations"), \
                patch("salescoach.startup.check_provider_configuration"):
            run_all_startup_checks()

        assert startup.startup_metrics.checks_passed is True
        assert startup.startup_metrics.total_duration_ms is not None


class TestCheckReadiness:
    def test_not_ready_when_database_down(self):
        factory = _failing_session_factory("connection refused")
        with patch("salescoach.startup.get_session_factory", factory):
            ready, details = startup.check_readiness()

        assert ready is False
        assert details["database"] == "unhealthy"
