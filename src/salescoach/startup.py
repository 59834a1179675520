"""
Startup dependency checks for the SalesCoach backend.

Validates critical dependencies before the application starts serving requests.
Fails fast with clear, actionable error messages when requirements aren't met.
"""

import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from salescoach.config import settings
from salescoach.db.connection import get_engine, get_session_factory

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


@dataclass
class StartupMetrics:
    """Metrics collected during startup checks."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    environment_check_ms: Optional[float] = None
    database_check_ms: Optional[float] = None
    migrations_check_ms: Optional[float] = None
    providers_check_ms: Optional[float] = None
    checks_passed: bool = False
    last_check_time: Optional[datetime] = None


# Global startup metrics (populated during startup)
startup_metrics = StartupMetrics(started_at=datetime.now(timezone.utc))


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def _is_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


def check_database_connection() -> None:
    """
    Verify the database is accessible and responsive.

    Raises:
        StartupCheckError: If database connection fails
    """
    try:
        with get_session_factory()() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()

        if "could not connect" in error_str or "connection refused" in error_str:
            hint = (
                "PostgreSQL is not running.\n"
                "  - Start with Docker: docker compose up -d postgres"
            )
        elif "authentication failed" in error_str or "password" in error_str:
            hint = (
                "Database authentication failed.\n"
                "  - Check credentials in .env file\n"
                f"  - Current user: {settings.postgres_user}\n"
                f"  - Current database: {settings.postgres_db}"
            )
        elif "database" in error_str and "does not exist" in error_str:
            hint = (
                f"Database '{settings.postgres_db}' does not exist.\n"
                f"  - Create it: createdb {settings.postgres_db}\n"
                "  - Then run migrations: alembic upgrade head"
            )
        else:
            hint = f"Check your database configuration in .env\nError: {str(e)}"

        raise StartupCheckError(
            f"Cannot connect to database\n"
            f"Host: {settings.postgres_host}:{settings.postgres_port}\n"
            f"Database: {settings.postgres_db}\n"
            f"User: {settings.postgres_user}",
            hint,
        ) from e


def check_database_migrations() -> None:
    """
    Verify Alembic database migrations are current.

    Skipped for SQLite development databases, which are created with
    ``salescoach init-db``.

    Raises:
        StartupCheckError: If pending migrations exist
    """
    if _is_sqlite():
        return

    try:
        alembic_cfg = AlembicConfig(str(ALEMBIC_INI))
        script = ScriptDirectory.from_config(alembic_cfg)
        head_revision = script.get_current_head()

        with get_engine().connect() as connection:
            context = MigrationContext.configure(connection)
            current_revision = context.get_current_revision()

        if current_revision is None:
            raise StartupCheckError(
                "Database has no migration version\nDatabase appears uninitialized",
                "Run migrations: alembic upgrade head",
            )

        if current_revision != head_revision:
            pending = []
            for rev in script.iterate_revisions(head_revision, current_revision):
                if rev.revision != current_revision:
                    pending.append(f"  - {rev.revision}: {rev.doc}")

            pending_list = "\n".join(pending) if pending else "Unknown"

            raise StartupCheckError(
                f"Database migrations are out of date\n"
                f"Current revision: {current_revision}\n"
                f"Expected revision: {head_revision}\n"
                f"\nPending migrations:\n{pending_list}",
                "Run: alembic upgrade head",
            )

    except StartupCheckError:
        raise
    except Exception as e:
        raise StartupCheckError(
            f"Failed to check migration status: {str(e)}",
            "Verify Alembic is properly configured",
        ) from e


def check_required_environment() -> None:
    """
    Validate required environment variables are set.

    Raises:
        StartupCheckError: If critical environment variables are missing
    """
    missing = []

    if not _is_sqlite():
        if not settings.postgres_host:
            missing.append("POSTGRES_HOST")
        if not settings.postgres_db:
            missing.append("POSTGRES_DB")
        if not settings.postgres_user:
            missing.append("POSTGRES_USER")

    if not settings.supabase_url:
        missing.append("SUPABASE_URL")
    if not settings.supabase_anon_key:
        missing.append("SUPABASE_ANON_KEY")

    if missing:
        raise StartupCheckError(
            "Missing required environment variables:\n"
            + "\n".join(f"  - {var}" for var in missing),
            "Set these variables in your .env file",
        )


def check_provider_configuration() -> None:
    """
    Warn about unconfigured optional providers.

    The API still starts: conversation endpoints answer 503 and the
    recent-sessions list stays empty until the keys are set.
    """
    if not settings.elevenlabs_api_key:
        logger.warning("ELEVENLABS_API_KEY not set - conversation endpoints disabled")

    llm_key = (
        settings.anthropic_api_key
        if settings.llm_provider == "anthropic"
        else settings.openai_api_key
    )
    if not llm_key:
        logger.warning(
            f"No API key for LLM provider '{settings.llm_provider}' - analysis disabled"
        )

    if not settings.api_key_encryption_secret:
        logger.warning("API_KEY_ENCRYPTION_SECRET not set - /api-keys disabled")


def run_all_startup_checks() -> None:
    """
    Execute all startup dependency checks.

    Runs checks in order of dependency:
    1. Environment variables
    2. Database connection
    3. Database migrations
    4. Provider configuration (warnings only)

    Raises:
        SystemExit: After logging a failed critical check
    """
    global startup_metrics
    startup_start = time.time()

    checks = [
        ("Environment Variables", check_required_environment, "environment_check_ms"),
        ("Database Connection", check_database_connection, "database_check_ms"),
        ("Database Migrations", check_database_migrations, "migrations_check_ms"),
        ("Provider Configuration", check_provider_configuration, "providers_check_ms"),
    ]

    logger.info("Starting SalesCoach backend - running startup checks")

    for check_name, check_func, metric_name in checks:
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError as e:
            setattr(startup_metrics, metric_name, (time.time() - check_start) * 1000)
            logger.critical(f"Startup check '{check_name}' failed:{e}")
            sys.exit(1)
        check_duration = (time.time() - check_start) * 1000
        setattr(startup_metrics, metric_name, check_duration)
        logger.info(f"  {check_name}: PASS ({check_duration:.1f}ms)")

    now = datetime.now(timezone.utc)
    startup_metrics.completed_at = now
    startup_metrics.total_duration_ms = (time.time() - startup_start) * 1000
    startup_metrics.checks_passed = True
    startup_metrics.last_check_time = now

    logger.info(
        f"All startup checks passed ({startup_metrics.total_duration_ms:.1f}ms)"
    )


def check_readiness() -> tuple[bool, dict]:
    """
    Quick readiness check for load balancer probes.

    Returns:
        tuple: (is_ready, details) where details contains ready, database,
            startup_completed, uptime_seconds and startup_metrics
    """
    db_ready = False
    try:
        with get_session_factory()() as session:
            session.execute(text("SELECT 1"))
            db_ready = True
    except Exception:
        db_ready = False

    uptime = (datetime.now(timezone.utc) - startup_metrics.started_at).total_seconds()

    ready = startup_metrics.checks_passed and db_ready
    details = {
        "ready": ready,
        "database": "healthy" if db_ready else "unhealthy",
        "startup_completed": startup_metrics.checks_passed,
        "uptime_seconds": uptime,
        "startup_metrics": {
            "total_duration_ms": startup_metrics.total_duration_ms,
            "environment_check_ms": startup_metrics.environment_check_ms,
            "database_check_ms": startup_metrics.database_check_ms,
            "migrations_check_ms": startup_metrics.migrations_check_ms,
            "started_at": startup_metrics.started_at.isoformat(),
            "completed_at": (
                startup_metrics.completed_at.isoformat()
                if startup_metrics.completed_at
                else None
            ),
            "last_check_time": (
                startup_metrics.last_check_time.isoformat()
                if startup_metrics.last_check_time
                else None
            ),
        },
    }

    return ready, details
