"""
Voice-training session lifecycle: create, finalize, read.

Sessions for anonymous callers (and callers that flag themselves as demo
users) are ephemeral: they get a ``demo-session-<ms>`` id, are never
written, and every later operation on a ``demo-`` id short-circuits
without touching the database.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.auth import Credentials
from salescoach.db.repositories import (
    AnalysisResultRepository,
    AuditLogRepository,
    SubscriptionRepository,
    TrainingSessionRepository,
    UsageRepository,
)
from salescoach.exceptions import (
    DemoQuotaExceededError,
    PermissionDeniedError,
    QuotaExceededError,
    SessionConflictError,
    SessionNotFoundError,
)
from salescoach.models.db import Profile, SessionStatus, TrainingSession
from salescoach.quota import DemoQuotaGuard

logger = logging.getLogger(__name__)

DEMO_PREFIX = "demo-"
DEFAULT_DEMO_TITLE = "Demo Voice Training Session"


def is_ephemeral(session_id: str) -> bool:
    return session_id.startswith(DEMO_PREFIX)


@dataclass
class SessionDescriptor:
    """What the client needs to track a running or finished session."""

    id: str
    title: str
    status: str
    processing_status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_demo: bool = False

    @classmethod
    def from_model(cls, training_session: TrainingSession) -> "SessionDescriptor":
        return cls(
            id=str(training_session.id),
            title=training_session.title,
            status=SessionStatus(training_session.status).value,
            processing_status=training_session.processing_status,
            started_at=training_session.started_at,
            ended_at=training_session.ended_at,
            duration_seconds=training_session.duration_seconds,
        )


@dataclass
class SessionView:
    """A persisted session with its owner summary and detailed analysis."""

    session: Optional[dict[str, Any]]
    is_demo: bool = False
    message: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


class SessionLifecycle:
    """Coordinates session rows, demo quota and usage bookkeeping."""

    def __init__(self, session: Session, quota: DemoQuotaGuard):
        self.session = session
        self.quota = quota
        self.sessions = TrainingSessionRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.usage = UsageRepository(session)
        self.audit = AuditLogRepository(session)
        self.analyses = AnalysisResultRepository(session)

    def create_session(
        self,
        credentials: Credentials,
        profile: Optional[Profile],
        title: Optional[str] = None,
        company_id: Optional[uuid.UUID] = None,
        demo_user: bool = False,
    ) -> SessionDescriptor:
        """
        Start a session.

        Args:
            credentials: Resolved caller
            profile: Caller's profile (required unless the session is ephemeral)
            title: Session title
            company_id: Overrides the profile's company
            demo_user: Client asked for an ephemeral demo session

        Raises:
            QuotaExceededError: Subscription minutes exhausted or demo quota used up
            SQLAlchemyError: The session row could not be written
        """
        if credentials.is_anonymous or demo_user:
            session_id = f"demo-session-{int(time.time() * 1000)}"
            logger.info(
                f"Ephemeral demo session {session_id} "
                f"({'anonymous' if credentials.is_anonymous else 'demo flag'})"
            )
            return SessionDescriptor(
                id=session_id,
                title=title or DEFAULT_DEMO_TITLE,
                status=SessionStatus.ACTIVE.value,
                processing_status="ready",
                started_at=datetime.now(timezone.utc),
                is_demo=True,
            )

        if profile is None:
            raise ValueError("An authenticated session requires a profile")

        subscription = self.subscriptions.get_active(profile.id)
        if subscription and subscription.minutes_used >= subscription.minutes_limit:
            raise QuotaExceededError(
                "Subscription minute limit reached. Please upgrade your plan."
            )

        if not self.quota.can_start(profile):
            raise DemoQuotaExceededError(
                "Demo limit reached: upgrade required to start another session"
            )

        if profile.is_demo:
            self._reserve_demo_slot(profile)

        training_session = self.sessions.create(
            profile_id=profile.id,
            company_id=company_id or profile.company_id,
            title=title or "Voice Training Session",
            status=SessionStatus.ACTIVE,
            processing_status="ready",
            started_at=datetime.now(timezone.utc),
        )
        logger.info(f"Created session {training_session.id} for profile {profile.id}")

        self._best_effort(
            "write audit log",
            lambda: self.audit.log(
                event_type="session",
                resource="sessions",
                action="create",
                user_id=profile.auth_id,
                company_id=profile.company_id,
                details={
                    "session_id": str(training_session.id),
                    "title": training_session.title,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            ),
        )

        return SessionDescriptor.from_model(training_session)

    def finalize_session(
        self,
        session_id: str,
        duration_seconds: int,
        transcript: Optional[list] = None,
        conversation_id: Optional[str] = None,
        profile: Optional[Profile] = None,
    ) -> SessionDescriptor:
        """
        Mark a session completed and record its usage.

        Raises:
            SessionNotFoundError: No persisted session with this id
            PermissionDeniedError: Caller neither owns the session nor is an admin
            SessionConflictError: A different conversation id is already attached
        """
        if is_ephemeral(session_id):
            logger.info(f"Finalized ephemeral session {session_id} (not persisted)")
            return SessionDescriptor(
                id=session_id,
                title=DEFAULT_DEMO_TITLE,
                status=SessionStatus.COMPLETED.value,
                processing_status="completed",
                ended_at=datetime.now(timezone.utc),
                duration_seconds=duration_seconds,
                is_demo=True,
            )

        training_session = self._get(session_id)
        if training_session is None:
            raise SessionNotFoundError(session_id)

        if profile is None or (
            training_session.profile_id != profile.id and not profile.is_admin
        ):
            raise PermissionDeniedError("Cannot finalize another user's session")

        if conversation_id and training_session.conversation_id not in (None, conversation_id):
            raise SessionConflictError(
                f"Session {session_id} is already linked to conversation "
                f"{training_session.conversation_id}"
            )

        training_session.duration_seconds = duration_seconds
        training_session.ended_at = datetime.now(timezone.utc)
        training_session.status = SessionStatus.COMPLETED
        training_session.processing_status = "completed"
        if transcript is not None:
            training_session.transcript = transcript
        if conversation_id:
            training_session.conversation_id = conversation_id
        self.session.flush()

        owner = training_session.profile
        if owner is not None:
            self._record_usage(owner, training_session, duration_seconds / 60)

        logger.info(f"Finalized session {session_id} ({duration_seconds}s)")
        return SessionDescriptor.from_model(training_session)

    def get_session(self, session_id: str) -> Optional[SessionView]:
        """
        Read a session with its analysis.

        Returns:
            SessionView, or None if no persisted session has this id
        """
        if is_ephemeral(session_id):
            return SessionView(
                session=None,
                is_demo=True,
                message="Demo session - using local data",
            )

        training_session = self._get(session_id)
        if training_session is None:
            return None

        owner = training_session.profile
        analysis = self.analyses.get_by_session_id(training_session.id)
        return SessionView(
            session={
                "id": str(training_session.id),
                "title": training_session.title,
                "status": SessionStatus(training_session.status).value,
                "duration": training_session.duration_seconds or 0,
                "transcript": training_session.transcript,
                "overall_score": training_session.overall_score,
                "feedback_summary": training_session.feedback_summary,
                "conversation_id": training_session.conversation_id,
                "created_at": training_session.created_at,
                "ended_at": training_session.ended_at,
                "analyzed_at": training_session.analyzed_at,
                "processing_status": training_session.processing_status,
                "profile": _profile_summary(owner) if owner else None,
                "detailed_analysis": analysis.results if analysis else None,
            },
            is_demo=False,
        )

    def _get(self, session_id: str) -> Optional[TrainingSession]:
        try:
            key = uuid.UUID(session_id)
        except ValueError:
            return None
        return self.sessions.get(key)

    def _record_usage(
        self, owner: Profile, training_session: TrainingSession, minutes: float
    ) -> None:
        if owner.is_demo:
            self._best_effort(
                "record demo minutes",
                lambda: self.quota.consume_minutes(owner.id, minutes),
            )

        self._best_effort(
            "record usage",
            lambda: self.usage.record(owner.id, minutes, session_id=training_session.id),
        )

        subscription = self.subscriptions.get_active(owner.id)
        if subscription is not None:
            self._best_effort(
                "update subscription minutes",
                lambda: self.subscriptions.increment_minutes_used(subscription.id, minutes),
            )

    def _reserve_demo_slot(self, profile: Profile) -> None:
        """
        Take the profile's demo slot before the session row is written.

        The conditional UPDATE matching no row means a concurrent request
        already took the slot. A store failure is logged and the session
        still starts.

        Raises:
            DemoQuotaExceededError: No slot left
        """
        savepoint = self.session.begin_nested()
        try:
            consumed = self.quota.consume_session(profile.id)
            savepoint.commit()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.warning(f"Failed to consume demo session: {e}", exc_info=True)
            return

        if not consumed:
            raise DemoQuotaExceededError(
                "Demo limit reached: upgrade required to start another session"
            )

    def _best_effort(self, what: str, operation) -> None:
        """Run a bookkeeping write in a savepoint; log and continue on failure."""
        savepoint = self.session.begin_nested()
        try:
            operation()
            savepoint.commit()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.warning(f"Failed to {what}: {e}", exc_info=True)


def _profile_summary(profile: Profile) -> dict[str, Any]:
    return {
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "company_name": profile.company.name if profile.company else None,
        "position": profile.position,
    }
