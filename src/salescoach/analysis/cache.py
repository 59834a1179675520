"""
Database-backed analysis cache.

A conversation is analyzed at most once: the stored payload is looked up by
conversation id (sessions.conversation_id -> analysis_results.session_id)
and written with an upsert keyed by session id.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.db.repositories import (
    AnalysisResultRepository,
    TrainingSessionRepository,
)
from salescoach.models.db import AnalysisResult, Profile, SessionStatus, TrainingSession

logger = logging.getLogger(__name__)


def confidence_from_score(overall_score: Any) -> float:
    """Map a 0-10 score onto a 0-1 confidence value."""
    try:
        return float(overall_score) / 10
    except (TypeError, ValueError):
        return 0.0


class AnalysisCache:
    """Read-through cache of analysis payloads keyed by conversation id."""

    def __init__(self, session: Session):
        self.session = session
        self.sessions = TrainingSessionRepository(session)
        self.results = AnalysisResultRepository(session)

    def lookup(self, conversation_id: str) -> Optional[dict[str, Any]]:
        """
        Return the stored payload for a conversation, verbatim.

        Args:
            conversation_id: Voice provider conversation id

        Returns:
            The cached payload, or None on a miss
        """
        stored = self.results.get_by_conversation_id(conversation_id)
        if stored is None:
            logger.debug(f"Analysis cache miss for {conversation_id}")
            return None
        logger.info(f"Analysis cache hit for {conversation_id}")
        return stored.results

    def store(
        self,
        session_id: uuid.UUID,
        results: dict[str, Any],
        provider: str,
        version: str,
    ) -> AnalysisResult:
        """
        Upsert the payload for a session; confidence is overall_score / 10.

        The score is read from ``results["analysis"]`` for analyzer payloads
        and from the top level for client-computed analyses.
        """
        analysis = results.get("analysis")
        if not isinstance(analysis, dict):
            analysis = results
        return self.results.upsert(
            session_id=session_id,
            results=results,
            provider=provider,
            version=version,
            confidence_score=confidence_from_score(analysis.get("overall_score", 0)),
        )

    def attach_session(
        self,
        conversation_id: str,
        profile: Optional[Profile],
        *,
        title: str,
        duration_seconds: int = 0,
        overall_score: Optional[float] = None,
        message_count: int = 0,
        feedback_summary: Optional[str] = None,
    ) -> Optional[TrainingSession]:
        """
        Find or create the session row a conversation's analysis hangs off.

        An existing row for the conversation is reused and marked analyzed.
        Otherwise a row is created for ``profile``; without a profile there
        is nothing to attribute the session to and None is returned.
        """
        now = datetime.now(timezone.utc)
        analytics_summary = {
            "overall_score": overall_score,
            "message_count": message_count,
        }

        existing = self.sessions.get_by_conversation_id(conversation_id)
        if existing is not None:
            existing.status = SessionStatus.ANALYZED
            existing.analyzed_at = now
            if overall_score is not None:
                existing.overall_score = overall_score
            existing.analytics_summary = analytics_summary
            if feedback_summary:
                existing.feedback_summary = feedback_summary
            self.session.flush()
            return existing

        if profile is None:
            return None

        return self.sessions.insert_for_conversation(
            conversation_id,
            profile_id=profile.id,
            company_id=profile.company_id,
            title=title,
            status=SessionStatus.ANALYZED,
            processing_status="completed",
            started_at=now,
            ended_at=now,
            analyzed_at=now,
            duration_seconds=duration_seconds,
            overall_score=overall_score,
            feedback_summary=feedback_summary,
            analytics_summary=analytics_summary,
        )

    def record(
        self,
        conversation_id: str,
        profile: Optional[Profile],
        payload: dict[str, Any],
        provider: str,
        version: str,
    ) -> Optional[uuid.UUID]:
        """
        Persist a fresh analysis, best effort.

        Runs inside a savepoint: database errors are logged and rolled back
        without touching the rest of the request's transaction, and the
        caller still returns the analysis to the client.

        Analyses without a profile are returned to the caller but never
        stored, even when a session row for the conversation already exists.

        Returns:
            The session id the analysis was stored under, or None
        """
        if profile is None:
            logger.info(f"No profile for {conversation_id}; analysis not persisted")
            return None

        analysis = payload.get("analysis") or {}
        metadata = payload.get("conversation_metadata") or {}
        savepoint = self.session.begin_nested()
        try:
            training_session = self.attach_session(
                conversation_id,
                profile,
                title=f"Voice Training - {conversation_id}",
                duration_seconds=int(metadata.get("duration") or 0),
                overall_score=analysis.get("overall_score"),
                message_count=int(metadata.get("message_count") or 0),
                feedback_summary=analysis.get("conversation_summary"),
            )
            self.store(training_session.id, payload, provider, version)
            savepoint.commit()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error(
                f"Failed to persist analysis for {conversation_id}: {e}", exc_info=True
            )
            return None

        logger.info(
            f"Stored analysis for {conversation_id} under session {training_session.id}"
        )
        return training_session.id
