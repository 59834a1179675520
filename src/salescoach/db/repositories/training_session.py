"""
Training session repository.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import SessionStatus, TrainingSession


class TrainingSessionRepository(BaseRepository[TrainingSession]):
    """Repository for TrainingSession model."""

    def __init__(self, session: Session):
        super().__init__(TrainingSession, session)

    def get_by_conversation_id(self, conversation_id: str) -> Optional[TrainingSession]:
        """
        Get session by the voice provider's conversation id.

        Args:
            conversation_id: External conversation id

        Returns:
            TrainingSession instance or None
        """
        return (
            self.session.query(TrainingSession)
            .filter(TrainingSession.conversation_id == conversation_id)
            .first()
        )

    def get_by_conversation_ids(
        self, conversation_ids: List[str]
    ) -> dict[str, TrainingSession]:
        """
        Get sessions for many conversation ids at once.

        Returns:
            Mapping of conversation id to session (missing ids are absent)
        """
        if not conversation_ids:
            return {}
        rows = (
            self.session.query(TrainingSession)
            .filter(TrainingSession.conversation_id.in_(conversation_ids))
            .all()
        )
        return {row.conversation_id: row for row in rows if row.conversation_id}

    def insert_for_conversation(
        self, conversation_id: str, **fields: Any
    ) -> TrainingSession:
        """
        Create the session row for a conversation unless one already exists.

        INSERT ... ON CONFLICT (conversation_id) DO NOTHING, then re-read,
        so a second analysis request for the same conversation reuses the
        existing row instead of creating a duplicate.

        Args:
            conversation_id: External conversation id
            **fields: Remaining session columns

        Returns:
            The (possibly pre-existing) session
        """
        stmt = (
            self._insert()
            .values(id=uuid.uuid4(), conversation_id=conversation_id, **fields)
            .on_conflict_do_nothing(index_elements=["conversation_id"])
        )
        self.session.execute(stmt)
        self.session.flush()

        training_session = self.get_by_conversation_id(conversation_id)
        if training_session is None:
            raise RuntimeError(
                f"Session creation/fetch failed for conversation_id={conversation_id}"
            )
        return training_session

    def get_recent_by_profile(
        self, profile_id: uuid.UUID, limit: int = 100
    ) -> List[TrainingSession]:
        """Get a profile's sessions, newest first."""
        return (
            self.session.query(TrainingSession)
            .filter(TrainingSession.profile_id == profile_id)
            .order_by(TrainingSession.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_finished_by_profile(
        self, profile_id: uuid.UUID, limit: int = 100
    ) -> List[TrainingSession]:
        """Get a profile's completed or analyzed sessions, newest first."""
        return (
            self.session.query(TrainingSession)
            .filter(
                TrainingSession.profile_id == profile_id,
                TrainingSession.status.in_(
                    [SessionStatus.COMPLETED, SessionStatus.ANALYZED]
                ),
            )
            .order_by(TrainingSession.created_at.desc())
            .limit(limit)
            .all()
        )

    def count_since(self, profile_id: uuid.UUID, since: datetime) -> int:
        """Count sessions a profile created at or after ``since``."""
        return (
            self.session.query(func.count(TrainingSession.id))
            .filter(
                TrainingSession.profile_id == profile_id,
                TrainingSession.created_at >= since,
            )
            .scalar()
            or 0
        )

    def average_score(self, profile_id: uuid.UUID) -> Optional[float]:
        """Mean overall score across a profile's scored sessions."""
        return (
            self.session.query(func.avg(TrainingSession.overall_score))
            .filter(
                TrainingSession.profile_id == profile_id,
                TrainingSession.overall_score.isnot(None),
            )
            .scalar()
        )
