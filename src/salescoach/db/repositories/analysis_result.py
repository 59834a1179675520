"""
Analysis result repository.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import AnalysisResult, TrainingSession


class AnalysisResultRepository(BaseRepository[AnalysisResult]):
    """Repository for AnalysisResult model."""

    def __init__(self, session: Session):
        super().__init__(AnalysisResult, session)

    def get_by_session_id(self, session_id: uuid.UUID) -> Optional[AnalysisResult]:
        """Get the analysis stored for a session."""
        return (
            self.session.query(AnalysisResult)
            .filter(AnalysisResult.session_id == session_id)
            .first()
        )

    def get_by_conversation_id(self, conversation_id: str) -> Optional[AnalysisResult]:
        """
        Get the analysis for a voice conversation.

        Joins sessions (by conversation id) to analysis_results (by session id).

        Args:
            conversation_id: External conversation id

        Returns:
            AnalysisResult instance or None
        """
        return (
            self.session.query(AnalysisResult)
            .join(TrainingSession, AnalysisResult.session_id == TrainingSession.id)
            .filter(TrainingSession.conversation_id == conversation_id)
            .first()
        )

    def upsert(
        self,
        session_id: uuid.UUID,
        results: dict,
        provider: str,
        version: str,
        confidence_score: float,
        analysis_type: str = "sales_conversation",
    ) -> AnalysisResult:
        """
        Insert or replace the analysis for a session.

        ON CONFLICT (session_id) DO UPDATE: racing writers for the same
        session converge on one row, last writer wins.

        Returns:
            The stored AnalysisResult
        """
        values = {
            "analysis_type": analysis_type,
            "provider": provider,
            "version": version,
            "results": results,
            "confidence_score": confidence_score,
        }
        stmt = self._insert().values(id=uuid.uuid4(), session_id=session_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["session_id"], set_=values)
        self.session.execute(stmt)
        self.session.flush()

        stored = self.get_by_session_id(session_id)
        if stored is None:
            raise RuntimeError(f"Analysis upsert/fetch failed for session_id={session_id}")
        # Core upserts bypass the identity map
        self.session.refresh(stored)
        return stored
