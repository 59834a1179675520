"""
Analysis API routes.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.analysis import AnalysisCache
from salescoach.api.auth import get_optional_profile
from salescoach.api.schemas import AnalysisSaveRequest, AnalysisSaveResponse
from salescoach.config import settings
from salescoach.db.connection import get_db
from salescoach.models.db import Profile

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/save", response_model=AnalysisSaveResponse)
def save_analysis(
    body: AnalysisSaveRequest,
    profile: Optional[Profile] = Depends(get_optional_profile),
    session: Session = Depends(get_db),
) -> AnalysisSaveResponse:
    """
    Persist an analysis computed by the client.

    The conversation's existing session is reused; otherwise one is created
    for the caller's profile. Without either there is nowhere to store the
    analysis and ``success`` is false.

    Raises:
        HTTPException 500: The analysis could not be written
    """
    data = body.analysis_data
    cache = AnalysisCache(session)

    try:
        training_session = cache.attach_session(
            body.conversation_id,
            profile,
            title=data.title
            or f"Voice Training - {datetime.now(timezone.utc):%Y-%m-%d %H:%M}",
            duration_seconds=data.duration_seconds,
            overall_score=data.overall_score,
            message_count=data.message_count,
            feedback_summary=data.conversation_summary,
        )
        if training_session is None:
            return AnalysisSaveResponse(
                success=False, message="No user profile found, analysis not saved"
            )

        cache.store(
            training_session.id,
            data.model_dump(exclude_unset=True),
            provider="openai",
            version=data.model or settings.openai_model,
        )
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to save analysis for {body.conversation_id}: {e}", exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save analysis",
        )

    logger.info(f"Saved analysis for {body.conversation_id} to session {training_session.id}")
    return AnalysisSaveResponse(success=True, session_id=training_session.id)
