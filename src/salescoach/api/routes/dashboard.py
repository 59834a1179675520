"""
Dashboard API routes.
"""

import logging
import math
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from salescoach.api.auth import get_credentials
from salescoach.api.dependencies import get_demo_limits, get_voice_client
from salescoach.api.routes.conversations import conversation_date, conversation_title
from salescoach.api.schemas import (
    DashboardStatsResponse,
    DemoStatsResponse,
    RealStatsResponse,
    RecentSession,
)
from salescoach.auth import Credentials
from salescoach.db.connection import get_db
from salescoach.db.repositories import TrainingSessionRepository
from salescoach.exceptions import VoiceProviderError
from salescoach.quota import DemoLimits
from salescoach.stats import DashboardStatsService, RealStats
from salescoach.voice import ElevenLabsClient

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_SESSIONS_LIMIT = 10


@router.get("/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    credentials: Credentials = Depends(get_credentials),
    limits: DemoLimits = Depends(get_demo_limits),
    session: Session = Depends(get_db),
):
    """
    Usage and progress stats for the caller.

    Anonymous callers, callers without a profile, demo accounts and database
    failures all get demo stats, tagged with the reason.
    """
    stats = DashboardStatsService(session, limits).for_credentials(credentials)
    if isinstance(stats, RealStats):
        return RealStatsResponse(**asdict(stats))
    return DemoStatsResponse(**asdict(stats))


@router.get("/recent-sessions", response_model=list[RecentSession])
def get_recent_sessions(
    voice_client: Optional[ElevenLabsClient] = Depends(get_voice_client),
    session: Session = Depends(get_db),
) -> list[RecentSession]:
    """
    The ten most recent voice conversations with their cached scores.

    Degrades to an empty list when the voice provider is unavailable.
    """
    if voice_client is None:
        logger.warning("Voice provider not configured; no recent sessions")
        return []

    try:
        data = voice_client.list_conversations()
    except VoiceProviderError as e:
        logger.warning(f"Could not load recent sessions: {e}")
        return []

    raw_conversations = [
        c for c in (data.get("conversations") or []) if c.get("conversation_id")
    ][:RECENT_SESSIONS_LIMIT]
    analyzed = TrainingSessionRepository(session).get_by_conversation_ids(
        [c["conversation_id"] for c in raw_conversations]
    )

    recent = []
    for raw in raw_conversations:
        minutes = math.ceil((raw.get("call_duration_secs") or 0) / 60)
        cached = analyzed.get(raw["conversation_id"])
        recent.append(
            RecentSession(
                id=raw["conversation_id"],
                title=conversation_title(raw),
                duration=minutes,
                minutes=minutes,
                score=cached.overall_score if cached else None,
                date=conversation_date(raw),
                status="completed" if raw.get("status") == "done" else raw.get("status"),
                feedback=raw.get("transcript_summary") or "AI-powered analysis available",
            )
        )
    return recent
