"""
Conversation API routes.

Passthrough access to the voice provider's conversations, plus the
cache-first analysis endpoint.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from salescoach.analysis import AnalysisCache, ConversationAnalyzer
from salescoach.analysis.providers import LLMProvider
from salescoach.api.dependencies import (
    get_credential_resolver,
    get_llm_provider,
    get_transcript_fetcher,
    get_voice_client,
)
from salescoach.api.schemas import ConversationListResponse, ConversationSummary
from salescoach.auth import CredentialResolver
from salescoach.config import settings
from salescoach.db.connection import get_db
from salescoach.db.repositories import ProfileRepository, TrainingSessionRepository
from salescoach.exceptions import (
    LLMProviderError,
    TranscriptNotReadyError,
    VoiceProviderError,
)
from salescoach.models.db import Profile
from salescoach.voice import ElevenLabsClient, TranscriptFetcher

logger = logging.getLogger(__name__)

router = APIRouter()


def upstream_error(e: VoiceProviderError, message: str) -> HTTPException:
    """Map a voice provider failure: 404 stays 404, anything else is 502."""
    code = (
        status.HTTP_404_NOT_FOUND
        if e.status_code == status.HTTP_404_NOT_FOUND
        else status.HTTP_502_BAD_GATEWAY
    )
    return HTTPException(status_code=code, detail={"error": message, "details": e.body})


def _require_voice_client(voice_client: Optional[ElevenLabsClient]) -> ElevenLabsClient:
    if voice_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ElevenLabs API key not configured",
        )
    return voice_client


def conversation_date(raw: dict[str, Any]) -> Optional[datetime]:
    start = raw.get("start_time_unix_secs")
    if start is None:
        return None
    return datetime.fromtimestamp(start, tz=timezone.utc)


def conversation_title(raw: dict[str, Any]) -> str:
    if raw.get("call_summary_title"):
        return raw["call_summary_title"]
    started = conversation_date(raw)
    return f"Voice Training - {started.date().isoformat()}" if started else "Voice Training"


@router.get("", response_model=ConversationListResponse)
def list_conversations(
    voice_client: Optional[ElevenLabsClient] = Depends(get_voice_client),
    session: Session = Depends(get_db),
) -> ConversationListResponse:
    """
    List the voice provider's conversations.

    ``overall_score`` is filled in for conversations that have already been
    analyzed.
    """
    client = _require_voice_client(voice_client)
    try:
        data = client.list_conversations()
    except VoiceProviderError as e:
        raise upstream_error(e, "Failed to fetch conversations from ElevenLabs")

    raw_conversations = data.get("conversations") or []
    analyzed = TrainingSessionRepository(session).get_by_conversation_ids(
        [c["conversation_id"] for c in raw_conversations if c.get("conversation_id")]
    )

    conversations = []
    for raw in raw_conversations:
        conversation_id = raw.get("conversation_id")
        if not conversation_id:
            continue
        cached = analyzed.get(conversation_id)
        conversations.append(
            ConversationSummary(
                id=conversation_id,
                title=conversation_title(raw),
                date=conversation_date(raw),
                duration=raw.get("call_duration_secs") or 0,
                status=raw.get("status") or "completed",
                call_successful=raw.get("call_successful"),
                feedback_summary=raw.get("transcript_summary")
                or "AI-powered analysis available",
                overall_score=cached.overall_score if cached else None,
                message_count=raw.get("message_count"),
                agent_id=raw.get("agent_id"),
                agent_name=raw.get("agent_name"),
                direction=raw.get("direction"),
            )
        )

    logger.info(f"Listed {len(conversations)} voice conversations")
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.get("/{conversation_id}")
def get_conversation(
    conversation_id: str,
    voice_client: Optional[ElevenLabsClient] = Depends(get_voice_client),
) -> dict[str, Any]:
    """Return the voice provider's conversation JSON unchanged."""
    client = _require_voice_client(voice_client)
    try:
        return client.get_conversation(conversation_id)
    except VoiceProviderError as e:
        raise upstream_error(e, "Failed to fetch conversation from ElevenLabs")


@router.post("/{conversation_id}/analyze")
def analyze_conversation(
    conversation_id: str,
    request: Request,
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_db),
    fetcher: Optional[TranscriptFetcher] = Depends(get_transcript_fetcher),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> JSONResponse:
    """
    Analyze a conversation, or return its cached analysis.

    Credentials only decide whether a fresh analysis is persisted; they are
    resolved after the LLM call so auth problems never block analysis.

    The ``X-Analysis-Cache`` response header is ``hit`` or ``miss``.

    Raises:
        HTTPException 400: Transcript not ready yet (with Retry-After)
        HTTPException 404/502: Voice provider error
        HTTPException 502: LLM provider error
        HTTPException 503: Provider keys not configured
    """
    if fetcher is None or provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API keys not configured",
        )

    def attribute() -> Optional[Profile]:
        credentials = resolver.resolve(request.cookies, authorization)
        if credentials.user is None:
            return None
        return ProfileRepository(session).get_by_auth_id(credentials.user.id)

    analyzer = ConversationAnalyzer(
        cache=AnalysisCache(session),
        fetcher=fetcher,
        provider=provider,
        temperature=settings.analysis_temperature,
        max_tokens=settings.analysis_max_tokens,
    )

    try:
        outcome = analyzer.analyze(conversation_id, attribute=attribute)
    except TranscriptNotReadyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Transcript not ready yet, try again shortly",
                "conversation_id": e.conversation_id,
                "retry_after": e.retry_after,
            },
            headers={"Retry-After": str(e.retry_after)},
        )
    except VoiceProviderError as e:
        raise upstream_error(e, "Failed to fetch conversation from ElevenLabs")
    except LLMProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "LLM analysis failed", "details": str(e)},
        )

    return JSONResponse(
        content=outcome.payload,
        headers={"X-Analysis-Cache": "hit" if outcome.cached else "miss"},
    )
