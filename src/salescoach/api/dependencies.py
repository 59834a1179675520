"""
Service dependencies for API routes.

External clients are built lazily from settings, once per process, and
handed to routes through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from salescoach.analysis.providers import LLMProvider, create_provider
from salescoach.auth import CredentialResolver, SupabaseAuthClient
from salescoach.config import settings
from salescoach.crypto import ApiKeyCipher
from salescoach.quota import DemoLimits
from salescoach.voice import ElevenLabsClient, TranscriptFetcher

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient(
        url=settings.supabase_url or "",
        anon_key=settings.supabase_anon_key or "",
        timeout=settings.supabase_auth_timeout,
    )


def get_credential_resolver(
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> CredentialResolver:
    return CredentialResolver(auth_client)


@lru_cache(maxsize=1)
def get_voice_client() -> Optional[ElevenLabsClient]:
    """Voice provider client, or None when no API key is configured."""
    if not settings.elevenlabs_api_key:
        logger.warning("ELEVENLABS_API_KEY not configured")
        return None
    return ElevenLabsClient(
        api_key=settings.elevenlabs_api_key,
        base_url=settings.elevenlabs_base_url,
        timeout=settings.elevenlabs_timeout,
    )


def get_transcript_fetcher(
    voice_client: Optional[ElevenLabsClient] = Depends(get_voice_client),
) -> Optional[TranscriptFetcher]:
    if voice_client is None:
        return None
    return TranscriptFetcher(
        voice_client,
        max_retries=settings.transcript_max_retries,
        retry_delay=settings.transcript_retry_delay_seconds,
        retry_after_seconds=settings.transcript_retry_after_seconds,
    )


@lru_cache(maxsize=1)
def get_llm_provider() -> Optional[LLMProvider]:
    """Configured LLM provider, or None when its API key is missing."""
    if settings.llm_provider == "anthropic":
        api_key, model = settings.anthropic_api_key, settings.anthropic_model
    else:
        api_key, model = settings.openai_api_key, settings.openai_model

    if not api_key:
        logger.warning(f"No API key configured for LLM provider {settings.llm_provider}")
        return None
    return create_provider(settings.llm_provider, api_key=api_key, model=model)


def get_demo_limits() -> DemoLimits:
    return DemoLimits.from_settings()


@lru_cache(maxsize=1)
def get_api_key_cipher() -> Optional[ApiKeyCipher]:
    if not settings.api_key_encryption_secret:
        logger.warning("API_KEY_ENCRYPTION_SECRET not configured")
        return None
    return ApiKeyCipher(settings.api_key_encryption_secret)
