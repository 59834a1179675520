"""
HTTP client for the voice-AI provider (ElevenLabs Conversational AI).

Only the two read endpoints the backend needs are wrapped: the
conversation list and a single conversation with its transcript.
"""

import logging
from typing import Any, Optional

import httpx

from salescoach.exceptions import VoiceProviderError

logger = logging.getLogger(__name__)


class ElevenLabsClient:
    """
    Thin wrapper around ``/convai/conversations``.

    Non-2xx responses raise VoiceProviderError carrying the upstream status
    and body; transport failures raise VoiceProviderError(502).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.elevenlabs.io/v1",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise ValueError("ElevenLabs API key is required")

        self._client = http_client or httpx.Client(timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "xi-api-key": api_key,
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "ElevenLabsClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def list_conversations(self, page_size: Optional[int] = None) -> dict[str, Any]:
        """
        Fetch the account's conversation list.

        Args:
            page_size: Optional page size forwarded to the provider

        Returns:
            Provider JSON (``{"conversations": [...], "has_more": ...}``)
        """
        params = {"page_size": page_size} if page_size else None
        return self._get("/convai/conversations", params=params)

    def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        """
        Fetch one conversation including its transcript.

        Args:
            conversation_id: Provider conversation id

        Returns:
            Provider JSON for the conversation
        """
        return self._get(f"/convai/conversations/{conversation_id}")

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url, headers=self._headers, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Voice provider request to {path} failed: {e}")
            raise VoiceProviderError(502, str(e)) from e

        if not response.is_success:
            logger.error(
                f"Voice provider returned HTTP {response.status_code} for {path}: "
                f"{response.text[:500]}"
            )
            raise VoiceProviderError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise VoiceProviderError(502, f"Invalid JSON from voice provider: {e}") from e
