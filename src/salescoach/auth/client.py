"""Stateless client for the auth provider's user-lookup endpoint (Supabase GoTrue)."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    """User record as returned by the auth provider."""

    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


class SupabaseAuthClient:
    """
    Verifies access tokens against ``GET {url}/auth/v1/user``.

    No session or cookie state is kept between calls: every verification
    sends the token explicitly.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the auth client.

        Args:
            url: Auth provider project URL
            anon_key: Public (anon) API key sent as the ``apikey`` header
            timeout: Request timeout in seconds
            http_client: Optional preconfigured httpx client (tests inject a
                MockTransport-backed client here)
        """
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._client = http_client or httpx.Client(timeout=timeout)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        """
        Look up the user owning ``access_token``.

        Args:
            access_token: JWT issued by the auth provider

        Returns:
            AuthUser if the token is valid, None otherwise (never raises)
        """
        if not access_token or not self.url:
            return None

        try:
            response = self._client.get(
                f"{self.url}/auth/v1/user",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.warning(f"Auth provider request failed: {e}")
            return None

        if not response.is_success:
            logger.info(f"Auth provider rejected token (HTTP {response.status_code})")
            return None

        try:
            return AuthUser.from_payload(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed user payload from auth provider: {e}")
            return None

    def close(self) -> None:
        self._client.close()
