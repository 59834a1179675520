"""
Credential resolution for incoming requests.

Every endpoint that needs to know who is calling goes through
``CredentialResolver.resolve``, which tries the auth provider's session
cookie first and the ``Authorization: Bearer`` header second. Failure of
both is not an error: the caller is simply anonymous.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Literal, Mapping, Optional
from urllib.parse import unquote

from salescoach.auth.client import AuthUser, SupabaseAuthClient

logger = logging.getLogger(__name__)

AuthMethod = Literal["cookie", "bearer", "anonymous"]

# sb-<project-ref>-auth-token, optionally chunked as .0, .1, ...
_SESSION_COOKIE_RE = re.compile(r"^(sb-[A-Za-z0-9_-]+-auth-token)(?:\.(\d+))?$")
_BASE64_PREFIX = "base64-"


@dataclass(frozen=True)
class Credentials:
    """Outcome of credential resolution: an identity and how it was proven."""

    method: AuthMethod
    user: Optional[AuthUser] = None
    access_token: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None


ANONYMOUS = Credentials(method="anonymous")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def extract_cookie_token(cookies: Mapping[str, str]) -> Optional[str]:
    """
    Pull the access token out of the auth provider's session cookie.

    Handles chunked cookies (``.0``, ``.1`` suffixes are concatenated in
    order), the ``base64-`` value prefix, URL-encoded JSON, and both the
    object form (``{"access_token": ...}``) and the legacy list form
    (``[access_token, refresh_token, ...]``).

    Returns:
        The access token, or None if no usable session cookie is present
    """
    chunks: dict[str, dict[int, str]] = {}
    for name, value in cookies.items():
        match = _SESSION_COOKIE_RE.match(name)
        if not match or not value:
            continue
        index = int(match.group(2)) if match.group(2) is not None else -1
        chunks.setdefault(match.group(1), {})[index] = value

    for parts in chunks.values():
        if -1 in parts:
            raw = parts[-1]
        else:
            raw = "".join(parts[i] for i in sorted(parts))
        token = _decode_session_value(raw)
        if token:
            return token
    return None


def _decode_session_value(raw: str) -> Optional[str]:
    value = unquote(raw)
    if value.startswith(_BASE64_PREFIX):
        encoded = value[len(_BASE64_PREFIX):]
        try:
            value = base64.urlsafe_b64decode(
                encoded + "=" * (-len(encoded) % 4)
            ).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            logger.debug("Session cookie is not valid base64")
            return None

    try:
        session = json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Session cookie is not valid JSON")
        return None

    if isinstance(session, dict):
        token = session.get("access_token")
    elif isinstance(session, list) and session:
        token = session[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None


class CredentialResolver:
    """Resolve a request's identity: cookie session first, then bearer token."""

    def __init__(self, auth_client: SupabaseAuthClient):
        self.auth_client = auth_client

    def resolve(
        self,
        cookies: Mapping[str, str],
        authorization: Optional[str] = None,
    ) -> Credentials:
        """
        Determine who is calling.

        Args:
            cookies: Request cookie jar
            authorization: Raw ``Authorization`` header value

        Returns:
            Credentials with method "cookie" or "bearer", or ANONYMOUS
        """
        cookie_token = extract_cookie_token(cookies)
        if cookie_token:
            user = self.auth_client.get_user(cookie_token)
            if user:
                logger.debug(f"Authenticated via cookie: {user.id}")
                return Credentials(method="cookie", user=user, access_token=cookie_token)
            logger.info("Session cookie present but rejected by auth provider")

        bearer_token = extract_bearer_token(authorization)
        if bearer_token:
            user = self.auth_client.get_user(bearer_token)
            if user:
                logger.debug(f"Authenticated via bearer token: {user.id}")
                return Credentials(method="bearer", user=user, access_token=bearer_token)
            logger.info("Bearer token rejected by auth provider")

        return ANONYMOUS
