"""Authentication: auth provider client and request credential resolution."""

from salescoach.auth.client import AuthUser, SupabaseAuthClient
from salescoach.auth.resolver import (
    ANONYMOUS,
    AuthMethod,
    CredentialResolver,
    Credentials,
    extract_bearer_token,
    extract_cookie_token,
)

__all__ = [
    "ANONYMOUS",
    "AuthMethod",
    "AuthUser",
    "CredentialResolver",
    "Credentials",
    "SupabaseAuthClient",
    "extract_bearer_token",
    "extract_cookie_token",
]
