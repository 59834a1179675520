"""
Caller identity for API endpoints.

``get_credentials`` never fails: a request without a usable session cookie
or bearer token is simply anonymous. Endpoints that need a signed-in user
add ``require_credentials`` (401) and, when they also need the caller's
profile, ``require_profile`` (404 when the profile is missing).
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from salescoach.api.dependencies import get_credential_resolver
from salescoach.auth import CredentialResolver, Credentials
from salescoach.db.connection import get_db
from salescoach.db.repositories import ProfileRepository
from salescoach.models.db import Profile


def get_credentials(
    request: Request,
    authorization: Optional[str] = Header(None),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> Credentials:
    """Resolve the caller: session cookie first, then bearer token, else anonymous."""
    return resolver.resolve(request.cookies, authorization)


def require_credentials(
    credentials: Credentials = Depends(get_credentials),
) -> Credentials:
    """Reject anonymous callers with 401."""
    if credentials.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required - no valid session or bearer token provided",
        )
    return credentials


def get_optional_profile(
    credentials: Credentials = Depends(get_credentials),
    session: Session = Depends(get_db),
) -> Optional[Profile]:
    """The caller's profile, or None when anonymous or not yet provisioned."""
    if credentials.user is None:
        return None
    return ProfileRepository(session).get_by_auth_id(credentials.user.id)


def require_profile(
    credentials: Credentials = Depends(require_credentials),
    session: Session = Depends(get_db),
) -> Profile:
    """
    The signed-in caller's profile.

    Raises:
        HTTPException(401): Anonymous caller
        HTTPException(404): Authenticated, but no profile exists
    """
    profile = ProfileRepository(session).get_by_auth_id(credentials.user.id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found",
        )
    return profile
