"""
Profile provisioning.

A profile is created once per auth-provider user, usually by the user
themselves right after sign-up. Self-registrations always get the demo
role; only admins may assign other roles or create profiles for someone
else.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from salescoach.auth import Credentials
from salescoach.db.repositories import CompanyRepository, ProfileRepository
from salescoach.exceptions import PermissionDeniedError, ProfileExistsError
from salescoach.models.db import Profile, ProfileRole

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_SETTINGS = {
    "notifications": True,
    "email_summaries": True,
    "onboarding_completed": False,
}


@dataclass
class ProfileCreateRequest:
    auth_id: str
    email: str
    first_name: str
    company_name: str
    last_name: Optional[str] = None
    role: Optional[ProfileRole] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    team_size: Optional[int] = None


def extract_domain(email: str) -> Optional[str]:
    """Domain part of an email address, lower-cased."""
    _, sep, domain = email.partition("@")
    if not sep:
        return None
    return domain.strip().lower() or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class ProfileService:
    """Creates profiles and their companies."""

    def __init__(self, session: Session):
        self.profiles = ProfileRepository(session)
        self.companies = CompanyRepository(session)

    def create_profile(
        self, credentials: Credentials, request: ProfileCreateRequest
    ) -> Profile:
        """
        Create a profile for ``request.auth_id``.

        Args:
            credentials: Resolved, non-anonymous caller
            request: Validated profile fields

        Returns:
            The new Profile

        Raises:
            PermissionDeniedError: Non-admin caller targeting another account
            ProfileExistsError: A profile already exists for the auth id
        """
        if credentials.user is None:
            raise PermissionDeniedError("Authentication required to create a profile")

        requester = self.profiles.get_by_auth_id(credentials.user.id)
        requester_is_admin = requester is not None and requester.is_admin

        if not requester_is_admin and credentials.user.id != request.auth_id:
            logger.warning(
                f"User {credentials.user.id} attempted to create a profile "
                f"for {request.auth_id}"
            )
            raise PermissionDeniedError("Cannot create profile for another user")

        requested_role = request.role or ProfileRole.DEMO_USER
        role = requested_role if requester_is_admin else ProfileRole.DEMO_USER
        if role != requested_role:
            logger.info(
                f"Role {requested_role.value} requested by non-admin "
                f"{credentials.user.id}; assigning {role.value}"
            )

        if self.profiles.get_by_auth_id(request.auth_id) is not None:
            raise ProfileExistsError(request.auth_id)

        company = self.companies.get_or_create_by_name(
            request.company_name.strip(), domain=extract_domain(request.email)
        )

        profile, created = self.profiles.insert_if_absent(
            request.auth_id,
            company_id=company.id,
            email=request.email.strip().lower(),
            first_name=request.first_name.strip(),
            last_name=_clean(request.last_name) or "",
            position=_clean(request.position),
            phone=_clean(request.phone),
            team_size=request.team_size,
            role=role,
            demo_sessions_used=0,
            demo_minutes_used=0.0,
            settings=dict(DEFAULT_PROFILE_SETTINGS),
        )
        if not created:
            raise ProfileExistsError(request.auth_id)

        logger.info(
            f"Created profile {profile.id} ({profile.email}) with role {role.value} "
            f"via {credentials.method}"
        )
        return profile
