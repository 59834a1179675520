"""
Tests for profile provisioning.
"""

import pytest

from salescoach.auth import AuthUser, Credentials
from salescoach.db.repositories import CompanyRepository
from salescoach.exceptions import PermissionDeniedError, ProfileExistsError
from salescoach.models.db import Company, ProfileRole
from salescoach.profiles import ProfileCreateRequest, ProfileService, extract_domain
from tests.conftest import ADMIN_AUTH_ID


def caller(auth_id: str) -> Credentials:
    return Credentials(method="bearer", user=AuthUser(id=auth_id), access_token="t")


def request_for(auth_id: str, **overrides) -> ProfileCreateRequest:
    fields = {
        "auth_id": auth_id,
        "email": " Jane@Globex.COM ",
        "first_name": " Jane ",
        "company_name": " Globex ",
        "last_name": "Doe",
    }
    fields.update(overrides)
    return ProfileCreateRequest(**fields)


class TestExtractDomain:
    def test_domain(self):
        assert extract_domain("jane@Globex.com") == "globex.com"

    def test_no_at_sign(self):
        assert extract_domain("jane") is None


class TestProfileService:
    def test_self_registration(self, db_session):
        profile = ProfileService(db_session).create_profile(
            caller("auth-new"), request_for("auth-new")
        )

        assert profile.auth_id == "auth-new"
        assert profile.email == "jane@globex.com"
        assert profile.first_name == "Jane"
        assert profile.role == ProfileRole.DEMO_USER
        assert profile.demo_sessions_used == 0
        assert profile.company.name == "Globex"
        assert profile.company.domain == "globex.com"

    def test_self_registered_admin_is_downgraded(self, db_session):
        profile = ProfileService(db_session).create_profile(
            caller("auth-new"), request_for("auth-new", role=ProfileRole.ADMIN)
        )
        assert profile.role == ProfileRole.DEMO_USER

    def test_admin_may_assign_role_for_another_user(self, db_session, admin_profile):
        profile = ProfileService(db_session).create_profile(
            caller(ADMIN_AUTH_ID), request_for("auth-other", role=ProfileRole.USER)
        )

        assert profile.auth_id == "auth-other"
        assert profile.role == ProfileRole.USER

    def test_non_admin_cannot_create_for_someone_else(self, db_session, user_profile):
        with pytest.raises(PermissionDeniedError):
            ProfileService(db_session).create_profile(
                caller(user_profile.auth_id), request_for("auth-other")
            )

    def test_anonymous_rejected(self, db_session):
        with pytest.raises(PermissionDeniedError):
            ProfileService(db_session).create_profile(
                Credentials(method="anonymous"), request_for("auth-new")
            )

    def test_duplicate_auth_id(self, db_session):
        service = ProfileService(db_session)
        service.create_profile(caller("auth-new"), request_for("auth-new"))

        with pytest.raises(ProfileExistsError):
            service.create_profile(caller("auth-new"), request_for("auth-new"))

    def test_company_is_reused_by_name(self, db_session):
        service = ProfileService(db_session)
        first = service.create_profile(caller("auth-a"), request_for("auth-a"))
        second = service.create_profile(
            caller("auth-b"), request_for("auth-b", email="bob@other.io")
        )

        assert first.company_id == second.company_id
        assert db_session.query(Company).filter(Company.name == "Globex").count() == 1

    def test_company_match_is_exact(self, db_session):
        service = ProfileService(db_session)
        first = service.create_profile(caller("auth-a"), request_for("auth-a"))
        second = service.create_profile(
            caller("auth-b"), request_for("auth-b", company_name="globex")
        )
        assert first.company_id != second.company_id

    def test_existing_company_keeps_its_domain(self, db_session, sample_company):
        profile = ProfileService(db_session).create_profile(
            caller("auth-new"),
            request_for("auth-new", company_name="Acme Corp", email="x@gmail.com"),
        )

        assert profile.company_id == sample_company.id
        assert CompanyRepository(db_session).get_by_name("Acme Corp").domain == "acme.com"
