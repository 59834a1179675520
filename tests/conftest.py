"""
Pytest configuration and fixtures for SalesCoach tests.

This module provides shared fixtures for the database, stand-ins for the
external providers (auth, voice, LLM), and sample profiles.
"""

import json
import uuid
from typing import Any, Callable, Generator, Optional

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from salescoach.analysis.providers import LLMProvider, LLMResponse
from salescoach.auth import AuthUser
from salescoach.models.db import (
    Base,
    Company,
    Profile,
    ProfileRole,
    SessionStatus,
    Subscription,
    TrainingSession,
)
from salescoach.voice import ElevenLabsClient, TranscriptFetcher

# Bearer tokens understood by FakeAuthClient
USER_TOKEN = "token-user"
DEMO_TOKEN = "token-demo"
ADMIN_TOKEN = "token-admin"
NEW_USER_TOKEN = "token-new"

USER_AUTH_ID = "auth-user-1"
DEMO_AUTH_ID = "auth-demo-1"
ADMIN_AUTH_ID = "auth-admin-1"
NEW_AUTH_ID = "auth-new-1"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    from sqlalchemy import JSON, event
    from sqlalchemy.dialects import postgresql

    # Replace JSONB with JSON for SQLite
    @event.listens_for(Base.metadata, "before_create")
    def _set_json_type(target, connection, **kw):
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, postgresql.JSONB):
                    column.type = JSON()

    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
    )

    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT; let SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection, join_transaction_mode="create_savepoint")()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# ===== Provider stand-ins =====


class FakeAuthClient:
    """Auth provider stand-in: a fixed token -> user table."""

    def __init__(self, users: Optional[dict[str, AuthUser]] = None):
        self.users = users or {}
        self.lookups: list[str] = []

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        self.lookups.append(access_token)
        return self.users.get(access_token)


class FakeVoiceProvider:
    """
    MockTransport handler emulating ``/convai/conversations``.

    ``responses[conversation_id]`` is a list of payloads served in order;
    the last one repeats. An int entry is served as that HTTP status.
    """

    def __init__(self):
        self.conversation_list: list[dict[str, Any]] = []
        self.responses: dict[str, list[Any]] = {}
        self.requests: list[httpx.Request] = []
        self.list_status = 200

    def calls_for(self, conversation_id: str) -> int:
        path = f"/v1/convai/conversations/{conversation_id}"
        return sum(1 for r in self.requests if r.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        prefix = "/v1/convai/conversations"

        if path == prefix:
            if self.list_status != 200:
                return httpx.Response(self.list_status, text="list failed")
            return httpx.Response(
                200, json={"conversations": self.conversation_list, "has_more": False}
            )

        conversation_id = path[len(prefix) + 1:]
        queue = self.responses.get(conversation_id)
        if not queue:
            return httpx.Response(404, json={"detail": "Conversation not found"})
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(entry, int):
            return httpx.Response(entry, text=f"upstream error {entry}")
        return httpx.Response(200, json=entry)

    def client(self) -> ElevenLabsClient:
        return ElevenLabsClient(
            api_key="test-elevenlabs-key",
            http_client=httpx.Client(transport=httpx.MockTransport(self.handler)),
        )


def conversation_payload(
    conversation_id: str,
    transcript: Optional[list[dict[str, Any]]] = None,
    duration: int = 95,
) -> dict[str, Any]:
    """Voice provider conversation JSON."""
    if transcript is None:
        transcript = [
            {"role": "agent", "message": "Hi, this is Dana from Acme. How can I help?"},
            {"role": "user", "message": "I wanted to walk you through our CRM."},
            {"role": "agent", "message": "We already have one, why switch?"},
            {"role": "user", "message": "It cuts data entry time in half."},
        ]
    return {
        "conversation_id": conversation_id,
        "agent_id": "agent_1",
        "status": "done",
        "transcript": transcript,
        "metadata": {"call_duration_secs": duration, "start_time_unix_secs": 1760000000},
        "analysis": {"call_successful": "success"},
    }


VALID_ANALYSIS = {
    "overall_score": 8.2,
    "key_strengths": ["Clear value proposition", "Calm objection handling"],
    "areas_for_improvement": ["Ask more discovery questions"],
    "specific_feedback": {
        "opening": "Good rapport.",
        "product_presentation": "Focused on time savings.",
        "objection_handling": "Addressed the switching cost.",
        "closing": "No explicit next step.",
    },
    "recommended_actions": ["Book a follow-up demo"],
    "conversation_summary": "Rep pitched the CRM and handled one objection.",
}


class FakeLLMProvider(LLMProvider):
    """LLM stand-in returning canned completions and counting calls."""

    def __init__(self, content: Optional[str] = None, error: Optional[Exception] = None):
        self.content = content if content is not None else json.dumps(VALID_ANALYSIS)
        self.error = error
        self.calls: list[dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return "gpt-4o-test"

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1500,
        temperature: float = 0.3,
        json_mode: bool = True,
    ) -> LLMResponse:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=self.content,
            prompt_tokens=900,
            completion_tokens=300,
            total_tokens=1200,
            finish_reason="stop",
            model=self.model_name,
            duration_ms=12.0,
        )

    def calculate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return 0.0


@pytest.fixture
def auth_client() -> FakeAuthClient:
    return FakeAuthClient(
        {
            USER_TOKEN: AuthUser(id=USER_AUTH_ID, email="user@acme.com"),
            DEMO_TOKEN: AuthUser(id=DEMO_AUTH_ID, email="demo@acme.com"),
            ADMIN_TOKEN: AuthUser(id=ADMIN_AUTH_ID, email="admin@acme.com"),
            NEW_USER_TOKEN: AuthUser(id=NEW_AUTH_ID, email="new@acme.com"),
        }
    )


@pytest.fixture
def voice() -> FakeVoiceProvider:
    return FakeVoiceProvider()


@pytest.fixture
def llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def sleeps() -> list[float]:
    """Records TranscriptFetcher waits instead of sleeping."""
    return []


@pytest.fixture
def fetcher(voice: FakeVoiceProvider, sleeps: list[float]) -> TranscriptFetcher:
    return TranscriptFetcher(voice.client(), sleep=sleeps.append)


@pytest.fixture
def api_client(
    db_session: Session,
    auth_client: FakeAuthClient,
    voice: FakeVoiceProvider,
    fetcher: TranscriptFetcher,
    llm: FakeLLMProvider,
):
    """Create a test client for FastAPI with database and provider overrides."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from salescoach.api.app import app
    from salescoach.api.dependencies import (
        get_api_key_cipher,
        get_auth_client,
        get_demo_limits,
        get_llm_provider,
        get_transcript_fetcher,
        get_voice_client,
    )
    from salescoach.crypto import ApiKeyCipher
    from salescoach.db.connection import get_db
    from salescoach.quota import DemoLimits

    # Override the get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    voice_client = fetcher.client
    cipher = ApiKeyCipher("test-encryption-secret")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    app.dependency_overrides[get_voice_client] = lambda: voice_client
    app.dependency_overrides[get_transcript_fetcher] = lambda: fetcher
    app.dependency_overrides[get_llm_provider] = lambda: llm
    app.dependency_overrides[get_api_key_cipher] = lambda: cipher
    app.dependency_overrides[get_demo_limits] = lambda: DemoLimits(
        max_sessions=1, max_minutes=2.0
    )

    # Disable lifespan startup checks for testing
    with patch("salescoach.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    # Clean up
    app.dependency_overrides.clear()


# ===== Sample data =====


@pytest.fixture
def sample_company(db_session: Session) -> Company:
    """Create a sample company for testing."""
    company = Company(id=uuid.uuid4(), name="Acme Corp", domain="acme.com", settings={})
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


@pytest.fixture
def make_profile(db_session: Session, sample_company: Company) -> Callable[..., Profile]:
    """Factory for profiles attached to the sample company."""

    def _make(
        auth_id: str,
        role: ProfileRole = ProfileRole.USER,
        email: Optional[str] = None,
        **fields: Any,
    ) -> Profile:
        profile = Profile(
            id=uuid.uuid4(),
            auth_id=auth_id,
            company_id=sample_company.id,
            email=email or f"{auth_id}@acme.com",
            first_name="Test",
            last_name="User",
            role=role,
            demo_sessions_used=fields.pop("demo_sessions_used", 0),
            demo_minutes_used=fields.pop("demo_minutes_used", 0.0),
            settings={},
            **fields,
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile

    return _make


@pytest.fixture
def user_profile(make_profile) -> Profile:
    return make_profile(USER_AUTH_ID, role=ProfileRole.USER, position="Account Executive")


@pytest.fixture
def demo_profile(make_profile) -> Profile:
    return make_profile(DEMO_AUTH_ID, role=ProfileRole.DEMO_USER)


@pytest.fixture
def admin_profile(make_profile) -> Profile:
    return make_profile(ADMIN_AUTH_ID, role=ProfileRole.ADMIN)


@pytest.fixture
def make_session(db_session: Session) -> Callable[..., TrainingSession]:
    """Factory for stored training sessions."""

    def _make(profile: Profile, **fields: Any) -> TrainingSession:
        training_session = TrainingSession(
            id=uuid.uuid4(),
            profile_id=profile.id,
            company_id=profile.company_id,
            title=fields.pop("title", "Cold call practice"),
            status=fields.pop("status", SessionStatus.ACTIVE),
            processing_status=fields.pop("processing_status", "ready"),
            analytics_summary={},
            **fields,
        )
        db_session.add(training_session)
        db_session.commit()
        db_session.refresh(training_session)
        return training_session

    return _make


@pytest.fixture
def make_subscription(db_session: Session) -> Callable[..., Subscription]:
    def _make(profile: Profile, **fields: Any) -> Subscription:
        subscription = Subscription(
            id=uuid.uuid4(),
            profile_id=profile.id,
            plan_name=fields.pop("plan_name", "professional"),
            status=fields.pop("status", "active"),
            minutes_limit=fields.pop("minutes_limit", 300.0),
            minutes_used=fields.pop("minutes_used", 0.0),
        )
        db_session.add(subscription)
        db_session.commit()
        db_session.refresh(subscription)
        return subscription

    return _make
