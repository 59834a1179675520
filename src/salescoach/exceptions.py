"""Custom exceptions for SalesCoach."""

from typing import Optional


class SalesCoachError(Exception):
    """Base class for domain errors raised by SalesCoach services."""


class VoiceProviderError(SalesCoachError):
    """Raised when the voice-AI provider returns a non-2xx response or is unreachable."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Voice provider error (HTTP {status_code}): {body[:200]}")


class TranscriptNotReadyError(SalesCoachError):
    """Raised when a conversation transcript is still empty after all retries."""

    def __init__(self, conversation_id: str, attempts: int, retry_after: int):
        self.conversation_id = conversation_id
        self.attempts = attempts
        self.retry_after = retry_after
        super().__init__(
            f"Transcript for conversation {conversation_id} not ready "
            f"after {attempts} attempts"
        )


class LLMProviderError(SalesCoachError):
    """Raised when the LLM provider call fails."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} completion failed: {message}")


class QuotaExceededError(SalesCoachError):
    """Raised when a profile may not start another session."""


class DemoQuotaExceededError(QuotaExceededError):
    """Raised when a demo profile has used its session or minute allowance."""


class ProfileExistsError(SalesCoachError):
    """Raised when a profile already exists for an auth id."""

    def __init__(self, auth_id: str):
        self.auth_id = auth_id
        super().__init__(f"Profile already exists for auth_id {auth_id}")


class PermissionDeniedError(SalesCoachError):
    """Raised when the caller may not perform a write on the target resource."""


class SessionNotFoundError(SalesCoachError):
    """Raised when a persisted session id does not exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionConflictError(SalesCoachError):
    """Raised when a write-once session field would be overwritten."""


class ApiKeyDecryptionError(SalesCoachError):
    """Raised when a stored API key cannot be authenticated or decrypted."""
