"""
Transcript retrieval with bounded retry.

The voice provider exposes a conversation as soon as the call ends, but the
transcript is filled in asynchronously. An empty transcript is therefore
retried a fixed number of times; a provider error is not.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from salescoach.exceptions import TranscriptNotReadyError
from salescoach.voice.client import ElevenLabsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptTurn:
    """One utterance: ``role`` is "user" (the trainee) or "agent"."""

    role: str
    message: str

    @property
    def speaker(self) -> str:
        return "User" if self.role == "user" else "AI"

    def as_dict(self) -> dict[str, Any]:
        return {"role": self.role, "message": self.message}


@dataclass
class ConversationTranscript:
    """A conversation payload with its non-empty, ordered transcript."""

    conversation_id: str
    turns: list[TranscriptTurn]
    conversation: dict[str, Any] = field(default_factory=dict)

    @property
    def message_count(self) -> int:
        return len(self.turns)

    @property
    def duration_seconds(self) -> int:
        metadata = self.conversation.get("metadata") or {}
        return int(metadata.get("call_duration_secs") or 0)

    @property
    def start_time(self) -> Any:
        metadata = self.conversation.get("metadata") or {}
        return metadata.get("start_time_unix_secs")

    @property
    def status(self) -> Any:
        return self.conversation.get("status")

    @property
    def call_successful(self) -> Any:
        analysis = self.conversation.get("analysis") or {}
        return self.conversation.get("call_successful", analysis.get("call_successful"))

    def render(self) -> str:
        """Render as ``User: ...`` / ``AI: ...`` lines."""
        return "\n".join(f"{turn.speaker}: {turn.message}" for turn in self.turns)


def parse_turns(raw_transcript: Any) -> list[TranscriptTurn]:
    """Convert the provider's transcript list, dropping entries without a message."""
    turns = []
    for entry in raw_transcript or []:
        if not isinstance(entry, dict):
            continue
        message = entry.get("message")
        if not message:
            continue
        turns.append(TranscriptTurn(role=str(entry.get("role") or "agent"), message=str(message)))
    return turns


class TranscriptFetcher:
    """Fetch a conversation, retrying while its transcript is still empty."""

    def __init__(
        self,
        client: ElevenLabsClient,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        retry_after_seconds: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            client: Voice provider client
            max_retries: Retries after the first attempt
            retry_delay: Seconds to wait between attempts
            retry_after_seconds: Hint returned to callers when giving up
            sleep: Injected for tests
        """
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_after_seconds = retry_after_seconds
        self._sleep = sleep

    def fetch(self, conversation_id: str) -> ConversationTranscript:
        """
        Fetch a conversation with a non-empty transcript.

        Raises:
            VoiceProviderError: Provider returned non-2xx (never retried)
            TranscriptNotReadyError: Transcript still empty after all attempts
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            conversation = self.client.get_conversation(conversation_id)
            turns = parse_turns(conversation.get("transcript"))
            if turns:
                logger.info(
                    f"Transcript for {conversation_id} ready on attempt {attempt} "
                    f"({len(turns)} messages)"
                )
                return ConversationTranscript(
                    conversation_id=conversation_id,
                    turns=turns,
                    conversation=conversation,
                )

            if attempt < attempts:
                logger.info(
                    f"Transcript for {conversation_id} empty "
                    f"(attempt {attempt}/{attempts}), retrying in {self.retry_delay}s"
                )
                self._sleep(self.retry_delay)

        logger.warning(f"Transcript for {conversation_id} not ready after {attempts} attempts")
        raise TranscriptNotReadyError(
            conversation_id, attempts=attempts, retry_after=self.retry_after_seconds
        )
