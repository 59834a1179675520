"""Voice-AI provider access: conversation client and transcript fetcher."""

from salescoach.voice.client import ElevenLabsClient
from salescoach.voice.transcript import (
    ConversationTranscript,
    TranscriptFetcher,
    TranscriptTurn,
    parse_turns,
)

__all__ = [
    "ConversationTranscript",
    "ElevenLabsClient",
    "TranscriptFetcher",
    "TranscriptTurn",
    "parse_turns",
]
