"""
Tests for the voice provider client and the transcript fetcher.
"""

import httpx
import pytest

from salescoach.exceptions import TranscriptNotReadyError, VoiceProviderError
from salescoach.voice import (
    ConversationTranscript,
    ElevenLabsClient,
    TranscriptFetcher,
    TranscriptTurn,
    parse_turns,
)
from tests.conftest import conversation_payload


class TestElevenLabsClient:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            ElevenLabsClient(api_key="")

    def test_sends_api_key_header(self, voice):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        voice.client().get_conversation("conv_1")

        assert voice.requests[0].headers["xi-api-key"] == "test-elevenlabs-key"

    def test_list_conversations(self, voice):
        voice.conversation_list = [{"conversation_id": "a"}, {"conversation_id": "b"}]

        data = voice.client().list_conversations()

        assert [c["conversation_id"] for c in data["conversations"]] == ["a", "b"]

    def test_non_2xx_raises_with_status_and_body(self, voice):
        voice.responses["conv_1"] = [500]

        with pytest.raises(VoiceProviderError) as exc_info:
            voice.client().get_conversation("conv_1")

        assert exc_info.value.status_code == 500
        assert "upstream error 500" in exc_info.value.body

    def test_transport_failure_is_502(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = ElevenLabsClient(
            api_key="k", http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        with pytest.raises(VoiceProviderError) as exc_info:
            client.list_conversations()

        assert exc_info.value.status_code == 502


class TestTranscript:
    def test_parse_turns_drops_empty_entries(self):
        turns = parse_turns(
            [
                {"role": "agent", "message": "Hello"},
                {"role": "user", "message": ""},
                {"role": "user", "message": None},
                "garbage",
                {"role": "user", "message": "Hi"},
            ]
        )
        assert turns == [TranscriptTurn("agent", "Hello"), TranscriptTurn("user", "Hi")]

    def test_parse_turns_handles_missing_transcript(self):
        assert parse_turns(None) == []

    def test_render_labels_speakers(self):
        transcript = ConversationTranscript(
            conversation_id="c",
            turns=[TranscriptTurn("agent", "Hello"), TranscriptTurn("user", "Hi there")],
        )
        assert transcript.render() == "AI: Hello\nUser: Hi there"

    def test_metadata_properties(self):
        transcript = ConversationTranscript(
            conversation_id="c",
            turns=[TranscriptTurn("user", "Hi")],
            conversation=conversation_payload("c", duration=130),
        )
        assert transcript.duration_seconds == 130
        assert transcript.start_time == 1760000000
        assert transcript.status == "done"
        assert transcript.call_successful == "success"
        assert transcript.message_count == 1


class TestTranscriptFetcher:
    def test_returns_immediately_when_ready(self, voice, fetcher, sleeps):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        transcript = fetcher.fetch("conv_1")

        assert transcript.message_count == 4
        assert voice.calls_for("conv_1") == 1
        assert sleeps == []

    def test_retries_until_transcript_appears(self, voice, fetcher, sleeps):
        voice.responses["conv_1"] = [
            conversation_payload("conv_1", transcript=[]),
            conversation_payload("conv_1", transcript=[]),
            conversation_payload("conv_1"),
        ]

        transcript = fetcher.fetch("conv_1")

        assert transcript.message_count == 4
        assert voice.calls_for("conv_1") == 3
        assert sleeps == [2.0, 2.0]

    def test_gives_up_after_three_retries(self, voice, fetcher, sleeps):
        voice.responses["conv_1"] = [conversation_payload("conv_1", transcript=[])]

        with pytest.raises(TranscriptNotReadyError) as exc_info:
            fetcher.fetch("conv_1")

        assert voice.calls_for("conv_1") == 4
        assert sleeps == [2.0, 2.0, 2.0]
        assert exc_info.value.attempts == 4
        assert exc_info.value.retry_after == 5
        assert exc_info.value.conversation_id == "conv_1"

    def test_transcript_of_blank_messages_counts_as_empty(self, voice, fetcher):
        voice.responses["conv_1"] = [
            conversation_payload("conv_1", transcript=[{"role": "agent", "message": ""}])
        ]

        with pytest.raises(TranscriptNotReadyError):
            fetcher.fetch("conv_1")

    def test_provider_error_is_not_retried(self, voice, fetcher, sleeps):
        voice.responses["conv_1"] = [503]

        with pytest.raises(VoiceProviderError):
            fetcher.fetch("conv_1")

        assert voice.calls_for("conv_1") == 1
        assert sleeps == []

    def test_custom_retry_policy(self, voice, sleeps):
        voice.responses["conv_1"] = [conversation_payload("conv_1", transcript=[])]
        fetcher = TranscriptFetcher(
            voice.client(), max_retries=1, retry_delay=0.5, retry_after_seconds=9,
            sleep=sleeps.append,
        )

        with pytest.raises(TranscriptNotReadyError) as exc_info:
            fetcher.fetch("conv_1")

        assert voice.calls_for("conv_1") == 2
        assert sleeps == [0.5]
        assert exc_info.value.retry_after == 9
