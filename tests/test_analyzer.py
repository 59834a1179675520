"""
Tests for the cache-first conversation analyzer.
"""

import json

import pytest

from salescoach.analysis import (
    FALLBACK_ANALYSIS,
    AnalysisCache,
    ConversationAnalyzer,
    fallback_analysis,
    parse_analysis,
)
from salescoach.analysis.prompts import ANALYSIS_SYSTEM_PROMPT
from salescoach.db.repositories import AnalysisResultRepository, TrainingSessionRepository
from salescoach.exceptions import LLMProviderError, TranscriptNotReadyError
from salescoach.models.db import SessionStatus
from tests.conftest import VALID_ANALYSIS, FakeLLMProvider, conversation_payload


@pytest.fixture
def analyzer(db_session, fetcher, llm) -> ConversationAnalyzer:
    return ConversationAnalyzer(AnalysisCache(db_session), fetcher, llm)


class TestParseAnalysis:
    def test_valid_json_passes_through(self):
        assert parse_analysis(json.dumps(VALID_ANALYSIS)) == VALID_ANALYSIS

    def test_invalid_json_uses_raw_text_as_summary(self):
        analysis = parse_analysis("The rep did well overall.")

        assert analysis["conversation_summary"] == "The rep did well overall."
        assert analysis["overall_score"] == 7.5
        assert analysis["key_strengths"] == ["Conversation completed successfully"]
        assert analysis["specific_feedback"]["closing"] == "Analysis in progress"

    def test_json_array_uses_fallback(self):
        analysis = parse_analysis('["not", "an", "object"]')
        assert analysis["conversation_summary"] == '["not", "an", "object"]'
        assert analysis["overall_score"] == 7.5

    def test_empty_completion(self):
        assert parse_analysis(None) == fallback_analysis("")

    def test_score_is_clamped(self):
        assert parse_analysis('{"overall_score": 14}')["overall_score"] == 10.0
        assert parse_analysis('{"overall_score": -3}')["overall_score"] == 0.0
        assert parse_analysis('{"overall_score": "high"}')["overall_score"] == 7.5

    def test_missing_fields_are_filled(self):
        analysis = parse_analysis('{"overall_score": 6, "key_strengths": "Rapport"}')

        assert analysis["key_strengths"] == ["Rapport"]
        assert analysis["areas_for_improvement"] == FALLBACK_ANALYSIS["areas_for_improvement"]
        assert set(analysis["specific_feedback"]) == {
            "opening",
            "product_presentation",
            "objection_handling",
            "closing",
        }
        assert analysis["conversation_summary"] == ""

    def test_fallback_does_not_share_state(self):
        first = fallback_analysis("a")
        first["key_strengths"].append("mutated")
        assert fallback_analysis("b")["key_strengths"] == ["Conversation completed successfully"]


class TestConversationAnalyzer:
    def test_second_analysis_is_served_from_cache(
        self, analyzer, voice, llm, user_profile
    ):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        first = analyzer.analyze("conv_1", attribute=lambda: user_profile)
        second = analyzer.analyze("conv_1", attribute=lambda: user_profile)

        assert first.cached is False
        assert second.cached is True
        assert len(llm.calls) == 1
        assert voice.calls_for("conv_1") == 1
        assert json.dumps(second.payload, sort_keys=True) == json.dumps(
            first.payload, sort_keys=True
        )

    def test_payload_shape(self, analyzer, voice, llm, user_profile):
        voice.responses["conv_1"] = [conversation_payload("conv_1", duration=130)]

        payload = analyzer.analyze("conv_1", attribute=lambda: user_profile).payload

        assert payload["conversation_id"] == "conv_1"
        assert payload["analysis"] == VALID_ANALYSIS
        assert payload["provider"] == "openai"
        assert payload["model"] == "gpt-4o-test"
        assert payload["conversation_metadata"]["duration"] == 130
        assert payload["conversation_metadata"]["message_count"] == 4
        assert payload["raw_transcript_text"].startswith("AI: Hi, this is Dana")
        assert len(payload["transcript"]) == 4

    def test_prompt_contains_rendered_transcript(self, analyzer, voice, llm):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        analyzer.analyze("conv_1")

        call = llm.calls[0]
        assert call["system_prompt"] == ANALYSIS_SYSTEM_PROMPT
        assert "User: It cuts data entry time in half." in call["user_prompt"]
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 1500

    def test_persists_new_session_for_profile(
        self, analyzer, db_session, voice, user_profile
    ):
        voice.responses["conv_1"] = [conversation_payload("conv_1", duration=95)]

        outcome = analyzer.analyze("conv_1", attribute=lambda: user_profile)

        training_session = TrainingSessionRepository(db_session).get_by_conversation_id(
            "conv_1"
        )
        assert outcome.session_id == training_session.id
        assert training_session.profile_id == user_profile.id
        assert training_session.status == SessionStatus.ANALYZED
        assert training_session.overall_score == 8.2
        assert training_session.duration_seconds == 95
        assert training_session.title == "Voice Training - conv_1"

        stored = AnalysisResultRepository(db_session).get_by_session_id(training_session.id)
        assert stored.confidence_score == pytest.approx(0.82)
        assert stored.provider == "openai"
        assert stored.version == "gpt-4o-test"

    def test_attaches_to_existing_session(
        self, analyzer, db_session, voice, user_profile, make_session
    ):
        existing = make_session(
            user_profile, conversation_id="conv_1", status=SessionStatus.COMPLETED
        )
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        outcome = analyzer.analyze("conv_1", attribute=lambda: user_profile)

        assert outcome.session_id == existing.id
        db_session.refresh(existing)
        assert existing.status == SessionStatus.ANALYZED
        assert existing.analyzed_at is not None

    def test_anonymous_analysis_skips_existing_session(
        self, analyzer, db_session, voice, user_profile, make_session
    ):
        existing = make_session(
            user_profile, conversation_id="conv_9", status=SessionStatus.COMPLETED
        )
        voice.responses["conv_9"] = [conversation_payload("conv_9")]

        outcome = analyzer.analyze("conv_9", attribute=lambda: None)

        assert outcome.session_id is None
        assert AnalysisResultRepository(db_session).get_by_session_id(existing.id) is None
        db_session.refresh(existing)
        assert existing.status == SessionStatus.COMPLETED

    def test_anonymous_analysis_is_not_persisted(self, analyzer, db_session, voice, llm):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        first = analyzer.analyze("conv_1", attribute=lambda: None)
        analyzer.analyze("conv_1", attribute=lambda: None)

        assert first.session_id is None
        assert TrainingSessionRepository(db_session).get_by_conversation_id("conv_1") is None
        assert len(llm.calls) == 2

    def test_attribution_happens_after_llm_call(self, analyzer, voice, llm, user_profile):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]
        calls_at_attribution = []

        def attribute():
            calls_at_attribution.append(len(llm.calls))
            return user_profile

        analyzer.analyze("conv_1", attribute=attribute)

        assert calls_at_attribution == [1]

    def test_failed_attribution_still_returns_analysis(self, analyzer, voice):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        def attribute():
            raise RuntimeError("auth provider down")

        outcome = analyzer.analyze("conv_1", attribute=attribute)

        assert outcome.payload["analysis"] == VALID_ANALYSIS
        assert outcome.session_id is None

    def test_fallback_summary_is_raw_completion(
        self, db_session, fetcher, voice, user_profile
    ):
        llm = FakeLLMProvider(content="Solid call, weak close.")
        analyzer = ConversationAnalyzer(AnalysisCache(db_session), fetcher, llm)
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        payload = analyzer.analyze("conv_1", attribute=lambda: user_profile).payload

        assert payload["analysis"]["conversation_summary"] == "Solid call, weak close."
        assert payload["analysis"]["overall_score"] == 7.5

    def test_transcript_not_ready_skips_llm(self, analyzer, voice, llm):
        voice.responses["conv_1"] = [conversation_payload("conv_1", transcript=[])]

        with pytest.raises(TranscriptNotReadyError):
            analyzer.analyze("conv_1")

        assert llm.calls == []

    def test_llm_failure_stores_nothing(self, db_session, fetcher, voice, user_profile):
        llm = FakeLLMProvider(error=LLMProviderError("openai", "rate limited", 429))
        analyzer = ConversationAnalyzer(AnalysisCache(db_session), fetcher, llm)
        voice.responses["conv_1"] = [conversation_payload("conv_1")]

        with pytest.raises(LLMProviderError):
            analyzer.analyze("conv_1", attribute=lambda: user_profile)

        assert TrainingSessionRepository(db_session).get_by_conversation_id("conv_1") is None
