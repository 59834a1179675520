"""
Sales-conversation analyzer.

Flow for one request::

    cache lookup --hit--> respond with stored payload
        |
       miss
        v
    fetch transcript -> LLM call -> normalize -> persist (best effort) -> respond

The LLM is only called on a miss, so repeat requests for an analyzed
conversation never reach the provider.
"""

import json
import logging
import uuid
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from salescoach.analysis.cache import AnalysisCache
from salescoach.analysis.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    FEEDBACK_SECTIONS,
    LIST_FIELDS,
    build_user_prompt,
)
from salescoach.analysis.providers import LLMProvider
from salescoach.models.db import Profile
from salescoach.voice import ConversationTranscript, TranscriptFetcher

logger = logging.getLogger(__name__)

FALLBACK_SCORE = 7.5

FALLBACK_ANALYSIS: dict[str, Any] = {
    "overall_score": FALLBACK_SCORE,
    "key_strengths": ["Conversation completed successfully"],
    "areas_for_improvement": ["Analysis pending"],
    "specific_feedback": {section: "Analysis in progress" for section in FEEDBACK_SECTIONS},
    "recommended_actions": ["Review conversation for improvement opportunities"],
    "conversation_summary": "",
}


def fallback_analysis(raw_text: str) -> dict[str, Any]:
    """Deterministic analysis used when the model output is not a JSON object."""
    analysis = deepcopy(FALLBACK_ANALYSIS)
    analysis["conversation_summary"] = raw_text
    return analysis


def _as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return FALLBACK_SCORE
    return max(0.0, min(10.0, score))


def parse_analysis(text: Optional[str]) -> dict[str, Any]:
    """
    Parse and normalize the model's analysis.

    Invalid JSON, or JSON that is not an object, yields the fallback with the
    raw text as the summary. A valid object has missing keys filled from the
    fallback, its score clamped to [0, 10] and its list fields coerced to
    lists of strings.

    Args:
        text: Raw completion text

    Returns:
        Analysis dict with every expected key present
    """
    raw = text or ""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Failed to parse LLM response as JSON, using fallback analysis")
        return fallback_analysis(raw)

    if not isinstance(parsed, dict):
        logger.error("LLM response is JSON but not an object, using fallback analysis")
        return fallback_analysis(raw)

    analysis = dict(parsed)
    analysis["overall_score"] = _clamp_score(parsed.get("overall_score", FALLBACK_SCORE))

    for key in LIST_FIELDS:
        if key in parsed:
            analysis[key] = _as_string_list(parsed[key])
        else:
            analysis[key] = list(FALLBACK_ANALYSIS[key])

    feedback = parsed.get("specific_feedback")
    feedback = dict(feedback) if isinstance(feedback, dict) else {}
    for section in FEEDBACK_SECTIONS:
        if not feedback.get(section):
            feedback[section] = FALLBACK_ANALYSIS["specific_feedback"][section]
        else:
            feedback[section] = str(feedback[section])
    analysis["specific_feedback"] = feedback

    summary = parsed.get("conversation_summary")
    analysis["conversation_summary"] = str(summary) if summary is not None else ""
    return analysis


@dataclass
class AnalysisOutcome:
    """Result of ``ConversationAnalyzer.analyze``."""

    payload: dict[str, Any]
    cached: bool
    session_id: Optional[uuid.UUID] = None


class ConversationAnalyzer:
    """Cache-first LLM analysis of voice-training conversations."""

    def __init__(
        self,
        cache: AnalysisCache,
        fetcher: TranscriptFetcher,
        provider: LLMProvider,
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens

    def analyze(
        self,
        conversation_id: str,
        attribute: Callable[[], Optional[Profile]] = lambda: None,
    ) -> AnalysisOutcome:
        """
        Analyze a conversation, or return its stored analysis.

        Args:
            conversation_id: Voice provider conversation id
            attribute: Called after a successful LLM call to find the profile
                the analysis belongs to; None means "return without persisting"

        Raises:
            VoiceProviderError: Conversation could not be fetched
            TranscriptNotReadyError: Transcript still empty after retries
            LLMProviderError: The analysis call failed
        """
        cached = self.cache.lookup(conversation_id)
        if cached is not None:
            return AnalysisOutcome(payload=cached, cached=True)

        transcript = self.fetcher.fetch(conversation_id)
        transcript_text = transcript.render()

        logger.info(
            f"Analyzing {conversation_id} with {self.provider.provider_name}/"
            f"{self.provider.model_name} ({transcript.message_count} messages, "
            f"{len(transcript_text)} chars)"
        )
        response = self.provider.complete(
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            user_prompt=build_user_prompt(transcript_text),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        cost = self.provider.calculate_cost(response.prompt_tokens, response.completion_tokens)
        logger.info(
            f"LLM analysis for {conversation_id} completed in {response.duration_ms:.0f}ms "
            f"(tokens={response.total_tokens}, cost=${cost:.4f})"
        )
        logger.debug(f"LLM response for {conversation_id}: {response.content[:500]}")

        analysis = parse_analysis(response.content)
        payload = self._build_payload(conversation_id, transcript, analysis, transcript_text)

        try:
            profile = attribute()
        except Exception as e:
            logger.warning(f"Could not attribute analysis for {conversation_id}: {e}")
            profile = None

        session_id = self.cache.record(
            conversation_id,
            profile,
            payload,
            provider=self.provider.provider_name,
            version=self.provider.model_name,
        )
        return AnalysisOutcome(payload=payload, cached=False, session_id=session_id)

    def _build_payload(
        self,
        conversation_id: str,
        transcript: ConversationTranscript,
        analysis: dict[str, Any],
        transcript_text: str,
    ) -> dict[str, Any]:
        return {
            "conversation_id": conversation_id,
            "analysis_timestamp": datetime.now(timezone.utc).isoformat(),
            "conversation_metadata": {
                "duration": transcript.duration_seconds,
                "message_count": transcript.message_count,
                "start_time": transcript.start_time,
                "status": transcript.status,
                "call_successful": transcript.call_successful,
            },
            "analysis": analysis,
            "provider": self.provider.provider_name,
            "model": self.provider.model_name,
            "transcript": transcript.conversation.get("transcript") or [],
            "raw_transcript_text": transcript_text,
        }
