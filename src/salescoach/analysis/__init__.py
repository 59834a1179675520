"""Conversation analysis: LLM providers, prompts, result cache and analyzer."""

from salescoach.analysis.analyzer import (
    FALLBACK_ANALYSIS,
    AnalysisOutcome,
    ConversationAnalyzer,
    fallback_analysis,
    parse_analysis,
)
from salescoach.analysis.cache import AnalysisCache, confidence_from_score

__all__ = [
    "FALLBACK_ANALYSIS",
    "AnalysisCache",
    "AnalysisOutcome",
    "ConversationAnalyzer",
    "confidence_from_score",
    "fallback_analysis",
    "parse_analysis",
]
