"""Prompts for sales-conversation analysis."""

ANALYSIS_SYSTEM_PROMPT = """You are an expert sales conversation analyst. Analyze this sales training conversation and provide detailed feedback.

Please provide a JSON response with the following structure:
{
  "overall_score": number (1-10),
  "key_strengths": [string array],
  "areas_for_improvement": [string array],
  "specific_feedback": {
    "opening": string,
    "product_presentation": string,
    "objection_handling": string,
    "closing": string
  },
  "recommended_actions": [string array],
  "conversation_summary": string
}"""

ANALYSIS_USER_PROMPT = "Please analyze this sales conversation:\n\n{transcript}"

FEEDBACK_SECTIONS = (
    "opening",
    "product_presentation",
    "objection_handling",
    "closing",
)

LIST_FIELDS = (
    "key_strengths",
    "areas_for_improvement",
    "recommended_actions",
)


def build_user_prompt(transcript_text: str) -> str:
    return ANALYSIS_USER_PROMPT.format(transcript=transcript_text)
