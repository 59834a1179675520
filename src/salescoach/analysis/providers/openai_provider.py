"""OpenAI LLM provider implementation."""

import logging
import time
from typing import Any

from openai import APIError, APIStatusError, OpenAI

from salescoach.analysis.providers.base import LLMProvider, LLMResponse
from salescoach.exceptions import LLMProviderError

logger = logging.getLogger(__name__)


# Pricing per 1M tokens
OPENAI_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "default": {"input": 2.50, "output": 10.00},
}


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider using the OpenAI Python SDK.

    JSON mode is requested via ``response_format``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        client: OpenAI | None = None,
    ):
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o)
            client: Optional preconfigured SDK client
        """
        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")

        self.client = client or OpenAI(api_key=api_key)
        self._model = model
        logger.info(f"Initialized OpenAI provider with model: {model}")

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 1500,
        temperature: float = 0.3,
        json_mode: bool = True,
    ) -> LLMResponse:
        start_time = time.time()

        request_params: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**request_params)
        except APIStatusError as e:
            raise LLMProviderError("openai", str(e), status_code=e.status_code) from e
        except APIError as e:
            raise LLMProviderError("openai", str(e)) from e
        duration_ms = (time.time() - start_time) * 1000

        content = response.choices[0].message.content or ""

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        return LLMResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            finish_reason=response.choices[0].finish_reason or "unknown",
            model=response.model,
            duration_ms=duration_ms,
            raw_response=response,
        )

    def calculate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        pricing = OPENAI_PRICING.get(self._model, OPENAI_PRICING["default"])

        input_cost = prompt_tokens * (pricing["input"] / 1_000_000)
        output_cost = completion_tokens * (pricing["output"] / 1_000_000)

        return input_cost + output_cost
