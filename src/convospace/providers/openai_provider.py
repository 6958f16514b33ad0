"""OpenAI-compatible LLM provider implementation.

Serves every provider that speaks the OpenAI chat completions API
(OpenRouter, Chutes, Portkey, Google's compatibility endpoint, OpenAI and
local servers such as Ollama) by pointing the SDK at a different base URL.
"""

import logging
import time
from typing import Any, Iterator

import openai
from openai import OpenAI

from convospace.exceptions import (
    ProviderAuthError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)
from convospace.providers.base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


def translate_openai_error(error: Exception, provider: str) -> ProviderError:
    """Map OpenAI SDK exceptions onto provider errors."""
    if isinstance(error, openai.AuthenticationError):
        return ProviderAuthError(f"Invalid API key for {provider}: {error}", provider)
    if isinstance(error, openai.RateLimitError):
        # OpenAI reports exhausted credit as a 429 with code insufficient_quota
        if "quota" in str(error).lower():
            return QuotaExceededError(f"API quota exceeded for {provider}: {error}", provider)
        return RateLimitError(f"Rate limit exceeded for {provider}: {error}", provider)
    if isinstance(error, openai.APITimeoutError):
        return ProviderError(f"Request timeout for {provider}: {error}", provider)
    if isinstance(error, openai.APIConnectionError):
        return ProviderError(f"Network error connecting to {provider}: {error}", provider)
    return ProviderError(f"Service error from {provider}: {error}", provider)


class OpenAICompatibleProvider(LLMProvider):
    """LLM provider using the OpenAI Python SDK against any compatible endpoint."""

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        model: str,
        base_url: str | None = None,
    ):
        """Initialize the provider.

        Args:
            provider_id: Identifier reported in responses (e.g. "openrouter")
            api_key: API key for the endpoint
            model: Model to use
            base_url: Endpoint base URL (SDK default when None)
        """
        if not api_key:
            raise ValueError(f"API key is required for {provider_id} provider")

        self.client = OpenAI(api_key=api_key, base_url=base_url)
        self._provider_id = provider_id
        self._model = model
        logger.debug(f"Initialized {provider_id} provider with model: {model}")

    @property
    def provider_name(self) -> str:
        return self._provider_id

    @property
    def model_name(self) -> str:
        return self._model

    def _request_params(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion using the chat completions API."""
        start_time = time.time()

        try:
            response = self.client.chat.completions.create(
                **self._request_params(messages, max_tokens, temperature)
            )
        except openai.OpenAIError as e:
            raise translate_openai_error(e, self._provider_id) from e

        duration_ms = (time.time() - start_time) * 1000

        if not response.choices:
            raise ProviderError(
                f"Empty response from {self._provider_id}: no choices returned",
                self._provider_id,
            )

        content = response.choices[0].message.content or ""

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        return LLMResponse(
            content=content,
            provider=self._provider_id,
            model=response.model or self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            finish_reason=response.choices[0].finish_reason or "unknown",
            duration_ms=duration_ms,
            raw_response=response,
        )

    def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> Iterator[str]:
        """Yield content deltas from a streamed chat completion."""
        try:
            chunks = self.client.chat.completions.create(
                stream=True,
                **self._request_params(messages, max_tokens, temperature),
            )
            for chunk in chunks:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta and delta.content:
                    yield delta.content
        except openai.OpenAIError as e:
            raise translate_openai_error(e, self._provider_id) from e
