"""Anthropic LLM provider implementation."""

import logging
import time
from typing import Any, Iterator

import anthropic
from anthropic import Anthropic

from convospace.exceptions import (
    ProviderAuthError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)
from convospace.providers.base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


def translate_anthropic_error(error: Exception, provider: str) -> ProviderError:
    """Map Anthropic SDK exceptions onto provider errors."""
    if isinstance(error, anthropic.AuthenticationError):
        return ProviderAuthError(f"Invalid API key for {provider}: {error}", provider)
    if isinstance(error, anthropic.RateLimitError):
        return RateLimitError(f"Rate limit exceeded for {provider}: {error}", provider)
    if isinstance(error, anthropic.PermissionDeniedError) and "credit" in str(error).lower():
        return QuotaExceededError(f"API quota exceeded for {provider}: {error}", provider)
    if isinstance(error, anthropic.APITimeoutError):
        return ProviderError(f"Request timeout for {provider}: {error}", provider)
    if isinstance(error, anthropic.APIConnectionError):
        return ProviderError(f"Network error connecting to {provider}: {error}", provider)
    return ProviderError(f"Service error from {provider}: {error}", provider)


def split_system_messages(
    messages: list[dict[str, str]],
) -> tuple[str, list[dict[str, str]]]:
    """Lift system messages into Anthropic's separate ``system`` field.

    Returns:
        Tuple of (joined system prompt, remaining user/assistant messages)
    """
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    conversation = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m.get("role") in ("user", "assistant")
    ]
    return "\n\n".join(system_parts), conversation


class AnthropicProvider(LLMProvider):
    """Anthropic LLM provider using the Anthropic Python SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250514",
        base_url: str | None = None,
        provider_id: str = "anthropic",
    ):
        """Initialize the Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model to use
            base_url: API base URL (SDK default when None)
            provider_id: Identifier reported in responses
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self.client = Anthropic(api_key=api_key, base_url=base_url)
        self._model = model
        self._provider_id = provider_id
        logger.debug(f"Initialized Anthropic provider with model: {model}")

    @property
    def provider_name(self) -> str:
        return self._provider_id

    @property
    def model_name(self) -> str:
        return self._model

    def _request_params(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> dict[str, Any]:
        system_prompt, conversation = split_system_messages(messages)
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system_prompt:
            params["system"] = system_prompt
        return params

    def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion using Anthropic's Messages API."""
        start_time = time.time()

        try:
            response = self.client.messages.create(
                **self._request_params(messages, max_tokens, temperature)
            )
        except anthropic.AnthropicError as e:
            raise translate_anthropic_error(e, self._provider_id) from e

        duration_ms = (time.time() - start_time) * 1000
        return self._build_response(response, duration_ms)

    def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> Iterator[str]:
        """Yield text deltas from a streamed message."""
        try:
            with self.client.messages.stream(
                **self._request_params(messages, max_tokens, temperature)
            ) as stream:
                for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.AnthropicError as e:
            raise translate_anthropic_error(e, self._provider_id) from e

    def _build_response(self, response: Any, duration_ms: float) -> LLMResponse:
        """Build LLMResponse from an Anthropic API response."""
        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        usage = response.usage
        prompt_tokens = usage.input_tokens if usage else 0
        completion_tokens = usage.output_tokens if usage else 0

        return LLMResponse(
            content=content,
            provider=self._provider_id,
            model=response.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            finish_reason=response.stop_reason or "unknown",
            duration_ms=duration_ms,
            raw_response=response,
        )
