"""Base protocol and types for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass
class LLMResponse:
    """Standardized response from LLM providers.

    Attributes:
        content: The generated text content
        provider: Provider identifier that produced the response
            (``"<primary> -> <fallback>"`` when a fallback answered)
        model: The actual model used (may differ from requested)
        prompt_tokens: Number of tokens in the prompt
        completion_tokens: Number of tokens in the completion
        total_tokens: Total tokens used
        finish_reason: Why generation stopped (stop, length, error, etc.)
        duration_ms: Time taken for the API call in milliseconds
        raw_response: Provider-specific raw response for debugging
    """

    content: str
    provider: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    finish_reason: str = "unknown"
    duration_ms: float = 0.0
    raw_response: Any = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view (raw response omitted)."""
        return {
            "content": self.content,
            "provider": self.provider,
            "model": self.model,
            "usage": {
                "promptTokens": self.prompt_tokens,
                "completionTokens": self.completion_tokens,
                "totalTokens": self.total_tokens,
            },
            "finishReason": self.finish_reason,
            "durationMs": round(self.duration_ms, 1),
        }


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations must handle:
    - API client initialization
    - Translating SDK errors into convospace.exceptions provider errors
    - Both single-shot and streamed completions
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openrouter', 'anthropic')."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            messages: Chat messages as ``{"role", "content"}`` dicts
            max_tokens: Maximum tokens in the response
            temperature: Sampling temperature

        Returns:
            LLMResponse with the completion and metadata

        Raises:
            ProviderError: Translated provider failure
        """
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> Iterator[str]:
        """Stream completion text chunks as they arrive.

        Raises:
            ProviderError: Translated provider failure
        """
        ...
