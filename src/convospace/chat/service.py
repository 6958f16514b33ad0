"""
Chat relay service.

Validates chat requests against the provider registry, calls the selected
provider and walks its fallback chain when it fails. Used by the chat and
code-session endpoints.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from convospace.chat.commands import Commands, parse_commands
from convospace.chat.stream import StreamRelay
from convospace.exceptions import (
    AllProvidersFailedError,
    ChatRequestError,
    ProviderAuthError,
    ProviderError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    RateLimitError,
)
from convospace.providers.base import LLMResponse
from convospace.providers.catalog import ProviderSpec
from convospace.providers.errors import ErrorTracker
from convospace.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """A chat completion request as received from the client."""

    messages: list[dict[str, str]]
    provider: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 10096
    stream: bool = True
    api_keys: dict[str, str] = field(default_factory=dict)


@dataclass
class ChatResult:
    """Completed (non-streamed) chat response."""

    response: LLMResponse
    commands: Optional[Commands]

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.response.to_dict(),
            "commands": self.commands.to_dict() if self.commands else None,
        }


def provider_error_status(error: BaseException) -> tuple[int, dict[str, Any]]:
    """
    HTTP status and body for a failed chat call.

    When every provider failed, the primary provider's error decides.
    """
    if isinstance(error, AllProvidersFailedError) and error.original_error is not None:
        error = error.original_error

    if isinstance(error, (ProviderAuthError, ProviderNotConfiguredError)):
        return 401, {"error": "Invalid or missing API key for the selected provider"}
    if isinstance(error, QuotaExceededError):
        return 429, {"error": "API quota exceeded for this provider"}
    if isinstance(error, RateLimitError):
        return 429, {"error": "Rate limit exceeded. Please try again later."}
    return 500, {"error": "Internal server error", "message": str(error)}


class ChatService:
    """Send chat requests to providers with circuit breaking and fallback."""

    def __init__(self, registry: ProviderRegistry, error_tracker: ErrorTracker):
        self.registry = registry
        self.error_tracker = error_tracker

    def validate(self, request: ChatRequest) -> ProviderSpec:
        """
        Check a request before any provider is called.

        Returns:
            Catalog entry of the requested provider

        Raises:
            ChatRequestError: Empty messages, missing provider/model, an
                unavailable provider or an unsupported model
        """
        if not request.messages:
            raise ChatRequestError("Messages array is required and cannot be empty")
        if not request.provider or not request.model:
            raise ChatRequestError("Provider and model are required")

        available = self.registry.available(request.api_keys)
        spec = next((s for s in available if s.id == request.provider), None)
        if spec is None:
            raise ChatRequestError(
                f"Provider {request.provider} is not available. Check your API keys.",
                {"availableProviders": [s.id for s in available]},
            )

        if request.model not in spec.models:
            raise ChatRequestError(
                f"Model {request.model} is not supported by {request.provider}",
                {"availableModels": list(spec.models)},
            )

        return spec

    def _record_failure(self, provider_id: str, model: str, operation: str, error: Exception) -> None:
        if self.registry.get_spec(provider_id) is not None:
            self.registry.breaker(provider_id).record_failure()
        self.error_tracker.process(
            error, {"provider": provider_id, "model": model, "operation": operation}
        )

    def _complete(self, provider_id: str, model: str, request: ChatRequest) -> LLMResponse:
        provider = self.registry.create_provider(provider_id, model, request.api_keys)
        response = provider.complete(
            request.messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
        self.registry.breaker(provider_id).record_success()
        return response

    def generate(self, request: ChatRequest) -> ChatResult:
        """
        Run a non-streamed completion.

        Args:
            request: Validated chat request

        Returns:
            ChatResult with the response and any parsed command block

        Raises:
            AllProvidersFailedError: The primary and every fallback failed
        """
        try:
            response = self._complete(request.provider, request.model, request)
        except ProviderError as primary_error:
            self._record_failure(request.provider, request.model, "generate", primary_error)
            response = self._generate_with_fallback(request, primary_error)

        return ChatResult(response=response, commands=parse_commands(response.content))

    def _generate_with_fallback(self, request: ChatRequest, primary_error: ProviderError) -> LLMResponse:
        fallbacks = self.registry.fallbacks_for(request.provider, request.api_keys)
        if not fallbacks:
            raise AllProvidersFailedError(
                f"No healthy fallback providers available for {request.provider}",
                request.provider,
                original_error=primary_error,
            )

        for spec in fallbacks:
            model = self.registry.find_compatible_model(request.model, spec)
            logger.info(f"Trying fallback provider {spec.id} with model {model}")
            try:
                response = self._complete(spec.id, model, request)
            except ProviderError as e:
                logger.warning(f"Fallback provider {spec.id} failed: {e}")
                self._record_failure(spec.id, model, "generate", e)
                continue
            response.provider = f"{request.provider} -> {spec.id}"
            return response

        raise AllProvidersFailedError(
            f"All providers failed for {request.provider}: {primary_error}",
            request.provider,
            original_error=primary_error,
        )

    def _open_stream(self, provider_id: str, model: str, request: ChatRequest) -> Iterator[str]:
        """Start a provider stream and wait for its first chunk."""
        provider = self.registry.create_provider(provider_id, model, request.api_keys)
        chunks = iter(
            provider.stream(
                request.messages,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
            )
        )
        first = next(chunks, None)
        return self._tracked(provider_id, model, first, chunks)

    def _tracked(
        self, provider_id: str, model: str, first: Optional[str], chunks: Iterator[str]
    ) -> Iterator[str]:
        try:
            if first is not None:
                yield first
            yield from chunks
        except ProviderError as e:
            logger.error(f"Stream from {provider_id} failed mid-response: {e}")
            self._record_failure(provider_id, model, "stream", e)
            raise
        self.registry.breaker(provider_id).record_success()

    def stream(self, request: ChatRequest) -> StreamRelay:
        """
        Start a streamed completion.

        The primary provider is asked for its first chunk before returning,
        so failures up to that point still fall back (to the first
        streaming-capable provider in the chain) or surface as errors the
        caller can turn into an HTTP status.

        Returns:
            StreamRelay yielding encoded relay lines

        Raises:
            AllProvidersFailedError: Neither the primary nor the fallback
                could start streaming
        """
        try:
            chunks = self._open_stream(request.provider, request.model, request)
        except ProviderError as primary_error:
            self._record_failure(request.provider, request.model, "stream", primary_error)
            chunks = self._stream_with_fallback(request, primary_error)
        return StreamRelay(chunks)

    def _stream_with_fallback(self, request: ChatRequest, primary_error: ProviderError) -> Iterator[str]:
        fallbacks = [
            spec
            for spec in self.registry.fallbacks_for(request.provider, request.api_keys)
            if spec.supports_streaming
        ]
        if not fallbacks:
            raise AllProvidersFailedError(
                f"No streaming fallback providers available for {request.provider}",
                request.provider,
                original_error=primary_error,
            )

        spec = fallbacks[0]
        model = self.registry.find_compatible_model(request.model, spec)
        logger.info(f"Falling back to streaming provider {spec.id} with model {model}")
        try:
            return self._open_stream(spec.id, model, request)
        except ProviderError as e:
            self._record_failure(spec.id, model, "stream", e)
            raise AllProvidersFailedError(
                f"Streaming fallback {spec.id} failed: {e}",
                request.provider,
                original_error=primary_error,
            ) from e
