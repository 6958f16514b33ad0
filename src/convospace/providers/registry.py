"""
Provider registry.

Tracks the configured providers, their circuit breakers and fallback chains,
and creates LLMProvider instances for a request.
"""

import logging
import re
import threading
from typing import Callable, Optional

from convospace.config import Settings
from convospace.exceptions import ProviderNotConfiguredError
from convospace.providers.base import LLMProvider
from convospace.providers.catalog import FALLBACK_CHAINS, ProviderSpec, build_catalog
from convospace.providers.health import BreakerState, CircuitBreaker

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderSpec, str, str], LLMProvider]

# Model families used to pick a comparable model on a fallback provider
_FAMILY_PATTERN = re.compile(r"(gpt-[34]|claude-[23]|gemini|llama|deepseek|mixtral)", re.IGNORECASE)


def default_provider_factory(spec: ProviderSpec, api_key: str, model: str) -> LLMProvider:
    """Instantiate the SDK-backed provider for a catalog entry."""
    if spec.kind == "anthropic":
        from convospace.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key,
            model=model,
            base_url=spec.base_url or None,
            provider_id=spec.id,
        )

    from convospace.providers.openai_provider import OpenAICompatibleProvider

    return OpenAICompatibleProvider(
        provider_id=spec.id,
        api_key=api_key,
        model=model,
        base_url=spec.base_url or None,
    )


def model_family(model: str) -> str:
    """Family key of a model id (e.g. ``deepseek`` for ``deepseek-ai/DeepSeek-R1``)."""
    match = _FAMILY_PATTERN.search(model)
    if match:
        return match.group(1).lower()
    return model.split("/")[-1].split("-")[0].lower()


class ProviderRegistry:
    """Catalog of providers plus the runtime health state for each."""

    def __init__(
        self,
        settings: Settings,
        provider_factory: Optional[ProviderFactory] = None,
        specs: Optional[dict[str, ProviderSpec]] = None,
    ):
        """
        Args:
            settings: Application settings (keys, base URLs, breaker config)
            provider_factory: Builds an LLMProvider from (spec, api_key, model)
            specs: Catalog override, mainly for tests
        """
        self._settings = settings
        self._factory = provider_factory or default_provider_factory
        self._specs = specs if specs is not None else build_catalog(settings)
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def specs(self) -> list[ProviderSpec]:
        """All catalog entries, ordered by priority."""
        return sorted(self._specs.values(), key=lambda s: s.priority)

    def get_spec(self, provider_id: str) -> Optional[ProviderSpec]:
        return self._specs.get(provider_id)

    def breaker(self, provider_id: str) -> CircuitBreaker:
        """Circuit breaker for a provider, created on first use."""
        with self._lock:
            breaker = self._breakers.get(provider_id)
            if breaker is None:
                breaker = CircuitBreaker(
                    provider_id,
                    failure_threshold=self._settings.circuit_breaker_threshold,
                    reset_timeout=self._settings.circuit_breaker_reset_seconds,
                )
                self._breakers[provider_id] = breaker
            return breaker

    def resolve_key(self, provider_id: str, api_keys: Optional[dict[str, str]] = None) -> str:
        """Per-request key when supplied, otherwise the server-side key."""
        if api_keys and api_keys.get(provider_id):
            return api_keys[provider_id]
        spec = self._specs.get(provider_id)
        return spec.api_key if spec else ""

    def is_available(self, provider_id: str, api_keys: Optional[dict[str, str]] = None) -> bool:
        if provider_id not in self._specs:
            return False
        if not self.resolve_key(provider_id, api_keys):
            return False
        return self.breaker(provider_id).allow_request()

    def available(self, api_keys: Optional[dict[str, str]] = None) -> list[ProviderSpec]:
        """Providers with a usable key whose breaker is not open."""
        return [spec for spec in self.specs() if self.is_available(spec.id, api_keys)]

    def create_provider(
        self,
        provider_id: str,
        model: Optional[str] = None,
        api_keys: Optional[dict[str, str]] = None,
    ) -> LLMProvider:
        """
        Build a provider client for one request.

        Raises:
            ProviderNotConfiguredError: Unknown provider or no API key
        """
        spec = self._specs.get(provider_id)
        if spec is None:
            raise ProviderNotConfiguredError(f"Provider {provider_id} not supported", provider_id)

        api_key = self.resolve_key(provider_id, api_keys)
        if not api_key:
            raise ProviderNotConfiguredError(
                f"API key for provider {provider_id} not configured", provider_id
            )

        return self._factory(spec, api_key, model or spec.default_model)

    def fallbacks_for(
        self, provider_id: str, api_keys: Optional[dict[str, str]] = None
    ) -> list[ProviderSpec]:
        """Available providers from the fallback chain of ``provider_id``, in order."""
        chain = FALLBACK_CHAINS.get(provider_id, [])
        return [
            self._specs[fallback_id]
            for fallback_id in chain
            if fallback_id != provider_id and self.is_available(fallback_id, api_keys)
        ]

    def find_compatible_model(self, original_model: str, spec: ProviderSpec) -> str:
        """
        Pick the model on ``spec`` closest to ``original_model``.

        Exact match first, then a model from the same family, then the
        provider's first model.
        """
        if original_model in spec.models:
            return original_model

        family = model_family(original_model)
        for model in spec.models:
            if family and family in model.lower():
                return model

        return spec.default_model

    def health(self) -> dict[str, dict]:
        """Per-provider health summary for the health endpoint."""
        summary = {}
        for spec in self.specs():
            stats = self.breaker(spec.id).stats()
            summary[spec.id] = {
                "configured": bool(spec.api_key),
                "healthy": stats.state != BreakerState.OPEN,
                "circuitBreaker": stats.state.value,
                "failures": stats.total_failures,
            }
        return summary

    def breaker_stats(self) -> dict[str, dict]:
        return {spec.id: self.breaker(spec.id).stats().to_dict() for spec in self.specs()}

    def reset(self, provider_id: Optional[str] = None) -> None:
        """Reset one provider's breaker, or all of them."""
        with self._lock:
            breakers = (
                [self._breakers[provider_id]]
                if provider_id and provider_id in self._breakers
                else ([] if provider_id else list(self._breakers.values()))
            )
        for breaker in breakers:
            breaker.reset()
        logger.info(f"Circuit breaker reset for {provider_id or 'all providers'}")
