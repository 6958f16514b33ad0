"""LLM provider layer.

Providers speaking the OpenAI chat completions API (OpenRouter, Chutes,
Google, Portkey, OpenAI, local servers) share one implementation; Anthropic
has its own. The registry tracks keys, circuit breakers and fallback chains.

Usage:
    from convospace.providers import get_registry

    registry = get_registry()
    provider = registry.create_provider("openrouter", api_keys={"openrouter": "sk-or-..."})
    response = provider.complete([{"role": "user", "content": "Hello"}])
"""

import logging
from functools import lru_cache

from convospace.config import settings
from convospace.providers.base import LLMProvider, LLMResponse
from convospace.providers.catalog import FALLBACK_CHAINS, ProviderSpec, build_catalog
from convospace.providers.errors import ErrorTracker, ProcessedError, classify_error
from convospace.providers.health import BreakerState, CircuitBreaker
from convospace.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_registry() -> ProviderRegistry:
    """Process-wide provider registry (FastAPI dependency)."""
    return ProviderRegistry(settings)


@lru_cache(maxsize=1)
def get_error_tracker() -> ErrorTracker:
    """Process-wide error tracker (FastAPI dependency)."""
    return ErrorTracker()


__all__ = [
    "BreakerState",
    "CircuitBreaker",
    "ErrorTracker",
    "FALLBACK_CHAINS",
    "LLMProvider",
    "LLMResponse",
    "ProcessedError",
    "ProviderRegistry",
    "ProviderSpec",
    "build_catalog",
    "classify_error",
    "get_error_tracker",
    "get_registry",
]
