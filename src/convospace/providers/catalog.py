"""Static catalog of the LLM providers ConvoSpace can relay to."""

from dataclasses import dataclass, field
from typing import Literal

from convospace.config import Settings

ProviderKind = Literal["openai", "anthropic"]


@dataclass(frozen=True)
class ProviderSpec:
    """Description of one provider endpoint and the models it offers."""

    id: str
    name: str
    kind: ProviderKind
    base_url: str
    models: tuple[str, ...]
    priority: int
    description: str = ""
    supports_streaming: bool = True
    max_tokens: int = 128000
    api_key: str = field(default="", repr=False)

    @property
    def default_model(self) -> str:
        return self.models[0]

    def to_public_dict(self) -> dict:
        """Client-facing description (never includes the key)."""
        return {
            "id": self.id,
            "name": self.name,
            "models": list(self.models),
            "supportsStreaming": self.supports_streaming,
            "description": self.description,
            "maxTokens": self.max_tokens,
        }


# Providers tried, in order, when the requested one fails
FALLBACK_CHAINS: dict[str, list[str]] = {
    "openrouter": ["chutes", "anthropic", "google"],
    "chutes": ["openrouter", "anthropic", "google"],
    "anthropic": ["openrouter", "chutes", "google"],
    "google": ["openrouter", "chutes", "anthropic"],
    "portkey": ["openrouter", "chutes", "anthropic"],
    "openai": ["openrouter", "portkey", "anthropic"],
    "openai_local": [],
}


def build_catalog(settings: Settings) -> dict[str, ProviderSpec]:
    """Build the provider catalog from settings, ordered by priority."""
    specs = [
        ProviderSpec(
            id="openrouter",
            name="OpenRouter",
            kind="openai",
            base_url=settings.openrouter_base_url,
            api_key=settings.openrouter_api_key,
            priority=1,
            description="Unified gateway to open and commercial models",
            models=(
                "deepseek/deepseek-r1-0528:free",
                "deepseek/deepseek-chat",
                "meta-llama/llama-3.3-70b-instruct",
                "openai/gpt-4o-mini",
                "anthropic/claude-3.5-sonnet",
                "google/gemini-2.0-flash-001",
            ),
        ),
        ProviderSpec(
            id="chutes",
            name="Chutes",
            kind="openai",
            base_url=settings.chutes_base_url,
            api_key=settings.chutes_api_key,
            priority=2,
            description="Serverless open-weight model hosting",
            models=(
                "deepseek-ai/DeepSeek-R1",
                "deepseek-ai/DeepSeek-V3",
                "Qwen/Qwen3-235B-A22B",
            ),
        ),
        ProviderSpec(
            id="anthropic",
            name="Anthropic",
            kind="anthropic",
            base_url=settings.anthropic_base_url,
            api_key=settings.anthropic_api_key,
            priority=3,
            description="Claude models",
            max_tokens=200000,
            models=(
                "claude-sonnet-4-5-20250514",
                "claude-3-5-sonnet-20241022",
                "claude-3-5-haiku-20241022",
            ),
        ),
        ProviderSpec(
            id="google",
            name="Google Gemini",
            kind="openai",
            base_url=settings.google_base_url,
            api_key=settings.google_api_key,
            priority=4,
            description="Gemini models via the OpenAI-compatible endpoint",
            max_tokens=1000000,
            models=("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"),
        ),
        ProviderSpec(
            id="portkey",
            name="Portkey",
            kind="openai",
            base_url=settings.portkey_base_url,
            api_key=settings.portkey_api_key,
            priority=5,
            description="AI gateway with routing and observability",
            models=("gpt-4o", "gpt-4o-mini"),
        ),
        ProviderSpec(
            id="openai",
            name="OpenAI",
            kind="openai",
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            priority=6,
            description="GPT models",
            models=("gpt-4o-mini", "gpt-4o", "gpt-4-turbo"),
        ),
        ProviderSpec(
            id="openai_local",
            name="Local OpenAI-Compatible Provider",
            kind="openai",
            base_url=settings.local_openai_base_url,
            api_key=settings.local_openai_api_key,
            priority=7,
            description="Ollama, LM Studio or LocalAI on this machine",
            max_tokens=8192,
            models=(
                "llama3.1",
                "llama3.1:70b",
                "mistral-nemo",
                "phi3",
                "gemma2",
                "codellama",
            ),
        ),
    ]
    return {spec.id: spec for spec in sorted(specs, key=lambda s: s.priority)}
