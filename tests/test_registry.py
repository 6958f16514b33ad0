"""Tests for the provider catalog and registry."""

import pytest

from convospace.exceptions import ProviderNotConfiguredError
from convospace.providers.catalog import FALLBACK_CHAINS, build_catalog
from convospace.providers.registry import ProviderRegistry, model_family


class TestCatalog:
    def test_ordered_by_priority(self, test_settings):
        catalog = build_catalog(test_settings)

        assert list(catalog)[:3] == ["openrouter", "chutes", "anthropic"]
        assert [spec.priority for spec in catalog.values()] == sorted(
            spec.priority for spec in catalog.values()
        )

    def test_public_dict_hides_key(self, test_settings):
        public = build_catalog(test_settings)["openrouter"].to_public_dict()

        assert "apiKey" not in public
        assert "api_key" not in public
        assert public["models"][0] == "deepseek/deepseek-r1-0528:free"

    def test_fallback_chains_reference_known_providers(self, test_settings):
        catalog = build_catalog(test_settings)

        for provider_id, chain in FALLBACK_CHAINS.items():
            assert provider_id in catalog
            assert all(fallback in catalog for fallback in chain)


class TestModelFamily:
    @pytest.mark.parametrize(
        "model,family",
        [
            ("deepseek/deepseek-r1-0528:free", "deepseek"),
            ("deepseek-ai/DeepSeek-R1", "deepseek"),
            ("claude-3-5-sonnet-20241022", "claude-3"),
            ("openai/gpt-4o-mini", "gpt-4"),
            ("meta-llama/llama-3.3-70b-instruct", "llama"),
            ("Qwen/Qwen3-235B-A22B", "qwen3"),
        ],
    )
    def test_family(self, model, family):
        assert model_family(model) == family


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_available_requires_key(self, make_registry):
        registry = make_registry()

        assert [spec.id for spec in registry.available()] == ["openrouter", "chutes", "anthropic"]

    def test_request_key_makes_provider_available(self, make_registry):
        registry = make_registry()

        available = registry.available({"openai": "sk-user"})

        assert "openai" in [spec.id for spec in available]
        assert registry.resolve_key("openai", {"openai": "sk-user"}) == "sk-user"

    def test_request_key_wins_over_server_key(self, make_registry):
        registry = make_registry()

        assert registry.resolve_key("openrouter", {"openrouter": "sk-mine"}) == "sk-mine"
        assert registry.resolve_key("openrouter") == "sk-or-test"

    def test_open_breaker_hides_provider(self, make_registry):
        registry = make_registry()
        for _ in range(3):
            registry.breaker("chutes").record_failure()

        assert "chutes" not in [spec.id for spec in registry.available()]
        assert registry.health()["chutes"]["healthy"] is False

    def test_create_provider_without_key_raises(self, make_registry):
        registry = make_registry()

        with pytest.raises(ProviderNotConfiguredError):
            registry.create_provider("google")

    def test_create_unknown_provider_raises(self, make_registry):
        with pytest.raises(ProviderNotConfiguredError):
            make_registry().create_provider("nope")

    def test_create_provider_uses_default_model(self, make_registry):
        registry = make_registry()

        provider = registry.create_provider("anthropic")

        assert provider.model_name == "claude-sonnet-4-5-20250514"

    def test_fallbacks_skip_unavailable(self, make_registry):
        registry = make_registry()

        assert [spec.id for spec in registry.fallbacks_for("openrouter")] == ["chutes", "anthropic"]

    def test_find_compatible_model(self, make_registry):
        registry = make_registry()
        chutes = registry.get_spec("chutes")
        anthropic = registry.get_spec("anthropic")

        assert registry.find_compatible_model("deepseek/deepseek-r1-0528:free", chutes) == "deepseek-ai/DeepSeek-R1"
        assert registry.find_compatible_model("claude-3-5-haiku-20241022", anthropic) == "claude-3-5-haiku-20241022"
        assert registry.find_compatible_model("gpt-4o", anthropic) == anthropic.default_model

    def test_reset_single_provider(self, make_registry):
        registry = make_registry()
        for provider_id in ("chutes", "anthropic"):
            for _ in range(3):
                registry.breaker(provider_id).record_failure()

        registry.reset("chutes")

        assert registry.breaker("chutes").allow_request()
        assert not registry.breaker("anthropic").allow_request()

    def test_reset_all(self, make_registry):
        registry = make_registry()
        for _ in range(3):
            registry.breaker("anthropic").record_failure()

        registry.reset()

        assert registry.breaker("anthropic").allow_request()

    def test_default_catalog_from_settings(self, test_settings):
        registry = ProviderRegistry(test_settings)

        assert registry.get_spec("openrouter").api_key == "sk-or-test"
