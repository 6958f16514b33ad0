"""Tests for the chat relay service."""

import pytest

from convospace.chat.commands import COMMANDS_END, COMMANDS_START
from convospace.chat.service import ChatRequest, ChatService, provider_error_status
from convospace.exceptions import (
    AllProvidersFailedError,
    ChatRequestError,
    ProviderAuthError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)
from convospace.providers.errors import ErrorTracker

MODEL = "deepseek/deepseek-r1-0528:free"


def _request(**overrides) -> ChatRequest:
    values = {
        "messages": [{"role": "user", "content": "Hi"}],
        "provider": "openrouter",
        "model": MODEL,
    }
    values.update(overrides)
    return ChatRequest(**values)


class TestValidate:
    """Tests for ChatService.validate."""

    def test_empty_messages(self, make_registry):
        service = ChatService(make_registry(), ErrorTracker())

        with pytest.raises(ChatRequestError, match="Messages array is required"):
            service.validate(_request(messages=[]))

    def test_missing_model(self, make_registry):
        service = ChatService(make_registry(), ErrorTracker())

        with pytest.raises(ChatRequestError, match="Provider and model are required"):
            service.validate(_request(model=""))

    def test_unavailable_provider_lists_available(self, make_registry):
        service = ChatService(make_registry(), ErrorTracker())

        with pytest.raises(ChatRequestError) as exc_info:
            service.validate(_request(provider="google", model="gemini-2.0-flash"))

        assert exc_info.value.details["availableProviders"] == ["openrouter", "chutes", "anthropic"]

    def test_unsupported_model_lists_models(self, make_registry):
        service = ChatService(make_registry(), ErrorTracker())

        with pytest.raises(ChatRequestError) as exc_info:
            service.validate(_request(model="gpt-99"))

        assert MODEL in exc_info.value.details["availableModels"]

    def test_request_key_enables_provider(self, make_registry):
        service = ChatService(make_registry(), ErrorTracker())

        spec = service.validate(
            _request(provider="google", model="gemini-2.0-flash", api_keys={"google": "g-key"})
        )

        assert spec.id == "google"


class TestGenerate:
    """Tests for ChatService.generate."""

    def test_primary_answers(self, make_registry):
        registry = make_registry({"openrouter": {"content": "Hello!"}})
        service = ChatService(registry, ErrorTracker())

        result = service.generate(_request())

        assert result.response.content == "Hello!"
        assert result.response.provider == "openrouter"
        assert result.commands is None
        assert registry.breaker("openrouter").stats().total_successes == 1

    def test_commands_are_parsed(self, make_registry):
        content = f"Sure.\n{COMMANDS_START}\nrequest_files: [a.py]\n{COMMANDS_END}"
        service = ChatService(make_registry({"openrouter": {"content": content}}), ErrorTracker())

        result = service.generate(_request())

        assert result.commands.request_files == ["a.py"]
        assert result.to_dict()["commands"] == {"request_files": ["a.py"], "write_diffs": []}

    def test_falls_back_with_compatible_model(self, make_registry):
        registry = make_registry(
            {
                "openrouter": {"error": RateLimitError("rate limit", "openrouter")},
                "chutes": {"content": "From chutes"},
            }
        )
        tracker = ErrorTracker()
        service = ChatService(registry, tracker)

        result = service.generate(_request())

        assert result.response.content == "From chutes"
        assert result.response.provider == "openrouter -> chutes"
        assert registry.factory.created[-1].model_name == "deepseek-ai/DeepSeek-R1"
        assert registry.breaker("openrouter").stats().consecutive_failures == 1
        assert tracker.stats()["RATE_LIMIT_ERROR"]["count"] == 1

    def test_all_providers_fail(self, make_registry):
        error = ProviderError("boom")
        registry = make_registry(
            {"openrouter": {"error": error}, "chutes": {"error": error}, "anthropic": {"error": error}}
        )
        service = ChatService(registry, ErrorTracker())

        with pytest.raises(AllProvidersFailedError) as exc_info:
            service.generate(_request())

        assert exc_info.value.original_error is error

    def test_no_fallbacks_available(self, make_registry):
        registry = make_registry({"openrouter": {"error": ProviderError("boom")}})
        for provider_id in ("chutes", "anthropic"):
            for _ in range(3):
                registry.breaker(provider_id).record_failure()
        service = ChatService(registry, ErrorTracker())

        with pytest.raises(AllProvidersFailedError, match="No healthy fallback"):
            service.generate(_request())


class TestStream:
    """Tests for ChatService.stream."""

    def test_streams_primary(self, make_registry):
        registry = make_registry({"openrouter": {"chunks": ["Hel", "lo"]}})
        service = ChatService(registry, ErrorTracker())

        relay = service.stream(_request())
        lines = list(relay)

        assert lines == ['0:"Hel"\n', '0:"lo"\n']
        assert relay.text == "Hello"
        assert registry.breaker("openrouter").stats().total_successes == 1

    def test_failure_before_first_chunk_falls_back(self, make_registry):
        registry = make_registry(
            {
                "openrouter": {"error": ProviderAuthError("bad key", "openrouter")},
                "chutes": {"chunks": ["fallback"]},
            }
        )
        service = ChatService(registry, ErrorTracker())

        relay = service.stream(_request())

        assert list(relay) == ['0:"fallback"\n']
        assert registry.breaker("openrouter").stats().total_failures == 1

    def test_failed_streaming_fallback_raises(self, make_registry):
        error = ProviderAuthError("bad key")
        registry = make_registry({"openrouter": {"error": error}, "chutes": {"error": error}})
        service = ChatService(registry, ErrorTracker())

        with pytest.raises(AllProvidersFailedError) as exc_info:
            service.stream(_request())

        assert exc_info.value.original_error is error


class TestProviderErrorStatus:
    @pytest.mark.parametrize(
        "error,status_code",
        [
            (ProviderAuthError("x"), 401),
            (QuotaExceededError("x"), 429),
            (RateLimitError("x"), 429),
            (ProviderError("x"), 500),
        ],
    )
    def test_status(self, error, status_code):
        assert provider_error_status(error)[0] == status_code

    def test_unwraps_all_failed(self):
        wrapped = AllProvidersFailedError("all failed", "openrouter", original_error=RateLimitError("x"))

        status_code, body = provider_error_status(wrapped)

        assert status_code == 429
        assert body == {"error": "Rate limit exceeded. Please try again later."}

    def test_server_error_body_has_message(self):
        status_code, body = provider_error_status(ProviderError("kaput"))

        assert body == {"error": "Internal server error", "message": "kaput"}
