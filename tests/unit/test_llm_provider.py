# -*- coding: utf-8 -*-
"""
Тесты провайдера генерации.

Покрывает:
    - ChatCompletionProvider: предпроверки, ретраи, разбор ответа
    - ProviderErrorCache: TTL, сохранение в файл
    - build_providers: порядок провайдеров по режиму интеграции
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from content_engine.domain.value_objects.generation import GenerationContext, GenerationPayload
from content_engine.infrastructure.ai.llm_provider import (
    ChatCompletionProvider,
    GenerationProvider,
    ProviderErrorCache,
    build_providers,
)
from content_engine.infrastructure.ai.payload_sanitizer import ImagePayloadSanitizer
from content_engine.infrastructure.images.url_policy import ImageUrlPolicy
from content_engine.shared.exceptions import ProviderError

from conftest import connection_error, make_response

CONTEXT = GenerationContext(subject="How to pick a CRM", keywords=("crm", "sales pipeline"))

ARTICLE = {
    "title": "How to pick a CRM",
    "content": "<h2>Why</h2><p>Because.</p>",
    "excerpt": "Short.",
    "faq": [{"q": "What is CRM?", "a": "Software."}],
    "featured_image_url": "https://images.example.com/a.png",
    "og_image_url": "https://evil.example.net/b.png",
    "inline_images": [
        {"url": "https://images.example.com/c.webp", "placement_hint": "after_h2_1"},
        {"url": "https://images.example.com/d.gif"},
    ],
}


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def sanitizer(settings):
    return ImagePayloadSanitizer(ImageUrlPolicy(settings.get_allowed_image_hosts()))


@pytest.fixture
def error_cache(tmp_path):
    return ProviderErrorCache(tmp_path / "last_error.json")


@pytest.fixture
def provider(settings, sanitizer, error_cache, http, sleeps):
    return ChatCompletionProvider(settings, sanitizer, error_cache, session=http, sleep=sleeps.append)


# =============================================================================
# Предпроверки
# =============================================================================

def test_disabled_provider_makes_no_request(settings, sanitizer, http):
    settings = settings.model_copy(update={"provider_enabled": False})
    provider = ChatCompletionProvider(settings, sanitizer, session=http)

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    assert exc_info.value.code == "provider_disabled"
    http.post.assert_not_called()


def test_missing_key_makes_no_request(settings, sanitizer, http):
    settings = settings.model_copy(update={"provider_api_key": "  "})
    provider = ChatCompletionProvider(settings, sanitizer, session=http)

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    assert exc_info.value.code == "provider_not_configured"
    assert exc_info.value.meta["key_present"] is False
    http.post.assert_not_called()


# =============================================================================
# Генерация
# =============================================================================

def test_generate_success_sanitizes_images(provider, http):
    http.post.return_value = make_response(200, json_data=completion(json.dumps(ARTICLE)))

    payload = provider.generate(CONTEXT)

    assert isinstance(payload, GenerationPayload)
    assert payload.title == "How to pick a CRM"
    assert payload.featured_image_url == "https://images.example.com/a.png"
    assert payload.og_image_url == ""
    assert [i.url for i in payload.inline_images] == ["https://images.example.com/c.webp"]
    assert "og_removed_invalid_extension" in payload.image_warnings
    assert "inline_removed_count:1" in payload.image_warnings


def test_request_shape(provider, http, settings):
    http.post.return_value = make_response(200, json_data=completion(json.dumps(ARTICLE)))

    provider.generate(CONTEXT)

    call = http.post.call_args
    assert call.args[0] == "https://api.openai.com/v1/chat/completions"
    assert call.kwargs["headers"]["Authorization"] == "Bearer sk-test-secret-key"
    body = call.kwargs["json"]
    assert body["model"] == settings.provider_model
    assert body["messages"][0]["role"] == "system"
    assert "images.example.com" in body["messages"][1]["content"]
    assert call.kwargs["timeout"] == settings.provider_timeout


def test_fenced_json_is_accepted(provider, http):
    fenced = "```json\n" + json.dumps(ARTICLE) + "\n```"
    http.post.return_value = make_response(200, json_data=completion(fenced))

    payload = provider.generate(CONTEXT)

    assert payload.content.startswith("<h2>")


def test_http_error_retries_three_times(provider, http, sleeps, error_cache):
    http.post.return_value = make_response(
        500, text=json.dumps({"error": {"message": "Upstream overloaded"}})
    )

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    error = exc_info.value
    assert http.post.call_count == 3
    assert sleeps == [1, 2]
    assert error.code == "provider_http_status_500"
    assert "Upstream overloaded" in error.message
    assert error.meta["attempt"] == 3
    assert error.meta["http_status"] == 500

    cached = error_cache.last_error()
    assert cached["code"] == "provider_http_status_500"
    assert cached["meta"]["attempt"] == 3


def test_transport_error(provider, http, sleeps, error_cache):
    http.post.side_effect = connection_error("https://api.openai.com/v1/chat/completions?trace=abc123")

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    error = exc_info.value
    assert error.code == "provider_http_error"
    assert error.message == "Request to provider failed: ConnectionError (name resolution failed)"
    assert "abc123" not in error.message
    assert "api.openai.com" not in error_cache.last_error()["message"]
    assert sleeps == [1, 2]


def test_recovers_after_failure(provider, http, sleeps):
    http.post.side_effect = [
        make_response(502, text="Bad gateway"),
        make_response(200, json_data=completion(json.dumps(ARTICLE))),
    ]

    payload = provider.generate(CONTEXT)

    assert payload.title
    assert sleeps == [1]


@pytest.mark.parametrize("body, code", [
    ({"unexpected": True}, "provider_bad_payload"),
    (completion("not json at all"), "provider_invalid_json"),
    (completion(json.dumps({"title": "No content"})), "provider_invalid_json"),
    (completion(json.dumps(["list"])), "provider_invalid_json"),
])
def test_invalid_responses(provider, http, body, code):
    http.post.return_value = make_response(200, json_data=body)

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    assert exc_info.value.code == code


def test_secret_never_in_error(provider, http):
    http.post.return_value = make_response(401, text="invalid key sk-test-secret-key?")

    with pytest.raises(ProviderError) as exc_info:
        provider.generate(CONTEXT)

    # Ключ может прийти только из тела ответа, но не из конфигурации
    meta = exc_info.value.meta
    assert "api_key" not in meta
    assert meta["key_present"] is True
    assert set(meta) == {
        "provider_enabled", "api_base", "endpoint", "model", "timeout", "max_tokens",
        "temperature", "attempt", "http_status", "response_snippet", "key_present",
    }


def test_debug_report(provider):
    report = provider.debug_report()

    assert report["key_present"] is True
    assert report["last_error"] is None
    assert "sk-test-secret-key" not in json.dumps(report)


# =============================================================================
# ProviderErrorCache
# =============================================================================

class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def test_error_cache_expires_after_ttl():
    clock = FakeClock()
    cache = ProviderErrorCache(clock=clock)
    cache.record(ProviderError("provider_http_status_500", "boom", {"attempt": 1}))

    assert cache.last_error()["code"] == "provider_http_status_500"
    assert "expires_at" not in cache.last_error()

    clock.now += timedelta(minutes=59)
    assert cache.last_error() is not None

    clock.now += timedelta(minutes=2)
    assert cache.last_error() is None


def test_error_cache_survives_restart(tmp_path):
    path = tmp_path / "cache" / "last_error.json"
    ProviderErrorCache(path).record(ProviderError("provider_invalid_json", "bad"))

    reloaded = ProviderErrorCache(path)

    assert reloaded.last_error()["message"] == "bad"

    reloaded.clear()
    assert reloaded.last_error() is None
    assert not path.exists()


# =============================================================================
# build_providers
# =============================================================================

class ExternalProvider(GenerationProvider):
    name = "external"

    def generate(self, context):
        raise ProviderError("external_failed", "nope")


def test_build_providers_direct(settings, sanitizer, error_cache):
    providers = build_providers(settings, sanitizer, external=[ExternalProvider()], error_cache=error_cache)

    assert [p.name for p in providers] == ["chat_completion"]


def test_build_providers_external_with_fallback(settings, sanitizer, error_cache):
    settings = settings.model_copy(update={"integration_mode": "external"})
    providers = build_providers(settings, sanitizer, external=[ExternalProvider()], error_cache=error_cache)

    assert [p.name for p in providers] == ["external", "chat_completion"]


def test_build_providers_external_without_fallback(settings, sanitizer, error_cache):
    settings = settings.model_copy(update={"integration_mode": "external", "mode_fallback": "none"})
    providers = build_providers(settings, sanitizer, external=[ExternalProvider()], error_cache=error_cache)

    assert [p.name for p in providers] == ["external"]
