"""
Unit tests для ModelDiscovery.
"""

import pytest
import requests

from content_engine.infrastructure.ai.model_discovery import FALLBACK_MODELS, ModelDiscovery

from conftest import make_response

MODELS = {"data": [{"id": "gpt-4o"}, {"id": "a-model"}, {"id": "gpt-4o"}, {"object": "no id"}]}


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def discovery(settings, http, clock):
    return ModelDiscovery(settings, session=http, clock=clock)


def test_fetch_sorted_unique(discovery, http):
    http.get.return_value = make_response(200, json_data=MODELS)

    assert discovery.get_models() == ["a-model", "gpt-4o"]
    assert http.get.call_args.args[0] == "https://api.openai.com/v1/models"


def test_cache_for_fifteen_minutes(discovery, http, clock):
    http.get.return_value = make_response(200, json_data=MODELS)

    discovery.get_models()
    clock.now += 899
    discovery.get_models()
    assert http.get.call_count == 1

    clock.now += 2
    discovery.get_models()
    assert http.get.call_count == 2


def test_refresh_bypasses_cache(discovery, http):
    http.get.return_value = make_response(200, json_data=MODELS)

    discovery.get_models()
    discovery.refresh()

    assert http.get.call_count == 2


def test_fallback_without_key(settings, http, clock):
    settings = settings.model_copy(update={"provider_api_key": None})

    models = ModelDiscovery(settings, session=http, clock=clock).get_models()

    assert models == FALLBACK_MODELS
    http.get.assert_not_called()


@pytest.mark.parametrize("response", [
    make_response(500, text="error"),
    make_response(200, json_data={"unexpected": []}),
    make_response(200, text="not json"),
])
def test_fallback_on_bad_response(discovery, http, response):
    http.get.return_value = response

    assert discovery.get_models() == FALLBACK_MODELS


def test_fallback_on_network_error(discovery, http):
    http.get.side_effect = requests.exceptions.Timeout("slow")

    assert discovery.get_models() == FALLBACK_MODELS


def test_stale_cache_beats_fallback(discovery, http, clock):
    http.get.return_value = make_response(200, json_data=MODELS)
    discovery.get_models()

    clock.now += 1000
    http.get.return_value = make_response(503, text="down")

    assert discovery.get_models() == ["a-model", "gpt-4o"]
