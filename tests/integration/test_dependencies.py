"""
Integration tests для build_pipeline: одна HTTP-сессия на провайдера,
загрузку изображений и WordPress.

Транспорт заменён адаптером requests, который записывает отправленные запросы.
"""

import json

import pytest
import requests
from requests.adapters import BaseAdapter

from content_engine.dependencies import build_pipeline
from content_engine.domain.value_objects.generation import GenerationContext

from conftest import PNG_BYTES

ARTICLE = {
    "title": "How to pick a CRM",
    "content": "<h2>Why</h2><p>Because.</p>",
}


class RecordingAdapter(BaseAdapter):
    """Отвечает по хосту запроса и запоминает каждый PreparedRequest."""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        response = requests.Response()
        response.request = request
        response.url = request.url

        if "api.openai.com" in request.url:
            body = {"choices": [{"message": {"content": json.dumps(ARTICLE)}}]}
            response.status_code = 200
            response._content = json.dumps(body).encode()
            response.headers["Content-Type"] = "application/json"
        elif "images.example.com" in request.url:
            response.status_code = 200
            response._content = PNG_BYTES
            response.headers["Content-Type"] = "image/png"
        else:
            response.status_code = 201
            response._content = json.dumps({"id": 7, "source_url": "https://blog.example.com/a.png"}).encode()
            response.headers["Content-Type"] = "application/json"
        return response

    def close(self):
        pass

    def requests_to(self, host):
        return [request for request in self.sent if host in request.url]


@pytest.fixture
def adapter():
    return RecordingAdapter()


@pytest.fixture
def session(adapter):
    session = requests.Session()
    session.trust_env = False
    session.mount("https://", adapter)
    return session


@pytest.fixture
def pipeline(settings, session):
    settings = settings.model_copy(update={
        "wordpress_url": "https://blog.example.com",
        "wordpress_user": "admin",
        "wordpress_app_password": "wp-app-pass",
        "provider_api_key": "sk-real-key",
    })
    return build_pipeline(settings, session=session)


def test_provider_sends_only_its_bearer_key(pipeline, adapter, session):
    pipeline.providers[0].generate(GenerationContext(subject="How to pick a CRM", keywords=("crm",)))

    (llm_request,) = adapter.requests_to("api.openai.com")
    assert llm_request.headers["Authorization"] == "Bearer sk-real-key"
    assert session.auth is None


def test_wordpress_credentials_stay_on_wordpress_requests(pipeline, adapter):
    pipeline.images.import_image("https://images.example.com/a.png")

    (image_request,) = adapter.requests_to("images.example.com")
    (media_request,) = adapter.requests_to("blog.example.com")
    assert "Authorization" not in image_request.headers
    assert media_request.headers["Authorization"].startswith("Basic ")
