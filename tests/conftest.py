# -*- coding: utf-8 -*-
"""
Общие фикстуры тестов.

FakeCMS реализует оба порта CMS в памяти; HTTP заменяется MagicMock-сессией.
"""

import itertools
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock
from urllib.parse import urlsplit

import pytest
import requests
from urllib3 import HTTPSConnectionPool
from urllib3.exceptions import MaxRetryError, ReadTimeoutError

from content_engine.domain.repositories.post_store import IMediaStore, IPostStore
from content_engine.infrastructure.config.database import (
    create_db_engine,
    create_session_factory,
    init_db,
)
from content_engine.infrastructure.config.settings import Settings
from content_engine.infrastructure.persistence.job_repository_impl import SqlAlchemyJobRepository
from content_engine.shared.exceptions import MediaStoreError, PostStoreError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
HTML_BYTES = b"<!doctype html><html><body>not an image</body></html>"
SVG_BYTES = b'<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1"></svg>'

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# HTTP
# =============================================================================

def make_response(
    status_code: int = 200,
    content: bytes = b"",
    json_data: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> MagicMock:
    """Ответ requests с нужными полями."""
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    if json_data is not None:
        response.json.return_value = json_data
        response.text = text if text is not None else json.dumps(json_data)
    else:
        response.json.side_effect = ValueError("No JSON")
        response.text = text if text is not None else ""
    return response


def _pool_and_path(url: str):
    parts = urlsplit(url)
    path = parts.path + (f"?{parts.query}" if parts.query else "")
    return HTTPSConnectionPool(parts.hostname, port=443), path


def connection_error(url: str, reason: str = "[Errno -2] Name or service not known") -> requests.exceptions.ConnectionError:
    """
    ConnectionError в том виде, в каком его отдаёт requests.

    Текст содержит host, путь и query: "HTTPSConnectionPool(host=...): Max retries
    exceeded with url: /path?query (Caused by ...)".
    """
    pool, path = _pool_and_path(url)
    return requests.exceptions.ConnectionError(MaxRetryError(pool, path, OSError(reason)))


def read_timeout(url: str) -> requests.exceptions.ReadTimeout:
    pool, path = _pool_and_path(url)
    return requests.exceptions.ReadTimeout(ReadTimeoutError(pool, path, "Read timed out. (read timeout=20)"))


# =============================================================================
# CMS в памяти
# =============================================================================

class FakeCMS(IPostStore, IMediaStore):
    """Посты и медиа в словарях; флаги fail_* включают ошибки."""

    def __init__(self):
        self._ids = itertools.count(100)
        self.posts: Dict[int, Dict[str, Any]] = {}
        self.media: Dict[int, Dict[str, Any]] = {}
        self.fail_create = False
        self.fail_terms = False
        self.fail_store = False

    # IPostStore

    def create(self, title: str, content: str, excerpt: str, status: str) -> int:
        if self.fail_create:
            raise PostStoreError("wordpress_http_status_500", "Could not create post.")
        post_id = next(self._ids)
        self.posts[post_id] = {
            "id": post_id,
            "title": title,
            "content": content,
            "excerpt": excerpt,
            "status": status,
            "terms": {},
            "meta": {},
            "featured_media": None,
        }
        return post_id

    def update(self, post_id: int, **fields: Any) -> None:
        self.posts[post_id].update(fields)

    def set_terms(self, post_id: int, taxonomy: str, terms: List[str]) -> None:
        if self.fail_terms:
            raise PostStoreError("wordpress_http_status_403", "Term creation forbidden.")
        self.posts[post_id]["terms"][taxonomy] = list(terms)

    def get(self, post_id: int) -> Optional[Dict[str, Any]]:
        post = self.posts.get(post_id)
        if post is None:
            return None
        return {key: post[key] for key in ("id", "title", "content", "excerpt", "status")}

    def set_featured_media(self, post_id: int, media_id: int) -> None:
        self.posts[post_id]["featured_media"] = media_id

    def update_meta(self, post_id: int, meta: Dict[str, Any]) -> None:
        self.posts[post_id]["meta"].update(meta)

    # IMediaStore

    def store_bytes(self, data: bytes, mime: str, filename: str, attach_to: Optional[int] = None) -> int:
        if self.fail_store:
            raise MediaStoreError("wordpress_http_status_500", "Upload failed.")
        media_id = next(self._ids)
        self.media[media_id] = {
            "data": data,
            "mime": mime,
            "filename": filename,
            "attach_to": attach_to,
            "alt": "",
        }
        return media_id

    def set_alt_text(self, media_id: int, alt: str) -> None:
        self.media[media_id]["alt"] = alt

    def get_url(self, media_id: int, size: str = "full") -> str:
        return f"https://cms.example.test/uploads/{self.media[media_id]['filename']}"


# =============================================================================
# Фикстуры
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Изолированные настройки без .env."""
    return Settings(
        _env_file=None,
        provider_api_key="sk-test-secret-key",
        provider_error_cache_path=str(tmp_path / "provider_last_error.json"),
        database_url=f"sqlite:///{tmp_path / 'jobs.db'}",
        allowed_image_hosts="images.example.com,cdn.example.org",
        verify_remote_image_exists=False,
        draft_only=False,
        seo_plugins="yoast,rank_math",
        keyword_primary="crm",
        keyword_secondary="sales pipeline,lead tracking",
    )


@pytest.fixture
def cms():
    return FakeCMS()


@pytest.fixture
def sleeps():
    """Записывает паузы вместо реального ожидания."""
    return []


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def job_repository(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'repo.db'}")
    init_db(engine)
    return SqlAlchemyJobRepository(create_session_factory(engine))


def long_article(keyword: str = "crm", sentences_per_section: int = 45) -> str:
    """HTML статьи, проходящей все пороги: 3 H2, ~1350 слов, короткие предложения."""
    sentence = f"This short sentence about {keyword} tools has ten words here."
    parts = [f"<p>Every team needs {keyword} software.</p>"]
    for index in range(1, 4):
        parts.append(f"<h2>Section {index}</h2>")
        parts.append("<p>" + " ".join([sentence] * sentences_per_section) + "</p>")
    parts.append(f"<p>Pick the right {keyword} today.</p>")
    return "\n".join(parts)
