# -*- coding: utf-8 -*-
# =============================================================================
# Путь: content_engine/infrastructure/wordpress/wordpress_client.py
# =============================================================================
"""
Клиент WordPress REST API.

Реализует оба порта CMS: IPostStore (посты, термины, мета) и IMediaStore
(медиа-библиотека). Аутентификация: пароль приложения (Basic Auth).

Мета-поля записываются через поле "meta" поста; на стороне WordPress
ключи должны быть зарегистрированы с show_in_rest.
"""

import logging
from typing import Any, Dict, List, Optional, Type

import requests

from content_engine.domain.repositories.post_store import IMediaStore, IPostStore
from content_engine.shared.exceptions import (
    ExternalServiceError,
    MediaStoreError,
    PostStoreError,
)
from content_engine.shared.text import describe_transport_error, sanitize_text

logger = logging.getLogger(__name__)

TAXONOMY_ENDPOINTS = {
    "category": ("categories", "categories"),
    "post_tag": ("tags", "tags"),
}


class WordPressClient(IPostStore, IMediaStore):
    """
    Адаптер WordPress REST API (/wp-json/wp/v2).

    Args:
        base_url: URL сайта
        user: Имя пользователя
        app_password: Пароль приложения
        timeout: Таймаут запросов, секунды
        session: HTTP-сессия requests
    """

    API_PREFIX = "wp-json/wp/v2"

    def __init__(
        self,
        base_url: str,
        user: str,
        app_password: Optional[str],
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        # Только для запросов к WordPress: сессия может быть общей
        self.auth = (user, app_password) if app_password else None

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "WordPressClient":
        return cls(
            base_url=settings.wordpress_url,
            user=settings.wordpress_user,
            app_password=settings.wordpress_app_password,
            timeout=settings.wordpress_timeout,
            session=session,
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        error_cls: Type[ExternalServiceError] = PostStoreError,
        allow_404: bool = False,
        **kwargs,
    ) -> Optional[Any]:
        url = f"{self.base_url}/{self.API_PREFIX}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(method, url, auth=self.auth, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise error_cls(
                "wordpress_http_error",
                f"WordPress request failed: {describe_transport_error(e)}",
                {"endpoint": endpoint, "method": method},
            ) from e

        if allow_404 and response.status_code == 404:
            return None

        if not 200 <= response.status_code < 300:
            raise error_cls(
                f"wordpress_http_status_{response.status_code}",
                sanitize_text(self._error_message(response)) or "WordPress returned an error.",
                {"endpoint": endpoint, "method": method, "http_status": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                "wordpress_bad_payload",
                "WordPress returned a non-JSON response.",
                {"endpoint": endpoint, "method": method, "http_status": response.status_code},
            ) from e

    @staticmethod
    def _entity_id(data: Any, endpoint: str, error_cls: Type[ExternalServiceError] = PostStoreError) -> int:
        """id созданной или найденной сущности из ответа WordPress."""
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise error_cls(
                "wordpress_bad_payload",
                "WordPress response has no entity id.",
                {"endpoint": endpoint},
            ) from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or ""
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        return response.text or ""

    # =========================================================================
    # IPostStore
    # =========================================================================

    def create(self, title: str, content: str, excerpt: str, status: str) -> int:
        data = self._request("POST", "posts", json={
            "title": title,
            "content": content,
            "excerpt": excerpt,
            "status": status,
        })
        post_id = self._entity_id(data, "posts")
        logger.info(f"[WordPress] Создан пост {post_id} ({status})")
        return post_id

    def update(self, post_id: int, **fields: Any) -> None:
        if fields:
            self._request("POST", f"posts/{post_id}", json=fields)

    def set_terms(self, post_id: int, taxonomy: str, terms: List[str]) -> None:
        if taxonomy not in TAXONOMY_ENDPOINTS:
            raise PostStoreError("wordpress_unknown_taxonomy", f"Unknown taxonomy: {taxonomy}")
        endpoint, field_name = TAXONOMY_ENDPOINTS[taxonomy]
        term_ids = [self._ensure_term(endpoint, name) for name in terms if name.strip()]
        if term_ids:
            self._request("POST", f"posts/{post_id}", json={field_name: term_ids})

    def _ensure_term(self, endpoint: str, name: str) -> int:
        name = name.strip()
        found = self._request("GET", endpoint, params={"search": name, "per_page": 100}) or []
        for term in found:
            if isinstance(term, dict) and str(term.get("name", "")).lower() == name.lower():
                return self._entity_id(term, endpoint)
        created = self._request("POST", endpoint, json={"name": name})
        return self._entity_id(created, endpoint)

    def get(self, post_id: int) -> Optional[Dict[str, Any]]:
        data = self._request("GET", f"posts/{post_id}", allow_404=True, params={"context": "edit"})
        if data is None:
            return None
        return {
            "id": self._entity_id(data, f"posts/{post_id}"),
            "title": self._rendered(data.get("title")),
            "content": self._rendered(data.get("content")),
            "excerpt": self._rendered(data.get("excerpt")),
            "status": data.get("status", ""),
        }

    @staticmethod
    def _rendered(value: Any) -> str:
        """raw в контексте edit, иначе rendered."""
        if isinstance(value, dict):
            return value.get("raw", value.get("rendered", "")) or ""
        return value or ""

    def set_featured_media(self, post_id: int, media_id: int) -> None:
        self._request("POST", f"posts/{post_id}", json={"featured_media": media_id})

    def update_meta(self, post_id: int, meta: Dict[str, Any]) -> None:
        if meta:
            self._request("POST", f"posts/{post_id}", json={"meta": meta})

    # =========================================================================
    # IMediaStore
    # =========================================================================

    def store_bytes(self, data: bytes, mime: str, filename: str, attach_to: Optional[int] = None) -> int:
        params = {"post": attach_to} if attach_to else None
        created = self._request(
            "POST",
            "media",
            error_cls=MediaStoreError,
            data=data,
            params=params,
            headers={
                "Content-Type": mime,
                "Content-Disposition": f'attachment; filename="{filename}"',
            },
        )
        media_id = self._entity_id(created, "media", MediaStoreError)
        logger.info(f"[WordPress] Загружено медиа {media_id} ({mime})")
        return media_id

    def set_alt_text(self, media_id: int, alt: str) -> None:
        self._request("POST", f"media/{media_id}", error_cls=MediaStoreError, json={"alt_text": alt})

    def get_url(self, media_id: int, size: str = "full") -> str:
        data = self._request("GET", f"media/{media_id}", error_cls=MediaStoreError)
        if not isinstance(data, dict):
            raise MediaStoreError(
                "wordpress_bad_payload",
                "WordPress returned an unexpected media payload.",
                {"endpoint": f"media/{media_id}"},
            )
        if size != "full":
            sizes = (data.get("media_details") or {}).get("sizes") or {}
            if size in sizes and sizes[size].get("source_url"):
                return sizes[size]["source_url"]
        return data.get("source_url", "")
