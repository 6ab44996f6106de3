# -*- coding: utf-8 -*-
"""
Список моделей OpenAI-совместимого API.

GET {api_base}/models с кэшем на 15 минут; при ошибке или без ключа
возвращается статический резервный список.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

FALLBACK_MODELS = ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"]


class ModelDiscovery:
    """Получение и кэширование идентификаторов моделей."""

    CACHE_TTL = 900
    REQUEST_TIMEOUT = 15

    def __init__(
        self,
        settings,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.session = session or requests.Session()
        self._clock = clock
        self._cache: Dict[str, Tuple[float, List[str]]] = {}

    def get_models(self) -> List[str]:
        api_base = self.settings.provider_api_base.rstrip("/")

        cached = self._cache.get(api_base)
        if cached and self._clock() - cached[0] < self.CACHE_TTL:
            logger.debug(f"[LLM] Используем кэш моделей: {len(cached[1])}")
            return list(cached[1])

        if not api_base or not self.settings.has_provider_key():
            return list(FALLBACK_MODELS)

        models = self._fetch(api_base)
        if models:
            self._cache[api_base] = (self._clock(), models)
            return list(models)

        if cached:
            return list(cached[1])
        logger.warning("[LLM] Используем резервный список моделей")
        return list(FALLBACK_MODELS)

    def refresh(self) -> List[str]:
        self._cache.pop(self.settings.provider_api_base.rstrip("/"), None)
        return self.get_models()

    def _fetch(self, api_base: str) -> List[str]:
        try:
            response = self.session.get(
                f"{api_base}/models",
                headers={
                    "Authorization": f"Bearer {self.settings.provider_api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[LLM] Сетевая ошибка при запросе моделей: {type(e).__name__}")
            return []

        if not 200 <= response.status_code < 300:
            logger.error(f"[LLM] Ошибка API моделей: {response.status_code}")
            return []

        try:
            data = response.json()
        except ValueError:
            return []

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []

        ids = {
            item["id"].strip()
            for item in items
            if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"].strip()
        }
        logger.info(f"[LLM] Получено {len(ids)} моделей")
        return sorted(ids)
