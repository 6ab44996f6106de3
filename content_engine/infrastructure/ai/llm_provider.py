# -*- coding: utf-8 -*-
# =============================================================================
# Путь: content_engine/infrastructure/ai/llm_provider.py
# =============================================================================
"""
Провайдеры генерации статей.

- GenerationProvider: порт провайдера (generate(context) → GenerationPayload)
- ChatCompletionProvider: OpenAI-совместимый /chat/completions
  - Предварительные проверки без сети: провайдер выключен, нет ключа
  - 3 попытки с паузой 1с / 2с (2^(i-1))
  - Каждая неудачная попытка логируется с безопасными метаданными
    и кэшируется как «последняя ошибка» на 1 час
- ProviderErrorCache: последняя ошибка провайдера (JSON-файл, как skiplist)
- build_providers: упорядоченный список провайдеров по режиму интеграции

Ключ API никогда не попадает в логи, метаданные или сообщения.
"""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from pydantic import ValidationError

from content_engine.domain.value_objects.generation import GenerationContext, GenerationPayload
from content_engine.infrastructure.ai.payload_sanitizer import ImagePayloadSanitizer
from content_engine.infrastructure.ai.prompt_contract import build_messages
from content_engine.shared.exceptions import ProviderError
from content_engine.shared.text import describe_transport_error, sanitize_text

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z0-9]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Порт
# =============================================================================

class GenerationProvider(ABC):
    """Абстрактный провайдер генерации статьи."""

    name: str = "provider"

    @abstractmethod
    def generate(self, context: GenerationContext) -> GenerationPayload:
        """
        Сгенерировать статью.

        Raises:
            ProviderError: С кодом, очищенным сообщением и безопасными метаданными
        """
        pass


# =============================================================================
# Кэш последней ошибки
# =============================================================================

class ProviderErrorCache:
    """
    Последняя ошибка провайдера с истечением через ttl.

    При указанном filepath переживает перезапуск процесса
    (нужно для команды provider-debug).
    """

    DEFAULT_TTL = timedelta(hours=1)

    def __init__(
        self,
        filepath: Optional[Path] = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.filepath = filepath
        self.ttl = ttl
        self._clock = clock
        self._entry: Optional[Dict[str, Any]] = None
        self._lock = Lock()
        self._load()

    def _load(self) -> None:
        if self.filepath is None or not self.filepath.exists():
            return
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[LLM] Не удалось прочитать кэш ошибки провайдера: {e}")
            return
        if isinstance(data, dict):
            self._entry = data

    def _save(self) -> None:
        if self.filepath is None:
            return
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(self.filepath, "w", encoding="utf-8") as f:
                json.dump(self._entry, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"[LLM] Не удалось сохранить кэш ошибки провайдера: {e}")

    def record(self, error: ProviderError) -> None:
        now = self._clock()
        with self._lock:
            self._entry = {
                "time": now.isoformat(),
                "expires_at": (now + self.ttl).isoformat(),
                "code": error.code,
                "message": error.message,
                "meta": dict(error.meta),
            }
            self._save()

    def last_error(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            if not self._entry:
                return None
            try:
                expires_at = datetime.fromisoformat(self._entry["expires_at"])
            except (KeyError, TypeError, ValueError):
                return None
            if self._clock() >= expires_at:
                return None
            return {k: v for k, v in self._entry.items() if k != "expires_at"}

    def clear(self) -> None:
        with self._lock:
            self._entry = None
            if self.filepath is not None and self.filepath.exists():
                self.filepath.unlink()


# =============================================================================
# OpenAI-совместимый провайдер
# =============================================================================

class ChatCompletionProvider(GenerationProvider):
    """
    Провайдер на OpenAI-совместимом /chat/completions.

    Args:
        settings: Настройки провайдера
        sanitizer: Очистка изображений в ответе
        error_cache: Кэш последней ошибки
        session: HTTP-сессия requests
        sleep: Функция паузы между попытками
    """

    name = "chat_completion"
    MAX_ATTEMPTS = 3

    def __init__(
        self,
        settings,
        sanitizer: ImagePayloadSanitizer,
        error_cache: Optional[ProviderErrorCache] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.sanitizer = sanitizer
        self.error_cache = error_cache or ProviderErrorCache()
        self.session = session or requests.Session()
        self._sleep = sleep

    @property
    def api_base(self) -> str:
        return self.settings.provider_api_base.rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/chat/completions"

    # =========================================================================
    # Диагностика
    # =========================================================================

    def debug_meta(self, attempt: int = 0, http_status: int = 0, raw_body: str = "") -> Dict[str, Any]:
        """Метаданные попытки. Ключ не включается, только признак его наличия."""
        return {
            "provider_enabled": bool(self.settings.provider_enabled),
            "api_base": self.settings.provider_api_base,
            "endpoint": self.endpoint,
            "model": self.settings.provider_model,
            "timeout": int(self.settings.provider_timeout),
            "max_tokens": int(self.settings.provider_max_tokens),
            "temperature": float(self.settings.provider_temperature),
            "attempt": int(attempt),
            "http_status": int(http_status),
            "response_snippet": sanitize_text(raw_body),
            "key_present": self.settings.has_provider_key(),
        }

    def last_error(self) -> Optional[Dict[str, Any]]:
        return self.error_cache.last_error()

    def debug_report(self) -> Dict[str, Any]:
        return {
            "provider_enabled": bool(self.settings.provider_enabled),
            "api_base": self.settings.provider_api_base,
            "endpoint": self.endpoint,
            "model": self.settings.provider_model,
            "key_present": self.settings.has_provider_key(),
            "last_error": self.last_error(),
        }

    # =========================================================================
    # Генерация
    # =========================================================================

    def generate(self, context: GenerationContext) -> GenerationPayload:
        if not self.settings.provider_enabled:
            error = ProviderError("provider_disabled", "LLM provider is disabled.", self.debug_meta())
            logger.warning(f"[LLM] {error.code}")
            raise error

        if not self.settings.has_provider_key():
            error = ProviderError(
                "provider_not_configured",
                "LLM provider API key is not configured.",
                self.debug_meta(),
            )
            logger.warning(f"[LLM] {error.code}")
            raise error

        body = {
            "model": self.settings.provider_model,
            "messages": build_messages(context, self.sanitizer.policy.allowed_hosts),
            "max_tokens": int(self.settings.provider_max_tokens),
            "temperature": float(self.settings.provider_temperature),
        }

        last_error: Optional[ProviderError] = None
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                payload = self._attempt(body, attempt)
                logger.info(f"[LLM] Успех: {self.settings.provider_model} (попытка {attempt})")
                return self.sanitizer.sanitize(payload)
            except ProviderError as e:
                last_error = e
                logger.warning(
                    f"[LLM] Попытка {attempt}/{self.MAX_ATTEMPTS} не удалась: {e.code} "
                    f"(http_status={e.meta.get('http_status')}) {e.message}"
                )
                self.error_cache.record(e)

            if attempt < self.MAX_ATTEMPTS:
                self._sleep(2 ** (attempt - 1))

        raise last_error

    def _attempt(self, body: Dict[str, Any], attempt: int) -> GenerationPayload:
        try:
            response = self.session.post(
                self.endpoint,
                headers={
                    "Authorization": f"Bearer {self.settings.provider_api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
                timeout=self.settings.provider_timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(
                "provider_http_error",
                f"Request to provider failed: {describe_transport_error(e)}",
                self.debug_meta(attempt),
            ) from e

        status = response.status_code
        raw = response.text or ""

        if not 200 <= status < 300:
            meta = self.debug_meta(attempt, status, self._upstream_message(raw))
            message = "LLM provider returned an error."
            if meta["response_snippet"]:
                message = sanitize_text(f"{message} {meta['response_snippet']}")
            raise ProviderError(f"provider_http_status_{status}", message, meta)

        content = self._message_content(raw)
        if not content:
            raise ProviderError(
                "provider_bad_payload",
                "Provider returned an unexpected response shape.",
                self.debug_meta(attempt, status, raw),
            )

        stripped = self._strip_fences(content)
        try:
            data = json.loads(stripped)
        except ValueError:
            data = None

        if not isinstance(data, dict) or not str(data.get("content") or "").strip():
            raise ProviderError(
                "provider_invalid_json",
                "Provider did not return valid JSON content.",
                self.debug_meta(attempt, status, stripped),
            )

        try:
            return GenerationPayload.model_validate(data)
        except ValidationError as e:
            raise ProviderError(
                "provider_invalid_json",
                "Provider did not return valid JSON content.",
                self.debug_meta(attempt, status, str(e)),
            ) from e

    @staticmethod
    def _upstream_message(raw: str) -> str:
        """error.message из JSON-ответа, иначе тело целиком."""
        if not raw:
            return ""
        try:
            decoded = json.loads(raw)
        except ValueError:
            return raw
        if isinstance(decoded, dict) and isinstance(decoded.get("error"), dict):
            message = decoded["error"].get("message")
            if isinstance(message, str):
                return message
        return raw

    @staticmethod
    def _message_content(raw: str) -> str:
        try:
            data = json.loads(raw)
        except ValueError:
            return ""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""

    @staticmethod
    def _strip_fences(content: str) -> str:
        text = content.strip()
        if text.startswith("```"):
            text = _FENCE_OPEN_RE.sub("", text)
            text = _FENCE_CLOSE_RE.sub("", text.strip())
        return text.strip()


# =============================================================================
# Сборка списка провайдеров
# =============================================================================

def build_providers(
    settings,
    sanitizer: ImagePayloadSanitizer,
    external: Sequence[GenerationProvider] = (),
    error_cache: Optional[ProviderErrorCache] = None,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[GenerationProvider]:
    """
    Упорядоченный список провайдеров: первый успешный выигрывает.

    direct   → [ChatCompletionProvider]
    external → внешние провайдеры вызывающей стороны,
               плюс ChatCompletionProvider при mode_fallback=direct
    """
    if error_cache is None:
        path = settings.provider_error_cache_path
        error_cache = ProviderErrorCache(Path(path) if path else None)

    chat = ChatCompletionProvider(settings, sanitizer, error_cache, session=session, sleep=sleep)

    if not settings.is_external_mode():
        return [chat]

    providers: List[GenerationProvider] = list(external)
    if settings.mode_fallback.lower() == "direct":
        providers.append(chat)
    logger.info(f"[LLM] Режим external: {len(providers)} провайдер(ов)")
    return providers
