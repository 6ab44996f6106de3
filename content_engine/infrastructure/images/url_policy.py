# -*- coding: utf-8 -*-
"""
Политика URL изображений.

Порядок проверок (каждая прерывает цепочку типизированной ImageImportError):
1. URL непустой и синтаксически корректный (есть схема и хост) → invalid_url
2. Схема http/https → invalid_scheme
3. При включённом allow-list: только https → not_https, хост в списке →
   host_not_allowed, прямая ссылка на файл .jpg/.jpeg/.png/.webp → invalid_extension

Также здесь живут обезличивание URL для логов (redact_url, fingerprint).
"""

import posixpath
from typing import Iterable, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

from content_engine.domain.value_objects.image_diagnostics import SourceFingerprint
from content_engine.infrastructure.images.error_classifier import classify_error
from content_engine.shared.exceptions import ImageImportError
from content_engine.shared.text import sanitize_text

ALLOWED_SCHEMES = ("http", "https")
ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "webp")
FINGERPRINT_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")


# =============================================================================
# Обезличивание URL
# =============================================================================

def _split(url: Optional[str]) -> Optional[SplitResult]:
    if not url or not isinstance(url, str):
        return None
    try:
        return urlsplit(url.strip())
    except ValueError:
        return None


def _extension(path: str) -> str:
    return posixpath.splitext(path or "")[1].lstrip(".").lower()


def redact_host(host: str) -> str:
    """images.example.com → ***.example.com; одиночная метка остаётся как есть."""
    host = (host or "").strip().lower()
    labels = [label for label in host.split(".") if label]
    if len(labels) <= 1:
        return host
    return "***." + ".".join(labels[-2:])


def redact_url(url: Optional[str]) -> str:
    """Оставить схему и хост, скрыть путь: https://host/***."""
    parts = _split(url)
    if parts is None:
        return ""
    scheme = f"{parts.scheme}://" if parts.scheme else ""
    return f"{scheme}{parts.hostname or ''}/***"


def fingerprint(url: Optional[str]) -> SourceFingerprint:
    """Безопасный отпечаток источника: без пути, query и полного хоста."""
    parts = _split(url)
    if parts is None:
        return SourceFingerprint.empty()

    scheme = parts.scheme.lower() if parts.scheme else ""
    scheme = scheme if scheme in ALLOWED_SCHEMES else "other"
    ext = _extension(parts.path)
    return SourceFingerprint(
        scheme=scheme,
        host_redacted=redact_host(parts.hostname or ""),
        is_https=scheme == "https",
        ext=ext if ext in FINGERPRINT_EXTENSIONS else "",
    )


def image_error(code: str, message: str, url: Optional[str] = "") -> ImageImportError:
    """
    Собрать ImageImportError с классом ошибки и отпечатком источника.

    Сообщение очищается (теги, пробелы, длина) и URL в нём маскируются
    до классификации.
    """
    safe_message = sanitize_text(message)
    return ImageImportError(
        code=code,
        message=safe_message,
        error_class=classify_error(code, safe_message),
        source_fingerprint=fingerprint(url).to_dict(),
    )


# =============================================================================
# Политика
# =============================================================================

class ImageUrlPolicy:
    """Проверка URL изображения перед любым сетевым запросом."""

    def __init__(self, allowed_hosts: Iterable[str], enforce_allowlist: bool = True):
        self.allowed_hosts: Tuple[str, ...] = tuple(h.strip().lower() for h in allowed_hosts if h.strip())
        self.enforce_allowlist = enforce_allowlist

    @classmethod
    def from_settings(cls, settings) -> "ImageUrlPolicy":
        return cls(
            allowed_hosts=settings.get_allowed_image_hosts(),
            enforce_allowlist=settings.enforce_image_allowlist,
        )

    def validate(self, url: Optional[str]) -> str:
        """
        Проверить URL.

        Returns:
            URL без пробелов по краям

        Raises:
            ImageImportError: С кодом первой нарушенной проверки
        """
        if not url or not isinstance(url, str) or not url.strip():
            raise image_error("invalid_url", "Empty image URL.")

        url = url.strip()
        parts = _split(url)
        if parts is None or not parts.scheme or not parts.hostname:
            raise image_error("invalid_url", "Invalid image URL.", url)

        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            raise image_error("invalid_scheme", "Image URL must be http or https.", url)

        if not self.enforce_allowlist:
            return url

        if scheme != "https":
            raise image_error("not_https", "Image URL must be HTTPS only for reliability.", url)

        if parts.hostname.lower() not in self.allowed_hosts:
            raise image_error("host_not_allowed", "Image host is not on the allowed list.", url)

        if _extension(parts.path) not in ALLOWED_EXTENSIONS:
            raise image_error(
                "invalid_extension",
                "Image URL must be a direct file ending in .jpg, .jpeg, .png, or .webp.",
                url,
            )

        return url

    def is_allowed(self, url: Optional[str]) -> bool:
        try:
            self.validate(url)
        except ImageImportError:
            return False
        return True
