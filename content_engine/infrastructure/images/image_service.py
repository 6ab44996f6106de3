# -*- coding: utf-8 -*-
# =============================================================================
# Путь: content_engine/infrastructure/images/image_service.py
# =============================================================================
"""
Сервис импорта удалённых изображений.

URL из ответа провайдера считаются недоверенными:
- Проверка политики URL до любого сетевого запроса
- До 3 попыток скачивания с паузой i секунд перед попыткой i+1
- Проверка MIME по сигнатуре байтов (filetype), SVG только при allow_svg
- Сохранение в медиа-библиотеку CMS, alt-текст, OG-мета для SEO плагинов

В логи и диагностику попадают только отпечатки и замаскированные URL.
"""

import logging
import posixpath
import random
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import urlsplit

import requests
from filetype import guess
from pydantic import ValidationError

from content_engine.domain.repositories.post_store import IMediaStore, IPostStore
from content_engine.domain.value_objects.generation import InlineImage
from content_engine.domain.value_objects.image_diagnostics import SourceFingerprint
from content_engine.infrastructure.images.url_policy import (
    ImageUrlPolicy,
    fingerprint,
    image_error,
    redact_url,
)
from content_engine.shared.exceptions import (
    ImageImportError,
    MediaStoreError,
    PostStoreError,
)
from content_engine.shared.text import describe_transport_error

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
SVG_MIME = "image/svg+xml"

_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    SVG_MIME: "svg",
}

_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

OG_IMAGE_ID_META = "_content_engine_og_image_id"
OG_IMAGE_URL_META = "_content_engine_og_image_url"


# =============================================================================
# Результаты импорта встроенных изображений
# =============================================================================

@dataclass
class InlineImportItem:
    """Успешно импортированное встроенное изображение."""

    media_id: int
    url: str
    alt: str = ""
    caption: str = ""
    placement_hint: str = "end"


@dataclass
class InlineImportFailure:
    """Ошибка одного встроенного изображения."""

    index: int
    message: str
    error_class: str = "unknown"
    source_fingerprint: SourceFingerprint = field(default_factory=SourceFingerprint.empty)


@dataclass
class InlineImportResult:
    items: List[InlineImportItem] = field(default_factory=list)
    errors: List[InlineImportFailure] = field(default_factory=list)


# =============================================================================
# Сервис
# =============================================================================

class ImageIngestionService:
    """
    Импорт изображений по URL в медиа-библиотеку CMS.

    Args:
        settings: Настройки (allow-list, allow_svg, seo_plugins, таймауты)
        media_store: Медиа-хранилище
        post_store: Хранилище постов (миниатюра, мета)
        session: HTTP-сессия requests
        sleep: Функция паузы между попытками
        policy: Политика URL (по умолчанию строится из settings)
    """

    MAX_ATTEMPTS = 3
    PROBE_TIMEOUT = 10
    USER_AGENT = "content-engine/1.0"

    def __init__(
        self,
        settings,
        media_store: IMediaStore,
        post_store: IPostStore,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        policy: Optional[ImageUrlPolicy] = None,
    ):
        self.settings = settings
        self.media_store = media_store
        self.post_store = post_store
        self.session = session or requests.Session()
        self._sleep = sleep
        self.policy = policy or ImageUrlPolicy.from_settings(settings)

    # =========================================================================
    # Импорт
    # =========================================================================

    def import_image(self, url: str, alt: str = "", post_id: Optional[int] = None) -> int:
        """
        Скачать, проверить и сохранить изображение.

        Args:
            url: Удалённый URL
            alt: Alt-текст (пустой не записывается)
            post_id: Пост, к которому прикрепить медиа

        Returns:
            ID медиа

        Raises:
            ImageImportError: Нарушение политики или последняя ошибка после всех попыток
        """
        url = self.policy.validate(url)

        last_error: Optional[ImageImportError] = None
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                media_id = self._attempt(url, alt, post_id)
                logger.info(f"[Images] Импортировано {redact_url(url)} → media {media_id} (попытка {attempt})")
                return media_id
            except ImageImportError as e:
                last_error = e
                logger.warning(
                    f"[Images] Попытка {attempt}/{self.MAX_ATTEMPTS} не удалась: "
                    f"{e.code} ({e.error_class}) {redact_url(url)}"
                )

            if attempt < self.MAX_ATTEMPTS:
                self._sleep(attempt)

        raise last_error

    def _attempt(self, url: str, alt: str, post_id: Optional[int]) -> int:
        data = self._download(url)

        mime = self.detect_mime(data)
        if not self._is_allowed_mime(mime):
            raise image_error("invalid_mime", "Invalid image type. Allowed: JPEG, PNG, WebP, GIF.", url)

        filename = self._filename(url, mime)
        try:
            media_id = self.media_store.store_bytes(data, mime, filename, attach_to=post_id)
        except MediaStoreError as e:
            raise image_error("sideload_failed", f"Media sideload failed: {e.message}", url) from e

        if alt:
            try:
                self.media_store.set_alt_text(media_id, alt)
            except MediaStoreError as e:
                logger.warning(f"[Images] Не удалось записать alt для media {media_id}: {e.message}")

        return media_id

    def _download(self, url: str) -> bytes:
        try:
            response = self.session.get(
                url,
                timeout=self.settings.image_fetch_timeout,
                headers={"User-Agent": self.USER_AGENT},
            )
        except requests.exceptions.RequestException as e:
            raise image_error(
                "download_failed", f"Image download failed: {describe_transport_error(e)}", url
            ) from e

        if not 200 <= response.status_code < 300:
            raise image_error("download_failed", f"Image download failed: HTTP {response.status_code}", url)

        return response.content

    @staticmethod
    def detect_mime(data: bytes) -> str:
        """MIME по сигнатуре байтов; SVG распознаётся по разметке."""
        if not data:
            return ""
        head = data[:512].lstrip().lower()
        if head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head):
            return SVG_MIME
        kind = guess(data)
        return kind.mime.lower() if kind else ""

    def _is_allowed_mime(self, mime: str) -> bool:
        if mime in ALLOWED_MIME_TYPES:
            return True
        if mime == SVG_MIME:
            return bool(self.settings.allow_svg)
        return False

    @staticmethod
    def _filename(url: str, mime: str) -> str:
        basename = posixpath.basename(urlsplit(url).path)
        basename = _FILENAME_RE.sub("-", basename).strip("-.")
        if not basename or "." not in basename:
            ext = _MIME_EXTENSIONS.get(mime, "jpg")
            basename = f"image-{random.randint(1000, 9999)}.{ext}"
        return basename

    # =========================================================================
    # Точки входа пайплайна
    # =========================================================================

    def set_featured_image(self, post_id: int, url: str, alt: str = "") -> int:
        """Импортировать и назначить миниатюрой поста."""
        media_id = self.import_image(url, alt, post_id)
        try:
            self.post_store.set_featured_media(post_id, media_id)
        except PostStoreError as e:
            raise image_error("sideload_failed", f"Could not set featured image (sideload): {e.message}", url) from e
        return media_id

    def set_og_image(self, post_id: int, url: str, alt: str = "") -> int:
        """Импортировать и записать OG-мета поста."""
        media_id = self.import_image(url, alt, post_id)
        self._write_og_meta(post_id, media_id, fallback_url=url)
        return media_id

    def apply_og_fallback(self, post_id: int, media_id: int) -> None:
        """Использовать уже сохранённое медиа (обычно миниатюру) как OG-изображение."""
        self._write_og_meta(post_id, media_id, fallback_url="")

    def _write_og_meta(self, post_id: int, media_id: int, fallback_url: str) -> None:
        try:
            media_url = self.media_store.get_url(media_id, size="full") or fallback_url
            meta = self.og_meta(media_id, media_url, self.settings.get_seo_plugins())
            self.post_store.update_meta(post_id, meta)
        except (MediaStoreError, PostStoreError) as e:
            raise image_error("sideload_failed", f"Could not store OG image meta (sideload): {e.message}", fallback_url) from e

    @staticmethod
    def og_meta(media_id: int, media_url: str, seo_plugins: Sequence[str]) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            OG_IMAGE_ID_META: media_id,
            OG_IMAGE_URL_META: media_url,
        }
        if "yoast" in seo_plugins:
            meta["_yoast_wpseo_opengraph-image"] = media_url
            meta["_yoast_wpseo_opengraph-image-id"] = str(media_id)
        if "rank_math" in seo_plugins:
            meta["rank_math_facebook_image"] = media_url
            meta["rank_math_facebook_image_id"] = str(media_id)
        return meta

    def import_inline_images(
        self,
        post_id: int,
        entries: Sequence[Union[InlineImage, Dict[str, Any]]],
    ) -> InlineImportResult:
        """
        Импортировать встроенные изображения.

        Каждая запись обрабатывается независимо: ошибка одной не мешает остальным.
        """
        result = InlineImportResult()

        for index, entry in enumerate(entries):
            if isinstance(entry, dict):
                try:
                    entry = InlineImage.model_validate(entry)
                except ValidationError:
                    result.errors.append(InlineImportFailure(index=index, message="Invalid inline image entry."))
                    continue
            if not isinstance(entry, InlineImage):
                result.errors.append(InlineImportFailure(index=index, message="Invalid inline image entry."))
                continue
            if not entry.url:
                result.errors.append(InlineImportFailure(index=index, message="Missing image URL."))
                continue

            try:
                media_id = self.import_image(entry.url, entry.alt, post_id)
            except ImageImportError as e:
                result.errors.append(InlineImportFailure(
                    index=index,
                    message=e.message,
                    error_class=e.error_class,
                    source_fingerprint=SourceFingerprint.from_dict(e.source_fingerprint),
                ))
                continue

            media_url = self._media_url(media_id) or entry.url
            result.items.append(InlineImportItem(
                media_id=media_id,
                url=media_url,
                alt=entry.alt,
                caption=entry.caption,
                placement_hint=entry.placement_hint,
            ))

        logger.info(f"[Images] Встроенные: {len(result.items)} импортировано, {len(result.errors)} ошибок")
        return result

    def _media_url(self, media_id: int) -> str:
        try:
            return self.media_store.get_url(media_id, size="full")
        except MediaStoreError as e:
            logger.warning(f"[Images] Нет URL для media {media_id}: {e.message}")
            return ""

    # =========================================================================
    # Проверка доступности
    # =========================================================================

    def is_fetchable(self, url: str) -> bool:
        """
        Отвечает ли URL кодом 2xx с Content-Type image/*.

        HEAD без следования редиректам; при ошибке транспорта, 405, 501 или 3xx
        повтор через GET c Range: bytes=0-0. Ничего не сохраняет.
        """
        if not url or not isinstance(url, str) or not url.strip():
            return False
        url = url.strip()

        response = None
        try:
            response = self.session.head(
                url,
                timeout=self.PROBE_TIMEOUT,
                headers={"User-Agent": self.USER_AGENT},
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"[Images] HEAD не удался для {redact_url(url)}: {type(e).__name__}")

        if response is None or response.status_code in (405, 501) or 300 <= response.status_code < 400:
            try:
                response = self.session.get(
                    url,
                    timeout=self.PROBE_TIMEOUT,
                    headers={"User-Agent": self.USER_AGENT, "Range": "bytes=0-0"},
                    allow_redirects=True,
                    stream=True,
                )
            except requests.exceptions.RequestException as e:
                logger.debug(f"[Images] GET не удался для {redact_url(url)}: {type(e).__name__}")
                return False
            response.close()

        if not 200 <= response.status_code < 300:
            return False

        content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        return content_type.startswith("image/")

    def fingerprint(self, url: str) -> SourceFingerprint:
        return fingerprint(url)
