# -*- coding: utf-8 -*-
"""
Очистка изображений в ответе провайдера.

Недопустимые URL удаляются без провала генерации; каждое удаление
оставляет предупреждение в payload.image_warnings.
"""

import logging
from typing import Callable, List, Optional

from content_engine.domain.value_objects.generation import GenerationPayload
from content_engine.infrastructure.images.url_policy import ImageUrlPolicy, redact_url

logger = logging.getLogger(__name__)


class ImagePayloadSanitizer:
    """
    Args:
        policy: Политика URL изображений
        probe: Проверка доступности URL (None - не проверять)
    """

    def __init__(self, policy: ImageUrlPolicy, probe: Optional[Callable[[str], bool]] = None):
        self.policy = policy
        self.probe = probe

    def sanitize(self, payload: GenerationPayload) -> GenerationPayload:
        warnings: List[str] = list(payload.image_warnings)

        featured_url = self._check(payload.featured_image_url, "featured_removed_disallowed_host",
                                   "featured_not_fetchable", warnings)
        og_url = self._check(payload.og_image_url, "og_removed_invalid_extension",
                             "og_not_fetchable", warnings)

        inline = [entry for entry in payload.inline_images if self.policy.is_allowed(entry.url)]
        if self.probe is not None:
            inline = [entry for entry in inline if self.probe(entry.url)]
        removed = payload.inline_images_dropped + len(payload.inline_images) - len(inline)
        if removed > 0:
            warnings.append(f"inline_removed_count:{removed}")

        if warnings:
            logger.info(f"[LLM] Изображения очищены: {', '.join(warnings)}")

        return payload.model_copy(update={
            "featured_image_url": featured_url,
            "og_image_url": og_url,
            "inline_images": inline,
            "image_warnings": warnings,
            "inline_images_dropped": 0,
        })

    def _check(self, url: str, disallowed: str, unreachable: str, warnings: List[str]) -> str:
        if not url:
            return ""
        if not self.policy.is_allowed(url):
            warnings.append(disallowed)
            return ""
        if self.probe is not None and not self.probe(url):
            logger.debug(f"[LLM] Недоступно: {redact_url(url)}")
            warnings.append(unreachable)
            return ""
        return url
