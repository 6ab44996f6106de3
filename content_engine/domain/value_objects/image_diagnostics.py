# -*- coding: utf-8 -*-
"""
Value Objects: диагностика импорта изображений.

SourceFingerprint никогда не содержит исходный URL, путь или query:
только схему, замаскированный хост, флаг https и расширение.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

IMAGE_STAGES = ("featured", "og", "inline")


@dataclass(frozen=True)
class SourceFingerprint:
    """Безопасное для логов описание URL-источника."""

    scheme: str = "other"
    host_redacted: str = ""
    is_https: bool = False
    ext: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme,
            "host_redacted": self.host_redacted,
            "is_https": self.is_https,
            "ext": self.ext,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceFingerprint":
        data = data or {}
        return cls(
            scheme=data.get("scheme", "other"),
            host_redacted=data.get("host_redacted", ""),
            is_https=bool(data.get("is_https", False)),
            ext=data.get("ext", ""),
        )

    @classmethod
    def empty(cls) -> "SourceFingerprint":
        return cls()


@dataclass
class ImageErrorRecord:
    """Ошибка одного этапа работы с изображением."""

    stage: str
    message: str
    error_class: str = "unknown"
    source_fingerprint: SourceFingerprint = field(default_factory=SourceFingerprint.empty)

    def __post_init__(self):
        if self.stage not in IMAGE_STAGES:
            raise ValueError(f"Unknown image stage: {self.stage}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "error_class": self.error_class,
            "source_fingerprint": self.source_fingerprint.to_dict(),
        }


@dataclass
class ImageDiagnostics:
    """Сводка по изображениям одной задачи."""

    featured_set: bool = False
    inline_imported: int = 0
    og_set: bool = False
    errors: List[ImageErrorRecord] = field(default_factory=list)

    def add_error(self, record: ImageErrorRecord) -> None:
        self.errors.append(record)

    def errors_for(self, stage: str) -> List[ImageErrorRecord]:
        return [e for e in self.errors if e.stage == stage]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "featured_set": self.featured_set,
            "inline_imported": self.inline_imported,
            "og_set": self.og_set,
            "errors": [e.to_dict() for e in self.errors],
        }
