# -*- coding: utf-8 -*-
"""
Value Objects генерации: контекст запроса и нормализованный ответ провайдера.

GenerationPayload валидируется один раз, на границе адаптера провайдера.
Дальше по пайплайну он передаётся как типизированная запись.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PLACEMENT_HINTS = ("after_intro", "after_h2_1", "after_h2_2", "end")


# =============================================================================
# Контекст генерации
# =============================================================================

@dataclass(frozen=True)
class GenerationContext:
    """Нормализованный контекст, который пайплайн передаёт провайдеру."""

    subject: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    audience: str = ""
    intent: str = ""
    tone: str = "professional"
    voice: str = "third_person"
    word_count_min: int = 800
    word_count_max: int = 2000

    @property
    def primary_keyword(self) -> str:
        return self.keywords[0] if self.keywords else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "keywords": list(self.keywords),
            "audience": self.audience,
            "intent": self.intent,
            "tone": self.tone,
            "voice": self.voice,
            "word_count_range": {
                "min": self.word_count_min,
                "max": self.word_count_max,
            },
        }


# =============================================================================
# Элементы ответа
# =============================================================================

def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


class FaqItem(BaseModel):
    """Пара вопрос/ответ."""

    model_config = ConfigDict(extra="ignore")

    q: str = ""
    a: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_long_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("q", data.get("question", ""))
            data.setdefault("a", data.get("answer", ""))
        return data

    @field_validator("q", "a", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(_none_to_empty(value)).strip()

    @property
    def is_complete(self) -> bool:
        return bool(self.q and self.a)


class LinkHint(BaseModel):
    """Подсказка для внутренней или внешней ссылки."""

    model_config = ConfigDict(extra="ignore")

    anchor: str = ""
    target_hint: str = ""
    url: str = ""

    @field_validator("anchor", "target_hint", "url", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(_none_to_empty(value)).strip()


class InlineImage(BaseModel):
    """Изображение для вставки в тело статьи."""

    model_config = ConfigDict(extra="ignore")

    url: str
    alt: str = ""
    caption: str = ""
    placement_hint: str = "end"

    @field_validator("url", "alt", "caption", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(_none_to_empty(value)).strip()

    @field_validator("placement_hint", mode="before")
    @classmethod
    def _normalize_hint(cls, value: Any) -> str:
        hint = str(_none_to_empty(value)).strip()
        return hint if hint in PLACEMENT_HINTS else "end"


def _only_dicts(value: Any) -> List[Any]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


# =============================================================================
# Ответ провайдера
# =============================================================================

class GenerationPayload(BaseModel):
    """
    Нормализованный результат генерации.

    Инварианты:
    - content всегда непустой
    - поля изображений присутствуют всегда (пустая строка / пустой список)
    """

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    content: str
    excerpt: str = ""
    faq: List[FaqItem] = Field(default_factory=list)
    cta: str = ""
    internal_links: List[LinkHint] = Field(default_factory=list)
    external_links: List[LinkHint] = Field(default_factory=list)

    featured_image_url: str = ""
    featured_image_alt: str = ""
    og_image_url: str = ""
    og_image_alt: str = ""
    inline_images: List[InlineImage] = Field(default_factory=list)

    meta_title: str = ""
    meta_description: str = ""
    og_title: str = ""
    og_description: str = ""
    primary_keyword: str = ""
    schema_jsonld: Optional[Any] = None

    image_warnings: List[str] = Field(default_factory=list)
    # Записи inline_images без URL или не-объекты, отброшенные при разборе
    inline_images_dropped: int = 0

    @model_validator(mode="before")
    @classmethod
    def _normalize_raw(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not str(data.get("featured_image_url") or "").strip() and data.get("featured_image"):
                data["featured_image_url"] = data["featured_image"]
            raw_inline = data.get("inline_images")
            if isinstance(raw_inline, list):
                kept = [
                    item for item in raw_inline
                    if isinstance(item, dict) and str(item.get("url") or "").strip()
                ]
                data["inline_images"] = kept
                data["inline_images_dropped"] = len(raw_inline) - len(kept)
        return data

    @field_validator(
        "title", "excerpt", "cta",
        "featured_image_url", "featured_image_alt", "og_image_url", "og_image_alt",
        "meta_title", "meta_description", "og_title", "og_description", "primary_keyword",
        mode="before",
    )
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return str(_none_to_empty(value)).strip()

    @field_validator("content", mode="before")
    @classmethod
    def _content_required(cls, value: Any) -> str:
        text = str(_none_to_empty(value))
        if not text.strip():
            raise ValueError("content must not be empty")
        return text

    @field_validator("faq", mode="before")
    @classmethod
    def _faq_entries(cls, value: Any) -> List[Any]:
        return _only_dicts(value)

    @field_validator("internal_links", "external_links", mode="before")
    @classmethod
    def _link_entries(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        links = []
        for item in value:
            if isinstance(item, dict):
                links.append(item)
            elif isinstance(item, str) and item.strip():
                key = "url" if "://" in item else "anchor"
                links.append({key: item})
        return links

    @field_validator("inline_images", mode="before")
    @classmethod
    def _inline_entries(cls, value: Any) -> List[Any]:
        return [item for item in _only_dicts(value) if str(item.get("url") or "").strip()]
