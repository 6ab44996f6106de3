"""
Value Object: ScoreBreakdown

Результат эвристической оценки контента. Неизменяем: при каждой попытке
генерации считается заново.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ScoreBreakdown:
    """Разбивка оценки SEO/читаемости."""

    total: int
    seo: int
    readability: int
    uniqueness_warning: bool
    word_count: int
    avg_sentence_length: float
    notes: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["notes"] = list(self.notes)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ScoreBreakdown"]:
        if not data:
            return None
        return cls(
            total=int(data.get("total", 0)),
            seo=int(data.get("seo", 0)),
            readability=int(data.get("readability", 0)),
            uniqueness_warning=bool(data.get("uniqueness_warning", False)),
            word_count=int(data.get("word_count", 0)),
            avg_sentence_length=float(data.get("avg_sentence_length", 0.0)),
            notes=tuple(data.get("notes") or ()),
        )
