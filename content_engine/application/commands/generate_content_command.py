"""
Command: GenerationRequest

Параметры одной генерации статьи.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class GenerationRequest:
    """
    Запрос на генерацию.

    Иммутабелен (frozen=True). Пустые ключевые слова и None означают
    «взять значения из настроек».
    """

    # Required
    subject: str

    # Optional
    primary_keyword: Optional[str] = None
    secondary_keywords: Optional[List[str]] = None
    audience: str = ""
    intent: str = ""

    def __post_init__(self):
        if self.secondary_keywords is not None:
            object.__setattr__(self, "secondary_keywords", list(self.secondary_keywords))
