# -*- coding: utf-8 -*-
"""
Domain Service: эвристическая оценка SEO и читаемости.

Чистая функция от текста: никакого I/O, один и тот же вход всегда
даёт одну и ту же оценку.
"""

import re
from typing import List, Sequence

from content_engine.domain.value_objects.score import ScoreBreakdown
from content_engine.shared.text import count_words, strip_tags

_H2_RE = re.compile(r"<h2[^>]*>.*?</h2>", re.IGNORECASE | re.DOTALL)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

EDGE_WINDOW = 500
LONG_FORM_WORDS = 1200
MEDIUM_FORM_WORDS = 800
UNIQUENESS_MIN_WORDS = 500


class SEOScoringService:
    """
    Оценка контента.

    seo (0-100): ключевое слово в заголовке/начале/конце, структура H2,
    ссылки, объём. readability (0-100): штраф за длинные предложения.
    total = round(0.6 * seo + 0.4 * readability), ограничен 0..100.
    """

    def score(
        self,
        title: str,
        content: str,
        keywords: Sequence[str],
        internal_links: int = 0,
        external_links: int = 0,
    ) -> ScoreBreakdown:
        title = title or ""
        content = content or ""
        text = strip_tags(content)
        word_count = count_words(text)

        notes: List[str] = []
        seo = 0

        # Ключевое слово
        primary = keywords[0] if keywords else ""
        if primary:
            needle = primary.lower()
            if needle in title.lower():
                seo += 20
            else:
                notes.append("Primary keyword not found in title.")

            if needle in content[:EDGE_WINDOW].lower():
                seo += 15
            else:
                notes.append("Primary keyword not found in introduction.")

            if needle in content[-EDGE_WINDOW:].lower():
                seo += 15
            else:
                notes.append("Primary keyword not found in conclusion.")

        # Структура
        if len(_H2_RE.findall(content)) >= 3:
            seo += 15
        else:
            notes.append("Consider adding more H2 sections for structure.")

        # Ссылки
        if internal_links >= 3:
            seo += 10
        else:
            notes.append("Add more internal links to relevant content.")

        if external_links >= 2:
            seo += 10
        else:
            notes.append("Add more external authority links where relevant.")

        # Объём
        if word_count >= LONG_FORM_WORDS:
            seo += 15
        elif word_count >= MEDIUM_FORM_WORDS:
            seo += 8
            notes.append("Consider expanding the article for deeper coverage.")
        else:
            notes.append("Content is relatively short; long-form tends to perform better.")

        # Читаемость
        avg_sentence_length = self._average_sentence_length(text)
        readability = 100
        if avg_sentence_length > 25:
            readability -= 30
            notes.append("Sentences are long; consider breaking them up.")
        elif avg_sentence_length > 20:
            readability -= 15

        uniqueness_warning = word_count < UNIQUENESS_MIN_WORDS
        if uniqueness_warning:
            notes.append(
                "Short content may have trouble standing out; ensure the topic coverage is unique."
            )

        total = min(100, max(0, int(round(seo * 0.6 + readability * 0.4))))

        return ScoreBreakdown(
            total=total,
            seo=seo,
            readability=readability,
            uniqueness_warning=uniqueness_warning,
            word_count=word_count,
            avg_sentence_length=avg_sentence_length,
            notes=tuple(notes),
        )

    @staticmethod
    def _average_sentence_length(text: str) -> float:
        sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text)]
        sentences = [s for s in sentences if s]
        if not sentences:
            return 0.0
        total_words = sum(count_words(s) for s in sentences)
        return total_words / len(sentences)
