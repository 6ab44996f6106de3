# -*- coding: utf-8 -*-
"""
Сборка HTML статьи и SEO-мета.

- assemble_body: контент + CTA + раздел FAQ
- inject_inline_images: вставка <figure> по подсказкам размещения
- build_seo_meta: мета-заголовок/описание, ключевое слово, OG-тексты
  для нативных ключей и SEO плагинов (Yoast, Rank Math)
"""

import html
import re
from typing import Dict, List, Sequence

from content_engine.domain.value_objects.generation import FaqItem, GenerationPayload
from content_engine.shared.text import trim_words

FAQ_HEADING = "Frequently Asked Questions"
HINT_ORDER = ("after_intro", "after_h2_1", "after_h2_2", "end")

TITLE_WORDS = 12
EXCERPT_WORDS = 40
DESCRIPTION_WORDS = 30

META_TITLE = "_content_engine_meta_title"
META_DESCRIPTION = "_content_engine_meta_description"
META_OG_TITLE = "_content_engine_og_title"
META_OG_DESCRIPTION = "_content_engine_og_description"
META_SCHEMA = "_content_engine_schema"

_P_CLOSE_RE = re.compile(r"</p>", re.IGNORECASE)
_H2_CLOSE_RE = re.compile(r"</h2>", re.IGNORECASE)


# =============================================================================
# Тело статьи
# =============================================================================

def render_faq(faq: Sequence[FaqItem]) -> str:
    """Раздел FAQ; записи без вопроса или ответа пропускаются."""
    if not faq:
        return ""
    parts = [f"<h2>{FAQ_HEADING}</h2>"]
    for item in faq:
        if not item.is_complete:
            continue
        parts.append(f"<h3>{html.escape(item.q)}</h3>")
        parts.append(f"<p>{item.a}</p>")
    return "\n".join(parts)


def assemble_body(content: str, cta: str = "", faq: Sequence[FaqItem] = ()) -> str:
    body = content
    if cta:
        body += "\n\n" + cta
    faq_html = render_faq(faq)
    if faq_html:
        body += "\n\n" + faq_html
    return body


def default_title(subject: str) -> str:
    return trim_words(subject, TITLE_WORDS)


def default_excerpt(body: str) -> str:
    return trim_words(body, EXCERPT_WORDS)


# =============================================================================
# Встроенные изображения
# =============================================================================

def render_figure(url: str, alt: str = "", caption: str = "") -> str:
    block = f'<figure><img src="{html.escape(url, quote=True)}" alt="{html.escape(alt, quote=True)}" />'
    if caption:
        block += f"<figcaption>{html.escape(caption)}</figcaption>"
    return block + "</figure>"


def _insert_at(content: str, position: int, block: str) -> str:
    return content[:position] + "\n\n" + block + "\n\n" + content[position:]


def insert_after_first_paragraph(content: str, block: str) -> str:
    match = _P_CLOSE_RE.search(content)
    if match is None:
        return content + "\n\n" + block
    return _insert_at(content, match.end(), block)


def insert_after_nth_h2(content: str, block: str, n: int = 1) -> str:
    matches = list(_H2_CLOSE_RE.finditer(content))
    n = max(1, n)
    if len(matches) < n:
        return content + "\n\n" + block
    return _insert_at(content, matches[n - 1].end(), block)


def inject_inline_images(content: str, items: Sequence, max_count: int) -> str:
    """
    Вставить изображения в порядке подсказок: after_intro, after_h2_1,
    after_h2_2, end. Остальные дописываются в конец.

    items: объекты с атрибутами url, alt, caption, placement_hint
    """
    blocks = [
        (item.placement_hint, render_figure(item.url, item.alt, item.caption))
        for item in list(items)[:max(0, max_count)]
        if item.url
    ]

    used: List[int] = []
    for hint in HINT_ORDER:
        for index, (block_hint, block) in enumerate(blocks):
            if block_hint != hint or index in used:
                continue
            used.append(index)
            if hint == "after_intro":
                content = insert_after_first_paragraph(content, block)
            elif hint == "after_h2_1":
                content = insert_after_nth_h2(content, block, 1)
            elif hint == "after_h2_2":
                content = insert_after_nth_h2(content, block, 2)
            else:
                content = content + "\n\n" + block

    for index, (_, block) in enumerate(blocks):
        if index not in used:
            content = content + "\n\n" + block

    return content


# =============================================================================
# SEO мета
# =============================================================================

def render_meta_title(template: str, title: str, site_name: str, primary_keyword: str) -> str:
    """Подстановка {title}, {site_name}, {primary_keyword} без str.format."""
    result = template or "{title}"
    for placeholder, value in (
        ("{title}", title),
        ("{site_name}", site_name),
        ("{primary_keyword}", primary_keyword),
    ):
        result = result.replace(placeholder, value)
    return result.strip()


def build_seo_meta(
    payload: GenerationPayload,
    title: str,
    primary_keyword: str,
    settings,
) -> Dict[str, str]:
    """Мета-поля поста: нативные ключи плюс ключи включённых SEO плагинов."""
    meta_title = payload.meta_title or render_meta_title(
        settings.meta_title_template, title, settings.site_name, primary_keyword
    )
    meta_description = payload.meta_description or trim_words(payload.content, DESCRIPTION_WORDS)

    meta: Dict[str, str] = {
        META_TITLE: meta_title,
        META_DESCRIPTION: meta_description,
    }
    if payload.og_title:
        meta[META_OG_TITLE] = payload.og_title
    if payload.og_description:
        meta[META_OG_DESCRIPTION] = payload.og_description

    plugins = settings.get_seo_plugins()
    if "rank_math" in plugins:
        meta["rank_math_title"] = meta_title
        meta["rank_math_description"] = meta_description
        if primary_keyword:
            meta["rank_math_focus_keyword"] = primary_keyword
    if "yoast" in plugins:
        meta["_yoast_wpseo_title"] = meta_title
        meta["_yoast_wpseo_metadesc"] = meta_description
        if primary_keyword:
            meta["_yoast_wpseo_focuskw"] = primary_keyword
    return meta
