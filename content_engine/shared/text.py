# -*- coding: utf-8 -*-
"""
Текстовые утилиты: очистка HTML, подсчёт слов, обрезка, редактирование секретов.

Используются скорингом, пайплайном и адаптером провайдера. Все сообщения,
которые попадают в логи задач или ответы, проходят через sanitize_text().
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

MAX_MESSAGE_LENGTH = 400

_WORD_RE = re.compile(r"[^\W\d_]+(?:['\-][^\W\d_]+)*", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")
_URL_RE = re.compile(r"\b[a-zA-Z][a-zA-Z0-9+.\-]*://[^\s\"'<>]+")
# Формат urllib3: "...Pool(host='...', port=443): ... with url: /path?query"
_POOL_HOST_RE = re.compile(r"host='[^']*'")
_POOL_URL_RE = re.compile(r"with url: \S+")

_DNS_MARKERS = (
    "nameresolution",
    "name resolution",
    "name or service not known",
    "getaddrinfo",
    "nodename nor servname",
    "could not resolve host",
)


def strip_tags(html: Optional[str]) -> str:
    """Удалить HTML-разметку, оставив текст (блоки разделяются пробелом)."""
    if not html:
        return ""
    if "<" not in html:
        return html.strip()
    soup = BeautifulSoup(html, "html.parser")
    for node in soup(["script", "style"]):
        node.decompose()
    return soup.get_text(separator=" ", strip=True)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def count_words(text: Optional[str]) -> int:
    """Количество слов (буквенные последовательности, допускаются ' и -)."""
    if not text:
        return 0
    return len(_WORD_RE.findall(text))


def trim_words(text: Optional[str], limit: int, more: str = "…") -> str:
    """
    Оставить первые limit слов текста.

    Args:
        text: Исходный текст (HTML будет очищен)
        limit: Максимум слов
        more: Суффикс, если текст был обрезан
    """
    words = strip_tags(text).split()
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + more


def redact_urls(text: str) -> str:
    """Заменить все URL в тексте на scheme://host/***, скрыть host/url в сообщениях urllib3."""
    def _replace(match: re.Match) -> str:
        url = match.group(0)
        scheme, _, rest = url.partition("://")
        host = rest.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0]
        host = host.rsplit("@", 1)[-1]
        return f"{scheme}://{host}/***"

    text = _URL_RE.sub(_replace, text or "")
    text = _POOL_HOST_RE.sub("host='***'", text)
    return _POOL_URL_RE.sub("with url: /***", text)


def describe_transport_error(error: BaseException) -> str:
    """
    Безопасное описание сетевой ошибки requests.

    Текст исключения содержит хост, путь и query запроса, поэтому наружу
    отдаётся только имя класса и признак для классификатора (DNS).
    """
    name = type(error).__name__
    text = str(error).lower()
    if any(marker in text for marker in _DNS_MARKERS):
        return f"{name} (name resolution failed)"
    return name


def sanitize_text(text, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """
    Подготовить сообщение к хранению и показу.

    Снимает теги, схлопывает пробелы, скрывает пути URL и ограничивает длину.
    """
    if not isinstance(text, str):
        return ""
    cleaned = collapse_whitespace(strip_tags(text))
    cleaned = redact_urls(cleaned)
    return cleaned[:max_length]


def redact_secret(value: Optional[str]) -> str:
    """Маскировать секрет: первые два символа + звёздочки."""
    if not value:
        return ""
    if len(value) <= 4:
        return "*" * len(value)
    return value[:2] + "*" * max(4, len(value) - 4)
