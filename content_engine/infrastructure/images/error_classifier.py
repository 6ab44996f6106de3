# -*- coding: utf-8 -*-
"""Классификация ошибок импорта изображений для диагностики."""

from typing import Optional

ERROR_CLASSES = ("mime", "invalid_host", "http", "ssl", "timeout", "dns", "sideload", "unknown")

_CODE_CLASSES = {
    "invalid_mime": "mime",
    "not_https": "invalid_host",
    "host_not_allowed": "invalid_host",
    "invalid_extension": "invalid_host",
    "invalid_url": "http",
    "invalid_scheme": "http",
    "sideload_failed": "sideload",
}

# Порядок важен: первая совпавшая группа определяет класс
_MESSAGE_MARKERS = (
    ("ssl", ("curl error 60", "ssl certificate", "certificate verify", "ssl_", "sslerror")),
    ("timeout", ("timed out", "timeout")),
    ("dns", (
        "could not resolve host",
        "name or service not known",
        "getaddrinfo",
        "name resolution",
        "nodename nor servname",
    )),
    ("sideload", ("sideload",)),
)


def classify_error(code: Optional[str], message: Optional[str]) -> str:
    """
    Определить класс ошибки.

    Сначала по коду, затем по подстрокам уже очищенного сообщения.
    """
    if code in _CODE_CLASSES:
        return _CODE_CLASSES[code]

    text = (message or "").lower()
    for error_class, markers in _MESSAGE_MARKERS:
        if any(marker in text for marker in markers):
            return error_class

    if "http" in text or "40" in text or "50" in text:
        return "http"

    return "unknown"
