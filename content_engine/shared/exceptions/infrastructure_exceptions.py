"""
Infrastructure Exceptions

Исключения инфраструктурного слоя.

Каждая ошибка внешнего сервиса несёт машинный код (code), уже очищенное
сообщение и словарь метаданных без секретов и сырых URL.
"""

from typing import Any, Dict, Optional


class InfrastructureException(Exception):
    """Базовое исключение инфраструктуры."""
    pass


class DatabaseError(InfrastructureException):
    """Ошибка работы с БД."""
    pass


class ExternalServiceError(InfrastructureException):
    """Ошибка внешнего сервиса."""

    def __init__(self, code: str, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = meta or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "meta": dict(self.meta)}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ProviderError(ExternalServiceError):
    """Ошибка провайдера генерации текста."""
    pass


class ImageImportError(ExternalServiceError):
    """
    Ошибка импорта изображения.

    Атрибуты:
        error_class: Класс ошибки для диагностики (mime, ssl, timeout, ...)
        source_fingerprint: Обезличенное описание URL-источника
    """

    def __init__(
        self,
        code: str,
        message: str,
        error_class: str = "unknown",
        source_fingerprint: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, {"error_class": error_class})
        self.error_class = error_class
        self.source_fingerprint = source_fingerprint or {}


class PostStoreError(ExternalServiceError):
    """Ошибка хранилища постов CMS."""
    pass


class MediaStoreError(ExternalServiceError):
    """Ошибка медиа-хранилища CMS."""
    pass
