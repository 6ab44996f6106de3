"""
Domain Exceptions

Исключения доменного слоя.
"""


class DomainException(Exception):
    """Базовое исключение домена."""
    pass


class DomainValidationError(DomainException):
    """Ошибка валидации доменной сущности."""
    pass


class EntityNotFoundError(DomainException):
    """Сущность не найдена."""
    pass


class InvalidStatusTransition(DomainException):
    """Недопустимый переход статуса задачи."""
    pass
