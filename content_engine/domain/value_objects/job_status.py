"""
Value Object: JobStatus

Статус задачи генерации и статус поста в CMS.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Статусы жизненного цикла задачи."""

    PENDING = "pending"              # Создана, не запускалась
    SCHEDULED = "scheduled"          # Попытка генерации запущена
    GENERATED = "generated"          # Пост создан, оставлен черновиком
    PUBLISHED = "published"          # Пост опубликован
    ERROR = "error"                  # Попытка завершилась ошибкой

    def is_final(self) -> bool:
        """Проверка, является ли статус итогом попытки."""
        return self in (
            self.GENERATED,
            self.PUBLISHED,
            self.ERROR,
        )

    def can_transition_to(self, new_status: 'JobStatus') -> bool:
        """
        Проверка возможности перехода в новый статус.

        Правила переходов:
        - PENDING -> SCHEDULED
        - SCHEDULED -> GENERATED, PUBLISHED, ERROR
        - GENERATED -> PUBLISHED (ручное одобрение), SCHEDULED (повтор)
        - ERROR -> SCHEDULED (retry)
        - PUBLISHED: терминальный
        """
        transitions = {
            self.PENDING: [self.SCHEDULED],
            self.SCHEDULED: [self.GENERATED, self.PUBLISHED, self.ERROR],
            self.GENERATED: [self.PUBLISHED, self.SCHEDULED],
            self.ERROR: [self.SCHEDULED],
        }

        allowed = transitions.get(self, [])
        return new_status in allowed


class PostStatus(str, Enum):
    """Статус поста в CMS."""

    DRAFT = "draft"
    PUBLISH = "publish"
