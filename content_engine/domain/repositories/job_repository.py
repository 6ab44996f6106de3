"""
Repository Interface: IJobRepository

Порт (интерфейс) для хранилища задач генерации.
Реализации (адаптеры) находятся в infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from content_engine.domain.entities.job import Job


class IJobRepository(ABC):
    """
    Интерфейс репозитория задач.

    Задачи никогда не удаляются поштучно: только через явную
    массовую очистку delete_all().
    """

    @abstractmethod
    def insert(self, job: Job) -> int:
        """
        Сохранить новую задачу.

        Args:
            job: Задача без id

        Returns:
            Присвоенный ID
        """
        pass

    @abstractmethod
    def update(self, job_id: int, **fields: Any) -> bool:
        """
        Частичное обновление задачи.

        Поля, которые не переданы, остаются без изменений.

        Args:
            job_id: ID задачи
            **fields: Обновляемые поля (status, score, logs, post_id, ...)

        Returns:
            True если задача найдена и обновлена
        """
        pass

    @abstractmethod
    def get(self, job_id: int) -> Optional[Job]:
        """Найти задачу по ID."""
        pass

    @abstractmethod
    def list_recent(self, limit: int = 50) -> List[Job]:
        """
        Последние задачи, новые первыми.

        Args:
            limit: Лимит записей
        """
        pass

    @abstractmethod
    def delete_all(self) -> int:
        """
        Удалить все задачи.

        Returns:
            Количество удалённых записей
        """
        pass
