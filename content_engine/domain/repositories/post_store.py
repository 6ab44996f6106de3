"""
Ports: IPostStore, IMediaStore

Интерфейсы CMS: посты и медиа-библиотека.
Адаптер для WordPress REST API находится в infrastructure/wordpress.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class IPostStore(ABC):
    """
    Хранилище постов.

    Все методы при ошибке бросают PostStoreError.
    """

    @abstractmethod
    def create(self, title: str, content: str, excerpt: str, status: str) -> int:
        """
        Создать пост.

        Args:
            title: Заголовок
            content: HTML тела
            excerpt: Краткое описание
            status: draft | publish

        Returns:
            ID поста
        """
        pass

    @abstractmethod
    def update(self, post_id: int, **fields: Any) -> None:
        """Частичное обновление поста (content, status, ...)."""
        pass

    @abstractmethod
    def set_terms(self, post_id: int, taxonomy: str, terms: List[str]) -> None:
        """Назначить термины таксономии (category, post_tag)."""
        pass

    @abstractmethod
    def get(self, post_id: int) -> Optional[Dict[str, Any]]:
        """
        Получить пост.

        Returns:
            Словарь с ключами id, title, content, excerpt, status или None
        """
        pass

    @abstractmethod
    def set_featured_media(self, post_id: int, media_id: int) -> None:
        pass

    @abstractmethod
    def update_meta(self, post_id: int, meta: Dict[str, Any]) -> None:
        """Записать произвольные мета-поля поста."""
        pass


class IMediaStore(ABC):
    """
    Медиа-библиотека.

    Все методы при ошибке бросают MediaStoreError.
    """

    @abstractmethod
    def store_bytes(self, data: bytes, mime: str, filename: str, attach_to: Optional[int] = None) -> int:
        """
        Сохранить файл.

        Args:
            data: Содержимое
            mime: Проверенный MIME-тип
            filename: Имя файла
            attach_to: ID поста-родителя

        Returns:
            ID медиа
        """
        pass

    @abstractmethod
    def set_alt_text(self, media_id: int, alt: str) -> None:
        pass

    @abstractmethod
    def get_url(self, media_id: int, size: str = "full") -> str:
        pass
