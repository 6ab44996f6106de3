# -*- coding: utf-8 -*-
"""
Доменная сущность: Задача генерации (Job)

Одна заявка на генерацию статьи и история её попыток:
- status: Статус жизненного цикла (pending → scheduled → generated/error → published)
- score: Оценка контента последней успешной попытки
- logs: Упорядоченный журнал структурированных записей
- post_id: Пост в CMS (появляется только после создания поста)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from content_engine.domain.value_objects.job_status import JobStatus
from content_engine.domain.value_objects.score import ScoreBreakdown
from content_engine.shared.exceptions.domain_exceptions import (
    DomainValidationError,
    InvalidStatusTransition,
)

_OPTIONAL_LOG_KEYS = ("stage", "error_class", "source_fingerprint", "error_code", "meta")


@dataclass
class JobLogEntry:
    """
    Запись журнала задачи.

    Сериализуется в JSON как есть; необязательные ключи без значения
    в словарь не попадают.
    """

    time: str
    source: str
    message: str = ""
    stage: Optional[str] = None
    error_class: Optional[str] = None
    source_fingerprint: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "time": self.time,
            "source": self.source,
            "message": self.message,
        }
        for key in _OPTIONAL_LOG_KEYS:
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobLogEntry":
        return cls(
            time=str(data.get("time", "")),
            source=str(data.get("source", "")),
            message=str(data.get("message", data.get("error_message", "")) or ""),
            stage=data.get("stage"),
            error_class=data.get("error_class"),
            source_fingerprint=data.get("source_fingerprint"),
            error_code=data.get("error_code"),
            meta=data.get("meta"),
        )


@dataclass
class Job:
    """
    Доменная сущность задачи.

    Инварианты:
    - subject не может быть пустым
    - published_at заполнен ⇔ status == PUBLISHED
    - post_id появляется только после создания поста
    """

    # =========================================================================
    # Идентификация
    # =========================================================================
    id: Optional[int] = None
    subject: str = ""

    # =========================================================================
    # Статус и отметки времени
    # =========================================================================
    status: JobStatus = JobStatus.PENDING
    scheduled_at: Optional[datetime] = None
    generated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    # =========================================================================
    # Результаты
    # =========================================================================
    score: Optional[ScoreBreakdown] = None
    logs: List[JobLogEntry] = field(default_factory=list)
    post_id: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.status, str) and not isinstance(self.status, JobStatus):
            self.status = JobStatus(self.status)
        self.validate()

    def validate(self) -> None:
        """
        Проверка инвариантов сущности.

        Raises:
            DomainValidationError: Если инварианты нарушены
        """
        if not self.subject or not self.subject.strip():
            raise DomainValidationError("Job subject cannot be empty")

        if (self.published_at is not None) != (self.status == JobStatus.PUBLISHED):
            raise DomainValidationError("published_at must be set only for published jobs")

    # =========================================================================
    # Бизнес-логика
    # =========================================================================

    def _transition(self, new_status: JobStatus) -> None:
        if self.status == new_status:
            return
        if not self.status.can_transition_to(new_status):
            raise InvalidStatusTransition(
                f"Job {self.id}: {self.status.value} -> {new_status.value} is not allowed"
            )
        self.status = new_status

    def mark_scheduled(self, now: datetime) -> None:
        """Начать новую попытку генерации."""
        self._transition(JobStatus.SCHEDULED)
        self.scheduled_at = now
        self.published_at = None

    def mark_generated(self, post_id: int, score: ScoreBreakdown, now: datetime, published: bool) -> None:
        """
        Зафиксировать успешную попытку.

        Args:
            post_id: ID созданного поста
            score: Свежая оценка контента
            now: Время завершения
            published: Был ли пост опубликован сразу
        """
        self._transition(JobStatus.PUBLISHED if published else JobStatus.GENERATED)
        self.post_id = post_id
        self.score = score
        self.generated_at = now
        self.published_at = now if published else None

    def mark_error(self) -> None:
        """Зафиксировать провал попытки."""
        self._transition(JobStatus.ERROR)
        self.published_at = None

    def mark_published(self, now: datetime) -> None:
        """Ручная публикация. Повторный вызов ничего не меняет."""
        if self.status == JobStatus.PUBLISHED:
            return
        self._transition(JobStatus.PUBLISHED)
        self.published_at = now

    def add_log(self, entry: JobLogEntry) -> None:
        self.logs.append(entry)

    @property
    def is_published(self) -> bool:
        return self.status == JobStatus.PUBLISHED

    def logs_as_dicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.logs]

    def __repr__(self) -> str:
        return f"Job(id={self.id}, subject='{self.subject[:50]}', status={self.status.value})"
