# -*- coding: utf-8 -*-
"""
SQLAlchemy Repository реализация для задач генерации.

Адаптер в Hexagonal Architecture: Job ↔ JobModel.
Каждая операция выполняется в собственной короткой сессии.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from content_engine.domain.entities.job import Job, JobLogEntry
from content_engine.domain.repositories.job_repository import IJobRepository
from content_engine.domain.value_objects.job_status import JobStatus
from content_engine.domain.value_objects.score import ScoreBreakdown
from content_engine.infrastructure.persistence.models import JobModel
from content_engine.shared.exceptions import DatabaseError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "subject",
    "status",
    "scheduled_at",
    "generated_at",
    "published_at",
    "score",
    "logs",
    "post_id",
)


class SqlAlchemyJobRepository(IJobRepository):
    """
    Реализация репозитория задач на SQLAlchemy.

    Args:
        session_factory: Фабрика синхронных сессий
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def insert(self, job: Job) -> int:
        model = self._to_model(job)
        try:
            with self.session_factory() as session:
                session.add(model)
                session.commit()
                job_id = model.id
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job insert failed: {e}") from e
        job.id = job_id
        logger.debug(f"[Jobs] Создана задача {job_id} ({job.status.value})")
        return job_id

    def update(self, job_id: int, **fields: Any) -> bool:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        try:
            with self.session_factory() as session:
                model = session.get(JobModel, job_id)
                if model is None:
                    return False
                for name, value in fields.items():
                    setattr(model, name, self._column_value(name, value))
                session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job update failed: {e}") from e
        return True

    def get(self, job_id: int) -> Optional[Job]:
        try:
            with self.session_factory() as session:
                model = session.get(JobModel, job_id)
                return self._to_entity(model) if model else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job lookup failed: {e}") from e

    def list_recent(self, limit: int = 50) -> List[Job]:
        query = select(JobModel).order_by(JobModel.id.desc()).limit(limit)
        try:
            with self.session_factory() as session:
                models = session.execute(query).scalars().all()
                return [self._to_entity(m) for m in models]
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job listing failed: {e}") from e

    def delete_all(self) -> int:
        try:
            with self.session_factory() as session:
                result = session.execute(delete(JobModel))
                session.commit()
                deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job cleanup failed: {e}") from e
        logger.info(f"[Jobs] Удалено задач: {deleted}")
        return deleted

    # =========================================================================
    # Маппинг Entity ↔ Model
    # =========================================================================

    @staticmethod
    def _column_value(name: str, value: Any) -> Any:
        """Привести доменное значение к значению колонки."""
        if name == "status" and isinstance(value, JobStatus):
            return value.value
        if name == "score" and isinstance(value, ScoreBreakdown):
            return value.to_dict()
        if name == "logs" and value is not None:
            return [e.to_dict() if isinstance(e, JobLogEntry) else dict(e) for e in value]
        return value

    def _to_model(self, entity: Job) -> JobModel:
        return JobModel(
            id=entity.id,
            subject=entity.subject,
            status=entity.status.value,
            scheduled_at=entity.scheduled_at,
            generated_at=entity.generated_at,
            published_at=entity.published_at,
            score=entity.score.to_dict() if entity.score else None,
            logs=entity.logs_as_dicts(),
            post_id=entity.post_id,
        )

    def _to_entity(self, model: JobModel) -> Job:
        logs: List[Dict[str, Any]] = model.logs or []
        return Job(
            id=model.id,
            subject=model.subject,
            status=JobStatus(model.status),
            scheduled_at=model.scheduled_at,
            generated_at=model.generated_at,
            published_at=model.published_at,
            score=ScoreBreakdown.from_dict(model.score),
            logs=[JobLogEntry.from_dict(entry) for entry in logs if isinstance(entry, dict)],
            post_id=model.post_id,
        )
