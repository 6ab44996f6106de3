# -*- coding: utf-8 -*-
"""
SQLAlchemy модели (инфраструктурный слой).

Таблица content_jobs: задачи генерации. Оценка и журнал хранятся
в JSON-колонках как есть (ScoreBreakdown.to_dict(), JobLogEntry.to_dict()).
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobModel(Base):
    """SQLAlchemy модель задачи генерации."""

    __tablename__ = "content_jobs"

    # =========================================================================
    # Основные поля
    # =========================================================================
    id = Column(Integer, primary_key=True, autoincrement=True)
    subject = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)

    # =========================================================================
    # Отметки времени
    # =========================================================================
    scheduled_at = Column(DateTime(timezone=True))
    generated_at = Column(DateTime(timezone=True))
    published_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # =========================================================================
    # Результаты
    # =========================================================================
    score = Column(JSON, comment="ScoreBreakdown последней успешной попытки")
    logs = Column(JSON, default=list, comment="Журнал задачи (список записей)")
    post_id = Column(Integer, index=True)

    def __repr__(self):
        return f"<JobModel(id={self.id}, status='{self.status}', subject='{(self.subject or '')[:50]}')>"
