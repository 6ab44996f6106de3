"""
Database configuration.

Синхронный движок: пайплайн выполняется в рабочем процессе, без event loop.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from content_engine.infrastructure.persistence.models import Base


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Создать движок SQLAlchemy для указанного URL."""
    kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(pool_size=5, max_overflow=10)
    return create_engine(database_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Создать таблицы, если их ещё нет."""
    Base.metadata.create_all(engine)
