# -*- coding: utf-8 -*-
"""
Сборка зависимостей (composition root).

Единственное место, где настройки превращаются в конкретные адаптеры.
"""

from pathlib import Path
from typing import Optional, Sequence

import requests

from content_engine.application.pipeline.content_pipeline import ContentPipeline
from content_engine.domain.services.seo_scoring import SEOScoringService
from content_engine.infrastructure.ai.llm_provider import (
    ChatCompletionProvider,
    GenerationProvider,
    ProviderErrorCache,
    build_providers,
)
from content_engine.infrastructure.ai.payload_sanitizer import ImagePayloadSanitizer
from content_engine.infrastructure.config.database import (
    create_db_engine,
    create_session_factory,
    init_db,
)
from content_engine.infrastructure.config.settings import Settings, get_settings
from content_engine.infrastructure.images.image_service import ImageIngestionService
from content_engine.infrastructure.images.url_policy import ImageUrlPolicy
from content_engine.infrastructure.persistence.job_repository_impl import SqlAlchemyJobRepository
from content_engine.infrastructure.wordpress.wordpress_client import WordPressClient


def get_job_repository(settings: Optional[Settings] = None) -> SqlAlchemyJobRepository:
    """Репозиторий задач; таблицы создаются при первом обращении."""
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url, echo=settings.debug)
    init_db(engine)
    return SqlAlchemyJobRepository(create_session_factory(engine))


def get_error_cache(settings: Optional[Settings] = None) -> ProviderErrorCache:
    settings = settings or get_settings()
    path = settings.provider_error_cache_path
    return ProviderErrorCache(Path(path) if path else None)


def get_image_service(
    settings: Settings,
    client: WordPressClient,
    session: Optional[requests.Session] = None,
) -> ImageIngestionService:
    return ImageIngestionService(settings, media_store=client, post_store=client, session=session)


def get_sanitizer(settings: Settings, image_service: ImageIngestionService) -> ImagePayloadSanitizer:
    """
    Санитайзер ответа провайдера.

    Allow-list к URL из ответа модели применяется всегда; HEAD-проверка
    доступности включается настройкой verify_remote_image_exists.
    """
    policy = ImageUrlPolicy(settings.get_allowed_image_hosts(), enforce_allowlist=True)
    probe = image_service.is_fetchable if settings.verify_remote_image_exists else None
    return ImagePayloadSanitizer(policy, probe=probe)


def get_chat_provider(
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> ChatCompletionProvider:
    """Прямой провайдер для диагностики (provider-debug)."""
    settings = settings or get_settings()
    client = WordPressClient.from_settings(settings, session=session)
    image_service = get_image_service(settings, client, session=session)
    return ChatCompletionProvider(
        settings,
        get_sanitizer(settings, image_service),
        get_error_cache(settings),
        session=session,
    )


def build_pipeline(
    settings: Optional[Settings] = None,
    external_providers: Sequence[GenerationProvider] = (),
    session: Optional[requests.Session] = None,
) -> ContentPipeline:
    """
    Собрать ContentPipeline из настроек.

    Args:
        settings: Настройки (по умолчанию get_settings())
        external_providers: Провайдеры вызывающей стороны для режима external
        session: Общая HTTP-сессия requests

    Returns:
        ContentPipeline
    """
    settings = settings or get_settings()
    client = WordPressClient.from_settings(settings, session=session)
    image_service = get_image_service(settings, client, session=session)
    providers = build_providers(
        settings,
        get_sanitizer(settings, image_service),
        external=external_providers,
        error_cache=get_error_cache(settings),
        session=session,
    )
    return ContentPipeline(
        settings,
        providers,
        job_repository=get_job_repository(settings),
        post_store=client,
        image_service=image_service,
        scoring=SEOScoringService(),
    )
