# -*- coding: utf-8 -*-
# =============================================================================
# Путь: content_engine/infrastructure/config/settings.py
# =============================================================================
"""
Application Settings - Infrastructure Layer.

Загружает настройки из переменных окружения (префикс CONTENT_ENGINE_) и .env файла.
Списки задаются строкой через запятую.

Экземпляр Settings создаётся один раз в точке сборки (CLI / build_pipeline)
и передаётся компонентам через конструктор.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE_HOSTS = "images.unsplash.com,cdn.pixabay.com,upload.wikimedia.org"


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Настройки движка.

    Все переменные загружаются из .env файла или переменных окружения.
    """

    # ==========================================================================
    # Режим интеграции
    # ==========================================================================
    integration_mode: str = "direct"  # direct | external
    mode_fallback: str = "direct"  # direct | none

    # ==========================================================================
    # Провайдер генерации (OpenAI-совместимый)
    # ==========================================================================
    provider_enabled: bool = True
    provider_api_base: str = "https://api.openai.com/v1"
    provider_api_key: Optional[str] = None
    provider_model: str = "gpt-4o-mini"
    provider_timeout: int = 30
    provider_max_tokens: int = 3000
    provider_temperature: float = 0.4
    provider_error_cache_path: str = "data/provider_last_error.json"

    # ==========================================================================
    # Контент по умолчанию
    # ==========================================================================
    default_subject: str = ""
    tone: str = "professional"
    voice: str = "third_person"
    word_count_min: int = 1200
    word_count_max: int = 2500
    target_categories: str = ""
    target_tags: str = ""
    keyword_primary: str = ""
    keyword_secondary: str = ""
    site_name: str = "Content Engine"
    meta_title_template: str = "{title} | {site_name}"

    # ==========================================================================
    # Пороги качества
    # ==========================================================================
    readability_min: int = 60
    seo_score_min: int = 70

    # ==========================================================================
    # Изображения
    # ==========================================================================
    featured_required: bool = True
    inline_image_count: int = 2
    enforce_image_allowlist: bool = True
    allowed_image_hosts: str = DEFAULT_IMAGE_HOSTS
    allow_svg: bool = False
    verify_remote_image_exists: bool = True
    use_featured_as_og_fallback: bool = True
    enable_inline_image_injection: bool = True
    image_fetch_timeout: int = 20

    # ==========================================================================
    # Публикация
    # ==========================================================================
    draft_only: bool = True
    auto_publish: bool = False

    # ==========================================================================
    # SEO плагины (yoast, rank_math)
    # ==========================================================================
    seo_plugins: str = "yoast,rank_math"

    # ==========================================================================
    # Database
    # ==========================================================================
    database_url: str = "sqlite:///content_engine.db"

    # ==========================================================================
    # WordPress REST API
    # ==========================================================================
    wordpress_url: str = "http://localhost:8080"
    wordpress_user: str = "admin"
    wordpress_app_password: Optional[str] = None
    wordpress_timeout: int = 30

    # ==========================================================================
    # App Settings
    # ==========================================================================
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # Pydantic Settings Config
    # ==========================================================================
    model_config = SettingsConfigDict(
        env_prefix="CONTENT_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # Вспомогательные методы
    # ==========================================================================

    def get_allowed_image_hosts(self) -> List[str]:
        """Allow-list хостов изображений в нижнем регистре."""
        return [host.lower() for host in _split_csv(self.allowed_image_hosts)]

    def get_target_categories(self) -> List[str]:
        return _split_csv(self.target_categories)

    def get_target_tags(self) -> List[str]:
        return _split_csv(self.target_tags)

    def get_secondary_keywords(self) -> List[str]:
        return _split_csv(self.keyword_secondary)

    def get_seo_plugins(self) -> List[str]:
        return [plugin.lower() for plugin in _split_csv(self.seo_plugins)]

    def has_provider_key(self) -> bool:
        return bool(self.provider_api_key and self.provider_api_key.strip())

    def is_external_mode(self) -> bool:
        return self.integration_mode.lower() == "external"


@lru_cache()
def get_settings() -> Settings:
    """
    Получить закэшированные настройки.

    Использует lru_cache - настройки загружаются один раз при старте.

    Returns:
        Экземпляр Settings
    """
    return Settings()
