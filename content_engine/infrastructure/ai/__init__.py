"""
Провайдеры генерации статей.
"""

from content_engine.infrastructure.ai.llm_provider import (
    ChatCompletionProvider,
    GenerationProvider,
    ProviderErrorCache,
    build_providers,
)
from content_engine.infrastructure.ai.model_discovery import ModelDiscovery
from content_engine.infrastructure.ai.payload_sanitizer import ImagePayloadSanitizer

__all__ = [
    "ChatCompletionProvider",
    "GenerationProvider",
    "ProviderErrorCache",
    "build_providers",
    "ModelDiscovery",
    "ImagePayloadSanitizer",
]
