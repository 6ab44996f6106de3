# -*- coding: utf-8 -*-
"""
Исключения приложения (доменный и инфраструктурный слои).
"""

from content_engine.shared.exceptions.domain_exceptions import (
    DomainException,
    DomainValidationError,
    EntityNotFoundError,
    InvalidStatusTransition,
)
from content_engine.shared.exceptions.infrastructure_exceptions import (
    InfrastructureException,
    DatabaseError,
    ExternalServiceError,
    ProviderError,
    ImageImportError,
    PostStoreError,
    MediaStoreError,
)

__all__ = [
    'DomainException',
    'DomainValidationError',
    'EntityNotFoundError',
    'InvalidStatusTransition',
    'InfrastructureException',
    'DatabaseError',
    'ExternalServiceError',
    'ProviderError',
    'ImageImportError',
    'PostStoreError',
    'MediaStoreError',
]
