# -*- coding: utf-8 -*-
"""Пайплайн генерации: оркестрация задач и сборка контента."""

from content_engine.application.pipeline.content_pipeline import ContentPipeline
from content_engine.application.pipeline.results import PipelineResult

__all__ = ["ContentPipeline", "PipelineResult"]
