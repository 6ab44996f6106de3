# -*- coding: utf-8 -*-
"""
Результат операций пайплайна.

Структурные ошибки (пустая тема, пост не создан, задача не найдена)
возвращаются типизированным результатом, а не исключением.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from content_engine.domain.value_objects.image_diagnostics import ImageDiagnostics
from content_engine.domain.value_objects.score import ScoreBreakdown


@dataclass
class PipelineResult:
    """Ответ generate_once / approve_job / run_job."""

    ok: bool
    status_code: int
    error: Optional[str] = None
    message: str = ""
    job_id: Optional[int] = None
    post_id: Optional[int] = None
    post_status: Optional[str] = None
    score: Optional[ScoreBreakdown] = None
    images: Optional[ImageDiagnostics] = None
    guardrails: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    provider_error: Optional[Dict[str, Any]] = None

    @classmethod
    def failure(cls, error: str, status_code: int, message: str, **kwargs) -> "PipelineResult":
        return cls(ok=False, status_code=status_code, error=error, message=message, **kwargs)

    @classmethod
    def success(cls, status_code: int = 200, message: str = "", **kwargs) -> "PipelineResult":
        return cls(ok=True, status_code=status_code, message=message, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok, "status_code": self.status_code}
        if self.error:
            data["error"] = self.error
        if self.message:
            data["message"] = self.message
        for key in ("job_id", "post_id", "post_status", "provider_error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.score is not None:
            data["score"] = self.score.to_dict()
        if self.images is not None:
            data["images"] = self.images.to_dict()
        if self.guardrails:
            data["guardrails"] = list(self.guardrails)
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data
