# -*- coding: utf-8 -*-
# =============================================================================
# Путь: content_engine/application/pipeline/content_pipeline.py
# =============================================================================
"""
Пайплайн генерации статьи.

generate_once:
    провайдеры → сборка HTML → пост (draft) → таксономии → миниатюра →
    SEO/OG мета → встроенные изображения → оценка → guardrails → задача

Ошибки провайдеров и изображений не выходят за пределы пайплайна:
они переводят задачу в error / draft и оставляют запись в журнале.
Структурные ошибки возвращаются типизированным PipelineResult.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from content_engine.application.commands.generate_content_command import GenerationRequest
from content_engine.application.pipeline.content_assembly import (
    META_SCHEMA,
    assemble_body,
    build_seo_meta,
    default_excerpt,
    default_title,
    inject_inline_images,
)
from content_engine.application.pipeline.results import PipelineResult
from content_engine.domain.entities.job import Job, JobLogEntry
from content_engine.domain.repositories.job_repository import IJobRepository
from content_engine.domain.repositories.post_store import IPostStore
from content_engine.domain.services.seo_scoring import SEOScoringService
from content_engine.domain.value_objects.generation import GenerationContext, GenerationPayload
from content_engine.domain.value_objects.image_diagnostics import (
    ImageDiagnostics,
    ImageErrorRecord,
    SourceFingerprint,
)
from content_engine.domain.value_objects.job_status import JobStatus, PostStatus
from content_engine.domain.value_objects.score import ScoreBreakdown
from content_engine.infrastructure.ai.llm_provider import GenerationProvider
from content_engine.infrastructure.images.image_service import ImageIngestionService
from content_engine.shared.exceptions import ImageImportError, PostStoreError, ProviderError
from content_engine.shared.text import sanitize_text

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _JobLock:
    """Блокировка задачи и число потоков, которые её держат или ждут."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = Lock()
        self.users = 0


class ContentPipeline:
    """
    Оркестратор задач генерации.

    Args:
        settings: Настройки (пороги, изображения, публикация)
        providers: Упорядоченный список провайдеров, первый успешный выигрывает
        job_repository: Хранилище задач
        post_store: Хранилище постов CMS
        image_service: Импорт изображений
        scoring: Сервис оценки
        clock: Источник текущего времени
    """

    def __init__(
        self,
        settings,
        providers: Sequence[GenerationProvider],
        job_repository: IJobRepository,
        post_store: IPostStore,
        image_service: ImageIngestionService,
        scoring: Optional[SEOScoringService] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.providers = list(providers)
        self.jobs = job_repository
        self.posts = post_store
        self.images = image_service
        self.scoring = scoring or SEOScoringService()
        self._clock = clock
        self._locks: Dict[int, _JobLock] = {}
        self._locks_guard = Lock()

    # =========================================================================
    # Вспомогательное
    # =========================================================================

    @contextmanager
    def _job_lock(self, job_id: int) -> Iterator[None]:
        """Внутрипроцессная блокировка одной задачи; запись удаляется, когда задача свободна."""
        with self._locks_guard:
            entry = self._locks.setdefault(job_id, _JobLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[job_id]

    def _now(self) -> datetime:
        return self._clock()

    def _log(self, source: str, message: str = "", **fields) -> JobLogEntry:
        return JobLogEntry(time=self._now().isoformat(), source=source, message=sanitize_text(message), **fields)

    def _keywords(self, request: GenerationRequest) -> List[str]:
        primary = request.primary_keyword or self.settings.keyword_primary
        secondary = request.secondary_keywords or self.settings.get_secondary_keywords()
        keywords = [primary] + list(secondary)
        return [k.strip() for k in keywords if k and k.strip()]

    # =========================================================================
    # generate_once
    # =========================================================================

    def generate_once(
        self,
        request: GenerationRequest,
        publish_requested: bool = False,
        existing_job_id: Optional[int] = None,
    ) -> PipelineResult:
        """
        Одна попытка генерации.

        Args:
            request: Параметры генерации
            publish_requested: Публиковать, если ни один guardrail не сработал
            existing_job_id: Перезапуск существующей задачи

        Returns:
            PipelineResult
        """
        subject = (request.subject or "").strip()
        if not subject:
            return PipelineResult.failure("invalid_subject", 400, "Subject is required.")

        if existing_job_id is None:
            return self._generate(subject, request, publish_requested, None)

        with self._job_lock(existing_job_id):
            job = self.jobs.get(existing_job_id)
            if job is None:
                return PipelineResult.failure("not_found", 404, "Job not found.", job_id=existing_job_id)
            if job.is_published:
                return PipelineResult.failure(
                    "job_already_published", 409, "Published jobs cannot be re-run.",
                    job_id=job.id, post_id=job.post_id,
                )
            job.mark_scheduled(self._now())
            self.jobs.update(job.id, status=job.status, scheduled_at=job.scheduled_at, published_at=None)
            return self._generate(subject, request, publish_requested, job)

    def _generate(
        self,
        subject: str,
        request: GenerationRequest,
        publish_requested: bool,
        job: Optional[Job],
    ) -> PipelineResult:
        keywords = self._keywords(request)
        context = GenerationContext(
            subject=subject,
            keywords=tuple(keywords),
            audience=request.audience,
            intent=request.intent,
            tone=self.settings.tone,
            voice=self.settings.voice,
            word_count_min=self.settings.word_count_min,
            word_count_max=self.settings.word_count_max,
        )
        logger.info(f"[Pipeline] Генерация: '{subject[:60]}' (ключевых слов: {len(keywords)})")

        # Провайдеры
        payload, provider_error = self._call_providers(context)
        if provider_error is not None:
            entry = self._log(
                "llm_provider",
                provider_error.message,
                error_code=provider_error.code,
                meta=dict(provider_error.meta),
            )
            job_id = self._persist_failure(subject, job, entry)
            logger.error(f"[Pipeline] Генерация не удалась: {provider_error.code} (job {job_id})")
            return PipelineResult.failure(
                "generation_failed", 502, "Content generation failed.",
                job_id=job_id,
                provider_error=provider_error.to_dict(),
            )

        # Сборка
        title = payload.title or default_title(subject)
        body = assemble_body(payload.content, payload.cta, payload.faq)
        excerpt = payload.excerpt or default_excerpt(body)

        try:
            post_id = self.posts.create(title, body, excerpt, PostStatus.DRAFT.value)
        except PostStoreError as e:
            entry = self._log("post_store", e.message, error_code=e.code)
            job_id = self._persist_failure(subject, job, entry)
            logger.error(f"[Pipeline] Пост не создан: {e.code} (job {job_id})")
            return PipelineResult.failure("post_insert_failed", 500, sanitize_text(e.message), job_id=job_id)

        logs: List[JobLogEntry] = []
        warnings: List[str] = list(payload.image_warnings)

        self._apply_terms(post_id, logs, warnings)

        # Изображения и мета
        diagnostics = ImageDiagnostics()
        featured_media_id = self._apply_featured(post_id, payload, title, diagnostics, logs)
        self._apply_seo_meta(post_id, payload, title, keywords, logs, warnings)
        self._apply_og(post_id, payload, title, featured_media_id, diagnostics, logs)
        body = self._apply_inline(post_id, payload, body, diagnostics, logs, warnings)

        # Оценка по сохранённому контенту
        content_for_score = self._stored_content(post_id, body, warnings)
        score = self.scoring.score(
            title,
            content_for_score,
            keywords,
            internal_links=len(payload.internal_links),
            external_links=len(payload.external_links),
        )

        if payload.schema_jsonld:
            try:
                self.posts.update_meta(post_id, {META_SCHEMA: json.dumps(payload.schema_jsonld, ensure_ascii=False)})
            except PostStoreError as e:
                warnings.append("schema_meta_failed")
                logs.append(self._log("post_store", e.message, error_code=e.code))

        # Guardrails
        guardrails = self._guardrails(score, title, content_for_score, diagnostics)
        publish = publish_requested and not self.settings.draft_only and not guardrails
        post_status = PostStatus.DRAFT.value
        if publish:
            try:
                self.posts.update(post_id, status=PostStatus.PUBLISH.value)
                post_status = PostStatus.PUBLISH.value
            except PostStoreError as e:
                warnings.append("publish_failed")
                logs.append(self._log("post_store", e.message, error_code=e.code))

        job_id = self._persist_success(subject, job, post_id, score, post_status == PostStatus.PUBLISH.value, logs)
        logger.info(
            f"[Pipeline] Готово: job {job_id}, post {post_id}, {post_status}, "
            f"score {score.total}, guardrails: {', '.join(guardrails) or '-'}"
        )

        return PipelineResult.success(
            201,
            job_id=job_id,
            post_id=post_id,
            post_status=post_status,
            score=score,
            images=diagnostics,
            guardrails=guardrails,
            warnings=warnings,
        )

    def _call_providers(self, context: GenerationContext) -> Tuple[Optional[GenerationPayload], Optional[ProviderError]]:
        last_error: Optional[ProviderError] = None
        for provider in self.providers:
            try:
                payload = provider.generate(context)
            except ProviderError as e:
                last_error = e
                logger.warning(f"[Pipeline] Провайдер {provider.name}: {e.code}")
                continue
            if payload is None or not payload.content.strip():
                last_error = ProviderError("invalid_generation_payload", "Generation returned an invalid payload.")
                logger.warning(f"[Pipeline] Провайдер {provider.name}: пустой ответ")
                continue
            return payload, None

        if last_error is None:
            last_error = ProviderError("no_provider", "No generation provider is configured.")
        return None, last_error

    # =========================================================================
    # Шаги после создания поста
    # =========================================================================

    def _apply_terms(self, post_id: int, logs: List[JobLogEntry], warnings: List[str]) -> None:
        for taxonomy, terms in (
            ("category", self.settings.get_target_categories()),
            ("post_tag", self.settings.get_target_tags()),
        ):
            if not terms:
                continue
            try:
                self.posts.set_terms(post_id, taxonomy, terms)
            except PostStoreError as e:
                logger.warning(f"[Pipeline] Термины {taxonomy} не назначены: {e.code}")
                warnings.append(f"{taxonomy}_terms_failed")
                logs.append(self._log("taxonomy", e.message, error_code=e.code))

    def _image_error(
        self,
        stage: str,
        error: ImageImportError,
        diagnostics: ImageDiagnostics,
        logs: List[JobLogEntry],
    ) -> None:
        self._record_image_error(
            stage,
            error.message,
            error.error_class,
            SourceFingerprint.from_dict(error.source_fingerprint),
            diagnostics,
            logs,
        )

    def _record_image_error(
        self,
        stage: str,
        message: str,
        error_class: str,
        fingerprint: SourceFingerprint,
        diagnostics: ImageDiagnostics,
        logs: List[JobLogEntry],
    ) -> None:
        message = sanitize_text(message)
        diagnostics.add_error(ImageErrorRecord(
            stage=stage,
            message=message,
            error_class=error_class,
            source_fingerprint=fingerprint,
        ))
        logger.warning(f"[Pipeline] Изображение ({stage}): {error_class}: {message}")
        logs.append(self._log(
            "image_service",
            message,
            stage=stage,
            error_class=error_class,
            source_fingerprint=fingerprint.to_dict(),
        ))

    def _apply_featured(
        self,
        post_id: int,
        payload: GenerationPayload,
        title: str,
        diagnostics: ImageDiagnostics,
        logs: List[JobLogEntry],
    ) -> Optional[int]:
        media_id = None
        if payload.featured_image_url:
            try:
                media_id = self.images.set_featured_image(
                    post_id, payload.featured_image_url, payload.featured_image_alt or title
                )
                diagnostics.featured_set = True
            except ImageImportError as e:
                self._image_error("featured", e, diagnostics, logs)
        elif self.settings.featured_required:
            self._record_image_error(
                "featured",
                "Featured image required but not provided.",
                "unknown",
                SourceFingerprint.empty(),
                diagnostics,
                logs,
            )
        return media_id

    def _apply_seo_meta(
        self,
        post_id: int,
        payload: GenerationPayload,
        title: str,
        keywords: List[str],
        logs: List[JobLogEntry],
        warnings: List[str],
    ) -> None:
        primary_keyword = payload.primary_keyword or (keywords[0] if keywords else "")
        meta = build_seo_meta(payload, title, primary_keyword, self.settings)
        try:
            self.posts.update_meta(post_id, meta)
        except PostStoreError as e:
            logger.warning(f"[Pipeline] SEO мета не записаны: {e.code}")
            warnings.append("seo_meta_failed")
            logs.append(self._log("post_store", e.message, error_code=e.code))

    def _apply_og(
        self,
        post_id: int,
        payload: GenerationPayload,
        title: str,
        featured_media_id: Optional[int],
        diagnostics: ImageDiagnostics,
        logs: List[JobLogEntry],
    ) -> None:
        try:
            if payload.og_image_url:
                self.images.set_og_image(post_id, payload.og_image_url, payload.og_image_alt or title)
                diagnostics.og_set = True
            elif self.settings.use_featured_as_og_fallback and featured_media_id is not None:
                self.images.apply_og_fallback(post_id, featured_media_id)
                diagnostics.og_set = True
        except ImageImportError as e:
            self._image_error("og", e, diagnostics, logs)

    def _apply_inline(
        self,
        post_id: int,
        payload: GenerationPayload,
        body: str,
        diagnostics: ImageDiagnostics,
        logs: List[JobLogEntry],
        warnings: List[str],
    ) -> str:
        max_inline = max(0, int(self.settings.inline_image_count))
        if not self.settings.enable_inline_image_injection or not payload.inline_images or max_inline == 0:
            return body

        result = self.images.import_inline_images(post_id, payload.inline_images[:max_inline])
        for failure in result.errors:
            self._record_image_error(
                "inline", failure.message, failure.error_class, failure.source_fingerprint, diagnostics, logs
            )
        diagnostics.inline_imported = len(result.items)

        if not result.items:
            return body

        body = inject_inline_images(body, result.items, max_inline)
        try:
            self.posts.update(post_id, content=body)
        except PostStoreError as e:
            logger.warning(f"[Pipeline] Контент с изображениями не сохранён: {e.code}")
            warnings.append("inline_content_update_failed")
            logs.append(self._log("post_store", e.message, error_code=e.code))
        return body

    def _stored_content(self, post_id: int, fallback: str, warnings: List[str]) -> str:
        try:
            post = self.posts.get(post_id)
        except PostStoreError as e:
            logger.warning(f"[Pipeline] Пост {post_id} не перечитан: {e.code}")
            warnings.append("post_reload_failed")
            return fallback
        if not post:
            return fallback
        return post.get("content") or fallback

    def _guardrails(
        self,
        score: ScoreBreakdown,
        title: str,
        content: str,
        diagnostics: ImageDiagnostics,
    ) -> List[str]:
        reasons = []
        if score.total < self.settings.seo_score_min:
            reasons.append("seo_score_below_min")
        if score.readability < self.settings.readability_min:
            reasons.append("readability_below_min")
        if score.word_count < self.settings.word_count_min:
            reasons.append("word_count_below_min")
        if not title or not content:
            reasons.append("missing_title_or_content")
        if self.settings.featured_required and not diagnostics.featured_set:
            reasons.append("featured_image_required_but_failed")
        return reasons

    # =========================================================================
    # Сохранение задачи
    # =========================================================================

    def _persist_failure(self, subject: str, job: Optional[Job], entry: JobLogEntry) -> int:
        if job is None:
            job = Job(subject=subject, status=JobStatus.SCHEDULED, scheduled_at=self._now())
            job.mark_error()
            job.add_log(entry)
            return self.jobs.insert(job)

        job.mark_error()
        job.add_log(entry)
        self.jobs.update(job.id, status=job.status, published_at=None, logs=job.logs)
        return job.id

    def _persist_success(
        self,
        subject: str,
        job: Optional[Job],
        post_id: int,
        score: ScoreBreakdown,
        published: bool,
        logs: List[JobLogEntry],
    ) -> int:
        now = self._now()
        if job is None:
            job = Job(subject=subject, status=JobStatus.SCHEDULED, scheduled_at=now)

        if not job.logs:
            job.add_log(self._log("generate_once", "Generation attempt completed."))
        for entry in logs:
            job.add_log(entry)
        job.mark_generated(post_id, score, now, published)

        if job.id is None:
            return self.jobs.insert(job)

        self.jobs.update(
            job.id,
            status=job.status,
            generated_at=job.generated_at,
            published_at=job.published_at,
            post_id=job.post_id,
            score=job.score,
            logs=job.logs,
        )
        return job.id

    # =========================================================================
    # Прочие операции
    # =========================================================================

    def approve_job(self, job_id: int) -> PipelineResult:
        """Ручная публикация. Повторный вызов для опубликованной задачи ничего не меняет."""
        with self._job_lock(job_id):
            job = self.jobs.get(job_id)
            if job is None or not job.post_id:
                return PipelineResult.failure("not_found", 404, "Job or associated post not found.", job_id=job_id)

            if job.is_published:
                return PipelineResult.success(
                    200, "Post already published.", job_id=job.id, post_id=job.post_id,
                    post_status=PostStatus.PUBLISH.value,
                )

            try:
                post = self.posts.get(job.post_id)
            except PostStoreError as e:
                return PipelineResult.failure("post_store_error", 502, sanitize_text(e.message), job_id=job.id)
            if not post:
                return PipelineResult.failure("post_not_found", 404, "Associated post not found.", job_id=job.id)

            if not job.status.can_transition_to(JobStatus.PUBLISHED):
                return PipelineResult.failure(
                    "invalid_status", 409,
                    f"Job in status {job.status.value} cannot be approved.",
                    job_id=job.id, post_id=job.post_id,
                )

            message = "Post already published."
            if post.get("status") != PostStatus.PUBLISH.value:
                try:
                    self.posts.update(job.post_id, status=PostStatus.PUBLISH.value)
                except PostStoreError as e:
                    return PipelineResult.failure("post_store_error", 502, sanitize_text(e.message), job_id=job.id)
                message = "Post published."

            job.mark_published(self._now())
            self.jobs.update(job.id, status=job.status, published_at=job.published_at)
            logger.info(f"[Pipeline] Задача {job.id} опубликована (post {job.post_id})")
            return PipelineResult.success(
                200, message, job_id=job.id, post_id=job.post_id, post_status=PostStatus.PUBLISH.value,
            )

    def run_job(self, job_id: int) -> PipelineResult:
        """
        Перезапуск задачи по сохранённой теме.

        Ключевые слова, аудитория и намерение исходного запроса не хранятся:
        используются значения из настроек.
        """
        job = self.jobs.get(job_id)
        if job is None:
            return PipelineResult.failure("not_found", 404, "Job not found.", job_id=job_id)
        return self.generate_once(GenerationRequest(subject=job.subject), False, job_id)

    def run_scheduled_campaigns(self) -> Optional[PipelineResult]:
        """Плановая генерация по теме из настроек (без темы ничего не делает)."""
        subject = (self.settings.default_subject or "").strip()
        if not subject:
            logger.info("[Pipeline] Тема по умолчанию не задана, плановая генерация пропущена")
            return None

        request = GenerationRequest(
            subject=subject,
            primary_keyword=self.settings.keyword_primary,
            secondary_keywords=self.settings.get_secondary_keywords(),
        )
        return self.generate_once(request, publish_requested=bool(self.settings.auto_publish))

    def run_retry_queue(self, limit: int = 50) -> List[PipelineResult]:
        """Перезапустить последние задачи в статусе error."""
        failed = [job for job in self.jobs.list_recent(limit) if job.status == JobStatus.ERROR]
        if failed:
            logger.info(f"[Pipeline] Повтор задач с ошибкой: {len(failed)}")
        return [self.run_job(job.id) for job in failed]
