"""
Unit tests для Job entity.
"""

from datetime import datetime, timezone

import pytest

from content_engine.domain.entities.job import Job, JobLogEntry
from content_engine.domain.value_objects.job_status import JobStatus
from content_engine.domain.value_objects.score import ScoreBreakdown
from content_engine.shared.exceptions.domain_exceptions import (
    DomainValidationError,
    InvalidStatusTransition,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
SCORE = ScoreBreakdown(
    total=80, seo=75, readability=88, uniqueness_warning=False,
    word_count=1300, avg_sentence_length=12.5, notes=("Add more internal links to relevant content.",),
)


def test_job_creation():
    """Тест создания задачи."""
    job = Job(subject="How to pick a CRM")

    assert job.status == JobStatus.PENDING
    assert job.post_id is None
    assert job.published_at is None
    assert job.logs == []


def test_job_status_from_string():
    job = Job(subject="Topic", status="scheduled")
    assert job.status == JobStatus.SCHEDULED


def test_job_validation_empty_subject():
    """Тест валидации - пустая тема."""
    with pytest.raises(DomainValidationError):
        Job(subject="   ")


def test_job_published_at_requires_published_status():
    with pytest.raises(DomainValidationError):
        Job(subject="Topic", status=JobStatus.GENERATED, published_at=NOW)

    with pytest.raises(DomainValidationError):
        Job(subject="Topic", status=JobStatus.PUBLISHED)


def test_job_generated_as_draft():
    job = Job(subject="Topic", status=JobStatus.SCHEDULED)

    job.mark_generated(post_id=42, score=SCORE, now=NOW, published=False)

    assert job.status == JobStatus.GENERATED
    assert job.post_id == 42
    assert job.score == SCORE
    assert job.generated_at == NOW
    assert job.published_at is None


def test_job_generated_and_published():
    job = Job(subject="Topic", status=JobStatus.SCHEDULED)

    job.mark_generated(post_id=42, score=SCORE, now=NOW, published=True)

    assert job.is_published
    assert job.published_at == NOW


def test_job_approve_is_idempotent():
    job = Job(subject="Topic", status=JobStatus.SCHEDULED)
    job.mark_generated(post_id=1, score=SCORE, now=NOW, published=False)

    job.mark_published(NOW)
    later = datetime(2024, 6, 1, tzinfo=timezone.utc)
    job.mark_published(later)

    assert job.status == JobStatus.PUBLISHED
    assert job.published_at == NOW


def test_job_retry_after_error():
    job = Job(subject="Topic", status=JobStatus.SCHEDULED)
    job.mark_error()
    assert job.status == JobStatus.ERROR

    job.mark_scheduled(NOW)
    assert job.status == JobStatus.SCHEDULED
    assert job.scheduled_at == NOW


def test_job_published_cannot_be_rescheduled():
    job = Job(subject="Topic", status=JobStatus.PUBLISHED, published_at=NOW)

    with pytest.raises(InvalidStatusTransition):
        job.mark_scheduled(NOW)


def test_job_pending_cannot_be_published():
    job = Job(subject="Topic")

    with pytest.raises(InvalidStatusTransition):
        job.mark_published(NOW)


def test_status_transitions():
    assert JobStatus.PENDING.can_transition_to(JobStatus.SCHEDULED)
    assert JobStatus.GENERATED.can_transition_to(JobStatus.PUBLISHED)
    assert JobStatus.ERROR.can_transition_to(JobStatus.SCHEDULED)
    assert not JobStatus.PUBLISHED.can_transition_to(JobStatus.SCHEDULED)
    assert not JobStatus.ERROR.can_transition_to(JobStatus.PUBLISHED)
    assert JobStatus.ERROR.is_final()
    assert not JobStatus.SCHEDULED.is_final()


def test_log_entry_omits_empty_optional_keys():
    entry = JobLogEntry(time=NOW.isoformat(), source="generate_once", message="ok")

    assert entry.to_dict() == {"time": NOW.isoformat(), "source": "generate_once", "message": "ok"}


def test_log_entry_round_trip_with_image_fields():
    entry = JobLogEntry(
        time=NOW.isoformat(),
        source="image_service",
        message="Image download failed: HTTP 404",
        stage="featured",
        error_class="http",
        source_fingerprint={"scheme": "https", "host_redacted": "***.example.com", "is_https": True, "ext": "jpg"},
    )

    restored = JobLogEntry.from_dict(entry.to_dict())

    assert restored == entry


def test_log_entry_accepts_error_message_alias():
    entry = JobLogEntry.from_dict({"time": "t", "source": "llm_provider", "error_message": "boom"})
    assert entry.message == "boom"
