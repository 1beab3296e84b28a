"""Shared helpers for shaping bulk job responses."""
from __future__ import annotations

from bulk_jobs.api.schemas.bulk import (
    BulkActionResponse,
    BulkResults,
    BulkSummary,
    FailedItem,
)
from bulk_jobs.api.schemas.job import JobError, JobStatus
from bulk_jobs.db.models.bulk_job import BulkJob
from bulk_jobs.services.job_context import BulkJobContext


def serialize_job(job: BulkJob, progress_payload: dict | None) -> JobStatus:
    """Combine DB state + cached progress snapshot into a response schema."""
    progress_payload = progress_payload or {}

    # Terminal records are authoritative; a snapshot may lag behind them.
    if job.is_terminal:
        progress_payload = {}

    calculated_progress = progress_payload.get("progress")
    if calculated_progress is None and job.total_items:
        calculated_progress = job.processed_items / job.total_items

    message = progress_payload.get("message")
    if not message:
        total_display = job.total_items if job.total_items else "?"
        message = f"Processed {job.processed_items}/{total_display} items"

    return JobStatus(
        id=job.id,
        operation_type=job.operation_type,
        action=job.action,
        entity=job.entity,
        target_collection=job.target_collection,
        status=progress_payload.get("status") or job.status,
        progress=calculated_progress,
        message=message,
        total_items=job.total_items or 0,
        processed_items=job.processed_items or 0,
        success_count=job.success_count or 0,
        error_count=job.error_count or 0,
        errors=[JobError(**entry) for entry in job.errors or []],
        requested_by=job.requested_by,
        started_at=job.started_at or job.created_at,
        completed_at=job.completed_at,
        duration=job.duration,
        created_at=job.created_at,
        updated_at=job.updated_at,
        meta=progress_payload.get("meta") or job.options or {},
    )


def build_action_response(context: BulkJobContext, action: str) -> BulkActionResponse:
    """Aggregate per-item outcomes; ``success`` only means the run completed."""
    return BulkActionResponse(
        success=True,
        action=action,
        job_id=context.job_id,
        results=BulkResults(
            success=list(context.succeeded),
            failed=[
                FailedItem(id=failure.item_id, error=failure.message)
                for failure in context.failures
            ],
        ),
        summary=BulkSummary(
            total=context.total_items,
            succeeded=context.success_count,
            failed=context.error_count,
        ),
    )


def bulk_error_response(error: BaseException, job_id: str | None = None) -> dict:
    """Body returned when a bulk request could not run to completion."""
    message = getattr(error, "message", None) or str(error) or "Bulk operation failed"
    return {
        "success": False,
        "message": message,
        "error": str(error) or None,
        "job_id": job_id,
    }
