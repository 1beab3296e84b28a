"""Persist the lifecycle of bulk jobs (pending -> processing -> terminal)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from bulk_jobs.core.errors import JobNotFoundError, JobStateError
from bulk_jobs.db.models.bulk_job import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    BulkJob,
)

logger = logging.getLogger(__name__)

SYSTEM_ITEM_ID = "system"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRecordManager:
    """Create, advance and finalize ``BulkJob`` rows.

    Every write commits immediately so pollers see progress while the run is
    still going.
    """

    def __init__(self, session: Session):
        self.session = session

    def create_job(
        self,
        operation_type: str,
        entity: str,
        item_count: int,
        requested_by: str | None = None,
        *,
        action: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> str:
        job = BulkJob(
            operation_type=operation_type,
            action=action,
            entity=entity,
            status=JOB_PENDING,
            total_items=item_count,
            processed_items=0,
            success_count=0,
            error_count=0,
            errors=[],
            requested_by=requested_by,
            options=options or {},
            started_at=_utcnow(),
        )
        self.session.add(job)
        self.session.commit()
        logger.info(
            f"Created bulk job {job.id}: {operation_type} x{item_count} on {entity}"
        )
        return job.id

    def get_job(self, job_id: str) -> BulkJob:
        job = self.session.get(BulkJob, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, limit: int = 50, status: str | None = None) -> list[BulkJob]:
        query = select(BulkJob)
        if status:
            query = query.where(BulkJob.status == status)
        query = query.order_by(BulkJob.created_at.desc()).limit(limit)
        return list(self.session.scalars(query).all())

    def mark_processing(self, job_id: str) -> None:
        job = self.get_job(job_id)
        if job.status == JOB_PROCESSING:
            logger.warning(f"Bulk job {job_id} is already processing")
            return
        if job.status != JOB_PENDING:
            raise JobStateError(f"Cannot start bulk job {job_id} in status {job.status}")
        job.status = JOB_PROCESSING
        self.session.commit()
        logger.info(f"Bulk job {job_id} processing")

    def set_target_collection(self, job_id: str, collection: str) -> None:
        job = self.get_job(job_id)
        job.target_collection = collection
        self.session.commit()

    def update_progress(
        self,
        job_id: str,
        processed_items: int,
        success_count: int,
        error_count: int,
        errors: list[dict[str, str]],
    ) -> None:
        job = self.get_job(job_id)
        if job.is_terminal:
            raise JobStateError(f"Bulk job {job_id} already {job.status}")
        job.processed_items = processed_items
        job.success_count = success_count
        job.error_count = error_count
        job.errors = list(errors)
        job.updated_at = _utcnow()
        self.session.commit()

    def finalize(
        self,
        job_id: str,
        success_count: int,
        error_count: int,
        errors: list[dict[str, str]],
        duration: int,
        processed_items: int | None = None,
    ) -> BulkJob:
        """Close the job: any success at all makes it ``completed``."""
        job = self.get_job(job_id)
        if job.status != JOB_PROCESSING:
            raise JobStateError(f"Cannot finalize bulk job {job_id} in status {job.status}")
        job.status = JOB_COMPLETED if success_count > 0 else JOB_FAILED
        job.processed_items = (
            processed_items if processed_items is not None else success_count + error_count
        )
        job.success_count = success_count
        job.error_count = error_count
        job.errors = list(errors)
        job.completed_at = _utcnow()
        job.duration = duration
        self.session.commit()
        logger.info(
            f"Bulk job {job_id} {job.status}: {success_count} succeeded, "
            f"{error_count} failed in {duration}s"
        )
        return job

    def record_fatal_error(
        self, job_id: str, message: str, duration: int | None = None
    ) -> None:
        """Mark the job failed with a single system-level error entry."""
        self.session.rollback()
        job = self.get_job(job_id)
        if job.is_terminal:
            raise JobStateError(f"Bulk job {job_id} already {job.status}")
        job.status = JOB_FAILED
        job.errors = [{"item_id": SYSTEM_ITEM_ID, "message": message}]
        job.completed_at = _utcnow()
        job.duration = duration
        self.session.commit()
        logger.error(f"Bulk job {job_id} failed: {message}")
