"""Celery task for long-running bulk jobs."""

from __future__ import annotations

import logging
from typing import Any

from bulk_jobs.core.errors import BulkJobAbortedError
from bulk_jobs.db.session import SessionLocal, get_fresh_session
from bulk_jobs.services.bulk_processor import build_processor
from bulk_jobs.services.bulk_requests import BulkRequest
from bulk_jobs.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def execute_bulk_job(job_id: str, request_payload: dict[str, Any]) -> dict[str, Any]:
    """Run one queued job on a fresh session and return its summary."""
    session = get_fresh_session()
    try:
        processor = build_processor(session, SessionLocal)
        request = BulkRequest.from_payload(request_payload)
        context = processor.execute(job_id, request)
        return {
            "job_id": job_id,
            "total": context.total_items,
            "succeeded": context.success_count,
            "failed": context.error_count,
        }
    finally:
        session.close()


@celery_app.task(bind=True, name="bulk_jobs.workers.tasks.run_bulk_job")
def run_bulk_job_task(self, job_id: str, request_payload: dict[str, Any]) -> dict[str, Any]:
    """Process a queued bulk job; run-fatal errors are re-raised after the job is failed."""
    logger.info(f"Worker picked up bulk job {job_id}")
    try:
        return execute_bulk_job(job_id, request_payload)
    except BulkJobAbortedError:
        logger.error(f"Bulk job {job_id} aborted in worker", exc_info=True)
        raise
