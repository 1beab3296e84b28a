"""Admin bulk job endpoints: submit, list, poll and stream progress."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bulk_jobs.api.dependencies.db import get_processor, get_session
from bulk_jobs.api.routers.job_helpers import serialize_job
from bulk_jobs.api.schemas.bulk import BulkJobRequest
from bulk_jobs.api.schemas.job import JobStatus
from bulk_jobs.core.config import get_settings
from bulk_jobs.core.errors import BulkRequestError, JobNotFoundError
from bulk_jobs.db.models.bulk_job import TERMINAL_STATUSES
from bulk_jobs.db.session import SessionLocal
from bulk_jobs.services.bulk_processor import BulkJobProcessor
from bulk_jobs.services.bulk_requests import parse_job_request
from bulk_jobs.services.job_records import JobRecordManager
from bulk_jobs.services.progress_tracker import fetch_progress, publish_progress
from bulk_jobs.workers.celery_app import BULK_QUEUE
from bulk_jobs.workers.tasks.run_bulk_job import run_bulk_job_task

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_POLL_SECONDS = 5
STREAM_MAX_IDLE_POLLS = 60


@router.post(
    "",
    summary="Queue a bulk import/update/delete job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobStatus,
)
async def submit_bulk_job(
    payload: BulkJobRequest,
    x_user_id: str | None = Header(None, description="Caller identity, authorized upstream"),
    processor: BulkJobProcessor = Depends(get_processor),
) -> JobStatus:
    """Validate the batch, create a pending job and hand it to the worker."""
    settings = get_settings()
    try:
        request = parse_job_request(
            payload.model_dump(),
            max_items=settings.max_job_items,
            batch_limit=processor.store.max_batch_writes,
            default_update_existing=settings.default_update_existing,
        )
    except BulkRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        job_id = processor.submit(request, requested_by=x_user_id)
    except SQLAlchemyError as exc:
        logger.error(f"Database error creating bulk job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create bulk job",
        ) from exc

    try:
        publish_progress(job_id, 0.0, "Queued", status="pending", meta={})
        run_bulk_job_task.apply_async(
            args=(job_id, request.to_payload()),
            queue=BULK_QUEUE,
        )
    except Exception as exc:
        logger.error(f"Error enqueueing bulk job {job_id}: {exc}", exc_info=True)
        processor.jobs.record_fatal_error(job_id, "Failed to start bulk job")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start bulk job",
        ) from exc

    logger.info(f"Queued bulk job {job_id} ({request.operation.value} x{len(request.items)})")
    job = processor.jobs.get_job(job_id)
    return serialize_job(job, progress_payload={"progress": 0.0, "status": "pending"})


@router.get(
    "",
    summary="List bulk jobs",
    response_model=list[JobStatus],
)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    status_filter: str | None = Query(
        None,
        alias="status",
        description="Filter by status (pending, processing, completed, failed)",
    ),
    db: Session = Depends(get_session),
) -> list[JobStatus]:
    """Return jobs newest first, each merged with its latest progress snapshot."""
    try:
        jobs = JobRecordManager(db).list_jobs(limit=limit, status=status_filter)
        return [serialize_job(job, fetch_progress(job.id)) for job in jobs]
    except SQLAlchemyError as e:
        logger.error(f"Database error listing bulk jobs: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve jobs",
        ) from e


@router.get(
    "/{job_id}",
    summary="Fetch job metadata and latest progress",
    response_model=JobStatus,
)
async def get_job(
    job_id: str,
    db: Session = Depends(get_session),
) -> JobStatus:
    """Expose job state for polling dashboards and audit logs."""
    try:
        job = JobRecordManager(db).get_job(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    return serialize_job(job, fetch_progress(job_id))


@router.get(
    "/{job_id}/stream",
    summary="Server-Sent Events stream for real-time progress",
)
async def stream_job_progress(
    job_id: str,
    db: Session = Depends(get_session),
) -> StreamingResponse:
    """Stream job progress updates via Server-Sent Events (SSE).

    Each ``data:`` event carries the serialized job status. The stream closes
    when the job reaches a terminal status or stops moving for too long.
    """
    try:
        JobRecordManager(db).get_job(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc

    async def event_generator() -> AsyncGenerator[str, None]:
        """Yield SSE-formatted progress updates."""
        last_processed = -1
        idle_polls = 0

        # The dependency session closes when the handler returns; the
        # generator keeps running, so it needs its own session.
        session = SessionLocal()
        records = JobRecordManager(session)
        try:
            while True:
                session.expire_all()
                job = records.get_job(job_id)
                job_status = serialize_job(job, fetch_progress(job_id))

                if job_status.processed_items != last_processed:
                    last_processed = job_status.processed_items
                    idle_polls = 0
                else:
                    idle_polls += 1

                yield f"data: {job_status.model_dump_json()}\n\n"

                if job.status in TERMINAL_STATUSES:
                    yield "event: close\ndata: {}\n\n"
                    break

                if idle_polls > STREAM_MAX_IDLE_POLLS:
                    yield "event: timeout\ndata: {}\n\n"
                    break

                await asyncio.sleep(STREAM_POLL_SECONDS)
        except JobNotFoundError:
            yield "event: error\ndata: {\"error\": \"Job not found\"}\n\n"
        finally:
            session.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
