"""Persist bulk job progress and publish snapshots to Redis/SSE."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any, Callable

from redis.exceptions import RedisError

from bulk_jobs.core.config import get_settings
from bulk_jobs.services.job_context import BulkJobContext
from bulk_jobs.services.job_records import JobRecordManager
from bulk_jobs.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

settings = get_settings()
redis_client = create_redis_client(settings.redis_url, decode_responses=True)
PROGRESS_PREFIX = "jobs:progress:"
PROGRESS_TTL = timedelta(hours=24)


def _key(job_id: str) -> str:
    return f"{PROGRESS_PREFIX}{job_id}"


def publish_progress(
    job_id: str,
    progress: float,
    message: str | None = None,
    *,
    status: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """Persist progress snapshots so UI can subscribe."""
    payload = {
        "job_id": job_id,
        "progress": max(0.0, min(progress, 1.0)),
        "message": message,
        "status": status,
        "meta": meta or {},
    }
    try:
        redis_client.set(
            _key(job_id),
            json.dumps(payload),
            ex=int(PROGRESS_TTL.total_seconds()),
        )
    except RedisError as exc:
        # Redis availability should not break a bulk run.
        logger.debug(f"Could not publish progress for job {job_id}: {exc}")


def fetch_progress(job_id: str) -> dict[str, Any]:
    """Return latest job telemetry used by the jobs endpoint."""
    try:
        raw = redis_client.get(_key(job_id))
    except RedisError:
        return {}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}


def snapshot_meta(context: BulkJobContext) -> dict[str, Any]:
    return {
        "processed": context.processed_items,
        "total": context.total_items,
        "succeeded": context.success_count,
        "failed": context.error_count,
    }


class ProgressReporter:
    """Write incremental counters to the job record on a fixed cadence.

    ``max_errors`` caps the persisted error list; errors past the cap are
    still counted in ``error_count`` but their entries are not retained.
    """

    def __init__(
        self,
        jobs: JobRecordManager,
        *,
        interval: int = 10,
        max_errors: int = 100,
        publisher: Callable[..., None] | None = publish_progress,
    ):
        self.jobs = jobs
        self.interval = max(1, interval)
        self.max_errors = max_errors
        self.publisher = publisher

    def should_report(self, processed_items: int) -> bool:
        return processed_items > 0 and processed_items % self.interval == 0

    def report(self, context: BulkJobContext) -> None:
        self.jobs.update_progress(
            context.job_id,
            processed_items=context.processed_items,
            success_count=context.success_count,
            error_count=context.error_count,
            errors=context.capped_errors(self.max_errors),
        )
        self.publish(
            context,
            status="processing",
            message=f"Processed {context.processed_items}/{context.total_items} items",
        )

    def publish(self, context: BulkJobContext, *, status: str, message: str) -> None:
        if self.publisher is None:
            return
        progress = (
            context.processed_items / context.total_items if context.total_items else 1.0
        )
        self.publisher(
            context.job_id,
            progress,
            message=message,
            status=status,
            meta=snapshot_meta(context),
        )
