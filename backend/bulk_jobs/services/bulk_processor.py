"""Chunked execution of bulk jobs against the document store."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from bulk_jobs.core.collections import resolve_collection
from bulk_jobs.core.config import Settings, get_settings
from bulk_jobs.core.errors import BulkJobAbortedError, ItemValidationError, JobStateError
from bulk_jobs.db.models.bulk_job import JOB_PENDING
from bulk_jobs.services.bulk_requests import BulkItem, BulkOptions, BulkRequest
from bulk_jobs.services.item_validation import DELETE, SET, UPDATE, StagedMutation, prepare_item
from bulk_jobs.services.job_context import BulkJobContext
from bulk_jobs.services.job_records import JobRecordManager
from bulk_jobs.services.progress_tracker import ProgressReporter, publish_progress
from bulk_jobs.storage.document_store import (
    DocumentReference,
    SqlDocumentStore,
    WriteBatch,
)

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _display_id(item: BulkItem, index: int) -> str:
    return item.item_id or f"row-{index}"


class BatchExecutor:
    """Stage item mutations in input order and commit them in store-sized chunks."""

    def __init__(self, store: SqlDocumentStore, reporter: ProgressReporter):
        self.store = store
        self.reporter = reporter
        self.batch_limit = store.max_batch_writes

    def _prepare(self, request: BulkRequest, item: BulkItem) -> StagedMutation:
        return prepare_item(
            request.operation,
            request.entity,
            item,
            now=_iso_now(),
            action=request.action,
        )

    def _stage(
        self,
        batch: WriteBatch,
        ref: DocumentReference,
        mutation: StagedMutation,
        options: BulkOptions,
        pending: dict[str, bool],
    ) -> None:
        # ``pending`` maps ids staged in the open batch to whether the document
        # exists once that batch commits; the store only sees committed rows.
        if ref.id in pending:
            exists = pending[ref.id]
        else:
            exists = ref.get().exists
        if mutation.kind == SET:
            payload = dict(mutation.payload)
            if exists:
                if not options.update_existing:
                    raise ItemValidationError("Item already exists")
                batch.set(ref, payload, merge=True)
            else:
                payload.setdefault("created_at", payload["updated_at"])
                batch.set(ref, payload)
        elif not exists:
            raise ItemValidationError("Item not found")
        elif mutation.kind == UPDATE:
            batch.update(ref, mutation.payload)
        else:
            batch.delete(ref)
        pending[ref.id] = mutation.kind != DELETE

    def run(self, context: BulkJobContext, request: BulkRequest) -> int:
        """Process every item; returns the number of batch commits issued.

        Per-item failures are recorded on the context. Commit or progress
        write failures propagate and abort the run.
        """
        collection = self.store.collection(context.collection)
        batch = self.store.batch()
        pending: dict[str, bool] = {}
        staged = 0
        commits = 0

        for index, item in enumerate(request.items):
            item_id = _display_id(item, index)
            try:
                mutation = self._prepare(request, item)
                self._stage(
                    batch, collection.doc(mutation.item_id), mutation, request.options, pending
                )
            except ItemValidationError as exc:
                logger.debug(f"Bulk job {context.job_id}: item {item_id} rejected: {exc}")
                context.record_failure(item_id, str(exc))
            except Exception as exc:
                logger.warning(
                    f"Bulk job {context.job_id}: error staging item {item_id}: {exc}"
                )
                context.record_failure(item_id, str(exc) or "Operation failed")
            else:
                context.record_success(mutation.item_id)
                staged += 1

            if staged >= self.batch_limit:
                batch.commit()
                commits += 1
                logger.info(f"Bulk job {context.job_id}: committed batch of {staged}")
                batch = self.store.batch()
                pending = {}
                staged = 0

            if self.reporter.should_report(context.processed_items):
                self.reporter.report(context)

        if staged:
            batch.commit()
            commits += 1
            logger.info(f"Bulk job {context.job_id}: committed final batch of {staged}")
        return commits

    def run_atomic(self, context: BulkJobContext, request: BulkRequest) -> int:
        """All-or-nothing variant: one failing item means nothing is written."""
        collection = self.store.collection(context.collection)
        batch = self.store.batch()
        pending: dict[str, bool] = {}
        staged_ids: list[str] = []

        for index, item in enumerate(request.items):
            item_id = _display_id(item, index)
            try:
                mutation = self._prepare(request, item)
                self._stage(
                    batch, collection.doc(mutation.item_id), mutation, request.options, pending
                )
            except Exception as exc:
                message = str(exc) or "Operation failed"
                logger.info(
                    f"Bulk job {context.job_id}: atomic run rejected at {item_id}: {message}"
                )
                context.abort_all(
                    [_display_id(other, i) for i, other in enumerate(request.items)],
                    f"{item_id}: {message}",
                )
                return 0
            staged_ids.append(mutation.item_id)

        batch.commit()
        for item_id in staged_ids:
            context.record_success(item_id)
        return 1


class BulkJobProcessor:
    """Owns one bulk job from creation to its terminal state."""

    def __init__(
        self,
        jobs: JobRecordManager,
        store: SqlDocumentStore,
        *,
        reporter: ProgressReporter | None = None,
        resolver: Callable[[str], str] = resolve_collection,
        clock: Callable[[], float] = time.time,
    ):
        self.jobs = jobs
        self.store = store
        self.reporter = reporter or ProgressReporter(jobs)
        self.resolver = resolver
        self.clock = clock
        self.executor = BatchExecutor(store, self.reporter)

    def submit(self, request: BulkRequest, requested_by: str | None = None) -> str:
        """Create the pending job record for a validated request."""
        return self.jobs.create_job(
            request.operation.value,
            request.entity,
            len(request.items),
            requested_by,
            action=request.action_keyword,
            options={
                "update_existing": request.options.update_existing,
                "atomic": request.options.atomic,
            },
        )

    def execute(self, job_id: str, request: BulkRequest) -> BulkJobContext:
        """Run a submitted job to completion.

        Raises:
            BulkJobAbortedError: when the run could not finish; the job has
                been marked failed and committed batches stay applied.
                A job that is no longer pending (e.g. a redelivered task) is
                failed instead of being run again.
        """
        context = BulkJobContext(
            job_id=job_id,
            operation=request.operation.value,
            entity=request.entity,
            total_items=len(request.items),
            started_at=self.clock(),
        )
        try:
            status = self.jobs.get_job(job_id).status
            if status != JOB_PENDING:
                raise JobStateError(
                    f"Bulk job {job_id} was already {status}; resubmit to retry"
                )
            self.jobs.mark_processing(job_id)
            context.collection = self.resolver(request.entity)
            self.jobs.set_target_collection(job_id, context.collection)

            if request.options.atomic:
                self.executor.run_atomic(context, request)
            else:
                self.executor.run(context, request)

            job = self.jobs.finalize(
                job_id,
                success_count=context.success_count,
                error_count=context.error_count,
                errors=context.capped_errors(self.reporter.max_errors),
                duration=context.elapsed_seconds(self.clock()),
                processed_items=context.processed_items,
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error(f"Bulk job {job_id} aborted: {message}", exc_info=True)
            try:
                self.jobs.record_fatal_error(
                    job_id, message, duration=context.elapsed_seconds(self.clock())
                )
            except Exception as record_exc:
                logger.error(
                    f"Could not mark bulk job {job_id} failed: {record_exc}",
                    exc_info=True,
                )
            self.reporter.publish(context, status="failed", message=f"Bulk job failed: {message}")
            raise BulkJobAbortedError(job_id, message) from exc

        self.reporter.publish(
            context,
            status=job.status,
            message=f"{context.success_count} succeeded, {context.error_count} failed",
        )
        return context

    def run(
        self, request: BulkRequest, requested_by: str | None = None
    ) -> BulkJobContext:
        """Submit and execute synchronously (small action requests)."""
        job_id = self.submit(request, requested_by)
        return self.execute(job_id, request)


def build_processor(
    db: Session,
    session_factory,
    config: Settings | None = None,
    publisher: Callable[..., None] | None = publish_progress,
) -> BulkJobProcessor:
    """Wire a processor from settings for a request or worker session."""
    config = config or get_settings()
    jobs = JobRecordManager(db)
    store = SqlDocumentStore(session_factory, max_batch_writes=config.store_batch_limit)
    reporter = ProgressReporter(
        jobs,
        interval=config.progress_interval,
        max_errors=config.max_error_entries,
        publisher=publisher,
    )
    return BulkJobProcessor(jobs, store, reporter=reporter)
