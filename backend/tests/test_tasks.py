from unittest.mock import patch

import pytest

from bulk_jobs.core.errors import BulkJobAbortedError
from bulk_jobs.db.session import SessionLocal
from bulk_jobs.services import progress_tracker
from bulk_jobs.services.bulk_processor import build_processor
from bulk_jobs.services.bulk_requests import parse_job_request
from bulk_jobs.workers.tasks.run_bulk_job import execute_bulk_job, run_bulk_job_task


def _submit(db_session, body):
    request = parse_job_request(body, max_items=10_000, batch_limit=500)
    job_id = build_processor(db_session, SessionLocal, publisher=None).submit(request)
    return job_id, request.to_payload()


@pytest.fixture(autouse=True)
def redis_stub():
    with patch.object(progress_tracker, "redis_client") as client:
        yield client


class TestRunBulkJobTask:
    """Worker side of queued admin jobs"""

    def test_executes_queued_job(self, db_session, jobs, seed, redis_stub):
        seed("orders", ["o1"])
        job_id, payload = _submit(
            db_session, {"operation": "delete", "entity": "orders", "items": ["o1", "o2"]}
        )

        result = execute_bulk_job(job_id, payload)

        assert result == {"job_id": job_id, "total": 2, "succeeded": 1, "failed": 1}
        db_session.expire_all()
        job = jobs.get_job(job_id)
        assert job.status == "completed"
        assert job.target_collection == "orders"
        assert redis_stub.set.called

    def test_task_reraises_fatal_errors(self, db_session, jobs):
        job_id, payload = _submit(
            db_session, {"operation": "delete", "entity": "widgets", "items": ["w1"]}
        )

        with pytest.raises(BulkJobAbortedError):
            run_bulk_job_task(job_id, payload)

        db_session.expire_all()
        assert jobs.get_job(job_id).status == "failed"

    def test_redelivered_task_does_not_run_again(self, db_session, jobs, seed):
        """A second delivery of a finished job leaves its record alone"""
        seed("orders", ["o1"])
        job_id, payload = _submit(
            db_session, {"operation": "delete", "entity": "orders", "items": ["o1"]}
        )
        execute_bulk_job(job_id, payload)

        with pytest.raises(BulkJobAbortedError):
            execute_bulk_job(job_id, payload)

        db_session.expire_all()
        job = jobs.get_job(job_id)
        assert job.status == "completed"
        assert job.success_count == 1
