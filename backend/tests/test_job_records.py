import pytest

from bulk_jobs.core.errors import JobNotFoundError, JobStateError


@pytest.fixture
def job_id(jobs):
    return jobs.create_job("delete", "products", 3, "admin-1", options={"atomic": False})


class TestJobLifecycle:
    """pending -> processing -> completed/failed"""

    def test_create_job_is_pending(self, jobs, job_id):
        job = jobs.get_job(job_id)

        assert job.status == "pending"
        assert job.operation_type == "delete"
        assert job.entity == "products"
        assert job.total_items == 3
        assert job.processed_items == 0
        assert job.errors == []
        assert job.requested_by == "admin-1"
        assert job.started_at is not None

    def test_get_missing_job(self, jobs):
        with pytest.raises(JobNotFoundError):
            jobs.get_job("missing")

    def test_mark_processing(self, jobs, job_id):
        jobs.mark_processing(job_id)

        assert jobs.get_job(job_id).status == "processing"

    def test_mark_processing_twice_is_harmless(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.mark_processing(job_id)

        assert jobs.get_job(job_id).status == "processing"

    def test_finalize_with_successes_completes(self, jobs, job_id):
        jobs.mark_processing(job_id)
        errors = [{"item_id": "p2", "message": "Item not found"}]

        job = jobs.finalize(job_id, success_count=2, error_count=1, errors=errors, duration=0)

        assert job.status == "completed"
        assert job.processed_items == 3
        assert job.errors == errors
        assert job.completed_at is not None
        assert job.duration == 0

    def test_finalize_without_successes_fails(self, jobs, job_id):
        jobs.mark_processing(job_id)

        job = jobs.finalize(job_id, success_count=0, error_count=3, errors=[], duration=1)

        assert job.status == "failed"

    def test_finalize_requires_processing(self, jobs, job_id):
        with pytest.raises(JobStateError):
            jobs.finalize(job_id, success_count=1, error_count=0, errors=[], duration=0)

    def test_terminal_job_cannot_restart(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.finalize(job_id, success_count=1, error_count=0, errors=[], duration=0)

        with pytest.raises(JobStateError):
            jobs.mark_processing(job_id)

    def test_update_progress(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.update_progress(
            job_id,
            processed_items=2,
            success_count=1,
            error_count=1,
            errors=[{"item_id": "p1", "message": "Item not found"}],
        )

        job = jobs.get_job(job_id)
        assert (job.processed_items, job.success_count, job.error_count) == (2, 1, 1)
        assert job.status == "processing"

    def test_progress_after_terminal_raises(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.finalize(job_id, success_count=1, error_count=0, errors=[], duration=0)

        with pytest.raises(JobStateError):
            jobs.update_progress(job_id, 3, 3, 0, [])


class TestFatalErrors:
    """Run-fatal failure recording"""

    def test_record_fatal_error(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.record_fatal_error(job_id, "Invalid entity: widgets", duration=0)

        job = jobs.get_job(job_id)
        assert job.status == "failed"
        assert job.errors == [{"item_id": "system", "message": "Invalid entity: widgets"}]
        assert job.completed_at is not None

    def test_fatal_error_on_pending_job(self, jobs, job_id):
        """Jobs that never started (enqueue failure) can still be failed"""
        jobs.record_fatal_error(job_id, "Failed to start bulk job")

        assert jobs.get_job(job_id).status == "failed"

    def test_fatal_error_after_terminal_raises(self, jobs, job_id):
        jobs.mark_processing(job_id)
        jobs.finalize(job_id, success_count=1, error_count=0, errors=[], duration=0)

        with pytest.raises(JobStateError):
            jobs.record_fatal_error(job_id, "late failure")


class TestListJobs:
    def test_filter_by_status(self, jobs):
        done = jobs.create_job("delete", "products", 1)
        jobs.create_job("import", "products", 1)
        jobs.mark_processing(done)
        jobs.finalize(done, success_count=1, error_count=0, errors=[], duration=0)

        completed = jobs.list_jobs(status="completed")
        everything = jobs.list_jobs()

        assert [job.id for job in completed] == [done]
        assert len(everything) == 2

    def test_limit(self, jobs):
        for _ in range(3):
            jobs.create_job("delete", "products", 1)

        assert len(jobs.list_jobs(limit=2)) == 2
