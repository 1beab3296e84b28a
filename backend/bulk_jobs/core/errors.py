"""Exception hierarchy shared by the bulk job services and routers."""

from __future__ import annotations


class BulkJobError(Exception):
    """Base class for bulk processing errors."""


class BulkRequestError(BulkJobError):
    """Request rejected before any job record is created."""


class ItemValidationError(ValueError):
    """A single item cannot be applied; recorded on the job, never fatal."""


class UnknownCollectionError(BulkJobError):
    """Logical entity name has no physical collection mapping."""

    def __init__(self, entity: str | None):
        self.entity = entity
        super().__init__(f"Invalid entity: {entity}")


class JobNotFoundError(BulkJobError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Bulk job {job_id} not found")


class JobStateError(BulkJobError):
    """Illegal status transition on a job record."""


class BulkJobAbortedError(BulkJobError):
    """Run-fatal failure; the job has already been marked failed."""

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        self.message = message
        super().__init__(f"Bulk job {job_id} aborted: {message}")
