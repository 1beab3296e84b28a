"""Database models package."""
from bulk_jobs.db.models.bulk_job import BulkJob
from bulk_jobs.db.models.document import Document

__all__ = ["BulkJob", "Document"]
