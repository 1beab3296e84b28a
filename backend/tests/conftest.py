import os

# Point settings at an in-memory database before anything imports the engine.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from unittest.mock import patch

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bulk_jobs.api.dependencies.db import get_processor, get_session
from bulk_jobs.db import models  # noqa: F401
from bulk_jobs.db.base import Base
from bulk_jobs.db.session import SessionLocal, engine
from bulk_jobs.services.bulk_processor import BulkJobProcessor, build_processor
from bulk_jobs.services.job_records import JobRecordManager
from bulk_jobs.services.progress_tracker import ProgressReporter
from bulk_jobs.storage.document_store import SqlDocumentStore


@pytest.fixture
def database():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(database):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def store(database):
    return SqlDocumentStore(SessionLocal)


@pytest.fixture
def jobs(db_session):
    return JobRecordManager(db_session)


@pytest.fixture
def reporter(jobs):
    """Progress reporter that never touches Redis"""
    return ProgressReporter(jobs, publisher=None)


@pytest.fixture
def processor(jobs, store, reporter):
    return BulkJobProcessor(jobs, store, reporter=reporter)


@pytest.fixture
def seed(store):
    """Insert documents into a collection, committing in store-sized batches"""

    def _seed(collection, ids, **fields):
        ref = store.collection(collection)
        batch = store.batch()
        for doc_id in ids:
            if len(batch) >= store.max_batch_writes:
                batch.commit()
                batch = store.batch()
            batch.set(ref.doc(doc_id), {"name": f"Doc {doc_id}", **fields})
        batch.commit()

    return _seed


@pytest.fixture
def task_mock():
    """Stand-in for the Celery task so nothing is sent to a broker"""
    with patch("bulk_jobs.api.routers.jobs.run_bulk_job_task") as task:
        yield task


@pytest.fixture
def test_client(database, task_mock):
    """Create FastAPI test client with Redis progress calls stubbed out"""
    from bulk_jobs.main import app

    def _processor_without_redis(db: Session = Depends(get_session)):
        return build_processor(db, SessionLocal, publisher=None)

    app.dependency_overrides[get_processor] = _processor_without_redis
    with patch("bulk_jobs.api.routers.jobs.fetch_progress", return_value={}), patch(
        "bulk_jobs.api.routers.jobs.publish_progress"
    ):
        yield TestClient(app)
    app.dependency_overrides.clear()
