"""Database session and bulk processor dependencies."""

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from bulk_jobs.db.session import SessionLocal, get_db
from bulk_jobs.services.bulk_processor import BulkJobProcessor, build_processor


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a managed SQLAlchemy session."""
    yield from get_db()


def get_processor(db: Session = Depends(get_session)) -> BulkJobProcessor:
    """FastAPI dependency wiring a bulk processor onto the request session."""
    return build_processor(db, SessionLocal)
