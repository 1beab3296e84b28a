"""Document store abstraction over the relational ``documents`` table.

Collections hold JSON documents addressed by ``(collection, id)``. Single
document calls run in their own transaction; a :class:`WriteBatch` stages up
to :data:`MAX_BATCH_WRITES` mutations and applies them atomically on
``commit()``. Nothing spans two batches, so a failed commit leaves earlier
batches applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bulk_jobs.db.models.document import Document

logger = logging.getLogger(__name__)

# Hard ceiling on staged writes per atomic commit.
MAX_BATCH_WRITES = 500

T = TypeVar("T")


class StoreError(Exception):
    """Backend failure while reading or writing documents."""


class DocumentNotFoundError(StoreError):
    pass


class BatchLimitExceededError(StoreError):
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: dict[str, Any] | None

    @property
    def exists(self) -> bool:
        return self.data is not None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data or {})


class DocumentReference:
    def __init__(self, store: "SqlDocumentStore", collection: str, doc_id: str):
        self._store = store
        self.collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"

    def get(self) -> DocumentSnapshot:
        return self._store._run(lambda session: _read(session, self))

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        self._store._run(lambda session: _apply_set(session, self, data, merge))

    def update(self, data: dict[str, Any]) -> None:
        self._store._run(lambda session: _apply_update(session, self, data))

    def delete(self) -> None:
        self._store._run(lambda session: _apply_delete(session, self))

    def __repr__(self) -> str:
        return f"DocumentReference({self.path!r})"


class CollectionReference:
    def __init__(self, store: "SqlDocumentStore", name: str):
        self._store = store
        self.name = name

    def doc(self, doc_id: str) -> DocumentReference:
        return DocumentReference(self._store, self.name, doc_id)


class WriteBatch:
    """Stage set/update/delete calls and apply them in one transaction."""

    def __init__(self, store: "SqlDocumentStore", limit: int):
        self._store = store
        self._limit = limit
        self._writes: list[tuple[str, DocumentReference, dict[str, Any] | None, bool]] = []

    def __len__(self) -> int:
        return len(self._writes)

    def _stage(self, op: str, ref: DocumentReference, data=None, merge=False) -> None:
        if len(self._writes) >= self._limit:
            raise BatchLimitExceededError(
                f"A batch can hold at most {self._limit} writes"
            )
        self._writes.append((op, ref, dict(data) if data is not None else None, merge))

    def set(self, ref: DocumentReference, data: dict[str, Any], merge: bool = False) -> None:
        self._stage("set", ref, data, merge)

    def update(self, ref: DocumentReference, data: dict[str, Any]) -> None:
        self._stage("update", ref, data)

    def delete(self, ref: DocumentReference) -> None:
        self._stage("delete", ref)

    def commit(self) -> int:
        """Apply every staged write atomically and return how many were applied."""
        if not self._writes:
            return 0
        writes, self._writes = self._writes, []

        def _apply_all(session: Session) -> int:
            for op, ref, data, merge in writes:
                if op == "set":
                    _apply_set(session, ref, data, merge)
                elif op == "update":
                    _apply_update(session, ref, data)
                else:
                    _apply_delete(session, ref)
            return len(writes)

        applied = self._store._run(_apply_all)
        logger.debug(f"Committed batch of {applied} write(s)")
        return applied


class SqlDocumentStore:
    """Document store persisted through SQLAlchemy sessions."""

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session],
        max_batch_writes: int = MAX_BATCH_WRITES,
    ):
        self._session_factory = session_factory
        self.max_batch_writes = max(1, min(max_batch_writes, MAX_BATCH_WRITES))

    def collection(self, name: str) -> CollectionReference:
        return CollectionReference(self, name)

    def batch(self) -> WriteBatch:
        return WriteBatch(self, self.max_batch_writes)

    def _run(self, fn: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as session, session.begin():
                return fn(session)
        except SQLAlchemyError as exc:
            logger.error(f"Document store error: {exc}", exc_info=True)
            raise StoreError(str(exc)) from exc


def _load(session: Session, ref: DocumentReference) -> Document | None:
    return session.get(Document, {"collection": ref.collection, "id": ref.id})


def _read(session: Session, ref: DocumentReference) -> DocumentSnapshot:
    doc = _load(session, ref)
    return DocumentSnapshot(ref.id, dict(doc.data) if doc is not None else None)


def _apply_set(session: Session, ref: DocumentReference, data, merge: bool) -> None:
    doc = _load(session, ref)
    if doc is None:
        session.add(Document(collection=ref.collection, id=ref.id, data=dict(data)))
        session.flush()
    elif merge:
        doc.data = {**doc.data, **data}
    else:
        doc.data = dict(data)


def _apply_update(session: Session, ref: DocumentReference, data) -> None:
    doc = _load(session, ref)
    if doc is None:
        raise DocumentNotFoundError(f"No document to update: {ref.path}")
    doc.data = {**doc.data, **data}


def _apply_delete(session: Session, ref: DocumentReference) -> None:
    doc = _load(session, ref)
    if doc is not None:
        session.delete(doc)
        session.flush()
