"""Per-run state for one bulk job, passed explicitly through the pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

# Item id used for the single error entry of an aborted all-or-nothing run.
ATOMIC_ITEM_ID = "all"


@dataclass(frozen=True)
class ItemFailure:
    item_id: str
    message: str

    def as_record(self) -> dict[str, str]:
        return {"item_id": self.item_id, "message": self.message}


@dataclass
class BulkJobContext:
    """Counters and outcomes owned by exactly one execution run.

    Every failure is kept in memory so the final error count is exact;
    only the first ``max_errors`` are ever persisted.
    """

    job_id: str
    operation: str
    entity: str
    total_items: int
    collection: str | None = None
    started_at: float = field(default_factory=time.time)
    succeeded: list[str] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    abort_message: str | None = None

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def error_count(self) -> int:
        return len(self.failures)

    @property
    def processed_items(self) -> int:
        return self.success_count + self.error_count

    def record_success(self, item_id: str) -> None:
        self.succeeded.append(item_id)

    def record_failure(self, item_id: str, message: str) -> None:
        self.failures.append(ItemFailure(item_id, message))

    def abort_all(self, item_ids: list[str], message: str) -> None:
        """Fail every item of an all-or-nothing run with one shared reason."""
        self.succeeded = []
        self.failures = [ItemFailure(item_id, message) for item_id in item_ids]
        self.abort_message = message

    def capped_errors(self, limit: int) -> list[dict[str, str]]:
        if self.abort_message is not None:
            return [ItemFailure(ATOMIC_ITEM_ID, self.abort_message).as_record()]
        return [failure.as_record() for failure in self.failures[:limit]]

    def elapsed_seconds(self, now: float | None = None) -> int:
        """Whole seconds since the run started (sub-second runs report 0)."""
        elapsed_ms = int(((now if now is not None else time.time()) - self.started_at) * 1000)
        return elapsed_ms // 1000
