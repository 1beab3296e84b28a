"""Request/response models for bulk actions and queued bulk jobs."""

from typing import Any

from pydantic import BaseModel, Field


class BulkActionRequest(BaseModel):
    action: str | None = Field(None, description="approve, reject, flag, unflag, update, delete, ...")
    ids: Any = Field(None, description="Document ids to act on")
    data: dict[str, Any] | None = Field(None, description="Field values for update")
    options: dict[str, Any] | None = None


class BulkJobRequest(BaseModel):
    operation: str | None = Field(None, description="import, update or delete")
    entity: str | None = Field(None, description="Logical entity, e.g. products")
    items: Any = Field(None, description="Items; each object carries its id")
    data: Any = Field(None, description="Alias of items used by the dashboard upload")
    options: dict[str, Any] | None = None


class FailedItem(BaseModel):
    id: str
    error: str


class BulkResults(BaseModel):
    success: list[str] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)


class BulkSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class BulkActionResponse(BaseModel):
    success: bool = Field(..., description="True when the run completed, even with failures")
    action: str
    job_id: str
    results: BulkResults
    summary: BulkSummary
