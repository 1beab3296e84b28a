"""Bulk job status payloads."""

from datetime import datetime

from pydantic import BaseModel, Field


class JobError(BaseModel):
    item_id: str
    message: str


class JobStatus(BaseModel):
    id: str
    operation_type: str = Field(..., description="update|delete|import|custom_action")
    action: str | None = Field(None, description="Action keyword for action requests")
    entity: str
    target_collection: str | None = None
    status: str = Field(..., description="pending|processing|completed|failed")
    progress: float | None = Field(None, description="0-1 range for UI progress bars")
    message: str | None = None
    total_items: int = 0
    processed_items: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: list[JobError] = Field(default_factory=list)
    requested_by: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration: int | None = Field(None, description="Whole seconds")
    created_at: datetime | None = None
    updated_at: datetime | None = None
    meta: dict | None = None
