"""Parse and validate inbound bulk requests before any job exists."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bulk_jobs.core.errors import BulkRequestError
from bulk_jobs.services.actions import Action, Update, operation_for, parse_action


class OperationType(str, Enum):
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"
    CUSTOM_ACTION = "custom_action"


JOB_OPERATIONS = (OperationType.IMPORT, OperationType.UPDATE, OperationType.DELETE)


@dataclass(frozen=True)
class BulkItem:
    item_id: str | None
    payload: dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_record(cls, record: Any) -> "BulkItem":
        """Build an item from an uploaded row or a bare id."""
        if isinstance(record, dict):
            raw_id = record.get("id")
            payload = {key: value for key, value in record.items() if key != "id"}
        else:
            raw_id, payload = record, {}
        item_id = str(raw_id).strip() if raw_id is not None else None
        return cls(item_id=item_id or None, payload=payload)


@dataclass(frozen=True)
class BulkOptions:
    update_existing: bool = True
    atomic: bool = False


@dataclass
class BulkRequest:
    operation: OperationType
    entity: str
    items: list[BulkItem]
    action: Action | None = None
    options: BulkOptions = field(default_factory=BulkOptions)

    @property
    def action_keyword(self) -> str | None:
        if self.action is None:
            return None
        return getattr(self.action, "name", None) or self.action.keyword

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the Celery task (JSON only)."""
        return {
            "operation": self.operation.value,
            "entity": self.entity,
            "action": self.action_keyword,
            "data": dict(self.action.fields) if isinstance(self.action, Update) else None,
            "items": [
                {"id": item.item_id, **item.payload} if item.item_id else dict(item.payload)
                for item in self.items
            ],
            "options": {
                "update_existing": self.options.update_existing,
                "atomic": self.options.atomic,
            },
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BulkRequest":
        options = payload.get("options") or {}
        action = None
        if payload.get("action"):
            action = parse_action(payload["action"], payload.get("data"))
        return cls(
            operation=OperationType(payload["operation"]),
            entity=payload["entity"],
            items=[BulkItem.from_record(record) for record in payload.get("items") or []],
            action=action,
            options=BulkOptions(
                update_existing=bool(options.get("update_existing", True)),
                atomic=bool(options.get("atomic", False)),
            ),
        )


def _parse_options(raw: Any, default_update_existing: bool) -> BulkOptions:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise BulkRequestError("Options must be an object")
    update_existing = raw.get("update_existing", raw.get("updateExisting"))
    return BulkOptions(
        update_existing=default_update_existing if update_existing is None else bool(update_existing),
        atomic=bool(raw.get("atomic", False)),
    )


def parse_action_request(
    entity: str,
    body: dict[str, Any],
    *,
    max_items: int,
    batch_limit: int,
    default_update_existing: bool = True,
) -> BulkRequest:
    """Validate an ``{action, ids, data}`` moderation/admin request.

    Raises:
        BulkRequestError: when action or ids are missing, empty or too many.
    """
    action_keyword = body.get("action")
    if not isinstance(action_keyword, str) or not action_keyword.strip():
        raise BulkRequestError("Action is required")

    ids = body.get("ids")
    if not isinstance(ids, list) or not ids:
        raise BulkRequestError("IDs array is required and must not be empty")
    if len(ids) > max_items:
        raise BulkRequestError(f"Too many items. Maximum {max_items} items allowed")

    data = body.get("data")
    if data is not None and not isinstance(data, dict):
        raise BulkRequestError("Data must be an object")

    options = _parse_options(body.get("options"), default_update_existing)
    if options.atomic and len(ids) > batch_limit:
        raise BulkRequestError(
            f"Atomic requests are limited to {batch_limit} items"
        )

    action = parse_action(action_keyword.strip(), data)
    return BulkRequest(
        operation=OperationType(operation_for(action)),
        entity=entity,
        items=[BulkItem.from_record(item_id) for item_id in ids],
        action=action,
        options=options,
    )


def parse_job_request(
    body: dict[str, Any],
    *,
    max_items: int,
    batch_limit: int,
    default_update_existing: bool = True,
) -> BulkRequest:
    """Validate an ``{operation, entity, items|data, options}`` admin job."""
    operation = body.get("operation")
    if not isinstance(operation, str) or not operation.strip():
        raise BulkRequestError("Operation is required")
    try:
        operation_type = OperationType(operation.strip().lower())
    except ValueError:
        operation_type = None
    if operation_type not in JOB_OPERATIONS:
        raise BulkRequestError(f"Unsupported operation: {operation}")

    entity = body.get("entity")
    if not isinstance(entity, str) or not entity.strip():
        raise BulkRequestError("Entity is required")

    records = body.get("items")
    if records is None:
        records = body.get("data")
    if not isinstance(records, list) or not records:
        raise BulkRequestError("Items array is required and must not be empty")
    if len(records) > max_items:
        raise BulkRequestError(f"Too many items. Maximum {max_items} items allowed")
    if operation_type == OperationType.IMPORT and not all(
        isinstance(record, dict) for record in records
    ):
        raise BulkRequestError("Import items must be objects")

    options = _parse_options(body.get("options"), default_update_existing)
    if options.atomic and len(records) > batch_limit:
        raise BulkRequestError(
            f"Atomic requests are limited to {batch_limit} items"
        )

    return BulkRequest(
        operation=operation_type,
        entity=entity.strip(),
        items=[BulkItem.from_record(record) for record in records],
        options=options,
    )
