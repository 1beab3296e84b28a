"""Validate bulk items and shape the mutation each one stages."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable

from bulk_jobs.core.errors import ItemValidationError
from bulk_jobs.services.actions import (
    Action,
    SoftDelete,
    UnknownAction,
    Update,
    action_updates,
)
from bulk_jobs.services.bulk_requests import BulkItem, OperationType

REVIEW_STATUSES = ("pending", "approved", "rejected")

SET = "set"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class StagedMutation:
    item_id: str
    kind: str
    payload: dict[str, Any] | None = None


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value).strip()


def _validate_product(payload: dict[str, Any]) -> dict[str, Any]:
    name = _clean_text(payload.get("name"))
    if not name:
        raise ItemValidationError("Name is required")

    price = payload.get("price")
    if isinstance(price, bool):
        price = None
    try:
        price = float(price) if isinstance(price, str) else price
    except ValueError:
        price = None
    if not isinstance(price, (int, float)) or not math.isfinite(price) or price <= 0:
        raise ItemValidationError("Price must be a positive number")

    return {**payload, "name": name, "price": price}


def _validate_inventory(payload: dict[str, Any]) -> dict[str, Any]:
    product_id = _clean_text(payload.get("product_id") or payload.get("productId"))
    if not product_id:
        raise ItemValidationError("Product ID is required")

    quantity = payload.get("quantity")
    if quantity is None or (isinstance(quantity, str) and not quantity.strip()):
        raise ItemValidationError("Quantity is required")
    if isinstance(quantity, bool):
        raise ItemValidationError("Quantity must be a number")
    try:
        quantity = float(quantity.strip()) if isinstance(quantity, str) else quantity
    except ValueError:
        raise ItemValidationError("Quantity must be a number") from None
    if not isinstance(quantity, (int, float)) or not math.isfinite(quantity):
        raise ItemValidationError("Quantity must be a number")
    if quantity != int(quantity):
        raise ItemValidationError("Quantity must be a whole number")
    quantity = int(quantity)

    shaped = {key: value for key, value in payload.items() if key != "productId"}
    return {**shaped, "product_id": product_id, "quantity": quantity}


def _validate_category(payload: dict[str, Any]) -> dict[str, Any]:
    name = _clean_text(payload.get("name"))
    if not name:
        raise ItemValidationError("Name is required")
    return {**payload, "name": name}


IMPORT_RULES: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "products": _validate_product,
    "inventory": _validate_inventory,
    "categories": _validate_category,
}


def _check_update_fields(entity: str, fields: dict[str, Any]) -> None:
    if entity == "reviews" and "status" in fields:
        if fields["status"] not in REVIEW_STATUSES:
            raise ItemValidationError(f"Invalid status: {fields['status']}")


def prepare_item(
    operation: OperationType,
    entity: str,
    item: BulkItem,
    *,
    now: str,
    action: Action | None = None,
) -> StagedMutation:
    """Return the mutation to stage for one item.

    Pure: the same arguments always give the same mutation or the same
    :class:`ItemValidationError`.
    """
    item_id = _clean_text(item.item_id)
    if not item_id:
        raise ItemValidationError("Item ID is required")
    entity = (entity or "").strip().lower()

    if isinstance(action, UnknownAction):
        raise ItemValidationError(action.message)

    if operation == OperationType.IMPORT:
        rule = IMPORT_RULES.get(entity)
        payload = rule(item.payload) if rule else dict(item.payload)
        payload["updated_at"] = now
        return StagedMutation(item_id, SET, payload)

    if operation == OperationType.DELETE:
        return StagedMutation(item_id, DELETE)

    if operation == OperationType.UPDATE:
        fields = dict(action.fields) if isinstance(action, Update) else {}
        fields.update(item.payload)
        _check_update_fields(entity, fields)
        fields["updated_at"] = now
        return StagedMutation(item_id, UPDATE, fields)

    if action is None:
        raise ItemValidationError("Action is required")
    updates = action_updates(action)
    if updates is None:
        return StagedMutation(item_id, DELETE)
    if isinstance(action, SoftDelete):
        updates["deleted_at"] = now
    updates["updated_at"] = now
    return StagedMutation(item_id, UPDATE, updates)
