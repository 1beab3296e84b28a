"""Bulk action variants and the field updates they apply."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Action:
    keyword = ""


@dataclass(frozen=True)
class Approve(Action):
    keyword = "approve"


@dataclass(frozen=True)
class Reject(Action):
    keyword = "reject"


@dataclass(frozen=True)
class Flag(Action):
    keyword = "flag"


@dataclass(frozen=True)
class Unflag(Action):
    keyword = "unflag"


@dataclass(frozen=True)
class Activate(Action):
    keyword = "activate"


@dataclass(frozen=True)
class Deactivate(Action):
    keyword = "deactivate"


@dataclass(frozen=True)
class SoftDelete(Action):
    keyword = "soft-delete"


@dataclass(frozen=True)
class Delete(Action):
    keyword = "delete"


@dataclass(frozen=True)
class Update(Action):
    keyword = "update"
    fields: dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class UnknownAction(Action):
    """Keyword received over the wire that maps to no known action."""

    name: str = ""

    @property
    def message(self) -> str:
        return f"Unknown action: {self.name}"


_SIMPLE_ACTIONS: dict[str, type[Action]] = {
    cls.keyword: cls
    for cls in (Approve, Reject, Flag, Unflag, Activate, Deactivate, SoftDelete, Delete)
}
_ALIASES = {"soft_delete": "soft-delete", "softdelete": "soft-delete"}

# Canned field updates; timestamps are stamped by the item validator.
_CANNED_UPDATES: dict[type[Action], dict[str, Any]] = {
    Approve: {"is_approved": True, "status": "approved"},
    Reject: {"is_approved": False, "status": "rejected"},
    Flag: {"is_flagged": True},
    Unflag: {"is_flagged": False},
    Activate: {"is_active": True, "status": "active"},
    Deactivate: {"is_active": False, "status": "inactive"},
    SoftDelete: {"is_deleted": True},
}


def parse_action(keyword: str, data: dict[str, Any] | None = None) -> Action:
    """Turn an action keyword from a request into an :class:`Action`.

    Never raises: unrecognised keywords become :class:`UnknownAction` so each
    item can be failed individually.
    """
    normalized = (keyword or "").strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    if normalized == Update.keyword:
        return Update(fields=dict(data or {}))
    action_cls = _SIMPLE_ACTIONS.get(normalized)
    if action_cls is None:
        return UnknownAction(name=keyword)
    return action_cls()


def action_updates(action: Action) -> dict[str, Any] | None:
    """Return the field update an action applies, or None for a hard delete."""
    if isinstance(action, Delete):
        return None
    if isinstance(action, Update):
        return dict(action.fields)
    if isinstance(action, UnknownAction):
        raise ValueError(action.message)
    try:
        return dict(_CANNED_UPDATES[type(action)])
    except KeyError:
        raise TypeError(f"Unhandled action type: {type(action).__name__}") from None


def operation_for(action: Action) -> str:
    """Map an action to the job operation type recorded on the job."""
    if isinstance(action, Update):
        return "update"
    if isinstance(action, Delete):
        return "delete"
    return "custom_action"


def known_actions() -> list[str]:
    return sorted([*_SIMPLE_ACTIONS, Update.keyword])
