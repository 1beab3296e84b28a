"""Logical entity names mapped to physical document collections."""

from __future__ import annotations

from bulk_jobs.core.errors import UnknownCollectionError

COLLECTIONS: dict[str, str] = {
    "products": "products",
    "inventory": "inventory",
    "categories": "categories",
    "orders": "orders",
    "reviews": "reviews",
    "users": "users",
    "shops": "shops",
    "auctions": "auctions",
    "coupons": "coupons",
}


def resolve_collection(entity: str | None) -> str:
    """Return the physical collection for a logical entity name."""
    if not entity:
        raise UnknownCollectionError(entity)
    try:
        return COLLECTIONS[entity.strip().lower()]
    except KeyError:
        raise UnknownCollectionError(entity) from None
