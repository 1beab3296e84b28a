import pytest

from bulk_jobs.core.errors import ItemValidationError
from bulk_jobs.services.actions import Approve, Delete, SoftDelete, UnknownAction, Update
from bulk_jobs.services.bulk_requests import BulkItem, OperationType
from bulk_jobs.services.item_validation import DELETE, SET, UPDATE, prepare_item

NOW = "2026-01-01T00:00:00+00:00"


def _import(entity, payload, item_id="p1"):
    return prepare_item(OperationType.IMPORT, entity, BulkItem(item_id, payload), now=NOW)


class TestImportRules:
    """Per-entity rules for imported rows"""

    def test_valid_product(self):
        mutation = _import("products", {"name": "  Lamp ", "price": "19.99"})

        assert mutation.kind == SET
        assert mutation.item_id == "p1"
        assert mutation.payload == {"name": "Lamp", "price": 19.99, "updated_at": NOW}

    @pytest.mark.parametrize(
        "price", [None, 0, -3, "abc", True, "nan", "inf", "-inf", float("nan"), float("inf")]
    )
    def test_product_price_must_be_positive(self, price):
        with pytest.raises(ItemValidationError, match="Price must be a positive number"):
            _import("products", {"name": "Lamp", "price": price})

    def test_product_name_required(self):
        with pytest.raises(ItemValidationError, match="Name is required"):
            _import("products", {"name": "  ", "price": 5})

    def test_inventory_normalizes_product_id(self):
        mutation = _import("inventory", {"productId": "p9", "quantity": "4"}, item_id="i1")

        assert mutation.payload == {"product_id": "p9", "quantity": 4, "updated_at": NOW}

    def test_inventory_quantity_required(self):
        with pytest.raises(ItemValidationError, match="Quantity is required"):
            _import("inventory", {"product_id": "p9"})

    def test_inventory_quantity_must_be_number(self):
        with pytest.raises(ItemValidationError, match="Quantity must be a number"):
            _import("inventory", {"product_id": "p9", "quantity": "lots"})

    @pytest.mark.parametrize("quantity", [1.7, "1.5", " 2.25 "])
    def test_inventory_quantity_must_be_whole(self, quantity):
        """Fractional quantities are rejected rather than truncated"""
        with pytest.raises(ItemValidationError, match="Quantity must be a whole number"):
            _import("inventory", {"product_id": "p9", "quantity": quantity})

    @pytest.mark.parametrize("quantity", ["nan", "inf", float("nan"), float("-inf")])
    def test_inventory_quantity_must_be_finite(self, quantity):
        with pytest.raises(ItemValidationError, match="Quantity must be a number"):
            _import("inventory", {"product_id": "p9", "quantity": quantity})

    @pytest.mark.parametrize("quantity", [3, 3.0, "3", " 3.0 "])
    def test_inventory_whole_quantities_accepted(self, quantity):
        mutation = _import("inventory", {"product_id": "p9", "quantity": quantity}, item_id="i1")

        assert mutation.payload["quantity"] == 3
        assert isinstance(mutation.payload["quantity"], int)

    def test_inventory_product_required(self):
        with pytest.raises(ItemValidationError, match="Product ID is required"):
            _import("inventory", {"quantity": 3})

    def test_category_name_required(self):
        with pytest.raises(ItemValidationError, match="Name is required"):
            _import("categories", {"slug": "lamps"})

    def test_entities_without_rules_pass_through(self):
        mutation = _import("orders", {"total": 12})

        assert mutation.payload == {"total": 12, "updated_at": NOW}


class TestPrepareItem:
    """Mutations staged for updates, deletes and actions"""

    def test_item_id_required(self):
        with pytest.raises(ItemValidationError, match="Item ID is required"):
            prepare_item(OperationType.DELETE, "products", BulkItem(None), now=NOW)

    def test_delete(self):
        mutation = prepare_item(OperationType.DELETE, "products", BulkItem("p1"), now=NOW)

        assert mutation.kind == DELETE
        assert mutation.payload is None

    def test_update_merges_request_and_item_fields(self):
        mutation = prepare_item(
            OperationType.UPDATE,
            "products",
            BulkItem("p1", {"price": 12}),
            now=NOW,
            action=Update(fields={"price": 10, "is_active": True}),
        )

        assert mutation.kind == UPDATE
        assert mutation.payload == {"price": 12, "is_active": True, "updated_at": NOW}

    def test_review_status_must_be_known(self):
        with pytest.raises(ItemValidationError, match="Invalid status: spam"):
            prepare_item(
                OperationType.UPDATE,
                "reviews",
                BulkItem("r1"),
                now=NOW,
                action=Update(fields={"status": "spam"}),
            )

    def test_approve_action(self):
        mutation = prepare_item(
            OperationType.CUSTOM_ACTION, "reviews", BulkItem("r1"), now=NOW, action=Approve()
        )

        assert mutation.kind == UPDATE
        assert mutation.payload == {"is_approved": True, "status": "approved", "updated_at": NOW}

    def test_soft_delete_stamps_deleted_at(self):
        mutation = prepare_item(
            OperationType.CUSTOM_ACTION, "products", BulkItem("p1"), now=NOW, action=SoftDelete()
        )

        assert mutation.payload == {"is_deleted": True, "deleted_at": NOW, "updated_at": NOW}

    def test_delete_action_is_hard_delete(self):
        mutation = prepare_item(
            OperationType.DELETE, "products", BulkItem("p1"), now=NOW, action=Delete()
        )

        assert mutation.kind == DELETE

    def test_unknown_action_fails_item(self):
        with pytest.raises(ItemValidationError, match="Unknown action: frobnicate"):
            prepare_item(
                OperationType.CUSTOM_ACTION,
                "products",
                BulkItem("x"),
                now=NOW,
                action=UnknownAction(name="frobnicate"),
            )

    def test_validation_is_idempotent(self):
        """Same item, same timestamp, same outcome"""
        item = BulkItem("p1", {"name": "Lamp", "price": "3"})

        first = prepare_item(OperationType.IMPORT, "products", item, now=NOW)
        second = prepare_item(OperationType.IMPORT, "products", item, now=NOW)

        assert first == second
        assert item.payload == {"name": "Lamp", "price": "3"}

    def test_rejection_is_idempotent(self):
        item = BulkItem("p1", {"name": "Lamp", "price": -1})
        messages = []
        for _ in range(2):
            with pytest.raises(ItemValidationError) as exc_info:
                prepare_item(OperationType.IMPORT, "products", item, now=NOW)
            messages.append(str(exc_info.value))

        assert messages[0] == messages[1]
