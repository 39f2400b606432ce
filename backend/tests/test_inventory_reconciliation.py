# Overview: Pytest coverage for inventory counts, completion and reconciliation.

import pytest

from retail_ledger.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from retail_ledger.models import AuditAction, AuditLog, Inventory, InventoryStatus
from retail_ledger.pagination import PageRequest
from retail_ledger.services.inventory_reconciliation import InventoryFilters
from retail_ledger.validation import LineItem


def counts(*pairs):
    return [LineItem(product_id=p, quantity=q) for p, q in pairs]


class TestRecordInventory:
    def test_record_snapshots_without_touching_stock(
        self, services, rep_a1, actor_of, outlet_a1, make_product, stock_of
    ):
        product = make_product(outlet_a1, name="Beans", quantity=10)

        inventory = services.inventory.record_inventory(
            actor_of(rep_a1), outlet_a1.id, counts((product.id, 8)), note="Monthly count"
        )

        data = inventory.to_dict()
        assert data["status"] == InventoryStatus.PENDING
        assert data["actioner_id"] == rep_a1.id
        assert data["note"] == "Monthly count"
        assert data["products"] == [{
            "product_id": product.id,
            "name": "Beans",
            "counted": 8,
            "amount_in_db": 10,
            "variance": -2,
            "reconciled": False,
            "reconciled_quantity": None,
        }]
        assert stock_of(product.id) == 10

    def test_duplicate_products_rejected(self, services, rep_a1, actor_of, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=10)
        with pytest.raises(ValidationError):
            services.inventory.record_inventory(
                actor_of(rep_a1), outlet_a1.id, counts((product.id, 1), (product.id, 2))
            )

    def test_negative_count_rejected(self, services, rep_a1, actor_of, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=10)
        with pytest.raises(ValidationError):
            services.inventory.record_inventory(actor_of(rep_a1), outlet_a1.id, counts((product.id, -1)))

    def test_empty_count_rejected(self, services, rep_a1, actor_of, outlet_a1):
        with pytest.raises(ValidationError):
            services.inventory.record_inventory(actor_of(rep_a1), outlet_a1.id, [])

    def test_other_outlet_forbidden_for_outlet_bound_actor(
        self, services, exec_a1, actor_of, outlet_a2, make_product
    ):
        product = make_product(outlet_a2, quantity=10)
        with pytest.raises(ForbiddenError):
            services.inventory.record_inventory(actor_of(exec_a1), outlet_a2.id, counts((product.id, 1)))

    def test_foreign_business_outlet_not_found_for_owner(
        self, db_session, services, owner_a, actor_of, outlet_b1, make_product
    ):
        product = make_product(outlet_b1, quantity=10)
        with pytest.raises(NotFoundError):
            services.inventory.record_inventory(actor_of(owner_a), outlet_b1.id, counts((product.id, 1)))
        assert db_session.query(Inventory).count() == 0

    def test_product_outside_outlet_not_found(
        self, db_session, services, exec_a1, actor_of, outlet_a1, outlet_a2, make_product
    ):
        here = make_product(outlet_a1, quantity=10)
        elsewhere = make_product(outlet_a2, quantity=10)
        with pytest.raises(NotFoundError):
            services.inventory.record_inventory(
                actor_of(exec_a1), outlet_a1.id, counts((here.id, 1), (elsewhere.id, 1))
            )
        assert db_session.query(Inventory).count() == 0


class TestReconcileInventory:
    @pytest.fixture
    def pending(self, services, rep_a1, actor_of, outlet_a1, make_product):
        product = make_product(outlet_a1, name="Beans", quantity=10)
        inventory = services.inventory.record_inventory(actor_of(rep_a1), outlet_a1.id, counts((product.id, 8)))
        return inventory.id, product.id

    def test_reconcile_overwrites_stock(self, services, pending, exec_a1, actor_of, stock_of):
        inventory_id, product_id = pending

        inventory = services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product_id, 8)))

        data = inventory.to_dict()
        assert data["status"] == InventoryStatus.RECONCILED
        assert data["reconciled_by_user_id"] == exec_a1.id
        assert data["reconciled_at"] is not None
        assert data["products"][0]["reconciled"] is True
        assert data["products"][0]["reconciled_quantity"] == 8
        assert stock_of(product_id) == 8

    def test_reconcile_is_absolute_not_delta(
        self, services, pending, rep_a1, exec_a1, actor_of, stock_of
    ):
        inventory_id, product_id = pending
        # Stock moves between count and reconciliation
        services.sales.record_sale(
            actor_of(rep_a1), counts((product_id, 3)), amount_paid_cents=0, payment_channel="CASH"
        )
        assert stock_of(product_id) == 7

        services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product_id, 8)))
        assert stock_of(product_id) == 8

    def test_second_reconcile_conflicts_and_keeps_stock(self, services, pending, exec_a1, actor_of, stock_of):
        inventory_id, product_id = pending
        services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product_id, 8)))

        with pytest.raises(ConflictError):
            services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product_id, 3)))

        assert stock_of(product_id) == 8

    def test_products_not_on_inventory_are_ignored(
        self, services, pending, exec_a1, actor_of, outlet_a1, make_product, stock_of
    ):
        inventory_id, product_id = pending
        stranger = make_product(outlet_a1, name="Stranger", quantity=4)

        inventory = services.inventory.reconcile_inventory(
            actor_of(exec_a1), inventory_id, counts((product_id, 8), (stranger.id, 1))
        )

        assert inventory.status == InventoryStatus.RECONCILED
        assert [line["product_id"] for line in inventory.to_dict()["products"]] == [product_id]
        assert stock_of(product_id) == 8
        assert stock_of(stranger.id) == 4

    def test_no_matching_product_rejected(
        self, services, pending, exec_a1, actor_of, outlet_a1, make_product, stock_of
    ):
        inventory_id, product_id = pending
        stranger = make_product(outlet_a1, name="Stranger", quantity=4)

        with pytest.raises(ValidationError):
            services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((stranger.id, 1)))

        assert stock_of(product_id) == 10
        assert stock_of(stranger.id) == 4
        assert services.inventory.get_inventory(actor_of(exec_a1), inventory_id)["status"] == InventoryStatus.PENDING

    def test_sales_rep_cannot_reconcile(self, services, pending, rep_a1, actor_of):
        inventory_id, product_id = pending
        with pytest.raises(ForbiddenError):
            services.inventory.reconcile_inventory(actor_of(rep_a1), inventory_id, counts((product_id, 8)))

    def test_foreign_tenant_inventory_not_found(self, services, pending, owner_b, actor_of, stock_of):
        inventory_id, product_id = pending
        with pytest.raises(NotFoundError):
            services.inventory.reconcile_inventory(actor_of(owner_b), inventory_id, counts((product_id, 0)))
        assert stock_of(product_id) == 10

    def test_complete_then_reconcile(self, services, pending, owner_a, actor_of, stock_of):
        inventory_id, product_id = pending

        completed = services.inventory.complete_inventory(actor_of(owner_a), inventory_id)
        assert completed.status == InventoryStatus.COMPLETED
        assert completed.completed_at is not None

        with pytest.raises(ConflictError):
            services.inventory.complete_inventory(actor_of(owner_a), inventory_id)

        reconciled = services.inventory.reconcile_inventory(actor_of(owner_a), inventory_id, counts((product_id, 9)))
        assert reconciled.status == InventoryStatus.RECONCILED
        assert stock_of(product_id) == 9

    def test_reconcile_is_audited(self, db_session, services, pending, exec_a1, actor_of):
        inventory_id, product_id = pending
        services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product_id, 8)))

        actions = {entry.action for entry in db_session.query(AuditLog).filter_by(resource_id=inventory_id)}
        assert {AuditAction.INVENTORY_RECORD, AuditAction.INVENTORY_RECONCILE} <= actions


class TestInventoryReads:
    def test_scoped_list_and_filters(
        self, services, exec_a1, exec_b1, admin_user, actor_of, outlet_a1, outlet_b1, make_product
    ):
        a_product = make_product(outlet_a1, name="Milk", quantity=5)
        b_product = make_product(outlet_b1, name="Bread", quantity=5)
        services.inventory.record_inventory(actor_of(exec_a1), outlet_a1.id, counts((a_product.id, 5)))
        services.inventory.record_inventory(
            actor_of(exec_b1), outlet_b1.id, counts((b_product.id, 4)), note="Weekend shelf check"
        )

        mine = services.inventory.list_inventories(actor_of(exec_a1), InventoryFilters(), PageRequest())
        assert mine["total_items"] == 1
        assert mine["data"][0]["products"][0]["name"] == "Milk"

        everything = services.inventory.list_inventories(actor_of(admin_user), InventoryFilters(), PageRequest())
        assert everything["total_items"] == 2

        by_note = services.inventory.list_inventories(
            actor_of(admin_user), InventoryFilters(search="weekend"), PageRequest()
        )
        assert by_note["total_items"] == 1

        by_product = services.inventory.list_inventories(
            actor_of(admin_user), InventoryFilters(search="milk"), PageRequest()
        )
        assert by_product["total_items"] == 1

    def test_get_inventory_out_of_scope_is_not_found(
        self, services, exec_a1, exec_b1, actor_of, outlet_a1, make_product
    ):
        product = make_product(outlet_a1, quantity=5)
        inventory = services.inventory.record_inventory(actor_of(exec_a1), outlet_a1.id, counts((product.id, 5)))

        assert services.inventory.get_inventory(actor_of(exec_a1), inventory.id)["id"] == inventory.id
        with pytest.raises(NotFoundError):
            services.inventory.get_inventory(actor_of(exec_b1), inventory.id)

    def test_cached_detail_reflects_reconciliation(
        self, services, exec_a1, actor_of, outlet_a1, make_product
    ):
        product = make_product(outlet_a1, quantity=5)
        inventory = services.inventory.record_inventory(actor_of(exec_a1), outlet_a1.id, counts((product.id, 2)))
        inventory_id = inventory.id

        assert services.inventory.get_inventory(actor_of(exec_a1), inventory_id)["status"] == InventoryStatus.PENDING
        services.inventory.reconcile_inventory(actor_of(exec_a1), inventory_id, counts((product.id, 2)))
        assert services.inventory.get_inventory(actor_of(exec_a1), inventory_id)["status"] == InventoryStatus.RECONCILED

    def test_store_executive_does_not_see_sibling_outlet(
        self, services, exec_a1, owner_a, actor_of, outlet_a1, outlet_a2, make_product
    ):
        here = make_product(outlet_a1, name="Milk", quantity=5)
        sibling = make_product(outlet_a2, name="Salt", quantity=5)
        services.inventory.record_inventory(actor_of(exec_a1), outlet_a1.id, counts((here.id, 5)))
        sibling_inventory = services.inventory.record_inventory(
            actor_of(owner_a), outlet_a2.id, counts((sibling.id, 4))
        )

        mine = services.inventory.list_inventories(actor_of(exec_a1), InventoryFilters(), PageRequest())
        assert mine["total_items"] == 1
        assert {row["outlet_id"] for row in mine["data"]} == {outlet_a1.id}

        with pytest.raises(NotFoundError):
            services.inventory.get_inventory(actor_of(exec_a1), sibling_inventory.id)

        business_wide = services.inventory.list_inventories(actor_of(owner_a), InventoryFilters(), PageRequest())
        assert business_wide["total_items"] == 2
