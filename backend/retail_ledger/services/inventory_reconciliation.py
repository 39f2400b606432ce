# Overview: Physical stock counts and reconciliation against live stock.

"""
Inventory Reconciliation

WHY: Staff periodically count what is physically on the shelf. The count is
recorded first (with a snapshot of what the system believed), reviewed, and
only then written over live stock. Recording never touches Product.quantity.

LIFECYCLE:
1. record_inventory: PENDING, amount_in_db snapshotted per line
2. complete_inventory: PENDING -> COMPLETED (counting closed)
3. reconcile_inventory: PENDING|COMPLETED -> RECONCILED, stock overwritten
   through StockGuard.set_absolute; terminal

MULTI-TENANT: inventories are scoped by business/outlet exactly like
products; a record outside scope is reported as not found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import AuditAction, Inventory, InventoryLine, InventoryStatus
from ..pagination import PageRequest, like_pattern, paginate
from ..scope import (
    READ_ROLES,
    RECONCILE_INVENTORY_ROLES,
    RECORD_INVENTORY_ROLES,
    Actor,
    ScopePredicate,
    ScopeResource,
    require_role,
    resolve_scope,
)
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY, LineItem, parse_choice, parse_datetime, parse_int, parse_note
from .cache_service import CacheTag, read_tag
from .concurrency import lock_for_update, write_transaction
from .ledger_base import LedgerService

logger = logging.getLogger(__name__)

INVENTORY_SORTABLE = {
    "created_at": Inventory.created_at,
    "updated_at": Inventory.updated_at,
    "status": Inventory.status,
}


@dataclass(frozen=True)
class InventoryFilters:
    outlet_id: Optional[int] = None
    business_id: Optional[int] = None
    actioner_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "InventoryFilters":
        search = args.get("search")
        return cls(
            outlet_id=parse_int(args.get("outlet_id"), "outlet_id", minimum=1, required=False),
            business_id=parse_int(args.get("business_id"), "business_id", minimum=1, required=False),
            actioner_id=parse_int(args.get("actioner_id"), "actioner_id", minimum=1, required=False),
            status=parse_choice(args.get("status"), "status", InventoryStatus.ALL, required=False),
            search=search.strip() if isinstance(search, str) and search.strip() else None,
            created_from=parse_datetime(args.get("created_from"), "created_from"),
            created_to=parse_datetime(args.get("created_to"), "created_to", end_of_day=True),
        )

    def cache_token(self) -> str:
        return "|".join(
            f"{name}={value.isoformat() if isinstance(value, datetime) else value}"
            for name, value in self.__dict__.items()
        )


def _check_counts(counts: Iterable[LineItem], label: str) -> list[LineItem]:
    counts = list(counts or ())
    if not counts:
        raise ValidationError(f"At least one product {label} is required")
    seen = set()
    for item in counts:
        if item.quantity < 0 or item.quantity > MAX_QUANTITY:
            raise ValidationError(
                f"Invalid {label} for product {item.product_id}",
                details={"product_id": item.product_id, label: item.quantity},
            )
        if item.product_id in seen:
            raise ValidationError(
                f"Product {item.product_id} appears more than once",
                details={"product_id": item.product_id},
            )
        seen.add(item.product_id)
    return counts


class InventoryReconciliationService(LedgerService):
    def record_inventory(
        self,
        actor: Actor,
        outlet_id: Optional[int],
        counts: Iterable[LineItem],
        note: Any = None,
    ) -> Inventory:
        """
        Record a PENDING count for one outlet.

        Each line snapshots the product's live quantity as amount_in_db.
        Stock is not changed.
        """
        require_role(actor, RECORD_INVENTORY_ROLES)
        counts = _check_counts(counts, "counted")
        note = parse_note(note)

        outlet = self._resolve_outlet(actor, outlet_id)
        product_scope = resolve_scope(actor, ScopeResource.PRODUCTS)

        with write_transaction(self._session):
            products = self._load_products(outlet.id, product_scope, (item.product_id for item in counts))
            inventory = Inventory(
                business_id=outlet.business_id,
                outlet_id=outlet.id,
                actioner_id=actor.user_id,
                status=InventoryStatus.PENDING,
                note=note,
            )
            for item in counts:
                product = products[item.product_id]
                inventory.lines.append(
                    InventoryLine(
                        product_id=product.id,
                        name=product.name,
                        counted=item.quantity,
                        amount_in_db=product.quantity,
                        reconciled=False,
                    )
                )
            self._session.add(inventory)
            self._session.flush()
            inventory_id = inventory.id
            business_id, inventory_outlet_id = inventory.business_id, inventory.outlet_id

        logger.info(
            "Inventory %s recorded by user %s in outlet %s (%s products)",
            inventory_id, actor.user_id, inventory_outlet_id, len(counts),
        )
        self._invalidate(
            (CacheTag.INVENTORY, CacheTag.DASHBOARD), business_id=business_id, outlet_id=inventory_outlet_id
        )
        self._audit.record(
            actor.user_id,
            AuditAction.INVENTORY_RECORD,
            f"Recorded new inventory: {inventory_id}",
            resource_type="Inventory",
            resource_id=inventory_id,
            business_id=business_id,
            outlet_id=inventory_outlet_id,
        )
        return inventory

    def complete_inventory(self, actor: Actor, inventory_id: int) -> Inventory:
        """Close counting: PENDING -> COMPLETED. Any other status is a conflict."""
        require_role(actor, RECONCILE_INVENTORY_ROLES)
        scope = resolve_scope(actor, ScopeResource.INVENTORY)

        with write_transaction(self._session):
            inventory = self._lock_inventory(scope, inventory_id)
            if inventory.status != InventoryStatus.PENDING:
                raise ConflictError(
                    f"Cannot complete an inventory in status {inventory.status}",
                    details={"inventory_id": inventory_id, "status": inventory.status},
                )
            inventory.status = InventoryStatus.COMPLETED
            inventory.completed_at = utcnow()
            business_id, outlet_id = inventory.business_id, inventory.outlet_id

        logger.info("Inventory %s completed by user %s", inventory_id, actor.user_id)
        self._invalidate((CacheTag.INVENTORY,), business_id=business_id, outlet_id=outlet_id)
        self._audit.record(
            actor.user_id,
            AuditAction.INVENTORY_COMPLETE,
            f"Completed inventory: {inventory_id}",
            resource_type="Inventory",
            resource_id=inventory_id,
            business_id=business_id,
            outlet_id=outlet_id,
        )
        return inventory

    def reconcile_inventory(self, actor: Actor, inventory_id: int, counts: Iterable[LineItem]) -> Inventory:
        """
        Write reconciled quantities over live stock and close the inventory.

        Entries whose product is not on the inventory are ignored. Stock is set with
        StockGuard.set_absolute in product-id order, in the same transaction
        that marks the lines and the inventory RECONCILED.

        Raises:
            ValidationError: empty/duplicate/negative entries, or no entry matches a line
            NotFoundError: inventory missing or out of scope
            ConflictError: inventory already RECONCILED (stock untouched)
        """
        require_role(actor, RECONCILE_INVENTORY_ROLES)
        counts = _check_counts(counts, "reconciled_quantity")
        scope = resolve_scope(actor, ScopeResource.INVENTORY)

        with write_transaction(self._session):
            inventory = self._lock_inventory(scope, inventory_id)
            if inventory.status == InventoryStatus.RECONCILED:
                raise ConflictError("Inventory has already been reconciled", details={"inventory_id": inventory_id})

            lines = {line.product_id: line for line in inventory.lines}
            matching = [item for item in counts if item.product_id in lines]
            skipped = sorted(item.product_id for item in counts if item.product_id not in lines)
            if not matching:
                raise ValidationError(
                    "None of the products are part of this inventory",
                    details={"product_ids": skipped},
                )
            if skipped:
                logger.debug("Inventory %s: ignoring products not on the count %s", inventory_id, skipped)

            for item in sorted(matching, key=lambda c: c.product_id):
                self._raise_for_stock(self._guard.set_absolute(item.product_id, item.quantity))
                line = lines[item.product_id]
                line.reconciled = True
                line.reconciled_quantity = item.quantity

            inventory.status = InventoryStatus.RECONCILED
            inventory.reconciled_at = utcnow()
            inventory.reconciled_by_user_id = actor.user_id
            business_id, outlet_id = inventory.business_id, inventory.outlet_id

        logger.info(
            "Inventory %s reconciled by user %s (%s products restocked)",
            inventory_id, actor.user_id, len(matching),
        )
        self._invalidate(
            (CacheTag.INVENTORY, CacheTag.PRODUCTS, CacheTag.DASHBOARD),
            business_id=business_id,
            outlet_id=outlet_id,
        )
        self._audit.record(
            actor.user_id,
            AuditAction.INVENTORY_RECONCILE,
            f"Reconciled inventory: {inventory_id}",
            resource_type="Inventory",
            resource_id=inventory_id,
            business_id=business_id,
            outlet_id=outlet_id,
        )
        return inventory

    def get_inventory(self, actor: Actor, inventory_id: int) -> dict:
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.INVENTORY)

        key = f"inventory:detail:{inventory_id}:{scope.cache_token()}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        inventory = self._scoped_inventories(scope).filter(Inventory.id == inventory_id).first()
        if inventory is None:
            raise NotFoundError("Inventory record not found.", details={"inventory_id": inventory_id})

        data = inventory.to_dict()
        self._cache.set(key, data, tags=[read_tag(CacheTag.INVENTORY, outlet_id=inventory.outlet_id)])
        return data

    def list_inventories(self, actor: Actor, filters: InventoryFilters, page: PageRequest) -> dict:
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.INVENTORY)

        key = f"inventory:list:{scope.cache_token()}:{filters.cache_token()}:{page.cache_token()}"
        tag = read_tag(CacheTag.INVENTORY, business_id=scope.business_id, outlet_id=scope.outlet_id)

        def load() -> dict:
            query = self._apply_filters(self._scoped_inventories(scope), filters)
            return paginate(query, page, INVENTORY_SORTABLE, Inventory.to_dict, tiebreaker=Inventory.id)

        return self._cache.get_or_set(key, load, tags=[tag])

    def _scoped_inventories(self, scope: ScopePredicate):
        return self._session.query(Inventory).filter(
            scope.clause(business_col=Inventory.business_id, outlet_col=Inventory.outlet_id)
        )

    def _lock_inventory(self, scope: ScopePredicate, inventory_id: int) -> Inventory:
        inventory = lock_for_update(self._scoped_inventories(scope).filter(Inventory.id == inventory_id)).first()
        if inventory is None:
            raise NotFoundError("Inventory record not found.", details={"inventory_id": inventory_id})
        return inventory

    @staticmethod
    def _apply_filters(query, filters: InventoryFilters):
        if filters.outlet_id is not None:
            query = query.filter(Inventory.outlet_id == filters.outlet_id)
        if filters.business_id is not None:
            query = query.filter(Inventory.business_id == filters.business_id)
        if filters.actioner_id is not None:
            query = query.filter(Inventory.actioner_id == filters.actioner_id)
        if filters.status:
            query = query.filter(Inventory.status == filters.status)
        if filters.created_from is not None:
            query = query.filter(Inventory.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.filter(Inventory.created_at <= filters.created_to)
        if filters.search:
            pattern = like_pattern(filters.search)
            query = query.filter(
                or_(
                    Inventory.note.ilike(pattern, escape="\\"),
                    Inventory.lines.any(InventoryLine.name.ilike(pattern, escape="\\")),
                )
            )
        return query
