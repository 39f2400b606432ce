# Overview: Sales recording, returns and scoped sales reads.

"""
Sales Ledger

WHY: A sale is the only operation that removes stock for money. Recording
one must validate, snapshot prices, decrement stock for every line and
persist the record as a single all-or-nothing unit.

LIFECYCLE:
- record_sale: creates a COMPLETED sale and decrements stock per line
- update_sale_status: COMPLETED -> RETURNED, restocking every line
- RETURNED is terminal; PENDING/CANCELLED are representable but never
  created here, and cannot be returned

MULTI-TENANT: every read and every status change is filtered by the
actor's ScopePredicate before any caller filter is applied. Sales snapshot
business_id/outlet_id from the selling outlet at creation.

CACHE: reads go through CacheService keyed by the scope token; every
successful write invalidates SALES, PRODUCTS and DASHBOARD for its outlet
and business after commit.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import AuditAction, PaymentChannel, Sale, SaleLine, SaleStatus
from ..pagination import PageRequest, like_pattern, paginate
from ..scope import (
    READ_ROLES,
    RECORD_SALE_ROLES,
    UPDATE_SALE_STATUS_ROLES,
    Actor,
    ScopePredicate,
    ScopeResource,
    require_role,
    resolve_scope,
)
from ..time_utils import utcnow
from ..validation import (
    MAX_AMOUNT_CENTS,
    MAX_QUANTITY,
    LineItem,
    parse_choice,
    parse_customer,
    parse_datetime,
    parse_int,
)
from .cache_service import CacheTag, read_tag
from .concurrency import lock_for_update, write_transaction
from .ledger_base import LedgerService

logger = logging.getLogger(__name__)

SALE_WRITE_TAGS = (CacheTag.SALES, CacheTag.PRODUCTS, CacheTag.DASHBOARD)

SALE_SORTABLE = {
    "created_at": Sale.created_at,
    "total_amount_cents": Sale.total_amount_cents,
    "amount_paid_cents": Sale.amount_paid_cents,
    "status": Sale.status,
    "payment_channel": Sale.payment_channel,
}


@dataclass(frozen=True)
class SalesFilters:
    """Caller-supplied narrowing for list_sales. Never widens scope."""
    outlet_id: Optional[int] = None
    business_id: Optional[int] = None
    sales_person_id: Optional[int] = None
    status: Optional[str] = None
    payment_channel: Optional[str] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "SalesFilters":
        search = args.get("search")
        return cls(
            outlet_id=parse_int(args.get("outlet_id"), "outlet_id", minimum=1, required=False),
            business_id=parse_int(args.get("business_id"), "business_id", minimum=1, required=False),
            sales_person_id=parse_int(args.get("sales_person_id"), "sales_person_id", minimum=1, required=False),
            status=parse_choice(args.get("status"), "status", SaleStatus.ALL, required=False),
            payment_channel=parse_choice(
                args.get("payment_channel"), "payment_channel", PaymentChannel.ALL, required=False
            ),
            search=search.strip() if isinstance(search, str) and search.strip() else None,
            created_from=parse_datetime(args.get("created_from"), "created_from"),
            created_to=parse_datetime(args.get("created_to"), "created_to", end_of_day=True),
        )

    def cache_token(self) -> str:
        return "|".join(
            f"{name}={value.isoformat() if isinstance(value, datetime) else value}"
            for name, value in self.__dict__.items()
        )


class SalesLedgerService(LedgerService):
    def record_sale(
        self,
        actor: Actor,
        lines: Iterable[LineItem],
        *,
        amount_paid_cents: Any,
        payment_channel: Any,
        discount_cents: Any = 0,
        customer: Any = None,
        outlet_id: Optional[int] = None,
    ) -> Sale:
        """
        Record a COMPLETED sale and decrement stock for every line.

        Either the sale, all of its lines and every stock decrement are
        committed together, or nothing is. Products are decremented in
        product-id order so concurrent multi-line sales never wait on each
        other in opposite orders.

        Raises:
            ValidationError: malformed lines/amounts, or discount > gross
            ForbiddenError: role gate, or outlet-bound actor naming another outlet
            NotFoundError: outlet or product missing/out of scope
            InsufficientStockError: a line cannot be satisfied (nothing is written)
        """
        require_role(actor, RECORD_SALE_ROLES)

        lines = list(lines or ())
        if not lines:
            raise ValidationError("A sale needs at least one product line")
        for item in lines:
            if item.quantity <= 0 or item.quantity > MAX_QUANTITY:
                raise ValidationError(
                    f"Invalid quantity for product {item.product_id}",
                    details={"product_id": item.product_id, "quantity": item.quantity},
                )

        discount_cents = parse_int(
            discount_cents, "discount_cents", minimum=0, maximum=MAX_AMOUNT_CENTS, required=False, default=0
        )
        amount_paid_cents = parse_int(amount_paid_cents, "amount_paid_cents", minimum=0, maximum=MAX_AMOUNT_CENTS)
        payment_channel = parse_choice(payment_channel, "payment_channel", PaymentChannel.ALL)
        customer = parse_customer(customer)

        outlet = self._resolve_outlet(actor, outlet_id)
        product_scope = resolve_scope(actor, ScopeResource.PRODUCTS)

        with write_transaction(self._session):
            products = self._load_products(outlet.id, product_scope, (item.product_id for item in lines))

            # Snapshot name and price before any stock statement touches the rows
            sale_lines = []
            gross_cents = 0
            for item in lines:
                product = products[item.product_id]
                line_total = product.price_cents * item.quantity
                gross_cents += line_total
                sale_lines.append(
                    SaleLine(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=item.quantity,
                        price_at_sale_cents=product.price_cents,
                        line_total_cents=line_total,
                    )
                )
            names = {product_id: product.name for product_id, product in products.items()}

            if discount_cents > gross_cents:
                raise ValidationError(
                    "Discount cannot exceed the sale total",
                    details={"discount_cents": discount_cents, "gross_cents": gross_cents},
                )

            requested = Counter()
            for item in lines:
                requested[item.product_id] += item.quantity
            for product_id in sorted(requested):
                self._raise_for_stock(self._guard.decrement(product_id, requested[product_id]), names[product_id])

            total_cents = gross_cents - discount_cents
            sale = Sale(
                business_id=outlet.business_id,
                outlet_id=outlet.id,
                sales_person_id=actor.user_id,
                total_amount_cents=total_cents,
                discount_cents=discount_cents,
                amount_paid_cents=amount_paid_cents,
                remaining_to_pay_cents=total_cents - amount_paid_cents,
                payment_channel=payment_channel,
                status=SaleStatus.COMPLETED,
                customer=customer,
                lines=sale_lines,
            )
            self._session.add(sale)
            self._session.flush()
            sale_id = sale.id
            business_id, sale_outlet_id = sale.business_id, sale.outlet_id

        logger.info(
            "Sale %s recorded by user %s in outlet %s (%s lines, total %s cents)",
            sale_id, actor.user_id, sale_outlet_id, len(sale_lines), total_cents,
        )
        self._invalidate(SALE_WRITE_TAGS, business_id=business_id, outlet_id=sale_outlet_id)
        self._audit.record(
            actor.user_id,
            AuditAction.SALES_RECORD,
            f"Recorded new sale: {sale_id}",
            resource_type="Sales",
            resource_id=sale_id,
            business_id=business_id,
            outlet_id=sale_outlet_id,
        )
        return sale

    def update_sale_status(self, actor: Actor, sale_id: int, status: Any) -> Sale:
        """
        Move a sale to a new status. Only COMPLETED -> RETURNED is supported;
        it restocks every line by the sold quantity in the same transaction.

        Raises:
            ValidationError: any target status other than RETURNED
            ForbiddenError: role gate
            NotFoundError: sale missing or out of scope
            ConflictError: sale already RETURNED, or not COMPLETED
        """
        require_role(actor, UPDATE_SALE_STATUS_ROLES)
        target = parse_choice(status, "status", SaleStatus.ALL)
        if target != SaleStatus.RETURNED:
            raise ValidationError(
                f"Cannot change a sale to {target}; only RETURNED is supported",
                details={"requested_status": target},
            )

        scope = resolve_scope(actor, ScopeResource.SALES)

        with write_transaction(self._session):
            sale = lock_for_update(self._scoped_sales(scope).filter(Sale.id == sale_id)).first()
            if sale is None:
                raise NotFoundError("Sale record not found.", details={"sale_id": sale_id})
            if sale.status == SaleStatus.RETURNED:
                raise ConflictError("Sale has already been returned", details={"sale_id": sale_id})
            if sale.status != SaleStatus.COMPLETED:
                raise ConflictError(
                    f"Cannot return a sale in status {sale.status}",
                    details={"sale_id": sale_id, "status": sale.status},
                )

            restock = Counter()
            for line in sale.lines:
                restock[line.product_id] += line.quantity
            for product_id in sorted(restock):
                self._raise_for_stock(self._guard.increment(product_id, restock[product_id]))

            sale.status = SaleStatus.RETURNED
            sale.returned_at = utcnow()
            sale.returned_by_user_id = actor.user_id
            business_id, outlet_id = sale.business_id, sale.outlet_id

        logger.info("Sale %s returned by user %s", sale_id, actor.user_id)
        self._invalidate(SALE_WRITE_TAGS, business_id=business_id, outlet_id=outlet_id)
        self._audit.record(
            actor.user_id,
            AuditAction.SALES_RETURN,
            f"Returned sale: {sale_id}",
            resource_type="Sales",
            resource_id=sale_id,
            business_id=business_id,
            outlet_id=outlet_id,
        )
        return sale

    def get_sale(self, actor: Actor, sale_id: int) -> dict:
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.SALES)

        key = f"sales:detail:{sale_id}:{scope.cache_token()}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        sale = self._scoped_sales(scope).filter(Sale.id == sale_id).first()
        if sale is None:
            raise NotFoundError("Sale record not found.", details={"sale_id": sale_id})

        data = sale.to_dict()
        self._cache.set(key, data, tags=[read_tag(CacheTag.SALES, outlet_id=sale.outlet_id)])
        return data

    def list_sales(self, actor: Actor, filters: SalesFilters, page: PageRequest) -> dict:
        """
        Paginated, scoped sales list. Caller filters are ANDed after the
        scope predicate, so naming another tenant's outlet yields nothing.
        """
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.SALES)

        key = f"sales:list:{scope.cache_token()}:{filters.cache_token()}:{page.cache_token()}"
        tag = read_tag(CacheTag.SALES, business_id=scope.business_id, outlet_id=scope.outlet_id)

        def load() -> dict:
            query = self._apply_filters(self._scoped_sales(scope), filters)
            return paginate(
                query,
                page,
                SALE_SORTABLE,
                lambda sale: sale.to_dict(include_lines=True),
                tiebreaker=Sale.id,
            )

        return self._cache.get_or_set(key, load, tags=[tag])

    def _scoped_sales(self, scope: ScopePredicate):
        return self._session.query(Sale).filter(
            scope.clause(
                business_col=Sale.business_id,
                outlet_col=Sale.outlet_id,
                owner_col=Sale.sales_person_id,
            )
        )

    @staticmethod
    def _apply_filters(query, filters: SalesFilters):
        if filters.outlet_id is not None:
            query = query.filter(Sale.outlet_id == filters.outlet_id)
        if filters.business_id is not None:
            query = query.filter(Sale.business_id == filters.business_id)
        if filters.sales_person_id is not None:
            query = query.filter(Sale.sales_person_id == filters.sales_person_id)
        if filters.status:
            query = query.filter(Sale.status == filters.status)
        if filters.payment_channel:
            query = query.filter(Sale.payment_channel == filters.payment_channel)
        if filters.created_from is not None:
            query = query.filter(Sale.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.filter(Sale.created_at <= filters.created_to)
        if filters.search:
            pattern = like_pattern(filters.search)
            query = query.filter(
                or_(
                    Sale.lines.any(SaleLine.product_name.ilike(pattern, escape="\\")),
                    Sale.customer["name"].as_string().ilike(pattern, escape="\\"),
                )
            )
        return query
