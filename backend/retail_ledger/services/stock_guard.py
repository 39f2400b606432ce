# Overview: The single write path for Product.quantity.

"""
Stock Consistency Guard

WHY: Loading a product, checking quantity in Python, then saving the new
value lets two concurrent sales both pass the check. Every mutation here is
one conditional UPDATE evaluated by the database, so concurrent decrements
of one product are linearized by the row write itself.

PRIMITIVES:
- decrement(product_id, amount): succeeds only while quantity >= amount
- increment(product_id, amount): unconditional add (returns)
- set_absolute(product_id, value): unconditional overwrite (reconciliation)

Each statement also rewrites Product.status from the new quantity, and runs
on the caller's session: it commits or rolls back with the caller's
transaction. The guard never commits.

Outcomes are returned as StockResult values; callers decide which error
kind a failed outcome becomes.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Integer, case, literal, select, update
from sqlalchemy.orm.util import identity_key

from ..errors import ValidationError
from ..models import Product, ProductStatus
from ..time_utils import utcnow


class StockOutcome:
    OK = "OK"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class StockResult:
    outcome: str
    product_id: int
    requested: int
    available: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == StockOutcome.OK

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested_quantity": self.requested,
            "available_quantity": self.available,
        }


def _status_for(new_quantity):
    """SQL expression mirroring models.inventory.derive_product_status."""
    return case(
        (Product.status == ProductStatus.DISCONTINUED, ProductStatus.DISCONTINUED),
        (new_quantity <= 0, ProductStatus.OUT_OF_STOCK),
        (new_quantity <= Product.reorder_point, ProductStatus.LOW_STOCK),
        else_=ProductStatus.AVAILABLE,
    )


class StockGuard:
    def __init__(self, session):
        self._session = session

    def decrement(self, product_id: int, amount: int) -> StockResult:
        if amount <= 0:
            raise ValidationError("Decrement amount must be positive")

        new_quantity = Product.quantity - amount
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= amount)
            .values(quantity=new_quantity, status=_status_for(new_quantity), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if self._execute(stmt, product_id):
            return StockResult(StockOutcome.OK, product_id, amount)

        available = self._current_quantity(product_id)
        if available is None:
            return StockResult(StockOutcome.NOT_FOUND, product_id, amount)
        return StockResult(StockOutcome.INSUFFICIENT_STOCK, product_id, amount, available)

    def increment(self, product_id: int, amount: int) -> StockResult:
        if amount <= 0:
            raise ValidationError("Increment amount must be positive")

        new_quantity = Product.quantity + amount
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=new_quantity, status=_status_for(new_quantity), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if self._execute(stmt, product_id):
            return StockResult(StockOutcome.OK, product_id, amount)
        return StockResult(StockOutcome.NOT_FOUND, product_id, amount)

    def set_absolute(self, product_id: int, value: int) -> StockResult:
        if value < 0:
            raise ValidationError("Stock quantity cannot be negative")

        new_quantity = literal(value, type_=Integer)
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=value, status=_status_for(new_quantity), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if self._execute(stmt, product_id):
            return StockResult(StockOutcome.OK, product_id, value)
        return StockResult(StockOutcome.NOT_FOUND, product_id, value)

    def _execute(self, stmt, product_id: int) -> bool:
        result = self._session.execute(stmt)
        self._expire_loaded(product_id)
        return result.rowcount == 1

    def _expire_loaded(self, product_id: int) -> None:
        # The UPDATE bypasses the identity map; drop stale in-session values.
        instance = self._session.identity_map.get(identity_key(Product, product_id))
        if instance is not None:
            self._session.expire(instance, ["quantity", "status", "updated_at"])

    def _current_quantity(self, product_id: int) -> int | None:
        return self._session.execute(
            select(Product.quantity).where(Product.id == product_id)
        ).scalar_one_or_none()
