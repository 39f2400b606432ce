from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ProductStatus:
    AVAILABLE = "AVAILABLE"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    # Set by outlet management; stock movements never clear it
    DISCONTINUED = "DISCONTINUED"

    ALL = (AVAILABLE, LOW_STOCK, OUT_OF_STOCK, DISCONTINUED)


def derive_product_status(quantity: int, reorder_point: int, current: str | None = None) -> str:
    """Python mirror of the status expression the stock guard writes."""
    if current == ProductStatus.DISCONTINUED:
        return ProductStatus.DISCONTINUED
    if quantity <= 0:
        return ProductStatus.OUT_OF_STOCK
    if quantity <= reorder_point:
        return ProductStatus.LOW_STOCK
    return ProductStatus.AVAILABLE


class Product(db.Model):
    """
    Product with live stock for one outlet.

    MULTI-TENANT: Products carry both outlet_id and business_id so scope
    predicates never need a join.

    STOCK: quantity is mutated exclusively through StockGuard, one
    conditional UPDATE per mutation. No version_id column: the guard's
    statements are the concurrency control for this row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.UniqueConstraint("outlet_id", "sku", name="uq_products_outlet_sku"),
        db.Index("ix_products_outlet_name", "outlet_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(255), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), nullable=False, default=ProductStatus.AVAILABLE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    outlet = db.relationship("Outlet", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} outlet_id={self.outlet_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "outlet_id": self.outlet_id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "reorder_point": self.reorder_point,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryStatus:
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    RECONCILED = "RECONCILED"

    ALL = (PENDING, COMPLETED, RECONCILED)


class Inventory(db.Model):
    """
    Physical stock count for one outlet.

    LIFECYCLE (forward only):
    1. PENDING: Count recorded, amount_in_db snapshotted per line
    2. COMPLETED: Counting closed, awaiting reconciliation
    3. RECONCILED: Counted values written over live stock; terminal

    Recording a count never changes Product.quantity. Only reconciliation
    does, through StockGuard.set_absolute.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        db.Index("ix_inventories_outlet_status_created", "outlet_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    actioner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=InventoryStatus.PENDING, index=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reconciled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reconciled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    outlet = db.relationship("Outlet", backref=db.backref("inventories", lazy=True))
    lines = db.relationship(
        "InventoryLine",
        back_populates="inventory",
        order_by="InventoryLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "outlet_id": self.outlet_id,
            "actioner_id": self.actioner_id,
            "status": self.status,
            "note": self.note,
            "products": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "reconciled_at": to_utc_z(self.reconciled_at) if self.reconciled_at else None,
            "reconciled_by_user_id": self.reconciled_by_user_id,
            "version_id": self.version_id,
        }


class InventoryLine(db.Model):
    """One counted product on an inventory. amount_in_db is a snapshot, not live."""
    __tablename__ = "inventory_lines"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "product_id", name="uq_inventory_lines_inventory_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    counted = db.Column(db.Integer, nullable=False)
    amount_in_db = db.Column(db.Integer, nullable=False)

    reconciled = db.Column(db.Boolean, nullable=False, default=False)
    reconciled_quantity = db.Column(db.Integer, nullable=True)

    inventory = db.relationship("Inventory", back_populates="lines")

    @property
    def variance(self) -> int:
        return self.counted - self.amount_in_db

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "counted": self.counted,
            "amount_in_db": self.amount_in_db,
            "variance": self.variance,
            "reconciled": self.reconciled,
            "reconciled_quantity": self.reconciled_quantity,
        }
