from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class SaleStatus:
    COMPLETED = "COMPLETED"
    RETURNED = "RETURNED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"

    ALL = (COMPLETED, RETURNED, PENDING, CANCELLED)


class PaymentChannel:
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    CARD = "CARD"
    OTHER = "OTHER"
    FLUTTER = "FLUTTER"

    ALL = (CASH, TRANSFER, CARD, OTHER, FLUTTER)


class Sale(db.Model):
    """
    One completed sales transaction.

    INVARIANTS (all amounts in cents):
    - total_amount_cents == sum(line.quantity * line.price_at_sale_cents) - discount_cents
    - remaining_to_pay_cents == total_amount_cents - amount_paid_cents

    MULTI-TENANT: business_id and outlet_id are snapshotted from the selling
    outlet at creation, so later staff moves never re-scope history.

    Only status (and its return audit fields) changes after creation.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_outlet_status_created", "outlet_id", "status", "created_at"),
        db.Index("ix_sales_business_created", "business_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    sales_person_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    # Negative when the customer overpaid (change due)
    remaining_to_pay_cents = db.Column(db.Integer, nullable=False)

    payment_channel = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SaleStatus.COMPLETED, index=True)

    # Customer snapshot: {"name", "phone", "email", "address"}
    customer = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    # Return audit trail
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    returned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sales_person = db.relationship("User", foreign_keys=[sales_person_id])
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "outlet_id": self.outlet_id,
            "sales_person_id": self.sales_person_id,
            "total_amount_cents": self.total_amount_cents,
            "discount_cents": self.discount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_to_pay_cents": self.remaining_to_pay_cents,
            "payment_channel": self.payment_channel,
            "status": self.status,
            "customer": self.customer,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "returned_by_user_id": self.returned_by_user_id,
            "version_id": self.version_id,
        }
        if include_lines:
            data["products"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    Individual line item on a sale. Immutable after creation.

    product_name and price_at_sale_cents are snapshots so later renames and
    price changes never rewrite history.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_sale_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_at_sale_cents": self.price_at_sale_cents,
            "line_total_cents": self.line_total_cents,
        }
