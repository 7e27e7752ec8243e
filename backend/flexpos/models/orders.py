from __future__ import annotations

from ..extensions import db
from flexpos.money import cents_to_amount
from flexpos.time_utils import to_utc_z

ORDER_TYPE_SALE = "Sale"
ORDER_TYPE_REFUND = "Refund"

class Order(db.Model):
    """
    Committed sale or refund.

    WHY: Orders are written once, together with their lines and stock
    effects, and are never edited afterwards. Corrections are new Refund
    orders, never updates to this row.

    INVARIANTS (checked before commit):
    - subtotal_cents == sum(line_total_cents)
    - 0 <= discount_amount_cents <= subtotal_cents
    - total_cents == subtotal_cents - discount_amount_cents + tax_cents
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("org_id", "order_number", name="uq_orders_org_number"),
        db.UniqueConstraint("org_id", "request_key", name="uq_orders_org_request_key"),
        db.Index("ix_orders_org_type_created", "org_id", "order_type", "created_at"),
        db.CheckConstraint("discount_amount_cents >= 0", name="ck_orders_discount_non_negative"),
        db.CheckConstraint("discount_amount_cents <= subtotal_cents", name="ck_orders_discount_within_subtotal"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable number (e.g., "ORD-20261019-000042")
    order_number = db.Column(db.String(64), nullable=False)
    order_type = db.Column(db.String(16), nullable=False, index=True)  # Sale, Refund

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")  # percentage, fixed
    discount_value = db.Column(db.String(32), nullable=False, default="0")  # as entered (percent or amount)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate = db.Column(db.String(16), nullable=False, default="0")  # fraction, e.g. "0.0825"
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(500), nullable=True)

    # Client-supplied idempotency key; a replayed key returns the original order
    request_key = db.Column(db.String(128), nullable=True)

    actor_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} type={self.order_type} org_id={self.org_id}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "subtotal": cents_to_amount(self.subtotal_cents),
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount": cents_to_amount(self.discount_amount_cents),
            "discount_amount_cents": self.discount_amount_cents,
            "tax_rate": self.tax_rate,
            "tax": cents_to_amount(self.tax_cents),
            "tax_cents": self.tax_cents,
            "total": cents_to_amount(self.total_cents),
            "total_cents": self.total_cents,
            "notes": self.notes,
            "request_key": self.request_key,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data

class OrderLine(db.Model):
    """Individual line on an order; product details are snapshotted at commit time."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_number", name="uq_order_lines_order_line_number"),
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "unit_price": cents_to_amount(self.unit_price_cents),
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total": cents_to_amount(self.line_total_cents),
            "line_total_cents": self.line_total_cents,
        }
