from __future__ import annotations

from ..extensions import db
from flexpos.money import cents_to_amount
from flexpos.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data: fixed core columns plus a tenant-defined attribute bag.

    MULTI-TENANT: Products are scoped to organizations via org_id.

    SKU DESIGN DECISION:
    SKUs are indexed per organization but not constrained unique; duplicate
    SKUs within a tenant are allowed and never enforced across tenants.

    STOCK:
    stock is a mutable on-hand count that is only ever changed through
    inventory_service.apply_stock_change (compare-and-set), and every change
    leaves a StockMovement row behind.

    ATTRIBUTES:
    attributes maps field_key -> {"type": <field_type>, "value": <json value>}.
    Values are validated against FieldDefinition at write time and never
    re-derived on read.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_sku", "org_id", "sku"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    brand = db.Column(db.String(100), nullable=False, default="Unknown")
    category = db.Column(db.String(100), nullable=False, default="General")

    # Authoritative storage in cents (frontend may only format for display)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    attributes = db.Column(db.JSON, nullable=False, default=dict)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} org_id={self.org_id}>"

    def attribute_values(self) -> dict:
        """Flat field_key -> value view of the tagged attribute bag."""
        return {key: tagged.get("value") for key, tagged in (self.attributes or {}).items()}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sku": self.sku,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "sale_price": cents_to_amount(self.sale_price_cents),
            "sale_price_cents": self.sale_price_cents,
            "retail_price": cents_to_amount(self.retail_price_cents),
            "retail_price_cents": self.retail_price_cents,
            "stock": self.stock,
            "attributes": self.attribute_values(),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class StockMovement(db.Model):
    """
    Append-only record of every stock mutation.

    WHY: Stock is a mutable column, so the movement trail is what lets us
    prove each committed order line moved stock exactly once.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)  # SALE, RETURN, ADJUST, SET
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    order_line_id = db.Column(db.Integer, db.ForeignKey("order_lines.id"), nullable=True, unique=True)

    actor_id = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "order_id": self.order_id,
            "order_line_id": self.order_line_id,
            "actor_id": self.actor_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
