# Overview: Service-layer operations for products; dynamic catalog over the tenant field schema.

"""
Dynamic Product Catalog

A product is a fixed set of core columns (sku, name, brand, category,
sale_price, retail_price, stock) plus an attribute bag holding every other
field of the tenant's schema as tagged values.

WRITE SEMANTICS:
- Unknown keys are rejected; keys of inactive fields are still accepted.
- Active required fields must be present and coercible.
- update_product fully replaces the attribute bag: callers resend every
  custom value they want to keep. Absent core keys stay unchanged.
- Stock only moves through inventory_service.

READ SEMANTICS:
- A field with no stored value reads as the default of its type, so fields
  added after a product was created never break that product.
"""

from __future__ import annotations

import secrets

from sqlalchemy import or_

from ..extensions import db
from ..errors import ValidationError
from ..models import FieldDefinition, Product, StockMovement
from ..money import cents_to_amount
from ..time_utils import epoch_millis
from ..validation import clean_text, is_empty, parse_price_cents, parse_stock, sanitize_search_term
from .concurrency import run_read, run_in_write_transaction
from .field_service import CORE_FIELD_TYPES
from .field_values import coerce_field_value, default_for_type, has_value
from .inventory_service import MOVEMENT_SET, adjust_stock as adjust_inventory, load_product, set_stock
from .ledger_service import append_ledger_event
from .tenant_service import TenantContext

CORE_TEXT_LIMITS = {"sku": 100, "name": 200, "brand": 100, "category": 100}
DEFAULT_BRAND = "Unknown"
DEFAULT_CATEGORY = "General"

# Keys a client may echo back from Product.to_dict(); they are never written
_READ_ONLY_KEYS = {
    "id", "org_id", "is_active", "version_id", "created_at", "updated_at",
    "sale_price_cents", "retail_price_cents",
}


def generate_sku() -> str:
    return f"SKU-{epoch_millis()}-{secrets.token_hex(3)}"


def generate_name() -> str:
    return f"Product-{epoch_millis()}"


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _definitions(ctx: TenantContext) -> dict[str, FieldDefinition]:
    rows = (
        db.session.query(FieldDefinition)
        .filter(FieldDefinition.org_id == ctx.org_id)
        .order_by(FieldDefinition.display_order.asc(), FieldDefinition.id.asc())
        .all()
    )
    return {row.field_key: row for row in rows}


def _flatten_form(form_values: dict) -> dict:
    """Lower-case keys; merge a nested 'attributes' map (top-level keys win)."""
    if not isinstance(form_values, dict):
        raise ValidationError("form values must be an object")
    values = {}
    nested = None
    for key, value in form_values.items():
        if not isinstance(key, str):
            raise ValidationError("field keys must be strings")
        key = key.strip().lower()
        if key == "attributes":
            nested = value
        elif key not in _READ_ONLY_KEYS:
            values[key] = value
    if nested is not None:
        if not isinstance(nested, dict):
            raise ValidationError("attributes must be an object")
        for key, value in nested.items():
            values.setdefault(str(key).strip().lower(), value)
    return values


def _required(defs: dict, key: str) -> bool:
    d = defs.get(key)
    return bool(d and d.is_active and d.is_required)


def _label(defs: dict, key: str) -> str:
    d = defs.get(key)
    return d.label if d else key


def _coerce_core(defs: dict, values: dict, *, creating: bool) -> dict:
    """Core column values for the keys present (all keys when creating)."""
    core: dict = {}

    for key in ("sku", "name"):
        if key not in values and not creating:
            continue
        text = clean_text(values.get(key), _label(defs, key), max_length=CORE_TEXT_LIMITS[key])
        if not text:
            if not creating:
                raise ValidationError(f"{_label(defs, key)} cannot be blank")
            text = generate_sku() if key == "sku" else generate_name()
        core[key] = text

    for key, default in (("brand", DEFAULT_BRAND), ("category", DEFAULT_CATEGORY)):
        if key not in values and not creating:
            continue
        text = clean_text(values.get(key), _label(defs, key), max_length=CORE_TEXT_LIMITS[key])
        core[key] = text or default

    if creating or "sale_price" in values:
        raw = values.get("sale_price")
        if is_empty(raw):
            if _required(defs, "sale_price"):
                raise ValidationError(f"{_label(defs, 'sale_price')} is required", details={"field_key": "sale_price"})
            core["sale_price_cents"] = 0
        else:
            core["sale_price_cents"] = parse_price_cents(raw, _label(defs, "sale_price"))

    if creating or "retail_price" in values:
        raw = values.get("retail_price")
        if is_empty(raw):
            if _required(defs, "retail_price"):
                raise ValidationError(f"{_label(defs, 'retail_price')} is required", details={"field_key": "retail_price"})
            core["retail_price_cents"] = None
        else:
            core["retail_price_cents"] = parse_price_cents(raw, _label(defs, "retail_price"))

    if creating or "stock" in values:
        raw = values.get("stock")
        if is_empty(raw):
            if _required(defs, "stock"):
                raise ValidationError(f"{_label(defs, 'stock')} is required", details={"field_key": "stock"})
            core["stock"] = 0
        else:
            core["stock"] = parse_stock(raw, _label(defs, "stock"))

    return core


def _coerce_attributes(defs: dict, values: dict) -> dict:
    unknown = sorted(k for k in values if k not in CORE_FIELD_TYPES and k not in defs)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}", details={"unknown": unknown})

    attributes: dict = {}
    for key, definition in defs.items():
        if key in CORE_FIELD_TYPES:
            continue
        if key not in values and not (definition.is_active and definition.is_required):
            continue
        tagged = coerce_field_value(definition, values.get(key))
        if tagged is not None:
            attributes[key] = tagged
    return attributes


def _record(ctx: TenantContext, event_type: str, product: Product, payload=None):
    append_ledger_event(
        org_id=ctx.org_id,
        event_type=event_type,
        event_category="product",
        entity_type="product",
        entity_id=product.id,
        actor_id=ctx.actor_id,
        note=product.sku,
        payload=payload,
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_products(ctx: TenantContext, search_term: str | None = None, include_inactive: bool = False) -> list[Product]:
    """Newest first; search matches name, sku or brand case-insensitively."""
    term = sanitize_search_term(search_term)

    def _op():
        q = db.session.query(Product).filter(Product.org_id == ctx.org_id)
        if not include_inactive:
            q = q.filter(Product.is_active.is_(True))
        if term:
            pattern = _like_pattern(term)
            q = q.filter(or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.sku.ilike(pattern, escape="\\"),
                Product.brand.ilike(pattern, escape="\\"),
            ))
        return q.order_by(Product.created_at.desc(), Product.id.desc()).all()

    return run_read(_op)


def get_product(ctx: TenantContext, product_id, include_inactive: bool = False) -> Product:
    return run_read(lambda: load_product(ctx, product_id, require_active=not include_inactive))


# =============================================================================
# MUTATIONS
# =============================================================================

def create_product(ctx: TenantContext, form_values: dict) -> Product:
    """
    Create a product from form values keyed by field_key.

    Raises:
        ValidationError for unknown keys, missing required values or
        values that cannot be coerced to their field type
    """
    values = _flatten_form(form_values)

    def _op():
        defs = _definitions(ctx)
        core = _coerce_core(defs, values, creating=True)
        attributes = _coerce_attributes(defs, values)

        product = Product(org_id=ctx.org_id, attributes=attributes, is_active=True, **core)
        db.session.add(product)
        db.session.flush()

        if product.stock:
            db.session.add(StockMovement(
                org_id=ctx.org_id,
                product_id=product.id,
                movement_type=MOVEMENT_SET,
                quantity_delta=product.stock,
                stock_after=product.stock,
                actor_id=ctx.actor_id,
                note="initial stock",
            ))
        _record(ctx, "product.created", product)
        db.session.flush()
        return product

    return run_in_write_transaction(_op)


def update_product(ctx: TenantContext, product_id, form_values: dict) -> Product:
    """
    Update core columns present in form_values and replace the attribute bag.

    A changed stock value is recorded as a SET stock movement.
    """
    values = _flatten_form(form_values)

    def _op():
        product = load_product(ctx, product_id, lock=True)
        defs = _definitions(ctx)
        core = _coerce_core(defs, values, creating=False)
        attributes = _coerce_attributes(defs, values)

        # Stock first: the compare-and-set refreshes the row
        if "stock" in core:
            set_stock(ctx, product, core.pop("stock"), note="product edit")

        for column, value in core.items():
            setattr(product, column, value)
        product.attributes = attributes
        db.session.flush()
        _record(ctx, "product.updated", product, payload={"core": sorted(core), "attributes": sorted(attributes)})
        return product

    return run_in_write_transaction(_op)


def delete_product(ctx: TenantContext, product_id) -> None:
    """Soft delete: committed order lines keep pointing at the row."""
    def _op():
        product = load_product(ctx, product_id, lock=True)
        product.is_active = False
        db.session.flush()
        _record(ctx, "product.deactivated", product)

    run_in_write_transaction(_op)


def adjust_stock(ctx: TenantContext, product_id, delta, note: str | None = None) -> Product:
    return adjust_inventory(ctx, product_id, delta, note=note)


# =============================================================================
# PRESENTATION HELPERS
# =============================================================================

def _product_value(product: dict, key: str):
    if key in CORE_FIELD_TYPES:
        return product.get(key)
    return (product.get("attributes") or {}).get(key)


def get_visible_fields(products: list[dict], field_defs: list[dict]) -> list[dict]:
    """
    Pick the table columns for a product list.

    Core fields are always shown. A custom field is shown only when it is
    active and at least one product has a value for it.
    """
    visible = []
    for definition in field_defs:
        key = definition["field_key"]
        if key in CORE_FIELD_TYPES:
            visible.append(definition)
        elif definition.get("is_active") and any(has_value(_product_value(p, key)) for p in products):
            visible.append(definition)
    return visible


def product_form_values(product: Product | None, field_defs: list[FieldDefinition]) -> dict:
    """Value for every active field, missing ones filled with their type default."""
    stored = product.attribute_values() if product is not None else {}
    core = {}
    if product is not None:
        core = {
            "sku": product.sku,
            "name": product.name,
            "brand": product.brand,
            "category": product.category,
            "sale_price": cents_to_amount(product.sale_price_cents),
            "retail_price": cents_to_amount(product.retail_price_cents),
            "stock": product.stock,
        }

    values = {}
    for definition in field_defs:
        if not definition.is_active:
            continue
        key = definition.field_key
        value = core.get(key) if key in CORE_FIELD_TYPES else stored.get(key)
        values[key] = default_for_type(definition.field_type) if value is None else value
    return values
