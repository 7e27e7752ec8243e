# Overview: Service-layer operations for the field schema registry; per-tenant product attribute definitions.

"""
Field Schema Registry

Each tenant owns an ordered list of FieldDefinitions describing the product
form. Core keys map onto Product columns; every other key is a custom
attribute stored in Product.attributes.

INVARIANTS:
- field_key matches ^[a-z0-9_]+$ and is unique per tenant (case-insensitive)
- a tenant that has fields always keeps at least one active field
- only custom fields can be deleted; core fields can only be deactivated
- field_key is immutable after creation
"""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError, NotFoundError, InvariantError, DuplicateError
from ..models import FieldDefinition
from ..validation import clean_text, parse_int
from .concurrency import run_read, run_in_write_transaction, lock_for_update
from .field_values import FieldType, parse_field_type, clean_options, clean_validation_rules
from .ledger_service import append_ledger_event
from .tenant_service import TenantContext

FIELD_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")
MAX_FIELD_KEY_LENGTH = 64
MAX_LABEL_LENGTH = 120
MAX_HINT_LENGTH = 255

# Core attributes and the only type each may be registered with
CORE_FIELD_TYPES = {
    "sku": FieldType.TEXT,
    "name": FieldType.TEXT,
    "brand": FieldType.TEXT,
    "category": FieldType.TEXT,
    "sale_price": FieldType.NUMBER,
    "retail_price": FieldType.NUMBER,
    "stock": FieldType.NUMBER,
}

DEFAULT_FIELDS = [
    {"field_key": "sku", "label": "SKU", "field_type": "text", "is_required": True,
     "placeholder_text": "Auto-generated when left blank"},
    {"field_key": "name", "label": "Product Name", "field_type": "text", "is_required": True},
    {"field_key": "brand", "label": "Brand", "field_type": "text"},
    {"field_key": "category", "label": "Category", "field_type": "text"},
    {"field_key": "sale_price", "label": "Sale Price", "field_type": "number", "is_required": True,
     "validation_rules": {"min": 0}},
    {"field_key": "retail_price", "label": "Retail Price", "field_type": "number",
     "validation_rules": {"min": 0}},
    {"field_key": "stock", "label": "Stock", "field_type": "number", "is_required": True,
     "validation_rules": {"min": 0}},
]

_PATCHABLE = {
    "label", "field_type", "is_required", "is_active", "options",
    "validation_rules", "placeholder_text", "help_text", "display_order",
}


def slugify_field_key(label: str) -> str:
    """'Pack Size (ml)' -> 'pack_size_ml'"""
    slug = re.sub(r"[^a-z0-9]+", "_", (label or "").strip().lower())
    return slug.strip("_")


def normalize_field_key(raw_key: Any, label: str | None) -> str:
    """
    Explicit keys are trimmed and lower-cased, then must already be valid.
    Absent keys are derived from the label.
    """
    if raw_key is None or (isinstance(raw_key, str) and not raw_key.strip()):
        key = slugify_field_key(label or "")
        if not key:
            raise ValidationError("field_key could not be derived from label")
    elif isinstance(raw_key, str):
        key = raw_key.strip().lower()
    else:
        raise ValidationError("field_key must be a string")

    if not FIELD_KEY_PATTERN.match(key):
        raise ValidationError("field_key may only contain lowercase letters, digits and underscores")
    if len(key) > MAX_FIELD_KEY_LENGTH:
        raise ValidationError(f"field_key exceeds max length {MAX_FIELD_KEY_LENGTH}")
    return key


def _as_bool(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{label} must be true or false")


def _validated_attributes(field_key: str, data: dict) -> dict:
    """Validate a full (merged) definition; returns the cleaned column values."""
    label = clean_text(data.get("label"), "label", max_length=MAX_LABEL_LENGTH)
    if not label:
        raise ValidationError("label is required")

    field_type = parse_field_type(data.get("field_type", FieldType.TEXT.value))
    is_custom = _as_bool(data.get("is_custom", True), "is_custom")

    core_type = CORE_FIELD_TYPES.get(field_key)
    if core_type is not None:
        if is_custom:
            raise ValidationError(f"{field_key!r} is a core field and cannot be registered as custom")
        if field_type is not core_type:
            raise ValidationError(f"core field {field_key!r} must have type {core_type.value}")
    elif not is_custom:
        raise ValidationError(f"{field_key!r} is not a core field")

    display_order = data.get("display_order")
    if display_order is not None:
        display_order = parse_int(display_order, "display_order")

    return {
        "label": label,
        "field_type": field_type.value,
        "is_required": _as_bool(data.get("is_required", False), "is_required"),
        "is_active": _as_bool(data.get("is_active", True), "is_active"),
        "is_custom": is_custom,
        "options": clean_options(field_type, data.get("options")),
        "validation_rules": clean_validation_rules(field_type, data.get("validation_rules")),
        "placeholder_text": clean_text(data.get("placeholder_text"), "placeholder_text", max_length=MAX_HINT_LENGTH) or None,
        "help_text": clean_text(data.get("help_text"), "help_text", max_length=MAX_HINT_LENGTH) or None,
        "display_order": display_order,
    }


def _ordered(query):
    return query.order_by(FieldDefinition.display_order.asc(), FieldDefinition.id.asc())


def _tenant_fields(ctx: TenantContext, *, active_only: bool = False, for_update: bool = False):
    q = db.session.query(FieldDefinition).filter(FieldDefinition.org_id == ctx.org_id)
    if active_only:
        q = q.filter(FieldDefinition.is_active.is_(True))
    if for_update:
        q = lock_for_update(q)
    return _ordered(q).all()


def _get_field(ctx: TenantContext, field_key: str, *, for_update: bool = False) -> FieldDefinition:
    key = (field_key or "").strip().lower()
    q = db.session.query(FieldDefinition).filter(
        FieldDefinition.org_id == ctx.org_id,
        FieldDefinition.field_key == key,
    )
    if for_update:
        q = lock_for_update(q)
    field = q.first()
    if field is None:
        raise NotFoundError(f"Field {field_key!r} not found")
    return field


def _count_active_others(ctx: TenantContext, field: FieldDefinition) -> int:
    return (
        db.session.query(func.count(FieldDefinition.id))
        .filter(
            FieldDefinition.org_id == ctx.org_id,
            FieldDefinition.is_active.is_(True),
            FieldDefinition.id != field.id,
        )
        .scalar()
    )


def _next_display_order(ctx: TenantContext) -> int:
    current = (
        db.session.query(func.max(FieldDefinition.display_order))
        .filter(FieldDefinition.org_id == ctx.org_id)
        .scalar()
    )
    return (current or 0) + 1


def _record(ctx: TenantContext, event_type: str, field: FieldDefinition, note: str | None = None, payload=None):
    append_ledger_event(
        org_id=ctx.org_id,
        event_type=event_type,
        event_category="fields",
        entity_type="field_definition",
        entity_id=field.id,
        actor_id=ctx.actor_id,
        note=note or field.field_key,
        payload=payload,
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_fields(ctx: TenantContext, active_only: bool = False) -> list[FieldDefinition]:
    """Definitions in display order; equal display_order falls back to creation order."""
    return run_read(lambda: _tenant_fields(ctx, active_only=active_only))


def get_field(ctx: TenantContext, field_key: str) -> FieldDefinition:
    return run_read(lambda: _get_field(ctx, field_key))


# =============================================================================
# MUTATIONS
# =============================================================================

def _insert_field(ctx: TenantContext, definition: dict) -> FieldDefinition:
    key = normalize_field_key(definition.get("field_key"), definition.get("label"))

    existing = (
        db.session.query(FieldDefinition.id)
        .filter(
            FieldDefinition.org_id == ctx.org_id,
            func.lower(FieldDefinition.field_key) == key,
        )
        .first()
    )
    if existing:
        raise DuplicateError(f"Field key {key!r} already exists", details={"field_key": key})

    values = _validated_attributes(key, definition)
    if values["display_order"] is None:
        values["display_order"] = _next_display_order(ctx)

    field = FieldDefinition(org_id=ctx.org_id, field_key=key, **values)
    db.session.add(field)
    db.session.flush()
    _record(ctx, "field.created", field, payload={"field_type": field.field_type})
    return field


def add_field(ctx: TenantContext, definition: dict) -> FieldDefinition:
    """
    Register a new field for the tenant.

    Raises:
        ValidationError on a malformed definition
        DuplicateError if the key already exists for this tenant
    """
    if not isinstance(definition, dict):
        raise ValidationError("definition must be an object")
    return run_in_write_transaction(lambda: _insert_field(ctx, definition))


def update_field(ctx: TenantContext, field_key: str, patch: dict) -> FieldDefinition:
    """Merge patch into an existing definition and re-validate the result."""
    if not isinstance(patch, dict):
        raise ValidationError("patch must be an object")
    if "field_key" in patch and (patch["field_key"] or "").strip().lower() != (field_key or "").strip().lower():
        raise ValidationError("field_key cannot be changed")
    unknown = set(patch) - _PATCHABLE - {"field_key"}
    if unknown:
        raise ValidationError(f"Unknown field attributes: {', '.join(sorted(unknown))}")

    def _op():
        field = _get_field(ctx, field_key, for_update=True)
        merged = {
            "label": field.label,
            "field_type": field.field_type,
            "is_required": field.is_required,
            "is_active": field.is_active,
            "is_custom": field.is_custom,
            "options": list(field.options or []),
            "validation_rules": dict(field.validation_rules or {}),
            "placeholder_text": field.placeholder_text,
            "help_text": field.help_text,
            "display_order": field.display_order,
        }
        merged.update({k: v for k, v in patch.items() if k in _PATCHABLE})
        # A type change drops options and rules the patch does not restate
        if "field_type" in patch and patch["field_type"] != field.field_type:
            if "options" not in patch:
                merged["options"] = []
            if "validation_rules" not in patch:
                merged["validation_rules"] = {}

        values = _validated_attributes(field.field_key, merged)
        if values["display_order"] is None:
            values["display_order"] = field.display_order

        if field.is_active and not values["is_active"] and _count_active_others(ctx, field) == 0:
            raise InvariantError("At least one field must remain active")

        for attr, value in values.items():
            setattr(field, attr, value)
        db.session.flush()
        _record(ctx, "field.updated", field, payload={"changed": sorted(set(patch) & _PATCHABLE)})
        return field

    return run_in_write_transaction(_op)


def toggle_active(ctx: TenantContext, field_key: str, active: bool) -> FieldDefinition:
    """
    Activate or deactivate a field.

    Raises:
        InvariantError if deactivating would leave the tenant with no active fields
    """
    active = _as_bool(active, "active")

    def _op():
        field = _get_field(ctx, field_key, for_update=True)
        if field.is_active == active:
            return field
        if not active and _count_active_others(ctx, field) == 0:
            raise InvariantError("At least one field must remain active")
        field.is_active = active
        db.session.flush()
        _record(ctx, "field.activated" if active else "field.deactivated", field)
        return field

    return run_in_write_transaction(_op)


def delete_field(ctx: TenantContext, field_key: str) -> None:
    """
    Remove a custom field definition.

    Product attribute values for the key are left in place; without an
    active definition they are no longer shown or accepted on write.
    """
    def _op():
        field = _get_field(ctx, field_key, for_update=True)
        if not field.is_custom:
            raise InvariantError(f"Core field {field.field_key!r} cannot be deleted; deactivate it instead")

        total = (
            db.session.query(func.count(FieldDefinition.id))
            .filter(FieldDefinition.org_id == ctx.org_id)
            .scalar()
        )
        if total <= 1:
            raise InvariantError("Cannot delete the last field")
        if field.is_active and _count_active_others(ctx, field) == 0:
            raise InvariantError("Cannot delete the last active field")

        _record(ctx, "field.deleted", field)
        db.session.delete(field)
        db.session.flush()

    run_in_write_transaction(_op)


def reorder_fields(ctx: TenantContext, ordered_keys: list[str]) -> list[FieldDefinition]:
    """
    Rewrite display_order as index+1 for every tenant field.

    ordered_keys must name each of the tenant's fields exactly once; the whole
    reorder commits or nothing does.
    """
    if not isinstance(ordered_keys, (list, tuple)) or not all(isinstance(k, str) for k in ordered_keys):
        raise ValidationError("ordered_keys must be a list of field keys")
    keys = [k.strip().lower() for k in ordered_keys]

    def _op():
        fields = _tenant_fields(ctx, for_update=True)
        by_key = {f.field_key: f for f in fields}
        if len(keys) != len(set(keys)) or set(keys) != set(by_key):
            raise ValidationError(
                "ordered_keys must list every field exactly once",
                details={"expected": sorted(by_key)},
            )
        for index, key in enumerate(keys):
            by_key[key].display_order = index + 1
        db.session.flush()
        append_ledger_event(
            org_id=ctx.org_id,
            event_type="fields.reordered",
            event_category="fields",
            entity_type="field_definition",
            actor_id=ctx.actor_id,
            payload={"order": keys},
        )
        return _tenant_fields(ctx)

    return run_in_write_transaction(_op)


def initialize_default_fields(ctx: TenantContext) -> list[FieldDefinition]:
    """Register any missing core fields; safe to call repeatedly."""
    def _op():
        existing = {f.field_key for f in _tenant_fields(ctx)}
        for spec in DEFAULT_FIELDS:
            if spec["field_key"] in existing:
                continue
            _insert_field(ctx, {**spec, "is_custom": False})
        return _tenant_fields(ctx)

    return run_in_write_transaction(_op)
