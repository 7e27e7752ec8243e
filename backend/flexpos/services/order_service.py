"""
Order Engine: cart -> committed Sale or Refund

WHY: The order header, its lines, the stock movements and the audit event
form one unit. They commit in a single write transaction or not at all, and
a committed order is never edited; corrections are new Refund orders.

LIFECYCLE: Draft (the caller's cart) -> Validated -> Committed -> Printed.
Drafts are never stored; printing only appends a ledger event.

ARITHMETIC (integer cents, half-up rounding):
    line_total = unit_price * quantity
    subtotal   = sum(line_total)
    discount   = round(subtotal * pct / 100)   percentage, must not exceed subtotal
               = min(value, subtotal)          fixed
    tax        = round((subtotal - discount) * tax_rate)
    total      = subtotal - discount + tax

IDEMPOTENCY: a request_key the tenant already used returns the original
order; stock is not touched a second time.

RECONCILIATION: if the transaction fails after the header was staged, it is
rolled back and an order.commit_failed event is written to the ledger in a
fresh transaction so the failure is never silently dropped.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError, NotFoundError, InvariantError, InsufficientStockError, DuplicateError
from ..models import Order, OrderLine, ORDER_TYPE_SALE, ORDER_TYPE_REFUND
from ..money import amount_to_cents, round_half_up
from ..validation import clean_text, is_empty, parse_decimal, parse_quantity
from .concurrency import run_read, run_in_write_transaction
from .document_service import next_order_number
from .inventory_service import MOVEMENT_SALE, MOVEMENT_RETURN, apply_stock_change, load_product
from .ledger_service import append_ledger_event
from .tenant_service import TenantContext, get_organization

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = {DISCOUNT_PERCENTAGE, DISCOUNT_FIXED}

MAX_NOTES_LENGTH = 500
MAX_REQUEST_KEY_LENGTH = 128
MAX_ORDER_PAGE = 500
# Clamp for discount_value; above any reachable subtotal, so totals do not change
MAX_DISCOUNT_VALUE = Decimal("999999999999")


# =============================================================================
# INPUT PARSING
# =============================================================================

def parse_tax_rate(value, label: str = "tax_rate") -> Decimal:
    """Tax rate as a fraction in [0, 1] (0.0825 == 8.25%)."""
    rate = parse_decimal(value, label)
    if rate < 0 or rate > 1:
        raise ValidationError(f"{label} must be a fraction between 0 and 1")
    return rate


def parse_discount(discount_type, discount_value) -> tuple[str, Decimal]:
    discount_type = (discount_type or DISCOUNT_PERCENTAGE)
    if not isinstance(discount_type, str) or discount_type.strip().lower() not in DISCOUNT_TYPES:
        raise ValidationError("discount_type must be 'percentage' or 'fixed'")
    discount_type = discount_type.strip().lower()

    if is_empty(discount_value):
        return discount_type, Decimal("0")
    value = parse_decimal(discount_value, "discount_value")
    if value < 0:
        raise ValidationError("discount_value must be >= 0")
    return discount_type, min(value, MAX_DISCOUNT_VALUE)


def parse_items(items) -> list[tuple[int, int]]:
    """[(product_id, quantity), ...] in cart order."""
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("Cart must contain at least one item")
    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = item.get("product_id", item.get("productId"))
        if isinstance(product_id, bool) or product_id is None:
            raise ValidationError(f"items[{index}].product_id is required")
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            raise ValidationError(f"items[{index}].product_id must be an integer")
        quantity = parse_quantity(item.get("quantity"), f"items[{index}].quantity")
        parsed.append((product_id, quantity))
    return parsed


def _clean_request_key(value) -> str | None:
    key = clean_text(value, "request_key", max_length=MAX_REQUEST_KEY_LENGTH)
    return key or None


# =============================================================================
# ARITHMETIC
# =============================================================================

def compute_totals(
    lines: list[tuple[int, int]],
    *,
    discount_type: str,
    discount_value: Decimal,
    tax_rate: Decimal,
) -> dict:
    """
    Pure order arithmetic over (unit_price_cents, quantity) pairs.

    Raises:
        InvariantError if a percentage discount would exceed the subtotal
    """
    line_totals = [unit_price * quantity for unit_price, quantity in lines]
    subtotal = sum(line_totals)

    if discount_type == DISCOUNT_PERCENTAGE:
        raw = Decimal(subtotal) * discount_value / 100
        # Same test as round_half_up(raw) > subtotal, without rounding an unbounded value
        if raw >= subtotal + Decimal("0.5"):
            raise InvariantError(
                "Discount cannot exceed subtotal",
                details={"subtotal_cents": subtotal, "discount_percent": str(discount_value)},
            )
        discount = round_half_up(raw)
    else:
        discount = amount_to_cents(min(discount_value, Decimal(subtotal) / 100))

    tax = round_half_up(Decimal(subtotal - discount) * tax_rate)
    return {
        "line_totals": line_totals,
        "subtotal_cents": subtotal,
        "discount_amount_cents": discount,
        "tax_cents": tax,
        "total_cents": subtotal - discount + tax,
    }


# =============================================================================
# COMMIT
# =============================================================================

def _find_by_request_key(ctx: TenantContext, request_key: str) -> Order | None:
    return (
        db.session.query(Order)
        .filter(Order.org_id == ctx.org_id, Order.request_key == request_key)
        .first()
    )


def _replayed(ctx: TenantContext, existing: Order, order_type: str) -> Order:
    if existing.order_type != order_type:
        raise DuplicateError(
            "request_key was already used for a different order type",
            details={"order_number": existing.order_number},
        )
    current_app.logger.info(
        "Replayed request_key for org %s -> %s", ctx.org_id, existing.order_number
    )
    return existing


def _record_commit_failure(ctx: TenantContext, order_type: str, staged: dict, items, exc: Exception) -> None:
    """Write the reconciliation event for a rolled-back commit."""
    current_app.logger.warning(
        "Order commit rolled back after staging %s for org %s: %s",
        staged.get("order_number"), ctx.org_id, exc,
    )

    def _op():
        append_ledger_event(
            org_id=ctx.org_id,
            event_type="order.commit_failed",
            event_category="reconciliation",
            entity_type="order",
            actor_id=ctx.actor_id,
            note=f"{order_type} {staged.get('order_number')} rolled back",
            payload={
                "order_type": order_type,
                "order_number": staged.get("order_number"),
                "lines_staged": staged.get("lines", 0),
                "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
                "error": type(exc).__name__,
                "message": str(exc)[:500],
            },
        )

    try:
        run_in_write_transaction(_op)
    except Exception:
        current_app.logger.exception("Failed to record reconciliation event for org %s", ctx.org_id)


def _commit_order(
    ctx: TenantContext,
    *,
    order_type: str,
    items: list[tuple[int, int]],
    discount_type: str,
    discount_value: Decimal,
    tax_rate: Decimal | None,
    notes: str | None,
    request_key: str | None,
) -> Order:
    is_sale = order_type == ORDER_TYPE_SALE
    staged: dict = {}

    def _op():
        staged.clear()

        if request_key:
            existing = _find_by_request_key(ctx, request_key)
            if existing is not None:
                return _replayed(ctx, existing, order_type)

        # Lock each product once; refunds may reference deactivated products
        products = {}
        requested: dict[int, int] = {}
        for product_id, quantity in items:
            if product_id not in products:
                products[product_id] = load_product(ctx, product_id, require_active=is_sale, lock=True)
            requested[product_id] = requested.get(product_id, 0) + quantity

        if is_sale:
            short = [
                {"product_id": pid, "requested": qty, "available": products[pid].stock}
                for pid, qty in requested.items()
                if qty > products[pid].stock
            ]
            if short:
                raise InsufficientStockError("Insufficient stock", details={"items": short})

        effective_tax_rate = tax_rate
        if effective_tax_rate is None:
            effective_tax_rate = Decimal(get_organization(ctx).tax_rate_bps) / Decimal(10_000)

        priced = [(products[pid].sale_price_cents, qty) for pid, qty in items]
        totals = compute_totals(
            priced,
            discount_type=discount_type,
            discount_value=discount_value,
            tax_rate=effective_tax_rate,
        )

        order = Order(
            org_id=ctx.org_id,
            order_number=next_order_number(ctx),
            order_type=order_type,
            subtotal_cents=totals["subtotal_cents"],
            discount_type=discount_type,
            discount_value=str(discount_value),
            discount_amount_cents=totals["discount_amount_cents"],
            tax_rate=str(effective_tax_rate),
            tax_cents=totals["tax_cents"],
            total_cents=totals["total_cents"],
            notes=notes,
            request_key=request_key,
            actor_id=ctx.actor_id,
        )
        db.session.add(order)
        db.session.flush()
        staged["order_number"] = order.order_number

        movement_type = MOVEMENT_SALE if is_sale else MOVEMENT_RETURN
        for index, (product_id, quantity) in enumerate(items):
            product = products[product_id]
            line = OrderLine(
                order_id=order.id,
                line_number=index + 1,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                category=product.category,
                unit_price_cents=product.sale_price_cents,
                quantity=quantity,
                line_total_cents=totals["line_totals"][index],
            )
            db.session.add(line)
            db.session.flush()
            apply_stock_change(
                ctx,
                product,
                -quantity if is_sale else quantity,
                movement_type,
                order_id=order.id,
                order_line_id=line.id,
                note=order.order_number,
            )
            staged["lines"] = index + 1

        append_ledger_event(
            org_id=ctx.org_id,
            event_type="order.committed",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_id=ctx.actor_id,
            note=order.order_number,
            payload={
                "order_type": order_type,
                "total_cents": order.total_cents,
                "lines": len(items),
            },
        )
        return order

    try:
        return run_in_write_transaction(_op)
    except IntegrityError as exc:
        # Two requests raced on the same request_key; the winner's order stands
        if request_key:
            existing = run_read(lambda: _find_by_request_key(ctx, request_key))
            if existing is not None:
                return _replayed(ctx, existing, order_type)
        if staged:
            _record_commit_failure(ctx, order_type, staged, items, exc)
        raise
    except Exception as exc:
        if staged:
            _record_commit_failure(ctx, order_type, staged, items, exc)
        raise


def create_sale(ctx: TenantContext, cart: dict) -> Order:
    """
    Validate a cart and commit it as a Sale.

    cart keys: items [{product_id, quantity}], tax_rate (fraction, default is
    the tenant rate), discount_type, discount_value, notes, request_key.

    Raises:
        ValidationError, NotFoundError, InsufficientStockError, InvariantError
    """
    if not isinstance(cart, dict):
        raise ValidationError("cart must be an object")
    items = parse_items(cart.get("items"))
    discount_type, discount_value = parse_discount(cart.get("discount_type"), cart.get("discount_value"))
    tax_rate = None if is_empty(cart.get("tax_rate")) else parse_tax_rate(cart.get("tax_rate"))

    return _commit_order(
        ctx,
        order_type=ORDER_TYPE_SALE,
        items=items,
        discount_type=discount_type,
        discount_value=discount_value,
        tax_rate=tax_rate,
        notes=clean_text(cart.get("notes"), "notes", max_length=MAX_NOTES_LENGTH) or None,
        request_key=_clean_request_key(cart.get("request_key")),
    )


def create_return(ctx: TenantContext, cart: dict) -> Order:
    """
    Commit a Refund: stock is added back, tax is the fixed return rate and
    no discount applies.
    """
    if not isinstance(cart, dict):
        raise ValidationError("cart must be an object")
    items = parse_items(cart.get("items"))
    _, discount_value = parse_discount(cart.get("discount_type"), cart.get("discount_value"))
    if discount_value:
        raise ValidationError("Returns do not support discounts")
    if not is_empty(cart.get("tax_rate")):
        raise ValidationError("Returns use the fixed return tax rate")

    return _commit_order(
        ctx,
        order_type=ORDER_TYPE_REFUND,
        items=items,
        discount_type=DISCOUNT_PERCENTAGE,
        discount_value=Decimal("0"),
        tax_rate=parse_tax_rate(current_app.config["RETURN_TAX_RATE"], "RETURN_TAX_RATE"),
        notes=clean_text(cart.get("notes"), "notes", max_length=MAX_NOTES_LENGTH) or None,
        request_key=_clean_request_key(cart.get("request_key")),
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_order(ctx: TenantContext, order_id) -> Order:
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        raise ValidationError("order_id must be an integer")

    def _op():
        order = (
            db.session.query(Order)
            .filter(Order.id == order_id, Order.org_id == ctx.org_id)
            .first()
        )
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    return run_read(_op)


def list_orders(ctx: TenantContext, order_type: str | None = None, limit: int = 50) -> list[Order]:
    if order_type and order_type not in (ORDER_TYPE_SALE, ORDER_TYPE_REFUND):
        raise ValidationError("order_type must be 'Sale' or 'Refund'")
    limit = max(1, min(limit or 50, MAX_ORDER_PAGE))

    def _op():
        q = db.session.query(Order).filter(Order.org_id == ctx.org_id)
        if order_type:
            q = q.filter(Order.order_type == order_type)
        return q.order_by(Order.id.desc()).limit(limit).all()

    return run_read(_op)
