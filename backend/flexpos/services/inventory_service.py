# Overview: Service-layer operations for inventory; the single stock mutation path.

"""
flexpos Inventory Invariants (authoritative)

- Product.stock is the on-hand count and is never negative.
- Every change goes through apply_stock_change: a compare-and-set UPDATE
  guarded on the stock value that was read, plus one StockMovement row.
- A lost compare-and-set raises StaleDataError; run_with_retry replays the
  whole write transaction against fresh state.
- A committed order line moves stock at most once (StockMovement.order_line_id
  is unique).
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockMovement
from ..validation import MAX_STOCK, parse_int
from .concurrency import lock_for_update, run_in_write_transaction, run_read
from .ledger_service import append_ledger_event
from .tenant_service import TenantContext

MOVEMENT_SALE = "SALE"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_SET = "SET"


def load_product(ctx: TenantContext, product_id, *, require_active: bool = True, lock: bool = False) -> Product:
    """Tenant-scoped product lookup; other tenants' products read as missing."""
    try:
        product_id = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("product_id must be an integer")
    query = db.session.query(Product).filter(Product.id == product_id, Product.org_id == ctx.org_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None or (require_active and not product.is_active):
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def apply_stock_change(
    ctx: TenantContext,
    product: Product,
    delta: int,
    movement_type: str,
    *,
    clamp: bool = False,
    order_id: int | None = None,
    order_line_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Move stock by delta inside the caller's transaction.

    clamp=False: a result below zero raises InsufficientStockError.
    clamp=True: the result is clamped to [0, MAX_STOCK] (manual adjustments).

    Must be called before any other pending change to the same product:
    the product is refreshed from the database afterwards.
    """
    current = product.stock
    target = current + delta
    if clamp:
        target = max(0, min(MAX_STOCK, target))
    elif target < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}: requested {-delta}, available {current}",
            details={"product_id": product.id, "requested": -delta, "available": current},
        )

    stmt = (
        update(Product)
        .where(
            Product.id == product.id,
            Product.org_id == ctx.org_id,
            Product.stock == current,
        )
        .values(stock=target, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise StaleDataError(f"Stock for product {product.id} changed concurrently")
    db.session.refresh(product)

    movement = StockMovement(
        org_id=ctx.org_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity_delta=target - current,
        stock_after=target,
        order_id=order_id,
        order_line_id=order_line_id,
        actor_id=ctx.actor_id,
        note=note[:255] if note else note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(ctx: TenantContext, product_id, delta, note: str | None = None) -> Product:
    """
    Manual stock adjustment: new stock = max(0, stock + delta).

    Uses the same compare-and-set path as order commits.
    """
    delta = parse_int(delta, "delta")

    def _op():
        product = load_product(ctx, product_id, lock=True)
        before = product.stock
        movement = apply_stock_change(ctx, product, delta, MOVEMENT_ADJUST, clamp=True, note=note)
        append_ledger_event(
            org_id=ctx.org_id,
            event_type="inventory.adjusted",
            event_category="inventory",
            entity_type="product",
            entity_id=product.id,
            actor_id=ctx.actor_id,
            note=note,
            payload={"requested_delta": delta, "before": before, "after": movement.stock_after},
        )
        return product

    return run_in_write_transaction(_op)


def set_stock(ctx: TenantContext, product: Product, target: int, note: str | None = None) -> StockMovement | None:
    """Move stock to an absolute value (product edits); no-op when unchanged."""
    delta = target - product.stock
    if delta == 0:
        return None
    return apply_stock_change(ctx, product, delta, MOVEMENT_SET, clamp=True, note=note)


def list_movements(ctx: TenantContext, product_id) -> list[StockMovement]:
    """Stock history of one product, oldest first. Deactivated products keep theirs."""
    def _op():
        product = load_product(ctx, product_id, require_active=False)
        return (
            db.session.query(StockMovement)
            .filter(StockMovement.org_id == ctx.org_id, StockMovement.product_id == product.id)
            .order_by(StockMovement.id.asc())
            .all()
        )

    return run_read(_op)
