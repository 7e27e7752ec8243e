# Overview: Service-layer operations for receipts; renders committed orders as printable text.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError
from ..models import Order
from .concurrency import run_in_write_transaction
from .ledger_service import append_ledger_event
from .tenant_service import TenantContext, get_organization

RECEIPT_WIDTH = 32
_RULE_HEAVY = "=" * RECEIPT_WIDTH
_RULE_LIGHT = "-" * RECEIPT_WIDTH


def format_money(cents: int, currency_symbol: str = "$") -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{currency_symbol}{cents // 100:,}.{cents % 100:02d}"


def render_receipt(order: dict, business_name: str, currency_symbol: str = "$") -> str:
    """
    Plain-text receipt for a committed order (Order.to_dict() shape).

    Only formats the stored amounts; totals are never recomputed here.
    """
    def money(cents):
        return format_money(cents, currency_symbol)

    lines = [
        _RULE_HEAVY,
        business_name[:RECEIPT_WIDTH].center(RECEIPT_WIDTH),
        _RULE_HEAVY,
        f"Order: {order['order_number']}",
        f"Date: {order.get('created_at') or ''}",
        f"Type: {order['order_type']}",
        _RULE_LIGHT,
    ]
    for line in order.get("lines", []):
        lines.append(line["name"])
        lines.append(
            f"  {line['quantity']} x {money(line['unit_price_cents'])} = {money(line['line_total_cents'])}"
        )

    lines.append(_RULE_LIGHT)
    lines.append(f"Subtotal: {money(order['subtotal_cents'])}")
    if order["discount_amount_cents"] > 0:
        lines.append(f"Discount: -{money(order['discount_amount_cents'])}")
    lines.append(f"Tax: {money(order['tax_cents'])}")
    lines.append(_RULE_LIGHT)
    lines.append(f"TOTAL: {money(order['total_cents'])}")
    lines.append(_RULE_HEAVY)
    lines.append("Thank you for your".center(RECEIPT_WIDTH))
    lines.append("purchase!".center(RECEIPT_WIDTH))
    lines.append(_RULE_HEAVY)
    return "\n".join(lines)


def order_receipt(ctx: TenantContext, order: Order) -> str:
    org = get_organization(ctx)
    return render_receipt(order.to_dict(), org.name, org.currency_symbol)


def print_order(ctx: TenantContext, order_id: int) -> dict:
    """
    Render a receipt and record that it was printed.

    Transport to a printer happens outside this service; the order row
    itself is never touched.
    """
    def _op():
        order = (
            db.session.query(Order)
            .filter(Order.id == order_id, Order.org_id == ctx.org_id)
            .first()
        )
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        receipt_text = order_receipt(ctx, order)
        append_ledger_event(
            org_id=ctx.org_id,
            event_type="order.printed",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_id=ctx.actor_id,
            note=order.order_number,
        )
        return {"order_id": order.id, "order_number": order.order_number, "receipt_text": receipt_text}

    return run_in_write_transaction(_op)
