# Overview: Pytest coverage for receipt rendering and printing.

import pytest

from flexpos.errors import NotFoundError
from flexpos.models import LedgerEvent, Order
from flexpos.services import order_service, receipt_service
from flexpos.services.receipt_service import RECEIPT_WIDTH, format_money, render_receipt

ORDER = {
    "order_number": "ORD-20261019-000007",
    "order_type": "Sale",
    "created_at": "2026-10-19T15:04:05Z",
    "subtotal_cents": 4498,
    "discount_amount_cents": 450,
    "tax_cents": 334,
    "total_cents": 4382,
    "lines": [
        {"name": "Mint Pod", "quantity": 2, "unit_price_cents": 1999, "line_total_cents": 3998},
        {"name": "Charger", "quantity": 1, "unit_price_cents": 500, "line_total_cents": 500},
    ],
}


class TestRender:
    def test_format_money(self):
        assert format_money(0) == "$0.00"
        assert format_money(123456) == "$1,234.56"
        assert format_money(-5, "€") == "-€0.05"

    def test_layout(self):
        text = render_receipt(ORDER, "Cloud Nine Vapes")
        lines = text.split("\n")

        assert lines[0] == "=" * RECEIPT_WIDTH
        assert lines[1].strip() == "Cloud Nine Vapes"
        assert "Order: ORD-20261019-000007" in lines
        assert "  2 x $19.99 = $39.98" in lines
        assert "Subtotal: $44.98" in lines
        assert "Discount: -$4.50" in lines
        assert "Tax: $3.34" in lines
        assert "TOTAL: $43.82" in lines
        assert lines[-3].strip() == "Thank you for your"
        assert lines[-2].strip() == "purchase!"

    def test_no_discount_line_without_discount(self):
        text = render_receipt(dict(ORDER, discount_amount_cents=0), "Shop")
        assert "Discount" not in text

    def test_long_business_name_is_cut_to_width(self):
        text = render_receipt(ORDER, "X" * 50)
        assert text.split("\n")[1] == "X" * RECEIPT_WIDTH


class TestPrintOrder:
    def test_print_records_event_without_touching_order(self, db_session, ctx_a, make_product):
        product = make_product(stock=3)
        order = order_service.create_sale(ctx_a, {"items": [{"product_id": product.id, "quantity": 1}]})
        before = order.to_dict()

        result = receipt_service.print_order(ctx_a, order.id)

        assert result["order_number"] == order.order_number
        assert "Org A - Acme Corp" in result["receipt_text"]
        assert db_session.get(Order, order.id).to_dict() == before
        events = db_session.query(LedgerEvent).filter_by(event_type="order.printed", entity_id=order.id).all()
        assert len(events) == 1

    def test_print_is_tenant_scoped(self, db_session, ctx_a, ctx_b, make_product):
        product = make_product(stock=3)
        order = order_service.create_sale(ctx_a, {"items": [{"product_id": product.id, "quantity": 1}]})
        with pytest.raises(NotFoundError):
            receipt_service.print_order(ctx_b, order.id)
