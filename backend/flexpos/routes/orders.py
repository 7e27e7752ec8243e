# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order routes.

Sales and returns commit in one request; there is no draft resource. Clients
should send an Idempotency-Key header so a retried request cannot move stock
twice.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError
from ..services import order_service, receipt_service
from ..decorators import require_tenant

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _cart_from_request() -> dict:
    data = request.get_json(silent=True) or {}
    cart = dict(data) if isinstance(data, dict) else {"items": None}
    header_key = request.headers.get("Idempotency-Key")
    if header_key:
        cart["request_key"] = header_key
    return cart


@orders_bp.post("/sale")
@require_tenant
def create_sale_route():
    """
    Commit a sale.

    Body: {"items": [{"product_id", "quantity"}], "tax_rate", "discount_type",
           "discount_value", "notes"}
    """
    try:
        order = order_service.create_sale(g.tenant, _cart_from_request())
        return jsonify({"order": order.to_dict()}), 201
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/return")
@require_tenant
def create_return_route():
    """Body: {"items": [{"product_id", "quantity"}], "notes"}"""
    try:
        order = order_service.create_return(g.tenant, _cart_from_request())
        return jsonify({"order": order.to_dict()}), 201
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_tenant
def list_orders_route():
    """
    Query params:
    - type: Sale | Refund
    - limit: max orders (default 50, max 500)
    """
    try:
        orders = order_service.list_orders(
            g.tenant,
            order_type=request.args.get("type"),
            limit=request.args.get("limit", default=50, type=int),
        )
        return jsonify({"orders": [o.to_dict(include_lines=False) for o in orders]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_tenant
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.tenant, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/receipt")
@require_tenant
def order_receipt_route(order_id: int):
    try:
        order = order_service.get_order(g.tenant, order_id)
        return jsonify({
            "order_number": order.order_number,
            "receipt_text": receipt_service.order_receipt(g.tenant, order),
        }), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to render receipt")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/print")
@require_tenant
def print_order_route(order_id: int):
    try:
        result = receipt_service.print_order(g.tenant, order_id)
        return jsonify(result), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to print order")
        return jsonify({"error": "Internal server error"}), 500
