# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog routes.

MULTI-TENANT: All product operations are scoped to the caller's organization
via g.tenant (set by @require_tenant). Products of other tenants read as 404.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError, ValidationError
from ..services import products_service, field_service, inventory_service
from ..decorators import require_tenant

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "").lower() in ("1", "true", "yes")


@products_bp.get("")
@require_tenant
def list_products_route():
    """
    List products, newest first.

    Query params:
    - q: search term matched against name, sku and brand
    - include_inactive: "true" to include soft-deleted products
    """
    try:
        products = products_service.list_products(
            g.tenant,
            search_term=request.args.get("q"),
            include_inactive=_include_inactive(),
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/table")
@require_tenant
def product_table_route():
    """Products plus the columns worth showing for them."""
    try:
        products = [p.to_dict() for p in products_service.list_products(g.tenant, search_term=request.args.get("q"))]
        fields = [f.to_dict() for f in field_service.list_fields(g.tenant)]
        return jsonify({
            "fields": products_service.get_visible_fields(products, fields),
            "products": products,
        }), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build product table")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_tenant
def create_product_route():
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.create_product(g.tenant, data)
        return jsonify({"product": product.to_dict()}), 201
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_tenant
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.tenant, product_id, include_inactive=_include_inactive())
        return jsonify({"product": product.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/form")
@require_tenant
def product_form_route(product_id: int):
    """Values for every active field, defaults filled in for missing ones."""
    try:
        product = products_service.get_product(g.tenant, product_id)
        fields = field_service.list_fields(g.tenant, active_only=True)
        return jsonify({
            "fields": [f.to_dict() for f in fields],
            "values": products_service.product_form_values(product, fields),
        }), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load product form")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_tenant
def update_product_route(product_id: int):
    """
    Update a product.

    NOTE: the attribute bag is fully replaced; resend every custom value
    that should be kept.
    """
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.update_product(g.tenant, product_id, data)
        return jsonify({"product": product.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_tenant
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.tenant, product_id)
        return jsonify({"deleted": product_id}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/stock")
@require_tenant
def adjust_stock_route(product_id: int):
    """Body: {"delta": int, "note": optional str}"""
    try:
        data = request.get_json(silent=True) or {}
        if "delta" not in data:
            raise ValidationError("delta is required")
        product = products_service.adjust_stock(g.tenant, product_id, data["delta"], note=data.get("note"))
        return jsonify({"product": product.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/movements")
@require_tenant
def list_movements_route(product_id: int):
    """Stock history, oldest first."""
    try:
        movements = inventory_service.list_movements(g.tenant, product_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
