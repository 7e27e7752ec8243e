# Overview: Flask API routes for field schema operations; parses input and returns JSON responses.

"""
Field schema routes.

MULTI-TENANT: Every operation is scoped to g.tenant (set by @require_tenant).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError, ValidationError
from ..services import field_service
from ..decorators import require_tenant

fields_bp = Blueprint("fields", __name__, url_prefix="/api/fields")


@fields_bp.get("")
@require_tenant
def list_fields_route():
    """
    List field definitions in display order.

    Query params:
    - active: "true" to return active fields only
    """
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
    try:
        fields = field_service.list_fields(g.tenant, active_only=active_only)
        return jsonify({"fields": [f.to_dict() for f in fields]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list fields")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.post("")
@require_tenant
def add_field_route():
    try:
        data = request.get_json(silent=True) or {}
        field = field_service.add_field(g.tenant, data)
        return jsonify({"field": field.to_dict()}), 201
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to add field")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.patch("/<string:field_key>")
@require_tenant
def update_field_route(field_key: str):
    try:
        data = request.get_json(silent=True) or {}
        field = field_service.update_field(g.tenant, field_key, data)
        return jsonify({"field": field.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update field")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.post("/<string:field_key>/active")
@require_tenant
def toggle_field_route(field_key: str):
    """Body: {"active": true|false}"""
    try:
        data = request.get_json(silent=True) or {}
        if "active" not in data:
            raise ValidationError("active is required")
        field = field_service.toggle_active(g.tenant, field_key, data["active"])
        return jsonify({"field": field.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to toggle field")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.delete("/<string:field_key>")
@require_tenant
def delete_field_route(field_key: str):
    try:
        field_service.delete_field(g.tenant, field_key)
        return jsonify({"deleted": field_key}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete field")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.post("/reorder")
@require_tenant
def reorder_fields_route():
    """Body: {"keys": ["sku", "name", ...]} listing every field exactly once."""
    try:
        data = request.get_json(silent=True) or {}
        fields = field_service.reorder_fields(g.tenant, data.get("keys"))
        return jsonify({"fields": [f.to_dict() for f in fields]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reorder fields")
        return jsonify({"error": "Internal server error"}), 500


@fields_bp.post("/defaults")
@require_tenant
def initialize_defaults_route():
    try:
        fields = field_service.initialize_default_fields(g.tenant)
        return jsonify({"fields": [f.to_dict() for f in fields]}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to initialize default fields")
        return jsonify({"error": "Internal server error"}), 500
