# Overview: Flask API routes for ledger operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CoreError
from ..services.ledger_service import list_ledger_events
from ..decorators import require_tenant

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@require_tenant
def list_ledger_events_route():
    """
    Newest-first audit events for the tenant.

    Query params:
    - category: fields | product | inventory | orders | reconciliation
    - limit: max events (default 100, max 500)
    """
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    try:
        events = list_ledger_events(g.tenant, category=request.args.get("category"), limit=limit)
        return jsonify({"events": events, "limit": limit}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list ledger events")
        return jsonify({"error": "Internal server error"}), 500
