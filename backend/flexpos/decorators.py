# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import ConfigurationError
from .services.tenant_service import resolve_tenant, TenantAccessError


def require_tenant(f):
    """
    Establish the tenant context for the request.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant: The TenantContext passed to every service call
    - g.org_id: The organization ID (tenant context)

    SECURITY: The tenant header is set by the upstream identity provider and
    trusted as-is. Returns 401 if:
    - No tenant header
    - Unknown organization
    - Organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_org = request.headers.get(current_app.config["TENANT_HEADER"])
        if not raw_org:
            return jsonify({"error": "Tenant context required"}), 401

        actor_id = request.headers.get(current_app.config["ACTOR_HEADER"])
        try:
            ctx = resolve_tenant(raw_org.strip(), actor_id=actor_id)
        except TenantAccessError as e:
            return jsonify({"error": str(e)}), 401
        except ConfigurationError as e:
            return jsonify(e.to_dict()), e.http_status

        g.tenant = ctx
        g.org_id = ctx.org_id
        return f(*args, **kwargs)

    return decorated_function
