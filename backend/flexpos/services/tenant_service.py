"""
Multi-Tenant Service: Tenant Context and Scoping Helpers

WHY: Every core operation takes an explicit TenantContext instead of reading
ambient request state, so services behave the same from HTTP, CLI and tests.

SECURITY INVARIANTS:
1. Tenant identity is supplied by the upstream identity provider (trusted header)
2. The organization must exist and be active before a context is issued
3. Queries touching tenant-owned data must filter by ctx.org_id
4. Cross-tenant lookups behave exactly like missing rows (no existence leaks)

USAGE:
    from flexpos.services.tenant_service import TenantContext, resolve_tenant

    ctx = resolve_tenant(org_id, actor_id="cashier-7")
    products_service.list_products(ctx)
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import ValidationError, DuplicateError
from ..models import Organization
from .concurrency import run_read, run_in_write_transaction


class TenantAccessError(Exception):
    """Raised when no valid tenant context can be established."""
    pass


@dataclass(frozen=True)
class TenantContext:
    """
    Immutable tenant context threaded through every core operation.

    actor_id is whatever identifier the identity provider supplied; it is
    only recorded for attribution, never trusted for authorization here.
    """
    org_id: int
    actor_id: str | None = None


def resolve_tenant(org_id, actor_id: str | None = None) -> TenantContext:
    """
    Validate a tenant id and build its context.

    Raises:
        TenantAccessError if the id is malformed, unknown or deactivated
    """
    try:
        org_id = int(org_id)
    except (TypeError, ValueError):
        raise TenantAccessError("Tenant context not established")

    def _op():
        return db.session.query(Organization).filter_by(id=org_id).first()

    org = run_read(_op)
    if org is None or not org.is_active:
        raise TenantAccessError("Unknown or inactive tenant")
    return TenantContext(org_id=org.id, actor_id=actor_id or None)


def get_organization(ctx: TenantContext) -> Organization:
    org = db.session.query(Organization).filter_by(id=ctx.org_id).first()
    if org is None:
        raise TenantAccessError("Unknown tenant")
    return org


def create_organization(
    *,
    name: str,
    code: str | None = None,
    tax_rate_bps: int = 0,
    currency_symbol: str = "$",
) -> Organization:
    """Create a tenant. Codes are globally unique short identifiers."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if not isinstance(tax_rate_bps, int) or isinstance(tax_rate_bps, bool) or not 0 <= tax_rate_bps <= 10_000:
        raise ValidationError("tax_rate_bps must be an integer between 0 and 10000")
    code = code.strip().upper() if code else None

    def _op():
        if code and db.session.query(Organization).filter_by(code=code).first():
            raise DuplicateError(f"Organization code {code!r} already exists")
        org = Organization(
            name=name,
            code=code,
            tax_rate_bps=tax_rate_bps,
            currency_symbol=currency_symbol or "$",
            is_active=True,
        )
        db.session.add(org)
        db.session.flush()
        return org

    return run_in_write_transaction(_op)
