# Overview: Service-layer operations for document numbering; per-tenant atomic sequences.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow
from .tenant_service import TenantContext

ORDER_DOCUMENT_TYPE = "ORDER"
ORDER_NUMBER_PREFIX = "ORD"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(org_id: int, document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(org_id=org_id, document_type=document_type)
        .scalar()
    )
    return current - 1


def allocate_sequence_number(org_id: int, document_type: str) -> int:
    """
    Atomically allocate the next number for a tenant/document type.

    Runs inside the caller's write transaction: a rolled-back order also
    gives its number back. The first allocation inserts the sequence row
    under a savepoint so a concurrent first insert only retries the bump.
    """
    if not org_id:
        raise DocumentSequenceError("org_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    number = _bump(org_id, document_type)
    if number is not None:
        return number

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(org_id=org_id, document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        number = _bump(org_id, document_type)
        if number is None:
            raise
        return number


def format_order_number(sequence: int, when: datetime | None = None) -> str:
    """ORD-YYYYMMDD-NNNNNN"""
    day = when or utcnow()
    return f"{ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-{sequence:06d}"


def next_order_number(ctx: TenantContext, when: datetime | None = None) -> str:
    return format_order_number(allocate_sequence_number(ctx.org_id, ORDER_DOCUMENT_TYPE), when)
