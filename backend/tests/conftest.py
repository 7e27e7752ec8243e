"""
Pytest fixtures for flexpos backend tests.

Provides test database setup, tenant fixtures, and test client.
"""

import pytest
from flexpos import create_app
from flexpos.extensions import db
from flexpos.models import Organization
from flexpos.services import field_service, products_service
from flexpos.services.tenant_service import TenantContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expunge_all()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True, tax_rate_bps=0)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True, tax_rate_bps=825)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def ctx_a(org_a):
    return TenantContext(org_id=org_a.id, actor_id="cashier-a")


@pytest.fixture(scope='function')
def ctx_b(org_b):
    return TenantContext(org_id=org_b.id, actor_id="cashier-b")


@pytest.fixture(scope='function')
def fields_a(ctx_a):
    """Core field schema for Organization A."""
    return field_service.initialize_default_fields(ctx_a)


@pytest.fixture(scope='function')
def make_product(fields_a, ctx_a):
    """Factory for products in Organization A."""
    def _make(**values):
        values.setdefault("name", "Widget")
        values.setdefault("sale_price", "10.00")
        values.setdefault("stock", 5)
        return products_service.create_product(ctx_a, values)
    return _make


@pytest.fixture(scope='function')
def headers_a(org_a):
    """Trusted identity headers as the upstream gateway would set them."""
    return {'X-Tenant-Id': str(org_a.id), 'X-Actor-Id': 'tester-a'}


@pytest.fixture(scope='function')
def headers_b(org_b):
    return {'X-Tenant-Id': str(org_b.id), 'X-Actor-Id': 'tester-b'}
