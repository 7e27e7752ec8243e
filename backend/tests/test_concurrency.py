# Overview: Pytest coverage for concurrent checkouts against one product.

"""
Concurrency Tests

Two cashiers sell the last units of the same product at the same time. The
store must serialize the commits: exactly one succeeds, the other sees the
reduced stock and fails with InsufficientStockError. Stock never goes
negative and exactly one SALE movement is written.

Uses a file-backed SQLite database so each thread gets its own connection.
"""

import threading

import pytest

from flexpos import create_app
from flexpos.errors import InsufficientStockError
from flexpos.extensions import db
from flexpos.models import Order, Product, StockMovement
from flexpos.services import field_service, order_service, products_service
from flexpos.services.tenant_service import TenantContext, create_organization


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.sqlite3"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def test_two_checkouts_for_the_last_units(file_app):
    with file_app.app_context():
        org_id = create_organization(name="Race Shop", code="RACE").id
        ctx = TenantContext(org_id=org_id, actor_id="setup")
        field_service.initialize_default_fields(ctx)
        product_id = products_service.create_product(ctx, {"name": "Pod", "sale_price": 5, "stock": 5}).id

    barrier = threading.Barrier(2)
    results = []
    lock = threading.Lock()

    def checkout(actor):
        with file_app.app_context():
            barrier.wait()
            try:
                order = order_service.create_sale(
                    TenantContext(org_id=org_id, actor_id=actor),
                    {"items": [{"product_id": product_id, "quantity": 3}]},
                )
                outcome = ("ok", order.order_number)
            except InsufficientStockError:
                outcome = ("insufficient", None)
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=checkout, args=(f"cashier-{i}",)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(kind for kind, _ in results) == ["insufficient", "ok"]

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 2
        assert db.session.query(Order).count() == 1
        sales = db.session.query(StockMovement).filter_by(product_id=product_id, movement_type="SALE").all()
        assert [m.quantity_delta for m in sales] == [-3]
