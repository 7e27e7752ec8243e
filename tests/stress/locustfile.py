"""
FlexPOS Load Testing with Locust

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

The target tenant must exist and carry at least one product in stock:
    flask --app flexpos orgs create --name "Load Test" --code LOAD

Environment:
- FLEXPOS_STRESS_TENANT_ID: organization id to drive (default 1)

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1% (409 insufficient stock counts as an expected outcome)
"""

import os
import time
import random
import uuid
from typing import Dict, List

from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

TENANT_ID = os.environ.get("FLEXPOS_STRESS_TENANT_ID", "1")


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p50_idx = int(count * 0.50)
            p95_idx = int(count * 0.95)

            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p50_ms": times[p50_idx] if p50_idx < count else times[-1],
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class FlexPOSUser(HttpUser):
    """
    Base user: sends the trusted tenant headers and learns the product ids
    of the tenant on start.
    """
    wait_time = between(0.5, 2)
    abstract = True

    product_ids: List[int] = []
    order_ids: List[int] = []

    def on_start(self):
        self.actor_id = f"load-{uuid.uuid4().hex[:8]}"
        response = self.client.get("/api/products", headers=self.get_headers(), name="products/list")
        if response.status_code == 200:
            self.product_ids = [p["id"] for p in response.json().get("products", [])]

    def get_headers(self) -> Dict:
        return {
            "Content-Type": "application/json",
            "X-Tenant-Id": TENANT_ID,
            "X-Actor-Id": getattr(self, "actor_id", "load"),
        }

    def pick_product(self):
        return random.choice(self.product_ids) if self.product_ids else None


class BrowsingUser(FlexPOSUser):
    """
    User that primarily reads data.
    Simulates a clerk searching the catalog and looking at recent orders.
    """
    weight = 3

    @task(5)
    def list_products(self):
        start = time.time()
        response = self.client.get("/api/products", headers=self.get_headers(), name="products/list")
        metrics.record("products/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(3)
    def product_table(self):
        start = time.time()
        response = self.client.get(
            "/api/products/table",
            params={"q": random.choice(["pod", "mint", "coil", ""])},
            headers=self.get_headers(),
            name="products/table",
        )
        metrics.record("products/table", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def list_fields(self):
        start = time.time()
        response = self.client.get("/api/fields", headers=self.get_headers(), name="fields/list")
        metrics.record("fields/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def list_orders(self):
        start = time.time()
        response = self.client.get("/api/orders", headers=self.get_headers(), name="orders/list")
        metrics.record("orders/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


class CheckoutUser(FlexPOSUser):
    """
    User that commits sales against a small set of products, so checkouts
    contend for the same stock rows.
    """
    weight = 2

    @task(4)
    def create_sale(self):
        product_id = self.pick_product()
        if product_id is None:
            return

        headers = self.get_headers()
        headers["Idempotency-Key"] = uuid.uuid4().hex
        start = time.time()
        response = self.client.post(
            "/api/orders/sale",
            json={"items": [{"product_id": product_id, "quantity": random.randint(1, 3)}]},
            headers=headers,
            name="orders/sale_create",
        )
        # Running out of stock under contention is a correct answer
        metrics.record("orders/sale_create", (time.time() - start) * 1000, response.status_code in (201, 409))

        if response.status_code == 201:
            self.order_ids.append(response.json()["order"]["id"])

    @task(1)
    def print_receipt(self):
        if not self.order_ids:
            return
        order_id = random.choice(self.order_ids[-10:])

        start = time.time()
        response = self.client.post(
            f"/api/orders/{order_id}/print",
            headers=self.get_headers(),
            name="orders/print_post",
        )
        metrics.record("orders/print_post", (time.time() - start) * 1000, response.status_code == 200)


class InventoryUser(FlexPOSUser):
    """
    User that puts stock back: returns and manual adjustments.
    """
    weight = 1

    @task(3)
    def create_return(self):
        product_id = self.pick_product()
        if product_id is None:
            return

        start = time.time()
        response = self.client.post(
            "/api/orders/return",
            json={"items": [{"product_id": product_id, "quantity": random.randint(1, 2)}]},
            headers=self.get_headers(),
            name="orders/return_create",
        )
        metrics.record("orders/return_create", (time.time() - start) * 1000, response.status_code == 201)

    @task(2)
    def adjust_stock(self):
        product_id = self.pick_product()
        if product_id is None:
            return

        start = time.time()
        response = self.client.post(
            f"/api/products/{product_id}/stock",
            json={"delta": random.randint(1, 10), "note": "Load test restock"},
            headers=self.get_headers(),
            name="products/stock_add",
        )
        metrics.record("products/stock_add", (time.time() - start) * 1000, response.status_code == 200)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = True

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 1000 if "create" in name or "post" in name or "add" in name else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)

    if all_pass:
        print("\n[PASS] All endpoints within thresholds")
    else:
        print("\n[FAIL] Some endpoints exceeded thresholds")
        print("  - Reads (list/get): P95 < 500ms, Error rate < 1%")
        print("  - Writes (create/post): P95 < 1000ms, Error rate < 1%")

    print("=" * 80)
