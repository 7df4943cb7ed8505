"""
Dashboard metrics tests.
"""

from decimal import Decimal

from app.models import Payment
from app.services import dashboard_service
from conftest import PRICED


def _payment(user, status, amount):
    return Payment(
        user_id=user.id,
        total_amount=Decimal(amount),
        method="WISE",
        status=status,
        reference_number=f"PAY-000000-{status[:6]:0<6}",
    )


class TestMetrics:

    def test_counts_and_spend(self, db_session, customer, other_customer, make_quotation, make_shipment):
        make_quotation(customer)
        make_quotation(customer, **PRICED)
        make_quotation(customer, status="Approved", **PRICED)
        make_quotation(other_customer)

        make_shipment(customer, status="waiting")
        make_shipment(customer, status="in transit")
        make_shipment(customer, status="delivered")
        make_shipment(other_customer, status="delivered")

        db_session.add_all([
            _payment(customer, "COMPLETED", "1250.00"),
            _payment(customer, "PENDING", "999.00"),
            _payment(other_customer, "REJECTED", "50.00"),
        ])
        db_session.commit()

        metrics = dashboard_service.get_metrics(customer)

        assert metrics["pending_quotations"] == 2
        assert metrics["active_shipments"] == 2
        assert metrics["delivered_shipments"] == 1
        assert metrics["total_spend"] == 1250.0
        assert metrics["total_spend_display"] == "$1,250.00"
        assert len(metrics["recent_quotations"]) == 3
        assert {q["user_id"] for q in metrics["recent_quotations"]} == {customer.id}

    def test_new_customer(self, db_session, customer):
        metrics = dashboard_service.get_metrics(customer)

        assert metrics["pending_quotations"] == 0
        assert metrics["total_spend"] == 0.0
        assert metrics["total_spend_display"] == "$0.00"
        assert metrics["recent_quotations"] == []

    def test_endpoint(self, client, db_session, customer, customer_headers, make_quotation):
        make_quotation(customer)
        resp = client.get("/api/dashboard/metrics", headers=customer_headers)

        assert resp.status_code == 200
        assert resp.json["pending_quotations"] == 1
        assert resp.json["recent_quotations"][0]["image"]["has_image"] is False
