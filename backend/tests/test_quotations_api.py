"""
Quotation API tests.

Verifies:
- Create reports the first missing required field by name
- Generated QT codes and default Pending status
- imageUrls patch validation and both image columns updated
- Admin-only price entry and status changes
"""

import io
import re

import pytest

from app.models import Quotation
from conftest import PRICED


VALID = {
    "product_name": "Bluetooth Speaker",
    "alibaba_url": "https://www.alibaba.com/product-detail/123.html",
    "quantity": 500,
    "destination_country": "Morocco",
    "destination_city": "Casablanca",
    "shipping_method": "Sea Freight",
    "service_type": "Sourcing & Shipping",
}


class TestCreateQuotation:

    def test_create(self, client, db_session, customer, customer_headers):
        resp = client.post("/api/quotations", json=VALID, headers=customer_headers)

        assert resp.status_code == 201
        assert resp.json["success"] is True
        row = resp.json["data"][0]
        assert re.match(r"^QT-\d{4}-\d{4}$", row["quotation_id"])
        assert row["status"] == "Pending"
        assert row["user_id"] == customer.id
        assert row["quantity"] == 500

    @pytest.mark.parametrize("field", list(VALID))
    def test_missing_field_named(self, client, db_session, customer_headers, field):
        payload = {k: v for k, v in VALID.items() if k != field}
        resp = client.post("/api/quotations", json=payload, headers=customer_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == f"Missing required field: {field}"

    def test_first_missing_field_in_order(self, client, db_session, customer_headers):
        resp = client.post(
            "/api/quotations",
            json={"product_name": "Speaker", "quantity": 10, "shipping_method": ""},
            headers=customer_headers,
        )
        assert resp.json["error"] == "Missing required field: alibaba_url"

    @pytest.mark.parametrize("quantity", [0, -5, "abc", 2.5])
    def test_bad_quantity(self, client, db_session, customer_headers, quantity):
        resp = client.post("/api/quotations", json=dict(VALID, quantity=quantity), headers=customer_headers)
        assert resp.status_code == 400
        assert "quantity" in resp.json["error"]

    def test_owner_is_caller(self, client, db_session, customer, other_customer, customer_headers):
        resp = client.post(
            "/api/quotations",
            json=dict(VALID, user_id=other_customer.id),
            headers=customer_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"][0]["user_id"] == customer.id

    def test_image_urls_mirrored(self, client, db_session, customer_headers):
        resp = client.post(
            "/api/quotations",
            json=dict(VALID, image_urls=["a.jpg", "b.jpg"]),
            headers=customer_headers,
        )
        row = resp.json["data"][0]
        assert row["product_images"] == ["a.jpg", "b.jpg"]
        assert row["image_url"] == "a.jpg"

    def test_duplicate_code_is_409(self, client, db_session, customer, customer_headers, make_quotation):
        existing = make_quotation(customer)
        resp = client.post(
            "/api/quotations",
            json=dict(VALID, quotation_id=existing.quotation_id),
            headers=customer_headers,
        )
        assert resp.status_code == 409

    def test_requires_auth(self, client, db_session):
        assert client.post("/api/quotations", json=VALID).status_code == 401


class TestImageUrls:

    def test_updates_both_columns(self, client, db_session, customer, customer_headers, make_quotation):
        quotation = make_quotation(customer)

        resp = client.patch(
            "/api/quotations",
            json={"id": quotation.id, "imageUrls": ["one.jpg", " ", "two.jpg"]},
            headers=customer_headers,
        )

        assert resp.status_code == 200
        stored = db_session.get(Quotation, quotation.id)
        assert stored.image_urls == ["one.jpg", "two.jpg"]
        assert stored.product_images == ["one.jpg", "two.jpg"]
        assert stored.image_url == "one.jpg"

    def test_not_a_list(self, client, db_session, customer, customer_headers, make_quotation):
        quotation = make_quotation(customer)
        resp = client.patch(
            "/api/quotations",
            json={"id": quotation.id, "imageUrls": "one.jpg"},
            headers=customer_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "imageUrls must be an array of strings"

    def test_array_body(self, client, db_session, customer_headers):
        resp = client.patch("/api/quotations", json=["one.jpg"], headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"

    def test_missing_id(self, client, db_session, customer_headers):
        resp = client.patch("/api/quotations", json={"imageUrls": []}, headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Missing required field: id"

    def test_unknown_quotation(self, client, db_session, customer_headers):
        resp = client.patch(
            "/api/quotations",
            json={"id": "QT-2026-9999", "imageUrls": ["a.jpg"]},
            headers=customer_headers,
        )
        assert resp.status_code == 404

    def test_upload_product_image(self, client, db_session, customer, customer_headers, make_quotation):
        quotation = make_quotation(customer)
        resp = client.post(
            f"/api/quotations/{quotation.quotation_id}/images",
            data={"file": (io.BytesIO(b"\x89PNGimage"), "speaker.png", "image/png")},
            headers=customer_headers,
            content_type="multipart/form-data",
        )

        assert resp.status_code == 201
        row = resp.json["data"][0]
        assert row["image_url"].startswith("/media/quotation-images/product-images/product_")
        assert row["image_urls"] == [row["image_url"]]
        assert client.get(row["image_url"]).status_code == 200


class TestReadQuotations:

    def test_detail_by_code(self, client, db_session, customer_headers, priced_quotation):
        resp = client.get(f"/api/quotations/{priced_quotation.quotation_id}", headers=customer_headers)

        assert resp.status_code == 200
        data = resp.json["quotation"]
        assert data["id"] == priced_quotation.id
        assert [o["id"] for o in data["price_options"]] == ["1", "2"]
        assert data["average_price"] == "$1,325.00"
        assert data["selected_price"] == "N/A"
        assert data["has_price_options"] is True

    def test_list_only_own(self, client, db_session, customer, other_customer, customer_headers, make_quotation):
        mine = make_quotation(customer)
        make_quotation(other_customer)

        resp = client.get("/api/quotations", headers=customer_headers)
        assert resp.status_code == 200
        assert [q["id"] for q in resp.json["quotations"]] == [mine.id]

    def test_admin_sees_all(self, client, db_session, customer, other_customer, admin_headers, make_quotation):
        make_quotation(customer)
        make_quotation(other_customer)

        resp = client.get("/api/quotations", headers=admin_headers)
        assert resp.json["count"] == 2

    def test_bad_status_filter(self, client, db_session, customer_headers):
        resp = client.get("/api/quotations?status=Lost", headers=customer_headers)
        assert resp.status_code == 400


class TestAdminOperations:

    def test_price_options_requires_admin(self, client, db_session, customer_headers, make_quotation, customer):
        quotation = make_quotation(customer)
        resp = client.put(
            f"/api/quotations/{quotation.id}/price-options",
            json={"title_option1": "Supplier A", "total_price_option1": 1250},
            headers=customer_headers,
        )
        assert resp.status_code == 403

    def test_admin_sets_price_options(self, client, db_session, admin_headers, make_quotation, customer):
        quotation = make_quotation(customer)
        resp = client.put(
            f"/api/quotations/{quotation.quotation_id}/price-options",
            json={"title_option1": "Supplier A", "total_price_option1": "$1,250.00", "delivery_time_option1": "15 days"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        option = resp.json["quotation"]["price_options"][0]
        assert option["supplier"] == "Supplier A"
        assert option["price"] == "$1,250"
        assert option["delivery_time"] == "15 days"

    def test_price_options_unknown_field(self, client, db_session, admin_headers, make_quotation, customer):
        quotation = make_quotation(customer)
        resp = client.put(
            f"/api/quotations/{quotation.id}/price-options",
            json={"title_option4": "Supplier D"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_stale_selection_cleared(self, client, db_session, admin_headers, make_quotation, customer):
        quotation = make_quotation(customer, selected_option=2, **PRICED)
        resp = client.put(
            f"/api/quotations/{quotation.id}/price-options",
            json={"title_option2": ""},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["quotation"]["selected_option"] is None

    def test_reject(self, client, db_session, admin_headers, priced_quotation):
        resp = client.patch(
            f"/api/quotations/{priced_quotation.id}/status",
            json={"status": "Rejected"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["quotation"]["status"] == "Rejected"

    def test_cannot_set_approved(self, client, db_session, admin_headers, priced_quotation):
        resp = client.patch(
            f"/api/quotations/{priced_quotation.id}/status",
            json={"status": "Approved"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
