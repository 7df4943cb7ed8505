"""
Payment creation tests.

Verifies:
- Amount is parsed from the selected option's price
- Quotation moves to Approved in the same transaction as the payment insert
- A failed quotation update leaves a FAILED payment and an untouched quotation
- Duplicate payments are reported with the existing reference
"""

import re
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Payment, PaymentQuotation, Quotation
from app.services import payment_service
from app.services.payment_service import (
    PaymentError,
    DuplicatePaymentError,
    PaymentRollbackError,
)
from app.validation import NotFoundError, ValidationError
from conftest import PRICED


def _pay(user, quotation, option_id=1, method="WISE", **kwargs):
    return payment_service.create_payment(
        user.id,
        [{"quotation_id": quotation.id, "option_id": option_id}],
        method,
        **kwargs,
    )


class TestCreatePayment:

    def test_amount_and_approval(self, db_session, customer, priced_quotation):
        payment = _pay(customer, priced_quotation)

        assert payment.total_amount == Decimal("1250.00")
        assert payment.status == "PENDING"
        assert payment.method == "WISE"
        assert payment.quotation_ids == [priced_quotation.id]
        assert re.match(r"^PAY-\d{6}-[A-Z0-9]{6}$", payment.reference_number)

        quotation = db_session.get(Quotation, priced_quotation.id)
        assert quotation.status == "Approved"
        assert quotation.selected_option == 1

    def test_resolves_human_code(self, db_session, customer, priced_quotation):
        payment = payment_service.create_payment(
            customer.id,
            [{"quotation_id": priced_quotation.quotation_id, "option_id": 2}],
            "cih",
        )
        assert payment.quotation_ids == [priced_quotation.id]
        assert payment.total_amount == Decimal("1400.00")
        assert payment.method == "CIH"

    def test_uses_stored_selection(self, db_session, customer, make_quotation):
        quotation = make_quotation(customer, selected_option=2, **PRICED)
        payment = _pay(customer, quotation, option_id=None)
        assert payment.total_amount == Decimal("1400.00")

    def test_multiple_quotations(self, db_session, customer, make_quotation):
        first = make_quotation(customer, **PRICED)
        second = make_quotation(customer, **PRICED)

        payment = payment_service.create_payment(
            customer.id,
            [
                {"quotation_id": first.id, "option_id": 1},
                {"quotation_id": second.id, "option_id": 2},
            ],
            "SOCIETE_GENERALE",
        )

        assert payment.total_amount == Decimal("2650.00")
        assert payment.quotation_ids == [first.id, second.id]
        assert db_session.query(PaymentQuotation).count() == 2
        assert {q.status for q in db_session.query(Quotation).all()} == {"Approved"}


class TestPreconditions:

    def test_unknown_method(self, db_session, customer, priced_quotation):
        with pytest.raises(PaymentError) as exc_info:
            _pay(customer, priced_quotation, method="PAYPAL")
        assert exc_info.value.retry_safe is True
        assert db_session.query(Payment).count() == 0

    def test_no_items(self, db_session, customer):
        with pytest.raises(PaymentError):
            payment_service.create_payment(customer.id, [], "WISE")

    def test_unknown_quotation(self, db_session, customer):
        with pytest.raises(NotFoundError):
            payment_service.create_payment(customer.id, [{"quotation_id": "QT-2026-9999"}], "WISE")

    def test_foreign_quotation(self, db_session, other_customer, priced_quotation):
        with pytest.raises(NotFoundError):
            _pay(other_customer, priced_quotation)

    def test_no_price_options(self, db_session, customer, make_quotation):
        quotation = make_quotation(customer)
        with pytest.raises(PaymentError):
            _pay(customer, quotation)
        assert db_session.query(Payment).count() == 0

    def test_no_option_chosen(self, db_session, customer, priced_quotation):
        with pytest.raises(PaymentError):
            _pay(customer, priced_quotation, option_id=None)

    def test_unpriced_option(self, db_session, customer, make_quotation):
        quotation = make_quotation(customer, title_option1="Supplier A", total_price_option1=None)
        with pytest.raises(PaymentError):
            _pay(customer, quotation)
        assert db_session.query(Payment).count() == 0

    def test_rejected_quotation(self, db_session, customer, make_quotation):
        quotation = make_quotation(customer, status="Rejected", **PRICED)
        with pytest.raises(PaymentError):
            _pay(customer, quotation)


def _approve_then_fail(lines):
    for quotation, slot, _ in lines:
        quotation.selected_option = slot
        quotation.status = "Approved"
    raise SQLAlchemyError("update failed")


class TestRollback:

    def test_failed_status_update_marks_payment_failed(self, db_session, customer, priced_quotation):
        with patch(
            "app.services.payment_service._mark_quotations_approved",
            side_effect=_approve_then_fail,
        ):
            with pytest.raises(PaymentRollbackError) as exc_info:
                _pay(customer, priced_quotation)

        assert exc_info.value.retry_safe is False

        payments = db_session.query(Payment).all()
        assert len(payments) == 1
        assert payments[0].status == "FAILED"
        assert payments[0].reference_number == exc_info.value.reference_number

        quotation = db_session.get(Quotation, priced_quotation.id)
        assert quotation.status == "Pending"
        assert quotation.selected_option is None

    def test_failed_marker_commit_discards_everything(self, db_session, customer, priced_quotation):
        with patch(
            "app.services.payment_service._mark_quotations_approved",
            side_effect=SQLAlchemyError("update failed"),
        ), patch.object(Session, "commit", side_effect=SQLAlchemyError("commit failed")):
            with pytest.raises(PaymentError) as exc_info:
                _pay(customer, priced_quotation)

        assert not isinstance(exc_info.value, PaymentRollbackError)
        assert exc_info.value.retry_safe is True
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Quotation, priced_quotation.id).status == "Pending"

    def test_failed_payment_does_not_block_retry(self, db_session, customer, priced_quotation):
        with patch(
            "app.services.payment_service._mark_quotations_approved",
            side_effect=SQLAlchemyError("update failed"),
        ):
            with pytest.raises(PaymentRollbackError):
                _pay(customer, priced_quotation)

        payment = _pay(customer, priced_quotation)
        assert payment.status == "PENDING"


class TestDuplicates:

    def test_duplicate_surfaces_existing_reference(self, db_session, customer, priced_quotation):
        first = _pay(customer, priced_quotation)

        with pytest.raises(DuplicatePaymentError) as exc_info:
            _pay(customer, priced_quotation)

        assert exc_info.value.reference_number == first.reference_number
        assert exc_info.value.created_at is not None
        assert first.reference_number in str(exc_info.value)
        assert db_session.query(Payment).count() == 1

    def test_confirmed_duplicate_proceeds(self, db_session, customer, priced_quotation):
        _pay(customer, priced_quotation)
        second = _pay(customer, priced_quotation, confirm_duplicate=True)

        assert second.status == "PENDING"
        assert db_session.query(Payment).count() == 2

    def test_rejected_payment_is_not_active(self, db_session, customer, priced_quotation):
        first = _pay(customer, priced_quotation)
        first.status = "REJECTED"
        db_session.commit()

        assert payment_service.find_active_payments(priced_quotation.id) == []
        assert _pay(customer, priced_quotation).status == "PENDING"


class TestReviewAndStatus:

    def test_review_processing_payment(self, db_session, customer, priced_quotation):
        payment = _pay(customer, priced_quotation)
        payment.status = "PROCESSING"
        db_session.commit()

        reviewed = payment_service.review_payment(payment.reference_number, "completed")
        assert reviewed.status == "COMPLETED"

    def test_review_requires_processing(self, db_session, customer, priced_quotation):
        payment = _pay(customer, priced_quotation)
        with pytest.raises(PaymentError):
            payment_service.review_payment(payment.reference_number, "COMPLETED")

    @pytest.mark.parametrize("raw,expected", [("pending", "PENDING"), ("Processing", "PROCESSING"), (" failed ", "FAILED")])
    def test_normalize_status(self, raw, expected):
        assert payment_service.normalize_status(raw) == expected

    def test_normalize_status_rejects_unknown(self):
        with pytest.raises(ValidationError):
            payment_service.normalize_status("paid")

    def test_payment_view(self, db_session, customer, priced_quotation):
        payment = _pay(customer, priced_quotation)
        view = payment_service.payment_view(payment)

        assert view["amount_display"] == "$1,250.00"
        assert view["status_label"] == "Pending"
        assert view["bank_name"] == "WISE BUSINESS"
        assert view["quotations"][0]["quotation_id"] == priced_quotation.quotation_id
        assert view["quotations"][0]["amount"] == 1250.0


class TestPaymentsApi:

    def test_create(self, client, db_session, customer_headers, priced_quotation):
        resp = client.post(
            "/api/payments",
            json={"method": "WISE", "quotation_id": priced_quotation.quotation_id, "option_id": 1},
            headers=customer_headers,
        )
        assert resp.status_code == 201
        assert resp.json["payment"]["total_amount"] == 1250.0
        assert resp.json["payment"]["status"] == "PENDING"

    def test_duplicate_is_409(self, client, db_session, customer, customer_headers, priced_quotation):
        first = _pay(customer, priced_quotation)

        resp = client.post(
            "/api/payments",
            json={"method": "WISE", "items": [{"quotation_id": priced_quotation.id, "option_id": 1}]},
            headers=customer_headers,
        )
        assert resp.status_code == 409
        assert resp.json["existing_reference"] == first.reference_number
        assert resp.json["retry_safe"] is True

    def test_rollback_reports_not_retry_safe(self, client, db_session, customer_headers, priced_quotation):
        with patch(
            "app.services.payment_service._mark_quotations_approved",
            side_effect=SQLAlchemyError("update failed"),
        ):
            resp = client.post(
                "/api/payments",
                json={"method": "WISE", "quotation_id": priced_quotation.id, "option_id": 1},
                headers=customer_headers,
            )
        assert resp.status_code == 500
        assert resp.json["retry_safe"] is False
        assert resp.json["reference_number"].startswith("PAY-")

    def test_validation_error_is_retry_safe(self, client, db_session, customer_headers, priced_quotation):
        resp = client.post(
            "/api/payments",
            json={"method": "BITCOIN", "quotation_id": priced_quotation.id, "option_id": 1},
            headers=customer_headers,
        )
        assert resp.status_code == 400
        assert resp.json["retry_safe"] is True

    def test_array_body_is_400(self, client, db_session, customer_headers, priced_quotation):
        resp = client.post("/api/payments", json=[priced_quotation.id], headers=customer_headers)

        assert resp.status_code == 400
        assert resp.json == {"error": "Invalid JSON payload", "retry_safe": True}
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Quotation, priced_quotation.id).status == "Pending"

    def test_history_and_active(self, client, db_session, customer, customer_headers, priced_quotation):
        payment = _pay(customer, priced_quotation)

        resp = client.get("/api/payments", headers=customer_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["payments"]] == [payment.id]

        resp = client.get(
            f"/api/payments/active?quotation_id={priced_quotation.quotation_id}",
            headers=customer_headers,
        )
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_banks(self, client, db_session, customer_headers):
        resp = client.get("/api/payments/banks", headers=customer_headers)
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json["banks"]] == ["WISE", "SOCIETE_GENERALE", "CIH"]

    def test_non_uuid_payment_id(self, client, db_session, customer_headers):
        resp = client.get("/api/payments/not-a-uuid", headers=customer_headers)
        assert resp.status_code == 400
