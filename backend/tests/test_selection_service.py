"""
Price-option selection tests.

Verifies:
- One user_selections row per (quotation, user), last write wins
- quotations.selected_option is written alongside
- Selection is refused for absent options, foreign quotations and paid quotations
"""

import pytest

from app.models import UserSelection, Quotation
from app.services import selection_service, payment_service
from app.services.selection_service import SelectionError
from app.validation import NotFoundError


class TestRecordSelection:

    def test_second_call_replaces_first(self, db_session, customer, priced_quotation):
        selection_service.record_selection(priced_quotation.id, customer, 1)
        selection_service.record_selection(priced_quotation.id, customer, 2)

        rows = db_session.query(UserSelection).filter_by(
            quotation_id=priced_quotation.id, user_id=customer.id
        ).all()
        assert len(rows) == 1
        assert rows[0].option_id == 2

    def test_updates_quotation_selected_option(self, db_session, customer, priced_quotation):
        selection_service.record_selection(priced_quotation.quotation_id, customer, "2")

        quotation = db_session.get(Quotation, priced_quotation.id)
        assert quotation.selected_option == 2

    def test_rows_are_per_user(self, db_session, customer, admin, priced_quotation):
        selection_service.record_selection(priced_quotation.id, customer, 1)
        selection_service.record_selection(priced_quotation.id, admin, 2)

        assert db_session.query(UserSelection).count() == 2

    @pytest.mark.parametrize("option_id", [3, 0, 4, "x", None, True, 1.5])
    def test_rejects_unavailable_option(self, db_session, customer, priced_quotation, option_id):
        with pytest.raises(SelectionError):
            selection_service.record_selection(priced_quotation.id, customer, option_id)
        assert db_session.query(UserSelection).count() == 0

    def test_other_users_quotation_not_found(self, db_session, other_customer, priced_quotation):
        with pytest.raises(NotFoundError):
            selection_service.record_selection(priced_quotation.id, other_customer, 1)

    def test_rejected_quotation(self, db_session, customer, make_quotation):
        from conftest import PRICED
        quotation = make_quotation(customer, status="Rejected", **PRICED)
        with pytest.raises(SelectionError):
            selection_service.record_selection(quotation.id, customer, 1)

    def test_locked_after_payment(self, db_session, customer, priced_quotation):
        payment_service.create_payment(
            customer.id,
            [{"quotation_id": priced_quotation.id, "option_id": 1}],
            "WISE",
        )
        with pytest.raises(SelectionError):
            selection_service.record_selection(priced_quotation.id, customer, 2)


class TestSelectionApi:

    def test_post_and_get(self, client, db_session, customer_headers, priced_quotation):
        path = f"/api/quotations/{priced_quotation.quotation_id}/selection"

        resp = client.post(path, json={"option_id": 2}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["selection"]["option_id"] == 2

        resp = client.get(path, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["selected_option"] == 2
        assert resp.json["selection"]["option_id"] == 2

    def test_array_body_is_400(self, client, db_session, customer_headers, priced_quotation):
        resp = client.post(
            f"/api/quotations/{priced_quotation.id}/selection",
            json=[2],
            headers=customer_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"

    def test_bad_option_is_400(self, client, db_session, customer_headers, priced_quotation):
        resp = client.post(
            f"/api/quotations/{priced_quotation.id}/selection",
            json={"option_id": 3},
            headers=customer_headers,
        )
        assert resp.status_code == 400
