"""
Admin CLI tests.
"""

from app.models import Payment, Quotation, User
from app.services import payment_service


class TestCli:

    def test_create_admin_user(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--email", "ops2@example.com",
            "--password", "Password123",
            "--role", "admin",
        ])

        assert "PASS Created user: ops2@example.com" in result.output
        assert db_session.query(User).filter_by(email="ops2@example.com").one().is_admin

    def test_set_options(self, app, db_session, customer, make_quotation):
        quotation = make_quotation(customer)
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "quotations", "set-options", quotation.quotation_id,
            "--slot", "2", "--title", "Supplier B", "--price", "$1,400.00", "--delivery", "10 days",
        ])

        assert "PASS" in result.output
        assert "$1,400" in result.output
        stored = db_session.get(Quotation, quotation.id)
        assert stored.title_option2 == "Supplier B"

    def test_review_payment(self, app, db_session, customer, priced_quotation):
        payment = payment_service.create_payment(
            customer.id,
            [{"quotation_id": priced_quotation.id, "option_id": 1}],
            "WISE",
        )
        payment.status = "PROCESSING"
        db_session.commit()

        runner = app.test_cli_runner()
        result = runner.invoke(args=["payments", "review", payment.reference_number, "--status", "completed"])

        assert f"PASS Payment {payment.reference_number} is now COMPLETED" in result.output
        assert db_session.get(Payment, payment.id).status == "COMPLETED"

    def test_review_pending_payment_fails(self, app, db_session, customer, priced_quotation):
        payment = payment_service.create_payment(
            customer.id,
            [{"quotation_id": priced_quotation.id, "option_id": 1}],
            "WISE",
        )
        runner = app.test_cli_runner()
        result = runner.invoke(args=["payments", "review", payment.reference_number, "--status", "REJECTED"])

        assert result.output.startswith("FAIL")
        assert db_session.get(Payment, payment.id).status == "PENDING"

    def test_set_role(self, app, db_session, customer):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "set-role", "BUYER@example.com", "--role", "admin"])

        assert "PASS buyer@example.com is now 'admin'" in result.output
        assert db_session.get(User, customer.id).is_admin

    def test_set_role_unknown_user(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "set-role", "nobody@example.com", "--role", "admin"])

        assert result.output.startswith("FAIL User not found")

    def test_deactivate_revokes_sessions(self, app, client, db_session, customer, customer_headers):
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 200

        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "deactivate", customer.email])

        assert "PASS Deactivated buyer@example.com (1 sessions revoked)" in result.output
        assert db_session.get(User, customer.id).is_active is False
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401
