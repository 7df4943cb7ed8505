from __future__ import annotations

import uuid

from ..extensions import db
from app.time_utils import to_utc_z


def _uuid() -> str:
    return str(uuid.uuid4())


class Payment(db.Model):
    """
    Bank-transfer payment covering one or more quotations.

    Lifecycle: PENDING (awaiting proof) -> PROCESSING (proof uploaded)
    -> COMPLETED | REJECTED (admin review). FAILED marks an aborted checkout.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("reference_number", name="uq_payments_reference_number"),
        db.Index("ix_payments_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(32), nullable=False)  # WISE, SOCIETE_GENERALE, CIH
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    # Human-readable reference, e.g. "PAY-123456-AB12CD"
    reference_number = db.Column(db.String(64), nullable=False)

    proof_url = db.Column(db.Text, nullable=True)
    proof_path = db.Column(db.String(512), nullable=True)  # bucket-relative storage key
    failure_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("payments", lazy=True))
    links = db.relationship(
        "PaymentQuotation",
        backref="payment",
        lazy=True,
        order_by="PaymentQuotation.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def quotation_ids(self) -> list[str]:
        return [link.quotation_id for link in self.links]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total_amount": float(self.total_amount) if self.total_amount is not None else None,
            "method": self.method,
            "status": self.status,
            "reference_number": self.reference_number,
            "proof_url": self.proof_url,
            "failure_reason": self.failure_reason,
            "quotation_ids": self.quotation_ids,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class PaymentQuotation(db.Model):
    """Quotation covered by a payment, with the option and amount charged for it."""
    __tablename__ = "payment_quotations"
    __table_args__ = (
        db.UniqueConstraint("payment_id", "quotation_id", name="uq_payment_quotations_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.String(36), db.ForeignKey("payments.id"), nullable=False, index=True)
    quotation_id = db.Column(db.String(36), db.ForeignKey("quotations.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    selected_option = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    quotation = db.relationship("Quotation")

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "quotation_id": self.quotation_id,
            "selected_option": self.selected_option,
            "amount": float(self.amount),
        }
