from __future__ import annotations

import uuid

from ..extensions import db
from app.time_utils import to_utc_z

QUOTATION_STATUS_PENDING = "Pending"
QUOTATION_STATUS_APPROVED = "Approved"
QUOTATION_STATUS_REJECTED = "Rejected"

VALID_QUOTATION_STATUSES = (
    QUOTATION_STATUS_PENDING,
    QUOTATION_STATUS_APPROVED,
    QUOTATION_STATUS_REJECTED,
)

OPTION_SLOTS = (1, 2, 3)


def _uuid() -> str:
    return str(uuid.uuid4())


class Quotation(db.Model):
    """
    Sourcing/shipping request raised by a customer.

    Supplier price options live in three flattened column groups
    (``title_optionN``, ``total_price_optionN``, ...) rather than a child
    table; ``selected_option`` is a 1-based index into those slots.

    Rows are never deleted; a quotation is closed by status only.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("quotation_id", name="uq_quotations_quotation_id"),
        db.Index("ix_quotations_user_status_created", "user_id", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)

    # Human-facing code, e.g. "QT-2024-0042"
    quotation_id = db.Column(db.String(32), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Request details
    product_name = db.Column(db.String(255), nullable=False)
    alibaba_url = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    destination_country = db.Column(db.String(128), nullable=False)
    destination_city = db.Column(db.String(128), nullable=False)
    shipping_method = db.Column(db.String(64), nullable=False)
    service_type = db.Column(db.String(64), nullable=False)

    # Images: image_urls is primary, product_images is the legacy mirror
    image_url = db.Column(db.Text, nullable=True)
    image_urls = db.Column(db.JSON, nullable=True)
    product_images = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=QUOTATION_STATUS_PENDING, index=True)

    # Price option slot 1
    title_option1 = db.Column(db.String(255), nullable=True)
    total_price_option1 = db.Column(db.Numeric(12, 2), nullable=True)
    delivery_time_option1 = db.Column(db.String(64), nullable=True)
    description_option1 = db.Column(db.Text, nullable=True)
    image_option1 = db.Column(db.Text, nullable=True)

    # Price option slot 2
    title_option2 = db.Column(db.String(255), nullable=True)
    total_price_option2 = db.Column(db.Numeric(12, 2), nullable=True)
    delivery_time_option2 = db.Column(db.String(64), nullable=True)
    description_option2 = db.Column(db.Text, nullable=True)
    image_option2 = db.Column(db.Text, nullable=True)

    # Price option slot 3
    title_option3 = db.Column(db.String(255), nullable=True)
    total_price_option3 = db.Column(db.Numeric(12, 2), nullable=True)
    delivery_time_option3 = db.Column(db.String(64), nullable=True)
    description_option3 = db.Column(db.Text, nullable=True)
    image_option3 = db.Column(db.Text, nullable=True)

    selected_option = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("quotations", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def option_field(self, slot: int, field: str):
        """Read one flattened option column, e.g. option_field(2, "title")."""
        if slot not in OPTION_SLOTS:
            raise ValueError(f"Invalid option slot: {slot}")
        return getattr(self, f"{field}_option{slot}")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "quotation_id": self.quotation_id,
            "user_id": self.user_id,
            "product_name": self.product_name,
            "alibaba_url": self.alibaba_url,
            "quantity": self.quantity,
            "description": self.description,
            "destination_country": self.destination_country,
            "destination_city": self.destination_city,
            "shipping_method": self.shipping_method,
            "service_type": self.service_type,
            "image_url": self.image_url,
            "image_urls": list(self.image_urls or []),
            "product_images": list(self.product_images or []),
            "status": self.status,
            "selected_option": self.selected_option,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        for slot in OPTION_SLOTS:
            price = self.option_field(slot, "total_price")
            data[f"title_option{slot}"] = self.option_field(slot, "title")
            data[f"total_price_option{slot}"] = float(price) if price is not None else None
            data[f"delivery_time_option{slot}"] = self.option_field(slot, "delivery_time")
            data[f"description_option{slot}"] = self.option_field(slot, "description")
            data[f"image_option{slot}"] = self.option_field(slot, "image")
        return data


class UserSelection(db.Model):
    """
    A customer's chosen price option for a quotation.

    One row per (quotation, user), enforced by the unique constraint; writes
    go through an INSERT ... ON CONFLICT upsert, never check-then-insert.
    """
    __tablename__ = "user_selections"
    __table_args__ = (
        db.UniqueConstraint("quotation_id", "user_id", name="uq_user_selections_quotation_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.String(36), db.ForeignKey("quotations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    option_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    quotation = db.relationship("Quotation", backref=db.backref("user_selections", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quotation_id": self.quotation_id,
            "user_id": self.user_id,
            "option_id": self.option_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
