from __future__ import annotations

import uuid

from ..extensions import db
from app.time_utils import to_utc_z


def _uuid() -> str:
    return str(uuid.uuid4())


class Shipment(db.Model):
    """
    Physical shipment for a paid quotation.

    Receiver contact fields are copied here (denormalized) when the customer
    submits them; the normalized copy lives in shipping_receivers.
    """
    __tablename__ = "shipping"
    __table_args__ = (
        db.Index("ix_shipping_user_status", "user_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    quotation_id = db.Column(db.String(36), db.ForeignKey("quotations.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    tracking_number = db.Column(db.String(64), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="waiting", index=True)
    location = db.Column(db.String(255), nullable=True)
    media_urls = db.Column(db.JSON, nullable=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    receiver_name = db.Column(db.String(255), nullable=True)
    receiver_phone = db.Column(db.String(64), nullable=True)
    receiver_address = db.Column(db.Text, nullable=True)
    receiver_email = db.Column(db.String(255), nullable=True)
    receiver_city = db.Column(db.String(128), nullable=True)
    receiver_country = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    quotation = db.relationship("Quotation", backref=db.backref("shipments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quotation_id": self.quotation_id,
            "user_id": self.user_id,
            "tracking_number": self.tracking_number,
            "status": self.status,
            "location": self.location,
            "media_urls": list(self.media_urls or []),
            "estimated_delivery": to_utc_z(self.estimated_delivery) if self.estimated_delivery else None,
            "receiver_name": self.receiver_name,
            "receiver_phone": self.receiver_phone,
            "receiver_address": self.receiver_address,
            "receiver_email": self.receiver_email,
            "receiver_city": self.receiver_city,
            "receiver_country": self.receiver_country,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class ShippingReceiver(db.Model):
    """Receiver contact card; a user may mark one as the default for reuse."""
    __tablename__ = "shipping_receivers"
    __table_args__ = (
        db.Index("ix_shipping_receivers_user_default", "user_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shipment_id = db.Column(db.String(36), db.ForeignKey("shipping.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=False)
    address = db.Column(db.Text, nullable=False)
    email = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    country = db.Column(db.String(128), nullable=True)

    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shipment = db.relationship("Shipment", backref=db.backref("receivers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "shipment_id": self.shipment_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "city": self.city,
            "country": self.country,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }
