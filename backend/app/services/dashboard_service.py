# Overview: Service-layer read model for the customer dashboard home.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Quotation, Shipment, Payment, User
from ..models.quotations import QUOTATION_STATUS_PENDING
from . import pricing_service
from .payment_service import PAYMENT_STATUS_COMPLETED
from .quotation_service import quotation_view
from .shipping_service import SHIPMENT_STATUS_DELIVERED

RECENT_QUOTATIONS = 3


def get_metrics(user: User) -> dict:
    """
    Headline numbers for one customer.

    total_spend counts COMPLETED payments only; active shipments are the
    ones not yet delivered.
    """
    pending = (
        db.session.query(func.count(Quotation.id))
        .filter(Quotation.user_id == user.id, Quotation.status == QUOTATION_STATUS_PENDING)
        .scalar()
    )

    delivered = (
        db.session.query(func.count(Shipment.id))
        .filter(Shipment.user_id == user.id, Shipment.status == SHIPMENT_STATUS_DELIVERED)
        .scalar()
    )
    active = (
        db.session.query(func.count(Shipment.id))
        .filter(Shipment.user_id == user.id, Shipment.status != SHIPMENT_STATUS_DELIVERED)
        .scalar()
    )

    spend = (
        db.session.query(func.coalesce(func.sum(Payment.total_amount), 0))
        .filter(Payment.user_id == user.id, Payment.status == PAYMENT_STATUS_COMPLETED)
        .scalar()
    )
    spend = Decimal(str(spend or 0))

    recent = (
        db.session.query(Quotation)
        .filter(Quotation.user_id == user.id)
        .order_by(Quotation.created_at.desc(), Quotation.quotation_id.desc())
        .limit(RECENT_QUOTATIONS)
        .all()
    )

    return {
        "pending_quotations": pending or 0,
        "active_shipments": active or 0,
        "delivered_shipments": delivered or 0,
        "total_spend": float(spend),
        "total_spend_display": pricing_service.format_amount(spend),
        "recent_quotations": [quotation_view(q) for q in recent],
    }
