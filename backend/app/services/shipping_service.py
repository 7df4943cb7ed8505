# Overview: Service-layer operations for shipments; receiver info, tracking updates and list views.

"""
Shipping Service

WHY: Once a quotation is paid, logistics create a shipment for it. The
customer supplies receiver contact details, which moves the shipment from
"waiting" to "processing"; logistics then push tracking updates.

DESIGN PRINCIPLES:
- Receiver details are stored twice: a shipping_receivers row (reusable,
  optionally the user's default) and denormalized receiver_* columns on the
  shipment. Both writes share one transaction
- Statuses are stored lower-case; input is normalized
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Shipment, ShippingReceiver, Quotation, User
from ..models.quotations import QUOTATION_STATUS_APPROVED
from ..validation import ValidationError, NotFoundError, is_uuid, is_blank
from app.time_utils import utcnow, parse_iso_datetime, to_display_date
from .concurrency import lock_for_update, run_with_retry
from .quotation_service import resolve_quotation, quotation_summary
from .media_service import resolve_image_url


class ShipmentError(Exception):
    """Raised for shipment operation errors."""
    pass


# =============================================================================
# SHIPMENT STATUS (CONSTANTS)
# =============================================================================

SHIPMENT_STATUS_WAITING = "waiting"
SHIPMENT_STATUS_PROCESSING = "processing"
SHIPMENT_STATUS_IN_TRANSIT = "in transit"
SHIPMENT_STATUS_DELIVERED = "delivered"
SHIPMENT_STATUS_DELAYED = "delayed"

VALID_SHIPMENT_STATUSES = [
    SHIPMENT_STATUS_WAITING,
    SHIPMENT_STATUS_PROCESSING,
    SHIPMENT_STATUS_IN_TRANSIT,
    SHIPMENT_STATUS_DELIVERED,
    SHIPMENT_STATUS_DELAYED,
]

STATUS_BADGES = {
    SHIPMENT_STATUS_DELIVERED: "success",
    SHIPMENT_STATUS_IN_TRANSIT: "primary",
    SHIPMENT_STATUS_PROCESSING: "warning",
    SHIPMENT_STATUS_WAITING: "warning",
    SHIPMENT_STATUS_DELAYED: "error",
}

RECEIVER_REQUIRED_FIELDS = ("name", "phone", "address")
RECEIVER_OPTIONAL_FIELDS = ("email", "city", "country")


def normalize_status(status) -> str:
    """Lower-case, separators unified: "In_Transit" -> "in transit"."""
    value = status.strip().lower().replace("_", " ").replace("-", " ") if isinstance(status, str) else ""
    value = " ".join(value.split())
    if value not in VALID_SHIPMENT_STATUSES:
        raise ValidationError(f"Invalid shipment status: {status}")
    return value


def status_badge(status) -> str:
    """UI badge category for a status; unknown values map to "info"."""
    try:
        return STATUS_BADGES[normalize_status(status)]
    except ValidationError:
        return "info"


# =============================================================================
# LOOKUP
# =============================================================================

def get_shipment_for_user(shipment_id, user: User) -> Shipment:
    if not is_uuid(shipment_id):
        raise ValidationError("Invalid shipment id")
    shipment = db.session.get(Shipment, shipment_id.strip().lower())
    if not shipment or not (user.is_admin or shipment.user_id == user.id):
        raise NotFoundError("Shipment not found")
    return shipment


def list_user_shipments(user_id: int, limit: int | None = None) -> list[Shipment]:
    query = (
        db.session.query(Shipment)
        .filter(Shipment.user_id == user_id)
        .order_by(Shipment.created_at.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def list_default_receivers(user_id: int) -> list[ShippingReceiver]:
    """Receivers saved for reuse, the current default first."""
    return (
        db.session.query(ShippingReceiver)
        .filter(ShippingReceiver.user_id == user_id)
        .order_by(ShippingReceiver.is_default.desc(), ShippingReceiver.created_at.desc())
        .all()
    )


# =============================================================================
# RECEIVER SUBMISSION
# =============================================================================

def _clean_receiver(payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [f for f in RECEIVER_REQUIRED_FIELDS if is_blank(payload.get(f))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cleaned = {}
    for field in RECEIVER_REQUIRED_FIELDS + RECEIVER_OPTIONAL_FIELDS:
        value = payload.get(field)
        if value is None:
            cleaned[field] = None
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string")
        cleaned[field] = value.strip() or None
    return cleaned


def submit_receiver_info(shipment_id, user: User, payload: dict, save_as_default: bool = False) -> Shipment:
    """
    Record who receives a shipment.

    Inserts a shipping_receivers row, optionally making it the user's
    default, copies the fields onto the shipment and moves it from waiting
    to processing. All in one transaction; any failure leaves both tables
    untouched.

    Raises:
        ValidationError: name, phone or address blank (before any write)
        NotFoundError: shipment unknown or not the user's
        ShipmentError: shipment no longer waiting for receiver info
    """
    fields = _clean_receiver(payload)
    shipment = get_shipment_for_user(shipment_id, user)
    if shipment.user_id != user.id:
        raise NotFoundError("Shipment not found")

    def _op():
        locked = lock_for_update(db.session.query(Shipment).filter_by(id=shipment.id)).first()
        if locked.status != SHIPMENT_STATUS_WAITING:
            raise ShipmentError(f"Receiver info can only be submitted while the shipment is waiting (current: {locked.status})")

        try:
            if save_as_default:
                db.session.query(ShippingReceiver).filter(
                    ShippingReceiver.user_id == user.id,
                    ShippingReceiver.is_default.is_(True),
                ).update({"is_default": False}, synchronize_session="fetch")

            receiver = ShippingReceiver(
                user_id=user.id,
                shipment_id=locked.id,
                is_default=bool(save_as_default),
                **fields,
            )
            db.session.add(receiver)

            locked.receiver_name = fields["name"]
            locked.receiver_phone = fields["phone"]
            locked.receiver_address = fields["address"]
            locked.receiver_email = fields["email"]
            locked.receiver_city = fields["city"]
            locked.receiver_country = fields["country"]
            locked.status = SHIPMENT_STATUS_PROCESSING
            locked.updated_at = utcnow()

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info("Receiver info submitted for shipment %s", locked.id)
        return locked

    return run_with_retry(_op)


# =============================================================================
# LOGISTICS (ADMIN)
# =============================================================================

def create_shipment(quotation_identifier, tracking_number: str | None = None,
                    estimated_delivery: str | None = None, location: str | None = None) -> Shipment:
    """Open a shipment for an approved quotation, owned by the quotation's customer."""
    quotation = resolve_quotation(quotation_identifier)
    if not quotation:
        raise NotFoundError("Quotation not found")
    if quotation.status != QUOTATION_STATUS_APPROVED:
        raise ShipmentError("Shipments can only be created for approved quotations")
    if quotation.user_id is None:
        raise ShipmentError("Quotation has no owner")

    try:
        eta = parse_iso_datetime(estimated_delivery) if estimated_delivery else None
    except ValueError:
        raise ValidationError("estimated_delivery must be an ISO-8601 datetime")

    shipment = Shipment(
        quotation_id=quotation.id,
        user_id=quotation.user_id,
        tracking_number=(tracking_number or "").strip() or None,
        status=SHIPMENT_STATUS_WAITING,
        location=(location or "").strip() or None,
        estimated_delivery=eta,
    )
    db.session.add(shipment)
    db.session.commit()
    return shipment


SHIPMENT_UPDATE_FIELDS = ("status", "location", "tracking_number", "estimated_delivery", "media_urls")


def update_shipment(shipment_id, payload: dict) -> Shipment:
    """Tracking update by logistics: status, location, tracking number, ETA, media."""
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("No shipment fields provided")
    unknown = [k for k in payload if k not in SHIPMENT_UPDATE_FIELDS]
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    changes = {}
    if "status" in payload:
        changes["status"] = normalize_status(payload["status"])
    for key in ("location", "tracking_number"):
        if key in payload:
            value = payload[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            changes[key] = (value or "").strip() or None
    if "estimated_delivery" in payload:
        try:
            changes["estimated_delivery"] = parse_iso_datetime(payload["estimated_delivery"])
        except (ValueError, AttributeError):
            raise ValidationError("estimated_delivery must be an ISO-8601 datetime")
    if "media_urls" in payload:
        urls = payload["media_urls"]
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise ValidationError("media_urls must be an array of strings")
        changes["media_urls"] = [u.strip() for u in urls if u.strip()]

    if not is_uuid(shipment_id):
        raise ValidationError("Invalid shipment id")

    def _op():
        shipment = lock_for_update(
            db.session.query(Shipment).filter_by(id=shipment_id.strip().lower())
        ).first()
        if not shipment:
            raise NotFoundError("Shipment not found")

        for key, value in changes.items():
            setattr(shipment, key, value)
        shipment.updated_at = utcnow()
        db.session.commit()
        return shipment

    return run_with_retry(_op)


# =============================================================================
# VIEW MODELS
# =============================================================================

def shipment_views(shipments: list[Shipment]) -> list[dict]:
    """
    Shipments joined to their quotations.

    Quotations are fetched in one query; a shipment whose quotation is
    missing gets quotation: null.
    """
    ids = {s.quotation_id for s in shipments if s.quotation_id}
    quotations = {}
    if ids:
        quotations = {
            q.id: q
            for q in db.session.query(Quotation).filter(Quotation.id.in_(ids)).all()
        }
    return [_shipment_view(s, quotations.get(s.quotation_id)) for s in shipments]


def shipment_view(shipment: Shipment) -> dict:
    return shipment_views([shipment])[0]


def _shipment_view(shipment: Shipment, quotation: Quotation | None) -> dict:
    data = shipment.to_dict()
    summary = quotation_summary(quotation)
    if summary:
        image_url, has_image = summary["image_url"], summary["has_image"]
    else:
        placeholder = resolve_image_url(None)
        image_url, has_image = placeholder.url, placeholder.has_image
    data.update({
        "status_badge": status_badge(shipment.status),
        "estimated_delivery_date": to_display_date(shipment.estimated_delivery),
        "quotation": summary,
        "product_name": summary["product_name"] if summary else None,
        "image_url": image_url,
        "has_image": has_image,
    })
    return data
