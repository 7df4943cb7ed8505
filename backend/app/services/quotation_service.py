# Overview: Service-layer operations for quotations; creation, lookup, price entry and view models.

"""
Quotation Service

WHY: A quotation is the root of the whole workflow. Customers raise it,
admins attach up to three supplier price options, the customer picks one,
and checkout turns it into a payment.

DESIGN PRINCIPLES:
- Quotations are addressed by UUID internally and by a human code
  ("QT-2024-0042") in the UI; resolve_quotation accepts either
- Status moves Pending -> Approved only through payment creation
  (see payment_service.create_payment); admins may reject
- Rows are never deleted
"""

from __future__ import annotations

import secrets

from ..extensions import db
from ..models import Quotation, User
from ..models.quotations import (
    QUOTATION_STATUS_PENDING,
    QUOTATION_STATUS_REJECTED,
    VALID_QUOTATION_STATUSES,
    OPTION_SLOTS,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    NotFoundError,
    validate_payload,
    enforce_rules_quotation,
    enforce_rules_price_options,
    is_uuid,
)
from app.time_utils import utcnow, to_display_date
from . import pricing_service, media_service, storage_service
from .concurrency import lock_for_update, run_with_retry


class QuotationError(Exception):
    """Raised for quotation operation errors."""
    pass


# Order matters: the first missing one is reported
REQUIRED_FIELDS = (
    "product_name",
    "alibaba_url",
    "quantity",
    "destination_country",
    "destination_city",
    "shipping_method",
    "service_type",
)

QUOTATION_POLICY = ModelValidationPolicy(
    writable_fields={
        *REQUIRED_FIELDS,
        "quotation_id",
        "description",
        "status",
        "image_url",
        "image_urls",
        "product_images",
    },
    required_on_create=REQUIRED_FIELDS,
)

PRICE_OPTION_FIELDS = ("title", "total_price", "delivery_time", "description", "image")

PRICE_OPTIONS_POLICY = ModelValidationPolicy(
    writable_fields={f"{field}_option{slot}" for slot in OPTION_SLOTS for field in PRICE_OPTION_FIELDS},
)

CODE_ATTEMPTS = 5


# =============================================================================
# LOOKUP
# =============================================================================

def generate_quotation_code() -> str:
    """Human code QT-<year>-<4 digits>, retried until unused."""
    year = utcnow().year
    for _ in range(CODE_ATTEMPTS):
        code = f"QT-{year}-{secrets.randbelow(10000):04d}"
        if not db.session.query(Quotation.id).filter_by(quotation_id=code).first():
            return code
    raise QuotationError("Could not allocate a quotation code, please retry")


def resolve_quotation(identifier) -> Quotation | None:
    """Find a quotation by UUID or by its human code."""
    if not isinstance(identifier, str) or not identifier.strip():
        return None
    identifier = identifier.strip()
    if is_uuid(identifier):
        return db.session.get(Quotation, identifier.lower())
    return db.session.query(Quotation).filter_by(quotation_id=identifier).first()


def _can_access(quotation: Quotation, user: User | None) -> bool:
    if user is None:
        return False
    return user.is_admin or quotation.user_id == user.id


def get_quotation_for_user(identifier, user: User) -> Quotation:
    """
    Resolve a quotation the user may see.

    Other users' quotations are reported as not found.
    """
    quotation = resolve_quotation(identifier)
    if not quotation or not _can_access(quotation, user):
        raise NotFoundError("Quotation not found")
    return quotation


def list_quotations(user: User, status: str | None = None, limit: int | None = None) -> list[Quotation]:
    """Quotations visible to the user, newest first. Admins see all."""
    query = db.session.query(Quotation)
    if not user.is_admin:
        query = query.filter(Quotation.user_id == user.id)
    if status:
        if status not in VALID_QUOTATION_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Quotation.status == status)
    query = query.order_by(Quotation.created_at.desc(), Quotation.quotation_id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# CREATION / IMAGE PATCH
# =============================================================================

def create_quotation(payload: dict, user_id: int | None = None) -> Quotation:
    """
    Create a quotation request.

    Required fields are checked in REQUIRED_FIELDS order; absent, null and
    empty values all count as missing. quotation_id and status are generated
    when not supplied. Unknown keys (including user_id) are ignored; the
    owner is always the authenticated user.

    Raises:
        ValidationError: missing field, bad quantity, bad image list, bad status
        ConflictError: supplied quotation_id already in use
    """
    patch = validate_payload(
        model=Quotation,
        payload=payload,
        policy=QUOTATION_POLICY,
        partial=False,
        ignore_unknown=True,
    )
    enforce_rules_quotation(patch)

    status = patch.get("status") or QUOTATION_STATUS_PENDING
    if status not in VALID_QUOTATION_STATUSES:
        raise ValidationError(f"Invalid status: {status}")
    patch["status"] = status

    code = patch.get("quotation_id")
    if code:
        if db.session.query(Quotation.id).filter_by(quotation_id=code).first():
            raise ConflictError(f"Quotation {code} already exists")
    else:
        patch["quotation_id"] = generate_quotation_code()

    # image_urls is primary; product_images mirrors it for older readers
    if patch.get("image_urls") and not patch.get("product_images"):
        patch["product_images"] = list(patch["image_urls"])
    elif patch.get("product_images") and not patch.get("image_urls"):
        patch["image_urls"] = list(patch["product_images"])
    if not patch.get("image_url") and patch.get("image_urls"):
        patch["image_url"] = patch["image_urls"][0]

    quotation = Quotation(user_id=user_id, **patch)
    db.session.add(quotation)
    db.session.commit()
    return quotation


def update_image_urls(quotation_id, image_urls, user: User | None = None) -> Quotation:
    """
    Replace a quotation's image list.

    Writes image_urls and the legacy product_images copy; image_url is set
    to the first entry when it was empty.
    """
    if not isinstance(quotation_id, str) or not quotation_id.strip():
        raise ValidationError("Missing required field: id")
    if not isinstance(image_urls, list) or not all(isinstance(u, str) for u in image_urls):
        raise ValidationError("imageUrls must be an array of strings")

    urls = [u.strip() for u in image_urls if u.strip()]

    def _op():
        quotation = resolve_quotation(quotation_id)
        if not quotation or (user is not None and not _can_access(quotation, user)):
            raise NotFoundError("Quotation not found")

        quotation.image_urls = list(urls)
        quotation.product_images = list(urls)
        if not quotation.image_url and urls:
            quotation.image_url = urls[0]
        quotation.updated_at = utcnow()
        db.session.commit()
        return quotation

    return run_with_retry(_op)


def upload_product_image(identifier, user: User, file) -> Quotation:
    """
    Store a product image in quotation-images/product-images and append its
    URL to the quotation's image list.

    The stored object is removed again if the quotation update fails.
    """
    quotation = get_quotation_for_user(identifier, user)
    content_type, size = storage_service.validate_upload(file)

    key = storage_service.build_key(
        "product",
        file.filename,
        folder=storage_service.PRODUCT_IMAGES_PREFIX,
    )
    stored = storage_service.save(
        storage_service.BUCKET_QUOTATION_IMAGES,
        key,
        file,
        content_type=content_type,
        size=size,
    )

    try:
        urls = list(quotation.image_urls or [])
        urls.append(stored.url)
        quotation.image_urls = urls
        quotation.product_images = list(urls)
        if not quotation.image_url:
            quotation.image_url = stored.url
        quotation.updated_at = utcnow()
        db.session.commit()
    except Exception:
        db.session.rollback()
        storage_service.delete(stored.bucket, stored.key)
        raise

    return quotation


# =============================================================================
# ADMIN OPERATIONS
# =============================================================================

def set_price_options(identifier, payload: dict) -> Quotation:
    """
    Enter or change supplier price options (flattened keys such as
    title_option1, total_price_option1, ...).

    Refused once an active payment references the quotation. A stored
    selection pointing at a slot that is no longer present is cleared.
    """
    patch = validate_payload(
        model=Quotation,
        payload=payload,
        policy=PRICE_OPTIONS_POLICY,
        partial=True,
    )
    if not patch:
        raise ValidationError("No price option fields provided")
    enforce_rules_price_options(patch)

    from .payment_service import find_active_payments

    def _op():
        quotation = resolve_quotation(identifier)
        if not quotation:
            raise NotFoundError("Quotation not found")
        quotation = lock_for_update(db.session.query(Quotation).filter_by(id=quotation.id)).first()

        if quotation.status == QUOTATION_STATUS_REJECTED:
            raise QuotationError("Cannot change price options of a rejected quotation")
        if find_active_payments(quotation.id):
            raise ConflictError("Price options are locked: a payment already references this quotation")

        for key, value in patch.items():
            setattr(quotation, key, value)

        if quotation.selected_option:
            present = {o.slot for o in pricing_service.resolve_price_options(quotation)}
            if quotation.selected_option not in present:
                quotation.selected_option = None

        quotation.updated_at = utcnow()
        db.session.commit()
        return quotation

    return run_with_retry(_op)


def set_status(identifier, status: str) -> Quotation:
    """
    Admin status change: Pending or Rejected only.

    Approved is reached only through payment creation. A quotation with an
    active payment cannot be moved.
    """
    if status not in (QUOTATION_STATUS_PENDING, QUOTATION_STATUS_REJECTED):
        raise ValidationError("Status must be Pending or Rejected")

    from .payment_service import find_active_payments

    def _op():
        quotation = resolve_quotation(identifier)
        if not quotation:
            raise NotFoundError("Quotation not found")
        quotation = lock_for_update(db.session.query(Quotation).filter_by(id=quotation.id)).first()

        if quotation.status == status:
            return quotation
        if find_active_payments(quotation.id):
            raise ConflictError("Quotation has an active payment")

        quotation.status = status
        quotation.updated_at = utcnow()
        db.session.commit()
        return quotation

    return run_with_retry(_op)


# =============================================================================
# VIEW MODELS
# =============================================================================

def quotation_view(quotation: Quotation) -> dict:
    """Row plus resolved price options, prices and image for list/detail views."""
    options = pricing_service.resolve_price_options(quotation)
    image = media_service.resolve_quotation_image(quotation)

    data = quotation.to_dict()
    data.update({
        "price_options": [o.to_dict() for o in options],
        "has_price_options": bool(options),
        "selected_price": pricing_service.selected_price(quotation, options),
        "average_price": pricing_service.average_price(options),
        "display_price": pricing_service.display_price(quotation, options),
        "image": image.to_dict(),
        "created_date": to_display_date(quotation.created_at),
    })
    return data


def quotation_summary(quotation: Quotation | None) -> dict | None:
    """Compact quotation shape embedded in payment and shipment views."""
    if quotation is None:
        return None
    image = media_service.resolve_quotation_image(quotation)
    return {
        "id": quotation.id,
        "quotation_id": quotation.quotation_id,
        "product_name": quotation.product_name,
        "quantity": quotation.quantity,
        "status": quotation.status,
        "destination_country": quotation.destination_country,
        "destination_city": quotation.destination_city,
        "shipping_method": quotation.shipping_method,
        "selected_option": quotation.selected_option,
        "image_url": image.url,
        "has_image": image.has_image,
    }
