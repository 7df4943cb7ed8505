# Overview: Service-layer operations for payment; checkout, proof upload and review.

"""
Payment Processing Service

WHY: Checkout turns one or more priced quotations into a bank-transfer
payment the customer then settles offline and proves with an uploaded
receipt.

LIFECYCLE:
    PENDING    payment created, quotation(s) Approved, awaiting proof
    PROCESSING proof uploaded, awaiting admin review
    COMPLETED  admin confirmed (terminal)
    REJECTED   admin refused the proof (terminal)
    FAILED     checkout aborted, quotation(s) untouched (terminal)

DESIGN PRINCIPLES:
- The payment insert and the quotation status updates share one database
  transaction; the status updates run in a SAVEPOINT
- If the status updates fail the savepoint is rolled back, the payment is
  committed as FAILED and PaymentRollbackError (retry_safe=False) is raised
- A PENDING payment is never committed for a quotation that is not Approved
- Errors carry retry_safe: True means nothing was committed
"""

from __future__ import annotations

import secrets
import string
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Payment, PaymentQuotation, Quotation, User
from ..models.quotations import QUOTATION_STATUS_APPROVED, QUOTATION_STATUS_REJECTED
from ..validation import ValidationError, NotFoundError, is_uuid
from app.time_utils import utcnow, epoch_millis, to_display_date
from . import pricing_service, storage_service
from .concurrency import lock_for_update, run_with_retry, run_in_savepoint
from .quotation_service import resolve_quotation, quotation_summary


class PaymentError(Exception):
    """
    Raised for payment operation errors.

    retry_safe is True when nothing was committed, so the same request can be
    sent again.
    """

    def __init__(self, message: str, *, retry_safe: bool = True):
        super().__init__(message)
        self.retry_safe = retry_safe


class DuplicatePaymentError(PaymentError):
    """An active payment already covers the quotation; resend with confirm_duplicate."""

    def __init__(self, existing: Payment, quotation: Quotation):
        self.reference_number = existing.reference_number
        self.created_at = existing.created_at
        self.quotation_id = quotation.quotation_id
        super().__init__(
            f"A payment already exists for quotation {quotation.quotation_id} "
            f"(reference {existing.reference_number}, created {to_display_date(existing.created_at)})"
        )


class PaymentRollbackError(PaymentError):
    """Quotation update failed after the payment insert; the payment was committed as FAILED."""

    def __init__(self, payment: Payment):
        self.payment_id = payment.id
        self.reference_number = payment.reference_number
        super().__init__(
            f"Payment {payment.reference_number} could not be completed and was marked FAILED",
            retry_safe=False,
        )


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PROCESSING = "PROCESSING"
PAYMENT_STATUS_COMPLETED = "COMPLETED"
PAYMENT_STATUS_FAILED = "FAILED"
PAYMENT_STATUS_REJECTED = "REJECTED"

VALID_PAYMENT_STATUSES = [
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PROCESSING,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_REJECTED,
]

INACTIVE_PAYMENT_STATUSES = (PAYMENT_STATUS_FAILED, PAYMENT_STATUS_REJECTED)

PROOF_UPLOAD_STATUSES = (PAYMENT_STATUS_PENDING, PAYMENT_STATUS_PROCESSING)


# =============================================================================
# BANKS (CONSTANTS)
# =============================================================================

BANKS = {
    "WISE": {
        "name": "WISE BUSINESS",
        "account_name": "WISE BUSINESS",
        "iban": "BE12 3456 7890 1234",
        "swift": "TRWIBEB1XXX",
        "bank_address": "Avenue Louise 54, Room S52, Brussels 1050, Belgium",
        "account_details": "Account number: 1234567890",
        "rib": None,
        "currency": "EUR",
    },
    "SOCIETE_GENERALE": {
        "name": "SOCIETE GENERALE MAROC",
        "account_name": "SOCIETE GENERALE MAROC",
        "iban": "FR76 3000 6000 0123 4567 8900 189",
        "swift": "SOGEFRPP",
        "bank_address": "29 Boulevard Haussmann, 75009 Paris, France",
        "account_details": "Account number: 00020012345",
        "rib": "123456789012345678901234",
        "currency": "EUR",
    },
    "CIH": {
        "name": "CIH BANK",
        "account_name": "CIH BANK",
        "iban": "MA64 011 519 0000001210001234 56",
        "swift": "CIHWMAMC",
        "bank_address": "187, Avenue Hassan II, Casablanca, Morocco",
        "account_details": "Account number: 007 640 0001210001234567",
        "rib": "007640000121000123456789",
        "currency": "MAD",
    },
}

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_ATTEMPTS = 3


def list_banks() -> list[dict]:
    return [{"id": bank_id, **details} for bank_id, details in BANKS.items()]


def normalize_method(method) -> str:
    value = (method or "").strip().upper() if isinstance(method, str) else ""
    if value not in BANKS:
        raise PaymentError(f"Invalid payment method: {method}. Must be one of {list(BANKS)}")
    return value


def normalize_status(status) -> str:
    """Canonical upper-case status for any casing ("processing" -> "PROCESSING")."""
    value = status.strip().upper() if isinstance(status, str) else ""
    if value not in VALID_PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {status}")
    return value


def payment_status_label(status) -> str:
    """Display label, e.g. "Processing"; unknown values pass through."""
    try:
        return normalize_status(status).capitalize()
    except ValidationError:
        return status or "Unknown"


def generate_reference_number() -> str:
    """PAY-<last 6 digits of epoch ms>-<6 random upper alphanumerics>."""
    for _ in range(REFERENCE_ATTEMPTS):
        suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
        reference = f"PAY-{str(epoch_millis())[-6:]}-{suffix}"
        if not db.session.query(Payment.id).filter_by(reference_number=reference).first():
            return reference
    raise PaymentError("Could not allocate a payment reference, please retry")


# =============================================================================
# LOOKUP
# =============================================================================

def find_active_payments(quotation_uuid: str) -> list[Payment]:
    """Payments referencing the quotation that are not FAILED/REJECTED, newest first."""
    return (
        db.session.query(Payment)
        .join(PaymentQuotation, PaymentQuotation.payment_id == Payment.id)
        .filter(
            PaymentQuotation.quotation_id == quotation_uuid,
            Payment.status.notin_(INACTIVE_PAYMENT_STATUSES),
        )
        .order_by(Payment.created_at.desc())
        .all()
    )


def get_payment_for_user(payment_id, user: User) -> Payment:
    if not is_uuid(payment_id):
        raise ValidationError("Invalid payment id")
    payment = db.session.get(Payment, payment_id.strip().lower())
    if not payment or not (user.is_admin or payment.user_id == user.id):
        raise NotFoundError("Payment not found")
    return payment


def list_user_payments(user_id: int, status: str | None = None) -> list[Payment]:
    query = db.session.query(Payment).filter(Payment.user_id == user_id)
    if status:
        query = query.filter(Payment.status == normalize_status(status))
    return query.order_by(Payment.created_at.desc()).all()


def list_payments(status: str | None = None, limit: int | None = None) -> list[Payment]:
    query = db.session.query(Payment)
    if status:
        query = query.filter(Payment.status == normalize_status(status))
    query = query.order_by(Payment.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _unpack_item(item) -> tuple[str, object]:
    if isinstance(item, dict):
        return item.get("quotation_id"), item.get("option_id")
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return item[0], item[1]
    if isinstance(item, str):
        return item, None
    raise PaymentError("Each item must name a quotation_id")


def _price_line(quotation: Quotation, option_id) -> tuple[int, Decimal]:
    """Chosen slot and its parsed amount; nothing is written here."""
    options = pricing_service.resolve_price_options(quotation)
    if not options:
        raise PaymentError(f"Quotation {quotation.quotation_id} has no price options yet")

    slot = option_id if option_id not in (None, "") else quotation.selected_option
    if slot in (None, ""):
        raise PaymentError(f"Select a price option for quotation {quotation.quotation_id}")

    chosen = pricing_service.find_option(options, slot)
    if chosen is None:
        raise PaymentError(f"Price option {slot} is not available for quotation {quotation.quotation_id}")

    try:
        amount = pricing_service.parse_price(chosen.price)
    except pricing_service.PriceParseError:
        raise PaymentError(f"Invalid price for option {chosen.id} of quotation {quotation.quotation_id}")
    if amount <= 0:
        raise PaymentError(f"Invalid price for option {chosen.id} of quotation {quotation.quotation_id}")

    return chosen.slot, amount


def _mark_quotations_approved(lines: list[tuple[Quotation, int, Decimal]]) -> None:
    now = utcnow()
    for quotation, slot, _ in lines:
        quotation.selected_option = slot
        quotation.status = QUOTATION_STATUS_APPROVED
        quotation.updated_at = now


def create_payment(
    user_id: int,
    items: list,
    method: str,
    confirm_duplicate: bool = False,
) -> Payment:
    """
    Create a PENDING payment for one or more quotations and approve them.

    Args:
        user_id: Acting user; must own every quotation
        items: [{"quotation_id": <uuid or code>, "option_id": <1-3 or None>}, ...]
               option_id None falls back to the quotation's stored selection
        method: Bank id (WISE, SOCIETE_GENERALE, CIH)
        confirm_duplicate: Proceed even if an active payment already exists

    Raises:
        PaymentError: bad method/items/option/price (retry_safe)
        NotFoundError: unknown quotation or user
        DuplicatePaymentError: active payment exists and confirm_duplicate is False
        PaymentRollbackError: quotation update failed; payment committed as FAILED
    """
    method = normalize_method(method)
    if not isinstance(items, list) or not items:
        raise PaymentError("At least one quotation is required")

    def _op():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        lines: list[tuple[Quotation, int, Decimal]] = []
        seen = set()
        for item in items:
            identifier, option_id = _unpack_item(item)
            found = resolve_quotation(identifier)
            if not found or found.user_id != user.id:
                raise NotFoundError(f"Quotation not found: {identifier}")
            if found.id in seen:
                raise PaymentError(f"Quotation {found.quotation_id} is listed twice")
            seen.add(found.id)

            quotation = lock_for_update(db.session.query(Quotation).filter_by(id=found.id)).first()
            if quotation.status == QUOTATION_STATUS_REJECTED:
                raise PaymentError(f"Quotation {quotation.quotation_id} was rejected")

            slot, amount = _price_line(quotation, option_id)
            lines.append((quotation, slot, amount))

        if not confirm_duplicate:
            for quotation, _, _ in lines:
                existing = find_active_payments(quotation.id)
                if existing:
                    raise DuplicatePaymentError(existing[0], quotation)

        payment = Payment(
            user_id=user.id,
            total_amount=sum(amount for _, _, amount in lines),
            method=method,
            status=PAYMENT_STATUS_PENDING,
            reference_number=generate_reference_number(),
        )
        payment.links = [
            PaymentQuotation(
                quotation_id=quotation.id,
                position=position,
                selected_option=slot,
                amount=amount,
            )
            for position, (quotation, slot, amount) in enumerate(lines)
        ]
        db.session.add(payment)
        db.session.flush()

        try:
            run_in_savepoint(lambda: _mark_quotations_approved(lines))
        except SQLAlchemyError as exc:
            _commit_failed_marker(payment, exc)
            raise PaymentRollbackError(payment) from exc

        db.session.commit()
        current_app.logger.info(
            "Created payment %s (%s, %s) for quotations %s",
            payment.reference_number,
            method,
            payment.total_amount,
            ", ".join(q.quotation_id for q, _, _ in lines),
        )
        return payment

    return run_with_retry(_op)


def _commit_failed_marker(payment: Payment, cause: Exception) -> None:
    """
    Commit the payment as FAILED after its quotation update was rolled back.

    If even that commit fails, nothing from the attempt survives and the
    error is retry-safe.
    """
    current_app.logger.error(
        "Quotation status update failed for payment %s: %s",
        payment.reference_number,
        cause,
    )
    payment.status = PAYMENT_STATUS_FAILED
    payment.failure_reason = "Quotation status update failed"
    payment.updated_at = utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(
            "Could not record FAILED status for payment %s; attempt discarded: %s",
            payment.reference_number,
            exc,
        )
        raise PaymentError("Payment could not be created, please retry") from exc


# =============================================================================
# PROOF OF PAYMENT
# =============================================================================

def upload_proof(payment_id, user: User, file) -> Payment:
    """
    Store a transfer receipt and move the payment to PROCESSING.

    Upload failures leave the payment untouched. If the payment update fails
    after the file is stored, the file is reported as orphaned and the error
    is raised.
    """
    payment = get_payment_for_user(payment_id, user)
    if payment.user_id != user.id:
        raise NotFoundError("Payment not found")
    if payment.status not in PROOF_UPLOAD_STATUSES:
        raise PaymentError(f"Cannot upload proof for a {payment.status} payment")

    content_type, size = storage_service.validate_upload(file)
    key = storage_service.build_key(f"payment_proof_{payment.id}", file.filename)
    stored = storage_service.save(
        storage_service.BUCKET_PAYMENT_PROOFS,
        key,
        file,
        content_type=content_type,
        size=size,
    )

    try:
        locked = lock_for_update(db.session.query(Payment).filter_by(id=payment.id)).first()
        replaced_path = locked.proof_path
        locked.proof_url = stored.url
        locked.proof_path = f"{stored.bucket}/{stored.key}"
        locked.status = PAYMENT_STATUS_PROCESSING
        locked.updated_at = utcnow()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.error(
            "orphaned proof file %s/%s: payment %s was not updated",
            stored.bucket,
            stored.key,
            payment_id,
        )
        raise

    if replaced_path:
        _discard_replaced_proof(replaced_path, locked.reference_number)
    return locked


def _discard_replaced_proof(proof_path: str, reference_number: str) -> None:
    """Remove the previous receipt once the new one is committed."""
    bucket, _, key = proof_path.partition("/")
    try:
        storage_service.delete(bucket, key)
    except (OSError, storage_service.StorageError) as exc:
        current_app.logger.error(
            "orphaned proof file %s: replaced on payment %s but not removed: %s",
            proof_path,
            reference_number,
            exc,
        )
        return
    current_app.logger.info("Replaced proof file %s on payment %s", proof_path, reference_number)


# =============================================================================
# ADMIN REVIEW
# =============================================================================

def review_payment(reference_number: str, status: str) -> Payment:
    """Confirm (COMPLETED) or refuse (REJECTED) a PROCESSING payment."""
    target = normalize_status(status)
    if target not in (PAYMENT_STATUS_COMPLETED, PAYMENT_STATUS_REJECTED):
        raise PaymentError("Review status must be COMPLETED or REJECTED")

    def _op():
        payment = lock_for_update(
            db.session.query(Payment).filter_by(reference_number=reference_number)
        ).first()
        if not payment:
            raise NotFoundError(f"Payment {reference_number} not found")
        if payment.status != PAYMENT_STATUS_PROCESSING:
            raise PaymentError(f"Only PROCESSING payments can be reviewed (current: {payment.status})")

        payment.status = target
        payment.updated_at = utcnow()
        db.session.commit()
        current_app.logger.info("Payment %s reviewed: %s", reference_number, target)
        return payment

    return run_with_retry(_op)


# =============================================================================
# VIEW MODELS
# =============================================================================

def payment_view(payment: Payment) -> dict:
    """Payment history entry with its quotations shaped for display."""
    data = payment.to_dict()
    bank = BANKS.get(payment.method)
    data.update({
        "amount_display": pricing_service.format_amount(payment.total_amount),
        "status_label": payment_status_label(payment.status),
        "bank_name": bank["name"] if bank else payment.method,
        "currency": bank["currency"] if bank else None,
        "created_date": to_display_date(payment.created_at),
        "quotations": [
            {
                **quotation_summary(link.quotation),
                "selected_option": link.selected_option,
                "amount": float(link.amount),
            }
            for link in payment.links
            if link.quotation is not None
        ],
    })
    return data
