# Overview: Service-layer operations for price-option selection; one atomic write path.

"""
Selection Service

A customer's chosen price option is recorded in two places that must agree:
the user_selections row for (quotation, user) and quotations.selected_option,
which checkout reads. Both are written here, in one transaction.

CONCURRENCY:
- user_selections has a unique constraint on (quotation_id, user_id)
- the row is written with INSERT ... ON CONFLICT DO UPDATE, so two tabs
  submitting at once still leave exactly one row (last writer wins)
"""

from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite

from ..extensions import db
from ..models import Quotation, UserSelection, User
from ..models.quotations import QUOTATION_STATUS_REJECTED
from ..validation import NotFoundError
from app.time_utils import utcnow
from . import pricing_service
from .concurrency import lock_for_update, run_with_retry
from .quotation_service import get_quotation_for_user


class SelectionError(Exception):
    """Raised when a price option cannot be selected."""
    pass


def _insert_for_dialect():
    dialect = db.session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise SelectionError(f"Unsupported database dialect for selection upsert: {dialect}")


def _upsert_selection(quotation_id: str, user_id: int, option_id: int) -> None:
    now = utcnow()
    insert = _insert_for_dialect()
    stmt = insert(UserSelection.__table__).values(
        quotation_id=quotation_id,
        user_id=user_id,
        option_id=option_id,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["quotation_id", "user_id"],
        set_={"option_id": stmt.excluded.option_id, "updated_at": stmt.excluded.updated_at},
    )
    db.session.execute(stmt)


def _parse_option_id(option_id) -> int:
    if isinstance(option_id, bool):
        raise SelectionError("option_id must be 1, 2 or 3")
    try:
        slot = int(option_id)
    except (TypeError, ValueError):
        raise SelectionError("option_id must be 1, 2 or 3")
    if str(slot) != str(option_id).strip():
        raise SelectionError("option_id must be 1, 2 or 3")
    return slot


def record_selection(quotation_identifier, user: User, option_id) -> UserSelection:
    """
    Record the user's chosen price option for a quotation.

    Raises:
        NotFoundError: quotation unknown or not the user's
        SelectionError: option not present, quotation rejected, or a payment
            already references the quotation
    """
    slot = _parse_option_id(option_id)
    quotation = get_quotation_for_user(quotation_identifier, user)
    quotation_uuid = quotation.id

    from .payment_service import find_active_payments

    def _op():
        locked = lock_for_update(db.session.query(Quotation).filter_by(id=quotation_uuid)).first()
        if not locked:
            raise NotFoundError("Quotation not found")

        options = pricing_service.resolve_price_options(locked)
        if pricing_service.find_option(options, slot) is None:
            raise SelectionError(f"Price option {slot} is not available for this quotation")

        if locked.status == QUOTATION_STATUS_REJECTED:
            raise SelectionError("Cannot select an option on a rejected quotation")

        if find_active_payments(locked.id):
            raise SelectionError("Option is locked: a payment already references this quotation")

        _upsert_selection(locked.id, user.id, slot)
        locked.selected_option = slot
        locked.updated_at = utcnow()
        db.session.commit()

        return get_selection(locked.id, user.id)

    return run_with_retry(_op)


def get_selection(quotation_uuid: str, user_id: int) -> UserSelection | None:
    return db.session.query(UserSelection).filter_by(
        quotation_id=quotation_uuid,
        user_id=user_id,
    ).first()
