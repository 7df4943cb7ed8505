# Overview: Service-layer operations for auth; accounts, password hashing and profile updates.

"""
Authentication Service

WHY: Every quotation, payment and shipment is owned by a user account, so
every workflow action must be attributable. Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
- Emails are normalized to lower case before lookup and storage
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES, ROLE_CUSTOMER
from app.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PROFILE_FIELDS = ("full_name", "phone", "company_name", "country", "city")


class AuthError(Exception):
    """Raised for account creation and profile errors."""
    pass


class PasswordValidationError(AuthError):
    """Raised when password doesn't meet strength requirements."""
    pass


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def _clean_profile(profile: dict | None) -> dict:
    cleaned = {}
    for key, value in (profile or {}).items():
        if key not in PROFILE_FIELDS:
            raise AuthError(f"Field not allowed: {key}")
        if value is not None and not isinstance(value, str):
            raise AuthError(f"{key} must be a string")
        cleaned[key] = (value.strip() or None) if value is not None else None
    return cleaned


def create_user(
    email: str,
    password: str,
    role: str = ROLE_CUSTOMER,
    profile: dict | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        AuthError: invalid email, unknown role, or email already registered
        PasswordValidationError: password doesn't meet requirements
    """
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise AuthError("A valid email is required")

    if role not in VALID_ROLES:
        raise AuthError(f"Invalid role: {role}")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise AuthError("Email already registered")

    fields = _clean_profile(profile)
    password_hash = hash_password(password)

    user = User(
        email=email,
        password_hash=password_hash,
        role=role,
        **fields,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_profile(user: User, changes: dict) -> User:
    """Apply profile changes (full_name, phone, company_name, country, city)."""
    if not isinstance(changes, dict) or not changes:
        raise AuthError("No profile fields provided")

    for key, value in _clean_profile(changes).items():
        setattr(user, key, value)

    db.session.commit()
    return user


def set_role(email: str, role: str) -> User:
    if role not in VALID_ROLES:
        raise AuthError(f"Invalid role: {role}")
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise AuthError("User not found")
    user.role = role
    db.session.commit()
    return user


def deactivate_user(email: str) -> tuple[User, int]:
    """
    Block an account and revoke its live sessions.

    Returns (user, sessions_revoked). Quotations, payments and shipments
    stay in place.
    """
    from .session_service import revoke_all_user_sessions

    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise AuthError("User not found")
    user.is_active = False
    revoked = revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user, revoked
