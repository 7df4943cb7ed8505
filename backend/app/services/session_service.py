# Overview: Service-layer operations for session; bearer token issue, validation and revocation.

"""
Bearer Sessions

Customers and admins authenticate API calls with an opaque bearer token
issued at login or registration.

- Plaintext token goes to the client once; only its SHA-256 digest is stored
- Absolute lifetime SESSION_ABSOLUTE_TIMEOUT, idle limit SESSION_IDLE_TIMEOUT
- Idle and deactivated-account sessions are revoked when next presented
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from app.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)

TOKEN_BYTES = 32


@dataclass
class SessionContext:
    """Authenticated user plus the session record that authenticated them."""
    user: User
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy; a plain digest is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a token for an active user.

    Returns (session_record, plaintext_token); the plaintext is not stored.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("Cannot open a session for an unknown or inactive user")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a presented token to its user, touching last_used_at.

    None for unknown, revoked, expired or idle tokens and for deactivated
    accounts.
    """
    if not token:
        return None

    session = _live_session(token)
    if not session:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        revoked_reason = "Idle timeout"
    elif not session.user or not session.user.is_active:
        revoked_reason = "User account deactivated"
    else:
        session.last_used_at = now
        db.session.commit()
        return SessionContext(user=session.user, session=session)

    _revoke(session, revoked_reason, now)
    db.session.commit()
    return None


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one token. False when it is unknown or already revoked."""
    session = _live_session(token)
    if not session:
        return False

    _revoke(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str) -> int:
    """Revoke every live token of a user (account deactivation). Returns the count."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason, now)
    db.session.commit()
    return len(sessions)
