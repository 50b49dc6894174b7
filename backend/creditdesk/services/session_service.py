# Overview: Service-layer operations for session; bearer token issue, validation and revocation.

"""
Bearer Sessions

WHY: Desk staff stay logged in through a shift but a lost laptop must not
keep issuing receipts. Every token has a hard expiry and an idle timeout,
and any of them can be revoked centrally.

Sessions capture the user's role and station at login. Receipts snapshot
the station from the user record at creation time, so a station change
takes effect on the next receipt, not the next login.

TOKEN RULES:
- 32 random bytes, hex-encoded, handed to the client exactly once
- Only the SHA-256 digest is persisted
- Hard expiry after SESSION_ABSOLUTE_TIMEOUT_HOURS (default 12)
- Revoked after SESSION_IDLE_TIMEOUT_HOURS without use (default 2)
- Revoked on logout, password change or account deactivation
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..errors import AuthError
from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


DEFAULT_ABSOLUTE_TIMEOUT_HOURS = 12
DEFAULT_IDLE_TIMEOUT_HOURS = 2
CLEANUP_AFTER = timedelta(days=30)


@dataclass
class SessionContext:
    """Identity attached to an authenticated request."""
    user: User
    session: SessionToken
    role: str
    station_code: str | None


def _timeouts() -> tuple[timedelta, timedelta]:
    absolute = DEFAULT_ABSOLUTE_TIMEOUT_HOURS
    idle = DEFAULT_IDLE_TIMEOUT_HOURS
    if has_app_context():
        absolute = current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", absolute)
        idle = current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", idle)
    return timedelta(hours=absolute), timedelta(hours=idle)


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 for storage. Tokens are already high-entropy, so a slow hash
    like bcrypt buys nothing here.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Start a session; the plaintext token is returned once, only its digest is stored."""
    if not user.is_active:
        raise AuthError("Account is inactive.")

    absolute, _ = _timeouts()
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        role=user.role,
        station_code=user.station_code,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_token(token: str | None) -> SessionContext:
    """
    Resolve a bearer token to its session context.

    Updates last_used_at on success.

    Raises:
        AuthError: token missing, unknown, revoked, expired, idle too long,
            or the user has been deactivated
    """
    if not token:
        raise AuthError("Authentication required.")

    now = utcnow()
    absolute, idle = _timeouts()

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        raise AuthError("Invalid or expired token.")

    if session.expires_at < now:
        raise AuthError("Invalid or expired token.")

    if now - session.last_used_at > idle:
        _revoke(session, "Idle timeout")
        raise AuthError("Session timed out. Please log in again.")

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        raise AuthError("Account is inactive.")

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        role=session.role,
        station_code=session.station_code,
    )


def revoke_token(token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked, False if none matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    now = utcnow()
    count = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).update(
        {
            SessionToken.is_revoked: True,
            SessionToken.revoked_at: now,
            SessionToken.revoked_reason: reason,
        },
        synchronize_session=False,
    )
    db.session.commit()
    return count


def cleanup_expired_sessions() -> int:
    """
    Delete expired or revoked sessions older than 30 days.
    Returns count of sessions deleted.
    """
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < now - CLEANUP_AFTER,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
