# Overview: Service-layer operations for auth; credential checks, password hashing and user management.

"""
Authentication Service

WHY: Every receipt is attributed to the staff member who issued it. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower and digit required
- Unknown email, inactive account and wrong password all fail with the
  same message so login cannot be used to probe for accounts
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..errors import AuthError, ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_STAFF, ROLES
from ..time_utils import utcnow

INVALID_CREDENTIALS = "Invalid email or password."


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12, after a strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Timing-safe bcrypt comparison. A missing or malformed hash never matches.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def verify_credentials(email: str, password: str) -> User:
    """
    Check an email/password pair and return the active user.

    Updates last_login_at on success.

    Raises:
        ValidationError: email or password missing
        AuthError: unknown email, inactive account, or wrong password
    """
    email_n = _normalize_email(email)
    if not email_n or not password:
        raise ValidationError("Email and password are required.")

    user = db.session.query(User).filter(User.email == email_n).first()
    if not user or not user.is_active:
        raise AuthError(INVALID_CREDENTIALS)

    if not verify_password(password, user.password_hash):
        raise AuthError(INVALID_CREDENTIALS)

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def create_user(
    name: str,
    email: str,
    password: str,
    role: str = ROLE_STAFF,
    station_code: str | None = None,
    phone: str | None = None,
    employee_id: str | None = None,
) -> User:
    """
    Create a staff account.

    Raises:
        ValidationError: missing name/email, unknown role, weak password
        ConflictError: email already registered
    """
    name_s = (name or "").strip()
    email_n = _normalize_email(email)
    if not name_s or not email_n:
        raise ValidationError("Name and email are required.")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter(User.email == email_n).first()
    if existing:
        raise ConflictError("A user with this email already exists.")

    user = User(
        name=name_s,
        email=email_n,
        password_hash=hash_password(password),
        role=role,
        station_code=(station_code or "").strip().upper() or None,
        phone=phone,
        employee_id=employee_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    """
    Raises:
        ValidationError: fields missing, new password weak or unchanged
        AuthError: current password is wrong
    """
    if not current_password or not new_password:
        raise ValidationError("Current and new password are required.")
    if not verify_password(current_password, user.password_hash):
        raise AuthError("Current password is incorrect.")
    if current_password == new_password:
        raise ValidationError("New password must be different from the current password.")

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    db.session.commit()
