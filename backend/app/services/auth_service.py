# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every stock movement and order must be attributable. Uses bcrypt for
password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Password length 8-64 characters
- Emails are unique and compared lower-cased
- Session tokens managed separately (see session_service.py)
- Password reset tokens stored hashed, expire after PASSWORD_RESET_TTL_MINUTES
"""

import logging
import re
import secrets
from datetime import timedelta

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..models import SessionToken, User
from ..models.auth import ROLE_EMPLOYEE, VALID_ROLES
from app.time_utils import utcnow
from .concurrency import run_in_transaction
from .session_service import hash_token


logger = logging.getLogger(__name__)


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 64
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PHONE_DIGITS = 10

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet length requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise PasswordValidationError(f"Password must not exceed {PASSWORD_MAX_LENGTH} characters")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    return email


def normalize_phone(phone) -> str:
    digits = re.sub(r"\D", "", str(phone or ""))
    if len(digits) != PHONE_DIGITS:
        raise ValidationError(f"Phone must contain exactly {PHONE_DIGITS} digits")
    return digits


def _normalize_name(name) -> str:
    name = (name or "").strip()
    if not (NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH):
        raise ValidationError(f"Name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters")
    return name


def create_user(
    *,
    name: str,
    email: str,
    phone: str,
    password: str,
    role: str = ROLE_EMPLOYEE,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError / PasswordValidationError: malformed fields
        ConflictError: email already registered
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Role is either: {', '.join(VALID_ROLES)}")

    name = _normalize_name(name)
    email = normalize_email(email)
    phone = normalize_phone(phone)
    password_hash = hash_password(password)

    def _op():
        if db.session.query(User).filter_by(email=email).first() is not None:
            raise ConflictError("A user with this email already exists")

        user = User(
            name=name,
            email=email,
            phone=phone,
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        return user

    return run_in_transaction(_op)


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _reset_ttl() -> timedelta:
    return timedelta(minutes=current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 30))


def request_password_reset(email: str) -> str:
    """
    Issue a single-use reset token for an active account.

    Only the SHA-256 hash is stored; the plaintext token is returned and
    written to the application log, which stands in for e-mail delivery.

    Raises:
        ValidationError: malformed email
        NotFoundError: no user with this email
        PermissionDeniedError: account disabled
    """
    email = normalize_email(email)
    token = secrets.token_hex(48)

    def _op():
        user = db.session.query(User).filter_by(email=email).first()
        if user is None:
            raise NotFoundError("User not found with this email")
        if not user.is_active:
            raise PermissionDeniedError("Your account is disabled. Please contact support.")

        user.password_reset_token_hash = hash_token(token)
        user.password_reset_expires_at = utcnow() + _reset_ttl()
        db.session.flush()
        return user.id

    user_id = run_in_transaction(_op)
    logger.info("Password reset token for user %s (%s): %s", user_id, email, token)
    return token


def reset_password(email: str, token: str, new_password: str) -> User:
    """
    Redeem a reset token: set the new password, clear the token and revoke
    every live session of the account.

    Raises:
        ValidationError / PasswordValidationError: missing fields, bad
            password, or unknown/expired token for this email
        PermissionDeniedError: account disabled
    """
    if not email or not token:
        raise ValidationError("email, token and password are required")
    email = normalize_email(email)
    password_hash = hash_password(new_password)
    token_hash = hash_token(str(token))

    def _op():
        now = utcnow()
        user = db.session.query(User).filter_by(
            email=email,
            password_reset_token_hash=token_hash,
        ).first()
        if user is None or user.password_reset_expires_at is None or user.password_reset_expires_at < now:
            raise ValidationError("Invalid token or email")
        if not user.is_active:
            raise PermissionDeniedError("Your account is disabled. Please contact support.")

        user.password_hash = password_hash
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None

        db.session.query(SessionToken).filter_by(user_id=user.id, is_revoked=False).update(
            {"is_revoked": True, "revoked_at": now},
            synchronize_session=False,
        )
        db.session.flush()
        return user

    user = run_in_transaction(_op)
    logger.info("Password reset for user %s", user.id)
    return user
