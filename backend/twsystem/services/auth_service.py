# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every API call must be attributable to a user. Uses bcrypt for password
hashing and signed bearer tokens (see token_service.py) for sessions.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS)
- Password length 6-128 characters
- Unknown e-mail and wrong password produce the same 401 message
- Failed attempts are counted per account; see login_throttle_service.py
- last_login is written on login only, never on token verification
- Reset and verification links carry a random token; only its SHA-256
  digest is stored, and a reset token expires after PASSWORD_RESET_EXPIRES_IN
- forgot-password answers the same way whether or not the e-mail exists
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import string

import bcrypt
from flask import current_app

from ..errors import (
    AccountLockedError,
    AuthenticationError,
    BusinessRuleError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import User
from ..permissions import Role
from ..validation import ModelValidationPolicy, field_error, validate_payload
from . import login_throttle_service, mail_service, token_service
from .concurrency import commit_or_conflict
from twsystem.time_utils import utcnow

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email"},
    required_on_create={"name", "email"},
)


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet the length requirements."""

    default_code = ErrorCode.INVALID_PASSWORD_FORMAT


def validate_password(password, field: str = "password") -> str:
    """
    Validate password length.

    Raises PasswordValidationError listing the offending field.
    """
    if not isinstance(password, str) or not password:
        raise PasswordValidationError(
            "Password is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error(field, f"{field} is required")],
        )
    if not (PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH):
        message = f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters"
        raise PasswordValidationError(
            message,
            code=ErrorCode.INVALID_PASSWORD_FORMAT,
            errors=[field_error(field, message)],
        )
    return password


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    WHY: the cost factor comes from config so the test suite can run with a
    cheap one while production keeps the default of 12.
    """
    validate_password(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() compares in constant time.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def generate_password(length: int = 12) -> str:
    """Random password handed out once when an administrator creates an account."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _normalize_email(email) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def email_taken(email: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == _normalize_email(email))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def register(payload: dict) -> tuple[User, dict]:
    """
    Self-service signup. New accounts always get the DEFAULT role.

    Returns (user, tokens).
    """
    payload = payload or {}
    password = payload.get("password")
    profile = {k: payload[k] for k in ("name", "email") if k in payload}

    patch = validate_payload(model=User, payload=profile, policy=REGISTER_POLICY, partial=False)
    validate_password(password)

    if email_taken(patch["email"]):
        raise ConflictError("Email already registered", code=ErrorCode.DUPLICATE_ENTRY)

    user = User(
        name=patch["name"],
        email=patch["email"],
        password_hash=hash_password(password),
        role=Role.DEFAULT,
        is_active=True,
    )
    db.session.add(user)
    commit_or_conflict("Email already registered")

    logger.info("User registered: %s", user.email)
    return user, token_service.issue_tokens(user)


def login(email, password) -> tuple[User, dict]:
    """
    Verify credentials and issue a token pair.

    Order of checks: unknown account, lock, disabled, password. A lock is
    reported even when the submitted password is correct.
    """
    if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
        raise ValidationError(
            "Email and password are required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[
                field_error(name, f"{name} is required")
                for name, value in (("email", email), ("password", password))
                if not isinstance(value, str) or not value.strip()
            ],
        )

    user = db.session.query(User).filter_by(email=_normalize_email(email)).first()
    if user is None:
        raise AuthenticationError("Invalid credentials", code=ErrorCode.INVALID_CREDENTIALS)

    locked, seconds = login_throttle_service.is_account_locked(user)
    if locked:
        minutes = max(seconds // 60, 1)
        raise AccountLockedError(
            f"Account locked due to too many failed login attempts. Try again in {minutes} minutes",
            code=ErrorCode.ACCOUNT_LOCKED,
        )

    if not user.is_active:
        raise AuthenticationError("Account disabled", code=ErrorCode.ACCOUNT_DISABLED)

    if not verify_password(password, user.password_hash):
        attempts = login_throttle_service.record_failed_attempt(user)
        logger.info("Failed login for %s (attempt %s)", user.email, attempts)
        raise AuthenticationError("Invalid credentials", code=ErrorCode.INVALID_CREDENTIALS)

    login_throttle_service.reset_failed_attempts(user)
    user.last_login = utcnow()
    db.session.commit()

    return user, token_service.issue_tokens(user)


def authenticate_token(token: str) -> tuple[User, dict]:
    """
    Resolve the user behind an access token.

    Returns (user, claims). Raises AuthenticationError / AccountLockedError.
    """
    if not token:
        raise AuthenticationError("Authentication required", code=ErrorCode.AUTHENTICATION_REQUIRED)

    claims = token_service.decode_token(token, token_service.ACCESS)

    sub = str(claims.get("sub", ""))
    user = db.session.get(User, int(sub)) if sub.isdigit() else None
    if user is None:
        raise AuthenticationError("Invalid token", code=ErrorCode.TOKEN_INVALID)
    if not user.is_active:
        raise AuthenticationError("Account disabled", code=ErrorCode.ACCOUNT_DISABLED)
    if user.is_locked():
        raise AccountLockedError(code=ErrorCode.ACCOUNT_LOCKED)

    return user, claims


def refresh(refresh_token) -> tuple[User, dict]:
    """
    Exchange a refresh token for a new pair.

    The presented refresh token is revoked (rotation), so it works once.
    """
    if not isinstance(refresh_token, str) or not refresh_token.strip():
        raise ValidationError(
            "Refresh token is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error("refresh_token", "refresh_token is required")],
        )

    claims = token_service.decode_token(refresh_token.strip(), token_service.REFRESH)
    sub = str(claims.get("sub", ""))
    user = db.session.get(User, int(sub)) if sub.isdigit() else None
    if user is None:
        raise AuthenticationError("Invalid token", code=ErrorCode.TOKEN_INVALID)
    if not user.is_active:
        raise AuthenticationError("Account disabled", code=ErrorCode.ACCOUNT_DISABLED)

    token_service.revoke_claims(claims)
    db.session.commit()
    return user, token_service.issue_tokens(user)


def logout(access_claims: dict, refresh_token: str | None = None) -> None:
    """Revoke the current access token and, when supplied, its refresh token."""
    token_service.revoke_claims(access_claims)
    if refresh_token:
        try:
            refresh_claims = token_service.decode_token(refresh_token, token_service.REFRESH)
        except AuthenticationError:
            # Already expired or revoked: nothing left to invalidate
            refresh_claims = None
        if refresh_claims and refresh_claims.get("sub") == access_claims.get("sub"):
            token_service.revoke_claims(refresh_claims)
    db.session.commit()


def change_password(user: User, current_password, new_password) -> None:
    """Change the caller's own password; the current one must match and the new one differ."""
    if not isinstance(current_password, str) or not current_password:
        raise ValidationError(
            "Current password is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error("current_password", "current_password is required")],
        )
    validate_password(new_password, field="new_password")

    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect", code=ErrorCode.INVALID_CREDENTIALS)
    if current_password == new_password:
        raise ValidationError(
            "New password must be different from the current password",
            code=ErrorCode.INVALID_PASSWORD_FORMAT,
            errors=[field_error("new_password", "new_password must differ from current_password")],
        )

    user.password_hash = hash_password(new_password)
    db.session.commit()
    logger.info("Password changed for %s", user.email)


def _new_link_token() -> tuple[str, str]:
    """(plain token for the link, digest to store)."""
    token = secrets.token_hex(32)
    return token, _digest(token)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _frontend_link(path: str, token: str) -> str:
    base = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    return f"{base}/{path}/{token}"


def request_password_reset(email) -> str | None:
    """
    Store a reset digest for an active account and mail the link.

    Returns the plain token, or None when no active account matches; the
    caller responds identically in both cases.
    """
    if not isinstance(email, str) or not email.strip():
        raise ValidationError(
            "Email is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error("email", "email is required")],
        )

    user = db.session.query(User).filter_by(email=_normalize_email(email)).first()
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or disabled account")
        return None

    token, digest = _new_link_token()
    user.password_reset_token_hash = digest
    user.password_reset_expires = utcnow() + current_app.config["PASSWORD_RESET_EXPIRES_IN"]
    db.session.commit()

    minutes = int(current_app.config["PASSWORD_RESET_EXPIRES_IN"].total_seconds() // 60)
    mail_service.send_mail(
        user.email,
        "Password reset",
        f"Use this link to choose a new password (valid for {minutes} minutes):\n\n"
        f"{_frontend_link('reset-password', token)}\n",
    )
    logger.info("Password reset link sent to %s", user.email)
    return token


def reset_password(token, new_password) -> User:
    """Consume a reset token. Clears the lockout, like an administrator reset."""
    validate_password(new_password)

    user = None
    if isinstance(token, str) and token.strip():
        user = (
            db.session.query(User)
            .filter(
                User.password_reset_token_hash == _digest(token.strip()),
                User.password_reset_expires > utcnow(),
            )
            .first()
        )
    if user is None:
        raise BusinessRuleError("Invalid or expired reset token", code=ErrorCode.TOKEN_INVALID)
    if verify_password(new_password, user.password_hash):
        raise ValidationError(
            "New password must be different from the current password",
            code=ErrorCode.INVALID_PASSWORD_FORMAT,
            errors=[field_error("password", "password must differ from the current one")],
        )

    user.password_hash = hash_password(new_password)
    user.password_reset_token_hash = None
    user.password_reset_expires = None
    user.login_attempts = 0
    user.lock_until = None
    db.session.commit()
    logger.info("Password reset for %s", user.email)
    return user


def send_verification_email(user: User) -> str:
    """Issue a fresh verification token (replacing any previous one) and mail it."""
    if user.email_verified:
        raise BusinessRuleError("Email already verified", code=ErrorCode.OPERATION_NOT_ALLOWED)

    token, digest = _new_link_token()
    user.email_verification_token_hash = digest
    db.session.commit()

    mail_service.send_mail(
        user.email,
        "Confirm your email address",
        f"Confirm your address by opening this link:\n\n{_frontend_link('verify-email', token)}\n",
    )
    logger.info("Verification link sent to %s", user.email)
    return token


def verify_email(token) -> User:
    user = None
    if isinstance(token, str) and token.strip():
        user = (
            db.session.query(User)
            .filter(
                User.email_verification_token_hash == _digest(token.strip()),
                User.email_verified.is_(False),
            )
            .first()
        )
    if user is None:
        raise BusinessRuleError("Invalid token or email already verified", code=ErrorCode.TOKEN_INVALID)

    user.email_verified = True
    user.email_verification_token_hash = None
    db.session.commit()
    logger.info("Email verified for %s", user.email)
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)
    return user
