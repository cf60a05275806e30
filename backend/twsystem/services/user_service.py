# Overview: Administrator-side account management.

"""
User Administration

WHY: Only ADMIN manages accounts. Accounts are never hard-deleted so tokens,
audit log lines and revoked_tokens rows keep pointing at a real user.

SECURITY NOTES:
- Accounts created here get a generated password, returned once
- An administrator cannot deactivate their own account
- password_hash is never part of any response
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func

from ..errors import BusinessRuleError, ConflictError, ErrorCode, ValidationError
from ..extensions import db
from ..models import User
from ..permissions import Role
from ..validation import ModelValidationPolicy, field_error, validate_payload
from . import auth_service, query_service
from .concurrency import commit_or_conflict
from twsystem.time_utils import utcnow

logger = logging.getLogger(__name__)

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role", "is_active"},
    required_on_create={"name", "email"},
)

SORTABLE = ("name", "email", "role", "last_login", "updated_at")


def list_users(args) -> dict:
    params = query_service.parse_list_params(args, filter_keys=("role",), sortable=SORTABLE)
    query = db.session.query(User)

    # Users carry is_active instead of active
    if params.active is not None:
        query = query.filter(User.is_active.is_(params.active))
    if params.search:
        query = query.filter(query_service.search_clause(params.search, (User.name, User.email)))
    if "role" in params.filters:
        query = query.filter(User.role == params.filters["role"].upper())

    query = query_service.apply_sort(query, User, params)
    return query_service.paginate(query, params)


def get_user(user_id: int) -> User:
    return auth_service.get_user(query_service.parse_id(user_id, "user_id"))


def create_user(payload: dict) -> tuple[User, str]:
    """
    Create an account with a generated password.

    Returns (user, plain_password). The plain password is not stored.
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    if auth_service.email_taken(patch["email"]):
        raise ConflictError("Email already registered", code=ErrorCode.DUPLICATE_ENTRY)

    password = auth_service.generate_password()
    user = User(
        name=patch["name"],
        email=patch["email"],
        role=patch.get("role") or Role.DEFAULT,
        is_active=patch.get("is_active", True),
        password_hash=auth_service.hash_password(password),
    )
    db.session.add(user)
    commit_or_conflict("Email already registered")

    logger.info("User %s created with role %s", user.email, user.role)
    return user, password


def update_user(user_id: int, payload: dict, *, acting_user: User) -> User:
    user = get_user(user_id)
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)

    if "email" in patch and auth_service.email_taken(patch["email"], exclude_id=user.id):
        raise ConflictError("Email already registered", code=ErrorCode.DUPLICATE_ENTRY)
    if user.id == acting_user.id:
        if patch.get("is_active") is False:
            raise BusinessRuleError("You cannot deactivate your own account", code=ErrorCode.OPERATION_NOT_ALLOWED)
        if "role" in patch and patch["role"] != user.role:
            raise BusinessRuleError("You cannot change your own role", code=ErrorCode.OPERATION_NOT_ALLOWED)

    for key, value in patch.items():
        setattr(user, key, value)
    if patch.get("is_active") is False and user.deactivated_at is None:
        user.deactivated_at = utcnow()
        user.deactivated_by = acting_user.id
    elif patch.get("is_active") is True:
        user.deactivated_at = None
        user.deactivated_by = None

    commit_or_conflict("Email already registered")
    return user


def deactivate_user(user_id: int, *, acting_user: User) -> User:
    user = get_user(user_id)
    if user.id == acting_user.id:
        raise BusinessRuleError("You cannot deactivate your own account", code=ErrorCode.OPERATION_NOT_ALLOWED)
    user.is_active = False
    user.deactivated_at = utcnow()
    user.deactivated_by = acting_user.id
    db.session.commit()
    logger.info("User %s deactivated by %s", user.email, acting_user.email)
    return user


def reactivate_user(user_id: int) -> User:
    user = get_user(user_id)
    if user.is_active:
        raise BusinessRuleError("User is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    user.is_active = True
    user.deactivated_at = None
    user.deactivated_by = None
    user.login_attempts = 0
    user.lock_until = None
    db.session.commit()
    return user


def set_password(user_id: int, payload: dict) -> User:
    """Administrator password reset; also clears any lockout."""
    user = get_user(user_id)
    new_password = (payload or {}).get("new_password", (payload or {}).get("password"))
    if new_password is None:
        raise ValidationError(
            "New password is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error("new_password", "new_password is required")],
        )
    user.password_hash = auth_service.hash_password(auth_service.validate_password(new_password, "new_password"))
    user.login_attempts = 0
    user.lock_until = None
    db.session.commit()
    return user


def user_stats() -> dict:
    total = db.session.query(func.count(User.id)).scalar() or 0
    active = db.session.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
    by_role = query_service.count_by(db.session.query(User), User.role, Role.ALL)
    recent = (
        db.session.query(func.count(User.id))
        .filter(User.created_at >= utcnow() - timedelta(days=30))
        .scalar()
        or 0
    )
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "by_role": by_role,
        "created_last_30_days": recent,
    }
