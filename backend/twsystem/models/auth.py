from __future__ import annotations

from sqlalchemy import false

from ..extensions import db
from ..permissions.roles import Role
from twsystem.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Credential holder.

    The role is one tag from a closed set (ADMIN, DEFAULT, PRINTING,
    FINANCING); permissions are derived from it in twsystem.permissions.

    SECURITY: password_hash and the link token digests are never serialized.
    login_attempts and lock_until implement the brute-force lockout (see
    login_throttle_service).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False, info={"min_length": 2})
    email = db.Column(db.String(255), nullable=False, unique=True, info={"lower": True, "email": True})

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=Role.DEFAULT, info={"upper": True, "choices": Role.ALL})
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    last_login = db.Column(db.DateTime(timezone=True), nullable=True)
    login_attempts = db.Column(db.Integer, nullable=False, default=0)
    lock_until = db.Column(db.DateTime(timezone=True), nullable=True)

    # One-time link tokens are stored as SHA-256 digests, never in plain form
    email_verified = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    email_verification_token_hash = db.Column(db.String(64), nullable=True, index=True)
    password_reset_token_hash = db.Column(db.String(64), nullable=True, index=True)
    password_reset_expires = db.Column(db.DateTime(timezone=True), nullable=True)

    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deactivated_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
                           server_default=db.func.now())

    def is_locked(self, now=None) -> bool:
        if self.lock_until is None:
            return False
        return self.lock_until.replace(tzinfo=None) > (now or utcnow())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "is_locked": self.is_locked(),
            "email_verified": self.email_verified,
            "last_login": to_utc_z(self.last_login),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RevokedToken(db.Model):
    """
    Denylist of signed tokens invalidated before their expiry (logout, refresh rotation).

    Rows are only needed until expires_at; `flask tw purge-revoked-tokens` deletes the rest.
    """
    __tablename__ = "revoked_tokens"
    __table_args__ = (
        db.Index("ix_revoked_tokens_expires_at", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), nullable=False, unique=True)
    token_type = db.Column(db.String(16), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
