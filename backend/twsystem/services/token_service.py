# Overview: Signed access/refresh token issuance, verification and revocation.

"""
Token Service

WHY: API callers authenticate with a bearer token instead of a server-side
session. Tokens are HS256 JWTs signed with separate secrets per type.

SECURITY NOTES:
- Access token claims: sub, email, role, type="access", jti, iat, exp
- Refresh token claims: sub, type="refresh", jti, iat, exp
- Refresh tokens are signed with JWT_REFRESH_SECRET and carry a type
  discriminator, so neither token can stand in for the other
- Logout and refresh rotation write the jti to revoked_tokens
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from ..errors import AuthenticationError, ErrorCode
from ..extensions import db
from ..models import RevokedToken, User
from twsystem.time_utils import utcnow

ACCESS = "access"
REFRESH = "refresh"
ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenSettings:
    access_secret: str
    access_ttl: timedelta
    refresh_secret: str
    refresh_ttl: timedelta

    @classmethod
    def from_config(cls, config) -> "TokenSettings":
        return cls(
            access_secret=config["JWT_SECRET"],
            access_ttl=config["JWT_EXPIRES_IN"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            refresh_ttl=config["JWT_REFRESH_EXPIRES_IN"],
        )

    def secret_for(self, token_type: str) -> str:
        return self.refresh_secret if token_type == REFRESH else self.access_secret

    def ttl_for(self, token_type: str) -> timedelta:
        return self.refresh_ttl if token_type == REFRESH else self.access_ttl


def _settings() -> TokenSettings:
    return current_app.extensions["twsystem.tokens"]


def _encode(claims: dict, token_type: str, settings: TokenSettings) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims)
    payload.update({
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + settings.ttl_for(token_type),
    })
    return jwt.encode(payload, settings.secret_for(token_type), algorithm=ALGORITHM)


def issue_tokens(user: User) -> dict:
    """Issue an access + refresh pair for a user."""
    settings = _settings()
    access = _encode({"sub": str(user.id), "email": user.email, "role": user.role}, ACCESS, settings)
    refresh = _encode({"sub": str(user.id)}, REFRESH, settings)
    return {
        "access_token": access,
        "refresh_token": refresh,
        "token_type": "Bearer",
        "expires_in": int(settings.access_ttl.total_seconds()),
    }


def decode_token(token: str, expected_type: str) -> dict:
    """
    Verify signature, expiry and type discriminator.

    Raises AuthenticationError with TOKEN_EXPIRED or TOKEN_INVALID.
    """
    settings = _settings()
    try:
        claims = jwt.decode(
            token,
            settings.secret_for(expected_type),
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat", "sub", "jti"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", code=ErrorCode.TOKEN_EXPIRED)
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token", code=ErrorCode.TOKEN_INVALID)

    if claims.get("type") != expected_type:
        raise AuthenticationError("Invalid token type", code=ErrorCode.TOKEN_INVALID)

    if is_revoked(claims["jti"]):
        raise AuthenticationError("Token has been revoked", code=ErrorCode.TOKEN_INVALID)

    return claims


def is_revoked(jti: str) -> bool:
    return db.session.query(RevokedToken.id).filter_by(jti=jti).first() is not None


def revoke_claims(claims: dict) -> None:
    """Add a decoded token to the denylist (caller commits)."""
    if is_revoked(claims["jti"]):
        return
    expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).replace(tzinfo=None)
    db.session.add(RevokedToken(
        jti=claims["jti"],
        token_type=claims.get("type", ACCESS),
        user_id=int(claims["sub"]) if str(claims.get("sub", "")).isdigit() else None,
        expires_at=expires_at,
    ))


def purge_expired_revocations() -> int:
    """Delete denylist rows whose tokens have expired anyway."""
    deleted = (
        db.session.query(RevokedToken)
        .filter(RevokedToken.expires_at < utcnow())
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
