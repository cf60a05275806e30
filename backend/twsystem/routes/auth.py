# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Login throttling per client address (auth rate limiter)
- Account lockout after repeated failed attempts
- Short-lived access token plus rotating refresh token
- Logout revokes the presented tokens
- Password reset and address verification through one-time emailed links
"""

from flask import Blueprint, g, request

from ..decorators import rate_limited, require_auth
from ..permissions import API_PREFIX
from ..responses import created, ok
from ..services import auth_service, permission_service

auth_bp = Blueprint("auth", __name__, url_prefix=f"{API_PREFIX}/auth")


def _session_payload(user, tokens: dict) -> dict:
    return {"user": user.to_dict(), **tokens}


@auth_bp.post("/register")
@rate_limited("auth")
def register_route():
    """Self-service signup; the account gets the DEFAULT role."""
    user, tokens = auth_service.register(request.get_json(silent=True))
    return created(_session_payload(user, tokens), message="User registered successfully")


@auth_bp.post("/login")
@rate_limited("auth")
def login_route():
    """
    Authenticate user and issue a token pair.

    SECURITY:
    - 423 while the account is locked, even with the right password
    - Failed attempts are recorded for lockout
    """
    data = request.get_json(silent=True) or {}
    user, tokens = auth_service.login(data.get("email"), data.get("password"))
    return ok(_session_payload(user, tokens), message="Login successful")


@auth_bp.post("/refresh")
@rate_limited("auth")
def refresh_route():
    data = request.get_json(silent=True) or {}
    user, tokens = auth_service.refresh(data.get("refresh_token"))
    return ok(_session_payload(user, tokens), message="Token refreshed successfully")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    data = request.get_json(silent=True) or {}
    auth_service.logout(g.token_claims, data.get("refresh_token"))
    return ok(message="Logout successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return ok({**user.to_dict(), **permission_service.describe_access(user)})


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    auth_service.change_password(g.current_user, data.get("current_password"), data.get("new_password"))
    return ok(message="Password changed successfully")


@auth_bp.post("/forgot-password")
@rate_limited("auth")
def forgot_password_route():
    """Same response whether or not the address belongs to an account."""
    data = request.get_json(silent=True) or {}
    auth_service.request_password_reset(data.get("email"))
    return ok(message="If the email exists, a password reset link will be sent")


@auth_bp.post("/reset-password/<token>")
@rate_limited("auth")
def reset_password_route(token: str):
    data = request.get_json(silent=True) or {}
    auth_service.reset_password(token, data.get("password"))
    return ok(message="Password reset successfully")


@auth_bp.post("/verify-email/<token>")
@rate_limited("auth")
def verify_email_route(token: str):
    auth_service.verify_email(token)
    return ok(message="Email verified successfully")


@auth_bp.post("/resend-verification")
@require_auth
def resend_verification_route():
    auth_service.send_verification_email(g.current_user)
    return ok(message="Verification email sent")
