# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError, ErrorCode, RateLimitError
from .permissions import is_path_allowed, permission_code
from .services import auth_service, permission_service


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Authentication required", code=ErrorCode.AUTHENTICATION_REQUIRED)
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Authentication required", code=ErrorCode.AUTHENTICATION_REQUIRED)
    return token


def require_auth(f):
    """
    Require a valid access token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.token_claims: The decoded access-token claims (used by logout)

    SECURITY: Raises 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account missing or deactivated
    and 423 if the account is locked. A role whose allow-list does not
    cover the request path gets 403 before the view runs.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user, claims = auth_service.authenticate_token(_bearer_token())

        g.current_user = user
        g.token_claims = claims

        if not is_path_allowed(user.role, request.path):
            permission_service.log_security_event(
                user,
                "PATH_DENIED",
                resource=request.path,
                action=request.method,
                reason="Path outside the role's allow-list",
                ip_address=request.remote_addr,
            )
            raise AuthorizationError(
                f"Insufficient permissions: role {user.role} cannot access {request.path}",
                code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            )

        return f(*args, **kwargs)

    return decorated_function


def require_permission(resource: str, action: str):
    """
    Require the permission for (resource, action); use after @require_auth.
    """
    code = permission_code(resource, action)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                raise AuthenticationError("Authentication required", code=ErrorCode.AUTHENTICATION_REQUIRED)

            permission_service.require_permission(
                g.current_user,
                code,
                resource=request.path,
                ip_address=request.remote_addr,
            )
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def rate_limited(name: str):
    """
    Apply one of the limiters built at startup (see rate_limit_service.build_limiters).

    Keyed by client address. Disabled when RATE_LIMIT_ENABLED is false.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_rate_limit(name)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def check_rate_limit(name: str) -> None:
    if not current_app.config.get("RATE_LIMIT_ENABLED", True):
        return
    limiter = current_app.extensions["twsystem.rate_limiters"][name]
    state = limiter.check(identity=request.remote_addr or "unknown")
    g.rate_limit_state = state
    if not state.allowed:
        raise RateLimitError(
            "Too many requests, please try again later",
            retry_after=state.retry_after_seconds(),
        )
