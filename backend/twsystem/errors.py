# Overview: Error taxonomy, exception hierarchy and the Flask error handlers that render them.

"""
Error Taxonomy

Every failure leaving the API carries a 4-digit numeric code grouped by
category:

- 1xxx: validation (malformed or missing input)
- 2xxx: business rule (workflow precondition, duplicate one-to-one child)
- 3xxx: authentication (missing/invalid/expired token, locked/disabled account)
- 4xxx: authorization (role, field or status gated denial)
- 5xxx: not found
- 6xxx: system (unexpected fault, dependency failure)

Services raise AppError subclasses. When no explicit code is given, the code
is resolved from the message via get_error_code() and falls back to the
subclass default.
"""

from __future__ import annotations

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ErrorCode:
    # Validation (1xxx)
    VALIDATION_ERROR = 1001
    INVALID_DATA = 1002
    MISSING_REQUIRED_FIELD = 1003
    INVALID_EMAIL_FORMAT = 1004
    INVALID_PASSWORD_FORMAT = 1005
    INVALID_DATE_FORMAT = 1006
    INVALID_OBJECT_ID = 1007
    INVALID_ENUM_VALUE = 1008
    INVALID_STRING_LENGTH = 1009
    INVALID_NUMBER_RANGE = 1010
    INVALID_ARRAY_LENGTH = 1011
    INVALID_FILE_TYPE = 1012
    INVALID_FILE_SIZE = 1013

    # Business rules (2xxx)
    DEVELOPMENT_NOT_APPROVED = 2001
    PRODUCTION_ORDER_ALREADY_EXISTS = 2002
    DELIVERY_SHEET_ALREADY_EXISTS = 2003
    PRODUCTION_RECEIPT_ALREADY_EXISTS = 2004
    OPERATION_NOT_ALLOWED = 2006
    BUSINESS_RULE_VIOLATION = 2007
    DUPLICATE_ENTRY = 2008
    INVALID_STATUS_TRANSITION = 2009
    RESOURCE_IN_USE = 2010
    INVALID_PRODUCTION_TYPE = 2011
    MISSING_PRODUCTION_DATA = 2012
    PRODUCTION_SHEET_ALREADY_EXISTS = 2013
    PRODUCTION_ORDER_NOT_FINALIZED = 2014
    PAYMENT_ALREADY_COMPLETED = 2015
    PAYMENT_EXCEEDS_BALANCE = 2016
    MACHINE_UNAVAILABLE = 2017

    # Authentication (3xxx)
    AUTHENTICATION_REQUIRED = 3001
    INVALID_CREDENTIALS = 3002
    TOKEN_EXPIRED = 3003
    TOKEN_INVALID = 3004
    ACCOUNT_DISABLED = 3005
    ACCOUNT_LOCKED = 3006
    SESSION_EXPIRED = 3007

    # Authorization (4xxx)
    INSUFFICIENT_PERMISSIONS = 4001
    ROLE_REQUIRED = 4002
    ADMIN_REQUIRED = 4003
    RESOURCE_ACCESS_DENIED = 4004
    FIELD_UPDATE_RESTRICTED = 4005
    WORKFLOW_STATUS_RESTRICTED = 4006

    # Not found (5xxx)
    USER_NOT_FOUND = 5001
    CLIENT_NOT_FOUND = 5002
    DEVELOPMENT_NOT_FOUND = 5003
    PRODUCTION_ORDER_NOT_FOUND = 5004
    PRODUCTION_SHEET_NOT_FOUND = 5005
    DELIVERY_SHEET_NOT_FOUND = 5006
    PRODUCTION_RECEIPT_NOT_FOUND = 5007
    FILE_NOT_FOUND = 5008
    RESOURCE_NOT_FOUND = 5009

    # System (6xxx)
    DATABASE_ERROR = 6001
    EXTERNAL_SERVICE_ERROR = 6002
    FILE_UPLOAD_ERROR = 6003
    EMAIL_SEND_ERROR = 6004
    INTERNAL_SERVER_ERROR = 6005
    SERVICE_UNAVAILABLE = 6006
    TIMEOUT_ERROR = 6007
    NETWORK_ERROR = 6008
    CONFIGURATION_ERROR = 6009
    RATE_LIMIT_EXCEEDED = 6010


ERROR_MESSAGE_TO_CODE: dict[str, int] = {
    "Invalid data": ErrorCode.INVALID_DATA,
    "Validation error": ErrorCode.VALIDATION_ERROR,
    "Required field is missing": ErrorCode.MISSING_REQUIRED_FIELD,
    "Invalid email format": ErrorCode.INVALID_EMAIL_FORMAT,
    "Invalid password format": ErrorCode.INVALID_PASSWORD_FORMAT,
    "Invalid date format": ErrorCode.INVALID_DATE_FORMAT,
    "Invalid ID": ErrorCode.INVALID_OBJECT_ID,
    "Invalid enum value": ErrorCode.INVALID_ENUM_VALUE,
    "String length invalid": ErrorCode.INVALID_STRING_LENGTH,
    "Number out of range": ErrorCode.INVALID_NUMBER_RANGE,
    "Array length invalid": ErrorCode.INVALID_ARRAY_LENGTH,
    "Invalid file type": ErrorCode.INVALID_FILE_TYPE,
    "File too large": ErrorCode.INVALID_FILE_SIZE,

    "Development must be approved to create production order": ErrorCode.DEVELOPMENT_NOT_APPROVED,
    "Production order already exists for this development": ErrorCode.PRODUCTION_ORDER_ALREADY_EXISTS,
    "Production sheet already exists for this production order": ErrorCode.PRODUCTION_SHEET_ALREADY_EXISTS,
    "Delivery sheet already exists for this production sheet": ErrorCode.DELIVERY_SHEET_ALREADY_EXISTS,
    "Production receipt already exists for this production order": ErrorCode.PRODUCTION_RECEIPT_ALREADY_EXISTS,
    "Production order must be finalized to create production receipt": ErrorCode.PRODUCTION_ORDER_NOT_FINALIZED,
    "Payment already completed": ErrorCode.PAYMENT_ALREADY_COMPLETED,
    "Payment amount exceeds remaining balance": ErrorCode.PAYMENT_EXCEEDS_BALANCE,
    "Machine is already booked for the selected period": ErrorCode.MACHINE_UNAVAILABLE,
    "Operation not allowed": ErrorCode.OPERATION_NOT_ALLOWED,
    "Business rule violation": ErrorCode.BUSINESS_RULE_VIOLATION,
    "Duplicate entry": ErrorCode.DUPLICATE_ENTRY,
    "Invalid status transition": ErrorCode.INVALID_STATUS_TRANSITION,
    "Resource in use": ErrorCode.RESOURCE_IN_USE,
    "Invalid production type": ErrorCode.INVALID_PRODUCTION_TYPE,
    "Missing production data": ErrorCode.MISSING_PRODUCTION_DATA,

    "Authentication required": ErrorCode.AUTHENTICATION_REQUIRED,
    "Invalid credentials": ErrorCode.INVALID_CREDENTIALS,
    "Token expired": ErrorCode.TOKEN_EXPIRED,
    "Invalid token": ErrorCode.TOKEN_INVALID,
    "Account disabled": ErrorCode.ACCOUNT_DISABLED,
    "Account locked": ErrorCode.ACCOUNT_LOCKED,
    "Session expired": ErrorCode.SESSION_EXPIRED,

    "Insufficient permissions": ErrorCode.INSUFFICIENT_PERMISSIONS,
    "Role required": ErrorCode.ROLE_REQUIRED,
    "Admin required": ErrorCode.ADMIN_REQUIRED,
    "Resource access denied": ErrorCode.RESOURCE_ACCESS_DENIED,

    "User not found": ErrorCode.USER_NOT_FOUND,
    "Client not found": ErrorCode.CLIENT_NOT_FOUND,
    "Development not found": ErrorCode.DEVELOPMENT_NOT_FOUND,
    "Production order not found": ErrorCode.PRODUCTION_ORDER_NOT_FOUND,
    "Production sheet not found": ErrorCode.PRODUCTION_SHEET_NOT_FOUND,
    "Delivery sheet not found": ErrorCode.DELIVERY_SHEET_NOT_FOUND,
    "Production receipt not found": ErrorCode.PRODUCTION_RECEIPT_NOT_FOUND,
    "File not found": ErrorCode.FILE_NOT_FOUND,
    "Resource not found": ErrorCode.RESOURCE_NOT_FOUND,

    "Database error": ErrorCode.DATABASE_ERROR,
    "External service error": ErrorCode.EXTERNAL_SERVICE_ERROR,
    "File upload error": ErrorCode.FILE_UPLOAD_ERROR,
    "Email send error": ErrorCode.EMAIL_SEND_ERROR,
    "Internal server error": ErrorCode.INTERNAL_SERVER_ERROR,
    "Service unavailable": ErrorCode.SERVICE_UNAVAILABLE,
    "Timeout error": ErrorCode.TIMEOUT_ERROR,
    "Network error": ErrorCode.NETWORK_ERROR,
    "Configuration error": ErrorCode.CONFIGURATION_ERROR,
    "Too many requests": ErrorCode.RATE_LIMIT_EXCEEDED,
}

_KEYWORD_CODES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("not found", "not exist"), ErrorCode.RESOURCE_NOT_FOUND),
    (("validation", "invalid"), ErrorCode.VALIDATION_ERROR),
    (("permission", "unauthorized"), ErrorCode.INSUFFICIENT_PERMISSIONS),
    (("duplicate", "already exists"), ErrorCode.DUPLICATE_ENTRY),
    (("database", "connection"), ErrorCode.DATABASE_ERROR),
)


def get_error_code(message: str | None) -> int:
    """
    Resolve an error code from a message.

    Lookup order: exact table match, table key contained in the message,
    keyword sniffing, then INTERNAL_SERVER_ERROR.
    """
    if not message:
        return ErrorCode.INTERNAL_SERVER_ERROR

    if message in ERROR_MESSAGE_TO_CODE:
        return ERROR_MESSAGE_TO_CODE[message]

    for key, code in ERROR_MESSAGE_TO_CODE.items():
        if key in message:
            return code

    lowered = message.lower()
    for keywords, code in _KEYWORD_CODES:
        if any(k in lowered for k in keywords):
            return code

    return ErrorCode.INTERNAL_SERVER_ERROR


class AppError(Exception):
    """Base class for failures rendered into the error envelope."""

    status_code = 500
    default_code = ErrorCode.INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, code: int | None = None, errors: list | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.errors = errors
        if code is None:
            code = get_error_code(self.message)
            if code == ErrorCode.INTERNAL_SERVER_ERROR:
                code = self.default_code
        self.code = code


class ValidationError(AppError, ValueError):
    """400-level input problem. `errors` lists every field failure at once."""

    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation error"


class BusinessRuleError(AppError):
    """400-level workflow precondition failure."""

    status_code = 400
    default_code = ErrorCode.BUSINESS_RULE_VIOLATION
    default_message = "Business rule violation"


class ConflictError(AppError, ValueError):
    """409-level uniqueness conflict (duplicate key, second active child)."""

    status_code = 409
    default_code = ErrorCode.DUPLICATE_ENTRY
    default_message = "Duplicate entry"


class AuthenticationError(AppError):
    status_code = 401
    default_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required"


class AccountLockedError(AuthenticationError):
    status_code = 423
    default_code = ErrorCode.ACCOUNT_LOCKED
    default_message = "Account locked due to too many failed login attempts"


class AuthorizationError(AppError):
    status_code = 403
    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"


class RateLimitError(AppError):
    status_code = 429
    default_code = ErrorCode.RATE_LIMIT_EXCEEDED
    default_message = "Too many requests, please try again later"

    def __init__(self, message: str | None = None, *, retry_after: int | None = None):
        super().__init__(message, code=ErrorCode.RATE_LIMIT_EXCEEDED)
        self.retry_after = retry_after


class MailDeliveryError(AppError):
    """The outbound mail relay refused or could not be reached."""

    status_code = 502
    default_code = ErrorCode.EMAIL_SEND_ERROR
    default_message = "Email could not be sent"


def error_body(message: str, code: int, errors: list | None = None) -> dict:
    body = {"success": False, "message": message, "code": code}
    if errors:
        body["errors"] = errors
    return body


def register_error_handlers(app) -> None:
    """Convert every failure into the uniform `{success: false, ...}` envelope."""

    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        if exc.status_code >= 500:
            current_app.logger.error("Application error %s: %s", exc.code, exc.message)
        response = jsonify(error_body(exc.message, exc.code, exc.errors))
        response.status_code = exc.status_code
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        codes = {
            404: ErrorCode.RESOURCE_NOT_FOUND,
            405: ErrorCode.OPERATION_NOT_ALLOWED,
            413: ErrorCode.INVALID_FILE_SIZE,
            429: ErrorCode.RATE_LIMIT_EXCEEDED,
        }
        message = exc.description if exc.code != 404 else "Resource not found"
        code = codes.get(exc.code) or get_error_code(message)
        return jsonify(error_body(message, code)), exc.code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        current_app.logger.warning("Integrity constraint violated: %s", exc.orig)
        return jsonify(error_body("Duplicate entry", ErrorCode.DUPLICATE_ENTRY)), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Database failure")
        message = str(exc) if app.config.get("APP_ENV") == "development" else "Database error"
        return jsonify(error_body(message, ErrorCode.DATABASE_ERROR)), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error")
        if app.config.get("APP_ENV") == "development":
            message = str(exc) or "Internal server error"
        else:
            message = "Internal server error"
        return jsonify(error_body(message, ErrorCode.INTERNAL_SERVER_ERROR)), 500
