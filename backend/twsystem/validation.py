from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from twsystem.errors import ErrorCode, ValidationError
from twsystem.time_utils import parse_iso_datetime

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Rule hooks receive the cleaned patch and append {"field", "message"} dicts
RuleHook = Callable[[dict, list, bool], None]


class FieldError(ValueError):
    """Single-field coercion failure, collected into a ValidationError."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: columns clients are allowed to set (security boundary)
    - required_on_create: columns required for POST
    - groups: nested payload objects flattened onto columns,
      e.g. {"contact": {"email": "contact_email"}}
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    groups: dict[str, dict[str, str]] = field(default_factory=dict)

    def label(self, column: str) -> str:
        """Payload path for a column (used in error messages)."""
        for group, members in self.groups.items():
            for key, col in members.items():
                if col == column:
                    return f"{group}.{key}"
        return column


def field_error(field_name: str, message: str) -> dict:
    return {"field": field_name, "message": message}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _flatten(payload: dict, policy: ModelValidationPolicy, errors: list) -> dict:
    flat: dict = {}
    for key, value in payload.items():
        members = policy.groups.get(key)
        if members is None:
            flat[key] = value
            continue
        if value is None:
            continue
        if not isinstance(value, dict):
            errors.append(field_error(key, f"{key} must be an object"))
            continue
        for sub_key, sub_value in value.items():
            column = members.get(sub_key)
            if column is None:
                errors.append(field_error(f"{key}.{sub_key}", "Field not allowed"))
                continue
            flat[column] = sub_value
    return flat


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise FieldError("must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise FieldError("must be an integer")
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise FieldError("must be an integer")

    # Decimals / floats
    if isinstance(coltype, (Numeric, Float)):
        if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
            raise FieldError("must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise FieldError("must be a number")
        if not number.is_finite():
            raise FieldError("must be a finite number")
        if isinstance(coltype, Float):
            return float(number)
        scale = coltype.scale if coltype.scale is not None else 2
        return number.quantize(Decimal(1).scaleb(-scale))

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise FieldError("must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise FieldError("must be an ISO-8601 datetime")
            if dt is None:
                raise FieldError("must be an ISO-8601 datetime")
            return dt
        raise FieldError("must be an ISO-8601 datetime")

    if isinstance(coltype, JSON):
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise FieldError("must be a string")
        return str(value).strip()

    return value


def _apply_column_rules(col, value: Any) -> Any:
    """Transforms and range checks declared in Column.info."""
    info = col.info or {}

    if isinstance(value, str):
        if info.get("digits_only"):
            value = re.sub(r"\D", "", value)
        if info.get("upper"):
            value = value.upper()
        if info.get("lower"):
            value = value.lower()

        min_length = info.get("min_length")
        if min_length and len(value) < min_length:
            raise FieldError(f"must have at least {min_length} characters")
        if isinstance(col.type, String) and col.type.length and len(value) > col.type.length:
            raise FieldError(f"must have at most {col.type.length} characters")
        exact_length = info.get("exact_length")
        if exact_length and len(value) != exact_length:
            raise FieldError(f"must have exactly {exact_length} characters")
        pattern = info.get("pattern")
        if pattern and value and not re.fullmatch(pattern, value):
            raise FieldError(info.get("pattern_message", "has an invalid format"))
        if info.get("email") and value and not EMAIL_RE.match(value):
            raise FieldError("must be a valid email")

    choices = info.get("choices")
    if choices is not None and value not in choices:
        raise FieldError(f"must be one of: {', '.join(str(c) for c in choices)}")

    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        minimum = info.get("min")
        maximum = info.get("max")
        if minimum is not None and value < minimum:
            raise FieldError(f"must be greater than or equal to {minimum}")
        if maximum is not None and value > maximum:
            raise FieldError(f"must be less than or equal to {maximum}")

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
    rules: RuleHook | None = None,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length, Column.info)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - an optional rule hook for cross-field business rules
    Returns a cleaned patch dict keyed by column name.

    Every problem is collected; a single ValidationError lists them all.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload", code=ErrorCode.INVALID_DATA)

    errors: list[dict] = []
    flat = _flatten(payload, policy, errors)
    cols = _columns_by_key(model)

    if not partial:
        for name in sorted(policy.required_on_create):
            raw = flat.get(name)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors.append(field_error(policy.label(name), f"{policy.label(name)} is required"))

    patch: dict = {}

    for k, raw in flat.items():
        label = policy.label(k)
        if k not in policy.writable_fields or k not in cols:
            errors.append(field_error(label, "Field not allowed"))
            continue
        col = cols[k]

        if raw is None or (isinstance(raw, str) and not raw.strip() and col.nullable):
            if not col.nullable:
                if partial:
                    errors.append(field_error(label, f"{label} cannot be null"))
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
            if isinstance(val, str) and val == "" and not col.nullable:
                if partial:
                    raise FieldError("cannot be blank")
                continue
            val = _apply_column_rules(col, val)
        except FieldError as exc:
            errors.append(field_error(label, f"{label} {exc}"))
            continue

        patch[k] = val

    if rules is not None:
        rules(patch, errors, partial)

    if errors:
        raise ValidationError("Validation failed", code=ErrorCode.VALIDATION_ERROR, errors=errors)

    return patch


def require_enum(value: Any, allowed, label: str) -> str:
    """Validate a single enum value submitted on its own (status-only endpoints)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(
            f"{label} is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error(label, f"{label} is required")],
        )
    if not isinstance(value, str) or value.strip() not in allowed:
        raise ValidationError(
            f"Invalid {label}",
            code=ErrorCode.INVALID_ENUM_VALUE,
            errors=[field_error(label, f"{label} must be one of: {', '.join(allowed)}")],
        )
    return value.strip()


def parse_number(value: Any, label: str, *, minimum: Decimal | None = None) -> Decimal:
    """Parse a standalone monetary amount (e.g. process-payment body)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(
            f"{label} is required",
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            errors=[field_error(label, f"{label} is required")],
        )
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        number = None
    if number is None or not number.is_finite():
        raise ValidationError(
            f"{label} must be a number",
            code=ErrorCode.INVALID_DATA,
            errors=[field_error(label, f"{label} must be a number")],
        )
    if minimum is not None and number < minimum:
        raise ValidationError(
            f"{label} out of range",
            code=ErrorCode.INVALID_NUMBER_RANGE,
            errors=[field_error(label, f"{label} must be greater than {minimum}")],
        )
    return number.quantize(Decimal("0.01"))


def normalize_zip(value: str) -> str:
    """`12345678` -> `12345-678`; already hyphenated values pass through."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) == 8:
        return f"{digits[:5]}-{digits[5:]}"
    return value
