# Overview: Shared list-query parsing, filtering, sorting and pagination.

"""
List Queries

Every collection endpoint accepts the same core parameters:

- page: 1-indexed (default 1)
- limit / per_page: page size, clamped to [1, MAX_PER_PAGE] (default 10)
- sort_by / sort_order: whitelisted column, asc|desc (default created_at desc)
- active: "true" (default), "false" or "all"
- search: case-insensitive substring over resource-specific text columns

Resource services add their own exact-match filters on top.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, or_

from ..errors import ErrorCode, NotFoundError, ValidationError
from ..extensions import db
from ..validation import field_error

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


@dataclass
class ListParams:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    sort_by: str = "created_at"
    sort_desc: bool = True
    active: bool | None = True
    search: str | None = None
    filters: dict = field(default_factory=dict)


def _parse_int(raw, name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid {name} parameter",
            code=ErrorCode.INVALID_DATA,
            errors=[field_error(name, f"{name} must be an integer")],
        )


def parse_active(raw) -> bool | None:
    """"true" -> True, "false" -> False, "all" -> None (no filter). Default True."""
    if raw is None or raw == "":
        return True
    value = str(raw).strip().lower()
    if value == "all":
        return None
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ValidationError(
        "Invalid active parameter",
        code=ErrorCode.INVALID_DATA,
        errors=[field_error("active", "active must be true, false or all")],
    )


def parse_bool(raw, name: str) -> bool | None:
    if raw is None or raw == "":
        return None
    value = str(raw).strip().lower()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ValidationError(
        f"Invalid {name} parameter",
        code=ErrorCode.INVALID_DATA,
        errors=[field_error(name, f"{name} must be true or false")],
    )


def parse_list_params(args, *, filter_keys=(), sortable=()) -> ListParams:
    """
    Parse request.args into ListParams.

    Unknown sort columns fall back to created_at. filter_keys are copied
    verbatim into params.filters when present and non-empty.
    """
    page = max(_parse_int(args.get("page"), "page", 1), 1)
    per_page_raw = args.get("limit", args.get("per_page"))
    per_page = _parse_int(per_page_raw, "limit", DEFAULT_PER_PAGE)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)

    sort_by = args.get("sort_by") or args.get("sortBy") or "created_at"
    if sort_by not in sortable and sort_by != "created_at":
        sort_by = "created_at"
    sort_order = (args.get("sort_order") or args.get("sortOrder") or "desc").lower()

    search = (args.get("search") or "").strip() or None

    filters = {}
    for key in filter_keys:
        value = args.get(key)
        if value is not None and str(value).strip() != "":
            filters[key] = str(value).strip()

    return ListParams(
        page=page,
        per_page=per_page,
        sort_by=sort_by,
        sort_desc=sort_order != "asc",
        active=parse_active(args.get("active")),
        search=search,
        filters=filters,
    )


def apply_active(query, model, active: bool | None):
    if active is None:
        return query
    return query.filter(model.active.is_(active))


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_clause(term: str, columns):
    """OR of case-insensitive substring matches over the given columns."""
    pattern = f"%{escape_like(term)}%"
    return or_(*[col.ilike(pattern, escape="\\") for col in columns])


def apply_sort(query, model, params: ListParams):
    column = getattr(model, params.sort_by, None) or model.created_at
    ordered = column.desc() if params.sort_desc else column.asc()
    tiebreak = model.id.desc() if params.sort_desc else model.id.asc()
    return query.order_by(ordered, tiebreak)


def paginate(query, params: ListParams, serializer=None) -> dict:
    """
    Apply page/per_page to a query.

    Returns {"items": [...], "pagination": {...}}.
    """
    total = query.order_by(None).count()
    total_pages = (total + params.per_page - 1) // params.per_page if total > 0 else 1

    rows = query.offset((params.page - 1) * params.per_page).limit(params.per_page).all()
    serialize = serializer or (lambda row: row.to_dict())

    return {
        "items": [serialize(row) for row in rows],
        "pagination": {
            "page": params.page,
            "per_page": params.per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": params.page < total_pages,
            "has_prev": params.page > 1,
        },
    }


def count_by(query, column, keys) -> dict:
    """Counts grouped by `column`, with zeroes for every expected key."""
    counts = {key: 0 for key in keys}
    for value, count in query.with_entities(column, func.count()).group_by(column).all():
        counts[value] = count
    return counts


def get_by_id_or_reference(model, key, *, message: str, code: int):
    """
    Resolve a record from a path key.

    All-digit keys are primary keys (active or not). Anything else is an
    internal_reference, matched case-insensitively among active records.
    """
    record = None
    key = str(key).strip()
    if key.isdigit():
        record = db.session.get(model, int(key))
    elif key and hasattr(model, "internal_reference"):
        record = (
            db.session.query(model)
            .filter(model.internal_reference == key.upper(), model.active.is_(True))
            .order_by(model.id.desc())
            .first()
        )
    if record is None:
        raise NotFoundError(message, code=code)
    return record


def parse_id(raw, name: str = "id") -> int:
    """Path id to int; anything but a plain non-negative integer is a 400."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    value = str(raw).strip() if raw is not None else ""
    if not (value.isascii() and value.isdigit()):
        raise ValidationError(
            "Invalid ID",
            code=ErrorCode.INVALID_OBJECT_ID,
            errors=[field_error(name, f"{name} must be an integer")],
        )
    return int(value)


def get_or_404(model, record_id, *, message: str, code: int):
    """Primary-key lookup for mutation routes (ids only)."""
    record = db.session.get(model, parse_id(record_id))
    if record is None:
        raise NotFoundError(message, code=code)
    return record


def int_filter(params: ListParams, name: str) -> int | None:
    """Integer-valued exact filter from params.filters (None when absent)."""
    raw = params.filters.get(name)
    if raw is None:
        return None
    return _parse_int(raw, name, 0)
