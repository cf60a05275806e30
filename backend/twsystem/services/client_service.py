# Overview: Service-layer operations for clients; encapsulates business logic and database work.

"""
Client Service

Clients are the root of the production chain: every development belongs to
one. They are soft-deleted only.

BUSINESS RULES:
- acronym and cnpj are unique among active clients
- cnpj is stored as 14 digits regardless of the punctuation submitted
- contact/address/values are nested in the API and flat in the table
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import BusinessRuleError, ConflictError, ErrorCode
from ..extensions import db
from ..models import Client
from ..validation import ModelValidationPolicy, normalize_zip, validate_payload
from . import query_service
from .concurrency import commit_or_conflict

logger = logging.getLogger(__name__)

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "acronym", "company_name", "cnpj",
        "contact_responsible_name", "contact_phone", "contact_email",
        "address_street", "address_number", "address_complement", "address_neighborhood",
        "address_city", "address_state", "address_zipcode",
        "value_per_meter", "value_per_piece",
    },
    required_on_create={
        "acronym", "company_name", "cnpj",
        "contact_responsible_name", "contact_phone", "contact_email",
        "address_street", "address_number", "address_neighborhood",
        "address_city", "address_state", "address_zipcode",
    },
    groups={
        "contact": {
            "responsible_name": "contact_responsible_name",
            "phone": "contact_phone",
            "email": "contact_email",
        },
        "address": {
            "street": "address_street",
            "number": "address_number",
            "complement": "address_complement",
            "neighborhood": "address_neighborhood",
            "city": "address_city",
            "state": "address_state",
            "zipcode": "address_zipcode",
        },
        "values": {
            "value_per_meter": "value_per_meter",
            "value_per_piece": "value_per_piece",
        },
    },
)

SORTABLE = ("acronym", "company_name", "cnpj", "updated_at")
SEARCH_COLUMNS = (
    Client.acronym,
    Client.company_name,
    Client.cnpj,
    Client.contact_responsible_name,
    Client.address_city,
)
QUICK_SEARCH_LIMIT = 10


def _client_rules(patch: dict, errors: list, partial: bool) -> None:
    if patch.get("address_zipcode"):
        patch["address_zipcode"] = normalize_zip(patch["address_zipcode"])


def _ensure_unique(*, acronym=None, cnpj=None, exclude_id=None) -> None:
    """Application-level pre-check; the partial unique indexes are the final guard."""
    checks = (
        (Client.acronym, acronym, "A client with this acronym already exists"),
        (Client.cnpj, cnpj, "A client with this CNPJ already exists"),
    )
    for column, value, message in checks:
        if value is None:
            continue
        query = db.session.query(Client.id).filter(column == value, Client.active.is_(True))
        if exclude_id is not None:
            query = query.filter(Client.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(message, code=ErrorCode.DUPLICATE_ENTRY)


def list_clients(args) -> dict:
    params = query_service.parse_list_params(args, sortable=SORTABLE)
    query = query_service.apply_active(db.session.query(Client), Client, params.active)
    if params.search:
        query = query.filter(query_service.search_clause(params.search, SEARCH_COLUMNS))
    query = query_service.apply_sort(query, Client, params)
    return query_service.paginate(query, params)


def quick_search(term: str | None) -> list[dict]:
    """Typeahead lookup over active clients."""
    term = (term or "").strip()
    if not term:
        return []
    rows = (
        db.session.query(Client)
        .filter(Client.active.is_(True), query_service.search_clause(term, SEARCH_COLUMNS))
        .order_by(Client.company_name.asc())
        .limit(QUICK_SEARCH_LIMIT)
        .all()
    )
    return [row.to_summary() for row in rows]


def get_client(key) -> Client:
    return query_service.get_by_id_or_reference(
        Client, key, message="Client not found", code=ErrorCode.CLIENT_NOT_FOUND
    )


def get_client_by_id(client_id: int) -> Client:
    return query_service.get_or_404(Client, client_id, message="Client not found", code=ErrorCode.CLIENT_NOT_FOUND)


def create_client(payload: dict) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False, rules=_client_rules)
    _ensure_unique(acronym=patch["acronym"], cnpj=patch["cnpj"])

    client = Client(**patch)
    db.session.add(client)
    commit_or_conflict("A client with this acronym or CNPJ already exists")
    logger.info("Client %s (%s) created", client.id, client.acronym)
    return client


def update_client(client_id: int, payload: dict) -> Client:
    client = get_client_by_id(client_id)
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True, rules=_client_rules)
    if client.active:
        _ensure_unique(acronym=patch.get("acronym"), cnpj=patch.get("cnpj"), exclude_id=client.id)

    for key, value in patch.items():
        setattr(client, key, value)
    commit_or_conflict("A client with this acronym or CNPJ already exists")
    return client


def deactivate_client(client_id: int) -> Client:
    client = get_client_by_id(client_id)
    client.active = False
    db.session.commit()
    logger.info("Client %s deactivated", client.id)
    return client


def activate_client(client_id: int) -> Client:
    client = get_client_by_id(client_id)
    if client.active:
        raise BusinessRuleError("Client is already active", code=ErrorCode.OPERATION_NOT_ALLOWED)
    _ensure_unique(acronym=client.acronym, cnpj=client.cnpj, exclude_id=client.id)
    client.active = True
    commit_or_conflict("A client with this acronym or CNPJ already exists")
    return client


def client_stats() -> dict:
    total = db.session.query(func.count(Client.id)).scalar() or 0
    active = db.session.query(func.count(Client.id)).filter(Client.active.is_(True)).scalar() or 0
    return {"total": total, "active": active, "inactive": total - active}
