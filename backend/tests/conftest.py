"""
Pytest fixtures for twsystem backend tests.

Provides test database setup, one user per role, auth headers and small
factories for the production chain (client -> development -> order -> sheet).
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from twsystem import create_app
from twsystem.config import TestConfig
from twsystem.extensions import db
from twsystem.models import Client, Development, ProductionOrder, ProductionSheet, User
from twsystem.permissions import Role
from twsystem.services.auth_service import hash_password
from twsystem.services.reference_service import development_reference_prefix
from twsystem.time_utils import utcnow

PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def mail_outbox(app):
    """Messages captured by the in-memory mail backend during one test."""
    outbox = app.extensions["twsystem.mail"].outbox
    outbox.clear()
    yield outbox
    outbox.clear()


def make_user(db_session, role: str, email: str | None = None, **overrides) -> User:
    user = User(
        name=overrides.pop("name", f"{role.title()} User"),
        email=email or f"{role.lower()}@tw.test",
        password_hash=hash_password(overrides.pop("password", PASSWORD)),
        role=role,
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, Role.ADMIN)


@pytest.fixture(scope='function')
def default_user(db_session):
    return make_user(db_session, Role.DEFAULT)


@pytest.fixture(scope='function')
def printing_user(db_session):
    return make_user(db_session, Role.PRINTING)


@pytest.fixture(scope='function')
def financing_user(db_session):
    return make_user(db_session, Role.FINANCING)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get an access token for a user."""
    response = client.post('/api/v1/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data'].get('access_token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def default_headers(client, default_user):
    return auth_headers(get_auth_token(client, default_user.email))


@pytest.fixture(scope='function')
def printing_headers(client, printing_user):
    return auth_headers(get_auth_token(client, printing_user.email))


@pytest.fixture(scope='function')
def financing_headers(client, financing_user):
    return auth_headers(get_auth_token(client, financing_user.email))


# =============================================================================
# DOMAIN FACTORIES
# =============================================================================

def client_payload(acronym: str = "ABC", cnpj: str = "11.222.333/0001-81", **overrides) -> dict:
    payload = {
        "acronym": acronym,
        "company_name": f"{acronym} Tecidos Ltda",
        "cnpj": cnpj,
        "contact": {
            "responsible_name": "Joana Souza",
            "phone": "11987654321",
            "email": "Joana@Example.com",
        },
        "address": {
            "street": "Rua Augusta",
            "number": "500",
            "neighborhood": "Consolacao",
            "city": "Sao Paulo",
            "state": "sp",
            "zipcode": "01305000",
        },
        "values": {"value_per_meter": 10.5, "value_per_piece": 2},
    }
    payload.update(overrides)
    return payload


def make_client(db_session, acronym: str = "ABC", cnpj: str = "11222333000181", **overrides) -> Client:
    record = Client(
        acronym=acronym,
        company_name=overrides.pop("company_name", f"{acronym} Tecidos Ltda"),
        cnpj=cnpj,
        contact_responsible_name="Joana Souza",
        contact_phone="11987654321",
        contact_email="joana@example.com",
        address_street="Rua Augusta",
        address_number="500",
        address_neighborhood="Consolacao",
        address_city="Sao Paulo",
        address_state="SP",
        address_zipcode="01305-000",
        value_per_meter=Decimal("10.50"),
        value_per_piece=Decimal("2.00"),
        **overrides,
    )
    db_session.add(record)
    db_session.commit()
    return record


def make_development(db_session, client_record: Client, reference: str | None = None,
                     status: str = "APPROVED", **overrides) -> Development:
    record = Development(
        client_id=client_record.id,
        internal_reference=reference or development_reference_prefix(client_record.acronym) + "0001",
        description=overrides.pop("description", "Floral print"),
        production_type="rotary",
        production_meters=Decimal("120.00"),
        status=status,
        **overrides,
    )
    db_session.add(record)
    db_session.commit()
    return record


def make_order(db_session, development: Development, status: str = "CREATED", **overrides) -> ProductionOrder:
    record = ProductionOrder(
        development_id=development.id,
        internal_reference=development.internal_reference,
        fabric_type=overrides.pop("fabric_type", "Cotton"),
        status=status,
        **overrides,
    )
    db_session.add(record)
    db_session.commit()
    return record


def make_sheet(db_session, order: ProductionOrder, stage: str = "PRINTING", **overrides) -> ProductionSheet:
    now = utcnow()
    record = ProductionSheet(
        production_order_id=order.id,
        internal_reference=order.internal_reference,
        entry_date=overrides.pop("entry_date", now),
        expected_exit_date=overrides.pop("expected_exit_date", now + timedelta(days=2)),
        machine=overrides.pop("machine", 1),
        stage=stage,
        temperature=overrides.pop("temperature", 180.0),
        **overrides,
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(scope='function')
def chain(db_session):
    """Client with an approved development, a PILOT_PRODUCTION order and a PRINTING sheet."""
    client_record = make_client(db_session)
    development = make_development(db_session, client_record)
    order = make_order(db_session, development, status="PILOT_PRODUCTION")
    sheet = make_sheet(db_session, order)
    return {"client": client_record, "development": development, "order": order, "sheet": sheet}
