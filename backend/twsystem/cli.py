# Overview: Flask CLI command group for bootstrap and maintenance.

# backend/twsystem/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask tw <command> [options]
#
# - python -m flask tw init-db
#   Create all tables (idempotent; use `flask db upgrade` for migrations).
# - python -m flask tw create-admin --name "Admin" --email admin@tw.local --password "secret123"
#   Create an ADMIN account, or promote and reactivate an existing one.
# - python -m flask tw migrate-user-roles
#   Rewrite legacy role values (user, STANDARD, moderator, admin) to the closed role set.
# - python -m flask tw seed-demo
#   Insert a demo client, development, production order and production sheet.
# - python -m flask tw purge-revoked-tokens
#   Delete revoked-token rows whose tokens have expired.

from datetime import timedelta
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import Client, Development, ProductionOrder, ProductionSheet, User
from .permissions import LEGACY_ROLE_MAP, Role
from .services import reference_service, token_service
from .services.auth_service import hash_password, validate_password
from .time_utils import utcnow


@click.group("tw")
def tw_group():
    """Textile workflow bootstrap and maintenance commands."""


@tw_group.command("init-db")
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@tw_group.command("create-admin")
@click.option("--name", prompt=True, help="Display name")
@click.option("--email", prompt=True, help="Login e-mail")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password (6-128 chars)")
@with_appcontext
def create_admin(name, email, password):
    """
    Create an ADMIN account.

    Idempotent: an existing account with the same e-mail is promoted to
    ADMIN, reactivated and unlocked; its password is left unchanged.
    """
    email = email.strip().lower()
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        existing.role = Role.ADMIN
        existing.is_active = True
        existing.login_attempts = 0
        existing.lock_until = None
        db.session.commit()
        click.echo(f"WARN  User {email} already exists; ensured ADMIN role and active status")
        return

    try:
        password_hash = hash_password(validate_password(password))
    except AppError as e:
        raise click.ClickException(e.message)

    user = User(name=name.strip(), email=email, password_hash=password_hash, role=Role.ADMIN, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created admin {email} (ID: {user.id})")


@tw_group.command("migrate-user-roles")
@with_appcontext
def migrate_user_roles():
    """Map legacy role values onto ADMIN/DEFAULT/PRINTING/FINANCING."""
    counts = {}
    unknown = []
    for user in db.session.query(User).all():
        if user.role in Role.ALL:
            continue
        target = LEGACY_ROLE_MAP.get(user.role)
        if target is None:
            unknown.append((user.email, user.role))
            continue
        counts[f"{user.role} -> {target}"] = counts.get(f"{user.role} -> {target}", 0) + 1
        user.role = target
    db.session.commit()

    if not counts:
        click.echo("PASS No legacy roles found")
    for mapping, count in sorted(counts.items()):
        click.echo(f"PASS {mapping}: {count} user(s)")
    for email, role in unknown:
        click.echo(f"WARN  {email} has unknown role {role!r}; left unchanged")


@tw_group.command("seed-demo")
@with_appcontext
def seed_demo():
    """Insert one client with an approved development, an order and a sheet."""
    client = db.session.query(Client).filter_by(acronym="DEMO", active=True).first()
    if client:
        click.echo("WARN  Demo client already exists, skipping...")
        return

    client = Client(
        acronym="DEMO",
        company_name="Demo Textiles Ltda",
        cnpj="11222333000181",
        contact_responsible_name="Maria Silva",
        contact_phone="11999998888",
        contact_email="contato@demo.example",
        address_street="Rua das Flores",
        address_number="100",
        address_neighborhood="Centro",
        address_city="Sao Paulo",
        address_state="SP",
        address_zipcode="01001-000",
        value_per_meter=Decimal("12.50"),
        value_per_piece=Decimal("3.20"),
    )
    db.session.add(client)
    db.session.flush()

    development = Development(
        client_id=client.id,
        internal_reference=reference_service.next_development_reference(client.acronym),
        description="Floral print, summer collection",
        client_reference="SUMMER-01",
        variant_color="blue",
        production_type="rotary",
        production_meters=Decimal("250.00"),
        status="APPROVED",
    )
    db.session.add(development)
    db.session.flush()

    order = ProductionOrder(
        development_id=development.id,
        internal_reference=development.internal_reference,
        fabric_type="Cotton",
        priority="green",
    )
    db.session.add(order)
    db.session.flush()

    now = utcnow()
    sheet = ProductionSheet(
        production_order_id=order.id,
        internal_reference=order.internal_reference,
        entry_date=now,
        expected_exit_date=now + timedelta(days=3),
        machine=1,
    )
    db.session.add(sheet)
    db.session.commit()

    click.echo(f"PASS Seeded client {client.acronym}, development {development.internal_reference}, order and sheet")


@tw_group.command("purge-revoked-tokens")
@with_appcontext
def purge_revoked_tokens():
    """Delete revoked-token rows whose tokens have expired anyway."""
    deleted = token_service.purge_expired_revocations()
    click.echo(f"PASS Purged {deleted} expired revoked token(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(tw_group)
