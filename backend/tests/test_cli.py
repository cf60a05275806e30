"""
CLI command tests (flask tw ...).
"""

from datetime import timedelta

from twsystem.models import Client, Development, ProductionSheet, RevokedToken, User
from twsystem.time_utils import utcnow
from conftest import make_user


class TestCli:

    def test_create_admin(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "tw", "create-admin", "--name", "Root", "--email", "Root@TW.test", "--password", "secret123",
        ])

        assert result.exit_code == 0
        assert "PASS" in result.output
        user = db_session.query(User).filter_by(email="root@tw.test").one()
        assert user.role == "ADMIN"

    def test_create_admin_promotes_existing(self, app, db_session):
        user = make_user(db_session, "DEFAULT", email="boss@tw.test", is_active=False)

        result = app.test_cli_runner().invoke(args=[
            "tw", "create-admin", "--name", "Boss", "--email", "boss@tw.test", "--password", "secret123",
        ])

        assert result.exit_code == 0
        db_session.refresh(user)
        assert user.role == "ADMIN"
        assert user.is_active is True

    def test_create_admin_rejects_short_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "tw", "create-admin", "--name", "Root", "--email", "root@tw.test", "--password", "123",
        ])
        assert result.exit_code != 0
        assert db_session.query(User).count() == 0

    def test_migrate_user_roles(self, app, db_session):
        make_user(db_session, "user", email="legacy@tw.test")
        make_user(db_session, "ROOT", email="odd@tw.test")

        result = app.test_cli_runner().invoke(args=["tw", "migrate-user-roles"])

        assert result.exit_code == 0
        roles = {u.email: u.role for u in db_session.query(User).all()}
        assert roles["legacy@tw.test"] == "DEFAULT"
        assert roles["odd@tw.test"] == "ROOT"
        assert "unknown role" in result.output

    def test_seed_demo_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        assert runner.invoke(args=["tw", "seed-demo"]).exit_code == 0
        second = runner.invoke(args=["tw", "seed-demo"])

        assert "already exists" in second.output
        assert db_session.query(Client).count() == 1
        development = db_session.query(Development).one()
        assert development.internal_reference.endswith("DEMO0001")
        assert db_session.query(ProductionSheet).one().internal_reference == development.internal_reference

    def test_purge_revoked_tokens(self, app, db_session):
        db_session.add_all([
            RevokedToken(jti="old", token_type="access", expires_at=utcnow() - timedelta(days=1)),
            RevokedToken(jti="new", token_type="access", expires_at=utcnow() + timedelta(days=1)),
        ])
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["tw", "purge-revoked-tokens"])

        assert "Purged 1" in result.output
        assert [t.jti for t in db_session.query(RevokedToken).all()] == ["new"]
