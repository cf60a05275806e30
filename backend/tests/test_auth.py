"""
Authentication flow tests: register, login, lockout, refresh rotation, logout.
"""

import smtplib
from datetime import timedelta

import pytest

from twsystem.models import User
from twsystem.services import login_throttle_service
from twsystem.time_utils import utcnow
from conftest import PASSWORD, auth_headers, make_user


def _login(client, email, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegister:

    def test_register_forces_default_role(self, client, db_session):
        response = client.post("/api/v1/auth/register", json={
            "name": "New Person",
            "email": "New.Person@tw.test",
            "password": "longenough",
            "role": "ADMIN",
        })

        assert response.status_code == 201
        data = response.json["data"]
        assert data["user"]["role"] == "DEFAULT"
        assert data["user"]["email"] == "new.person@tw.test"
        assert data["access_token"]
        assert data["refresh_token"]
        assert "password_hash" not in data["user"]

    def test_register_duplicate_email(self, client, default_user):
        response = client.post("/api/v1/auth/register", json={
            "name": "Copy",
            "email": default_user.email,
            "password": "longenough",
        })
        assert response.status_code == 409

    def test_register_short_password(self, client, db_session):
        response = client.post("/api/v1/auth/register", json={
            "name": "Short",
            "email": "short@tw.test",
            "password": "123",
        })
        assert response.status_code == 400
        assert response.json["success"] is False


class TestLogin:

    def test_login_success(self, client, admin_user):
        response = _login(client, admin_user.email)

        assert response.status_code == 200
        body = response.json
        assert body["success"] is True
        assert body["data"]["token_type"] == "Bearer"
        assert body["data"]["user"]["email"] == admin_user.email

    def test_login_is_case_insensitive_on_email(self, client, admin_user):
        response = _login(client, admin_user.email.upper())
        assert response.status_code == 200

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/v1/auth/login", json={"email": "x@tw.test"})
        assert response.status_code == 400
        assert response.json["code"] == 1003

    def test_unknown_email(self, client, db_session):
        response = _login(client, "nobody@tw.test")
        assert response.status_code == 401
        assert response.json["code"] == 3002

    def test_wrong_password_counts_attempt(self, client, db_session, default_user):
        response = _login(client, default_user.email, "wrong-password")

        assert response.status_code == 401
        assert response.json["code"] == 3002
        assert db_session.get(User, default_user.id).login_attempts == 1

    def test_inactive_account(self, client, db_session):
        user = make_user(db_session, "DEFAULT", email="gone@tw.test", is_active=False)
        response = _login(client, user.email)
        assert response.status_code == 401
        assert response.json["code"] == 3005

    def test_lockout_after_repeated_failures(self, client, db_session, default_user):
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS):
            assert _login(client, default_user.email, "wrong-password").status_code == 401

        # Correct password is still refused while locked
        response = _login(client, default_user.email)
        assert response.status_code == 423
        assert response.json["code"] == 3006

    def test_expired_lock_allows_login_and_resets(self, client, db_session, default_user):
        default_user.login_attempts = 5
        default_user.lock_until = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = _login(client, default_user.email)

        assert response.status_code == 200
        user = db_session.get(User, default_user.id)
        assert user.login_attempts == 0
        assert user.lock_until is None
        assert user.last_login is not None


class TestTokens:

    def test_refresh_rotates_pair(self, client, default_user):
        tokens = _login(client, default_user.email).json["data"]

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        rotated = response.json["data"]
        assert rotated["refresh_token"] != tokens["refresh_token"]

        # The old refresh token is single-use
        replay = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert replay.status_code == 401

    def test_access_token_is_not_a_refresh_token(self, client, default_user):
        tokens = _login(client, default_user.email).json["data"]

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401
        assert response.json["code"] == 3004

    def test_refresh_token_is_not_an_access_token(self, client, default_user):
        tokens = _login(client, default_user.email).json["data"]

        response = client.get("/api/v1/auth/me", headers=auth_headers(tokens["refresh_token"]))
        assert response.status_code == 401

    def test_logout_revokes_tokens(self, client, default_user):
        tokens = _login(client, default_user.email).json["data"]
        headers = auth_headers(tokens["access_token"])

        response = client.post("/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers)
        assert response.status_code == 200

        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401
        refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 401

    def test_deactivated_user_token_rejected(self, client, db_session, default_headers, default_user):
        default_user.is_active = False
        db_session.commit()

        response = client.get("/api/v1/auth/me", headers=default_headers)
        assert response.status_code == 401
        assert response.json["code"] == 3005


class TestChangePassword:

    def test_change_password(self, client, default_user, default_headers):
        response = client.put("/api/v1/auth/change-password", json={
            "current_password": PASSWORD,
            "new_password": "brand-new-secret",
        }, headers=default_headers)

        assert response.status_code == 200
        assert _login(client, default_user.email, "brand-new-secret").status_code == 200

    def test_wrong_current_password(self, client, default_headers):
        response = client.put("/api/v1/auth/change-password", json={
            "current_password": "nope-nope",
            "new_password": "brand-new-secret",
        }, headers=default_headers)
        assert response.status_code == 401
        assert response.json["code"] == 3002

    @pytest.mark.parametrize("new_password", [PASSWORD, "123"])
    def test_rejects_same_or_short_password(self, client, default_headers, new_password):
        response = client.put("/api/v1/auth/change-password", json={
            "current_password": PASSWORD,
            "new_password": new_password,
        }, headers=default_headers)
        assert response.status_code == 400


def _emailed_token(message) -> str:
    """Last path segment of the link in a captured message."""
    return message.body.strip().rsplit("/", 1)[-1]


class TestPasswordReset:

    def test_forgot_password_mails_a_link(self, client, db_session, default_user, mail_outbox):
        response = client.post("/api/v1/auth/forgot-password", json={"email": default_user.email.upper()})

        assert response.status_code == 200
        assert len(mail_outbox) == 1
        assert mail_outbox[0].to == default_user.email
        assert "/reset-password/" in mail_outbox[0].body

        token = _emailed_token(mail_outbox[0])
        user = db_session.get(User, default_user.id)
        assert user.password_reset_token_hash
        assert user.password_reset_token_hash != token
        assert user.password_reset_expires > utcnow()

    def test_unknown_email_gets_the_same_answer(self, client, db_session, default_user, mail_outbox):
        known = client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})
        mail_outbox.clear()

        unknown = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@tw.test"})

        assert unknown.status_code == 200
        assert unknown.json["message"] == known.json["message"]
        assert mail_outbox == []

    def test_missing_email(self, client, db_session):
        response = client.post("/api/v1/auth/forgot-password", json={})
        assert response.status_code == 400

    def test_reset_with_emailed_token(self, client, db_session, default_user, mail_outbox):
        client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})
        token = _emailed_token(mail_outbox[0])

        response = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "fresh-secret"})

        assert response.status_code == 200
        assert _login(client, default_user.email, "fresh-secret").status_code == 200
        assert _login(client, default_user.email).status_code == 401

        replay = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "other-secret"})
        assert replay.status_code == 400
        assert replay.json["code"] == 3004

    def test_reset_clears_lockout(self, client, db_session, default_user, mail_outbox):
        client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})
        token = _emailed_token(mail_outbox[0])
        user = db_session.get(User, default_user.id)
        user.login_attempts = 5
        user.lock_until = utcnow() + timedelta(hours=1)
        db_session.commit()

        client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "fresh-secret"})

        assert _login(client, default_user.email, "fresh-secret").status_code == 200

    def test_expired_token_rejected(self, client, db_session, default_user, mail_outbox):
        client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})
        token = _emailed_token(mail_outbox[0])
        user = db_session.get(User, default_user.id)
        user.password_reset_expires = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "fresh-secret"})

        assert response.status_code == 400
        assert response.json["code"] == 3004

    @pytest.mark.parametrize("password", [PASSWORD, "123"])
    def test_rejects_current_or_short_password(self, client, db_session, default_user, mail_outbox, password):
        client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})
        token = _emailed_token(mail_outbox[0])

        response = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": password})
        assert response.status_code == 400

    def test_relay_failure_is_reported(self, client, app, db_session, default_user, monkeypatch):
        def refuse(message):
            raise smtplib.SMTPServerDisconnected("relay down")

        monkeypatch.setattr(app.extensions["twsystem.mail"], "send", refuse)

        response = client.post("/api/v1/auth/forgot-password", json={"email": default_user.email})

        assert response.status_code == 502
        assert response.json["code"] == 6004


class TestEmailVerification:

    def test_resend_then_verify(self, client, db_session, default_user, default_headers, mail_outbox):
        response = client.post("/api/v1/auth/resend-verification", headers=default_headers)
        assert response.status_code == 200
        assert len(mail_outbox) == 1
        token = _emailed_token(mail_outbox[0])

        response = client.post(f"/api/v1/auth/verify-email/{token}")
        assert response.status_code == 200
        assert db_session.get(User, default_user.id).email_verified is True

        me = client.get("/api/v1/auth/me", headers=default_headers).json["data"]
        assert me["email_verified"] is True

        replay = client.post(f"/api/v1/auth/verify-email/{token}")
        assert replay.status_code == 400

    def test_resend_replaces_previous_token(self, client, db_session, default_headers, mail_outbox):
        client.post("/api/v1/auth/resend-verification", headers=default_headers)
        client.post("/api/v1/auth/resend-verification", headers=default_headers)
        first, second = (_emailed_token(message) for message in mail_outbox)

        assert client.post(f"/api/v1/auth/verify-email/{first}").status_code == 400
        assert client.post(f"/api/v1/auth/verify-email/{second}").status_code == 200

    def test_already_verified(self, client, db_session, default_user, default_headers, mail_outbox):
        user = db_session.get(User, default_user.id)
        user.email_verified = True
        db_session.commit()

        response = client.post("/api/v1/auth/resend-verification", headers=default_headers)

        assert response.status_code == 400
        assert response.json["code"] == 2006
        assert mail_outbox == []

    def test_resend_requires_login(self, client, db_session):
        response = client.post("/api/v1/auth/resend-verification")
        assert response.status_code == 401

    def test_unknown_token(self, client, db_session):
        response = client.post("/api/v1/auth/verify-email/not-a-real-token")
        assert response.status_code == 400
        assert response.json["code"] == 3004
