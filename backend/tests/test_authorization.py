"""
Authorization tests for role-gated endpoints.

Verifies that:
- The endpoint allow-list and the resource-type gate agree for every role
- Unauthenticated requests get 401
- Roles outside a resource get 403 with code 4001
- ADMIN reaches every resource
"""

import pytest

from twsystem.permissions import (
    API_PREFIX,
    Action,
    Resource,
    Role,
    allowed_path_prefixes,
    can_access_resource,
    is_path_allowed,
    permission_code,
    role_has_permission,
)
from conftest import auth_headers, get_auth_token, make_user


class TestPermissionMatrix:
    """The two authorization gates are derived from one matrix."""

    @pytest.mark.parametrize("role", Role.ALL)
    def test_path_allow_list_matches_resource_gate(self, role):
        prefixes = allowed_path_prefixes(role)
        for resource in Resource.ALL:
            path = f"{API_PREFIX}/{resource}"
            assert (path in prefixes) == can_access_resource(role, resource)

    @pytest.mark.parametrize("role", Role.ALL)
    def test_public_segments_always_allowed(self, role):
        assert is_path_allowed(role, f"{API_PREFIX}/auth/me")
        assert is_path_allowed(role, f"{API_PREFIX}/health")

    def test_admin_holds_every_permission(self):
        for resource in Resource.ALL:
            assert can_access_resource(Role.ADMIN, resource)

    def test_printing_only_reaches_production_sheets(self):
        reachable = [r for r in Resource.ALL if can_access_resource(Role.PRINTING, r)]
        assert reachable == [Resource.PRODUCTION_SHEETS]
        assert not role_has_permission(Role.PRINTING, permission_code(Resource.PRODUCTION_SHEETS, Action.CREATE))
        assert role_has_permission(Role.PRINTING, permission_code(Resource.PRODUCTION_SHEETS, Action.STATUS))

    def test_financing_reaches_clients_and_receipts(self):
        reachable = {r for r in Resource.ALL if can_access_resource(Role.FINANCING, r)}
        assert reachable == {Resource.CLIENTS, Resource.PRODUCTION_RECEIPTS}

    def test_prefix_match_does_not_leak_to_similar_segments(self):
        # "production-sheets" must not grant "production-sheetsX"
        assert not is_path_allowed(Role.PRINTING, f"{API_PREFIX}/production-sheetsX")
        assert is_path_allowed(Role.PRINTING, f"{API_PREFIX}/production-sheets/12/stage")


class TestUnauthenticatedAccess:
    """Protected endpoints require a bearer token."""

    @pytest.mark.parametrize("path", [
        "/api/v1/clients",
        "/api/v1/developments",
        "/api/v1/production-orders",
        "/api/v1/production-sheets",
        "/api/v1/delivery-sheets",
        "/api/v1/production-receipts",
        "/api/v1/users",
        "/api/v1/auth/me",
    ])
    def test_missing_token_returns_401(self, client, db_session, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.json["success"] is False
        assert response.json["code"] == 3001

    def test_garbage_token_returns_401(self, client, db_session):
        response = client.get("/api/v1/clients", headers=auth_headers("not-a-token"))
        assert response.status_code == 401
        assert response.json["code"] == 3004

    def test_health_is_public(self, client, db_session):
        response = client.get("/api/v1/health")
        assert response.status_code == 200


class TestRoleGates:
    """Each role only reaches the resources its permissions cover."""

    @pytest.mark.parametrize("role,path,expected", [
        (Role.DEFAULT, "/api/v1/clients", 200),
        (Role.DEFAULT, "/api/v1/production-sheets", 200),
        (Role.DEFAULT, "/api/v1/production-receipts", 403),
        (Role.DEFAULT, "/api/v1/users", 403),
        (Role.PRINTING, "/api/v1/production-sheets", 200),
        (Role.PRINTING, "/api/v1/clients", 403),
        (Role.PRINTING, "/api/v1/developments", 403),
        (Role.PRINTING, "/api/v1/delivery-sheets", 403),
        (Role.FINANCING, "/api/v1/production-receipts", 200),
        (Role.FINANCING, "/api/v1/clients", 200),
        (Role.FINANCING, "/api/v1/production-orders", 403),
        (Role.ADMIN, "/api/v1/users", 200),
        (Role.ADMIN, "/api/v1/production-receipts", 200),
    ])
    def test_role_reaches_expected_resources(self, client, db_session, role, path, expected):
        user = make_user(db_session, role)
        token = get_auth_token(client, user.email)

        response = client.get(path, headers=auth_headers(token))

        assert response.status_code == expected
        if expected == 403:
            assert response.json["code"] == 4001
            assert role in response.json["message"]

    def test_printing_cannot_create_sheet(self, client, printing_headers, chain):
        """Path is allowed but CREATE is not granted."""
        response = client.post("/api/v1/production-sheets", json={
            "production_order_id": chain["order"].id,
            "expected_exit_date": "2030-01-01T00:00:00Z",
            "machine": 2,
        }, headers=printing_headers)

        assert response.status_code == 403
        assert response.json["code"] == 4001

    def test_printing_cannot_deactivate_sheet(self, client, printing_headers, chain):
        response = client.delete(f"/api/v1/production-sheets/{chain['sheet'].id}", headers=printing_headers)
        assert response.status_code == 403

    def test_me_describes_access(self, client, printing_headers):
        response = client.get("/api/v1/auth/me", headers=printing_headers)

        assert response.status_code == 200
        data = response.json["data"]
        assert data["role"] == Role.PRINTING
        assert "/api/v1/production-sheets" in data["allowed_paths"]
        assert "/api/v1/clients" not in data["allowed_paths"]
        assert "PRODUCTION_SHEETS:STATUS" in data["permissions"]
