"""Tests for bearer JWT authentication and tenant isolation."""

from __future__ import annotations

import time

import jwt
import pytest

from evogate.api.auth import CurrentClient, issue_token, require_client_access, verify_token
from evogate.domain.errors import AuthorizationError, InternalError
from helpers import TEST_JWT_SECRET, auth_headers


class TestTokens:
    def test_issue_and_verify_round_trip_claims(self):
        token = issue_token("tenant-a", "Tenant A", user_id="u1", role="admin")

        claims = verify_token(token)

        assert claims["clientId"] == "tenant-a"
        assert claims["clientName"] == "Tenant A"
        assert claims["userId"] == "u1"
        assert claims["userRole"] == "admin"
        assert claims["exp"] > time.time()

    def test_expired_token(self):
        token = issue_token("tenant-a", "Tenant A", expires_in=-10)

        with pytest.raises(AuthorizationError, match="Token expired"):
            verify_token(token)

    def test_wrong_signature(self):
        token = jwt.encode(
            {"clientId": "tenant-a", "exp": int(time.time()) + 60}, "other-secret", algorithm="HS256"
        )

        with pytest.raises(AuthorizationError, match="Invalid token"):
            verify_token(token)

    def test_missing_client_id(self):
        token = jwt.encode({"exp": int(time.time()) + 60}, TEST_JWT_SECRET, algorithm="HS256")

        with pytest.raises(AuthorizationError, match="Invalid token"):
            verify_token(token)

    def test_missing_exp(self):
        token = jwt.encode({"clientId": "tenant-a"}, TEST_JWT_SECRET, algorithm="HS256")

        with pytest.raises(AuthorizationError):
            verify_token(token)

    def test_secret_not_configured(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET")

        with pytest.raises(InternalError, match="not configured"):
            issue_token("tenant-a", "Tenant A")

    def test_lifetime_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRES_IN", "120")

        claims = verify_token(issue_token("tenant-a", "Tenant A"))

        assert claims["exp"] - claims["iat"] == 120


class TestClientAccess:
    def test_same_tenant_allowed(self):
        require_client_access(CurrentClient("tenant-a", "A"), "tenant-a")

    def test_unowned_allowed(self):
        require_client_access(CurrentClient("tenant-a", "A"), None)

    def test_other_tenant_forbidden(self):
        with pytest.raises(AuthorizationError) as excinfo:
            require_client_access(CurrentClient("tenant-a", "A"), "tenant-b")

        assert excinfo.value.status_code == 403


class TestProtectedRoutes:
    def test_missing_header_is_401(self, client):
        response = client.get("/api/instances")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Missing authorization header"}

    def test_bearer_token_accepted(self, client):
        response = client.get("/api/instances", headers=auth_headers())

        assert response.status_code == 200

    def test_bare_token_accepted(self, client):
        token = issue_token("tenant-a", "Tenant A")

        response = client.get("/api/instances", headers={"Authorization": token})

        assert response.status_code == 200

    def test_other_scheme_rejected(self, client):
        response = client.get("/api/instances", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid authorization header"

    def test_expired_token_is_401(self, client):
        token = issue_token("tenant-a", "Tenant A", expires_in=-10)

        response = client.get("/api/instances", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token expired"

    def test_secret_not_configured_is_500(self, client, monkeypatch):
        headers = auth_headers()
        monkeypatch.delenv("JWT_SECRET")

        response = client.get("/api/instances", headers=headers)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Authentication not configured"}
