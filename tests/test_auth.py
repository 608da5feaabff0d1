"""
Tests for bearer-token verification against the hosted auth service.

The auth service is replaced with an httpx.MockTransport.
"""

import httpx
import pytest

from crm import auth


def _mock_auth_service(monkeypatch, handler):
    def client():
        return httpx.AsyncClient(
            base_url="http://auth.test", transport=httpx.MockTransport(handler)
        )

    monkeypatch.setattr(auth, "_auth_client", client)


class TestGetCurrentUser:

    def test_missing_token_is_401(self, anonymous_client):
        response = anonymous_client.get("/api/contacts")

        assert response.status_code == 401
        assert response.json() == {"detail": "Not signed in"}

    def test_valid_token_resolves_user(self, anonymous_client, monkeypatch):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["authorization"] = request.headers.get("authorization")
            return httpx.Response(200, json={"id": "user-1", "email": "agent@example.com"})

        _mock_auth_service(monkeypatch, handler)

        response = anonymous_client.get(
            "/api/contacts", headers={"Authorization": "Bearer good-token"}
        )

        assert response.status_code == 200
        assert response.json() == {"items": []}
        assert seen["path"] == "/auth/v1/user"
        assert seen["authorization"] == "Bearer good-token"

    def test_rejected_token_is_401(self, anonymous_client, monkeypatch):
        _mock_auth_service(monkeypatch, lambda request: httpx.Response(401, json={"msg": "bad jwt"}))

        response = anonymous_client.get(
            "/api/contacts", headers={"Authorization": "Bearer expired"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Not signed in"

    def test_user_payload_without_id_is_401(self, anonymous_client, monkeypatch):
        _mock_auth_service(monkeypatch, lambda request: httpx.Response(200, json={}))

        response = anonymous_client.get("/api/deals", headers={"Authorization": "Bearer odd"})

        assert response.status_code == 401

    def test_non_json_user_payload_is_401(self, anonymous_client, monkeypatch):
        _mock_auth_service(monkeypatch, lambda request: httpx.Response(200, text="<html>gateway</html>"))

        response = anonymous_client.get("/api/deals", headers={"Authorization": "Bearer odd"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Not signed in"}

    def test_unreachable_auth_service_is_503(self, anonymous_client, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        _mock_auth_service(monkeypatch, handler)

        response = anonymous_client.get("/api/tasks", headers={"Authorization": "Bearer t"})

        assert response.status_code == 503

    def test_api_key_is_forwarded(self, anonymous_client, monkeypatch):
        seen = {}

        def handler(request):
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={"id": "user-1"})

        _mock_auth_service(monkeypatch, handler)
        monkeypatch.setattr(auth, "AUTH_API_KEY", "anon-key")

        anonymous_client.get("/api/contacts", headers={"Authorization": "Bearer t"})

        assert seen["apikey"] == "anon-key"


@pytest.mark.parametrize("path", ["/api/properties", "/api/appraisals", "/api/open-homes", "/api/search?q=jo"])
def test_every_api_router_requires_auth(anonymous_client, path):
    assert anonymous_client.get(path).status_code == 401


def test_health_check_is_public(anonymous_client):
    response = anonymous_client.get("/")
    assert response.json() == {"status": "ok", "service": "Agent CRM API"}
