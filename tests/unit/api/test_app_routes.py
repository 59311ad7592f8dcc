"""
Name: Application Routes Tests

Responsibilities:
  - Exercise the real app wiring (lifespan, middleware order, routers)
  - Demo entry point: mock-login cookie, unknown company, logout, disabled
  - Protected session endpoint behind the gate
  - Health and metrics endpoints

Notes:
  - No DATABASE_URL / IDENTITY_PROVIDER_URL: in-memory store, demo-only sessions
"""

import pytest
from fastapi.testclient import TestClient

from tenant_gate.main import app

pytestmark = pytest.mark.unit


@pytest.fixture
def client():
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


def _login(client: TestClient, company_id: str = "freshfoods"):
    return client.post("/api/auth/mock-login", json={"companyId": company_id})


def test_healthz_returns_request_id(client):
    response = client.get("/healthz", headers={"X-Request-Id": "req-123"})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "request_id": "req-123"}
    assert response.headers["x-request-id"] == "req-123"


def test_mock_login_sets_signed_demo_cookie(client):
    response = _login(client)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "loginUrl": "/admin",
        "companyName": "Fresh Foods Restaurant",
        "message": "Demo login successful for Fresh Foods Restaurant",
    }
    set_cookie = response.headers["set-cookie"].lower()
    assert set_cookie.startswith("demo-session=")
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "max-age=86400" in set_cookie


def test_mock_login_unknown_company_is_problem_json(client):
    response = _login(client, "acme")

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["code"] == "BAD_REQUEST"
    assert body["detail"] == "Invalid company ID"
    assert "set-cookie" not in response.headers


def test_mock_login_requires_company_id(client):
    response = client.post("/api/auth/mock-login", json={})

    assert response.status_code == 422


def test_session_requires_authentication(client):
    response = client.get("/api/session")

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirectTo=/api/session"


def test_demo_login_then_session_context(client):
    _login(client, "swiftlogistics")

    response = client.get("/api/session")

    assert response.status_code == 200
    assert response.json() == {
        "user_id": "demo:swiftlogistics",
        "role": "ADMIN",
        "tenant_id": "swiftlogistics",
        "is_demo": True,
    }


def test_session_permissions_for_demo_admin(client):
    _login(client)

    response = client.get("/api/session/permissions")

    assert response.status_code == 200
    permissions = response.json()["permissions"]
    assert permissions["products"] == ["create", "delete", "read", "update"]
    assert "tenants" not in permissions


def test_demo_logout_clears_cookie(client):
    _login(client)

    response = client.post("/api/auth/demo-logout")

    assert response.status_code == 200
    assert "max-age=0" in response.headers["set-cookie"].lower()
    assert client.get("/api/session").status_code == 307


def test_demo_routes_disabled(monkeypatch):
    monkeypatch.setenv("DEMO_SESSIONS_ENABLED", "false")

    with TestClient(app, follow_redirects=False) as disabled_client:
        response = _login(disabled_client)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_metrics_exposes_gate_decisions(client):
    client.get("/api/session")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "gate_decisions_total" in response.text
    assert "gate_requests_total" in response.text


def test_request_metrics_label_unrouted_paths_by_route_class(client):
    client.get("/admin/orders/unrouted-7c1e")

    body = client.get("/metrics").text

    assert 'endpoint="unmatched:admin"' in body
    assert "unrouted-7c1e" not in body
