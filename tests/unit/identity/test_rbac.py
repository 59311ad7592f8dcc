"""
Name: RBAC Tests

Responsibilities:
  - Verify role -> route class table
  - Verify role -> resource permission matrix and SUPERADMIN inheritance
  - Verify require_permission dependency (401 / 403 / pass-through)
"""

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from tenant_gate.api.exception_handlers import register_exception_handlers
from tenant_gate.identity.rbac import (
    ADMIN_ROLES,
    get_user_permissions,
    has_permission,
    require_permission,
    role_permits,
)
from tenant_gate.identity.routes import RouteClass
from tenant_gate.identity.users import AuthContext, UserRole

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("role", list(UserRole))
def test_every_role_reaches_protected_and_public(role):
    assert role_permits(role, RouteClass.PROTECTED) is True
    assert role_permits(role, RouteClass.PUBLIC) is True
    assert role_permits(role, RouteClass.PUBLIC_API) is True


@pytest.mark.parametrize("role", [UserRole.USER, UserRole.CUSTOMER])
def test_basic_roles_cannot_reach_admin(role):
    assert role not in ADMIN_ROLES
    assert role_permits(role, RouteClass.ADMIN) is False


def test_only_superadmin_reaches_superadmin_routes():
    allowed = [r for r in UserRole if role_permits(r, RouteClass.SUPERADMIN)]

    assert allowed == [UserRole.SUPERADMIN]


def test_store_manager_reaches_admin():
    assert role_permits(UserRole.STORE_MANAGER, RouteClass.ADMIN) is True


def test_superadmin_inherits_admin_permissions():
    permissions = get_user_permissions(UserRole.SUPERADMIN)

    assert "create" in permissions["products"]
    assert "manage" in permissions["tenants"]
    assert has_permission(UserRole.SUPERADMIN, "mpesa", "reconcile") is True


def test_admin_has_no_platform_permissions():
    assert has_permission(UserRole.ADMIN, "products", "delete") is True
    assert has_permission(UserRole.ADMIN, "tenants", "read") is False


def test_limited_roles():
    assert has_permission(UserRole.ANALYTICS_VIEWER, "analytics", "read") is True
    assert has_permission(UserRole.ANALYTICS_VIEWER, "analytics", "export") is False
    assert get_user_permissions(UserRole.CUSTOMER) == {}


def test_admin_route_class_is_the_admin_role_set():
    permitted = {role for role in UserRole if role_permits(role, RouteClass.ADMIN)}

    assert permitted == set(ADMIN_ROLES)


def _build_app(context: AuthContext | None) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.middleware("http")
    async def inject_context(request: Request, call_next):
        if context is not None:
            request.state.auth_context = context
        return await call_next(request)

    @app.post("/products")
    def create_product(ctx: AuthContext = Depends(require_permission("products", "create"))):
        return {"user_id": ctx.user_id}

    @app.get("/tenants")
    def list_tenants(_: AuthContext = Depends(require_permission("tenants", "read"))):
        return {"ok": True}

    return app


def test_require_permission_allows_granted_action():
    client = TestClient(_build_app(AuthContext("u-1", UserRole.ADMIN, "t-1")))

    response = client.post("/products")

    assert response.status_code == 200
    assert response.json() == {"user_id": "u-1"}


def test_require_permission_forbids_missing_action():
    client = TestClient(_build_app(AuthContext("u-1", UserRole.ADMIN, "t-1")))

    response = client.get("/tenants")

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "FORBIDDEN"


def test_require_permission_without_context_is_unauthorized():
    client = TestClient(_build_app(None))

    response = client.post("/products")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_require_permission_exposes_requirement():
    dependency = require_permission("orders", "process")

    assert dependency._required_permission == ("orders", "process")
