"""
===============================================================================
TARJETA CRC — tenant_gate/api/session_routes.py (Contexto propagado)
===============================================================================

Responsabilidades:
  - GET /api/session: devolver el AuthContext que dejó el gate.
  - GET /api/session/permissions: permisos efectivos del rol (matriz RBAC).

Colaboradores:
  - identity.propagation.get_auth_context
  - identity.rbac.get_user_permissions

Notas:
  - Rutas PROTECTED: si llegan acá, el gate ya decidió ALLOW.
  - Sin contexto (p.ej. gate no montado) => 401 problem+json.
===============================================================================
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES, unauthorized
from ..identity.propagation import get_auth_context
from ..identity.rbac import get_user_permissions
from ..identity.users import AuthContext, UserRole

router = APIRouter(prefix="/api/session", tags=["session"], responses=OPENAPI_ERROR_RESPONSES)


class SessionResponse(BaseModel):
    user_id: str
    role: UserRole
    tenant_id: str
    is_demo: bool


class PermissionsResponse(BaseModel):
    role: UserRole
    permissions: dict[str, list[str]]


def require_context(
    ctx: Optional[AuthContext] = Depends(get_auth_context),
) -> AuthContext:
    if ctx is None:
        raise unauthorized()
    return ctx


@router.get("", response_model=SessionResponse)
def get_session(ctx: AuthContext = Depends(require_context)) -> SessionResponse:
    return SessionResponse(
        user_id=ctx.user_id,
        role=ctx.role,
        tenant_id=ctx.tenant_id,
        is_demo=ctx.is_demo,
    )


@router.get("/permissions", response_model=PermissionsResponse)
def get_session_permissions(
    ctx: AuthContext = Depends(require_context),
) -> PermissionsResponse:
    permissions = get_user_permissions(ctx.role)
    return PermissionsResponse(
        role=ctx.role,
        permissions={
            resource: sorted(actions) for resource, actions in sorted(permissions.items())
        },
    )
