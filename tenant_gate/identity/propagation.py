"""
===============================================================================
TARJETA CRC — identity/propagation.py
===============================================================================

Módulo:
    Context Propagator

Responsabilidades:
    - Quitar SIEMPRE los headers x-user-* que manda el cliente (anti-spoofing).
    - En ALLOW con identidad: reescribir x-user-id / x-user-role / x-user-tenant
      en el scope ASGI, dejar AuthContext en request.state y en ContextVars.

Colaboradores:
    - identity/gate.py (lo invoca antes de call_next)
    - tenant_gate/context.py (ContextVars para logs)

Notas:
    - Nunca incluye tokens.
    - No muta Profile ni Identity: AuthContext es inmutable.
===============================================================================
"""

from __future__ import annotations

from typing import Optional

from starlette.requests import Request

from ..context import set_identity_context
from .users import AuthContext

IDENTITY_HEADER_PREFIX = b"x-user-"


def strip_identity_headers(request: Request) -> None:
    """Elimina del scope cualquier header x-user-* entrante."""
    headers = request.scope.get("headers") or []
    request.scope["headers"] = [
        (name, value)
        for name, value in headers
        if not name.lower().startswith(IDENTITY_HEADER_PREFIX)
    ]


def propagate(request: Request, context: Optional[AuthContext]) -> None:
    """Aplica el contexto autorizado al request (headers + state + contextvars)."""
    strip_identity_headers(request)
    request.state.auth_context = context
    if context is None:
        return

    request.scope["headers"].extend(
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in context.as_headers().items()
    )
    set_identity_context(
        user_id=context.user_id, role=context.role.value, tenant_id=context.tenant_id
    )


def get_auth_context(request: Request) -> Optional[AuthContext]:
    """Dependency FastAPI: contexto propagado por el gate (o None en rutas públicas)."""
    return getattr(request.state, "auth_context", None)
