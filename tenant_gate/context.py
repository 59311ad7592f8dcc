"""
===============================================================================
TARJETA CRC — tenant_gate/context.py (Contexto por request)
===============================================================================

Responsabilidades:
  - Mantener contexto “request-scoped” usando ContextVars (async-safe).
  - Permitir correlación de logs/métricas sin pasar parámetros por todo el stack.
  - Exponer la identidad propagada por el gate (user_id/role/tenant_id) en logs.
  - Proveer helpers mínimos: set_*(), get_context_dict(), clear_context().

Colaboradores:
  - crosscutting.middleware: setea request_id/method/path al inicio del request.
  - identity.propagation: setea user_id/role/tenant_id cuando el gate permite.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
  - Nunca tokens ni valores de cookies.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

# =============================================================================
# ContextVars
# =============================================================================

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

http_method_var: ContextVar[str] = ContextVar("http_method", default="")
http_path_var: ContextVar[str] = ContextVar("http_path", default="")

# Identidad autorizada por el gate (solo en ALLOW con identidad).
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
user_role_var: ContextVar[str] = ContextVar("user_role", default="")
tenant_id_var: ContextVar[str] = ContextVar("tenant_id", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_METHOD: Final[str] = "method"
_CTX_PATH: Final[str] = "path"
_CTX_USER_ID: Final[str] = "user_id"
_CTX_ROLE: Final[str] = "role"
_CTX_TENANT_ID: Final[str] = "tenant_id"


# =============================================================================
# API pública
# =============================================================================


def set_request_context(
    *, request_id: str = "", method: str = "", path: str = ""
) -> None:
    """
    Setea el contexto mínimo del request.

    Regla:
      - Strings vacíos significan “no disponible”.
    """
    request_id_var.set(request_id or "")
    http_method_var.set(method or "")
    http_path_var.set(path or "")


def set_identity_context(
    *, user_id: str = "", role: str = "", tenant_id: str = ""
) -> None:
    """Setea la identidad autorizada para correlación de logs."""
    user_id_var.set(user_id or "")
    user_role_var.set(role or "")
    tenant_id_var.set(tenant_id or "")


def get_context_dict() -> dict[str, str]:
    """
    Devuelve el contexto actual como dict, omitiendo claves vacías.
    """
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := http_method_var.get():
        ctx[_CTX_METHOD] = val
    if val := http_path_var.get():
        ctx[_CTX_PATH] = val
    if val := user_id_var.get():
        ctx[_CTX_USER_ID] = val
    if val := user_role_var.get():
        ctx[_CTX_ROLE] = val
    if val := tenant_id_var.get():
        ctx[_CTX_TENANT_ID] = val

    return ctx


def clear_context() -> None:
    """
    Limpia el contexto al final del request.

    Importante:
      - Evita “filtración de contexto” entre requests.
    """
    request_id_var.set("")
    http_method_var.set("")
    http_path_var.set("")
    user_id_var.set("")
    user_role_var.set("")
    tenant_id_var.set("")
