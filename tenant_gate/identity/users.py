"""
===============================================================================
TARJETA CRC — identity/users.py
===============================================================================

Módulo:
    Modelos de identidad, perfil y rol

Responsabilidades:
    - Definir el enum cerrado de roles (UserRole).
    - Definir Identity (dueño: proveedor de identidad, nunca persistido).
    - Definir Profile y RoleBinding (lectura desde el store de perfiles).
    - Definir AuthContext (contexto de solo lectura propagado en ALLOW).

Colaboradores:
    - identity/session.py: produce Identity.
    - infrastructure/repositories/*: mapean filas -> Profile / RoleBinding.
    - identity/access_decision.py: consume Profile y produce AuthContext.

Notas:
    - Este módulo NO contiene lógica de negocio: solo “shapes” de datos.
    - Si agregás roles, revisá ROUTE_CLASS_ROLES y ROLE_PERMISSIONS en rbac.py.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

# Tenant centinela para role bindings de plataforma (superadmin).
SYSTEM_TENANT_ID = "00000000-0000-0000-0000-000000000000"


class UserRole(str, Enum):
    """Roles soportados (conjunto cerrado)."""

    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    STORE_MANAGER = "STORE_MANAGER"
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"
    INVENTORY_MANAGER = "INVENTORY_MANAGER"
    ANALYTICS_VIEWER = "ANALYTICS_VIEWER"
    FRANCHISE_MANAGER = "FRANCHISE_MANAGER"
    USER = "USER"
    CUSTOMER = "CUSTOMER"

    @classmethod
    def parse(cls, value: object) -> "UserRole | None":
        """Parsea un rol persistido/recibido; desconocido => None."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Identity:
    """Identidad autenticada por el proveedor (o sintetizada por una sesión demo)."""

    id: str
    email: str
    issued_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ProviderSession:
    """Par de tokens rotado por el proveedor (refresh) + la identidad asociada.

    Nunca se loguea ni se propaga downstream: solo viaja a cookies.
    """

    access_token: str
    refresh_token: str
    identity: Identity
    expires_in: int | None = None


@dataclass(frozen=True, slots=True)
class Profile:
    """Perfil de aplicación asociado 1:1 a una Identity."""

    id: str
    role: UserRole
    is_active: bool
    is_verified: bool
    tenant_id: str | None = None


@dataclass(frozen=True, slots=True)
class RoleBinding:
    """Asignación de rol por tenant (user_tenant_roles)."""

    user_id: str
    tenant_id: str
    role: UserRole
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Contexto de solo lectura que reciben los handlers downstream."""

    user_id: str
    role: UserRole
    tenant_id: str = ""
    is_demo: bool = False

    def as_headers(self) -> dict[str, str]:
        return {
            "x-user-id": self.user_id,
            "x-user-role": self.role.value,
            "x-user-tenant": self.tenant_id,
        }
