"""
===============================================================================
TARJETA CRC — identity/rbac.py
===============================================================================

Módulo:
    RBAC (Role-Based Access Control) por clase de ruta y por recurso

Responsabilidades:
    - Definir la ÚNICA tabla rol -> clases de ruta permitidas (ROUTE_CLASS_ROLES).
    - Definir la matriz rol -> recurso -> acciones (ROLE_PERMISSIONS) con herencia.
    - Exponer helpers: has_permission, get_user_permissions, role_permits.
    - Exponer dependencia FastAPI require_permission(resource, action).

Colaboradores:
    - identity/access_decision.py: consulta ROUTE_CLASS_ROLES (pasos 6 y 8).
    - identity/propagation.py: AuthContext en request.state.
    - crosscutting.error_responses: unauthorized/forbidden estándar.
    - crosscutting.logger: logs estructurados.

Notas de diseño:
    - SUPERADMIN hereda los permisos de ADMIN (y suma los de plataforma).
    - USER / CUSTOMER no tienen permisos de recurso administrativos.
===============================================================================
"""

from __future__ import annotations

from typing import Callable, Mapping

from fastapi import Request

from ..crosscutting.error_responses import forbidden, unauthorized
from ..crosscutting.logger import logger
from .routes import RouteClass
from .users import AuthContext, UserRole

# ---------------------------------------------------------------------------
# Rol -> clases de ruta
# ---------------------------------------------------------------------------

ADMIN_ROLES: frozenset[UserRole] = frozenset(
    {
        UserRole.SUPERADMIN,
        UserRole.ADMIN,
        UserRole.STORE_MANAGER,
        UserRole.CUSTOMER_SERVICE,
        UserRole.INVENTORY_MANAGER,
        UserRole.ANALYTICS_VIEWER,
        UserRole.FRANCHISE_MANAGER,
    }
)

ROUTE_CLASS_ROLES: Mapping[RouteClass, frozenset[UserRole]] = {
    RouteClass.PROTECTED: frozenset(UserRole),
    RouteClass.ADMIN: ADMIN_ROLES,
    RouteClass.SUPERADMIN: frozenset({UserRole.SUPERADMIN}),
}


def role_permits(role: UserRole, route_class: RouteClass) -> bool:
    """¿El rol puede entrar a la clase de ruta? (las públicas no requieren rol)."""
    if route_class.is_public:
        return True
    return role in ROUTE_CLASS_ROLES.get(route_class, frozenset())


# ---------------------------------------------------------------------------
# Rol -> recurso -> acciones
# ---------------------------------------------------------------------------

Permissions = Mapping[str, frozenset[str]]


def _perms(**resources: tuple[str, ...]) -> dict[str, frozenset[str]]:
    return {resource: frozenset(actions) for resource, actions in resources.items()}


_ADMIN_PERMISSIONS = _perms(
    products=("create", "read", "update", "delete"),
    inventory=("create", "read", "update", "delete", "forecast"),
    orders=("create", "read", "update", "delete", "process"),
    customers=("read", "update", "support"),
    analytics=("read", "export"),
    pricing=("read", "update", "dynamic_pricing"),
    suppliers=("create", "read", "update", "delete", "performance_tracking"),
    staff=("create", "read", "update", "schedule"),
    mpesa=("read", "process", "reconcile"),
    localization=("read", "update"),
    delivery=("read", "update", "optimize_routes"),
)

ROLE_PERMISSIONS: Mapping[UserRole, Permissions] = {
    UserRole.ADMIN: _ADMIN_PERMISSIONS,
    # R: solo lo propio; el resto se hereda de ADMIN (ver ROLE_INHERITS).
    UserRole.SUPERADMIN: _perms(
        system=("read", "update", "monitor", "backup"),
        integrations=("create", "read", "update", "delete", "configure"),
        tenants=("create", "read", "update", "delete", "manage"),
        security=("read", "update", "audit", "compliance"),
        ai_models=("create", "read", "update", "delete", "train", "deploy"),
        fraud_detection=("read", "update", "configure"),
        business_intelligence=("read", "create", "export", "configure"),
        market_analysis=("read", "create", "export"),
    ),
    UserRole.STORE_MANAGER: _perms(
        products=("read", "update"),
        inventory=("read", "update"),
        orders=("read", "update", "process"),
        customers=("read", "support"),
        staff=("read", "schedule"),
    ),
    UserRole.CUSTOMER_SERVICE: _perms(
        customers=("read", "update", "support"),
        orders=("read", "update"),
        products=("read",),
    ),
    UserRole.INVENTORY_MANAGER: _perms(
        inventory=("create", "read", "update", "delete", "forecast"),
        products=("read", "update"),
        suppliers=("read", "update", "performance_tracking"),
    ),
    UserRole.ANALYTICS_VIEWER: _perms(
        analytics=("read",),
        products=("read",),
        orders=("read",),
    ),
    UserRole.FRANCHISE_MANAGER: _perms(
        products=("read",),
        inventory=("read",),
        orders=("read",),
        analytics=("read",),
        staff=("read",),
    ),
    UserRole.USER: {},
    UserRole.CUSTOMER: {},
}

ROLE_INHERITS: Mapping[UserRole, UserRole] = {UserRole.SUPERADMIN: UserRole.ADMIN}


def get_user_permissions(role: UserRole) -> dict[str, frozenset[str]]:
    """Permisos efectivos (propios + heredados) del rol."""
    merged: dict[str, frozenset[str]] = {}
    current: UserRole | None = role
    while current is not None:
        for resource, actions in ROLE_PERMISSIONS.get(current, {}).items():
            merged[resource] = merged.get(resource, frozenset()) | actions
        current = ROLE_INHERITS.get(current)
    return merged


def has_permission(role: UserRole, resource: str, action: str) -> bool:
    return action in get_user_permissions(role).get(resource, frozenset())


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def require_permission(resource: str, action: str) -> Callable:
    """Dependency FastAPI: requiere `action` sobre `resource` para el contexto propagado.

    El gate ya decidió el acceso a la ruta; esto agrega autorización fina por recurso.
    """

    async def dependency(request: Request) -> AuthContext:
        ctx: AuthContext | None = getattr(request.state, "auth_context", None)
        if ctx is None:
            raise unauthorized()

        if not has_permission(ctx.role, resource, action):
            logger.warning(
                "RBAC denegó",
                extra={
                    "role": ctx.role.value,
                    "resource": resource,
                    "action": action,
                },
            )
            raise forbidden(f"Permisos insuficientes. Requerido: {resource}:{action}")

        return ctx

    # R: anotación útil para tests/introspección.
    dependency._required_permission = (resource, action)
    return dependency
