"""
===============================================================================
TARJETA CRC — identity/routes.py
===============================================================================

Módulo:
    Clasificador de rutas (Route Classifier)

Responsabilidades:
    - Clasificar un path en PUBLIC / PUBLIC_API / PROTECTED / ADMIN / SUPERADMIN.
    - Mantener las tablas de rutas como datos (RouteTable), no como código.
    - Validar al construir la tabla que SUPERADMIN ⊂ ADMIN.

Colaboradores:
    - crosscutting/config.py: overrides de tablas (GATE_*_PATHS / PREFIXES).
    - identity/access_decision.py: consume RouteClass.

Reglas:
    - Exact match para rutas públicas (se evalúan primero: /admin/login gana).
    - Prefix match por segmentos: SUPERADMIN antes que ADMIN.
    - Cualquier otra cosa => PROTECTED (fail-closed).
    - Paths vacíos o relativos => PROTECTED.
    - "." y ".." se resuelven; con ellos gana la clase más estricta entre el
      path resuelto y el literal.
    - Función pura: sin I/O.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..crosscutting.config import Settings, split_csv


class RouteClass(str, Enum):
    PUBLIC = "public"
    PUBLIC_API = "public_api"
    PROTECTED = "protected"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def is_public(self) -> bool:
        return self in (RouteClass.PUBLIC, RouteClass.PUBLIC_API)


class RouteTableError(ValueError):
    """Tabla de rutas inconsistente (se detecta en startup)."""


_STRICTNESS = {
    RouteClass.PUBLIC: 0,
    RouteClass.PUBLIC_API: 0,
    RouteClass.PROTECTED: 1,
    RouteClass.ADMIN: 2,
    RouteClass.SUPERADMIN: 3,
}


DEFAULT_PUBLIC_PATHS: tuple[str, ...] = (
    "/",
    "/auth/login",
    "/auth/forgot-password",
    "/auth/request-access",
    "/access/request",
    "/demo",
    "/terms",
    "/privacy",
    "/admin/login",
    "/superadmin/login",
    "/superadmin/register",
)

DEFAULT_PUBLIC_API_PATHS: tuple[str, ...] = (
    "/api/auth/login",
    "/api/auth/google",
    "/api/auth/google/callback",
    "/api/auth/mock-login",
    "/api/auth/demo-logout",
    "/api/auth/request-access",
    "/api/tenant/config",
    "/healthz",
    "/metrics",
)

DEFAULT_SUPERADMIN_PREFIXES: tuple[str, ...] = (
    "/admin/superadmin",
    "/admin/system",
    "/admin/tenants",
    "/superadmin",
    "/api/superadmin",
)

DEFAULT_ADMIN_PREFIXES: tuple[str, ...] = (
    "/admin",
    "/api/admin",
    "/superadmin",
    "/api/superadmin",
)


def _segments(path: str) -> list[str] | None:
    if not path or not path.startswith("/"):
        return None
    return [s for s in path.split("/") if s]


def normalize_path(path: str) -> str | None:
    """
    Normaliza un path: colapsa slashes repetidos/finales y resuelve "." y ".."
    (un ".." en la raíz se descarta). Vacío o relativo => None.
    """
    segments = _segments(path)
    if segments is None:
        return None

    resolved: list[str] = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            if resolved:
                resolved.pop()
            continue
        resolved.append(segment)

    return "/" + "/".join(resolved)


def matches_prefix(path: str, prefix: str) -> bool:
    """Match por segmentos: /admin cubre /admin y /admin/x, no /administrator."""
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True, slots=True)
class RouteTable:
    """Tablas de rutas del gate (configuración, inmutable)."""

    public_paths: frozenset[str] = frozenset(DEFAULT_PUBLIC_PATHS)
    public_api_paths: frozenset[str] = frozenset(DEFAULT_PUBLIC_API_PATHS)
    superadmin_prefixes: tuple[str, ...] = DEFAULT_SUPERADMIN_PREFIXES
    admin_prefixes: tuple[str, ...] = DEFAULT_ADMIN_PREFIXES

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        entries = (
            *self.public_paths,
            *self.public_api_paths,
            *self.superadmin_prefixes,
            *self.admin_prefixes,
        )
        for entry in entries:
            if normalize_path(entry) != entry:
                raise RouteTableError(f"Entrada de ruta inválida: {entry!r}")

        for prefix in self.superadmin_prefixes:
            if not any(matches_prefix(prefix, admin) for admin in self.admin_prefixes):
                raise RouteTableError(
                    f"Prefijo superadmin {prefix!r} no está cubierto por ningún prefijo admin"
                )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RouteTable":
        """Construye la tabla aplicando overrides (CSV vacío => defaults)."""
        public = split_csv(settings.gate_public_paths) or DEFAULT_PUBLIC_PATHS
        public_api = (
            split_csv(settings.gate_public_api_paths) or DEFAULT_PUBLIC_API_PATHS
        )
        superadmin = (
            split_csv(settings.gate_superadmin_prefixes) or DEFAULT_SUPERADMIN_PREFIXES
        )
        admin = split_csv(settings.gate_admin_prefixes) or DEFAULT_ADMIN_PREFIXES
        return cls(
            public_paths=frozenset(public),
            public_api_paths=frozenset(public_api),
            superadmin_prefixes=tuple(superadmin),
            admin_prefixes=tuple(admin),
        )

    def classify(self, path: str) -> RouteClass:
        """
        Clasifica un path. Total: nunca lanza.

        Con segmentos "." o "..", gana la clase más estricta entre el path
        resuelto y el literal.
        """
        normalized = normalize_path(path)
        if normalized is None:
            return RouteClass.PROTECTED

        route_class = self._classify_normalized(normalized)
        literal = "/" + "/".join(_segments(path))
        if literal != normalized:
            route_class = max(
                route_class,
                self._classify_normalized(literal),
                key=_STRICTNESS.__getitem__,
            )
        return route_class

    def _classify_normalized(self, normalized: str) -> RouteClass:
        if normalized in self.public_paths:
            return RouteClass.PUBLIC
        if normalized in self.public_api_paths:
            return RouteClass.PUBLIC_API

        if any(matches_prefix(normalized, p) for p in self.superadmin_prefixes):
            return RouteClass.SUPERADMIN
        if any(matches_prefix(normalized, p) for p in self.admin_prefixes):
            return RouteClass.ADMIN

        return RouteClass.PROTECTED


DEFAULT_ROUTE_TABLE = RouteTable()


def classify(path: str) -> RouteClass:
    """Clasifica con la tabla por defecto."""
    return DEFAULT_ROUTE_TABLE.classify(path)
