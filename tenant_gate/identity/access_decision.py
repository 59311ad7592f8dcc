"""
===============================================================================
TARJETA CRC — identity/access_decision.py
===============================================================================

Módulo:
    Access Decision Engine (máquina de estados del gate)

Responsabilidades:
    - Decidir ALLOW / REDIRECT / DENY para (path, credenciales).
    - Evaluar en orden estricto; la primera salida que matchea gana:
        1. ruta pública => ALLOW (sin resolver sesión ni perfil)
        2. sin sesión => REDIRECT login (unauthenticated); falla => DENY
        3. perfil inexistente => REDIRECT login (profile_not_found)
        4. inactivo => REDIRECT login (account_deactivated)
        5. no verificado => REDIRECT login (account_not_verified)
        6. ruta superadmin y rol no permitido => REDIRECT /admin
        7. ruta superadmin y SUPERADMIN => allowlist + binding; falla => 6
        8. ruta admin y rol fuera del set admin => REDIRECT login
        9. ALLOW con {user_id, role, tenant_id}
    - Acotar cada llamada externa con timeout; timeout => DENY.
    - Ningún error interno escapa: se loguea y se convierte en DENY.

Colaboradores:
    - identity/routes.py (RouteTable)
    - identity/session.py (SessionResolver)
    - identity/rbac.py (ROUTE_CLASS_ROLES vía role_permits)
    - identity/superadmin.py (SuperadminGate)
    - domain.repositories.ProfileRepository
    - crosscutting.metrics (latencia de llamadas externas)

Notas:
    - Sin estado compartido entre requests; sin locks.
    - Verificación antes que rol (orden fijo).
===============================================================================
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, ClassVar, Optional, TypeVar, Union

from ..crosscutting.exceptions import IdentityProviderError, ProfileStoreError
from ..crosscutting.logger import logger
from ..crosscutting.metrics import observe_external_call
from ..domain.repositories import ProfileRepository
from .rbac import role_permits
from .routes import RouteClass, RouteTable
from .session import (
    CookieUpdate,
    ResolutionStatus,
    SessionCredentials,
    SessionResolution,
    SessionResolver,
)
from .superadmin import SuperadminGate
from .users import AuthContext, Profile

T = TypeVar("T")

LOGIN_PATH = "/auth/login"
ADMIN_HOME_PATH = "/admin"


class DecisionOutcome(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    DENY = "deny"


class DecisionReason(str, Enum):
    # Redirects
    UNAUTHENTICATED = "unauthenticated"
    PROFILE_NOT_FOUND = "profile_not_found"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_NOT_VERIFIED = "account_not_verified"
    INSUFFICIENT_ROLE = "insufficient_role"

    # Deny (fail-closed)
    IDENTITY_UNAVAILABLE = "identity_unavailable"
    PROFILE_STORE_UNAVAILABLE = "profile_store_unavailable"
    LOOKUP_TIMEOUT = "lookup_timeout"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True, slots=True)
class Allow:
    outcome: ClassVar[DecisionOutcome] = DecisionOutcome.ALLOW

    context: Optional[AuthContext] = None


@dataclass(frozen=True, slots=True)
class Redirect:
    outcome: ClassVar[DecisionOutcome] = DecisionOutcome.REDIRECT

    target: str
    reason: DecisionReason


@dataclass(frozen=True, slots=True)
class Deny:
    outcome: ClassVar[DecisionOutcome] = DecisionOutcome.DENY

    reason: DecisionReason
    retry_after: int


AccessDecision = Union[Allow, Redirect, Deny]


@dataclass(frozen=True, slots=True)
class GateResult:
    """Decisión + clase de ruta + cookies a aplicar (siempre, incluso en redirect)."""

    decision: AccessDecision
    route_class: RouteClass
    cookie_updates: tuple[CookieUpdate, ...] = ()


class AccessDecisionEngine:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      AccessDecisionEngine

    Responsabilidades:
      - Orquestar clasificación, resolución de sesión, perfil y chequeos de rol
      - Producir una decisión determinística (sin efectos sobre el request)

    Colaboradores:
      - RouteTable, SessionResolver, ProfileRepository, SuperadminGate
    ----------------------------------------------------------------------------
    """

    def __init__(
        self,
        *,
        routes: RouteTable,
        resolver: SessionResolver,
        profiles: ProfileRepository,
        superadmin: SuperadminGate,
        lookup_timeout_seconds: float = 5.0,
        retry_after_seconds: int = 5,
    ):
        self._routes = routes
        self._resolver = resolver
        self._profiles = profiles
        self._superadmin = superadmin
        self._timeout = lookup_timeout_seconds
        self._retry_after = retry_after_seconds

    @property
    def routes(self) -> RouteTable:
        return self._routes

    def _deny(self, reason: DecisionReason) -> Deny:
        return Deny(reason=reason, retry_after=self._retry_after)

    async def _call(self, name: str, awaitable: Awaitable[T]) -> T:
        """Llamada externa acotada por timeout + métrica de latencia."""
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        finally:
            observe_external_call(name, time.perf_counter() - start)

    async def decide(self, path: str, credentials: SessionCredentials) -> GateResult:
        route_class = self._routes.classify(path)
        if route_class.is_public:
            return GateResult(decision=Allow(), route_class=route_class)

        cookie_updates: tuple[CookieUpdate, ...] = ()
        try:
            resolution = await self._call(
                "session_resolve", self._resolver.resolve(credentials)
            )
            cookie_updates = resolution.cookie_updates
            decision = await self._evaluate(route_class, resolution)
        except asyncio.TimeoutError:
            logger.warning(
                "Timeout en lookup del gate", extra={"route_class": route_class.value}
            )
            decision = self._deny(DecisionReason.LOOKUP_TIMEOUT)
        except IdentityProviderError as exc:
            logger.warning(
                "Proveedor de identidad no disponible",
                extra={"error_id": exc.error_id},
            )
            decision = self._deny(DecisionReason.IDENTITY_UNAVAILABLE)
        except ProfileStoreError as exc:
            logger.error(
                "Store de perfiles no disponible",
                extra={"error_id": exc.error_id, "error_code": exc.error_code},
            )
            decision = self._deny(DecisionReason.PROFILE_STORE_UNAVAILABLE)
        except Exception:
            logger.exception(
                "Error inesperado en el gate", extra={"route_class": route_class.value}
            )
            decision = self._deny(DecisionReason.INTERNAL_ERROR)

        return GateResult(
            decision=decision, route_class=route_class, cookie_updates=cookie_updates
        )

    async def _evaluate(
        self, route_class: RouteClass, resolution: SessionResolution
    ) -> AccessDecision:
        if resolution.status is ResolutionStatus.FAILED:
            return self._deny(DecisionReason.IDENTITY_UNAVAILABLE)
        if resolution.status is ResolutionStatus.ABSENT or resolution.identity is None:
            return Redirect(LOGIN_PATH, DecisionReason.UNAUTHENTICATED)

        identity = resolution.identity
        profile: Optional[Profile] = resolution.profile
        if profile is None:
            profile = await self._call(
                "profile_lookup", self._profiles.get_profile(identity.id)
            )

        if profile is None:
            logger.info("Identidad sin perfil", extra={"user_id": identity.id})
            return Redirect(LOGIN_PATH, DecisionReason.PROFILE_NOT_FOUND)
        if not profile.is_active:
            return Redirect(LOGIN_PATH, DecisionReason.ACCOUNT_DEACTIVATED)
        if not profile.is_verified:
            return Redirect(LOGIN_PATH, DecisionReason.ACCOUNT_NOT_VERIFIED)

        if route_class is RouteClass.SUPERADMIN:
            if not role_permits(profile.role, RouteClass.SUPERADMIN):
                return Redirect(ADMIN_HOME_PATH, DecisionReason.INSUFFICIENT_ROLE)
            authorized = await self._call(
                "superadmin_check",
                self._superadmin.authorize_superadmin(identity.email, identity.id),
            )
            if not authorized:
                return Redirect(ADMIN_HOME_PATH, DecisionReason.INSUFFICIENT_ROLE)
        elif not role_permits(profile.role, route_class):
            return Redirect(LOGIN_PATH, DecisionReason.INSUFFICIENT_ROLE)

        return Allow(
            AuthContext(
                user_id=identity.id,
                role=profile.role,
                tenant_id=profile.tenant_id or "",
                is_demo=resolution.is_demo,
            )
        )
