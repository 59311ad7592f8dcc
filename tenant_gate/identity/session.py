"""
===============================================================================
TARJETA CRC — identity/session.py
===============================================================================

Módulo:
    Session Resolver (credenciales -> identidad)

Responsabilidades:
    - Definir el contrato SessionResolver y su resultado (SessionResolution).
    - Resolver la sesión del proveedor desde cookies / Authorization: Bearer.
    - Rotar tokens (refresh) y devolver las actualizaciones de cookies.
    - Encadenar resolvers (demo -> proveedor) en un único camino.

Colaboradores:
    - domain.repositories.IdentityProvider (verify / refresh)
    - infrastructure.services.identity_provider.token_claims (exp sin verificar)
    - identity/demo_session.py: DemoSessionResolver (mismo contrato)
    - identity/access_decision.py: consume SessionResolution

Reglas:
    - Sin sesión / sesión no refrescable => ABSENT (no es error).
    - Refresh token rechazado => ABSENT + borrado de cookies.
    - Falla de transporte/proveedor => FAILED (distinto de ABSENT).
    - Las cookie updates viajan siempre, también en redirects.
===============================================================================
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Protocol, Sequence

from starlette.requests import Request

from ..crosscutting.exceptions import IdentityProviderError
from ..crosscutting.logger import logger
from ..domain.repositories import IdentityProvider
from ..infrastructure.services.identity_provider import token_claims
from .users import Identity, Profile


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CookieUpdate:
    """Cambio de cookie a aplicar en la respuesta (value=None => borrar)."""

    name: str
    value: Optional[str] = None
    max_age: Optional[int] = None

    @property
    def is_deletion(self) -> bool:
        return self.value is None


@dataclass(frozen=True, slots=True)
class SessionCredentials:
    """Credenciales crudas del request (nunca se loguean)."""

    cookies: Mapping[str, str]
    bearer_token: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "SessionCredentials":
        return cls(
            cookies=dict(request.cookies),
            bearer_token=extract_bearer_token(request.headers.get("authorization")),
        )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extrae el token de `Authorization: Bearer <token>`."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@dataclass(frozen=True, slots=True)
class SessionResolution:
    """
    Resultado de resolver una sesión.

    - RESOLVED: identity presente; profile opcional (pre-resuelto, ej: demo).
    - ABSENT: no hay sesión utilizable.
    - FAILED: el proveedor no pudo responder (fail-closed aguas arriba).
    """

    status: ResolutionStatus
    identity: Optional[Identity] = None
    profile: Optional[Profile] = None
    is_demo: bool = False
    cookie_updates: tuple[CookieUpdate, ...] = ()
    error: Optional[IdentityProviderError] = None

    @classmethod
    def resolved(
        cls,
        identity: Identity,
        *,
        profile: Optional[Profile] = None,
        is_demo: bool = False,
        cookie_updates: Sequence[CookieUpdate] = (),
    ) -> "SessionResolution":
        return cls(
            status=ResolutionStatus.RESOLVED,
            identity=identity,
            profile=profile,
            is_demo=is_demo,
            cookie_updates=tuple(cookie_updates),
        )

    @classmethod
    def absent(cls, cookie_updates: Sequence[CookieUpdate] = ()) -> "SessionResolution":
        return cls(status=ResolutionStatus.ABSENT, cookie_updates=tuple(cookie_updates))

    @classmethod
    def failed(
        cls,
        error: IdentityProviderError,
        cookie_updates: Sequence[CookieUpdate] = (),
    ) -> "SessionResolution":
        return cls(
            status=ResolutionStatus.FAILED,
            error=error,
            cookie_updates=tuple(cookie_updates),
        )

    def with_cookie_updates(self, updates: Sequence[CookieUpdate]) -> "SessionResolution":
        if not updates:
            return self
        return SessionResolution(
            status=self.status,
            identity=self.identity,
            profile=self.profile,
            is_demo=self.is_demo,
            cookie_updates=(*updates, *self.cookie_updates),
            error=self.error,
        )


class SessionResolver(Protocol):
    async def resolve(self, credentials: SessionCredentials) -> SessionResolution:
        ...


def _is_expired(access_token: str, now: float) -> bool:
    exp = token_claims(access_token).get("exp")
    return isinstance(exp, (int, float)) and exp <= now


class ProviderSessionResolver:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      ProviderSessionResolver

    Responsabilidades:
      - Verificar el access token (cookie o Bearer) contra el proveedor
      - Si no es válido (o ya venció), rotar con el refresh token
      - Traducir rechazo => ABSENT y falla => FAILED

    Colaboradores:
      - IdentityProvider
    ----------------------------------------------------------------------------
    """

    def __init__(
        self,
        provider: IdentityProvider,
        *,
        access_cookie: str,
        refresh_cookie: str,
    ):
        self._provider = provider
        self._access_cookie = access_cookie
        self._refresh_cookie = refresh_cookie

    def _clear_cookies(self) -> tuple[CookieUpdate, ...]:
        return (
            CookieUpdate(self._access_cookie),
            CookieUpdate(self._refresh_cookie),
        )

    async def resolve(self, credentials: SessionCredentials) -> SessionResolution:
        access = credentials.bearer_token or credentials.cookies.get(self._access_cookie)
        refresh = credentials.cookies.get(self._refresh_cookie)

        if not access and not refresh:
            return SessionResolution.absent()

        try:
            if access and not _is_expired(access, time.time()):
                identity = await self._provider.get_user(access)
                if identity is not None:
                    return SessionResolution.resolved(identity)

            if not refresh:
                logger.debug("Sesión sin refresh token utilizable")
                return SessionResolution.absent(self._clear_cookies())

            session = await self._provider.refresh(refresh)
        except IdentityProviderError as exc:
            logger.warning(
                "No se pudo resolver la sesión con el proveedor",
                extra={"error_id": exc.error_id, "error_code": exc.error_code},
            )
            return SessionResolution.failed(exc)

        if session is None:
            return SessionResolution.absent(self._clear_cookies())

        logger.info("Sesión rotada por refresh", extra={"user_id": session.identity.id})
        return SessionResolution.resolved(
            session.identity,
            cookie_updates=(
                CookieUpdate(
                    self._access_cookie, session.access_token, session.expires_in
                ),
                CookieUpdate(self._refresh_cookie, session.refresh_token),
            ),
        )


class ResolverChain:
    """
    Encadena resolvers: el primero que no devuelva ABSENT gana.

    Las cookie updates de resolvers consultados antes se conservan.
    """

    def __init__(self, resolvers: Sequence[SessionResolver]):
        self._resolvers = tuple(resolvers)

    async def resolve(self, credentials: SessionCredentials) -> SessionResolution:
        pending: list[CookieUpdate] = []
        for resolver in self._resolvers:
            resolution = await resolver.resolve(credentials)
            if resolution.status is not ResolutionStatus.ABSENT:
                return resolution.with_cookie_updates(pending)
            pending.extend(resolution.cookie_updates)
        return SessionResolution.absent(pending)
