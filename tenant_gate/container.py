"""
===============================================================================
TARJETA CRC — tenant_gate/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer el gate: tabla de rutas, resolvers, stores, superadmin gate, engine.
  - Mantener singletons con caching (lru_cache) para recursos pesados
    (cliente HTTP del proveedor, repositorio de perfiles).
  - Centralizar decisiones runtime basadas en Settings (config).

Colaboradores:
  - crosscutting.config.get_settings
  - domain.repositories.* (puertos)
  - infrastructure.* (implementaciones)
  - identity.* (engine, resolvers, superadmin gate)

Patrones aplicados:
  - Composition Root
  - Lazy singletons con lru_cache

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Este archivo NO depende de FastAPI (solo expone factories).
  - Sin DATABASE_URL => store in-memory (dev/test).
  - Sin IDENTITY_PROVIDER_URL => solo sesiones demo (dev/test).
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import httpx

from .crosscutting.config import get_settings
from .crosscutting.logger import logger
from .domain.repositories import (
    IdentityProvider,
    ProfileRepository,
    RoleBindingRepository,
)
from .identity.access_decision import AccessDecisionEngine
from .identity.demo_session import DemoSessionCodec, DemoSessionResolver
from .identity.routes import RouteTable
from .identity.session import ProviderSessionResolver, ResolverChain, SessionResolver
from .identity.superadmin import SuperadminGate, load_allowlist
from .infrastructure.repositories import (
    InMemoryProfileRepository,
    PostgresProfileRepository,
)
from .infrastructure.services import GoTrueIdentityProvider

# =============================================================================
# Configuración derivada
# =============================================================================


@lru_cache(maxsize=1)
def get_route_table() -> RouteTable:
    """Tabla de rutas validada (RouteTableError si SUPERADMIN ⊄ ADMIN)."""
    return RouteTable.from_settings(get_settings())


# =============================================================================
# Repositorios
# =============================================================================


@lru_cache(maxsize=1)
def _get_profile_store() -> PostgresProfileRepository | InMemoryProfileRepository:
    """Store de perfiles + bindings (Postgres si hay DATABASE_URL; in-memory si no)."""
    if get_settings().database_url:
        return PostgresProfileRepository()
    logger.warning("DATABASE_URL vacío: usando store de perfiles in-memory")
    return InMemoryProfileRepository()


def get_profile_repository() -> ProfileRepository:
    return _get_profile_store()


def get_role_binding_repository() -> RoleBindingRepository:
    return _get_profile_store()


# =============================================================================
# Servicios externos (singletons)
# =============================================================================


@lru_cache(maxsize=1)
def get_http_client() -> httpx.AsyncClient:
    """Cliente HTTP compartido (se cierra en el lifespan)."""
    settings = get_settings()
    return httpx.AsyncClient(timeout=settings.identity_provider_timeout_seconds)


@lru_cache(maxsize=1)
def get_identity_provider() -> Optional[IdentityProvider]:
    settings = get_settings()
    if not settings.identity_provider_url:
        logger.warning("IDENTITY_PROVIDER_URL vacío: solo sesiones demo")
        return None
    return GoTrueIdentityProvider(
        client=get_http_client(),
        base_url=settings.identity_provider_url,
        api_key=settings.identity_provider_api_key,
        timeout_seconds=settings.identity_provider_timeout_seconds,
    )


# =============================================================================
# Gate
# =============================================================================


@lru_cache(maxsize=1)
def get_demo_codec() -> DemoSessionCodec:
    settings = get_settings()
    return DemoSessionCodec(
        secret=settings.demo_session_secret,
        ttl_hours=settings.demo_session_ttl_hours,
        allow_unsigned=settings.demo_session_allow_unsigned,
    )


@lru_cache(maxsize=1)
def get_session_resolver() -> SessionResolver:
    """Cadena demo -> proveedor (un único camino hacia el engine)."""
    settings = get_settings()
    resolvers: list[SessionResolver] = []

    if settings.demo_sessions_enabled:
        resolvers.append(
            DemoSessionResolver(
                get_demo_codec(), cookie_name=settings.demo_session_cookie
            )
        )

    provider = get_identity_provider()
    if provider is not None:
        resolvers.append(
            ProviderSessionResolver(
                provider,
                access_cookie=settings.session_access_cookie,
                refresh_cookie=settings.session_refresh_cookie,
            )
        )

    return ResolverChain(resolvers)


@lru_cache(maxsize=1)
def get_superadmin_gate() -> SuperadminGate:
    return SuperadminGate(get_role_binding_repository())


@lru_cache(maxsize=1)
def get_access_engine() -> AccessDecisionEngine:
    settings = get_settings()
    return AccessDecisionEngine(
        routes=get_route_table(),
        resolver=get_session_resolver(),
        profiles=get_profile_repository(),
        superadmin=get_superadmin_gate(),
        lookup_timeout_seconds=settings.gate_lookup_timeout_seconds,
        retry_after_seconds=settings.gate_retry_after_seconds,
    )


# =============================================================================
# Ciclo de vida
# =============================================================================

_CACHED_FACTORIES = (
    get_route_table,
    _get_profile_store,
    get_http_client,
    get_identity_provider,
    get_demo_codec,
    get_session_resolver,
    get_superadmin_gate,
    get_access_engine,
    load_allowlist,
)


def reset_container() -> None:
    """Limpia singletons (tests / shutdown)."""
    for factory in _CACHED_FACTORIES:
        factory.cache_clear()


async def close_resources() -> None:
    """Cierra el cliente HTTP (si se creó) y limpia singletons."""
    if get_http_client.cache_info().currsize:
        await get_http_client().aclose()
    reset_container()
