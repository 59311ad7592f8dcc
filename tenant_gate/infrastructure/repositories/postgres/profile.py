"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/profile.py
============================================================
Class: PostgresProfileRepository

Responsibilities:
  - Cargar el perfil de aplicación por id de identidad (user_profiles).
  - Confirmar role bindings activos por tenant (user_tenant_roles).
  - Mapear filas crudas -> Profile y validar UserRole.
  - Exponer fallos consistentes vía `ProfileStoreError` con logging estructurado.

Collaborators:
  - psycopg_pool.AsyncConnectionPool (pool de conexiones)
  - infrastructure.db.pool.get_pool (accesor del pool global)
  - identity.users.Profile / UserRole
  - crosscutting.exceptions.ProfileStoreError

Constraints / Notes:
  - Solo lectura: el gate nunca escribe perfiles ni bindings.
  - Retorna None / False cuando no existe el recurso (no exception por “not found”).
  - Rol persistido desconocido -> ProfileStoreError (drift de datos).
  - SQL parametrizado siempre.
============================================================
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg
from psycopg_pool import AsyncConnectionPool

from ....crosscutting.exceptions import ProfileStoreError
from ....crosscutting.logger import logger
from ....identity.users import Profile, UserRole
from ...db.errors import DatabasePoolError

# R: Lista explícita de columnas (contrato con el esquema).
_PROFILE_COLUMNS = "id, role, is_active, is_verified, tenant_id"

_SELECT_PROFILE = f"SELECT {_PROFILE_COLUMNS} FROM user_profiles WHERE id = %s"

_SELECT_ACTIVE_BINDING = """
    SELECT 1
    FROM user_tenant_roles
    WHERE user_id = %s
      AND tenant_id = %s
      AND role = %s
      AND is_active = TRUE
      AND revoked_at IS NULL
    LIMIT 1
"""


def _row_to_profile(row: tuple) -> Profile:
    """
    Convierte una fila de `user_profiles` a Profile.

    Role casting estricto: si el valor no matchea el enum -> ProfileStoreError.
    """
    role = UserRole.parse(row[1])
    if role is None:
        raise ProfileStoreError(f"Invalid user role in database: {row[1]!r}")

    tenant_id = row[4]
    return Profile(
        id=str(row[0]),
        role=role,
        is_active=bool(row[2]),
        is_verified=bool(row[3]),
        tenant_id=str(tenant_id) if tenant_id is not None else None,
    )


class PostgresProfileRepository:
    """
    Repositorio de perfiles y role bindings sobre PostgreSQL.

    Pool inyectable (tests); si es None se usa el global.
    """

    def __init__(self, pool: AsyncConnectionPool | None = None) -> None:
        self._pool = pool

    def _get_pool(self) -> AsyncConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    async def _fetchone(
        self,
        *,
        query: str,
        params: Iterable[object],
        log_msg: str,
        log_extra: dict[str, object],
    ) -> tuple | None:
        """SELECT ... fetchone() con manejo consistente de errores."""
        try:
            pool = self._get_pool()
            async with pool.connection() as conn:
                cur = await conn.execute(query, tuple(params))
                return await cur.fetchone()
        except (psycopg.Error, DatabasePoolError) as exc:
            logger.error(log_msg, extra={**log_extra, "error": str(exc)})
            raise ProfileStoreError(log_msg, original_error=exc) from exc

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        row = await self._fetchone(
            query=_SELECT_PROFILE,
            params=(user_id,),
            log_msg="Error al cargar perfil",
            log_extra={"user_id": user_id},
        )
        return _row_to_profile(row) if row else None

    async def has_active_binding(
        self, user_id: str, tenant_id: str, role: UserRole
    ) -> bool:
        row = await self._fetchone(
            query=_SELECT_ACTIVE_BINDING,
            params=(user_id, tenant_id, role.value),
            log_msg="Error al verificar role binding",
            log_extra={"user_id": user_id, "tenant_id": tenant_id, "role": role.value},
        )
        return row is not None
