"""
===============================================================================
CRC CARD — infrastructure/db/pool.py
===============================================================================

Componente:
  Pool async de conexiones PostgreSQL (singleton)

Responsabilidades:
  - Inicializar, exponer y cerrar el pool de conexiones del store de perfiles.
  - Configurar conexiones con statement_timeout (guardrail contra queries colgadas).

Colaboradores:
  - psycopg_pool.AsyncConnectionPool
  - api/main.py (lifespan: init_pool / close_pool)

Principios:
  - Fail-fast (doble init, uso sin init)
  - Encapsulación (pool global único)
===============================================================================
"""

from __future__ import annotations

import asyncio
from typing import Optional

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from ...crosscutting.logger import logger
from .errors import PoolAlreadyInitializedError, PoolNotInitializedError

_pool: Optional[AsyncConnectionPool] = None
_pool_lock = asyncio.Lock()


def _make_configure(statement_timeout_ms: int):
    async def _configure_connection(conn: AsyncConnection) -> None:
        if statement_timeout_ms > 0:
            await conn.execute(f"SET statement_timeout = {int(statement_timeout_ms)}")
            await conn.commit()

    return _configure_connection


async def init_pool(
    database_url: str,
    min_size: int,
    max_size: int,
    *,
    statement_timeout_ms: int = 0,
) -> AsyncConnectionPool:
    """
    Inicializa el pool (una vez por proceso) y espera a que abra.
    """
    global _pool

    async with _pool_lock:
        if _pool is not None:
            raise PoolAlreadyInitializedError("El pool ya fue inicializado.")

        logger.info(
            "Inicializando pool DB",
            extra={"min_size": min_size, "max_size": max_size},
        )

        pool = AsyncConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            configure=_make_configure(statement_timeout_ms),
            open=False,
        )
        await pool.open()
        _pool = pool

        logger.info(
            "Pool DB inicializado",
            extra={"min_size": min_size, "max_size": max_size},
        )
        return _pool


def get_pool() -> AsyncConnectionPool:
    """
    Retorna el pool singleton.
    """
    if _pool is None:
        raise PoolNotInitializedError(
            "Pool no inicializado. Llamar init_pool() primero."
        )
    return _pool


async def close_pool() -> None:
    """
    Cierra el pool (idempotente).
    """
    global _pool

    async with _pool_lock:
        if _pool is not None:
            logger.info("Cerrando pool DB")
            try:
                await _pool.close()
            finally:
                _pool = None
            logger.info("Pool DB cerrado")
