"""
============================================================
TARJETA CRC
============================================================
Class: tenant_gate.infrastructure.repositories (Package exports)

Responsibilities:
- Exponer implementaciones concretas del store de perfiles (Postgres e InMemory)
  en un único punto de importación.

Collaborators:
- Repositorio Postgres (SQL crudo, psycopg async)
- Repositorio InMemory (testing / fallback sin DATABASE_URL)
============================================================
"""

from .in_memory import InMemoryProfileRepository
from .postgres import PostgresProfileRepository

__all__ = [
    "PostgresProfileRepository",
    "InMemoryProfileRepository",
]
