"""
PostgreSQL Repository Implementations.

Async psycopg (pool) implementations of the gate's read-only stores.
"""

from .profile import PostgresProfileRepository

__all__ = ["PostgresProfileRepository"]
