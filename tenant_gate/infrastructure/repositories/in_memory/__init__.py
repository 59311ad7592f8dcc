"""
In-Memory Repository Implementations.

For testing and local development. NOT FOR PRODUCTION.
Data is lost on process restart.
"""

from .profile import InMemoryProfileRepository

__all__ = ["InMemoryProfileRepository"]
