"""Puertos del gate (Protocols) independientes de infraestructura."""

from .repositories import IdentityProvider, ProfileRepository, RoleBindingRepository

__all__ = ["IdentityProvider", "ProfileRepository", "RoleBindingRepository"]
