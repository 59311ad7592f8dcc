"""
============================================================
TARJETA CRC — infrastructure/repositories/in_memory/profile.py
============================================================
Class: InMemoryProfileRepository

Responsibilities:
  - Almacenar perfiles y role bindings en memoria (tests / local dev).
  - Cumplir ProfileRepository + RoleBindingRepository.
  - Contar lookups (útil para verificar que rutas públicas no consultan el store).

Collaborators:
  - domain.repositories.ProfileRepository / RoleBindingRepository (contrato)
  - identity.users.Profile / RoleBinding

Constraints / Notes:
  - Thread-safe: Lock protege los diccionarios internos.
  - Repo puro: NO decide acceso, sólo retorna datos.
============================================================
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Optional

from ....identity.users import Profile, RoleBinding, UserRole


class InMemoryProfileRepository:
    """
    Repositorio in-memory de perfiles + bindings.

    Modelo mental:
    - _profiles: user_id -> Profile
    - _bindings: (user_id, tenant_id, role) -> RoleBinding
    """

    def __init__(
        self,
        profiles: Iterable[Profile] = (),
        bindings: Iterable[RoleBinding] = (),
    ) -> None:
        self._lock = Lock()
        self._profiles: Dict[str, Profile] = {p.id: p for p in profiles}
        self._bindings: Dict[tuple[str, str, UserRole], RoleBinding] = {
            (b.user_id, b.tenant_id, b.role): b for b in bindings
        }
        self.profile_lookups = 0
        self.binding_lookups = 0

    # =========================================================
    # Seed (tests / dev)
    # =========================================================
    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile

    def add_binding(self, binding: RoleBinding) -> None:
        with self._lock:
            self._bindings[(binding.user_id, binding.tenant_id, binding.role)] = binding

    # =========================================================
    # API del repositorio
    # =========================================================
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._lock:
            self.profile_lookups += 1
            return self._profiles.get(user_id)

    async def has_active_binding(
        self, user_id: str, tenant_id: str, role: UserRole
    ) -> bool:
        with self._lock:
            self.binding_lookups += 1
            binding = self._bindings.get((user_id, tenant_id, role))
            return binding is not None and binding.is_active
