"""
===============================================================================
TARJETA CRC — identity/superadmin.py
===============================================================================

Módulo:
    Superadmin Allowlist Gate

Responsabilidades:
    - Cargar UNA vez la allowlist de emails superadmin (SUPERADMIN_EMAILS).
    - Exponer la única función de lookup (is_authorized_superadmin) y el listado.
    - Autorizar superadmin: email en allowlist Y role binding activo
      (identidad, tenant de sistema, SUPERADMIN).

Colaboradores:
    - crosscutting.config.get_settings (allowlist)
    - domain.repositories.RoleBindingRepository (user_tenant_roles)
    - identity/access_decision.py (paso 7 de la máquina de estados)

Notas:
    - La allowlist es inmutable durante la vida del proceso.
    - Match exacto case-insensitive.
    - Falla del store => ProfileStoreError (el engine lo convierte en DENY).
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..domain.repositories import RoleBindingRepository
from .users import SYSTEM_TENANT_ID, UserRole


@lru_cache(maxsize=1)
def load_allowlist() -> frozenset[str]:
    """Allowlist desde settings (cacheada: se lee una vez por proceso)."""
    return frozenset(get_settings().get_superadmin_emails())


def is_authorized_superadmin(email: str | None) -> bool:
    if not email:
        return False
    return email.strip().lower() in load_allowlist()


def get_authorized_emails() -> list[str]:
    return sorted(load_allowlist())


class SuperadminGate:
    """Allowlist + role binding en el tenant de sistema."""

    def __init__(
        self,
        bindings: RoleBindingRepository,
        *,
        allowlist: Iterable[str] | None = None,
    ):
        self._bindings = bindings
        self._allowlist = (
            frozenset(e.strip().lower() for e in allowlist)
            if allowlist is not None
            else None
        )

    def is_allowlisted(self, email: str | None) -> bool:
        if self._allowlist is None:
            return is_authorized_superadmin(email)
        return bool(email) and email.strip().lower() in self._allowlist

    async def authorize_superadmin(self, email: str | None, identity_id: str) -> bool:
        if not self.is_allowlisted(email):
            logger.warning(
                "Superadmin fuera de allowlist", extra={"user_id": identity_id}
            )
            return False

        bound = await self._bindings.has_active_binding(
            identity_id, SYSTEM_TENANT_ID, UserRole.SUPERADMIN
        )
        if not bound:
            logger.warning(
                "Superadmin sin role binding de sistema",
                extra={"user_id": identity_id},
            )
        return bound
