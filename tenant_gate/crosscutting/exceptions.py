"""
===============================================================================
MÓDULO: Excepciones tipadas del gate (errores internos)
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable
- error_id para correlación con logs
- message “humana” (sin filtrar tokens ni cookies)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  GateError + subclases

Responsabilidades:
  - Distinguir fallas de transporte/proveedor de la ausencia esperada
  - Generar error_id para rastreo

Colaboradores:
  - identity/access_decision.py (mapea a DENY)
  - api/exception_handlers.py (mapea a RFC7807 fuera del gate)
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class GateError(Exception):
    """Base para errores internos del gate (error_code + error_id + message)."""

    error_code: str = "GATE_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class IdentityProviderError(GateError):
    """Proveedor de identidad caído, lento o con respuesta inesperada."""

    error_code: str = "IDENTITY_PROVIDER_ERROR"


class ProfileStoreError(GateError):
    """Errores del store de perfiles/role bindings (conexión, query, datos)."""

    error_code: str = "PROFILE_STORE_ERROR"


class DemoSessionError(GateError):
    """Sesión demo imposible de emitir (compañía o payload inválido)."""

    error_code: str = "DEMO_SESSION_ERROR"
