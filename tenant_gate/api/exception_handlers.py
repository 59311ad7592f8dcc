"""
===============================================================================
TARJETA CRC — tenant_gate/api/exception_handlers.py (Manejo Centralizado de Excepciones)
===============================================================================

Responsabilidades:
  - Traducir excepciones de las rutas downstream a respuestas HTTP RFC7807.
  - Centralizar logging de errores con request_id + error_id.
  - Evitar filtrar detalles internos en errores no controlados.

Nota:
  - El gate NO pasa por acá: sus fallas se renderizan como redirect al login.

Colaboradores:
  - crosscutting.error_responses: AppHTTPException, ErrorCode, app_exception_handler
  - crosscutting.exceptions: GateError y derivadas
  - crosscutting.config.get_settings (para decidir nivel de detalle)
===============================================================================
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import (
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
)
from ..crosscutting.exceptions import (
    DemoSessionError,
    GateError,
    IdentityProviderError,
    ProfileStoreError,
)
from ..crosscutting.logger import logger


async def _handle_gate_error(
    request: Request,
    *,
    exc: GateError,
    code: ErrorCode,
    status_code: int,
) -> JSONResponse:
    """Helper común para errores tipados."""
    logger.error(
        "Error de servicio",
        extra={
            "code": code.value,
            "error_id": exc.error_id,
            "error_message": exc.message,
        },
    )

    app_exc = AppHTTPException(
        status_code=status_code,
        code=code,
        detail=exc.message,
        errors=[{"error_id": exc.error_id}],
    )
    if status_code == 503:
        app_exc.headers = {"Retry-After": str(get_settings().gate_retry_after_seconds)}
    return await app_exception_handler(request, app_exc)


async def identity_provider_error_handler(
    request: Request, exc: IdentityProviderError
) -> JSONResponse:
    return await _handle_gate_error(
        request, exc=exc, code=ErrorCode.IDENTITY_PROVIDER_ERROR, status_code=503
    )


async def profile_store_error_handler(
    request: Request, exc: ProfileStoreError
) -> JSONResponse:
    return await _handle_gate_error(
        request, exc=exc, code=ErrorCode.PROFILE_STORE_ERROR, status_code=503
    )


async def demo_session_error_handler(
    request: Request, exc: DemoSessionError
) -> JSONResponse:
    return await _handle_gate_error(
        request, exc=exc, code=ErrorCode.BAD_REQUEST, status_code=400
    )


async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
    # R: Errores base: tratamos como INTERNAL_ERROR por defecto.
    return await _handle_gate_error(
        request, exc=exc, code=ErrorCode.INTERNAL_ERROR, status_code=500
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler para excepciones no tipadas.

    - Log completo (stacktrace).
    - Respuesta genérica en producción.
    """

    logger.error("Excepción no controlada", exc_info=exc)

    detail = "Error interno." if get_settings().is_production() else str(exc)

    app_exc = AppHTTPException(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        detail=detail,
    )
    return await app_exception_handler(request, app_exc)


def register_exception_handlers(app) -> None:
    """
    Registra handlers en la app FastAPI.

    Importante:
      - AppHTTPException debe registrarse para respetar RFC7807.
      - Exception genérica se registra al final como fallback.
    """
    app.add_exception_handler(IdentityProviderError, identity_provider_error_handler)
    app.add_exception_handler(ProfileStoreError, profile_store_error_handler)
    app.add_exception_handler(DemoSessionError, demo_session_error_handler)
    app.add_exception_handler(GateError, gate_error_handler)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers"]
