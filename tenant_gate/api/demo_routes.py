"""
===============================================================================
TARJETA CRC — tenant_gate/api/demo_routes.py (Entrada y salida de sesiones demo)
===============================================================================

Responsabilidades:
  - POST /api/auth/mock-login: emitir la cookie `demo-session` firmada para una
    compañía del catálogo demo.
  - POST /api/auth/demo-logout: borrar la cookie demo.

Colaboradores:
  - identity.demo_session: create_demo_session, DEMO_COMPANIES
  - container.get_demo_codec (HS256)
  - crosscutting.error_responses (RFC7807)

Notas:
  - Ambas rutas son PUBLIC_API: el gate no las evalúa.
  - companyId desconocido => DemoSessionError => 400 problem+json.
  - Con DEMO_SESSIONS_ENABLED=false las rutas responden 404.
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field

from ..container import get_demo_codec
from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES, not_found
from ..crosscutting.logger import logger
from ..identity.demo_session import create_demo_session

router = APIRouter(prefix="/api/auth", tags=["demo"], responses=OPENAPI_ERROR_RESPONSES)

DEMO_LANDING_PATH = "/admin"


# -----------------------------------------------------------------------------
# Modelos HTTP (DTOs)
# -----------------------------------------------------------------------------


class MockLoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_id: str = Field(..., alias="companyId", min_length=1, max_length=64)


class MockLoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    login_url: str = Field(DEMO_LANDING_PATH, alias="loginUrl")
    company_name: str = Field(..., alias="companyName")
    message: str


class DemoLogoutResponse(BaseModel):
    success: bool = True


def _ensure_demo_enabled() -> None:
    if not get_settings().demo_sessions_enabled:
        raise not_found("Sesiones demo")


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.post("/mock-login", response_model=MockLoginResponse, response_model_by_alias=True)
def mock_login(req: MockLoginRequest, response: Response) -> MockLoginResponse:
    """Inicia una sesión demo ADMIN para la compañía pedida."""
    _ensure_demo_enabled()
    settings = get_settings()
    codec = get_demo_codec()

    session = create_demo_session(req.company_id.strip())
    response.set_cookie(
        key=settings.demo_session_cookie,
        value=codec.encode(session),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=codec.ttl_seconds,
        path="/",
    )

    logger.info(
        "Sesión demo emitida",
        extra={"company_id": session.company_id, "role": session.role.value},
    )
    return MockLoginResponse(
        company_name=session.company_name,
        message=f"Demo login successful for {session.company_name}",
    )


@router.post("/demo-logout", response_model=DemoLogoutResponse)
def demo_logout(response: Response) -> DemoLogoutResponse:
    _ensure_demo_enabled()
    settings = get_settings()
    response.delete_cookie(
        settings.demo_session_cookie,
        path="/",
        secure=settings.session_cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return DemoLogoutResponse()
