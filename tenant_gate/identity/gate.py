"""
===============================================================================
TARJETA CRC — identity/gate.py
===============================================================================

Módulo:
    AuthGateMiddleware (renderizado HTTP de la decisión)

Responsabilidades:
    - Correr el Access Decision Engine en cada request.
    - ALLOW => propagar contexto y continuar downstream.
    - REDIRECT => 307 a /auth/login (redirectTo / error) o a /admin.
    - DENY => 307 a /auth/login con error=service_unavailable + Retry-After.
    - Aplicar SIEMPRE las cookie updates del Session Resolver.
    - Log + métrica por decisión.

Colaboradores:
    - identity/access_decision.py (engine)
    - identity/propagation.py (headers + request.state + contextvars)
    - crosscutting.metrics.record_gate_decision
    - container.get_access_engine (engine por defecto)

Notas:
    - Orden de middlewares: RequestContext -> AuthGate -> rutas.
    - Downstream nunca se invoca en REDIRECT/DENY.
===============================================================================
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_gate_decision
from .access_decision import (
    ADMIN_HOME_PATH,
    LOGIN_PATH,
    AccessDecisionEngine,
    Allow,
    DecisionReason,
    Deny,
    GateResult,
    Redirect,
)
from .propagation import propagate, strip_identity_headers
from .routes import RouteClass
from .session import CookieUpdate, SessionCredentials

REDIRECT_STATUS = 307

# R: reason -> valor del query param `error` en el login.
_ERROR_PARAMS: dict[DecisionReason, str] = {
    DecisionReason.PROFILE_NOT_FOUND: "profile_not_found",
    DecisionReason.ACCOUNT_DEACTIVATED: "account_deactivated",
    DecisionReason.ACCOUNT_NOT_VERIFIED: "account_not_verified",
    DecisionReason.INSUFFICIENT_ROLE: "unauthorized",
}
SERVICE_UNAVAILABLE_ERROR = "service_unavailable"


def _login_url(
    target: str, *, redirect_to: Optional[str], error: Optional[str]
) -> str:
    params: list[tuple[str, str]] = []
    if redirect_to:
        params.append(("redirectTo", redirect_to))
    if error:
        params.append(("error", error))
    if not params:
        return target
    return f"{target}?{urlencode(params, safe='/')}"


def redirect_location(decision: Redirect | Deny, path: str) -> str:
    """URL de destino para una decisión no-ALLOW."""
    if isinstance(decision, Deny):
        return _login_url(
            LOGIN_PATH, redirect_to=path, error=SERVICE_UNAVAILABLE_ERROR
        )

    if decision.target == ADMIN_HOME_PATH:
        return ADMIN_HOME_PATH

    if decision.reason is DecisionReason.UNAUTHENTICATED:
        return _login_url(decision.target, redirect_to=path, error=None)

    return _login_url(
        decision.target, redirect_to=None, error=_ERROR_PARAMS.get(decision.reason)
    )


def apply_cookie_updates(
    response: Response, updates: Iterable[CookieUpdate], *, secure: bool
) -> None:
    for update in updates:
        if update.is_deletion:
            response.delete_cookie(
                update.name, path="/", secure=secure, httponly=True, samesite="lax"
            )
        else:
            response.set_cookie(
                update.name,
                update.value,
                max_age=update.max_age,
                path="/",
                secure=secure,
                httponly=True,
                samesite="lax",
            )


def _reason_label(result: GateResult) -> str:
    decision = result.decision
    if isinstance(decision, Allow):
        return "public_route" if result.route_class.is_public else "authorized"
    return decision.reason.value


class AuthGateMiddleware(BaseHTTPMiddleware):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      AuthGateMiddleware

    Responsabilidades:
      - Ejecutar el gate antes de cualquier ruta
      - Traducir la decisión a respuesta HTTP (o continuar)

    Colaboradores:
      - AccessDecisionEngine (provisto lazy: recursos del lifespan)
    ----------------------------------------------------------------------------
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        engine_provider: Optional[Callable[[], AccessDecisionEngine]] = None,
        cookie_secure: Optional[bool] = None,
    ):
        super().__init__(app)
        if engine_provider is None:
            from ..container import get_access_engine

            engine_provider = get_access_engine
        if cookie_secure is None:
            from ..crosscutting.config import get_settings

            cookie_secure = get_settings().session_cookie_secure
        self._engine_provider = engine_provider
        self._cookie_secure = cookie_secure

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        strip_identity_headers(request)

        engine = self._engine_provider()
        result = await engine.decide(path, SessionCredentials.from_request(request))
        request.state.route_class = result.route_class.value
        decision = result.decision
        reason = _reason_label(result)

        record_gate_decision(decision.outcome.value, reason, result.route_class.value)
        self._log(result, reason)

        if isinstance(decision, Allow):
            propagate(request, decision.context)
            response = await call_next(request)
        else:
            response = RedirectResponse(
                redirect_location(decision, path), status_code=REDIRECT_STATUS
            )
            if isinstance(decision, Deny):
                response.headers["Retry-After"] = str(decision.retry_after)

        apply_cookie_updates(
            response, result.cookie_updates, secure=self._cookie_secure
        )
        return response

    @staticmethod
    def _log(result: GateResult, reason: str) -> None:
        if result.route_class is RouteClass.PUBLIC_API:
            return

        extra = {
            "decision": result.decision.outcome.value,
            "reason": reason,
            "route_class": result.route_class.value,
        }
        if isinstance(result.decision, Deny):
            logger.warning("Gate denegó (fail-closed)", extra=extra)
        else:
            logger.info("Decisión del gate", extra=extra)
