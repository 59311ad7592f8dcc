"""
Name: FastAPI Application Entry Point

Responsibilities:
  - Initialize FastAPI application with metadata (title, version)
  - Configure middleware (request context, auth gate)
  - Mount demo-session and session routers
  - Expose health check and metrics endpoints

Collaborators:
  - FastAPI: ASGI web framework
  - RequestContextMiddleware: Request ID and logging context
  - AuthGateMiddleware: access decision for every request
  - container: engine, HTTP client and store singletons

Constraints:
  - Gate route table validated at startup (RouteTableError aborts boot)
  - DB pool only when DATABASE_URL is set (in-memory store otherwise)

Notes:
  - Middleware order matters: RequestContext → AuthGate → routes
  - /healthz and /metrics are public API paths (the gate lets them through)
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response

from ..container import close_resources, get_access_engine
from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..crosscutting.metrics import get_metrics_response
from ..crosscutting.middleware import RequestContextMiddleware
from ..identity.gate import AuthGateMiddleware
from ..infrastructure.db import close_pool, init_pool
from .demo_routes import router as demo_router
from .exception_handlers import register_exception_handlers
from .session_routes import router as session_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Validates settings, route table and pool."""
    settings = get_settings()

    # R: construir el engine valida la tabla de rutas (SUPERADMIN ⊆ ADMIN).
    engine = get_access_engine()

    if settings.database_url:
        await init_pool(
            database_url=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    try:
        logger.info(
            "Tenant Gate iniciando",
            extra={
                "app_env": settings.app_env,
                "demo_sessions_enabled": settings.demo_sessions_enabled,
                "identity_provider": bool(settings.identity_provider_url),
                "profile_store": "postgres" if settings.database_url else "in_memory",
                "admin_prefixes": len(engine.routes.admin_prefixes),
            },
        )

        yield

    finally:
        if settings.database_url:
            await close_pool()
        await close_resources()
        logger.info("Tenant Gate detenido")


# R: Create FastAPI application instance with API metadata
app = FastAPI(
    title="Tenant Gate",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "demo", "description": "Demo sessions (mock login / logout)"},
        {"name": "session", "description": "Context propagated by the gate"},
    ],
)

# R: Middleware order (bottom = first to execute):
# 1. RequestContextMiddleware - sets request_id, logs, request metrics
# 2. AuthGateMiddleware - ALLOW / REDIRECT / DENY before any route
app.add_middleware(AuthGateMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(demo_router)
app.include_router(session_router)

# R: Register exception handlers for structured error responses
register_exception_handlers(app)


# R: Liveness endpoint for orchestration (Kubernetes, Docker)
@app.get("/healthz")
def healthz(request: Request):
    return {
        "ok": True,
        "request_id": getattr(request.state, "request_id", None),
    }


# R: Prometheus metrics endpoint
@app.get("/metrics")
def metrics():
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)
