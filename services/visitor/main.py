"""
SiteGate Visitor Service - Main Application
===========================================

FastAPI application for visit check-in, access decisions, escort
escalation and evacuation.

Version: 0.1.0
"""

import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from services.visitor.container import create_container
from services.visitor.errors import (
    DeniedVisitor,
    EvacuationActive,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
    ValidationFailed,
    WorkflowError,
)
from services.visitor.routes import (
    deny_list,
    escalation,
    evacuation,
    notifications,
    pre_approvals,
    sites,
    visits,
)
from shared.config import settings
from shared.config.settings import ChangeFeedBackend, StoreBackend
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient
from shared.logging import bind_context, clear_context, get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse


# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.json_logs or settings.is_production,
    service_name="visitor",
)

logger = get_logger(__name__)

VERSION = "0.1.0"

# Most specific first
ERROR_STATUS: list[tuple[type[WorkflowError], int]] = [
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (EvacuationActive, status.HTTP_423_LOCKED),
    (DeniedVisitor, status.HTTP_403_FORBIDDEN),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationFailed, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: WorkflowError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "visitor_service_starting",
        environment=settings.environment.value,
        port=settings.workflow.port,
    )

    try:
        app.state.container = await create_container(settings)
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    logger.info("visitor_service_shutting_down")
    await app.state.container.close()
    if settings.workflow.store_backend == StoreBackend.POSTGRES:
        await PostgresClient.close()
    if settings.workflow.change_feed_backend == ChangeFeedBackend.REDIS:
        await RedisClient.close()


# Create FastAPI application
app = FastAPI(
    title="SiteGate Visitor Service",
    description="Visit check-in, access decisions, escort escalation and evacuation",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Bind a request id to every log entry emitted while handling the request."""
    clear_context()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    bind_context(request_id=request_id, method=request.method, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the service and its configured backends.
    """
    components: dict[str, dict[str, Any]] = {}

    if settings.workflow.store_backend == StoreBackend.POSTGRES:
        components["postgres"] = await PostgresClient.health_check()
    else:
        components["store"] = {"status": "healthy", "backend": "memory"}

    if settings.workflow.change_feed_backend == ChangeFeedBackend.REDIS:
        components["redis"] = await RedisClient.health_check()

    all_healthy = all(c.get("status") == "healthy" for c in components.values())

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service="visitor",
        version=VERSION,
        components=components,
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "SiteGate Visitor Service",
        "version": VERSION,
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(visits.router, prefix="/api/v1/visits", tags=["Visits"])
app.include_router(sites.router, prefix="/api/v1/sites", tags=["Site Board"])
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(deny_list.router, prefix="/api/v1/deny-list", tags=["Deny List"])
app.include_router(pre_approvals.router, prefix="/api/v1/pre-approvals", tags=["Pre-Approvals"])
app.include_router(evacuation.router, prefix="/api/v1/evacuation", tags=["Evacuation"])
app.include_router(escalation.router, prefix="/api/v1/escalation", tags=["Escalation"])


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Map workflow failures to HTTP responses."""
    status_code = status_for(exc)
    logger.warning(
        "workflow_error",
        error_code=exc.code,
        status_code=status_code,
        detail=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.message,
            error_code=exc.code,
            details=exc.details or None,
        ).model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Internal server error").model_dump(mode="json"),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.visitor.main:app",
        host="0.0.0.0",
        port=settings.workflow.port,
        reload=settings.debug,
    )
