"""API Service - FastAPI control plane for OpenClaw instances."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from clawhost import __version__
from clawhost.config import get_settings
from clawhost.database import engine
from clawhost.errors import (
    ClawhostError,
    DeploymentError,
    InstanceNotFoundError,
    MissingIdentifiersError,
    ProviderConfigError,
)
from clawhost.logging_config import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)

from . import routers

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        service_name=settings.service_name,
        log_format=settings.log_format,
        log_level=settings.log_level,
    )
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="clawhost API",
    description="Deploy and operate OpenClaw gateways on cloud providers",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or f"req_{uuid.uuid4().hex[:8]}"
    bind_request_context(correlation_id, request.method, request.url.path)
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception("http_request_exception", error=str(e), duration_ms=_elapsed_ms(started))
        raise
    finally:
        clear_request_context()

    failed = response.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
    event = "http_request_failed" if failed else "http_request"
    logger.info(
        event,
        correlation_id=correlation_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=_elapsed_ms(started),
    )
    response.headers["X-Correlation-ID"] = correlation_id
    return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


app.add_exception_handler(InstanceNotFoundError, _error_handler(status.HTTP_404_NOT_FOUND))
app.add_exception_handler(MissingIdentifiersError, _error_handler(status.HTTP_409_CONFLICT))
app.add_exception_handler(DeploymentError, _error_handler(status.HTTP_502_BAD_GATEWAY))
app.add_exception_handler(
    ProviderConfigError, _error_handler(status.HTTP_503_SERVICE_UNAVAILABLE)
)


@app.exception_handler(ClawhostError)
async def provider_error_handler(request: Request, exc: ClawhostError) -> JSONResponse:
    """Provider and proxy failures not mapped above, e.g. a rejected stop call."""
    logger.error("request_failed", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)}
    )


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "clawhost API",
        "version": __version__,
        "description": "Deploy and operate OpenClaw gateways on cloud providers",
    }


app.include_router(routers.health.router)
app.include_router(routers.terminal.router, prefix="/api")
app.include_router(routers.instances.router, prefix="/api")
