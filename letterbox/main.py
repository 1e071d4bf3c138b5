"""
Main FastAPI application for the letter service.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from contextlib import asynccontextmanager
import time

from letterbox.core.config import settings
from letterbox.core.exceptions import (
    EmptyBodyError, LetterboxError, LetterNotFoundError, NoRecipientError, PersistenceError
)
from letterbox.core.observability import (
    init_observability, CorrelationIdMiddleware, health_monitor,
    MetricsCollector, get_logger
)
from letterbox.db.session import init_database, close_database, db_manager
from letterbox.storage.base import BlobStoreFactory
from letterbox.api.v1 import letters, health
from letterbox.api.v1.models import ErrorResponse


logger = get_logger(__name__)

ERROR_STATUS = {
    EmptyBodyError: 400,
    NoRecipientError: 422,
    LetterNotFoundError: 404,
    PersistenceError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting letter service...")

    init_observability()
    await init_database()
    store = await BlobStoreFactory.init_store()

    health_monitor.register_check("database", db_manager.health_check)
    health_monitor.register_check("blob_store", store.health_check)

    logger.info("Letter service started successfully")

    yield

    logger.info("Shutting down letter service...")
    await BlobStoreFactory.close_store()
    await close_database()
    logger.info("Letter service shut down successfully")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Letters with voice clips and attachments between two participants",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.add_middleware(CorrelationIdMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log and track all HTTP requests."""
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    MetricsCollector.track_api_request(
        method=request.method,
        endpoint=endpoint,
        status_code=response.status_code,
        duration=duration
    )
    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration=duration
    )
    return response


app.include_router(
    letters.router,
    prefix=f"{settings.api_prefix}/letters",
    tags=["letters"]
)

app.include_router(
    health.router,
    prefix="",
    tags=["health"]
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "documentation": "/docs" if settings.debug else None
    }


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    """Prometheus metrics endpoint."""
    if not settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="Metrics not enabled")

    return MetricsCollector.get_metrics()


@app.exception_handler(LetterboxError)
async def letterbox_exception_handler(request: Request, exc: LetterboxError):
    """Map domain errors onto HTTP status codes."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        500
    )
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message, code=exc.code)

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.code, message=exc.message).model_dump()
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="invalid_request", message=str(exc)).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred"
        ).model_dump()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "letterbox.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.workers if not settings.debug else 1,
        log_level=settings.log_level.lower()
    )
