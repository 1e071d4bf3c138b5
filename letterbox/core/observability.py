"""
Observability module providing structured logging, metrics collection, and distributed tracing.
"""

import asyncio
import logging
import time
import uuid
from typing import Dict, Any, Callable
from functools import wraps
from contextlib import contextmanager
from datetime import datetime, timezone
import structlog
from prometheus_client import (
    Counter, Histogram, generate_latest, CollectorRegistry
)
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from letterbox.core.config import settings


def setup_logging():
    """Configure structured logging with correlation IDs."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level.upper())
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


# Metrics Registry
registry = CollectorRegistry()

letters_composed = Counter(
    'letters_composed_total',
    'Compose attempts by outcome',
    ['outcome'],  # sent, empty_body, no_recipient, persistence_error
    registry=registry
)

asset_uploads = Counter(
    'asset_uploads_total',
    'Asset uploads by kind and outcome',
    ['kind', 'outcome'],  # kind: attachment/voice, outcome: stored/failed
    registry=registry
)

asset_rejections = Counter(
    'asset_rejections_total',
    'Assets rejected before upload',
    ['reason'],
    registry=registry
)

asset_upload_duration = Histogram(
    'asset_upload_duration_seconds',
    'Asset upload duration',
    ['kind'],
    registry=registry
)

signed_url_resolutions = Counter(
    'signed_url_resolutions_total',
    'Signed URL resolutions by outcome',
    ['outcome'],  # resolved/unavailable
    registry=registry
)

read_transitions = Counter(
    'letter_read_transitions_total',
    'Letters transitioned from unread to read',
    registry=registry
)

api_request_counter = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=registry
)

api_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint'],
    registry=registry
)


class MetricsCollector:
    """Collects and exposes application metrics."""

    @staticmethod
    def track_compose(outcome: str):
        """Track a compose attempt."""
        letters_composed.labels(outcome=outcome).inc()

    @staticmethod
    def track_upload(kind: str, outcome: str):
        """Track a single asset upload."""
        asset_uploads.labels(kind=kind, outcome=outcome).inc()

    @staticmethod
    @contextmanager
    def track_upload_duration(kind: str):
        """Track upload duration."""
        start = time.time()
        try:
            yield
        finally:
            asset_upload_duration.labels(kind=kind).observe(time.time() - start)

    @staticmethod
    def track_rejection(reason: str):
        """Track an asset rejected by policy."""
        asset_rejections.labels(reason=reason).inc()

    @staticmethod
    def track_resolution(resolved: bool):
        """Track a signed URL resolution."""
        signed_url_resolutions.labels(outcome="resolved" if resolved else "unavailable").inc()

    @staticmethod
    def track_read_transition():
        read_transitions.inc()

    @staticmethod
    def track_api_request(method: str, endpoint: str, status_code: int, duration: float):
        """Track API request metrics."""
        api_request_counter.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()
        api_request_duration.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    @staticmethod
    def get_metrics() -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest(registry)


# Tracing Setup
tracer = None


def setup_tracing():
    """Configure OpenTelemetry tracing."""
    global tracer

    if not settings.tracing_enabled:
        return

    resource = Resource.create({
        "service.name": "letterbox",
        "service.version": settings.app_version,
        "deployment.environment": settings.environment,
    })

    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    # Export spans only outside development
    if settings.environment != "development":
        otlp_exporter = OTLPSpanExporter(
            endpoint="otel-collector:4317",
            insecure=True
        )
        provider.add_span_processor(
            BatchSpanProcessor(otlp_exporter)
        )

    tracer = trace.get_tracer(__name__)


def trace_operation(name: str):
    """Decorator to trace function execution."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            if not tracer:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(name) as span:
                try:
                    span.set_attribute("function.name", func.__name__)
                    result = await func(*args, **kwargs)
                    span.set_status(trace.Status(trace.StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(
                        trace.Status(trace.StatusCode.ERROR, str(e))
                    )
                    span.record_exception(e)
                    raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            if not tracer:
                return func(*args, **kwargs)

            with tracer.start_as_current_span(name) as span:
                try:
                    span.set_attribute("function.name", func.__name__)
                    result = func(*args, **kwargs)
                    span.set_status(trace.Status(trace.StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(
                        trace.Status(trace.StatusCode.ERROR, str(e))
                    )
                    span.record_exception(e)
                    raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class CorrelationIdMiddleware:
    """Middleware to add correlation IDs to requests."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-correlation-id", correlation_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")


class HealthMonitor:
    """Monitor application health."""

    def __init__(self):
        self.checks = {}

    def register_check(self, name: str, check_func: Callable):
        """Register a health check."""
        self.checks[name] = check_func

    async def check_health(self) -> Dict[str, Any]:
        """Run all health checks."""
        results = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {}
        }

        for name, check_func in self.checks.items():
            try:
                if asyncio.iscoroutinefunction(check_func):
                    result = await check_func()
                else:
                    result = check_func()

                results["checks"][name] = {
                    "status": "healthy" if result else "unhealthy",
                    "result": result
                }

                if not result:
                    results["status"] = "unhealthy"

            except Exception as e:
                results["checks"][name] = {
                    "status": "unhealthy",
                    "error": str(e)
                }
                results["status"] = "unhealthy"

        return results


health_monitor = HealthMonitor()


def monitor_performance(operation_name: str):
    """Decorator to log how long an async operation took."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(__name__)
            start_time = time.time()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                client_error = getattr(e, "client_error", False)
                log = logger.warning if client_error else logger.error
                log(
                    f"{operation_name} failed",
                    operation=operation_name,
                    duration=time.time() - start_time,
                    status="rejected" if client_error else "error",
                    error=str(e)
                )
                raise

            logger.info(
                f"{operation_name} completed",
                operation=operation_name,
                duration=time.time() - start_time,
                status="success"
            )
            return result

        return wrapper

    return decorator


def init_observability():
    """Initialize all observability components."""
    setup_logging()
    setup_tracing()

    logger = get_logger(__name__)
    logger.info(
        "Observability initialized",
        metrics_enabled=settings.metrics_enabled,
        tracing_enabled=settings.tracing_enabled,
        log_level=settings.log_level
    )
