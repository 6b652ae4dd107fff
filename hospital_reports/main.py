from contextlib import asynccontextmanager
from typing import Any, Dict
import time

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from hospital_reports import __version__
from hospital_reports.api.dependencies import get_correlation_id, resolve_correlation_id
from hospital_reports.api.routes import health, reports
from hospital_reports.core.config import AppConstants, get_settings
from hospital_reports.core.database import close_db_connection, db_manager
from hospital_reports.core.exceptions import ReportError, ReportErrorKind
from hospital_reports.schemas.report import ErrorResponse
from hospital_reports.utils.logger import bind_correlation_id, setup_logging

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)
REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

ERROR_STATUS_CODES = {
    ReportErrorKind.NOT_FOUND: 404,
    ReportErrorKind.INVALID_PARAMETER: 400,
    ReportErrorKind.SOURCE_UNAVAILABLE: 503,
}


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time requests per route template"""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # /reports/{report_name}/run rather than one series per report name
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code)
        ).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Assign the request its correlation ID and log the request under it.

    The ID is resolved once here, stored on ``request.state`` for the
    dependencies and exception handlers, bound to every log line of the
    request and echoed in the ``X-Correlation-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = resolve_correlation_id(request.headers)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)

        log = logger.bind(method=request.method, path=request.url.path)
        log.info(
            "Request started",
            query=str(request.query_params) or None,
            client_host=request.client.host if request.client else "unknown"
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            log.error(
                "Request failed",
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(exc),
                exc_info=True
            )
            raise

        log.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2)
        )
        response.headers["X-Correlation-ID"] = correlation_id

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()

    logger.info("Starting Hospital Reports API", version=__version__)

    try:
        db_manager.initialize()
        logger.info(
            "API startup completed",
            environment=settings.ENVIRONMENT,
            debug=settings.DEBUG,
            dialect=db_manager.engine.dialect.name
        )

    except Exception as e:
        logger.error("Failed to start application", error=str(e), exc_info=True)
        raise

    yield  # Application runs here

    logger.info("Shutting down Hospital Reports API")
    close_db_connection()


def create_application() -> FastAPI:
    """Factory function to create FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title="Hospital Operations Reports API",
        description="Read-only analytical reports over hospital departments, doctors, patients, appointments and billing",
        version=__version__,
        openapi_url=f"/api/{settings.API_VERSION}/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
        license_info={
            "name": "MIT",
            "url": "https://opensource.org/licenses/MIT"
        }
    )

    if settings.ENVIRONMENT == "production":
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"]
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(LoggingMiddleware)
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PrometheusMiddleware)

    app.include_router(
        health.router,
        prefix=f"/api/{settings.API_VERSION}",
        tags=["Health"]
    )

    app.include_router(
        reports.router,
        prefix=f"/api/{settings.API_VERSION}",
        tags=["Reports"]
    )

    return app


app = create_application()


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
    """Translate catalog errors into HTTP responses"""
    correlation_id = get_correlation_id(request)
    status_code = ERROR_STATUS_CODES[exc.kind]

    log = logger.error if exc.kind is ReportErrorKind.SOURCE_UNAVAILABLE else logger.warning
    log(
        "Report request rejected",
        url=str(request.url),
        kind=exc.kind.value,
        error=exc.message
    )

    body = ErrorResponse(
        error=exc.kind.value,
        message=exc.message,
        correlation_id=correlation_id,
        details=exc.details
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled exceptions"""
    correlation_id = get_correlation_id(request)

    logger.error(
        "Unhandled exception",
        url=str(request.url),
        method=request.method,
        error=str(exc),
        exc_info=True
    )

    content = {
        "error": "Internal server error",
        "correlation_id": correlation_id,
        "message": str(exc),
        "type": type(exc).__name__
    }

    # Don't expose internal errors in production
    if get_settings().ENVIRONMENT == "production":
        content["message"] = AppConstants.API_ERROR_MESSAGE
        del content["type"]

    return JSONResponse(
        status_code=500,
        content=content,
        headers={"X-Correlation-ID": correlation_id}
    )


@app.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with API information"""
    settings = get_settings()
    return {
        "message": "Hospital Operations Reports API",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "health_check": f"/api/{settings.API_VERSION}/health",
        "reports_endpoint": f"/api/{settings.API_VERSION}/reports"
    }


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint"""
    settings = get_settings()
    if not settings.PROMETHEUS_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"error": "Metrics endpoint is disabled"}
        )

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def main():
    """Main function to run the application"""
    settings = get_settings()

    uvicorn.run(
        "hospital_reports.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )


if __name__ == "__main__":
    main()
