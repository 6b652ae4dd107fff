from datetime import datetime, timezone
from typing import Any, Dict
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
import structlog

from hospital_reports import __version__
from hospital_reports.api.dependencies import get_correlation_id, get_report_catalog
from hospital_reports.core.config import AppConstants, get_settings
from hospital_reports.core.database import check_db_health
from hospital_reports.services.report_catalog import ReportCatalog
from hospital_reports.utils.logger import get_log_level

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/health",
    summary="Basic Health Check",
    description="Basic health check endpoint for load balancers and monitoring"
)
def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint for quick status verification.

    **Returns:**
    - **status**: Overall health status
    - **timestamp**: Current server timestamp
    - **version**: API version
    """

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "service": "hospital-reports-api"
    }


@router.get(
    "/health/detailed",
    summary="Detailed Health Check",
    description="Health check covering the data source and the report catalog"
)
def detailed_health_check(
    correlation_id: str = Depends(get_correlation_id),
    catalog: ReportCatalog = Depends(get_report_catalog)
) -> JSONResponse:
    """
    Health check covering every component the reports depend on.

    **Returns:**
    - **overall_status**: healthy, degraded or unhealthy
    - **components**: Individual component health status
    - **system_info**: Environment and configuration information
    """

    settings = get_settings()
    logger.info("Detailed health check started", correlation_id=correlation_id)

    health_results: Dict[str, Any] = {
        "overall_status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "correlation_id": correlation_id,
        "components": {
            "database": _check_database_health(),
            "report_catalog": {
                "status": "healthy",
                "reports": catalog.names
            }
        },
        "system_info": {
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "api_version": settings.API_VERSION,
            "log_level": get_log_level()
        },
        "warnings": [],
        "errors": []
    }

    unhealthy_components = [
        name for name, result in health_results["components"].items()
        if result.get("status") != "healthy"
    ]
    critical_unhealthy = [
        component for component in unhealthy_components
        if component in AppConstants.CRITICAL_SERVICES
    ]

    if critical_unhealthy:
        health_results["overall_status"] = "unhealthy"
        health_results["errors"].append(f"Critical services unhealthy: {critical_unhealthy}")
    elif unhealthy_components:
        health_results["overall_status"] = "degraded"
        health_results["warnings"].append(f"Non-critical services unhealthy: {unhealthy_components}")

    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if health_results["overall_status"] == "unhealthy"
        else status.HTTP_200_OK
    )

    logger.info(
        "Detailed health check completed",
        correlation_id=correlation_id,
        overall_status=health_results["overall_status"]
    )

    return JSONResponse(status_code=status_code, content=health_results)


def _check_database_health() -> Dict[str, Any]:
    """Check database reachability and that every reporting table exists"""
    start_time = time.time()

    db_health = check_db_health()
    response_time = time.time() - start_time

    result = {
        "status": db_health["status"],
        "message": db_health["message"],
        "response_time": f"{response_time:.4f}s",
        "details": db_health
    }

    missing_tables = [
        table for table, exists in db_health.get("tables", {}).items() if not exists
    ]
    if missing_tables:
        result["status"] = "unhealthy"
        result["message"] = f"Missing tables: {missing_tables}"

    return result
