from hospital_reports.api.routes import health, reports
from hospital_reports.api.dependencies import get_correlation_id, get_report_catalog

__all__ = [
    "health",
    "reports",
    "get_correlation_id",
    "get_report_catalog"
]
