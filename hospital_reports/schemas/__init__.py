from hospital_reports.schemas.report import (
    ReportParameterInfo,
    ReportInfo,
    ReportCatalogResponse,
    ReportResult,
    ErrorResponse
)

__all__ = [
    "ReportParameterInfo",
    "ReportInfo",
    "ReportCatalogResponse",
    "ReportResult",
    "ErrorResponse"
]
