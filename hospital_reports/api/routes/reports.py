from typing import Union

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
import pandas as pd
import structlog

from hospital_reports.api.dependencies import get_correlation_id, get_report_catalog
from hospital_reports.core.config import AppConstants
from hospital_reports.core.database import get_db
from hospital_reports.schemas.report import (
    ErrorResponse,
    ReportCatalogResponse,
    ReportInfo,
    ReportResult
)
from hospital_reports.services.report_catalog import ReportCatalog

logger = structlog.get_logger(__name__)
router = APIRouter()

# Query parameters consumed by the endpoint itself, never forwarded to a report
RESERVED_QUERY_PARAMS = {"format"}
EXPORT_FORMAT_PATTERN = f"^({'|'.join(AppConstants.EXPORT_FORMATS)})$"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid report parameter"},
    404: {"model": ErrorResponse, "description": "Unknown report"},
    503: {"model": ErrorResponse, "description": "Data source unavailable"},
}


@router.get(
    "/reports",
    response_model=ReportCatalogResponse,
    summary="List Reports",
    description="List every report in the catalog with its columns and parameters"
)
def list_reports(
    correlation_id: str = Depends(get_correlation_id),
    catalog: ReportCatalog = Depends(get_report_catalog)
) -> ReportCatalogResponse:
    reports = catalog.list_reports()
    return ReportCatalogResponse(
        reports=reports,
        total=len(reports),
        correlation_id=correlation_id
    )


@router.get(
    "/reports/{report_name}",
    response_model=ReportInfo,
    responses={404: ERROR_RESPONSES[404]},
    summary="Describe Report",
    description="Metadata for a single report"
)
def describe_report(
    report_name: str,
    catalog: ReportCatalog = Depends(get_report_catalog)
) -> ReportInfo:
    return catalog.describe(report_name)


@router.get(
    "/reports/{report_name}/run",
    response_model=ReportResult,
    responses=ERROR_RESPONSES,
    summary="Run Report",
    description="Execute a report and return its rows as JSON or CSV"
)
def run_report(
    report_name: str,
    request: Request,
    format: str = Query("json", pattern=EXPORT_FORMAT_PATTERN, description="Output encoding"),
    correlation_id: str = Depends(get_correlation_id),
    db: Session = Depends(get_db),
    catalog: ReportCatalog = Depends(get_report_catalog)
) -> Union[ReportResult, Response]:
    """
    Execute a report from the catalog.

    **Parameters:**
    - **report_name**: One of the names returned by `GET /reports`
    - **format**: `json` (default) or `csv`
    - any other query parameter is passed to the report, e.g.
      `date_from`, `date_to`, `doctor_id`, `department_id`

    **Returns:**
    - **rows**: Result rows in report order
    - **columns**: Output column names
    - **row_count**: Number of rows
    """
    parameters = {
        key: value for key, value in request.query_params.items()
        if key not in RESERVED_QUERY_PARAMS
    }

    logger.info(
        "Report requested",
        correlation_id=correlation_id,
        report=report_name,
        parameters=sorted(parameters),
        format=format
    )

    result = catalog.run_report(report_name, parameters, db=db)
    result.correlation_id = correlation_id

    if format == "csv":
        frame = pd.DataFrame(result.rows, columns=result.columns)
        return Response(
            content=frame.to_csv(index=False),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{result.report}.csv"'
            }
        )

    return result
