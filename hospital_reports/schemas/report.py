from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportParameterInfo(BaseModel):
    """Parameter accepted by a report"""

    name: str = Field(..., description="Query parameter name")
    type: str = Field(..., description="Expected value type (int or date)")
    description: str = Field("", description="What the parameter restricts")


class ReportInfo(BaseModel):
    """Metadata describing a report definition"""

    name: str = Field(..., description="Report identifier used to run it")
    title: str = Field(..., description="Human-readable report title")
    description: str = Field(..., description="What the report computes")
    entities: List[str] = Field(..., description="Tables read by the report")
    columns: List[str] = Field(..., description="Output columns, in order")
    group_by: List[str] = Field(..., description="Grouping columns")
    filters: List[str] = Field(default_factory=list, description="Post-aggregation filters")
    sort: List[str] = Field(default_factory=list, description="Sort order")
    limit: Optional[int] = Field(None, description="Maximum number of rows returned")
    parameters: List[ReportParameterInfo] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "department_financial_performance",
                "title": "Department Financial Performance",
                "description": "Billed and collected revenue per department with its collection rate.",
                "entities": ["departments", "doctors", "appointments", "billing"],
                "columns": ["department_id", "department_name", "total_revenue", "collection_rate"],
                "group_by": ["department_id", "department_name", "department_head"],
                "filters": ["total_revenue > 0"],
                "sort": ["total_revenue desc", "department_id asc"],
                "limit": None,
                "parameters": [{"name": "department_id", "type": "int", "description": "Restrict to a single department"}]
            }
        }
    }


class ReportCatalogResponse(BaseModel):
    """Response schema for the report listing"""

    reports: List[ReportInfo] = Field(..., description="Available reports")
    total: int = Field(..., description="Number of available reports")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")


class ReportResult(BaseModel):
    """Tabular result of a report run"""

    report: str = Field(..., description="Report identifier")
    title: str = Field(..., description="Report title")
    columns: List[str] = Field(..., description="Output columns, in order")
    rows: List[Dict[str, Any]] = Field(..., description="Result rows keyed by column name")
    row_count: int = Field(..., ge=0, description="Number of rows returned")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Applied parameters")
    generated_at: datetime = Field(default_factory=_utc_now, description="Execution timestamp")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")


class ErrorResponse(BaseModel):
    """Standard error response schema"""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_utc_now, description="Error timestamp")


__all__ = [
    "ReportParameterInfo",
    "ReportInfo",
    "ReportCatalogResponse",
    "ReportResult",
    "ErrorResponse"
]
