import secrets
from typing import Mapping

from fastapi import Request

from hospital_reports.services.report_catalog import ReportCatalog

# Report definitions are immutable, one catalog serves every request
_report_catalog = ReportCatalog()

# Checked in order; the first one present wins
CORRELATION_ID_HEADERS = ("X-Correlation-ID", "X-Request-ID")


def get_report_catalog() -> ReportCatalog:
    """Dependency returning the shared report catalog"""
    return _report_catalog


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """Take the caller's correlation ID from the request headers or mint one"""
    for header in CORRELATION_ID_HEADERS:
        if headers.get(header):
            return headers[header]

    return f"rpt-{secrets.token_hex(8)}"


def get_correlation_id(request: Request) -> str:
    """
    Get the correlation ID assigned to this request.

    The logging middleware resolves it once per request and stores it on
    ``request.state``; handlers, error bodies and log lines all reuse it.

    **Returns:**
    - **correlation_id**: Unique identifier for request tracing
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id is None:
        correlation_id = resolve_correlation_id(request.headers)
        request.state.correlation_id = correlation_id

    return correlation_id


__all__ = [
    "CORRELATION_ID_HEADERS",
    "get_report_catalog",
    "get_correlation_id",
    "resolve_correlation_id"
]
