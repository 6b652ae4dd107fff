import enum
from typing import Any, Dict, Optional


class ReportErrorKind(str, enum.Enum):
    """Failure categories surfaced by the report catalog"""
    NOT_FOUND = "not_found"
    INVALID_PARAMETER = "invalid_parameter"
    SOURCE_UNAVAILABLE = "source_unavailable"


class ReportError(Exception):
    """Base exception for report lookup, validation and execution errors"""

    def __init__(
        self,
        kind: ReportErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    @classmethod
    def not_found(cls, name: str) -> "ReportError":
        return cls(
            ReportErrorKind.NOT_FOUND,
            f"Unknown report: {name}",
            {"report": name}
        )

    @classmethod
    def invalid_parameter(cls, parameter: str, message: str, value: Any = None) -> "ReportError":
        return cls(
            ReportErrorKind.INVALID_PARAMETER,
            message,
            {"parameter": parameter, "value": None if value is None else str(value)}
        )

    @classmethod
    def source_unavailable(cls, report: str, error: Exception) -> "ReportError":
        return cls(
            ReportErrorKind.SOURCE_UNAVAILABLE,
            f"Data source could not execute report '{report}': {error}",
            {"report": report, "error_type": type(error).__name__}
        )

    def __repr__(self):
        return f"<ReportError(kind='{self.kind.value}', message='{self.message}')>"


__all__ = ["ReportError", "ReportErrorKind"]
