import enum
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from prometheus_client import Counter, Histogram
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from hospital_reports.core.exceptions import ReportError, ReportErrorKind
from hospital_reports.schemas.report import ReportInfo, ReportParameterInfo, ReportResult
from hospital_reports.services.descriptors import ReportDefinition, ReportParameter
from hospital_reports.services.query_builder import build_report_query
from hospital_reports.services.report_definitions import CANONICAL_REPORTS
from hospital_reports.utils.logger import operation_timer

logger = structlog.get_logger(__name__)

REPORT_RUNS = Counter(
    "report_runs_total",
    "Report executions",
    ["report", "outcome"]
)
REPORT_DURATION = Histogram(
    "report_duration_seconds",
    "Report execution time in seconds",
    ["report"]
)


def _normalize_value(value: Any) -> Any:
    """Convert driver values to plain JSON-friendly scalars"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


class ReportCatalog:
    """Fixed set of named reports executed against a relational session.

    The catalog holds no connection state; every call works on the session it
    is given and only ever issues SELECT statements.
    """

    def __init__(self, definitions: Iterable[ReportDefinition] = CANONICAL_REPORTS):
        self._definitions: Dict[str, ReportDefinition] = {}
        for definition in definitions:
            if definition.name in self._definitions:
                raise ValueError(f"Duplicate report name: {definition.name}")
            self._definitions[definition.name] = definition

    @property
    def names(self) -> List[str]:
        return list(self._definitions)

    def get_definition(self, name: str) -> ReportDefinition:
        """Return the definition registered under ``name``"""
        try:
            return self._definitions[name]
        except KeyError:
            raise ReportError.not_found(name) from None

    def describe(self, name: str) -> ReportInfo:
        """Build the public metadata for one report"""
        definition = self.get_definition(name)
        sort = [f"{key.column} {'desc' if key.descending else 'asc'}" for key in definition.order_by]
        sort.append(f"{definition.tie_break_column} asc")

        return ReportInfo(
            name=definition.name,
            title=definition.title,
            description=definition.description,
            entities=definition.entities,
            columns=definition.columns,
            group_by=[dimension.name for dimension in definition.dimensions],
            filters=[predicate.describe() for predicate in definition.having],
            sort=sort,
            limit=definition.limit,
            parameters=[
                ReportParameterInfo(
                    name=parameter.name,
                    type=parameter.type.__name__,
                    description=parameter.description
                )
                for parameter in definition.parameters
            ]
        )

    def list_reports(self) -> List[ReportInfo]:
        """Metadata for every report, in catalog order"""
        return [self.describe(name) for name in self._definitions]

    def validate_parameters(
        self,
        definition: ReportDefinition,
        parameters: Optional[Mapping[str, Any]],
        db: Session
    ) -> Dict[str, Any]:
        """
        Coerce caller parameters to their declared types and check them.

        Raises:
            ReportError: INVALID_PARAMETER for unknown names, values of the
                wrong type, an inverted date range, or identifiers that do
                not resolve to an existing row
        """
        validated: Dict[str, Any] = {}

        for name, raw_value in (parameters or {}).items():
            parameter = definition.get_parameter(name)
            if parameter is None:
                raise ReportError.invalid_parameter(
                    name,
                    f"Report '{definition.name}' does not accept parameter '{name}'",
                    raw_value
                )
            if raw_value is None or raw_value == "":
                continue
            validated[name] = self._coerce(parameter, raw_value)

        date_from = validated.get("date_from")
        date_to = validated.get("date_to")
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ReportError.invalid_parameter(
                "date_from",
                "date_from must not be later than date_to",
                date_from
            )

        for name, value in validated.items():
            parameter = definition.get_parameter(name)
            if parameter.references is not None and db.get(parameter.references, value) is None:
                raise ReportError.invalid_parameter(
                    name,
                    f"No {parameter.references.__tablename__} row with id {value}",
                    value
                )

        return validated

    @staticmethod
    def _coerce(parameter: ReportParameter, raw_value: Any) -> Any:
        # Bounds are checked here so out-of-range ids never reach the driver
        try:
            return TypeAdapter(parameter.annotation).validate_python(raw_value)
        except ValidationError as e:
            raise ReportError.invalid_parameter(
                parameter.name,
                f"Parameter '{parameter.name}' must be a valid {parameter.type.__name__}: "
                f"{e.errors()[0]['msg']}",
                raw_value
            ) from None

    def run_report(
        self,
        name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        db: Session = None
    ) -> ReportResult:
        """
        Execute a named report and return its full row set.

        Raises:
            ReportError: NOT_FOUND for an unknown name, INVALID_PARAMETER for
                rejected parameters, SOURCE_UNAVAILABLE when the store cannot
                run the query
        """
        if db is None:
            raise ValueError("A database session is required to run a report")

        definition = self.get_definition(name)
        start_time = time.time()

        try:
            with operation_timer("run_report", logger=logger, report=name):
                validated = self.validate_parameters(definition, parameters, db)
                statement = build_report_query(definition, validated)
                result = db.execute(statement)
                rows = [
                    {column: _normalize_value(row[column]) for column in definition.columns}
                    for row in result.mappings()
                ]

        except ReportError as e:
            REPORT_RUNS.labels(report=name, outcome=e.kind.value).inc()
            raise

        except SQLAlchemyError as e:
            REPORT_RUNS.labels(report=name, outcome=ReportErrorKind.SOURCE_UNAVAILABLE.value).inc()
            raise ReportError.source_unavailable(name, e) from e

        REPORT_RUNS.labels(report=name, outcome="success").inc()
        REPORT_DURATION.labels(report=name).observe(time.time() - start_time)

        logger.info("Report generated", report=name, rows=len(rows), parameters=sorted(validated))

        return ReportResult(
            report=definition.name,
            title=definition.title,
            columns=definition.columns,
            rows=rows,
            row_count=len(rows),
            parameters={key: _serialize_parameter(value) for key, value in validated.items()}
        )


def _serialize_parameter(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


__all__ = ["ReportCatalog"]
