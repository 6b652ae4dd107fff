from typing import Any, Dict, List, Mapping

from sqlalchemy import and_, case, distinct, func, literal_column, select
from sqlalchemy.sql import Select

from hospital_reports.services.descriptors import (
    Aggregate,
    AggregateKind,
    ReportDefinition,
)

_COLUMN_FUNCTIONS = {
    AggregateKind.SUM: func.sum,
    AggregateKind.AVG: func.avg,
    AggregateKind.MIN: func.min,
    AggregateKind.MAX: func.max,
}


def _scale_literal(scale: float):
    # Rendered inline as a decimal literal so integer operands never truncate
    return literal_column(repr(float(scale)))


def compile_aggregate(aggregate: Aggregate, compiled: Mapping[str, Any]):
    """Build the SQL expression for one aggregate.

    ``compiled`` maps the names of previously built output columns to their
    (unlabeled) expressions; derived aggregates look their operands up there.
    """
    if aggregate.kind is AggregateKind.RATIO:
        numerator = compiled[aggregate.numerator]
        denominator = compiled[aggregate.denominator]
        expression = numerator * _scale_literal(aggregate.scale) / func.nullif(denominator, 0)

    elif aggregate.kind is AggregateKind.SHARE_OF_TOTAL:
        part = compiled[aggregate.numerator]
        grand_total = func.sum(part).over()
        expression = part * _scale_literal(aggregate.scale) / func.nullif(grand_total, 0)

    else:
        column = aggregate.column
        if aggregate.where is not None:
            column = case((aggregate.where, column))

        if aggregate.kind is AggregateKind.COUNT_DISTINCT:
            expression = func.count(distinct(column))
        else:
            expression = _COLUMN_FUNCTIONS[aggregate.kind](column)

    if aggregate.default is not None:
        expression = func.coalesce(expression, aggregate.default)
    if aggregate.precision is not None:
        expression = func.round(expression, aggregate.precision)

    return expression


def build_report_query(definition: ReportDefinition, parameters: Mapping[str, Any]) -> Select:
    """
    Compile a report definition into a single SELECT.

    ``parameters`` must already be validated and coerced; keys with a None
    value are ignored.
    """
    where_clauses: List[Any] = []
    join_clauses: Dict[int, List[Any]] = {}

    for parameter in definition.parameters:
        value = parameters.get(parameter.name)
        if value is None:
            continue
        clause = parameter.op(parameter.column, value)
        if parameter.join_target is None:
            where_clauses.append(clause)
        else:
            join_clauses.setdefault(id(parameter.join_target), []).append(clause)

    expressions: Dict[str, Any] = {}
    for dimension in definition.dimensions:
        expressions[dimension.name] = dimension.column
    for aggregate in definition.aggregates:
        expressions[aggregate.name] = compile_aggregate(aggregate, expressions)

    statement = select(
        *[expression.label(name) for name, expression in expressions.items()]
    ).select_from(definition.base)

    for join in definition.joins:
        onclause = and_(join.on, *join_clauses.get(id(join.target), []))
        statement = statement.join(join.target, onclause, isouter=join.outer)

    if where_clauses:
        statement = statement.where(*where_clauses)

    statement = statement.group_by(*[dimension.column for dimension in definition.dimensions])

    # HAVING repeats the expressions; not every engine resolves output aliases there
    if definition.having:
        statement = statement.having(
            *[predicate.op(expressions[predicate.column], predicate.value)
              for predicate in definition.having]
        )

    ordering = []
    for key in definition.order_by:
        expression = expressions[key.column]
        ordering.append(
            expression.desc().nulls_last() if key.descending else expression.asc().nulls_last()
        )
    ordering.append(definition.tie_break.asc())
    statement = statement.order_by(*ordering)

    if definition.limit is not None:
        statement = statement.limit(definition.limit)

    return statement


__all__ = ["build_report_query", "compile_aggregate"]
