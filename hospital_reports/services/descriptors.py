"""
Declarative report descriptors.

A report is a frozen description of which entities it reads, how they are
joined, what it groups by, which aggregates it computes, how the aggregated
rows are filtered, ordered and capped, and which parameters it accepts. The
query builder turns a descriptor into one SELECT statement; nothing here
touches a database.
"""

import enum
import operator
from dataclasses import dataclass
from typing import Annotated, Any, Callable, List, Optional, Tuple

from pydantic import Field


class AggregateKind(str, enum.Enum):
    """Aggregate expression kinds"""
    COUNT_DISTINCT = "count_distinct"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    RATIO = "ratio"
    SHARE_OF_TOTAL = "share_of_total"


# Kinds computed from other aggregates rather than from a column
DERIVED_KINDS = (AggregateKind.RATIO, AggregateKind.SHARE_OF_TOTAL)

OPERATOR_SYMBOLS = {
    operator.eq: "=",
    operator.ne: "!=",
    operator.gt: ">",
    operator.ge: ">=",
    operator.lt: "<",
    operator.le: "<=",
}


@dataclass(frozen=True, eq=False)
class Join:
    """Equality join from the current FROM clause to ``target``.

    ``target`` is a mapped class or a subquery. Joins are outer unless
    ``outer`` is False, so parents without children keep their row.
    """
    target: Any
    on: Any
    outer: bool = True

    @property
    def target_name(self) -> str:
        return getattr(self.target, "__tablename__", None) or self.target.name


@dataclass(frozen=True, eq=False)
class Dimension:
    """Grouping key, also emitted as an output column"""
    name: str
    column: Any


@dataclass(frozen=True, eq=False)
class Aggregate:
    """
    Aggregate output column.

    Column aggregates apply ``kind`` to ``column``, restricted to rows where
    ``where`` holds when it is given. Derived aggregates (ratio, share of
    total) reference earlier aggregates by name through ``numerator`` and
    ``denominator``. ``default`` replaces a NULL result and ``precision``
    rounds the final value.
    """
    name: str
    kind: AggregateKind
    column: Any = None
    where: Any = None
    numerator: Optional[str] = None
    denominator: Optional[str] = None
    scale: float = 1
    default: Any = None
    precision: Optional[int] = None

    @property
    def is_derived(self) -> bool:
        return self.kind in DERIVED_KINDS

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return tuple(name for name in (self.numerator, self.denominator) if name)


@dataclass(frozen=True)
class Predicate:
    """Post-aggregation filter on an output column (HAVING)"""
    column: str
    op: Callable[[Any, Any], Any] = operator.gt
    value: Any = 0

    def describe(self) -> str:
        symbol = OPERATOR_SYMBOLS.get(self.op, getattr(self.op, "__name__", "?"))
        return f"{self.column} {symbol} {self.value}"


@dataclass(frozen=True)
class SortKey:
    """Ordering on an output column; NULLs always sort last"""
    column: str
    descending: bool = True


@dataclass(frozen=True, eq=False)
class ReportParameter:
    """
    Optional filter a caller may supply.

    The value is coerced to ``type`` and compared to ``column`` with ``op``.
    When ``join_target`` is None the comparison goes into WHERE; otherwise it
    is added to the ON clause of the join on that target, which keeps outer
    rows that have no matching child. ``references`` names the mapped class
    whose primary key the value must resolve to. ``minimum`` and ``maximum``
    bound the coerced value, inclusive.
    """
    name: str
    type: type
    column: Any
    op: Callable[[Any, Any], Any] = operator.eq
    join_target: Any = None
    references: Any = None
    description: str = ""
    minimum: Any = None
    maximum: Any = None

    @property
    def annotation(self) -> Any:
        """Type used to validate raw values, bounds included"""
        if self.minimum is None and self.maximum is None:
            return self.type
        return Annotated[self.type, Field(ge=self.minimum, le=self.maximum)]


@dataclass(frozen=True, eq=False)
class ReportDefinition:
    """Complete declarative description of one report"""
    name: str
    title: str
    description: str
    base: Any
    dimensions: Tuple[Dimension, ...]
    aggregates: Tuple[Aggregate, ...]
    tie_break: Any
    joins: Tuple[Join, ...] = ()
    having: Tuple[Predicate, ...] = ()
    order_by: Tuple[SortKey, ...] = ()
    limit: Optional[int] = None
    parameters: Tuple[ReportParameter, ...] = ()

    def __post_init__(self):
        seen: List[str] = []
        for name in self.columns:
            if name in seen:
                raise ValueError(f"{self.name}: duplicate output column '{name}'")
            seen.append(name)

        available = [dimension.name for dimension in self.dimensions]
        for aggregate in self.aggregates:
            if aggregate.is_derived:
                missing = [name for name in aggregate.depends_on if name not in available]
                if not aggregate.numerator or missing:
                    raise ValueError(
                        f"{self.name}: aggregate '{aggregate.name}' references unknown columns {missing}"
                    )
            elif aggregate.column is None:
                raise ValueError(f"{self.name}: aggregate '{aggregate.name}' has no column")
            available.append(aggregate.name)

        for reference in [p.column for p in self.having] + [s.column for s in self.order_by]:
            if reference not in self.columns:
                raise ValueError(f"{self.name}: unknown output column '{reference}'")

        join_targets = [join.target for join in self.joins]
        for parameter in self.parameters:
            if parameter.join_target is not None and not any(
                parameter.join_target is target for target in join_targets
            ):
                raise ValueError(
                    f"{self.name}: parameter '{parameter.name}' targets an entity that is not joined"
                )

        if self.limit is not None and self.limit < 1:
            raise ValueError(f"{self.name}: limit must be positive")

    @property
    def columns(self) -> List[str]:
        return [d.name for d in self.dimensions] + [a.name for a in self.aggregates]

    @property
    def tie_break_column(self) -> str:
        for dimension in self.dimensions:
            if dimension.column is self.tie_break:
                return dimension.name
        return self.tie_break.key

    @property
    def entities(self) -> List[str]:
        return [self.base.__tablename__] + [join.target_name for join in self.joins]

    def get_parameter(self, name: str) -> Optional[ReportParameter]:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None


# Descriptor constructors

def count_distinct(name: str, column: Any, where: Any = None) -> Aggregate:
    return Aggregate(name, AggregateKind.COUNT_DISTINCT, column=column, where=where)


def total(name: str, column: Any, where: Any = None, default: Any = None,
          precision: Optional[int] = None) -> Aggregate:
    return Aggregate(name, AggregateKind.SUM, column=column, where=where,
                     default=default, precision=precision)


def average(name: str, column: Any, precision: Optional[int] = 2) -> Aggregate:
    return Aggregate(name, AggregateKind.AVG, column=column, precision=precision)


def earliest(name: str, column: Any) -> Aggregate:
    return Aggregate(name, AggregateKind.MIN, column=column)


def latest(name: str, column: Any) -> Aggregate:
    return Aggregate(name, AggregateKind.MAX, column=column)


def ratio(name: str, numerator: str, denominator: str, scale: float = 1,
          precision: Optional[int] = 2) -> Aggregate:
    """numerator / denominator * scale; NULL when the denominator is zero"""
    return Aggregate(name, AggregateKind.RATIO, numerator=numerator,
                     denominator=denominator, scale=scale, precision=precision)


def share_of_total(name: str, of: str, scale: float = 100,
                   precision: Optional[int] = 2) -> Aggregate:
    """Each group's share of ``of`` summed over every group in the result"""
    return Aggregate(name, AggregateKind.SHARE_OF_TOTAL, numerator=of,
                     scale=scale, precision=precision)


__all__ = [
    "AggregateKind",
    "Join",
    "Dimension",
    "Aggregate",
    "Predicate",
    "SortKey",
    "ReportParameter",
    "ReportDefinition",
    "count_distinct",
    "total",
    "average",
    "earliest",
    "latest",
    "ratio",
    "share_of_total",
]
