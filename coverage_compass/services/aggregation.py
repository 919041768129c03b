"""
Metric aggregation service.

Sums the five core metrics over an arbitrary row collection. Rows may be
validated PerformanceRow models or plain mappings straight from an upstream
parser (camelCase keys or the Datorama headers such as 'Media Cost'). Missing
or non-numeric values count as 0 and never raise.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Union

from coverage_compass.models.coercion import parse_numeric
from coverage_compass.models.enums import CoreMetric, Dimension
from coverage_compass.models.schemas import MetricTotals, PerformanceRow


RowLike = Union[PerformanceRow, Mapping[str, Any]]
CategoryPredicate = Callable[[Optional[str]], bool]

_METRIC_BY_LABEL = {metric.label: metric for metric in CoreMetric}


def resolve_metric(metric: Union[CoreMetric, str]) -> CoreMetric:
    """
    Resolve a metric given as enum, camelCase name or extract header.

    Raises:
        ValueError: If the name matches no core metric.
    """
    if isinstance(metric, CoreMetric):
        return metric
    if metric in _METRIC_BY_LABEL:
        return _METRIC_BY_LABEL[metric]
    return CoreMetric(metric)


def row_metric_value(row: RowLike, metric: CoreMetric) -> float:
    """Read one metric from a row, coercing missing/invalid values to 0."""
    if isinstance(row, PerformanceRow):
        return row.metric_value(metric)
    if isinstance(row, Mapping):
        value = row.get(metric.value)
        if value is None:
            value = row.get(metric.label)
        return parse_numeric(value)
    return parse_numeric(getattr(row, metric.value, None))


def row_category_value(row: RowLike) -> Optional[str]:
    """Read the categorical value belonging to the row's dimension."""
    if isinstance(row, PerformanceRow):
        return row.dimension_value

    try:
        dimension = Dimension(str(row.get("dimension", "")).replace(" ", ""))
    except ValueError:
        return None
    if not dimension.field_name:
        return None

    value = row.get(dimension.field_name)
    if value is None:
        value = row.get(dimension.label)
    return None if value is None else str(value)


def sum_metric(
    rows: Iterable[RowLike],
    metric: Union[CoreMetric, str],
    predicate: Optional[CategoryPredicate] = None,
) -> float:
    """
    Sum one metric over the rows.

    Args:
        rows: Row collection.
        metric: Metric to sum.
        predicate: Optional filter over each row's categorical value; only
            rows for which it returns True are summed.

    Returns:
        The sum; 0.0 for an empty collection.

    Example:
        >>> sum_metric(rows, CoreMetric.NVWR, predicate=lambda v: v != "X5")
        870.0
    """
    resolved = resolve_metric(metric)
    total = 0.0
    for row in rows:
        if predicate is not None and not predicate(row_category_value(row)):
            continue
        total += row_metric_value(row, resolved)
    return total


def aggregate_totals(
    rows: Iterable[RowLike],
    predicate: Optional[CategoryPredicate] = None,
) -> MetricTotals:
    """Sum every core metric over the rows."""
    materialized = list(rows)
    return MetricTotals(**{
        metric.value: sum_metric(materialized, metric, predicate)
        for metric in CoreMetric
    })
