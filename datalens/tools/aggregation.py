"""Chart-ready aggregations. Read-only: no function here mutates the dataset."""

from __future__ import annotations

import math

import pandas as pd

from datalens.models import CategoryCount, Dataset, GroupMean, HistogramBin, ScatterPoint
from datalens.tools.inspection import canonical_text, is_missing, is_number, to_number

# Grouped means are truncated to this many groups.
MAX_GROUPS = 15


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        raise ValueError(f"'{name}' must be a positive integer, got {value}.")


def histogram(dataset: Dataset, column: str, bins: int = 10) -> list[HistogramBin]:
    """Bucket the numbers of *column* into equal-width bins over [min, max].

    Infinite values are not counted. A value equal to max lands in the last
    bin. A constant column yields a single bin named after the constant.
    """
    _require_positive("bins", bins)
    values = [
        v for v in dataset.column_values(column) if is_number(v) and math.isfinite(v)
    ]
    if not values:
        return []

    low, high = min(values), max(values)
    span = high - low
    if span == 0:
        return [{"name": canonical_text(low), "count": len(values)}]

    width = span / bins
    buckets: list[HistogramBin] = [
        {"name": f"{low + i * width:.1f}", "count": 0} for i in range(bins)
    ]
    for value in values:
        index = min(math.floor((value - low) / span * bins), bins - 1)
        buckets[index]["count"] += 1
    return buckets


def category_counts(dataset: Dataset, column: str, limit: int = 10) -> list[CategoryCount]:
    """Most frequent values of *column* by canonical text, missing excluded.

    Equal counts keep first-seen order.
    """
    _require_positive("limit", limit)
    keys = [canonical_text(v) for v in dataset.column_values(column) if not is_missing(v)]
    if not keys:
        return []
    counts = (
        pd.Series(keys, dtype=object)
        .value_counts(sort=False)
        .sort_values(ascending=False, kind="stable")
    )
    return [
        {"name": str(name), "value": int(count)} for name, count in counts.head(limit).items()
    ]


def scatter_sample(
    dataset: Dataset, x_column: str, y_column: str, limit: int = 500
) -> list[ScatterPoint]:
    """Stride-sample rows, keeping those where both columns are numbers."""
    _require_positive("limit", limit)
    step = max(1, dataset.total_rows // limit)
    points: list[ScatterPoint] = []
    for row in dataset.rows[::step]:
        x, y = row.get(x_column), row.get(y_column)
        if is_number(x) and is_number(y):
            points.append({"x": x, "y": y})
    return points


def grouped_mean(
    dataset: Dataset, group_column: str, value_column: str, limit: int = MAX_GROUPS
) -> list[GroupMean]:
    """Mean of *value_column* per group of *group_column*, highest first.

    Rows with a missing group fall into ``"Unknown"``.
    """
    _require_positive("limit", limit)
    records: list[tuple[str, float]] = []
    for row in dataset.rows:
        value = to_number(row.get(value_column))
        if value is None:
            continue
        group_value = row.get(group_column)
        group = "Unknown" if is_missing(group_value) else canonical_text(group_value)
        records.append((group, float(value)))
    if not records:
        return []

    frame = pd.DataFrame(records, columns=["name", "value"])
    means = (
        frame.groupby("name", sort=False)["value"]
        .mean()
        .sort_values(ascending=False, kind="stable")
    )
    return [
        {"name": str(name), "value": float(mean)} for name, mean in means.head(limit).items()
    ]
