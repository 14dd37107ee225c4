"""EDA tools: descriptive statistics, correlation, and chart rendering."""

from __future__ import annotations

import logging
import math
import os
from collections import Counter
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for headless rendering

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

from datalens.models import ColumnStats, ColumnType, CorrelationResult, Dataset  # noqa: E402
from datalens.tools.aggregation import category_counts, histogram  # noqa: E402
from datalens.tools.inspection import is_number, numeric_columns  # noqa: E402

logger = logging.getLogger(__name__)


def _numeric_values(dataset: Dataset, column: str) -> list[float]:
    return [v for v in dataset.column_values(column) if is_number(v)]


def describe_column(column: str, values: list[float]) -> ColumnStats:
    """Compute descriptive statistics for one series of numbers.

    Quartiles use index selection on the sorted values (no interpolation).
    An empty series yields an all-zero record.
    """
    if not values:
        return ColumnStats(column=column)

    ordered = sorted(values)
    arr = np.array(ordered, dtype=float)
    n = len(ordered)

    # Counter keeps first-seen order on ties, so the smallest value wins.
    mode = Counter(ordered).most_common(1)[0][0]

    return ColumnStats(
        column=column,
        count=n,
        mean=float(arr.mean()),
        median=float(np.median(arr)),
        mode=mode,
        std_dev=float(arr.std(ddof=0)),
        min=ordered[0],
        max=ordered[-1],
        q1=ordered[math.floor(n * 0.25)],
        q3=ordered[math.floor(n * 0.75)],
    )


def generate_statistics(dataset: Dataset) -> list[ColumnStats]:
    """Return descriptive statistics for every numeric column.

    Args:
        dataset: Input dataset.

    Returns:
        One ``ColumnStats`` per column profiled as Number, in header order.
    """
    return [
        describe_column(col, _numeric_values(dataset, col))
        for col in numeric_columns(dataset)
    ]


def pearson(xs: list[float], ys: list[float]) -> float:
    """Pearson correlation of paired samples; 0 when undefined.

    Sums run over deviations from the means.
    """
    if len(xs) < 2:
        return 0.0
    x = np.array(xs, dtype=float)
    y = np.array(ys, dtype=float)
    dx = x - x.mean()
    dy = y - y.mean()
    numerator = float((dx * dy).sum())
    denominator = math.sqrt(float((dx * dx).sum()) * float((dy * dy).sum()))
    if denominator == 0 or not math.isfinite(denominator) or not math.isfinite(numerator):
        return 0.0
    return float(np.clip(numerator / denominator, -1.0, 1.0))


def _pair_values(dataset: Dataset, col1: str, col2: str) -> tuple[list[float], list[float]]:
    xs: list[float] = []
    ys: list[float] = []
    for row in dataset.rows:
        a, b = row.get(col1), row.get(col2)
        if is_number(a) and is_number(b):
            xs.append(a)
            ys.append(b)
    return xs, ys


def calculate_correlations(dataset: Dataset) -> list[CorrelationResult]:
    """Compute Pearson correlation for every pair of numeric columns.

    Only rows where both values are numbers count. Pairs with fewer than two
    such rows, or with zero variance, get 0.

    Returns:
        Correlations sorted by descending absolute value.
    """
    columns = numeric_columns(dataset)
    results: list[CorrelationResult] = []
    for i, col1 in enumerate(columns):
        for col2 in columns[i + 1:]:
            xs, ys = _pair_values(dataset, col1, col2)
            results.append(CorrelationResult(col1, col2, pearson(xs, ys)))
    return sorted(results, key=lambda r: abs(r.value), reverse=True)


def correlation_matrix(dataset: Dataset) -> pd.DataFrame:
    """Return the square correlation matrix of the numeric columns."""
    columns = numeric_columns(dataset)
    matrix = pd.DataFrame(
        np.eye(len(columns)), index=columns, columns=columns, dtype=float
    )
    for result in calculate_correlations(dataset):
        matrix.loc[result.column1, result.column2] = result.value
        matrix.loc[result.column2, result.column1] = result.value
    return matrix


def _safe_name(column: str) -> str:
    return "".join(c if c.isalnum() else "_" for c in column)


def generate_plots(dataset: Dataset, output_dir: str, bins: int = 10) -> list[str]:
    """Render histograms, category bar charts, and a correlation heatmap.

    Saves all figures to *output_dir* and returns the list of saved file paths.

    Plots generated:
    - One histogram per numeric column (``hist_<col>.png``)
    - One bar chart of the top categories per string column (``bar_<col>.png``)
    - One correlation heatmap if >= 2 numeric columns (``correlation_heatmap.png``)

    Args:
        dataset: Input dataset.
        output_dir: Directory path where figures will be saved.
        bins: Number of histogram buckets.

    Returns:
        List of file paths for all saved figures.
    """
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    saved_paths: list[str] = []

    numeric_cols = numeric_columns(dataset)
    string_cols = [
        p.name for p in dataset.column_profiles if p.type is ColumnType.STRING
    ]

    # Histograms
    for col in numeric_cols:
        buckets = histogram(dataset, col, bins=bins)
        if not buckets:
            continue
        try:
            fig, ax = plt.subplots()
            positions = range(len(buckets))
            ax.bar(positions, [b["count"] for b in buckets])
            ax.set_xticks(list(positions))
            ax.set_xticklabels([b["name"] for b in buckets], rotation=45)
            ax.set_title(f"Histogram: {col}")
            ax.set_xlabel(col)
            ax.set_ylabel("Frequency")
            path = os.path.join(output_dir, f"hist_{_safe_name(col)}.png")
            fig.savefig(path, bbox_inches="tight")
            saved_paths.append(path)
        except (OSError, ValueError) as exc:
            logger.warning("Could not render histogram for %r: %s", col, exc)
        finally:
            plt.close("all")

    # Category bar charts
    for col in string_cols:
        counts = category_counts(dataset, col)
        if not counts:
            continue
        try:
            fig, ax = plt.subplots()
            ax.barh([c["name"] for c in counts][::-1], [c["value"] for c in counts][::-1])
            ax.set_title(f"Top categories: {col}")
            ax.set_xlabel("Count")
            path = os.path.join(output_dir, f"bar_{_safe_name(col)}.png")
            fig.savefig(path, bbox_inches="tight")
            saved_paths.append(path)
        except (OSError, ValueError) as exc:
            logger.warning("Could not render bar chart for %r: %s", col, exc)
        finally:
            plt.close("all")

    # Correlation heatmap
    if len(numeric_cols) >= 2:
        try:
            corr = correlation_matrix(dataset)
            size = len(numeric_cols)
            fig, ax = plt.subplots(figsize=(max(6, size), max(5, size)))
            sns.heatmap(
                corr, annot=True, fmt=".2f", cmap="coolwarm", vmin=-1, vmax=1, ax=ax
            )
            ax.set_title("Correlation Heatmap")
            path = os.path.join(output_dir, "correlation_heatmap.png")
            fig.savefig(path, bbox_inches="tight")
            saved_paths.append(path)
        except (OSError, ValueError) as exc:
            logger.warning("Could not render correlation heatmap: %s", exc)
        finally:
            plt.close("all")

    return saved_paths
