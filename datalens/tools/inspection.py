"""Type inference, column profiling, and dataset building.

Also provides text summaries and issue detection used by the advisory prompt
and the report.
"""

from __future__ import annotations

import json
import logging
import math
import warnings
from collections import Counter
from typing import Iterable, Optional, Sequence

import pandas as pd

from datalens.models import ColumnProfile, ColumnType, Dataset, Row, Scalar

logger = logging.getLogger(__name__)

# Share of non-missing values a single category needs to claim the column.
TYPE_RATIO_THRESHOLD = 0.8

# Date strings of 5 characters or fewer are too ambiguous to call dates.
MIN_DATE_LENGTH = 5


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def is_missing(value: Scalar) -> bool:
    """Return True for None, empty strings, and NaN."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float):
        return math.isnan(value)
    return False


def is_number(value: Scalar) -> bool:
    """Return True for a native int/float (not bool) that is not NaN."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and not math.isnan(value)


def to_number(value: Scalar) -> Optional[float]:
    """Parse *value* as a number, returning None when it is not numeric.

    Native numbers pass through. Strings are accepted when ``int()`` or
    ``float()`` parses them after stripping whitespace. Digit-group
    underscores are rejected. Booleans and NaN are never numeric.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if is_number(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def parse_date(value: Scalar) -> Optional[pd.Timestamp]:
    """Parse a string as a calendar date with pandas' general parser."""
    if not isinstance(value, str):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(value.strip())
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed


def canonical_text(value: Scalar) -> str:
    """Return the textual key used for equality and uniqueness checks.

    ``1``, ``1.0`` and ``"1"`` share the key ``"1"``; booleans become
    ``"true"``/``"false"`` and None becomes ``"null"``.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def row_signature(row: Row) -> str:
    """Return a key that is equal for rows with identical content in any key order."""
    return json.dumps(row, sort_keys=True, default=str)


# ---------------------------------------------------------------------------
# Type inference
# ---------------------------------------------------------------------------


def infer_column_type(values: Iterable[Scalar]) -> ColumnType:
    """Classify a column's values into a ``ColumnType``.

    Missing values are ignored. A category wins when it holds more than 80% of
    the remaining values, checked in the order Number, Boolean, Date, String.
    """
    counts = Counter()
    total = 0
    for value in values:
        if is_missing(value):
            continue
        total += 1
        if isinstance(value, bool):
            counts[ColumnType.BOOLEAN] += 1
        elif to_number(value) is not None:
            counts[ColumnType.NUMBER] += 1
        elif (
            isinstance(value, str)
            and len(value) > MIN_DATE_LENGTH
            and parse_date(value) is not None
        ):
            counts[ColumnType.DATE] += 1
        else:
            counts[ColumnType.STRING] += 1

    if total == 0:
        return ColumnType.UNKNOWN
    for column_type in (
        ColumnType.NUMBER,
        ColumnType.BOOLEAN,
        ColumnType.DATE,
        ColumnType.STRING,
    ):
        if counts[column_type] / total > TYPE_RATIO_THRESHOLD:
            return column_type
    return ColumnType.MIXED


# ---------------------------------------------------------------------------
# Profiling and building
# ---------------------------------------------------------------------------


def profile_column(rows: Sequence[Row], header: str) -> ColumnProfile:
    """Build the profile of one column over *rows*."""
    values = [row.get(header) for row in rows]
    present = [v for v in values if not is_missing(v)]
    total = len(values)
    missing = total - len(present)

    return ColumnProfile(
        name=header,
        type=infer_column_type(present),
        missing_count=missing,
        missing_percentage=(missing / total * 100) if total else 0.0,
        unique_count=len({canonical_text(v) for v in present}),
        example=present[0] if present else None,
    )


def profile_columns(rows: Sequence[Row], headers: Sequence[str]) -> list[ColumnProfile]:
    """Return one profile per header, in header order."""
    return [profile_column(rows, h) for h in headers]


def derive_headers(rows: Sequence[Row]) -> list[str]:
    """Return the first row's keys followed by keys first seen in later rows."""
    headers: dict[str, None] = {}
    for row in rows:
        for key in row:
            headers.setdefault(key, None)
    return list(headers)


def build_dataset(
    rows: Sequence[Row],
    file_name: str = "",
    file_size: int = 0,
    headers: Optional[Sequence[str]] = None,
) -> Dataset:
    """Assemble a ``Dataset`` from rows, deriving headers and profiles.

    Every operation that produces new rows must return through this function
    so the profiles never go stale.

    Args:
        rows: Row mappings, in order.
        file_name: Name of the originating file.
        file_size: Size in bytes of the originating file.
        headers: Explicit header order. Defaults to the keys of the rows.

    Returns:
        A new immutable ``Dataset``.
    """
    frozen_rows = tuple(dict(r) for r in rows)
    if headers is None:
        header_list = derive_headers(frozen_rows)
    else:
        header_list = list(dict.fromkeys(headers))
        for key in derive_headers(frozen_rows):
            if key not in header_list:
                header_list.append(key)

    logger.debug(
        "Built dataset %r: %d rows x %d columns",
        file_name,
        len(frozen_rows),
        len(header_list),
    )
    return Dataset(
        file_name=file_name,
        file_size=file_size,
        total_rows=len(frozen_rows),
        headers=tuple(header_list),
        rows=frozen_rows,
        column_profiles=tuple(profile_columns(frozen_rows, header_list)),
    )


def rebuild_dataset(dataset: Dataset, rows: Sequence[Row]) -> Dataset:
    """Build a new dataset from *rows*, keeping the file metadata of *dataset*."""
    return build_dataset(rows, dataset.file_name, dataset.file_size)


def numeric_columns(dataset: Dataset) -> list[str]:
    """Return the names of columns profiled as numbers, in header order."""
    return [p.name for p in dataset.column_profiles if p.type is ColumnType.NUMBER]


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def get_dataset_info(dataset: Dataset, head: int = 10) -> str:
    """Return shape, column types, and the first rows as a formatted string.

    Args:
        dataset: The dataset to inspect.
        head: Number of leading rows to include.

    Returns:
        A formatted string containing the dataset profile.
    """
    parts: list[str] = []

    parts.append(
        f"Shape: {dataset.total_rows} rows x {len(dataset.headers)} columns"
    )

    parts.append("\nColumn Types:")
    for p in dataset.column_profiles:
        parts.append(
            f"  {p.name}: {p.type.value} "
            f"(missing {p.missing_count}, {p.missing_percentage:.1f}%; "
            f"unique {p.unique_count})"
        )

    shown = min(head, dataset.total_rows)
    parts.append(f"\nFirst {shown} rows:")
    frame = pd.DataFrame(list(dataset.rows[:shown]), columns=list(dataset.headers))
    parts.append(frame.to_string())

    return "\n".join(parts)


def detect_issues(dataset: Dataset) -> dict:
    """Detect data quality issues in the dataset.

    Returns dict with:
        - missing_pct: dict[str, float] -- column -> % missing
        - duplicate_count: int -- number of rows repeating an earlier row
        - inconsistent_types: list[str] -- columns profiled as Mixed
        - high_cardinality: list[str] -- string cols with >50% unique ratio
        - zero_variance: list[str] -- columns with at most one distinct value
    """
    seen: set[str] = set()
    duplicates = 0
    for row in dataset.rows:
        sig = row_signature(row)
        if sig in seen:
            duplicates += 1
        seen.add(sig)

    high_card: list[str] = []
    for p in dataset.column_profiles:
        present = dataset.total_rows - p.missing_count
        if p.type is ColumnType.STRING and present and p.unique_count / present > 0.5:
            high_card.append(p.name)

    return {
        "missing_pct": {
            p.name: round(p.missing_percentage, 4) for p in dataset.column_profiles
        },
        "duplicate_count": duplicates,
        "inconsistent_types": [
            p.name for p in dataset.column_profiles if p.type is ColumnType.MIXED
        ],
        "high_cardinality": high_card,
        "zero_variance": [
            p.name for p in dataset.column_profiles if p.unique_count <= 1
        ],
    }
