"""Cleaning tools and the cleaning plan executor.

Each action function takes a list of rows (and relevant parameters), builds
new rows without touching its input, and returns a tuple of
(cleaned_rows, ActionOutcome). ``execute_cleaning_plan`` runs a whole plan
against a dataset and rebuilds the result through the dataset builder.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from datalens.models import (
    CAST_TARGETS,
    ActionOutcome,
    CleaningAction,
    CleaningActionType,
    CleaningPlan,
    ColumnType,
    Dataset,
    ImputationStrategy,
    OutcomeStatus,
    Row,
    Scalar,
)
from datalens.tools.inspection import (
    canonical_text,
    is_missing,
    is_number,
    parse_date,
    rebuild_dataset,
    row_signature,
    to_number,
)

logger = logging.getLogger(__name__)

_NON_WORD_RUN = re.compile(r"[\s\W]+")

TRUTHY_TEXT = frozenset({"true", "1", "yes"})


def _applied(
    action: str,
    column: Optional[str],
    rows_before: int,
    rows_after: int,
    description: str,
) -> ActionOutcome:
    logger.debug("Applied %s: %s", action, description)
    return ActionOutcome(
        action=action,
        column=column,
        status=OutcomeStatus.APPLIED,
        rows_before=rows_before,
        rows_after=rows_after,
        description=description,
    )


def _skipped(
    action: str, column: Optional[str], rows: Sequence[Row], reason: str
) -> ActionOutcome:
    logger.info("Skipped %s on column %r: %s", action, column, reason)
    return ActionOutcome(
        action=action,
        column=column,
        status=OutcomeStatus.SKIPPED,
        rows_before=len(rows),
        rows_after=len(rows),
        description=f"Skipped {action}: {reason}",
        reason=reason,
    )


def _has_column(rows: Sequence[Row], column: str) -> bool:
    return any(column in row for row in rows)


def drop_column(rows: Sequence[Row], column: str) -> tuple[list[Row], ActionOutcome]:
    """Remove *column* from every row.

    Args:
        rows: Input rows.
        column: Column name to drop.

    Returns:
        Tuple of (new rows, outcome).
    """
    action = CleaningActionType.DROP_COLUMN.value
    if not _has_column(rows, column):
        return [dict(r) for r in rows], _skipped(
            action, column, rows, f"column '{column}' not found"
        )

    cleaned = [{k: v for k, v in row.items() if k != column} for row in rows]
    return cleaned, _applied(
        action, column, len(rows), len(cleaned), f"Dropped column '{column}'."
    )


def remove_duplicates(rows: Sequence[Row]) -> tuple[list[Row], ActionOutcome]:
    """Drop rows whose full content repeats an earlier row.

    Key order does not matter; the first occurrence is kept.
    """
    seen: set[str] = set()
    cleaned: list[Row] = []
    for row in rows:
        sig = row_signature(row)
        if sig in seen:
            continue
        seen.add(sig)
        cleaned.append(dict(row))

    removed = len(rows) - len(cleaned)
    return cleaned, _applied(
        CleaningActionType.REMOVE_DUPLICATES.value,
        None,
        len(rows),
        len(cleaned),
        f"Removed {removed} duplicate rows.",
    )


def normalize_header(header: str) -> str:
    """Lowercase, collapse whitespace/punctuation runs to '_', and trim '_'.

    >>> normalize_header("  First Name!! ")
    'first_name'
    """
    return _NON_WORD_RUN.sub("_", header.strip().lower()).strip("_")


def normalize_headers(rows: Sequence[Row]) -> tuple[list[Row], ActionOutcome]:
    """Rewrite every row's keys to their normalized form.

    When two keys normalize to the same name the later key's value wins. Keys
    that normalize to an empty string are dropped.
    """
    cleaned: list[Row] = []
    renamed: dict[str, str] = {}
    for row in rows:
        new_row: Row = {}
        for key, value in row.items():
            new_key = renamed.setdefault(key, normalize_header(key))
            if new_key:
                new_row[new_key] = value
        cleaned.append(new_row)

    changed = [f"'{old}' -> '{new}'" for old, new in renamed.items() if old != new]
    return cleaned, _applied(
        CleaningActionType.NORMALIZE_HEADERS.value,
        None,
        len(rows),
        len(cleaned),
        (
            f"Normalized {len(changed)} column name(s): {', '.join(changed)}"
            if changed
            else "All column names already normalized."
        ),
    )


def _mode(values: Sequence[Scalar]) -> Scalar:
    """Most frequent non-missing value by canonical text; first to lead wins."""
    counts: Counter = Counter()
    best_count = 0
    best: Scalar = None
    for value in values:
        if is_missing(value):
            continue
        key = canonical_text(value)
        counts[key] += 1
        if counts[key] > best_count:
            best_count = counts[key]
            best = value
    return best


def _fill_value(values: Sequence[Scalar], strategy: ImputationStrategy) -> Scalar:
    if strategy is ImputationStrategy.FILL_ZERO:
        return 0
    if strategy is ImputationStrategy.MODE:
        return _mode(values)

    numbers = [v for v in values if is_number(v)]
    if not numbers:
        return None
    if strategy is ImputationStrategy.MEAN:
        return float(np.mean(numbers))
    return float(np.median(numbers))


def impute(
    rows: Sequence[Row], column: str, strategy: str
) -> tuple[list[Row], ActionOutcome]:
    """Fill or remove missing values in a column.

    Args:
        rows: Input rows.
        column: Column name to impute.
        strategy: One of 'mean', 'median', 'mode', 'fill_zero', 'remove_row'.

    Returns:
        Tuple of (new rows, outcome). Mean/median use native numbers only;
        when no basis value exists the action is skipped.
    """
    action = CleaningActionType.IMPUTE.value
    if not _has_column(rows, column):
        return [dict(r) for r in rows], _skipped(
            action, column, rows, f"column '{column}' not found"
        )
    try:
        strat = ImputationStrategy(strategy)
    except ValueError:
        return [dict(r) for r in rows], _skipped(
            action, column, rows, f"invalid strategy '{strategy}' for column '{column}'"
        )

    if strat is ImputationStrategy.REMOVE_ROW:
        cleaned = [dict(r) for r in rows if not is_missing(r.get(column))]
        return cleaned, _applied(
            action,
            column,
            len(rows),
            len(cleaned),
            f"Removed {len(rows) - len(cleaned)} rows missing '{column}'.",
        )

    values = [r.get(column) for r in rows]
    fill = _fill_value(values, strat)
    if fill is None:
        return [dict(r) for r in rows], _skipped(
            action,
            column,
            rows,
            f"no values to compute {strat.value} of column '{column}'",
        )

    cleaned = []
    filled = 0
    for row in rows:
        new_row = dict(row)
        if is_missing(new_row.get(column)):
            new_row[column] = fill
            filled += 1
        cleaned.append(new_row)

    return cleaned, _applied(
        action,
        column,
        len(rows),
        len(cleaned),
        f"Filled {filled} missing values in '{column}' using {strat.value} ({fill!r}).",
    )


def _format_iso(ts: pd.Timestamp) -> str:
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def cast_value(value: Scalar, target: ColumnType) -> Scalar:
    """Coerce one cell to *target*.

    Number -> parsed number or None; String -> text (None stays None);
    Date -> ISO-8601 UTC string or None; Boolean -> True only for
    "true"/"1"/"yes" (case-insensitive).
    """
    if target is ColumnType.NUMBER:
        if isinstance(value, bool):
            return int(value)
        return to_number(value)

    if target is ColumnType.STRING:
        return None if value is None else canonical_text(value)

    if target is ColumnType.DATE:
        if is_missing(value) or isinstance(value, bool):
            return None
        if is_number(value):
            try:
                return _format_iso(pd.to_datetime(value, unit="ms"))
            except (ValueError, OverflowError):
                return None
        parsed = parse_date(canonical_text(value))
        return _format_iso(parsed) if parsed is not None else None

    if target is ColumnType.BOOLEAN:
        return canonical_text(value).lower() in TRUTHY_TEXT

    raise ValueError(f"Unsupported cast target '{target.value}'.")


def cast_type(
    rows: Sequence[Row], column: str, target_type: str
) -> tuple[list[Row], ActionOutcome]:
    """Convert every value in a column to the target type with coercion.

    Args:
        rows: Input rows.
        column: Column name to convert.
        target_type: 'Number', 'String', 'Date' or 'Boolean'.

    Returns:
        Tuple of (new rows, outcome).
    """
    action = CleaningActionType.CAST_TYPE.value
    if not _has_column(rows, column):
        return [dict(r) for r in rows], _skipped(
            action, column, rows, f"column '{column}' not found"
        )
    try:
        target = ColumnType(target_type)
    except ValueError:
        target = None
    if target not in CAST_TARGETS:
        return [dict(r) for r in rows], _skipped(
            action,
            column,
            rows,
            f"unsupported target type '{target_type}' for column '{column}'",
        )

    cleaned = []
    for row in rows:
        new_row = dict(row)
        new_row[column] = cast_value(row.get(column), target)
        cleaned.append(new_row)

    return cleaned, _applied(
        action,
        column,
        len(rows),
        len(cleaned),
        f"Converted '{column}' to {target.value}.",
    )


def _apply_action(
    rows: list[Row], action: CleaningAction
) -> tuple[list[Row], ActionOutcome]:
    kind = action.type.value

    if action.type is CleaningActionType.REMOVE_DUPLICATES:
        return remove_duplicates(rows)
    if action.type is CleaningActionType.NORMALIZE_HEADERS:
        return normalize_headers(rows)

    if not action.column:
        return rows, _skipped(kind, None, rows, f"{kind} requires a target column")

    if action.type is CleaningActionType.DROP_COLUMN:
        return drop_column(rows, action.column)

    if action.type is CleaningActionType.IMPUTE:
        if not action.strategy:
            return rows, _skipped(
                kind, action.column, rows, f"no strategy given for column '{action.column}'"
            )
        return impute(rows, action.column, action.strategy)

    if action.type is CleaningActionType.CAST_TYPE:
        if not action.target_type:
            return rows, _skipped(
                kind,
                action.column,
                rows,
                f"no target type given for column '{action.column}'",
            )
        return cast_type(rows, action.column, action.target_type)

    return rows, _skipped(kind, action.column, rows, f"unknown action '{kind}'")


def execute_cleaning_plan(
    dataset: Dataset, plan: CleaningPlan
) -> tuple[Dataset, list[ActionOutcome]]:
    """Apply a cleaning plan and return the cleaned dataset.

    All ``drop_column`` actions run first, whatever their position, so later
    actions never touch a column the plan deletes. The remaining actions run
    in plan order. Malformed or inapplicable actions are skipped and reported
    in the outcomes; the plan never aborts midway.

    Args:
        dataset: Input dataset. It is left unchanged.
        plan: Cleaning plan to execute.

    Returns:
        Tuple of (new dataset, one outcome per action in execution order).
    """
    rows: list[Row] = [dict(r) for r in dataset.rows]
    outcomes: list[ActionOutcome] = []

    drops = [a for a in plan.actions if a.type is CleaningActionType.DROP_COLUMN]
    rest = [a for a in plan.actions if a.type is not CleaningActionType.DROP_COLUMN]

    for action in drops + rest:
        rows, outcome = _apply_action(rows, action)
        outcomes.append(outcome)

    applied = sum(1 for o in outcomes if o.applied)
    logger.info(
        "Cleaning plan on %r: %d applied, %d skipped, rows %d -> %d",
        dataset.file_name,
        applied,
        len(outcomes) - applied,
        dataset.total_rows,
        len(rows),
    )
    return rebuild_dataset(dataset, rows), outcomes
