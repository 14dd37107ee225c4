"""Feature transformation tools: encodings and numeric scaling.

The per-method functions rewrite the row list they are given in place;
``execute_transformations`` hands them a deep copy so the input dataset stays
valid.
"""

from __future__ import annotations

import copy
import logging
import math
import re
from typing import Sequence, Union

import numpy as np

from datalens.models import (
    ActionOutcome,
    Dataset,
    OutcomeStatus,
    Row,
    TransformationAction,
    TransformationMethod,
)
from datalens.tools.inspection import canonical_text, rebuild_dataset, to_number

logger = logging.getLogger(__name__)

# Columns with more distinct values than this are not one-hot encoded.
MAX_ONE_HOT_CATEGORIES = 50

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def _outcome(
    method: Union[TransformationMethod, str, None],
    column: str,
    rows: Sequence[Row],
    description: str,
    skipped: bool = False,
) -> ActionOutcome:
    action = method.value if isinstance(method, TransformationMethod) else str(method)
    if skipped:
        logger.info("Skipped %s on column %r: %s", action, column, description)
    else:
        logger.debug("Applied %s on column %r: %s", action, column, description)
    return ActionOutcome(
        action=action,
        column=column,
        status=OutcomeStatus.SKIPPED if skipped else OutcomeStatus.APPLIED,
        rows_before=len(rows),
        rows_after=len(rows),
        description=description,
        reason=description if skipped else None,
    )


def _categories(rows: Sequence[Row], column: str) -> list[str]:
    return sorted({canonical_text(r.get(column)) for r in rows})


def _numeric_cells(rows: Sequence[Row], column: str) -> list[tuple[int, float]]:
    cells = []
    for i, row in enumerate(rows):
        number = to_number(row.get(column))
        if number is not None and math.isfinite(number):
            cells.append((i, number))
    return cells


def label_encode(rows: list[Row], column: str) -> ActionOutcome:
    """Add ``<column>_encoded`` holding each value's rank among sorted categories."""
    categories = _categories(rows, column)
    ranks = {value: rank for rank, value in enumerate(categories)}
    new_column = f"{column}_encoded"
    for row in rows:
        row[new_column] = ranks[canonical_text(row.get(column))]
    return _outcome(
        TransformationMethod.LABEL,
        column,
        rows,
        f"Encoded {len(categories)} categories of '{column}' into '{new_column}'.",
    )


def one_hot_encode(rows: list[Row], column: str) -> ActionOutcome:
    """Add one 0/1 indicator column per distinct value of *column*."""
    categories = _categories(rows, column)
    if len(categories) > MAX_ONE_HOT_CATEGORIES:
        return _outcome(
            TransformationMethod.ONE_HOT,
            column,
            rows,
            f"column '{column}' has {len(categories)} distinct values "
            f"(limit {MAX_ONE_HOT_CATEGORIES})",
            skipped=True,
        )

    for value in categories:
        new_column = f"{column}_{_NON_ALNUM.sub('_', value)}"
        for row in rows:
            row[new_column] = 1 if canonical_text(row.get(column)) == value else 0
    return _outcome(
        TransformationMethod.ONE_HOT,
        column,
        rows,
        f"Created {len(categories)} indicator columns from '{column}'.",
    )


def min_max_scale(rows: list[Row], column: str) -> ActionOutcome:
    """Rescale numeric cells to [0, 1]; skipped when the range is zero."""
    cells = _numeric_cells(rows, column)
    if not cells:
        return _outcome(
            TransformationMethod.MIN_MAX, column, rows,
            f"column '{column}' has no numeric values", skipped=True,
        )
    values = np.array([v for _, v in cells], dtype=float)
    low, high = float(values.min()), float(values.max())
    if high == low:
        return _outcome(
            TransformationMethod.MIN_MAX, column, rows,
            f"column '{column}' has zero range", skipped=True,
        )

    for i, value in cells:
        rows[i][column] = (value - low) / (high - low)
    return _outcome(
        TransformationMethod.MIN_MAX,
        column,
        rows,
        f"Scaled '{column}' from [{low:g}, {high:g}] to [0, 1].",
    )


def z_score_scale(rows: list[Row], column: str) -> ActionOutcome:
    """Standardize numeric cells with the population standard deviation."""
    cells = _numeric_cells(rows, column)
    if not cells:
        return _outcome(
            TransformationMethod.Z_SCORE, column, rows,
            f"column '{column}' has no numeric values", skipped=True,
        )
    values = np.array([v for _, v in cells], dtype=float)
    mean = float(values.mean())
    std = float(values.std(ddof=0))
    if std == 0 or not math.isfinite(std):
        return _outcome(
            TransformationMethod.Z_SCORE, column, rows,
            f"column '{column}' has zero standard deviation", skipped=True,
        )

    for i, value in cells:
        rows[i][column] = (value - mean) / std
    return _outcome(
        TransformationMethod.Z_SCORE,
        column,
        rows,
        f"Standardized '{column}' (mean={mean:.4f}, std={std:.4f}).",
    )


def log_transform(rows: list[Row], column: str) -> ActionOutcome:
    """Natural log of positive numeric cells; non-positive cells become 0."""
    clamped = 0
    for row in rows:
        value = to_number(row.get(column))
        if value is None:
            continue
        if value > 0:
            row[column] = math.log(value)
        else:
            row[column] = 0
            clamped += 1
    return _outcome(
        TransformationMethod.LOG,
        column,
        rows,
        f"Log-transformed '{column}' ({clamped} non-positive values set to 0).",
    )


_METHODS = {
    TransformationMethod.LABEL: label_encode,
    TransformationMethod.ONE_HOT: one_hot_encode,
    TransformationMethod.MIN_MAX: min_max_scale,
    TransformationMethod.Z_SCORE: z_score_scale,
    TransformationMethod.LOG: log_transform,
}


def execute_transformations(
    dataset: Dataset, actions: Sequence[TransformationAction]
) -> tuple[Dataset, list[ActionOutcome]]:
    """Apply transformation actions in order to a copy of the dataset.

    Later actions see the columns created by earlier ones. Actions with an
    unknown method, or on a column absent from the dataset, are skipped.

    Args:
        dataset: Input dataset. It is left unchanged.
        actions: Transformations to apply, in order.

    Returns:
        Tuple of (new dataset, one outcome per action).
    """
    rows: list[Row] = copy.deepcopy([dict(r) for r in dataset.rows])
    outcomes: list[ActionOutcome] = []

    for action in actions:
        try:
            method = TransformationMethod(action.method)
        except ValueError:
            outcomes.append(
                _outcome(
                    action.method,
                    action.column,
                    rows,
                    f"unknown transformation method '{action.method}' "
                    f"for column '{action.column}'",
                    skipped=True,
                )
            )
            continue
        if not action.column or not any(action.column in r for r in rows):
            outcomes.append(
                _outcome(
                    method,
                    action.column,
                    rows,
                    f"column '{action.column}' not found",
                    skipped=True,
                )
            )
            continue
        outcomes.append(_METHODS[method](rows, action.column))

    return rebuild_dataset(dataset, rows), outcomes
