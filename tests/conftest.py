"""Shared Hypothesis strategies and fixtures for property-based tests.

Provides reusable strategies for generating messy row collections and the
datasets built from them.
"""

from __future__ import annotations

import pytest
from hypothesis import strategies as st

from datalens.tools.inspection import build_dataset


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

finite_floats = st.floats(
    min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False
)

numbers = st.one_of(st.integers(min_value=-1000, max_value=1000), finite_floats)

words = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N"), max_codepoint=127),
    min_size=1,
    max_size=8,
)

missing = st.sampled_from([None, ""])

scalars = st.one_of(numbers, words, st.booleans(), missing)


# ---------------------------------------------------------------------------
# messy_rows -- generates rows with controlled messiness
# ---------------------------------------------------------------------------


@st.composite
def messy_rows(
    draw: st.DrawFn,
    min_rows: int = 0,
    max_rows: int = 30,
    min_cols: int = 1,
    max_cols: int = 5,
) -> list[dict]:
    """Generate rows sharing one key set, with missing values, duplicates,
    and columns of mixed value types.

    Parameters
    ----------
    draw : hypothesis draw function
    min_rows, max_rows : row count bounds (default 0-30)
    min_cols, max_cols : column count bounds (default 1-5)

    Returns
    -------
    list of row dicts.
    """
    n_rows = draw(st.integers(min_value=min_rows, max_value=max_rows))
    n_cols = draw(st.integers(min_value=min_cols, max_value=max_cols))
    headers = [f"col {i}" for i in range(n_cols)]

    column_kinds = draw(
        st.lists(
            st.sampled_from(["number", "word", "mixed"]),
            min_size=n_cols,
            max_size=n_cols,
        )
    )
    kind_strategy = {
        "number": st.one_of(numbers, missing),
        "word": st.one_of(words, missing),
        "mixed": scalars,
    }

    rows = []
    for _ in range(n_rows):
        rows.append(
            {h: draw(kind_strategy[kind]) for h, kind in zip(headers, column_kinds)}
        )

    # --- Inject duplicate rows ---------------------------------------------
    if rows and draw(st.booleans()):
        source = draw(st.lists(st.integers(0, len(rows) - 1), min_size=1, max_size=5))
        rows.extend(dict(rows[i]) for i in source)

    return rows


@st.composite
def numeric_series(draw: st.DrawFn, min_size: int = 2, max_size: int = 40) -> list:
    """Generate a list of numbers with some missing cells."""
    values = draw(
        st.lists(
            st.one_of(numbers, missing),
            min_size=min_size,
            max_size=max_size,
        )
    )
    return values


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def people_dataset():
    """Small dataset with a numeric, a categorical and a messy column."""
    rows = [
        {"First Name": "Ann", "age": 34, "city": "Paris", "score": 7.5},
        {"First Name": "Bob", "age": None, "city": "Lyon", "score": 6.0},
        {"First Name": "Cid", "age": 28, "city": "Paris", "score": ""},
        {"First Name": "Ann", "age": 34, "city": "Paris", "score": 7.5},
        {"First Name": "Dee", "age": 45, "city": None, "score": 9.0},
    ]
    return build_dataset(rows, file_name="people.csv", file_size=512)
