"""CSV loader with automatic encoding and delimiter detection.

Turns a CSV file into a profiled ``Dataset`` of plain Python scalars.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from typing import Optional

import chardet
import numpy as np
import pandas as pd

from datalens.models import Row, Scalar
from datalens.tools.inspection import build_dataset

logger = logging.getLogger(__name__)


def _detect_encoding(file_path: str) -> str:
    """Detect file encoding using chardet, falling back to utf-8."""
    try:
        with open(file_path, "rb") as f:
            raw = f.read()
    except OSError as exc:
        logger.warning("Could not read %s for encoding detection: %s", file_path, exc)
        return "utf-8"
    if not raw:
        return "utf-8"
    encoding = chardet.detect(raw).get("encoding")
    return encoding or "utf-8"


def _detect_delimiter(text: str) -> str:
    """Detect CSV delimiter using csv.Sniffer, falling back to comma."""
    try:
        sample = text[:8192]
        dialect = csv.Sniffer().sniff(sample, delimiters=",\t;|")
        return dialect.delimiter
    except csv.Error:
        return ","


def _read_with_encoding(file_path: str, encoding: str) -> Optional[str]:
    """Try reading a file with the given encoding. Returns text or None."""
    try:
        with open(file_path, "r", encoding=encoding) as f:
            return f.read()
    except (UnicodeDecodeError, LookupError):
        return None


def _try_parse(text: str, delimiter: str) -> Optional[pd.DataFrame]:
    """Try parsing text as CSV with the given delimiter. Returns DataFrame or None."""
    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            engine="python",
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as exc:
        logger.debug("Parsing with delimiter %r failed: %s", delimiter, exc)
        return None


def _to_scalar(value: object) -> Scalar:
    """Convert a pandas cell to a plain Python scalar (NaN -> None)."""
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (str, bool, int, float)):
        return value
    return str(value)


def frame_to_rows(df: pd.DataFrame) -> list[Row]:
    """Convert a DataFrame to row mappings of plain Python scalars."""
    columns = [str(c) for c in df.columns]
    return [
        {col: _to_scalar(val) for col, val in zip(columns, record)}
        for record in df.itertuples(index=False, name=None)
    ]


def load_csv(file_path: str) -> dict:
    """Load a CSV file into a ``Dataset`` with encoding/delimiter detection.

    Args:
        file_path: Path to the CSV file.

    Returns:
        dict with keys:
            - "dataset": Dataset or None
            - "error": Optional[str] error message if loading failed
    """
    if not os.path.exists(file_path):
        return {"dataset": None, "error": f"File not found: {file_path}"}

    if not os.path.isfile(file_path):
        return {"dataset": None, "error": f"Path is not a file: {file_path}"}

    try:
        file_size = os.path.getsize(file_path)
    except OSError as e:
        return {"dataset": None, "error": f"Cannot read file: {e}"}
    if file_size == 0:
        return {"dataset": None, "error": "File is empty"}

    # Detect encoding with fallback chain
    encoding = _detect_encoding(file_path)
    text = _read_with_encoding(file_path, encoding)
    if text is None:
        text = _read_with_encoding(file_path, "utf-8")
    if text is None:
        # latin-1 never fails for byte sequences
        text = _read_with_encoding(file_path, "latin-1")
    if text is None:
        return {"dataset": None, "error": "Failed to decode file with any supported encoding"}

    if not text.strip():
        return {"dataset": None, "error": "File is empty"}

    delimiter = _detect_delimiter(text)
    df = _try_parse(text, delimiter)
    if df is None:
        return {"dataset": None, "error": "Failed to parse CSV file"}

    # A single wide column usually means the sniffer picked the wrong delimiter
    if len(df.columns) == 1 and len(df) > 1:
        for alt_delim in ["\t", ";", "|", ","]:
            if alt_delim == delimiter:
                continue
            alt_df = _try_parse(text, alt_delim)
            if alt_df is not None and len(alt_df.columns) > 1:
                df = alt_df
                break

    if len(df) == 0:
        return {"dataset": None, "error": "File contains only headers with no data rows"}

    dataset = build_dataset(
        frame_to_rows(df),
        file_name=os.path.basename(file_path),
        file_size=file_size,
        headers=[str(c) for c in df.columns],
    )
    logger.info(
        "Loaded %s (%s): %d rows x %d columns",
        dataset.file_name,
        encoding,
        dataset.total_rows,
        len(dataset.headers),
    )
    return {"dataset": dataset, "error": None}
