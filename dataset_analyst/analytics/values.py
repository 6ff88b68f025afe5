"""Cell-level parsing shared by every analytics stage.

Raw dataset cells arrive as strings (or ``None``). These helpers are the only
place that decides what counts as null, a number, a date or a boolean, so the
profiler and the executors never disagree about a value.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

import pandas as pd

BOOLEAN_TRUE = frozenset({"true", "yes", "1"})
BOOLEAN_FALSE = frozenset({"false", "no", "0"})
BOOLEAN_TOKENS = BOOLEAN_TRUE | BOOLEAN_FALSE

THOUSANDS_SEPARATORS = (",",)

_DATE_FORMATS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"^\d{4}-\d{2}-\d{2}"), "%Y-%m-%d"),
    (re.compile(r"^\d{4}/\d{2}/\d{2}"), "%Y/%m/%d"),
    (re.compile(r"^\d{2}/\d{2}/\d{4}"), "%m/%d/%Y"),
    (re.compile(r"^\d{2}-\d{2}-\d{4}"), "%m-%d-%Y"),
)


def normalize_cell(value: Any) -> str | None:
    """Trim a raw cell; empty strings and missing values become ``None``."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def parse_number(value: Any) -> float | None:
    text = normalize_cell(value)
    if text is None:
        return None
    # float() accepts "1_000"; only commas group digits here.
    if "_" in text:
        return None
    for sep in THOUSANDS_SEPARATORS:
        text = text.replace(sep, "")
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_date(value: Any) -> date | None:
    """Parse ISO-like and US-style calendar dates, ignoring any time suffix."""
    text = normalize_cell(value)
    if text is None:
        return None
    for pattern, fmt in _DATE_FORMATS:
        match = pattern.match(text)
        if match is None:
            continue
        try:
            return datetime.strptime(match.group(0), fmt).date()
        except ValueError:
            return None
    return None


def parse_boolean(value: Any) -> bool | None:
    text = normalize_cell(value)
    if text is None:
        return None
    token = text.lower()
    if token in BOOLEAN_TRUE:
        return True
    if token in BOOLEAN_FALSE:
        return False
    return None


def numeric_series(series: pd.Series) -> pd.Series:
    """Map a raw column onto floats, with NaN wherever a cell is null or unparseable."""
    return series.map(parse_number).astype("float64")


def category_series(series: pd.Series) -> pd.Series:
    """Map a raw column onto trimmed labels, with ``None`` for null cells."""
    return series.map(normalize_cell)
