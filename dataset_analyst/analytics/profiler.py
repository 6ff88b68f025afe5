"""Compute dataset profiles from parsed rows."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Mapping, Sequence

import pandas as pd

from ..loader import ParsedDataset
from .errors import DuplicateColumnError, EmptyDatasetError, NoColumnsError
from .models import ColumnProfile, DatasetProfile, SemanticType
from .values import BOOLEAN_TOKENS, normalize_cell, parse_date, parse_number

logger = logging.getLogger(__name__)

# Share of non-null values that must parse for the date/number rules to match.
TYPE_MATCH_THRESHOLD = 0.8

# Labels kept per categorical column for matching values named in questions.
TOP_VALUES_LIMIT = 20


def profile_dataset(
    rows: Sequence[Mapping[str, Any]],
    headers: Sequence[str],
    dataset_version_id: str,
) -> DatasetProfile:
    """Build a DatasetProfile from parsed rows and their headers.

    Pure function: the same rows always produce the same profile. Raises
    EmptyDatasetError / NoColumnsError instead of returning a partial profile.
    """
    if len(rows) == 0:
        raise EmptyDatasetError("Cannot profile an empty dataset: it has no data rows.")
    if len(headers) == 0:
        raise NoColumnsError("Cannot profile a dataset with no columns.")

    duplicates = sorted(name for name, n in Counter(headers).items() if n > 1)
    if duplicates:
        raise DuplicateColumnError(
            f"Column names must be unique; duplicated: {', '.join(duplicates)}"
        )

    frame = pd.DataFrame.from_records(
        [[row.get(h) for h in headers] for row in rows],
        columns=list(headers),
    )
    row_count = len(frame)
    columns = [_profile_column(name, frame[name], row_count) for name in headers]

    logger.info(
        "Profiled dataset version %s: %d rows, %d columns",
        dataset_version_id, row_count, len(columns),
    )
    return DatasetProfile(
        dataset_version_id=dataset_version_id,
        row_count=row_count,
        column_count=len(columns),
        columns=columns,
    )


def profile_parsed_dataset(dataset: ParsedDataset, dataset_version_id: str) -> DatasetProfile:
    return profile_dataset(dataset.rows, dataset.headers, dataset_version_id)


def infer_semantic_type(values: Sequence[str]) -> SemanticType:
    """Infer a column's semantic type from its non-null, trimmed values.

    Rules in order, first match wins: boolean (closed token set), date,
    number, then string as the fallback (including all-null columns).
    """
    if not values:
        return "string"

    if all(v.lower() in BOOLEAN_TOKENS for v in values):
        return "boolean"

    date_hits = sum(1 for v in values if parse_date(v) is not None)
    if date_hits / len(values) > TYPE_MATCH_THRESHOLD:
        return "date"

    number_hits = sum(1 for v in values if parse_number(v) is not None)
    if number_hits / len(values) > TYPE_MATCH_THRESHOLD:
        return "number"

    return "string"


def _profile_column(name: str, series: pd.Series, row_count: int) -> ColumnProfile:
    cells = series.map(normalize_cell)
    non_null = [v for v in cells if v is not None]
    null_count = row_count - len(non_null)
    semantic_type = infer_semantic_type(non_null)

    min_value = max_value = mean_value = None
    top_values: list[str] = []
    if semantic_type == "number":
        numbers = [n for n in (parse_number(v) for v in non_null) if n is not None]
        distinct_count = len(set(numbers))
        if numbers:
            min_value = min(numbers)
            max_value = max(numbers)
            mean_value = round(sum(numbers) / len(numbers), 2)
    else:
        distinct_count = len({v.lower() for v in non_null})
        if semantic_type in ("string", "boolean"):
            top_values = most_common_labels(non_null)

    return ColumnProfile(
        name=name,
        semantic_type=semantic_type,
        null_count=null_count,
        null_ratio=round(null_count / row_count, 4) if row_count else 0.0,
        distinct_count=distinct_count,
        min=min_value,
        max=max_value,
        mean=mean_value,
        top_values=top_values,
    )


def most_common_labels(values: Sequence[str], limit: int = TOP_VALUES_LIMIT) -> list[str]:
    """Case-insensitive frequency ranking; each label keeps its first spelling."""
    counts: Counter[str] = Counter()
    spelling: dict[str, str] = {}
    for value in values:
        key = value.lower()
        counts[key] += 1
        spelling.setdefault(key, value)
    ranked = sorted(counts, key=lambda k: (-counts[k], k))
    return [spelling[k] for k in ranked[:limit]]
