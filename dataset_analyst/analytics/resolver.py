"""Map question text onto dataset columns.

The resolver never guesses: a metric that is not mentioned (by name, by one of
its name tokens or through a synonym group) is an error, not a fallback to the
first numeric column.
"""
from __future__ import annotations

import logging
import re
from difflib import SequenceMatcher
from typing import Iterable, Sequence

from .errors import ResolutionError, UnsupportedQueryError
from .intent import extract_compared_values, intent_name
from .models import (
    ColumnProfile,
    DatasetProfile,
    IntentClassification,
    MetricResolution,
    ResolvedColumn,
)

logger = logging.getLogger(__name__)

EXACT_MATCH = 3
TOKEN_MATCH = 2
SYNONYM_MATCH = 1

_DIMENSION_PHRASE_RE = re.compile(
    r"\b(?:grouped by|group by|broken down by|by|per|for each|for every|across|between)\s+(.+)$"
)

# Words that never identify a column on their own.
_IGNORED_TOKENS = frozenset({
    "the", "and", "for", "per", "all", "of", "by", "in", "on", "to", "a", "an",
    "total", "sum", "average", "avg", "mean", "count", "number", "value",
    "what", "how", "many", "much", "show", "is", "are", "each", "every",
})

_SYNONYM_GROUPS: tuple[frozenset[str], ...] = (
    frozenset({"revenue", "sales", "income", "turnover", "earnings"}),
    frozenset({"price", "cost", "amount", "spend", "spending", "fee"}),
    frozenset({"quantity", "qty", "units", "items", "volume"}),
    frozenset({"profit", "margin", "gain"}),
    frozenset({"customer", "client", "buyer", "user"}),
    frozenset({"region", "area", "territory", "zone", "location"}),
    frozenset({"country", "nation"}),
    frozenset({"category", "type", "segment", "class", "kind"}),
    frozenset({"age", "years old"}),
    frozenset({"duration", "length", "time spent"}),
)


def normalize_text(text: str) -> str:
    """Lower-case, treat ``_``/``-`` and punctuation as spaces, collapse whitespace."""
    text = re.sub(r"[_\-]+", " ", text.lower())
    text = re.sub(r"[^\w\s.]", " ", text)
    return " ".join(text.split())


def _tokens(text: str) -> set[str]:
    return {t for t in text.split() if len(t) > 1 and t not in _IGNORED_TOKENS}


def _mentions(phrase: str, text: str) -> bool:
    return re.search(r"\b" + re.escape(phrase) + r"s?\b", text) is not None


def score_column(column_name: str, text: str) -> int:
    """Score how strongly normalized ``text`` refers to ``column_name``."""
    name = normalize_text(column_name)
    if not name:
        return 0
    if _mentions(name, text):
        return EXACT_MATCH

    name_tokens = _tokens(name)
    if any(_mentions(token, text) for token in name_tokens):
        return TOKEN_MATCH

    for group in _SYNONYM_GROUPS:
        if group & name_tokens and any(_mentions(word, text) for word in group):
            return SYNONYM_MATCH
    return 0


def _common_substring(a: str, b: str) -> int:
    match = SequenceMatcher(None, a, b, autojunk=False).find_longest_match(0, len(a), 0, len(b))
    return match.size


def best_match(text: str, columns: Iterable[ColumnProfile]) -> ColumnProfile | None:
    """Highest scoring column; ties by longest common substring, then profile order."""
    best: tuple[int, int] | None = None
    winner: ColumnProfile | None = None
    for col in columns:
        score = score_column(col.name, text)
        if score == 0:
            continue
        key = (score, _common_substring(normalize_text(col.name), text))
        if best is None or key > best:
            best, winner = key, col
    return winner


def _resolved(col: ColumnProfile) -> ResolvedColumn:
    return ResolvedColumn(column_name=col.name, column_profile=col)


def _available(columns: Iterable[ColumnProfile]) -> str:
    return ", ".join(f"{c.name} ({c.semantic_type})" for c in columns) or "none"


# ============================================================================
# Per-role resolution
# ============================================================================

def resolve_dimension(text: str, profile: DatasetProfile, compared: Sequence[str] = ()) -> ColumnProfile:
    """Column after "by"/"between", an explicitly named label column, or the
    label column holding the compared values.
    """
    match = _DIMENSION_PHRASE_RE.search(text)
    if match:
        found = best_match(match.group(1), profile.columns)
        if found is not None:
            return found

    # Any other explicitly named non-numeric column.
    named = [
        c for c in profile.columns
        if c.semantic_type != "number" and score_column(c.name, text) == EXACT_MATCH
    ]
    if named:
        return best_match(text, named)

    holding = column_holding_values(compared, profile)
    if holding is not None:
        return holding

    raise ResolutionError(
        "Could not identify which column to group by. Mention it after 'by', e.g. "
        f"'... by region'. Available columns: {_available(profile.columns)}",
        code="NO_DIMENSION_MATCH",
    )


def column_holding_values(values: Sequence[str], profile: DatasetProfile) -> ColumnProfile | None:
    """Label column whose profiled values include the most of ``values``; ties by profile order."""
    wanted = {v.lower() for v in values}
    if not wanted:
        return None
    best: ColumnProfile | None = None
    best_hits = 0
    for col in profile.columns_of_type("string", "boolean"):
        hits = len(wanted & {v.lower() for v in col.top_values})
        if hits > best_hits:
            best, best_hits = col, hits
    return best


def resolve_time_column(text: str, profile: DatasetProfile) -> ColumnProfile:
    date_columns = profile.columns_of_type("date")
    mentioned = best_match(text, date_columns)
    if mentioned is not None:
        return mentioned
    if len(date_columns) == 1:
        return date_columns[0]

    if not date_columns:
        message = "This dataset has no date columns, so a time series cannot be built."
    else:
        message = (
            "Several date columns are available; name the one to use. "
            f"Date columns: {_available(date_columns)}"
        )
    raise ResolutionError(message, code="NO_TIME_COLUMN_MATCH")


def resolve_metric(text: str, profile: DatasetProfile, exclude: set[str]) -> ColumnProfile:
    candidates = [c for c in profile.columns if c.name not in exclude]
    found = best_match(text, candidates)
    if found is None:
        raise ResolutionError(
            "Could not find the column this question is about. Name it explicitly, e.g. "
            f"'average of revenue'. Available columns: {_available(profile.columns)}",
            code="NO_METRIC_MATCH",
        )
    return found


def resolve_all(
    question: str,
    profile: DatasetProfile,
    intent: IntentClassification | str,
) -> MetricResolution:
    """Resolve metric, dimension and time column for ``intent``.

    Raises ResolutionError (NO_METRIC_MATCH / NO_DIMENSION_MATCH /
    NO_TIME_COLUMN_MATCH) or UnsupportedQueryError.
    """
    name = intent_name(intent)
    if name == "unsupported_query":
        raise UnsupportedQueryError(
            "I can answer questions about averages, totals, counts, breakdowns by a "
            "column, trends over time and comparisons. Please rephrase your question."
        )

    text = normalize_text(question)
    dimension: ColumnProfile | None = None
    time_column: ColumnProfile | None = None
    exclude: set[str] = set()

    if name in ("group_by", "compare"):
        compared = extract_compared_values(text) if name == "compare" else []
        dimension = resolve_dimension(text, profile, compared)
        exclude.add(dimension.name)
    elif name == "time_series":
        time_column = resolve_time_column(text, profile)
        exclude.add(time_column.name)

    metric = resolve_metric(text, profile, exclude)
    logger.info(
        "Resolved %s: metric=%s dimension=%s time_column=%s",
        name, metric.name,
        dimension.name if dimension else None,
        time_column.name if time_column else None,
    )
    return MetricResolution(
        dataset_version_id=profile.dataset_version_id,
        metric=_resolved(metric),
        dimension=_resolved(dimension) if dimension else None,
        time_column=_resolved(time_column) if time_column else None,
    )
