"""Fixed three-phase baseline report computed once per dataset version.

Phase A summarises every eligible numeric metric, phase B breaks each metric
down by the lowest-cardinality categorical columns, and phase C compares the
metrics across a detected binary outcome. Phases with nothing eligible stay
empty; nothing is fabricated.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import pandas as pd

from ..config import AnalysisThresholds, load_thresholds
from ..loader import ParsedDataset, load_dataset
from .models import (
    BaselineAnalysis,
    BaselineMetadata,
    CategoryOutcomeBreakdown,
    CategoryOutcomeRate,
    ColumnProfile,
    DatasetProfile,
    KeyDifference,
    MetricOutcomeBreakdown,
    MetricSummary,
    OutcomeAnalysis,
    PhaseA,
    PhaseB,
    PhaseC,
    StandardBreakdown,
)
from .naming import is_identifier_column, is_timestamp_column
from .stats import category_breakdown, generate_histogram, round_or_none
from .values import BOOLEAN_TRUE, category_series, numeric_series, parse_boolean

logger = logging.getLogger(__name__)

# Binary string values read as the positive class, in preference order.
_POSITIVE_TOKENS = ("yes", "true", "y", "positive", "success", "won", "converted", "churned")


def has_high_cardinality(column: ColumnProfile, row_count: int, thresholds: AnalysisThresholds) -> bool:
    if row_count == 0:
        return False
    ratio = column.distinct_count / row_count
    return ratio > thresholds.high_cardinality_ratio and column.distinct_count > thresholds.high_cardinality_min_distinct


# ============================================================================
# Column selection
# ============================================================================

def select_metric_columns(profile: DatasetProfile, thresholds: AnalysisThresholds) -> list[ColumnProfile]:
    selected = []
    for col in profile.columns_of_type("number"):
        if 1 - col.null_ratio < thresholds.min_non_null_ratio:
            continue
        if is_identifier_column(col.name) or is_timestamp_column(col.name):
            continue
        if has_high_cardinality(col, profile.row_count, thresholds):
            continue
        selected.append(col)
    return selected


def select_categorical_columns(profile: DatasetProfile, thresholds: AnalysisThresholds) -> list[ColumnProfile]:
    """All eligible categoricals, lowest cardinality first, then by name."""
    eligible = [
        col for col in profile.columns_of_type("string", "boolean")
        if thresholds.min_categorical_distinct <= col.distinct_count <= thresholds.max_categorical_distinct
        and not is_identifier_column(col.name)
        and not is_timestamp_column(col.name)
    ]
    return sorted(eligible, key=lambda c: (c.distinct_count, c.name))


# ============================================================================
# Outcome detection
# ============================================================================

@dataclass(frozen=True)
class OutcomeColumn:
    name: str
    semantic_type: str
    positive_value: str

    def flags(self, series: pd.Series) -> pd.Series:
        """True/False per row; ``None`` where the outcome cell is missing."""
        cells = category_series(series)
        if self.semantic_type == "boolean":
            return cells.map(lambda v: None if v is None else parse_boolean(v))
        return cells.map(lambda v: None if v is None else v.lower() == self.positive_value)


def _value_counts(series: pd.Series) -> dict[str, int]:
    cells = category_series(series).dropna().map(str.lower)
    return {str(k): int(v) for k, v in cells.value_counts().items()}


def _positive_value(semantic_type: str, counts: dict[str, int]) -> str:
    if semantic_type == "boolean":
        return "true"
    for token in _POSITIVE_TOKENS:
        if token in counts:
            return token
    # Minority class; ties resolve alphabetically.
    return min(counts, key=lambda value: (counts[value], value))


def _boolean_counts(counts: dict[str, int]) -> dict[str, int]:
    folded = {"true": 0, "false": 0}
    for value, n in counts.items():
        folded["true" if value in BOOLEAN_TRUE else "false"] += n
    return {k: v for k, v in folded.items() if v}


def _balanced(counts: dict[str, int], min_balance: float) -> bool:
    if len(counts) != 2:
        return False
    total = sum(counts.values())
    return total > 0 and min(counts.values()) / total >= min_balance


def detect_outcome_column(
    profile: DatasetProfile,
    dataset: ParsedDataset,
    thresholds: AnalysisThresholds | None = None,
    designated: str | None = None,
) -> OutcomeColumn | None:
    """Pick the binary outcome column: designated, else first balanced boolean, then binary string."""
    thresholds = thresholds or load_thresholds()
    frame = dataset.to_frame()

    if designated is not None:
        col = profile.column(designated)
        if col is None or designated not in frame.columns:
            return None
        candidates = [col]
    else:
        candidates = [
            *profile.columns_of_type("boolean"),
            *[c for c in profile.columns_of_type("string") if c.distinct_count == 2],
        ]

    for col in candidates:
        if designated is None and is_identifier_column(col.name):
            continue
        counts = _value_counts(frame[col.name])
        if col.semantic_type == "boolean":
            counts = _boolean_counts(counts)
        if not _balanced(counts, thresholds.min_outcome_balance):
            continue
        outcome = OutcomeColumn(
            name=col.name,
            semantic_type=col.semantic_type,
            positive_value=_positive_value(col.semantic_type, counts),
        )
        logger.info("Outcome column %r detected (positive=%r)", outcome.name, outcome.positive_value)
        return outcome
    return None


# ============================================================================
# Phases
# ============================================================================

def _metric_summaries(
    frame: pd.DataFrame,
    metrics: list[ColumnProfile],
    thresholds: AnalysisThresholds,
) -> list[MetricSummary]:
    summaries = []
    for col in metrics:
        values = numeric_series(frame[col.name]).dropna()
        if values.empty:
            continue
        summaries.append(MetricSummary(
            column_name=col.name,
            row_count=len(frame),
            non_null_count=len(values),
            mean=round(float(values.mean()), 2),
            min=round(float(values.min()), 2),
            max=round(float(values.max()), 2),
            distribution=generate_histogram(values.tolist(), thresholds.histogram_buckets),
        ))
    return summaries


def _standard_breakdowns(
    frame: pd.DataFrame,
    metrics: list[ColumnProfile],
    categoricals: list[ColumnProfile],
) -> list[StandardBreakdown]:
    results = []
    for cat in categoricals:
        for metric in metrics:
            rows = category_breakdown(category_series(frame[cat.name]), numeric_series(frame[metric.name]))
            if rows:
                results.append(StandardBreakdown(
                    categorical_column=cat.name, metric_column=metric.name, breakdowns=rows,
                ))
    return results


def relative_difference(group_a: float, group_b: float) -> float | None:
    """|A - B| / |B| as a non-negative fraction; ``None`` when B is zero."""
    if group_b == 0:
        return None
    return abs(group_a - group_b) / abs(group_b)


def rank_key_differences(differences: list[KeyDifference], limit: int) -> list[KeyDifference]:
    """Order by |relative| descending (None last), then absolute difference, then name."""
    def key(d: KeyDifference):
        rel = d.relative_difference
        return (
            rel is None,
            -abs(rel) if rel is not None else 0.0,
            -(d.absolute_difference or 0.0),
            d.metric_column,
        )

    ordered = sorted(differences, key=key)[:limit]
    return [d.model_copy(update={"rank": i}) for i, d in enumerate(ordered, start=1)]


def _outcome_analysis(
    frame: pd.DataFrame,
    outcome: OutcomeColumn,
    metrics: list[ColumnProfile],
    categoricals: list[ColumnProfile],
    thresholds: AnalysisThresholds,
) -> OutcomeAnalysis:
    flags = outcome.flags(frame[outcome.name])
    known = flags.notna()
    positive = known & (flags == True)  # noqa: E712
    total = int(known.sum())
    outcome_rate = round(int(positive.sum()) / total, 4) if total else 0.0

    by_category: list[CategoryOutcomeBreakdown] = []
    for cat in categoricals:
        if cat.name == outcome.name:
            continue
        data = pd.DataFrame({
            "category": category_series(frame[cat.name]),
            "positive": positive.astype(int),
        })[known]
        data = data[data["category"].notna()]
        if data.empty:
            continue
        grouped = data.groupby("category", sort=True)["positive"].agg(["sum", "size"])
        by_category.append(CategoryOutcomeBreakdown(
            category_column=cat.name,
            breakdowns=[
                CategoryOutcomeRate(
                    category=str(category),
                    outcome_rate=round(int(row["sum"]) / int(row["size"]), 4),
                    count=int(row["size"]),
                )
                for category, row in grouped.iterrows()
            ],
        ))

    by_metric: list[MetricOutcomeBreakdown] = []
    differences: list[KeyDifference] = []
    for metric in metrics:
        values = numeric_series(frame[metric.name])
        with_outcome = values[positive].dropna()
        without_outcome = values[known & ~positive].dropna()
        avg_a = float(with_outcome.mean()) if not with_outcome.empty else None
        avg_b = float(without_outcome.mean()) if not without_outcome.empty else None
        difference = avg_a - avg_b if avg_a is not None and avg_b is not None else None

        by_metric.append(MetricOutcomeBreakdown(
            metric_column=metric.name,
            average_with_outcome=round_or_none(avg_a),
            average_without_outcome=round_or_none(avg_b),
            difference=round_or_none(difference),
        ))
        if difference is None:
            continue
        rel = relative_difference(avg_a, avg_b)
        differences.append(KeyDifference(
            metric_column=metric.name,
            average_group_a=round(avg_a, 2),
            average_group_b=round(avg_b, 2),
            absolute_difference=round(abs(difference), 2),
            relative_difference=round(rel, 4) if rel is not None else None,
            rank=0,
        ))

    return OutcomeAnalysis(
        outcome_column=outcome.name,
        positive_value=outcome.positive_value,
        outcome_rate=outcome_rate,
        breakdowns_by_category=by_category,
        breakdowns_by_metric=by_metric,
        key_differences=rank_key_differences(differences, thresholds.max_key_differences),
    )


def run_baseline_analysis(
    profile: DatasetProfile,
    dataset_file_path: str,
    *,
    thresholds: AnalysisThresholds | None = None,
    outcome_column: str | None = None,
    analyzed_at: str | None = None,
    loader: Callable[[str], ParsedDataset] = load_dataset,
) -> BaselineAnalysis:
    """Run phases A-C for a profiled dataset version.

    Output depends only on the profile, the file contents and the thresholds;
    ``analyzed_at`` is the single time-dependent field and may be supplied.
    """
    thresholds = thresholds or load_thresholds()
    dataset = loader(dataset_file_path)
    frame = dataset.to_frame()

    metrics = select_metric_columns(profile, thresholds)
    categoricals = select_categorical_columns(profile, thresholds)[: thresholds.max_categorical_columns]

    phase_a = PhaseA(metric_summaries=_metric_summaries(frame, metrics, thresholds))
    phase_b = PhaseB(breakdowns=_standard_breakdowns(frame, metrics, categoricals))

    outcome = detect_outcome_column(profile, dataset, thresholds, designated=outcome_column)
    phase_c = PhaseC(
        outcome_analysis=(
            _outcome_analysis(frame, outcome, metrics, categoricals, thresholds) if outcome else None
        )
    )

    logger.info(
        "Baseline for %s: %d metric summaries, %d breakdowns, outcome=%s",
        profile.dataset_version_id,
        len(phase_a.metric_summaries),
        len(phase_b.breakdowns),
        outcome.name if outcome else None,
    )
    return BaselineAnalysis(
        phase_a=phase_a,
        phase_b=phase_b,
        phase_c=phase_c,
        metadata=BaselineMetadata(
            dataset_version_id=profile.dataset_version_id,
            row_count=len(frame),
            analyzed_at=analyzed_at or datetime.now(timezone.utc).isoformat(),
        ),
    )
