"""Compare one metric's distribution between the outcome and non-outcome groups."""
from __future__ import annotations

import logging
from typing import Callable

import pandas as pd

from ..config import AnalysisThresholds, load_thresholds
from ..loader import ParsedDataset, load_dataset
from .baseline import OutcomeColumn, detect_outcome_column
from .errors import DrillDownError
from .models import (
    ColumnProfile,
    DatasetProfile,
    DrillDownGroups,
    DrillDownResult,
    GroupDistribution,
    SecondaryBreakdown,
)
from .naming import is_identifier_column
from .profiler import profile_parsed_dataset
from .stats import calculate_percentiles, category_breakdown, generate_histogram
from .values import category_series, numeric_series

logger = logging.getLogger(__name__)

GROUP_A_LABEL = "With Outcome"
GROUP_B_LABEL = "Without Outcome"


def select_secondary_dimension(
    profile: DatasetProfile,
    outcome_column: str,
    metric_column: str,
    thresholds: AnalysisThresholds,
) -> ColumnProfile | None:
    """Lowest-cardinality categorical column other than the outcome and the metric."""
    candidates = [
        col for col in profile.columns_of_type("string", "boolean")
        if col.name not in (outcome_column, metric_column)
        and thresholds.min_categorical_distinct <= col.distinct_count <= thresholds.max_categorical_distinct
        and not is_identifier_column(col.name)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda c: (c.distinct_count, c.name))


def _group(
    label: str,
    values: pd.Series,
    categories: pd.Series | None,
    dimension: ColumnProfile | None,
    thresholds: AnalysisThresholds,
) -> GroupDistribution:
    present = values.dropna()
    secondary = None
    if dimension is not None and categories is not None:
        rows = category_breakdown(categories, values)
        if rows:
            secondary = SecondaryBreakdown(dimension_column=dimension.name, breakdowns=rows)
    return GroupDistribution(
        group_label=label,
        count=len(present),
        distribution=generate_histogram(present.tolist(), thresholds.histogram_buckets),
        percentile_stats=calculate_percentiles(present.tolist()),
        secondary_breakdown=secondary,
    )


def drill_down(
    dataset_file_path: str,
    metric_column: str,
    *,
    profile: DatasetProfile | None = None,
    outcome_column: str | None = None,
    min_group_size: int | None = None,
    thresholds: AnalysisThresholds | None = None,
    loader: Callable[[str], ParsedDataset] = load_dataset,
) -> DrillDownResult:
    """Split ``metric_column`` by the detected outcome and describe both groups.

    Raises DrillDownError with METRIC_NOT_FOUND, METRIC_NOT_NUMERIC,
    OUTCOME_NOT_FOUND or INSUFFICIENT_SAMPLE.
    """
    thresholds = thresholds or load_thresholds()
    min_size = min_group_size if min_group_size is not None else thresholds.drill_down_min_group_size

    dataset = loader(dataset_file_path)
    if profile is None:
        profile = profile_parsed_dataset(dataset, "drill-down")

    metric = profile.column(metric_column)
    if metric is None or metric_column not in dataset.headers:
        raise DrillDownError(
            f"Metric column '{metric_column}' was not found in the dataset.",
            code="METRIC_NOT_FOUND",
        )
    if metric.semantic_type != "number":
        raise DrillDownError(
            f"Metric column '{metric_column}' is {metric.semantic_type}, not numeric; "
            "distributions need a numeric column.",
            code="METRIC_NOT_NUMERIC",
        )

    outcome: OutcomeColumn | None = detect_outcome_column(
        profile, dataset, thresholds, designated=outcome_column,
    )
    if outcome is None or outcome.name == metric_column:
        raise DrillDownError(
            "No binary outcome column was found to split the data into two groups.",
            code="OUTCOME_NOT_FOUND",
        )

    frame = dataset.to_frame()
    flags = outcome.flags(frame[outcome.name])
    known = flags.notna()
    positive = known & (flags == True)  # noqa: E712
    negative = known & ~positive
    values = numeric_series(frame[metric_column])

    dimension = select_secondary_dimension(profile, outcome.name, metric_column, thresholds)
    categories = category_series(frame[dimension.name]) if dimension is not None else None

    group_a = _group(
        GROUP_A_LABEL, values[positive],
        categories[positive] if categories is not None else None, dimension, thresholds,
    )
    group_b = _group(
        GROUP_B_LABEL, values[negative],
        categories[negative] if categories is not None else None, dimension, thresholds,
    )

    for group in (group_a, group_b):
        if group.count < min_size:
            raise DrillDownError(
                f"Group '{group.group_label}' has only {group.count} value(s) for "
                f"'{metric_column}'; at least {min_size} are needed.",
                code="INSUFFICIENT_SAMPLE",
            )

    logger.info(
        "Drill-down on %r by %r: %d vs %d values",
        metric_column, outcome.name, group_a.count, group_b.count,
    )
    return DrillDownResult(
        metric_column=metric_column,
        outcome_column=outcome.name,
        positive_value=outcome.positive_value,
        group_distributions=DrillDownGroups(group_a=group_a, group_b=group_b),
    )
