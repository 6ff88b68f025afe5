"""Execute validated analyses against a freshly loaded dataset file."""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable

import pandas as pd

from ..loader import ParsedDataset, load_dataset
from .errors import DatasetLoadError, ExecutionError, SemanticOperationBlockedError
from .guard import validate_semantic_operations
from .intent import compared_values, extract_granularity, intent_name
from .models import (
    Aggregation,
    Artifact,
    BreakdownArtifact,
    BreakdownResult,
    CategoryBreakdown,
    IntentClassification,
    MetricResolution,
    ScalarArtifact,
    ScalarResult,
    TimeGranularity,
    TimeSeriesArtifact,
    TimeSeriesPoint,
    TimeSeriesResult,
)
from .stats import category_breakdown, category_counts
from .values import category_series, numeric_series, parse_date

logger = logging.getLogger(__name__)

_SCALAR_OPERATIONS = {
    "aggregate_avg": "avg",
    "aggregate_sum": "sum",
    "aggregate_count": "count",
}

_SCALAR_TITLES = {"avg": "Average of {}", "sum": "Total {}", "count": "Count of {}"}

_AGGREGATE_LABELS = {"avg": "Average", "sum": "Total", "count": "Count of"}

# Aggregate applied when the question names none.
_DEFAULT_AGGREGATIONS: dict[str, Aggregation] = {
    "group_by": "avg",
    "compare": "avg",
    "time_series": "sum",
}


def choose_granularity(min_date: date, max_date: date) -> TimeGranularity:
    span = (max_date - min_date).days
    if span < 90:
        return "day"
    if span < 365:
        return "week"
    return "month"


def bucket_key(value: date, granularity: TimeGranularity) -> str:
    if granularity == "day":
        return value.isoformat()
    if granularity == "week":
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == "month":
        return f"{value.year}-{value.month:02d}"
    return str(value.year)


class AnalysisExecutor:
    """Loads the dataset, re-checks the guard and computes one artifact."""

    def __init__(
        self,
        loader: Callable[[str], ParsedDataset] = load_dataset,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._load = loader
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def execute(
        self,
        dataset_file_path: str,
        intent: IntentClassification | str,
        resolution: MetricResolution,
    ) -> Artifact:
        name = intent_name(intent)
        classification = (
            intent if isinstance(intent, IntentClassification)
            else IntentClassification(intent=name, confidence=1.0)
        )

        blocked = validate_semantic_operations(resolution, classification, resolution.dataset_version_id)
        if blocked is not None:
            raise SemanticOperationBlockedError(blocked)

        try:
            dataset = self._load(dataset_file_path)
        except DatasetLoadError as exc:
            raise ExecutionError(
                f"Could not load the dataset file: {exc.message}", code="DATA_LOAD_ERROR",
            ) from exc

        self._check_columns(dataset, resolution)
        frame = dataset.to_frame()

        if name in _SCALAR_OPERATIONS:
            artifact = self._scalar(frame, classification, resolution, _SCALAR_OPERATIONS[name])
        elif name in ("group_by", "compare"):
            artifact = self._breakdown(frame, classification, resolution)
        elif name == "time_series":
            artifact = self._time_series(frame, classification, resolution)
        else:
            raise ExecutionError(f"Intent '{name}' cannot be executed.", code="UNSUPPORTED_INTENT")

        logger.info(
            "Executed %s on dataset version %s -> %s artifact %s",
            name, resolution.dataset_version_id, artifact.type, artifact.artifact_id,
        )
        return artifact

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_columns(self, dataset: ParsedDataset, resolution: MetricResolution) -> None:
        present = set(dataset.headers)
        for resolved in (resolution.metric, resolution.dimension, resolution.time_column):
            if resolved is not None and resolved.column_name not in present:
                raise ExecutionError(
                    f"Column '{resolved.column_name}' is in the dataset profile but missing "
                    "from the dataset file. Re-upload the dataset.",
                    code="COLUMN_MISSING",
                )

    def _common(self, classification: IntentClassification, resolution: MetricResolution) -> dict:
        return {
            "artifact_id": str(uuid.uuid4()),
            "dataset_version_id": resolution.dataset_version_id,
            "generated_at": self._clock().isoformat(),
            "intent": classification.intent,
        }

    def _scalar(
        self,
        frame: pd.DataFrame,
        classification: IntentClassification,
        resolution: MetricResolution,
        operation: str,
    ) -> ScalarArtifact:
        column = resolution.metric.column_name
        total_rows = len(frame)

        if operation == "count":
            used = int(category_series(frame[column]).notna().sum())
            value: float | int | None = used
        else:
            numbers = numeric_series(frame[column]).dropna()
            used = len(numbers)
            if operation == "avg":
                value = round(float(numbers.mean()), 4) if used else None
            else:
                value = round(float(numbers.sum()), 4)

        return ScalarArtifact(
            **self._common(classification, resolution),
            title=_SCALAR_TITLES[operation].format(column),
            data=ScalarResult(
                operation=operation,
                column=column,
                value=value,
                row_count=used,
                total_rows=total_rows,
            ),
        )

    def _breakdown(
        self,
        frame: pd.DataFrame,
        classification: IntentClassification,
        resolution: MetricResolution,
    ) -> BreakdownArtifact:
        metric = resolution.metric.column_name
        dimension = resolution.dimension.column_name
        aggregation = _aggregation(classification)

        categories = category_series(frame[dimension])
        if aggregation == "count":
            rows = category_counts(categories[category_series(frame[metric]).notna()])
        else:
            rows = category_breakdown(
                categories,
                numeric_series(frame[metric]),
                require_metric=False,
                with_total=aggregation == "sum",
            )

        compared: list[str] = []
        wanted = {v.lower() for v in compared_values(classification)}
        if wanted:
            matching = [r for r in rows if r.category.lower() in wanted]
            if matching:
                rows = matching
                compared = [r.category for r in matching]

        rows = sorted(rows, key=_count_then_category)
        label = f"{_AGGREGATE_LABELS[aggregation]} {metric}"
        if compared:
            title = f"{label}: {' vs '.join(compared)}"
        else:
            title = f"{label} by {dimension}"

        return BreakdownArtifact(
            **self._common(classification, resolution),
            title=title,
            data=BreakdownResult(
                metric_column=metric,
                dimension_column=dimension,
                aggregation=aggregation,
                sort_by="count",
                compared_categories=compared,
                rows=rows,
            ),
        )

    def _time_series(
        self,
        frame: pd.DataFrame,
        classification: IntentClassification,
        resolution: MetricResolution,
    ) -> TimeSeriesArtifact:
        metric = resolution.metric.column_name
        time_column = resolution.time_column.column_name
        aggregation = _aggregation(classification)

        if aggregation == "count":
            # One per row with any value; counting needs presence, not a number.
            present = category_series(frame[metric]).notna()
            values = pd.Series(1.0, index=frame.index).where(present)
        else:
            values = numeric_series(frame[metric])
        data = pd.DataFrame({
            "date": frame[time_column].map(parse_date),
            "metric": values,
        }).dropna()

        granularity = extract_granularity(classification.extracted_value)
        if granularity is None:
            if data.empty:
                granularity = "day"
            else:
                granularity = choose_granularity(data["date"].min(), data["date"].max())

        points: list[TimeSeriesPoint] = []
        if not data.empty:
            data["bucket"] = data["date"].map(lambda d: bucket_key(d, granularity))
            grouped = data.groupby("bucket", sort=True)["metric"].agg(["sum", "mean", "size"])
            points = [
                TimeSeriesPoint(
                    bucket=str(bucket),
                    value=_bucket_value(row, aggregation),
                    count=int(row["size"]),
                )
                for bucket, row in grouped.iterrows()
            ]

        return TimeSeriesArtifact(
            **self._common(classification, resolution),
            title=f"{_AGGREGATE_LABELS[aggregation]} {metric} by {granularity}",
            data=TimeSeriesResult(
                metric_column=metric,
                time_column=time_column,
                aggregation=aggregation,
                granularity=granularity,
                points=points,
            ),
        )


def _aggregation(classification: IntentClassification) -> Aggregation:
    return classification.aggregation or _DEFAULT_AGGREGATIONS[classification.intent]


def _bucket_value(row: pd.Series, aggregation: Aggregation) -> float:
    if aggregation == "count":
        return float(row["size"])
    if aggregation == "avg":
        return round(float(row["mean"]), 4)
    return round(float(row["sum"]), 4)


def _count_then_category(row: CategoryBreakdown) -> tuple[int, str]:
    return (-row.count, row.category)


def execute_analysis(
    dataset_file_path: str,
    intent: IntentClassification | str,
    resolution: MetricResolution,
) -> Artifact:
    """Compute the artifact for an already resolved and guarded question."""
    return AnalysisExecutor().execute(dataset_file_path, intent, resolution)
