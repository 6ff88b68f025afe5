"""Data quality checks run alongside the baseline report."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from ..config import AnalysisThresholds, load_thresholds
from ..loader import ParsedDataset
from .models import (
    DataQualityReport,
    DatasetProfile,
    NullIssue,
    OutlierSummary,
    QualityWarning,
    TimeCoverage,
)
from .values import numeric_series, parse_date

logger = logging.getLogger(__name__)

_PERIOD_FREQ = {"daily": "D", "weekly": "W", "monthly": "M"}


def expected_granularity(span_days: int) -> str:
    if span_days < 90:
        return "daily"
    if span_days < 365:
        return "weekly"
    return "monthly"


def check_row_count(row_count: int, thresholds: AnalysisThresholds) -> QualityWarning | None:
    if row_count >= thresholds.quality_min_rows:
        return None
    return QualityWarning(
        code="LOW_ROW_COUNT",
        severity="medium",
        message=f"Dataset has only {row_count} rows. Results may be unreliable with such a small sample.",
    )


def check_time_coverage(
    frame: pd.DataFrame,
    profile: DatasetProfile,
    thresholds: AnalysisThresholds,
) -> tuple[TimeCoverage | None, list[QualityWarning]]:
    date_columns = [c for c in profile.columns_of_type("date") if c.name in frame.columns]
    if not date_columns:
        return None, []
    column = date_columns[0].name

    dates = frame[column].map(parse_date).dropna()
    if dates.empty:
        return None, []

    min_date, max_date = min(dates), max(dates)
    granularity = expected_granularity((max_date - min_date).days)
    freq = _PERIOD_FREQ[granularity]

    periods = dates.map(lambda d: pd.Period(d, freq=freq))
    expected = len(pd.period_range(start=min(periods), end=max(periods), freq=freq))
    counts = periods.value_counts()
    observed = len(counts)
    coverage_ratio = round(observed / expected, 4)
    latest_count = int(counts[max(periods)])
    average_count = len(dates) / observed
    is_partial = latest_count < average_count * thresholds.quality_partial_period_ratio

    coverage = TimeCoverage(
        column=column,
        min_date=min_date.isoformat(),
        max_date=max_date.isoformat(),
        expected_granularity=granularity,
        missing_periods_count=expected - observed,
        coverage_ratio=coverage_ratio,
        is_partial_latest_period=is_partial,
    )

    warnings: list[QualityWarning] = []
    if is_partial:
        warnings.append(QualityWarning(
            code="PARTIAL_LATEST_PERIOD",
            severity="medium",
            message=f"Latest {granularity} period appears incomplete. Results may not reflect the full period.",
        ))
    if coverage_ratio < thresholds.quality_min_coverage:
        warnings.append(QualityWarning(
            code="LOW_TIME_COVERAGE",
            severity="medium",
            message=(
                f"Time series has {expected - observed} missing periods "
                f"({coverage_ratio * 100:.1f}% coverage). Analysis may be affected by gaps."
            ),
        ))
    return coverage, warnings


def check_null_density(
    profile: DatasetProfile,
    thresholds: AnalysisThresholds,
) -> tuple[list[NullIssue], list[QualityWarning]]:
    issues: list[NullIssue] = []
    warnings: list[QualityWarning] = []
    for column in profile.columns:
        if column.null_ratio <= thresholds.quality_null_ratio:
            continue
        issues.append(NullIssue(column=column.name, null_ratio=column.null_ratio))
        severity = "high" if column.null_ratio > thresholds.quality_high_null_ratio else "medium"
        warnings.append(QualityWarning(
            code="HIGH_NULL_RATIO",
            severity=severity,
            message=(
                f'Column "{column.name}" has {column.null_ratio * 100:.1f}% null values. '
                "This may affect analysis accuracy."
            ),
        ))
    return issues, warnings


def check_outliers(
    frame: pd.DataFrame,
    profile: DatasetProfile,
    thresholds: AnalysisThresholds,
) -> tuple[list[OutlierSummary], list[QualityWarning]]:
    """IQR (1.5x) outlier share per numeric column, on the first sampled rows."""
    sampled = len(frame) > thresholds.quality_sample_rows
    rows = frame.head(thresholds.quality_sample_rows)

    summaries: list[OutlierSummary] = []
    warnings: list[QualityWarning] = []
    for column in profile.columns_of_type("number"):
        if column.name not in rows.columns:
            continue
        values = numeric_series(rows[column.name]).dropna().to_numpy()
        if len(values) < thresholds.quality_outlier_min_values:
            continue
        q1, q3 = np.percentile(values, [25, 75])
        iqr = q3 - q1
        outliers = (values < q1 - 1.5 * iqr) | (values > q3 + 1.5 * iqr)
        ratio = float(outliers.sum()) / len(values)
        if ratio <= thresholds.quality_outlier_ratio:
            continue
        summaries.append(OutlierSummary(metric=column.name, outlier_ratio=round(ratio, 4)))
        warnings.append(QualityWarning(
            code="HIGH_OUTLIER_RATIO",
            severity="medium",
            message=(
                f'Column "{column.name}" has {ratio * 100:.1f}% outliers. '
                "Results may be skewed by extreme values."
                + (" (Based on sample)" if sampled else "")
            ),
        ))
    return summaries, warnings


def run_quality_checks(
    dataset: ParsedDataset,
    profile: DatasetProfile,
    *,
    thresholds: AnalysisThresholds | None = None,
    checks_run_at: str | None = None,
) -> DataQualityReport:
    thresholds = thresholds or load_thresholds()
    frame = dataset.to_frame()

    warnings: list[QualityWarning] = []
    row_warning = check_row_count(profile.row_count, thresholds)
    if row_warning is not None:
        warnings.append(row_warning)

    time_coverage, time_warnings = check_time_coverage(frame, profile, thresholds)
    null_issues, null_warnings = check_null_density(profile, thresholds)
    outliers, outlier_warnings = check_outliers(frame, profile, thresholds)
    warnings.extend(time_warnings + null_warnings + outlier_warnings)

    logger.info(
        "Quality checks for %s: %d warning(s)", profile.dataset_version_id, len(warnings),
    )
    return DataQualityReport(
        dataset_version_id=profile.dataset_version_id,
        checks_run_at=checks_run_at or datetime.now(timezone.utc).isoformat(),
        row_count=profile.row_count,
        time_coverage=time_coverage,
        null_issues=null_issues,
        outlier_summary=outliers,
        warnings=warnings,
    )
