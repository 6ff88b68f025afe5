"""Histogram, percentile and grouping helpers shared by baseline and drill-down."""
from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from .models import CategoryBreakdown, DistributionBucket, PercentileStats

DEFAULT_BUCKET_COUNT = 10


def round_or_none(value: float | None, ndigits: int = 2) -> float | None:
    if value is None or pd.isna(value):
        return None
    return round(float(value), ndigits)


def generate_histogram(
    values: Sequence[float],
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> list[DistributionBucket]:
    """Equal-width histogram spanning min..max; the last bucket is closed."""
    if len(values) == 0:
        return []

    arr = np.asarray(values, dtype=float)
    lo, hi = float(arr.min()), float(arr.max())
    total = len(arr)

    if lo == hi:
        return [DistributionBucket(bucket=f"{lo:.2f}", count=total, percentage=100.0)]

    counts, edges = np.histogram(arr, bins=bucket_count, range=(lo, hi))
    buckets: list[DistributionBucket] = []
    for i, count in enumerate(counts):
        buckets.append(
            DistributionBucket(
                bucket=f"{edges[i]:.2f}-{edges[i + 1]:.2f}",
                count=int(count),
                percentage=round(int(count) / total * 100, 2),
            )
        )
    return buckets


def calculate_percentiles(values: Sequence[float]) -> PercentileStats:
    """p25/p50/p75 by linear interpolation between closest ranks."""
    if len(values) == 0:
        return PercentileStats(p25=0.0, p50=0.0, p75=0.0)
    p25, p50, p75 = np.percentile(np.asarray(values, dtype=float), [25, 50, 75])
    return PercentileStats(p25=round(float(p25), 2), p50=round(float(p50), 2), p75=round(float(p75), 2))


def category_breakdown(
    categories: pd.Series,
    metrics: pd.Series,
    *,
    require_metric: bool = True,
    with_total: bool = False,
) -> list[CategoryBreakdown]:
    """Group numeric ``metrics`` by ``categories`` into ``{category, count, average_metric}``.

    With ``require_metric`` rows whose metric is NaN are dropped before
    counting; otherwise every row with a category counts and the average skips
    missing metrics. ``with_total`` also fills ``total_metric``. Output is
    ordered by category label.
    """
    frame = pd.DataFrame({"category": categories, "metric": metrics})
    frame = frame[frame["category"].notna()]
    if require_metric:
        frame = frame[frame["metric"].notna()]
    if frame.empty:
        return []

    grouped = frame.groupby("category", sort=True)["metric"].agg(["size", "mean", "sum"])
    return [
        CategoryBreakdown(
            category=str(category),
            count=int(row["size"]),
            average_metric=round_or_none(row["mean"]),
            total_metric=round_or_none(row["sum"], 4) if with_total else None,
        )
        for category, row in grouped.iterrows()
    ]


def category_counts(categories: pd.Series) -> list[CategoryBreakdown]:
    """Row count per category with no metric attached, ordered by category label."""
    present = categories.dropna()
    if present.empty:
        return []
    counts = present.groupby(present, sort=True).size()
    return [
        CategoryBreakdown(category=str(category), count=int(n), average_metric=None)
        for category, n in counts.items()
    ]
