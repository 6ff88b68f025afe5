"""Rule-based chart selection for artifacts."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from .models import (
    Artifact,
    BreakdownArtifact,
    DistributionArtifact,
    TimeSeriesArtifact,
)

ChartType = Literal["bar", "line", "histogram"]

MIN_CHART_POINTS = 2

_BREAKDOWN_Y = {"avg": "average_metric", "sum": "total_metric", "count": "count"}


class ChartSpec(BaseModel):
    type: ChartType
    x: str
    y: str
    title: str


def is_chart_eligible(artifact: Artifact) -> bool:
    """Charts only where they add clarity over the raw numbers."""
    if isinstance(artifact, BreakdownArtifact):
        return len(artifact.data.rows) >= MIN_CHART_POINTS
    if isinstance(artifact, TimeSeriesArtifact):
        return len(artifact.data.points) >= MIN_CHART_POINTS
    if isinstance(artifact, DistributionArtifact):
        return bool(artifact.data.group_distributions.group_a.distribution)
    return False


def select_chart_spec(artifact: Artifact) -> ChartSpec | None:
    if not is_chart_eligible(artifact):
        return None
    if isinstance(artifact, BreakdownArtifact):
        return ChartSpec(
            type="bar", x="category", y=_BREAKDOWN_Y[artifact.data.aggregation], title=artifact.title,
        )
    if isinstance(artifact, TimeSeriesArtifact):
        return ChartSpec(type="line", x="bucket", y="value", title=artifact.title)
    return ChartSpec(type="histogram", x="bucket", y="percentage", title=artifact.title)


def annotate_artifact(
    artifact: Artifact,
    *,
    chart_spec: ChartSpec | dict[str, Any] | None = None,
    explanation: str | None = None,
) -> Artifact:
    """Copy of ``artifact`` with chart spec and/or explanation set; ``data`` is untouched."""
    update: dict[str, Any] = {}
    if chart_spec is not None:
        update["chart_spec"] = (
            chart_spec.model_dump() if isinstance(chart_spec, ChartSpec) else dict(chart_spec)
        )
    if explanation is not None:
        update["explanation"] = explanation
    if not update:
        return artifact
    return artifact.model_copy(update=update)
