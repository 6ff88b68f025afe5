from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


SemanticType = Literal["string", "number", "boolean", "date", "unknown"]

AnalyticsIntent = Literal[
    "aggregate_avg",
    "aggregate_sum",
    "aggregate_count",
    "group_by",
    "time_series",
    "compare",
    "unsupported_query",
]

Aggregation = Literal["avg", "sum", "count"]

OperationCategory = Literal["AGG_AVG", "AGG_SUM", "AGG_COUNT", "GROUP_BY", "TIME_BUCKET"]

ColumnRole = Literal["metric", "dimension", "time_column"]

TimeGranularity = Literal["day", "week", "month", "year"]

ArtifactType = Literal["scalar", "breakdown", "time_series", "distribution", "outcome_analysis"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ErrorDetail(_Frozen):
    """Structured error surfaced to callers instead of a stack trace."""
    code: str
    stage: str
    message: str


# ============================================================================
# Profiling
# ============================================================================

class ColumnProfile(_Frozen):
    """Per-column semantic type and summary statistics."""
    name: str
    semantic_type: SemanticType
    null_count: int = Field(ge=0)
    null_ratio: float = Field(ge=0.0, le=1.0)
    distinct_count: int = Field(ge=0)
    min: float | None = None
    max: float | None = None
    mean: float | None = None
    # Most frequent labels of string/boolean columns, most common first.
    top_values: list[str] = Field(default_factory=list)


class DatasetProfile(_Frozen):
    """Profile of one immutable dataset version."""
    dataset_version_id: str
    row_count: int
    column_count: int
    columns: list[ColumnProfile] = Field(default_factory=list)

    def column(self, name: str) -> ColumnProfile | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def columns_of_type(self, *semantic_types: str) -> list[ColumnProfile]:
        return [c for c in self.columns if c.semantic_type in semantic_types]


# ============================================================================
# Question pipeline
# ============================================================================

class IntentClassification(_Frozen):
    intent: AnalyticsIntent
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_value: str | None = None
    # Aggregate also named by the question ("how many orders per month").
    aggregation: Aggregation | None = None


class ResolvedColumn(_Frozen):
    column_name: str
    column_profile: ColumnProfile


class MetricResolution(_Frozen):
    """Columns a question resolved to. Failures are raised, never embedded."""
    dataset_version_id: str
    metric: ResolvedColumn
    dimension: ResolvedColumn | None = None
    time_column: ResolvedColumn | None = None


class SemanticGuardResult(_Frozen):
    """Present only when an operation is blocked; ``None`` means approved."""
    is_valid: Literal[False] = False
    column: str
    column_role: ColumnRole
    semantic_type: SemanticType
    attempted_operation: OperationCategory
    reason: str
    suggested_alternatives: list[str] = Field(default_factory=list)
    dataset_version_id: str


# ============================================================================
# Shared result shapes
# ============================================================================

class DistributionBucket(_Frozen):
    bucket: str
    count: int
    percentage: float


class CategoryBreakdown(_Frozen):
    category: str
    count: int
    average_metric: float | None
    total_metric: float | None = None


class PercentileStats(_Frozen):
    p25: float
    p50: float
    p75: float


# ============================================================================
# Artifacts
# ============================================================================

class ScalarResult(_Frozen):
    operation: Aggregation
    column: str
    value: float | int | None
    row_count: int
    total_rows: int


class BreakdownResult(_Frozen):
    metric_column: str
    dimension_column: str
    aggregation: Aggregation = "avg"
    sort_by: Literal["count", "category"] = "count"
    compared_categories: list[str] = Field(default_factory=list)
    rows: list[CategoryBreakdown] = Field(default_factory=list)


class TimeSeriesPoint(_Frozen):
    bucket: str
    value: float
    count: int


class TimeSeriesResult(_Frozen):
    metric_column: str
    time_column: str
    aggregation: Aggregation = "sum"
    granularity: TimeGranularity
    points: list[TimeSeriesPoint] = Field(default_factory=list)


class ArtifactBase(_Frozen):
    artifact_id: str
    dataset_version_id: str
    generated_at: str
    intent: str
    title: str
    chart_spec: dict[str, Any] | None = None
    explanation: str | None = None


class ScalarArtifact(ArtifactBase):
    type: Literal["scalar"] = "scalar"
    data: ScalarResult


class BreakdownArtifact(ArtifactBase):
    type: Literal["breakdown"] = "breakdown"
    data: BreakdownResult


class TimeSeriesArtifact(ArtifactBase):
    type: Literal["time_series"] = "time_series"
    data: TimeSeriesResult


class DistributionArtifact(ArtifactBase):
    type: Literal["distribution"] = "distribution"
    data: "DrillDownResult"


class OutcomeAnalysisArtifact(ArtifactBase):
    type: Literal["outcome_analysis"] = "outcome_analysis"
    data: "OutcomeAnalysis"


Artifact = Annotated[
    Union[
        ScalarArtifact,
        BreakdownArtifact,
        TimeSeriesArtifact,
        DistributionArtifact,
        OutcomeAnalysisArtifact,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# Baseline analysis
# ============================================================================

class MetricSummary(_Frozen):
    column_name: str
    row_count: int
    non_null_count: int
    mean: float
    min: float
    max: float
    distribution: list[DistributionBucket] = Field(default_factory=list)


class StandardBreakdown(_Frozen):
    categorical_column: str
    metric_column: str
    breakdowns: list[CategoryBreakdown] = Field(default_factory=list)


class CategoryOutcomeRate(_Frozen):
    category: str
    outcome_rate: float
    count: int


class CategoryOutcomeBreakdown(_Frozen):
    category_column: str
    breakdowns: list[CategoryOutcomeRate] = Field(default_factory=list)


class MetricOutcomeBreakdown(_Frozen):
    metric_column: str
    average_with_outcome: float | None
    average_without_outcome: float | None
    difference: float | None


class KeyDifference(_Frozen):
    metric_column: str
    average_group_a: float | None
    average_group_b: float | None
    absolute_difference: float | None
    relative_difference: float | None
    rank: int


class OutcomeAnalysis(_Frozen):
    outcome_column: str
    positive_value: str
    outcome_rate: float
    breakdowns_by_category: list[CategoryOutcomeBreakdown] = Field(default_factory=list)
    breakdowns_by_metric: list[MetricOutcomeBreakdown] = Field(default_factory=list)
    key_differences: list[KeyDifference] = Field(default_factory=list)


class PhaseA(_Frozen):
    metric_summaries: list[MetricSummary] = Field(default_factory=list)


class PhaseB(_Frozen):
    breakdowns: list[StandardBreakdown] = Field(default_factory=list)


class PhaseC(_Frozen):
    outcome_analysis: OutcomeAnalysis | None = None


class BaselineMetadata(_Frozen):
    dataset_version_id: str
    row_count: int
    analyzed_at: str


class BaselineAnalysis(_Frozen):
    phase_a: PhaseA
    phase_b: PhaseB
    phase_c: PhaseC
    metadata: BaselineMetadata


# ============================================================================
# Drill-down
# ============================================================================

class SecondaryBreakdown(_Frozen):
    dimension_column: str
    breakdowns: list[CategoryBreakdown] = Field(default_factory=list)


class GroupDistribution(_Frozen):
    group_label: str
    count: int
    distribution: list[DistributionBucket] = Field(default_factory=list)
    percentile_stats: PercentileStats
    secondary_breakdown: SecondaryBreakdown | None = None


class DrillDownGroups(_Frozen):
    group_a: GroupDistribution
    group_b: GroupDistribution


class DrillDownResult(_Frozen):
    metric_column: str
    outcome_column: str
    positive_value: str
    group_distributions: DrillDownGroups


# ============================================================================
# Data quality
# ============================================================================

class QualityWarning(_Frozen):
    code: str
    severity: Literal["low", "medium", "high"]
    message: str


class TimeCoverage(_Frozen):
    column: str
    min_date: str
    max_date: str
    expected_granularity: Literal["daily", "weekly", "monthly"]
    missing_periods_count: int
    coverage_ratio: float
    is_partial_latest_period: bool


class NullIssue(_Frozen):
    column: str
    null_ratio: float


class OutlierSummary(_Frozen):
    metric: str
    method: Literal["IQR"] = "IQR"
    outlier_ratio: float


class DataQualityReport(_Frozen):
    dataset_version_id: str
    checks_run_at: str
    row_count: int
    time_coverage: TimeCoverage | None = None
    null_issues: list[NullIssue] = Field(default_factory=list)
    outlier_summary: list[OutlierSummary] = Field(default_factory=list)
    warnings: list[QualityWarning] = Field(default_factory=list)


DistributionArtifact.model_rebuild()
OutcomeAnalysisArtifact.model_rebuild()
