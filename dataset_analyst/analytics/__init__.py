"""Deterministic analytics core: profile, classify, resolve, guard, execute."""
from .errors import (
    AnalyticsError,
    DatasetLoadError,
    DatasetProfilingError,
    DrillDownError,
    DuplicateColumnError,
    EmptyDatasetError,
    ExecutionError,
    NoColumnsError,
    ResolutionError,
    SemanticOperationBlockedError,
    UnsupportedQueryError,
)
from .models import (
    Artifact,
    BaselineAnalysis,
    ColumnProfile,
    DataQualityReport,
    DatasetProfile,
    DrillDownResult,
    ErrorDetail,
    IntentClassification,
    MetricResolution,
    SemanticGuardResult,
)
from .profiler import profile_dataset, profile_parsed_dataset
from .intent import IntentClassifier, classify_intent
from .resolver import resolve_all
from .guard import GUARD_RULES, validate_semantic_operations
from .executor import AnalysisExecutor, execute_analysis
from .baseline import detect_outcome_column, run_baseline_analysis
from .drilldown import drill_down
from .quality import run_quality_checks
from .charts import annotate_artifact, select_chart_spec

__all__ = [
    "AnalyticsError",
    "DatasetLoadError",
    "DatasetProfilingError",
    "DrillDownError",
    "DuplicateColumnError",
    "EmptyDatasetError",
    "ExecutionError",
    "NoColumnsError",
    "ResolutionError",
    "SemanticOperationBlockedError",
    "UnsupportedQueryError",
    "Artifact",
    "BaselineAnalysis",
    "ColumnProfile",
    "DataQualityReport",
    "DatasetProfile",
    "DrillDownResult",
    "ErrorDetail",
    "IntentClassification",
    "MetricResolution",
    "SemanticGuardResult",
    "profile_dataset",
    "profile_parsed_dataset",
    "IntentClassifier",
    "classify_intent",
    "resolve_all",
    "GUARD_RULES",
    "validate_semantic_operations",
    "AnalysisExecutor",
    "execute_analysis",
    "detect_outcome_column",
    "run_baseline_analysis",
    "drill_down",
    "run_quality_checks",
    "annotate_artifact",
    "select_chart_spec",
]
