from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ErrorDetail, SemanticGuardResult


class AnalyticsError(Exception):
    """Base error class for deterministic analytics.

    Every subclass carries a stable ``code`` and the pipeline ``stage`` that
    detected it, so callers can map failures without parsing messages.
    """

    code: str = "ANALYTICS_ERROR"
    stage: str = "analytics"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_detail(self) -> "ErrorDetail":
        from .models import ErrorDetail

        return ErrorDetail(code=self.code, stage=self.stage, message=self.message)


# ----------------------------------------------------------------------------
# Input errors
# ----------------------------------------------------------------------------

class DatasetProfilingError(AnalyticsError):
    """Raised when a dataset cannot be profiled at all."""
    code = "PROFILING_ERROR"
    stage = "profiling"


class EmptyDatasetError(DatasetProfilingError):
    code = "EMPTY_DATASET"


class NoColumnsError(DatasetProfilingError):
    code = "NO_COLUMNS"


class DuplicateColumnError(DatasetProfilingError):
    code = "DUPLICATE_COLUMNS"


class DatasetLoadError(AnalyticsError):
    """Raised when a dataset file cannot be read into rows."""
    code = "FILE_UNREADABLE"
    stage = "loading"


class DatasetNotFoundError(AnalyticsError):
    code = "DATASET_NOT_FOUND"
    stage = "lookup"


class UnsupportedQueryError(AnalyticsError):
    code = "UNSUPPORTED_QUERY"
    stage = "classification"


# ----------------------------------------------------------------------------
# Resolution / semantic / execution errors
# ----------------------------------------------------------------------------

class ResolutionError(AnalyticsError):
    """Raised when question text cannot be mapped onto dataset columns."""
    code = "NO_METRIC_MATCH"
    stage = "resolution"


class SemanticOperationBlockedError(AnalyticsError):
    """Raised when execution is attempted on a resolution the guard rejects."""
    code = "SEMANTIC_BLOCK"
    stage = "guard"

    def __init__(self, guard_result: "SemanticGuardResult") -> None:
        super().__init__(guard_result.reason)
        self.guard_result = guard_result


class ExecutionError(AnalyticsError):
    """Raised when a validated analysis cannot be computed."""
    code = "EXECUTION_ERROR"
    stage = "execution"


class DrillDownError(AnalyticsError):
    code = "DRILL_DOWN_ERROR"
    stage = "drill_down"
