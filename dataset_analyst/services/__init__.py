"""Services layer for dataset-analyst."""
from .analyst_service import AnalystService, AnalysisOutcome
from .explanation_service import ExplanationService
from .health_service import HealthService, HealthReport, ServiceHealth

__all__ = ["AnalystService", "AnalysisOutcome", "ExplanationService", "HealthService", "HealthReport",
           "ServiceHealth"]
