"""
Orchestrates the question pipeline, baseline, drill-down and quality checks
for registered dataset versions.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel

from ..analytics.baseline import run_baseline_analysis
from ..analytics.charts import annotate_artifact, select_chart_spec
from ..analytics.drilldown import drill_down
from ..analytics.errors import AnalyticsError, DatasetNotFoundError, SemanticOperationBlockedError
from ..analytics.executor import AnalysisExecutor
from ..analytics.guard import validate_semantic_operations
from ..analytics.intent import classify_intent
from ..analytics.models import (
    Artifact,
    BaselineAnalysis,
    DataQualityReport,
    DistributionArtifact,
    ErrorDetail,
    IntentClassification,
    MetricResolution,
    SemanticGuardResult,
)
from ..analytics.profiler import profile_parsed_dataset
from ..analytics.quality import run_quality_checks
from ..analytics.resolver import resolve_all
from ..config import AnalysisThresholds, Settings, load_thresholds
from ..domain import OutcomeStatus
from ..loader import load_dataset
from ..repositories import AnalysisRepository, DatasetVersion
from .explanation_service import ExplanationService

logger = logging.getLogger(__name__)


class AnalysisOutcome(BaseModel):
    """Result of one question: an artifact, a guard block or a structured error."""
    status: OutcomeStatus
    message: str
    intent: IntentClassification | None = None
    resolution: MetricResolution | None = None
    guard_result: SemanticGuardResult | None = None
    artifact: Artifact | None = None
    error: ErrorDetail | None = None


class AnalystService:
    """Runs classify -> resolve -> guard -> execute and persists what it produces."""

    def __init__(
        self,
        settings: Settings,
        repository: AnalysisRepository,
        explainer: ExplanationService | None = None,
        thresholds: AnalysisThresholds | None = None,
    ) -> None:
        self._s = settings
        self._repo = repository
        self._explainer = explainer or ExplanationService()
        self._thresholds = thresholds or load_thresholds(settings.analysis_thresholds_path)
        self._executor = AnalysisExecutor()

    # ------------------------------------------------------------------
    # Dataset versions
    # ------------------------------------------------------------------

    def register_dataset(self, file_path: str, file_name: str, dataset_id: str | None = None) -> DatasetVersion:
        """Load and profile a file as a new immutable dataset version."""
        dataset = load_dataset(file_path)
        dataset_version_id = str(uuid.uuid4())
        profile = profile_parsed_dataset(dataset, dataset_version_id)
        self._repo.register_dataset_version(
            dataset_version_id=dataset_version_id,
            dataset_id=dataset_id or str(uuid.uuid4()),
            file_name=file_name,
            file_path=file_path,
            profile=profile,
        )
        version = self._repo.get_dataset_version(dataset_version_id)
        logger.info("Registered dataset version %s (%s)", dataset_version_id, file_name)
        return version

    def get_version(self, dataset_version_id: str) -> DatasetVersion:
        version = self._repo.get_dataset_version(dataset_version_id)
        if version is None:
            raise DatasetNotFoundError(f"Dataset version '{dataset_version_id}' does not exist.")
        return version

    def baseline(self, dataset_version_id: str, refresh: bool = False) -> BaselineAnalysis:
        """Stored baseline for the version, computed on first request or when ``refresh``."""
        version = self.get_version(dataset_version_id)
        if not refresh:
            stored = self._repo.get_baseline(dataset_version_id)
            if stored is not None:
                return stored
        analysis = run_baseline_analysis(version.profile, version.file_path, thresholds=self._thresholds)
        self._repo.save_baseline(analysis)
        return analysis

    def quality_report(self, dataset_version_id: str) -> DataQualityReport:
        version = self.get_version(dataset_version_id)
        return run_quality_checks(load_dataset(version.file_path), version.profile, thresholds=self._thresholds)

    def list_artifacts(self, session_id: str) -> list[Artifact]:
        return self._repo.list_artifacts(session_id)

    # ------------------------------------------------------------------
    # Question pipeline
    # ------------------------------------------------------------------

    async def ask(self, session_id: str, dataset_version_id: str, question: str) -> AnalysisOutcome:
        version = await asyncio.to_thread(self.get_version, dataset_version_id)
        await asyncio.to_thread(self._repo.append_message, session_id, dataset_version_id, "user", question)

        outcome = await self._run_pipeline(version, question)
        if outcome.artifact is not None:
            await asyncio.to_thread(self._repo.save_artifact, session_id, outcome.artifact)
        await asyncio.to_thread(
            self._repo.append_message, session_id, dataset_version_id, "assistant", outcome.message,
        )
        return outcome

    async def _run_pipeline(self, version: DatasetVersion, question: str) -> AnalysisOutcome:
        profile = version.profile
        classification = classify_intent(question, self._s.intent_confidence_threshold)

        try:
            resolution = await asyncio.to_thread(resolve_all, question, profile, classification)
        except AnalyticsError as exc:
            return self._error(exc, classification)

        blocked = validate_semantic_operations(resolution, classification, profile.dataset_version_id)
        if blocked is not None:
            return await self._blocked(question, blocked, classification, resolution)

        try:
            artifact = await asyncio.to_thread(
                self._executor.execute, version.file_path, classification, resolution,
            )
        except SemanticOperationBlockedError as exc:
            return await self._blocked(question, exc.guard_result, classification, resolution)
        except AnalyticsError as exc:
            return self._error(exc, classification, resolution)

        explanation = await self._explainer.explain_artifact(question, artifact, profile)
        artifact = annotate_artifact(artifact, chart_spec=select_chart_spec(artifact), explanation=explanation)
        return AnalysisOutcome(
            status="completed",
            message=explanation,
            intent=classification,
            resolution=resolution,
            artifact=artifact,
        )

    async def _blocked(
        self,
        question: str,
        blocked: SemanticGuardResult,
        classification: IntentClassification,
        resolution: MetricResolution,
    ) -> AnalysisOutcome:
        return AnalysisOutcome(
            status="blocked",
            message=await self._explainer.explain_block(question, blocked),
            intent=classification,
            resolution=resolution,
            guard_result=blocked,
        )

    @staticmethod
    def _error(
        exc: AnalyticsError,
        classification: IntentClassification,
        resolution: MetricResolution | None = None,
    ) -> AnalysisOutcome:
        logger.info("Pipeline stopped at %s: %s (%s)", exc.stage, exc.code, exc.message)
        return AnalysisOutcome(
            status="error",
            message=exc.message,
            intent=classification,
            resolution=resolution,
            error=exc.to_detail(),
        )

    # ------------------------------------------------------------------
    # Drill-down
    # ------------------------------------------------------------------

    async def drill_down(
        self,
        dataset_version_id: str,
        metric_column: str,
        session_id: str | None = None,
        outcome_column: str | None = None,
    ) -> DistributionArtifact:
        version = await asyncio.to_thread(self.get_version, dataset_version_id)
        result = await asyncio.to_thread(
            drill_down,
            version.file_path,
            metric_column,
            profile=version.profile,
            outcome_column=outcome_column,
            min_group_size=self._s.drill_down_min_group_size,
            thresholds=self._thresholds,
        )
        artifact = DistributionArtifact(
            artifact_id=str(uuid.uuid4()),
            dataset_version_id=dataset_version_id,
            generated_at=datetime.now(timezone.utc).isoformat(),
            intent="drill_down",
            title=f"Distribution of {metric_column} by {result.outcome_column}",
            data=result,
        )
        explanation = self._explainer.describe_artifact(artifact)
        artifact = annotate_artifact(artifact, chart_spec=select_chart_spec(artifact), explanation=explanation)
        if session_id:
            await asyncio.to_thread(self._repo.save_artifact, session_id, artifact)
        return artifact
