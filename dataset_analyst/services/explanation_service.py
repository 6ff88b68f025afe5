"""
Prose explanations for artifacts and guard blocks.

Explanations only describe computed values; they never feed back into a
verdict or an artifact's data. Every path has a deterministic fallback so the
pipeline works with the LLM disabled or unreachable.
"""
from __future__ import annotations

import json
import logging

from ..analytics.models import (
    Artifact,
    BreakdownArtifact,
    DatasetProfile,
    DistributionArtifact,
    ScalarArtifact,
    SemanticGuardResult,
    TimeSeriesArtifact,
)
from ..integrations import LLMClient, LLMClientError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior data analyst. You explain computed results; you never compute. "
    "Do not change, round differently or invent any value. Reference the exact numbers given. "
    "If an insight cannot be justified from the result, say so. Answer in at most three sentences."
)

_SCALAR_VERBS = {"avg": "The average of", "sum": "The total of", "count": "The number of non-empty values in"}

_SERIES_LABELS = {"avg": "Average", "sum": "Total", "count": "Number of"}


class ExplanationService:
    """Turns artifacts and guard blocks into short user-facing prose."""

    def __init__(self, llm_client: LLMClient | None = None, enabled: bool = False) -> None:
        self._llm = llm_client
        self._enabled = enabled and llm_client is not None

    # ------------------------------------------------------------------
    # Deterministic descriptions
    # ------------------------------------------------------------------

    def describe_artifact(self, artifact: Artifact) -> str:
        if isinstance(artifact, ScalarArtifact):
            d = artifact.data
            if d.value is None:
                return f"'{d.column}' has no numeric values to aggregate."
            return (
                f"{_SCALAR_VERBS[d.operation]} '{d.column}' is {_fmt(d.value)} "
                f"(based on {d.row_count} of {d.total_rows} rows)."
            )
        if isinstance(artifact, BreakdownArtifact):
            d = artifact.data
            if not d.rows:
                return f"No rows had a value for '{d.dimension_column}'."
            top = d.rows[0]
            summary = (
                f"'{d.metric_column}' broken down by '{d.dimension_column}' across {len(d.rows)} "
                f"categories. The largest group is '{top.category}' with {top.count} rows"
            )
            if d.aggregation == "count":
                return summary + "."
            if d.aggregation == "sum":
                return f"{summary} and a total of {_fmt(top.total_metric)}."
            return f"{summary} and an average of {_fmt(top.average_metric)}."
        if isinstance(artifact, TimeSeriesArtifact):
            d = artifact.data
            if not d.points:
                return f"No dated values were found for '{d.metric_column}'."
            first, last = d.points[0], d.points[-1]
            return (
                f"{_SERIES_LABELS[d.aggregation]} '{d.metric_column}' per {d.granularity} over {len(d.points)} periods, "
                f"from {_fmt(first.value)} in {first.bucket} to {_fmt(last.value)} in {last.bucket}."
            )
        if isinstance(artifact, DistributionArtifact):
            d = artifact.data
            a, b = d.group_distributions.group_a, d.group_distributions.group_b
            return (
                f"Median '{d.metric_column}' is {_fmt(a.percentile_stats.p50)} when "
                f"{d.outcome_column} is {d.positive_value} ({a.count} rows) versus "
                f"{_fmt(b.percentile_stats.p50)} otherwise ({b.count} rows)."
            )
        return artifact.title

    def describe_block(self, blocked: SemanticGuardResult) -> str:
        alternatives = ", ".join(blocked.suggested_alternatives)
        return f"{blocked.reason} You could try instead: {alternatives}."

    # ------------------------------------------------------------------
    # LLM enrichment
    # ------------------------------------------------------------------

    async def explain_artifact(
        self,
        question: str,
        artifact: Artifact,
        profile: DatasetProfile | None = None,
    ) -> str:
        fallback = self.describe_artifact(artifact)
        if not self._enabled:
            return fallback

        columns = ", ".join(f"{c.name} ({c.semantic_type})" for c in profile.columns) if profile else "unknown"
        user_message = (
            f"User question: {question}\n\n"
            f"Computed result ({artifact.type}):\n{json.dumps(artifact.data.model_dump(), default=str)}\n\n"
            f"Dataset columns: {columns}\n\n"
            "Explain what this result means."
        )
        return await self._complete(user_message, fallback)

    async def explain_block(self, question: str, blocked: SemanticGuardResult) -> str:
        fallback = self.describe_block(blocked)
        if not self._enabled:
            return fallback
        user_message = (
            f"User question: {question}\n\n"
            f"The request was refused: {blocked.reason}\n"
            f"Column: {blocked.column} ({blocked.semantic_type})\n"
            f"Allowed alternatives: {', '.join(blocked.suggested_alternatives)}\n\n"
            "Explain briefly why and suggest how to rephrase using the alternatives."
        )
        return await self._complete(user_message, fallback)

    async def _complete(self, user_message: str, fallback: str) -> str:
        try:
            resp = await self._llm.complete(SYSTEM_PROMPT, user_message, temperature=0.3)
        except LLMClientError as exc:
            logger.warning("Explanation generation failed, using fallback: %s", exc)
            return fallback
        text = resp.content.strip()
        return text or fallback


def _fmt(value: float | int | None) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, int) or float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
