"""End-to-end tests for the analyst service pipeline."""
from __future__ import annotations

import asyncio
import threading
from dataclasses import replace

import pytest

from dataset_analyst.analytics.errors import DatasetNotFoundError, DrillDownError
from dataset_analyst.config import get_settings
from dataset_analyst.integrations import LLMClientError, LLMResponse
from dataset_analyst.services import AnalystService, ExplanationService


class _StubLLM:
    def __init__(self, content: str = "", fail: bool = False) -> None:
        self.content = content
        self.fail = fail
        self.calls: list[str] = []

    async def complete(self, system_prompt, user_message, temperature=0.2):
        self.calls.append(user_message)
        if self.fail:
            raise LLMClientError("down")
        return LLMResponse(content=self.content, model="stub")


@pytest.fixture
def version(service, sales_path):
    return service.register_dataset(sales_path, "sales.csv")


class TestAsk:
    def test_average_scenario(self, service, version, repo):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average of revenue?"))
        assert outcome.status == "completed"
        assert outcome.intent.intent == "aggregate_avg"
        assert outcome.resolution.metric.column_name == "revenue"
        assert outcome.guard_result is None
        assert outcome.artifact.data.value == pytest.approx(300.0)
        assert outcome.message == outcome.artifact.explanation
        assert "300" in outcome.message
        assert [a.artifact_id for a in repo.list_artifacts("s1")] == [outcome.artifact.artifact_id]
        assert [m.role for m in repo.list_messages("s1")] == ["user", "assistant"]

    def test_blocked_scenario(self, service, version, repo):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average of signup_date?"))
        assert outcome.status == "blocked"
        assert outcome.artifact is None
        assert outcome.guard_result.column == "signup_date"
        assert outcome.guard_result.attempted_operation == "AGG_AVG"
        assert outcome.guard_result.suggested_alternatives
        assert repo.list_artifacts("s1") == []

    def test_breakdown_gets_chart(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "Average revenue by region"))
        assert outcome.artifact.type == "breakdown"
        assert outcome.artifact.chart_spec["type"] == "bar"

    def test_unsupported_question(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "Tell me a joke"))
        assert outcome.status == "error"
        assert outcome.error.code == "UNSUPPORTED_QUERY"
        assert outcome.error.stage == "classification"

    def test_unresolved_metric(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average happiness?"))
        assert outcome.status == "error"
        assert outcome.error.code == "NO_METRIC_MATCH"
        assert outcome.intent.intent == "aggregate_avg"

    def test_unknown_dataset(self, service):
        with pytest.raises(DatasetNotFoundError):
            asyncio.run(service.ask("s1", "missing", "What is the average of revenue?"))

    def test_count_per_month_counts_rows(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "How many orders per month?"))
        assert outcome.status == "completed"
        assert outcome.intent.intent == "time_series"
        assert outcome.intent.aggregation == "count"
        data = outcome.artifact.data
        assert data.aggregation == "count"
        assert [(p.bucket, p.value, p.count) for p in data.points] == [
            (f"2024-0{m}", 2.0, 2) for m in range(1, 7)
        ]
        assert outcome.message.startswith("Number of 'order_id' per month")

    def test_count_by_region_counts_rows(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "How many orders by region?"))
        assert outcome.status == "completed"
        data = outcome.artifact.data
        assert data.aggregation == "count"
        assert [(r.category, r.count, r.average_metric) for r in data.rows] == [
            ("North", 5, None), ("South", 4, None), ("East", 3, None),
        ]
        assert outcome.artifact.chart_spec["y"] == "count"

    def test_summing_an_identifier_is_blocked(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "Total order_id per month"))
        assert outcome.status == "blocked"
        assert outcome.guard_result.column == "order_id"
        assert outcome.guard_result.attempted_operation == "AGG_SUM"
        assert outcome.guard_result.suggested_alternatives == ["count"]

    def test_breakdown_by_boolean_column(self, service, version):
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "Average revenue by churned"))
        assert outcome.status == "completed"
        assert outcome.resolution.dimension.column_name == "churned"
        assert [(r.category, r.count, r.average_metric) for r in outcome.artifact.data.rows] == [
            ("no", 8, 350.0), ("yes", 4, 200.0),
        ]

    def test_compare_named_values(self, service, version):
        outcome = asyncio.run(
            service.ask("s1", version.dataset_version_id, "Compare revenue between North and South")
        )
        assert outcome.status == "completed"
        assert outcome.resolution.dimension.column_name == "region"
        assert outcome.artifact.data.compared_categories == ["North", "South"]
        assert [(r.category, r.average_metric) for r in outcome.artifact.data.rows] == [
            ("North", 230.0), ("South", 250.0),
        ]

    def test_session_writes_run_off_the_event_loop(self, service, version, repo, monkeypatch):
        loop_thread = threading.get_ident()
        writer_threads: list[int] = []
        for name in ("append_message", "save_artifact"):
            original = getattr(repo, name)

            def record(*args, _original=original, **kwargs):
                writer_threads.append(threading.get_ident())
                return _original(*args, **kwargs)

            monkeypatch.setattr(repo, name, record)

        asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average of revenue?"))
        assert len(writer_threads) == 3
        assert loop_thread not in writer_threads


class TestBaselineAndDrillDown:
    def test_baseline_is_stored(self, service, version, repo):
        first = service.baseline(version.dataset_version_id)
        assert repo.get_baseline(version.dataset_version_id) == first
        assert service.baseline(version.dataset_version_id) == first

    def test_drill_down_needs_min_group_size(self, service, version):
        with pytest.raises(DrillDownError) as exc:
            asyncio.run(service.drill_down(version.dataset_version_id, "revenue", session_id="s1"))
        assert exc.value.code == "INSUFFICIENT_SAMPLE"

    def test_drill_down_artifact(self, repo, thresholds, sales_path):
        small_groups = AnalystService(replace(get_settings(), drill_down_min_group_size=3), repo, thresholds=thresholds)
        version = small_groups.register_dataset(sales_path, "sales.csv")
        artifact = asyncio.run(small_groups.drill_down(version.dataset_version_id, "revenue", session_id="s1"))
        assert artifact.type == "distribution"
        assert artifact.intent == "drill_down"
        assert artifact.data.group_distributions.group_a.count == 4
        assert artifact.chart_spec["type"] == "histogram"
        assert repo.list_artifacts("s1") == [artifact]

    def test_quality_report(self, service, version):
        report = service.quality_report(version.dataset_version_id)
        assert report.dataset_version_id == version.dataset_version_id
        assert report.row_count == 12


class TestExplanationService:
    def test_llm_text_used_when_enabled(self, service, version):
        llm = _StubLLM("Revenue averages 300.")
        service._explainer = ExplanationService(llm, enabled=True)
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average of revenue?"))
        assert outcome.message == "Revenue averages 300."
        assert "300.0" in llm.calls[0]

    def test_falls_back_when_llm_fails(self, service, version):
        service._explainer = ExplanationService(_StubLLM(fail=True), enabled=True)
        outcome = asyncio.run(service.ask("s1", version.dataset_version_id, "What is the average of revenue?"))
        assert outcome.message.startswith("The average of 'revenue' is 300")

    def test_disabled_without_client(self):
        assert ExplanationService(None, enabled=True)._enabled is False
