"""Tests for the SQLite analysis store."""
from __future__ import annotations

import sqlite3

import pytest

from dataset_analyst.analytics.baseline import run_baseline_analysis
from dataset_analyst.analytics.charts import annotate_artifact
from dataset_analyst.analytics.executor import execute_analysis
from dataset_analyst.analytics.resolver import resolve_all
from dataset_analyst.repositories import open_connection


def _register(repo, profile, path, version_id="v-sales", dataset_id="sales"):
    repo.register_dataset_version(
        dataset_version_id=version_id,
        dataset_id=dataset_id,
        file_name="sales.csv",
        file_path=path,
        profile=profile.model_copy(update={"dataset_version_id": version_id}),
    )


class TestMigrations:
    def test_tables_created(self, conn):
        names = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table';")}
        assert {"dataset_versions", "baseline_analyses", "session_messages", "artifacts"} <= names

    def test_reapplying_is_harmless(self, tmp_path):
        db = str(tmp_path / "store.db")
        open_connection(db).close()
        open_connection(db).close()


class TestDatasetVersions:
    def test_round_trip(self, repo, sales_profile, sales_path):
        _register(repo, sales_profile, sales_path)
        version = repo.get_dataset_version("v-sales")
        assert version.profile == sales_profile
        assert version.row_count == 12
        assert version.file_path == sales_path

    def test_unknown_version(self, repo):
        assert repo.get_dataset_version("nope") is None

    def test_versions_are_immutable(self, repo, sales_profile, sales_path):
        _register(repo, sales_profile, sales_path)
        with pytest.raises(sqlite3.IntegrityError):
            _register(repo, sales_profile, sales_path)

    def test_latest_version(self, repo, sales_profile, sales_path):
        _register(repo, sales_profile, sales_path, "v1")
        _register(repo, sales_profile, sales_path, "v2")
        assert repo.latest_version_for_dataset("sales").dataset_version_id == "v2"


class TestBaselines:
    def test_replaced_wholesale(self, repo, sales_profile, sales_path, thresholds):
        _register(repo, sales_profile, sales_path)
        first = run_baseline_analysis(sales_profile, sales_path, thresholds=thresholds, analyzed_at="t1")
        second = run_baseline_analysis(sales_profile, sales_path, thresholds=thresholds, analyzed_at="t2")
        repo.save_baseline(first)
        repo.save_baseline(second)
        assert repo.get_baseline("v-sales") == second
        count = repo._conn.execute("SELECT COUNT(*) FROM baseline_analyses;").fetchone()[0]
        assert count == 1


class TestArtifacts:
    def _artifact(self, profile, path):
        resolution = resolve_all("Average revenue by region", profile, "group_by")
        return execute_analysis(path, "group_by", resolution)

    def test_round_trip_with_annotations(self, repo, sales_profile, sales_path):
        artifact = annotate_artifact(self._artifact(sales_profile, sales_path), explanation="North leads.")
        repo.save_artifact("s1", artifact)
        assert repo.list_artifacts("s1") == [artifact]
        assert repo.list_artifacts("other") == []

    def test_annotation_update_keeps_data(self, repo, sales_profile, sales_path):
        artifact = self._artifact(sales_profile, sales_path)
        repo.save_artifact("s1", artifact)
        assert repo.update_artifact_annotations(artifact.artifact_id, chart_spec={"type": "bar"}, explanation="x")
        stored = repo.get_artifact(artifact.artifact_id)
        assert stored.data == artifact.data
        assert stored.chart_spec == {"type": "bar"}
        assert stored.explanation == "x"
        assert not repo.update_artifact_annotations("missing", explanation="y")

    def test_messages_in_order(self, repo):
        repo.append_message("s1", "v1", "user", "q")
        repo.append_message("s1", "v1", "assistant", "a")
        assert [(m.role, m.content) for m in repo.list_messages("s1")] == [("user", "q"), ("assistant", "a")]
