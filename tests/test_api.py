"""HTTP tests for the FastAPI app."""
from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dataset_analyst import app as app_module
from dataset_analyst.config import reset_settings, update_settings


@pytest.fixture
def client(conn, tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "_conn", conn)
    update_settings({"upload_dir": str(tmp_path / "uploads"), "enable_llm_explanations": False})
    yield TestClient(app_module.app)
    reset_settings()


@pytest.fixture
def sales_bytes(sales_path) -> bytes:
    return Path(sales_path).read_bytes()


@pytest.fixture
def version_id(client, sales_bytes) -> str:
    resp = client.post("/api/datasets", files={"file": ("sales.csv", sales_bytes, "text/csv")})
    assert resp.status_code == 200, resp.text
    return resp.json()["dataset_version_id"]


class TestDatasetRoutes:
    def test_upload_returns_profile(self, client, sales_bytes):
        resp = client.post("/api/datasets", files={"file": ("sales.csv", sales_bytes, "text/csv")},
                           data={"dataset_id": "sales"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["dataset_id"] == "sales"
        assert body["row_count"] == 12
        assert [c["name"] for c in body["profile"]["columns"]][:3] == ["order_id", "region", "revenue"]

    def test_upload_rejects_unsupported_type(self, client):
        resp = client.post("/api/datasets", files={"file": ("notes.txt", b"a,b\n1,2\n", "text/plain")})
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "UNSUPPORTED_TYPE"

    def test_upload_header_only_file(self, client):
        resp = client.post("/api/datasets", files={"file": ("empty.csv", b"a,b\n", "text/csv")})
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "EMPTY_DATASET"

    def test_profile(self, client, version_id):
        resp = client.get(f"/api/datasets/{version_id}/profile")
        assert resp.status_code == 200
        assert resp.json()["dataset_version_id"] == version_id

    def test_unknown_dataset_is_404(self, client):
        resp = client.get("/api/datasets/missing/profile")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "DATASET_NOT_FOUND"

    def test_baseline(self, client, version_id):
        resp = client.get(f"/api/datasets/{version_id}/baseline-analysis", params={"refresh": "true"})
        assert resp.status_code == 200
        assert resp.json()["phase_c"]["outcome_analysis"]["outcome_column"] == "churned"

    def test_quality_check(self, client, version_id):
        resp = client.get(f"/api/datasets/{version_id}/quality-check")
        assert resp.status_code == 200
        assert "LOW_ROW_COUNT" in [w["code"] for w in resp.json()["warnings"]]


class TestSessionRoutes:
    def test_ask_and_list_artifacts(self, client, version_id):
        resp = client.post("/api/sessions/s1/messages",
                           json={"dataset_version_id": version_id, "question": "What is the average of revenue?"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["artifact"]["data"]["value"] == 300.0

        listed = client.get("/api/sessions/s1/artifacts").json()
        assert listed["total"] == 1
        assert listed["artifacts"][0]["artifact_id"] == body["artifact"]["artifact_id"]

    def test_blocked_question_is_not_an_http_error(self, client, version_id):
        resp = client.post("/api/sessions/s1/messages",
                           json={"dataset_version_id": version_id, "question": "What is the average of signup_date?"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "blocked"
        assert resp.json()["guard_result"]["column"] == "signup_date"

    def test_compare_named_values(self, client, version_id):
        resp = client.post("/api/sessions/s1/messages",
                           json={"dataset_version_id": version_id,
                                 "question": "Compare revenue between North and South"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["status"] == "completed"
        assert body["artifact"]["data"]["compared_categories"] == ["North", "South"]

    def test_empty_question(self, client, version_id):
        resp = client.post("/api/sessions/s1/messages", json={"dataset_version_id": version_id, "question": "  "})
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "EMPTY_QUESTION"

    def test_drill_down_error_maps_to_422(self, client, version_id):
        resp = client.post("/api/drill-down", json={"dataset_version_id": version_id, "metric_column": "region"})
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "METRIC_NOT_NUMERIC"


class TestHealth:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["backend"]["status"] == "ok"
        assert body["database"]["status"] == "ok"
        assert body["llm"]["status"] == "disabled"
