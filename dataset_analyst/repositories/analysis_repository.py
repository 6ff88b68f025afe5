from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from pydantic import TypeAdapter

from ..analytics.models import Artifact, BaselineAnalysis, DatasetProfile
from ..domain import MessageRole

logger = logging.getLogger(__name__)

_ARTIFACT_ADAPTER: TypeAdapter = TypeAdapter(Artifact)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


@dataclass(frozen=True)
class DatasetVersion:
    dataset_version_id: str
    dataset_id: str
    file_name: str
    file_path: str
    row_count: int
    profile: DatasetProfile
    created_at: str


@dataclass(frozen=True)
class SessionMessage:
    message_id: int
    session_id: str
    dataset_version_id: str
    role: str
    content: str
    created_at: str


def apply_migrations(sqlite_connection: sqlite3.Connection) -> None:
    """Execute the SQL migration files in name order."""
    for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
        sqlite_connection.executescript(migration.read_text(encoding="utf-8"))
        logger.debug("Applied migration %s", migration.name)


def open_connection(db_path: str) -> sqlite3.Connection:
    """Long-lived connection shared across request threads, with migrations applied."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    if db_path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    apply_migrations(conn)
    return conn


class AnalysisRepository:
    """SQLite access for dataset versions, baselines, messages and artifacts."""

    def __init__(self, sqlite_connection: sqlite3.Connection) -> None:
        self._conn = sqlite_connection

    # ------------------------------------------------------------------
    # Dataset versions (immutable once registered)
    # ------------------------------------------------------------------

    def register_dataset_version(
        self,
        *,
        dataset_version_id: str,
        dataset_id: str,
        file_name: str,
        file_path: str,
        profile: DatasetProfile,
    ) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO dataset_versions "
                "(dataset_version_id, dataset_id, file_name, file_path, row_count, profile_json) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                (
                    dataset_version_id,
                    dataset_id,
                    file_name,
                    file_path,
                    int(profile.row_count),
                    profile.model_dump_json(),
                ),
            )

    def get_dataset_version(self, dataset_version_id: str) -> DatasetVersion | None:
        cursor = self._conn.execute(
            "SELECT dataset_version_id, dataset_id, file_name, file_path, row_count, profile_json, created_at "
            "FROM dataset_versions WHERE dataset_version_id = ? LIMIT 1;",
            (dataset_version_id,),
        )
        row = cursor.fetchone()
        return None if row is None else self._to_version(row)

    def latest_version_for_dataset(self, dataset_id: str) -> DatasetVersion | None:
        cursor = self._conn.execute(
            "SELECT dataset_version_id, dataset_id, file_name, file_path, row_count, profile_json, created_at "
            "FROM dataset_versions WHERE dataset_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1;",
            (dataset_id,),
        )
        row = cursor.fetchone()
        return None if row is None else self._to_version(row)

    @staticmethod
    def _to_version(row: tuple) -> DatasetVersion:
        return DatasetVersion(
            dataset_version_id=str(row[0]),
            dataset_id=str(row[1]),
            file_name=str(row[2]),
            file_path=str(row[3]),
            row_count=int(row[4]),
            profile=DatasetProfile.model_validate_json(row[5]),
            created_at=str(row[6]),
        )

    # ------------------------------------------------------------------
    # Baselines (replaced wholesale)
    # ------------------------------------------------------------------

    def save_baseline(self, analysis: BaselineAnalysis) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO baseline_analyses (dataset_version_id, analysis_json, analyzed_at, updated_at) "
                "VALUES (?, ?, ?, datetime('now')) "
                "ON CONFLICT(dataset_version_id) "
                "DO UPDATE SET "
                "  analysis_json = excluded.analysis_json, "
                "  analyzed_at = excluded.analyzed_at, "
                "  updated_at = datetime('now');",
                (
                    analysis.metadata.dataset_version_id,
                    analysis.model_dump_json(),
                    analysis.metadata.analyzed_at,
                ),
            )

    def get_baseline(self, dataset_version_id: str) -> BaselineAnalysis | None:
        cursor = self._conn.execute(
            "SELECT analysis_json FROM baseline_analyses WHERE dataset_version_id = ? LIMIT 1;",
            (dataset_version_id,),
        )
        row = cursor.fetchone()
        return None if row is None else BaselineAnalysis.model_validate_json(row[0])

    # ------------------------------------------------------------------
    # Session messages + artifacts (append-only)
    # ------------------------------------------------------------------

    def append_message(self, session_id: str, dataset_version_id: str, role: MessageRole, content: str) -> int:
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO session_messages (session_id, dataset_version_id, role, content) "
                "VALUES (?, ?, ?, ?);",
                (session_id, dataset_version_id, role, content),
            )
        return int(cursor.lastrowid)

    def list_messages(self, session_id: str) -> list[SessionMessage]:
        cursor = self._conn.execute(
            "SELECT message_id, session_id, dataset_version_id, role, content, created_at "
            "FROM session_messages WHERE session_id = ? ORDER BY message_id ASC;",
            (session_id,),
        )
        return [
            SessionMessage(int(r[0]), str(r[1]), str(r[2]), str(r[3]), str(r[4]), str(r[5]))
            for r in cursor.fetchall()
        ]

    def save_artifact(self, session_id: str, artifact: Artifact) -> None:
        """Store the computed artifact; annotations live in their own columns."""
        core = artifact.model_copy(update={"chart_spec": None, "explanation": None})
        with self._conn:
            self._conn.execute(
                "INSERT INTO artifacts "
                "(artifact_id, session_id, dataset_version_id, artifact_type, artifact_json, "
                " chart_spec_json, explanation) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                (
                    artifact.artifact_id,
                    session_id,
                    artifact.dataset_version_id,
                    artifact.type,
                    core.model_dump_json(),
                    json.dumps(artifact.chart_spec) if artifact.chart_spec is not None else None,
                    artifact.explanation,
                ),
            )

    def update_artifact_annotations(
        self,
        artifact_id: str,
        *,
        chart_spec: dict | None = None,
        explanation: str | None = None,
    ) -> bool:
        """Set chart spec and/or explanation; the computed artifact JSON is never rewritten."""
        assignments: list[str] = []
        params: list[object] = []
        if chart_spec is not None:
            assignments.append("chart_spec_json = ?")
            params.append(json.dumps(chart_spec))
        if explanation is not None:
            assignments.append("explanation = ?")
            params.append(explanation)
        if not assignments:
            return False
        with self._conn:
            cursor = self._conn.execute(
                f"UPDATE artifacts SET {', '.join(assignments)} WHERE artifact_id = ?;",
                (*params, artifact_id),
            )
        return cursor.rowcount > 0

    def get_artifact(self, artifact_id: str) -> Artifact | None:
        cursor = self._conn.execute(
            "SELECT artifact_json, chart_spec_json, explanation FROM artifacts WHERE artifact_id = ? LIMIT 1;",
            (artifact_id,),
        )
        row = cursor.fetchone()
        return None if row is None else self._to_artifact(row)

    def list_artifacts(self, session_id: str) -> list[Artifact]:
        cursor = self._conn.execute(
            "SELECT artifact_json, chart_spec_json, explanation FROM artifacts "
            "WHERE session_id = ? ORDER BY created_at ASC, rowid ASC;",
            (session_id,),
        )
        return [self._to_artifact(r) for r in cursor.fetchall()]

    @staticmethod
    def _to_artifact(row: tuple) -> Artifact:
        artifact = _ARTIFACT_ADAPTER.validate_json(row[0])
        update: dict[str, object] = {}
        if row[1] is not None:
            update["chart_spec"] = json.loads(row[1])
        if row[2] is not None:
            update["explanation"] = row[2]
        return artifact.model_copy(update=update) if update else artifact
