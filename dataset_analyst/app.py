"""
FastAPI application for the Dataset Analyst.

Routes delegate business logic to the services layer.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .analytics.errors import AnalyticsError
from .analytics.models import Artifact, BaselineAnalysis, DataQualityReport, DatasetProfile, DistributionArtifact
from .config import get_settings
from .domain import ErrorCode, MAX_UPLOAD_BYTES, NOT_FOUND_CODES, SUPPORTED_UPLOAD_SUFFIXES
from .integrations import LLMClient
from .loader import sanitize_filename
from .repositories import AnalysisRepository, DatasetVersion, open_connection
from .services import AnalysisOutcome, AnalystService, ExplanationService, HealthService

logger = logging.getLogger(__name__)

app = FastAPI(title="Dataset Analyst", version="1.0.0", docs_url="/docs", redoc_url="/redoc", openapi_url="/openapi.json")
app.add_middleware(CORSMiddleware, allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


# ============================================================================
# Pydantic Models
# ============================================================================

class DatasetVersionResponse(BaseModel):
    dataset_version_id: str
    dataset_id: str
    file_name: str
    row_count: int
    created_at: str
    profile: DatasetProfile


class AskRequest(BaseModel):
    dataset_version_id: str
    question: str = Field(..., max_length=2000)


class ArtifactListResponse(BaseModel):
    session_id: str
    artifacts: list[Artifact]
    total: int


class DrillDownRequest(BaseModel):
    dataset_version_id: str
    metric_column: str
    outcome_column: str | None = None
    session_id: str | None = None


class HealthStatus(BaseModel):
    status: str
    message: str | None = None
    latency_ms: int | None = None


class HealthResponse(BaseModel):
    backend: HealthStatus
    database: HealthStatus
    llm: HealthStatus


# ============================================================================
# Service Factories
# ============================================================================

_conn: sqlite3.Connection | None = None


def _connection() -> sqlite3.Connection:
    global _conn
    if _conn is None:
        _conn = open_connection(get_settings().db_path)
    return _conn


def _llm_client() -> LLMClient | None:
    s = get_settings()
    if not s.enable_llm_explanations:
        return None
    return LLMClient(s.llm_base_url, s.model_name, s.request_timeout_s)


def _analyst_service() -> AnalystService:
    s = get_settings()
    llm = _llm_client()
    return AnalystService(s, AnalysisRepository(_connection()), ExplanationService(llm, enabled=llm is not None))


def _health_service() -> HealthService:
    return HealthService(_conn, _llm_client())


def _http_error(exc: AnalyticsError) -> HTTPException:
    status = 404 if exc.code in NOT_FOUND_CODES else 422
    return HTTPException(status, {"code": exc.code, "message": exc.message})


def _version_to_response(v: DatasetVersion) -> DatasetVersionResponse:
    return DatasetVersionResponse(dataset_version_id=v.dataset_version_id, dataset_id=v.dataset_id, file_name=v.file_name,
                                  row_count=v.row_count, created_at=v.created_at, profile=v.profile)


@app.on_event("startup")
async def startup() -> None:
    s = get_settings()
    Path(s.upload_dir).mkdir(parents=True, exist_ok=True)
    _connection()
    logger.info("Dataset Analyst started (db=%s)", s.db_path)


# ============================================================================
# Dataset Routes
# ============================================================================

@app.post("/api/datasets", response_model=DatasetVersionResponse)
async def upload_dataset(file: UploadFile = File(...), dataset_id: str | None = Form(None)) -> DatasetVersionResponse:
    s = get_settings()
    if not file.filename:
        raise HTTPException(400, {"code": ErrorCode.INVALID_FILENAME, "message": "Filename is required"})
    safe_name = sanitize_filename(file.filename)
    if Path(safe_name).suffix.lower() not in SUPPORTED_UPLOAD_SUFFIXES:
        raise HTTPException(400, {"code": ErrorCode.UNSUPPORTED_TYPE, "message": "Unsupported file type. Allowed: .csv, .xlsx, .xls"})
    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, {"code": ErrorCode.FILE_TOO_LARGE, "message": f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB"})

    upload_dir = Path(s.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / f"{uuid.uuid4()}_{safe_name}"
    file_path.write_bytes(content)
    try:
        version = await asyncio.to_thread(_analyst_service().register_dataset, str(file_path), safe_name, dataset_id)
    except AnalyticsError as exc:
        file_path.unlink(missing_ok=True)
        raise _http_error(exc)
    return _version_to_response(version)


@app.get("/api/datasets/{dataset_version_id}/profile", response_model=DatasetProfile)
async def get_profile(dataset_version_id: str) -> DatasetProfile:
    try:
        version = await asyncio.to_thread(_analyst_service().get_version, dataset_version_id)
    except AnalyticsError as exc:
        raise _http_error(exc)
    return version.profile


@app.get("/api/datasets/{dataset_version_id}/baseline-analysis", response_model=BaselineAnalysis)
async def get_baseline_analysis(dataset_version_id: str, refresh: bool = Query(False)) -> BaselineAnalysis:
    try:
        return await asyncio.to_thread(_analyst_service().baseline, dataset_version_id, refresh)
    except AnalyticsError as exc:
        raise _http_error(exc)


@app.get("/api/datasets/{dataset_version_id}/quality-check", response_model=DataQualityReport)
async def get_quality_check(dataset_version_id: str) -> DataQualityReport:
    try:
        return await asyncio.to_thread(_analyst_service().quality_report, dataset_version_id)
    except AnalyticsError as exc:
        raise _http_error(exc)


# ============================================================================
# Session Routes
# ============================================================================

@app.post("/api/sessions/{session_id}/messages", response_model=AnalysisOutcome)
async def ask_question(session_id: str, request: AskRequest) -> AnalysisOutcome:
    question = request.question.strip()
    if not question:
        raise HTTPException(400, {"code": ErrorCode.EMPTY_QUESTION, "message": "Question must not be empty"})
    try:
        return await _analyst_service().ask(session_id, request.dataset_version_id, question)
    except AnalyticsError as exc:
        raise _http_error(exc)


@app.get("/api/sessions/{session_id}/artifacts", response_model=ArtifactListResponse)
async def get_session_artifacts(session_id: str) -> ArtifactListResponse:
    artifacts = await asyncio.to_thread(_analyst_service().list_artifacts, session_id)
    return ArtifactListResponse(session_id=session_id, artifacts=artifacts, total=len(artifacts))


@app.post("/api/drill-down", response_model=DistributionArtifact)
async def post_drill_down(request: DrillDownRequest) -> DistributionArtifact:
    try:
        return await _analyst_service().drill_down(request.dataset_version_id, request.metric_column,
                                                   session_id=request.session_id, outcome_column=request.outcome_column)
    except AnalyticsError as exc:
        raise _http_error(exc)


# ============================================================================
# Health Routes
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    r = await _health_service().check_all()
    return HealthResponse(backend=HealthStatus(status=r.backend.status, message=r.backend.message, latency_ms=r.backend.latency_ms),
                          database=HealthStatus(status=r.database.status, message=r.database.message, latency_ms=r.database.latency_ms),
                          llm=HealthStatus(status=r.llm.status, message=r.llm.message, latency_ms=r.llm.latency_ms))
