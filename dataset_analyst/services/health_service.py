"""
Health check service.
"""
from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass
from typing import Literal

from ..integrations import LLMClient

HealthStatusType = Literal["ok", "error", "unavailable", "disabled"]


@dataclass(frozen=True)
class ServiceHealth:
    status: HealthStatusType
    message: str | None = None
    latency_ms: int | None = None


@dataclass(frozen=True)
class HealthReport:
    backend: ServiceHealth
    database: ServiceHealth
    llm: ServiceHealth


class HealthService:
    """Service for checking health of the store and the explanation model."""

    def __init__(self, sqlite_connection: sqlite3.Connection | None, llm_client: LLMClient | None = None) -> None:
        self._conn = sqlite_connection
        self._llm = llm_client

    async def check_all(self) -> HealthReport:
        db, lm = await asyncio.gather(self._check_db(), self._check_llm())
        return HealthReport(ServiceHealth("ok", "Backend is running"), db, lm)

    async def _check_db(self) -> ServiceHealth:
        if self._conn is None:
            return ServiceHealth("unavailable", "Database connection not initialised")
        try:
            await asyncio.to_thread(lambda: self._conn.execute("SELECT 1").fetchone())
        except sqlite3.Error as exc:
            return ServiceHealth("error", str(exc))
        return ServiceHealth("ok", "Database is reachable")

    async def _check_llm(self) -> ServiceHealth:
        # Explanations fall back to deterministic text, so a missing LLM is not an error.
        if self._llm is None:
            return ServiceHealth("disabled", "LLM explanations are disabled")
        ok, msg, lat = await self._llm.check_health()
        if ok:
            return ServiceHealth("ok", msg, lat)
        return ServiceHealth("unavailable" if "Cannot connect" in msg else "error", msg)
