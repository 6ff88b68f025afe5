from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _getenv_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    db_path: str
    upload_dir: str
    intent_confidence_threshold: float
    drill_down_min_group_size: int
    analysis_thresholds_path: str | None
    llm_base_url: str
    model_name: str
    request_timeout_s: int
    enable_llm_explanations: bool


settings = Settings(
    db_path=os.getenv("DB_PATH", "analyst.db"),
    upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
    intent_confidence_threshold=_getenv_float("INTENT_CONFIDENCE_THRESHOLD", 0.5),
    drill_down_min_group_size=_getenv_int("DRILL_DOWN_MIN_GROUP_SIZE", 5),
    analysis_thresholds_path=os.getenv("ANALYSIS_THRESHOLDS_PATH"),
    llm_base_url=os.getenv("LLM_BASE_URL", "http://localhost:1234/v1"),
    model_name=os.getenv("MODEL_NAME", "local-model"),
    request_timeout_s=_getenv_int("REQUEST_TIMEOUT_S", 10),
    enable_llm_explanations=_getenv_bool("ENABLE_LLM_EXPLANATIONS", False),
)

_RUNTIME_OVERRIDES: dict[str, Any] = {}

_INT_KEYS = {"drill_down_min_group_size", "request_timeout_s"}
_FLOAT_KEYS = {"intent_confidence_threshold"}


def get_settings() -> Settings:
    if not _RUNTIME_OVERRIDES:
        return settings
    base = settings
    return Settings(
        db_path=_RUNTIME_OVERRIDES.get("db_path", base.db_path),
        upload_dir=_RUNTIME_OVERRIDES.get("upload_dir", base.upload_dir),
        intent_confidence_threshold=_RUNTIME_OVERRIDES.get(
            "intent_confidence_threshold", base.intent_confidence_threshold
        ),
        drill_down_min_group_size=_RUNTIME_OVERRIDES.get(
            "drill_down_min_group_size", base.drill_down_min_group_size
        ),
        analysis_thresholds_path=_RUNTIME_OVERRIDES.get(
            "analysis_thresholds_path", base.analysis_thresholds_path
        ),
        llm_base_url=_RUNTIME_OVERRIDES.get("llm_base_url", base.llm_base_url),
        model_name=_RUNTIME_OVERRIDES.get("model_name", base.model_name),
        request_timeout_s=_RUNTIME_OVERRIDES.get(
            "request_timeout_s", base.request_timeout_s
        ),
        enable_llm_explanations=_RUNTIME_OVERRIDES.get(
            "enable_llm_explanations", base.enable_llm_explanations
        ),
    )


def update_settings(overrides: dict[str, Any]) -> Settings:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in _INT_KEYS:
            normalized[key] = int(value)
        elif key in _FLOAT_KEYS:
            normalized[key] = float(value)
        elif key == "enable_llm_explanations":
            normalized[key] = value if isinstance(value, bool) else str(value).lower() in {"1", "true", "yes", "on"}
        else:
            normalized[key] = value
    _RUNTIME_OVERRIDES.update(normalized)
    return get_settings()


def reset_settings() -> Settings:
    _RUNTIME_OVERRIDES.clear()
    return get_settings()


# ============================================================================
# Analysis thresholds
# ============================================================================

class AnalysisThresholds(BaseModel):
    """Column-selection and sampling constants for baseline, drill-down and quality checks."""
    min_non_null_ratio: float = Field(0.6, ge=0.0, le=1.0)
    high_cardinality_ratio: float = 0.9
    high_cardinality_min_distinct: int = 100
    min_categorical_distinct: int = 2
    max_categorical_distinct: int = 20
    max_categorical_columns: int = 3
    histogram_buckets: int = Field(10, ge=1)
    min_outcome_balance: float = 0.01
    max_key_differences: int = 7
    drill_down_min_group_size: int = 5
    quality_min_rows: int = 50
    quality_null_ratio: float = 0.3
    quality_high_null_ratio: float = 0.5
    quality_outlier_ratio: float = 0.2
    quality_outlier_min_values: int = 10
    quality_sample_rows: int = 10_000
    quality_min_coverage: float = 0.8
    quality_partial_period_ratio: float = 0.5


_THRESHOLDS_CACHE: dict[str, tuple[float, AnalysisThresholds]] = {}


def _default_thresholds_path() -> Path:
    return Path(__file__).parent / "analysis_thresholds.yaml"


def load_thresholds(path: str | Path | None = None, force_reload: bool = False) -> AnalysisThresholds:
    """
    Load analysis thresholds from YAML.

    Falls back to ``ANALYSIS_THRESHOLDS_PATH`` and then the packaged defaults.
    Caches per file and reloads only when the file has been modified.
    """
    config_path = Path(path or get_settings().analysis_thresholds_path or _default_thresholds_path())
    if not config_path.exists():
        return AnalysisThresholds()

    key = str(config_path.resolve())
    current_mtime = config_path.stat().st_mtime
    cached = _THRESHOLDS_CACHE.get(key)
    if not force_reload and cached is not None and cached[0] == current_mtime:
        return cached[1]

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    thresholds = AnalysisThresholds(**raw_config)
    _THRESHOLDS_CACHE[key] = (current_mtime, thresholds)
    return thresholds
