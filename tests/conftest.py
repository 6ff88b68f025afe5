from __future__ import annotations

from pathlib import Path

import pytest

from dataset_analyst.analytics.profiler import profile_parsed_dataset
from dataset_analyst.config import AnalysisThresholds, get_settings
from dataset_analyst.loader import load_dataset
from dataset_analyst.repositories import AnalysisRepository, open_connection
from dataset_analyst.services import AnalystService


# ============================================================================
# Datasets
# ============================================================================

# 12 orders. revenue: avg 300.0, sum 3600.0; quantity sum 38.
# By region: North 5 rows (avg 230.0), South 4 (250.0), East 3 (483.33).
# churned=yes on orders 1, 4, 7, 10.
SALES_CSV = """order_id,region,revenue,quantity,signup_date,churned
1,North,100,1,2024-01-05,yes
2,North,200,2,2024-01-20,no
3,South,300,3,2024-02-03,no
4,South,400,4,2024-02-14,yes
5,East,500,5,2024-03-01,no
6,North,150,1,2024-03-15,no
7,South,250,2,2024-04-02,yes
8,East,350,3,2024-04-20,no
9,North,450,4,2024-05-05,no
10,South,50,5,2024-05-25,yes
11,East,600,6,2024-06-10,no
12,North,250,2,2024-06-30,no
"""


@pytest.fixture
def write_csv(tmp_path: Path):
    """Write CSV text to a file under ``tmp_path`` and return its path as a string."""
    def _write(text: str, name: str = "data.csv") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def sales_path(write_csv) -> str:
    return write_csv(SALES_CSV, "sales.csv")


@pytest.fixture
def sales_profile(sales_path):
    return profile_parsed_dataset(load_dataset(sales_path), "v-sales")


@pytest.fixture
def thresholds() -> AnalysisThresholds:
    return AnalysisThresholds()


# ============================================================================
# Store + service
# ============================================================================

@pytest.fixture
def conn():
    connection = open_connection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def repo(conn) -> AnalysisRepository:
    return AnalysisRepository(conn)


@pytest.fixture
def service(repo, thresholds) -> AnalystService:
    return AnalystService(get_settings(), repo, thresholds=thresholds)
