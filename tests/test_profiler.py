"""Tests for loading and profiling datasets."""
from __future__ import annotations

import pandas as pd
import pytest

from dataset_analyst.analytics.errors import (
    DatasetLoadError,
    DuplicateColumnError,
    EmptyDatasetError,
    NoColumnsError,
)
from dataset_analyst.analytics.profiler import infer_semantic_type, profile_dataset
from dataset_analyst.analytics.values import normalize_cell, parse_date, parse_number
from dataset_analyst.loader import load_dataset, sanitize_filename


def _column(profile, name):
    col = profile.column(name)
    assert col is not None, f"missing column {name}"
    return col


# ============================================================================
# Cell parsing
# ============================================================================

class TestCellParsing:
    def test_normalize_cell_trims_and_nulls(self):
        assert normalize_cell("  North ") == "North"
        assert normalize_cell("   ") is None
        assert normalize_cell(float("nan")) is None
        assert normalize_cell(None) is None

    def test_parse_number_strips_thousands_separator(self):
        assert parse_number("1,000") == 1000.0
        assert parse_number("-2.5") == -2.5
        assert parse_number("abc") is None
        assert parse_number("inf") is None

    def test_parse_number_rejects_underscore_grouping(self):
        assert parse_number("1_000") is None
        assert parse_number("2_500.5") is None

    def test_parse_date_formats(self):
        assert parse_date("2024-03-20").isoformat() == "2024-03-20"
        assert parse_date("2024/03/20").isoformat() == "2024-03-20"
        assert parse_date("03/20/2024").isoformat() == "2024-03-20"
        assert parse_date("2024-03-20T10:00:00").isoformat() == "2024-03-20"
        assert parse_date("2024-13-45") is None
        assert parse_date("yesterday") is None


# ============================================================================
# Type inference
# ============================================================================

class TestInferSemanticType:
    def test_dates(self):
        assert infer_semantic_type(["2024-01-01", "2024-02-15", "2024-03-20"]) == "date"

    def test_boolean_tokens(self):
        assert infer_semantic_type(["true", "false", "1"]) == "boolean"
        assert infer_semantic_type(["Yes", "NO"]) == "boolean"

    def test_numbers_with_separators(self):
        assert infer_semantic_type(["1,000", "2,500"]) == "number"

    def test_boolean_wins_over_number(self):
        assert infer_semantic_type(["0", "1", "1"]) == "boolean"

    def test_mostly_numeric_is_number(self):
        values = [str(i) for i in range(9)] + ["n/a"]
        assert infer_semantic_type(values) == "number"

    def test_mixed_is_string(self):
        assert infer_semantic_type(["12", "abc", "def", "7"]) == "string"

    def test_all_null_is_string(self):
        assert infer_semantic_type([]) == "string"


# ============================================================================
# Profiling
# ============================================================================

class TestProfileDataset:
    def test_number_column_stats(self):
        rows = [{"amount": "1,000"}, {"amount": "2,500"}]
        col = _column(profile_dataset(rows, ["amount"], "v1"), "amount")
        assert col.semantic_type == "number"
        assert col.min == 1000.0
        assert col.max == 2500.0
        assert col.mean == 1750.0
        assert col.distinct_count == 2

    def test_null_ratio(self):
        rows = [{"name": "John"}, {"name": ""}, {"name": "Bob"}]
        col = _column(profile_dataset(rows, ["name"], "v1"), "name")
        assert col.null_count == 1
        assert col.null_ratio == pytest.approx(0.3333, abs=1e-4)
        assert col.semantic_type == "string"

    def test_missing_key_counts_as_null(self):
        rows = [{"a": "1", "b": "x"}, {"a": "2"}]
        col = _column(profile_dataset(rows, ["a", "b"], "v1"), "b")
        assert col.null_count == 1
        assert col.null_ratio == 0.5

    def test_string_distinct_is_case_insensitive(self):
        rows = [{"region": "North"}, {"region": "north"}, {"region": "South"}]
        col = _column(profile_dataset(rows, ["region"], "v1"), "region")
        assert col.distinct_count == 2
        assert col.min is None and col.mean is None

    def test_top_values_for_categoricals(self):
        rows = [{"region": "South"}, {"region": "north"}, {"region": "North"}, {"region": "East"}]
        col = _column(profile_dataset(rows, ["region"], "v1"), "region")
        assert col.top_values == ["north", "East", "South"]

    def test_numbers_keep_no_top_values(self):
        col = _column(profile_dataset([{"amount": "1"}, {"amount": "2"}], ["amount"], "v1"), "amount")
        assert col.top_values == []

    def test_deterministic(self):
        rows = [{"a": "1", "b": "2024-01-01"}, {"a": "3", "b": "2024-02-01"}]
        first = profile_dataset(rows, ["a", "b"], "v1")
        second = profile_dataset(rows, ["a", "b"], "v1")
        assert first == second
        assert first.model_dump() == second.model_dump()

    def test_column_order_follows_headers(self):
        rows = [{"b": "1", "a": "2"}]
        profile = profile_dataset(rows, ["b", "a"], "v1")
        assert [c.name for c in profile.columns] == ["b", "a"]
        assert profile.row_count == 1
        assert profile.column_count == 2

    def test_empty_rows_raise(self):
        with pytest.raises(EmptyDatasetError) as exc:
            profile_dataset([], ["a"], "v1")
        assert exc.value.code == "EMPTY_DATASET"
        assert exc.value.stage == "profiling"

    def test_no_columns_raise(self):
        with pytest.raises(NoColumnsError):
            profile_dataset([{}], [], "v1")

    def test_duplicate_columns_raise(self):
        with pytest.raises(DuplicateColumnError) as exc:
            profile_dataset([{"a": "1"}], ["a", "a"], "v1")
        assert "a" in exc.value.message


# ============================================================================
# Loading
# ============================================================================

class TestLoadDataset:
    def test_csv_rows_are_trimmed_strings(self, write_csv):
        path = write_csv("name , score\n Ann , 10\n,\nBob,\n")
        dataset = load_dataset(path)
        assert dataset.headers == ["name", "score"]
        assert dataset.rows == [{"name": "Ann", "score": "10"}, {"name": "Bob", "score": None}]
        assert dataset.row_count == 2

    def test_profile_of_sales_file(self, sales_profile):
        types = {c.name: c.semantic_type for c in sales_profile.columns}
        assert types == {
            "order_id": "number",
            "region": "string",
            "revenue": "number",
            "quantity": "number",
            "signup_date": "date",
            "churned": "boolean",
        }
        assert sales_profile.row_count == 12

    def test_excel_file(self, tmp_path):
        path = tmp_path / "book.xlsx"
        pd.DataFrame({"city": ["Oslo", "Rome"], "visits": [3, 5]}).to_excel(path, index=False)
        dataset = load_dataset(path)
        assert dataset.headers == ["city", "visits"]
        assert [r["city"] for r in dataset.rows] == ["Oslo", "Rome"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetLoadError) as exc:
            load_dataset(tmp_path / "nope.csv")
        assert exc.value.code == "FILE_NOT_FOUND"

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("a,b\n1,2\n")
        with pytest.raises(DatasetLoadError) as exc:
            load_dataset(path)
        assert exc.value.code == "UNSUPPORTED_FORMAT"

    def test_empty_file(self, write_csv):
        with pytest.raises(DatasetLoadError) as exc:
            load_dataset(write_csv(""))
        assert exc.value.code == "EMPTY_FILE"

    def test_sanitize_filename(self):
        assert sanitize_filename("../../etc/pass*wd.csv") == "passwd.csv"
