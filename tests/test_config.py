"""Tests for settings overrides and threshold loading."""
from __future__ import annotations

import os
import time

from dataset_analyst.config import AnalysisThresholds, get_settings, load_thresholds, reset_settings, update_settings


class TestSettings:
    def test_runtime_overrides(self):
        before = get_settings()
        try:
            s = update_settings({"intent_confidence_threshold": "0.7", "drill_down_min_group_size": "9",
                                 "model_name": None})
            assert s.intent_confidence_threshold == 0.7
            assert s.drill_down_min_group_size == 9
            assert get_settings().drill_down_min_group_size == 9
        finally:
            reset_settings()
        assert get_settings() == before


class TestLoadThresholds:
    def test_packaged_defaults(self):
        assert load_thresholds() == AnalysisThresholds()

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_thresholds(tmp_path / "absent.yaml") == AnalysisThresholds()

    def test_yaml_overrides_and_reload(self, tmp_path):
        path = tmp_path / "thresholds.yaml"
        path.write_text("max_key_differences: 3\n", encoding="utf-8")
        assert load_thresholds(path).max_key_differences == 3

        path.write_text("max_key_differences: 4\nhistogram_buckets: 5\n", encoding="utf-8")
        later = time.time() + 10
        os.utime(path, (later, later))
        reloaded = load_thresholds(path)
        assert reloaded.max_key_differences == 4
        assert reloaded.histogram_buckets == 5
        assert reloaded.min_non_null_ratio == 0.6
