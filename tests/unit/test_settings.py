from __future__ import annotations
import json
import pytest
from exam_ingest.settings import DEFAULT_SETTINGS, ImportSettings, load_settings


def test_shipped_rules_match_defaults():
    assert load_settings() == DEFAULT_SETTINGS


def test_rules_file_overrides_thresholds(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"import": {"inference_assign_ratio": 0.8, "header_scan_rows": 10.0, "no_such": 1}}), encoding="utf-8")
    s = load_settings(path)
    assert s.inference_assign_ratio == 0.8
    assert s.header_scan_rows == 10
    assert isinstance(s.header_scan_rows, int)
    assert s.school_wide_ratio == DEFAULT_SETTINGS.school_wide_ratio


def test_missing_or_broken_rules_fall_back_to_defaults(tmp_path):
    assert load_settings(tmp_path / "absent.json") == DEFAULT_SETTINGS
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_settings(broken) == DEFAULT_SETTINGS


@pytest.mark.parametrize("value", ["0.8", True, None, [1]])
def test_non_numeric_override_is_rejected(value):
    with pytest.raises(ValueError):
        ImportSettings().with_overrides({"school_wide_ratio": value})


def test_no_overrides_returns_same_settings():
    assert DEFAULT_SETTINGS.with_overrides({}) is DEFAULT_SETTINGS
    assert DEFAULT_SETTINGS.with_overrides(None) is DEFAULT_SETTINGS
