from __future__ import annotations
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional
from .utils import load_json, rules_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSettings:
    """
    Thresholds of the import heuristics. The defaults are the empirically tuned
    values; changing any of them changes which columns/classes get picked, so
    override them in data/rules.json ("import" section) rather than in code.
    """
    # matrix / header
    merge_fill_rows: int = 30
    header_scan_rows: int = 18
    header_keyword_bonus: int = 12
    title_min_length: int = 6
    header_min_cells: int = 3
    min_block_width: int = 3

    # row samples
    name_sample_rows: int = 450
    total_sample_rows: int = 450
    block_sample_rows: int = 500
    class_presence_rows: int = 400
    class_sample_rows: int = 300

    # class column usability
    class_min_named_rows: int = 10
    class_empty_ratio: float = 0.1

    # total column
    total_min_score: float = 10.0
    score_max: float = 1200.0
    id_like_min: float = 100000.0
    tiny_total_max: float = 20.0
    tiny_total_ratio: float = 0.7
    tiny_total_min_rows: int = 10
    tiny_total_sample_rows: int = 300

    # cross-sheet class inference
    inference_names: int = 6
    inference_min_names: int = 3
    inference_assign_ratio: float = 0.7
    school_wide_ratio: float = 0.85
    school_wide_min_rows: int = 150

    def with_overrides(self, overrides: Dict[str, Any]) -> "ImportSettings":
        known = {f.name: f for f in fields(self)}
        patch = {}
        for k, v in (overrides or {}).items():
            f = known.get(k)
            if f is None:
                logger.debug("ignoring unknown import setting %r", k)
                continue
            # bool is an int subclass; never accept it for a numeric threshold
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"import setting {k!r} must be a number, got {v!r}")
            patch[k] = int(v) if f.type in ("int", int) else float(v)
        return replace(self, **patch) if patch else self


DEFAULT_SETTINGS = ImportSettings()


def load_settings(path: Optional[Path] = None) -> ImportSettings:
    rules = load_json(path or rules_path(), {})
    section = rules.get("import", {}) if isinstance(rules, dict) else {}
    return DEFAULT_SETTINGS.with_overrides(section)
