from __future__ import annotations
import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple
from .models import SCHOOL_WIDE, UNKNOWN_CLASS, ClassIndex, ExamRecord, ExamScope, Trace
from .settings import DEFAULT_SETTINGS, ImportSettings

logger = logging.getLogger(__name__)

_OVERRIDE_RE = re.compile(r"^\d{1,3}$")


def has_usable_class_data(record: ExamRecord, settings: ImportSettings = DEFAULT_SETTINGS) -> bool:
    """A class column that actually carries a value somewhere in the sampled rows."""
    col = record.class_col
    if not col:
        return False
    return any(not r[col].is_empty for r in record.rows[: settings.class_sample_rows])


def build_class_index(records: Sequence[ExamRecord], settings: ImportSettings = DEFAULT_SETTINGS) -> ClassIndex:
    """
    name -> classes seen for that name, from every sheet with a usable class column.
    Built once per batch after all sheets are parsed; never updated afterwards.
    """
    name_to_classes: Dict[str, Set[str]] = {}
    class_set: Set[str] = set()

    for rec in records:
        if not rec.name_col or not has_usable_class_data(rec, settings):
            continue
        for r in rec.rows:
            name = r[rec.name_col].text
            cls = r[rec.class_col].text
            if not name or not cls:
                continue
            class_set.add(cls)
            name_to_classes.setdefault(name, set()).add(cls)

    return ClassIndex(
        class_set=tuple(sorted(class_set)),
        # sorted tuples keep the vote order independent of hash seeds
        name_to_classes={n: tuple(sorted(c)) for n, c in name_to_classes.items()},
    )


def sample_names(record: ExamRecord, limit: int) -> List[str]:
    names: List[str] = []
    if not record.name_col:
        return names
    for r in record.rows:
        n = r[record.name_col].text
        if not n or n in names:
            continue
        names.append(n)
        if len(names) >= limit:
            break
    return names


def vote_classes(names: Sequence[str], index: ClassIndex) -> Tuple[Dict[str, int], int]:
    """(votes per class, number of names that had at least one known class)"""
    votes: Dict[str, int] = {}
    hit = 0
    for n in names:
        classes = index.classes_for(n)
        if not classes:
            continue
        hit += 1
        for c in classes:
            votes[c] = votes.get(c, 0) + 1
    return votes, hit


def infer_sheet_class(
    record: ExamRecord,
    index: ClassIndex,
    settings: ImportSettings = DEFAULT_SETTINGS,
    trace: Optional[Trace] = None,
) -> str:
    """
    Majority vote over the first few names of a sheet without class data.

    Big rosters whose votes scatter are whole-grade sheets (全校), not failed
    inferences; small sheets need a clear majority or stay 未知班级.
    """
    if has_usable_class_data(record, settings):
        return record.inferred_class

    names = sample_names(record, settings.inference_names)
    if len(names) < settings.inference_min_names:
        return UNKNOWN_CLASS

    votes, hit = vote_classes(names, index)
    if hit < settings.inference_min_names or not votes:
        return UNKNOWN_CLASS

    best_class = ""
    best_votes = -1
    for c, v in votes.items():
        if v > best_votes:
            best_votes = v
            best_class = c

    share = best_votes / hit
    if len(record.rows) >= settings.school_wide_min_rows and share < settings.school_wide_ratio:
        result = SCHOOL_WIDE
    elif share >= settings.inference_assign_ratio:
        result = best_class
    else:
        result = UNKNOWN_CLASS

    if trace:
        trace("class_inference", {
            "exam_id": record.id,
            "names": list(names),
            "votes": dict(votes),
            "hit": hit,
            "ratio": share,
            "result": result,
        })
    return result


def effective_class(record: ExamRecord, settings: ImportSettings = DEFAULT_SETTINGS) -> str:
    """
    override > class column (1 distinct value -> it, 2+ -> 全校, none -> 未知班级)
    > inferred class > 未知班级
    """
    override = (record.override_class or "").strip()
    if override:
        return override

    if record.class_col:
        seen: Set[str] = set()
        for r in record.rows[: settings.class_sample_rows]:
            v = r[record.class_col].text
            if not v:
                continue
            seen.add(v)
            if len(seen) >= 2:
                return SCHOOL_WIDE
        if len(seen) == 1:
            return next(iter(seen))
        return UNKNOWN_CLASS

    return record.inferred_class or UNKNOWN_CLASS


def scope_for(record: ExamRecord, settings: ImportSettings = DEFAULT_SETTINGS) -> ExamScope:
    cls = effective_class(record, settings)
    if cls == SCHOOL_WIDE:
        return ExamScope.SCHOOL
    if cls == UNKNOWN_CLASS:
        return ExamScope.AUTO
    return ExamScope.CLASS


def set_override_class(record: ExamRecord, value: Optional[str], settings: ImportSettings = DEFAULT_SETTINGS) -> None:
    """
    The one post-import mutation. Accepts a 1-3 digit class number, 未知班级,
    or empty to fall back to the column / inferred class. record.scope follows.
    """
    v = (value or "").strip()
    if v and v != UNKNOWN_CLASS and not _OVERRIDE_RE.match(v):
        raise ValueError(f"班级建议填写数字班号（如 3），或留空使用自动推断：{value!r}")
    record.override_class = v
    record.scope = scope_for(record, settings)
    logger.info("override class for %s: %r", record.id, v)
