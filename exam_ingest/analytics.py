from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from .class_index import effective_class, has_usable_class_data
from .models import SCHOOL_WIDE, UNKNOWN_CLASS, ExamRecord, ExamStatus, MetricId
from .settings import DEFAULT_SETTINGS, ImportSettings
from .validate import batch_status, exam_status

# Read-only helpers for the charting/report side. Nothing here mutates a record.


def metric_column(record: ExamRecord, metric: MetricId) -> Optional[str]:
    if metric is MetricId.TOTAL:
        return record.metric_cols.get(MetricId.TOTAL) or record.total_col
    return record.metric_cols.get(metric)


def duplicate_name_warnings(
    records: Sequence[ExamRecord],
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> Tuple[List[str], Dict[str, int]]:
    """
    Repeated names inside one class sheet can't be told apart without a student id.
    Returns (messages, {exam id: number of repeated names}).
    """
    warnings: List[str] = []
    counts: Dict[str, int] = {}

    for ex in records:
        if ex.fatal_errors or not ex.name_col or ex.id_col:
            continue
        sheet_class = effective_class(ex, settings)
        if sheet_class == SCHOOL_WIDE:
            continue

        names = pd.Series([r[ex.name_col].text for r in ex.rows], dtype=object)
        names = names[names != ""]
        # in order of first appearance
        dups = names[names.duplicated(keep=False)].unique().tolist()
        if not dups:
            continue

        counts[ex.id] = len(dups)
        more = "…" if len(dups) > 6 else ""
        warnings.append(
            f"考试「{ex.exam_name}」检测到班级「{sheet_class}」内重名：{'、'.join(dups[:6])}{more}。"
            f"建议：在表中补充学生ID/学号或在姓名中添加区分标识（如“张三-1/张三-2”）。"
        )

    return warnings, counts


def exam_statuses(records: Sequence[ExamRecord], settings: ImportSettings = DEFAULT_SETTINGS) -> Dict[str, ExamStatus]:
    _, dup_counts = duplicate_name_warnings(records, settings)
    return {ex.id: exam_status(ex, dup_counts.get(ex.id, 0)) for ex in records}


def overall_status(records: Sequence[ExamRecord], settings: ImportSettings = DEFAULT_SETTINGS) -> ExamStatus:
    return batch_status(list(exam_statuses(records, settings).values()))


def _class_sort_key(c: str):
    # numeric class numbers first, in numeric order
    try:
        return (0, float(c), "")
    except ValueError:
        return (1, 0.0, c)


def class_options(records: Sequence[ExamRecord], settings: ImportSettings = DEFAULT_SETTINGS) -> List[str]:
    """全校, the known classes, then 未知班级 if some students have no class."""
    seen = set()
    has_unknown = False

    for ex in records:
        if has_usable_class_data(ex, settings):
            if not ex.name_col:
                continue
            for r in ex.rows:
                cls = r[ex.class_col].text
                if cls:
                    seen.add(cls)
                else:
                    has_unknown = True
            continue

        c = effective_class(ex, settings)
        if c in ("", SCHOOL_WIDE, UNKNOWN_CLASS):
            has_unknown = True
        else:
            seen.add(c)

    out = [SCHOOL_WIDE] + sorted(seen, key=_class_sort_key)
    if has_unknown:
        out.append(UNKNOWN_CLASS)
    return out


def default_class(records: Sequence[ExamRecord], settings: ImportSettings = DEFAULT_SETTINGS) -> str:
    counts: Dict[str, int] = {}
    for ex in records:
        c = effective_class(ex, settings)
        if not c or c in (SCHOOL_WIDE, UNKNOWN_CLASS):
            continue
        counts[c] = counts.get(c, 0) + 1

    best, best_v = SCHOOL_WIDE, 0
    for c, v in counts.items():
        if v > best_v:
            best, best_v = c, v
    return best


def filter_records(
    records: Sequence[ExamRecord],
    class_filter: str = SCHOOL_WIDE,
    include_unknown: bool = False,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> List[ExamRecord]:
    if class_filter == SCHOOL_WIDE:
        return list(records)
    out = []
    for ex in records:
        # row-level class data is filtered per row later
        if has_usable_class_data(ex, settings):
            out.append(ex)
            continue
        cls = effective_class(ex, settings)
        if cls == class_filter or (include_unknown and cls == UNKNOWN_CLASS):
            out.append(ex)
    return out


def _sheet_class(ex: ExamRecord) -> str:
    return (ex.override_class or "").strip() or ex.inferred_class or UNKNOWN_CLASS


def score_table(
    records: Sequence[ExamRecord],
    metric: MetricId = MetricId.TOTAL,
    class_filter: str = SCHOOL_WIDE,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> pd.DataFrame:
    """
    Student name x exam id table of metric values (NaN where missing).
    Columns follow the record order; unusable records give an empty column.
    """
    columns: Dict[str, pd.Series] = {}

    for ex in records:
        values: Dict[str, float] = {}
        col = metric_column(ex, metric)
        if not ex.fatal_errors and ex.name_col:
            row_level = has_usable_class_data(ex, settings)
            for r in ex.rows:
                name = r[ex.name_col].text
                if not name:
                    continue

                if class_filter != SCHOOL_WIDE:
                    cls = (r[ex.class_col].text or UNKNOWN_CLASS) if row_level else _sheet_class(ex)
                    if cls != class_filter:
                        continue

                n = r[col].number() if col else None
                if n is None:
                    values.setdefault(name, np.nan)
                else:
                    values[name] = n
        columns[ex.id] = pd.Series(values, dtype=float)

    df = pd.DataFrame(columns, columns=[ex.id for ex in records], dtype=float)
    return df.sort_index()


def student_series(
    records: Sequence[ExamRecord],
    student: str,
    metric: MetricId = MetricId.TOTAL,
    class_filter: str = SCHOOL_WIDE,
    include_unknown: bool = False,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> pd.Series:
    """One student's metric over the (filtered) exams, in batch order."""
    chosen = filter_records(records, class_filter, include_unknown, settings)
    table = score_table(chosen, metric, class_filter, settings)
    if student in table.index:
        s = table.loc[student]
    else:
        s = pd.Series(np.nan, index=table.columns, dtype=float)
    s.name = student
    return s
