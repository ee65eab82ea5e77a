from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple
from .infer import Classification
from .models import ExamRecord, ExamStatus, Row
from .settings import DEFAULT_SETTINGS, ImportSettings


@dataclass(frozen=True)
class Diagnostics:
    fatal_errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


def tiny_total_share(rows: Sequence[Row], total_col: str, settings: ImportSettings = DEFAULT_SETTINGS) -> Tuple[float, int]:
    seen = tiny = 0
    for r in rows[: settings.tiny_total_sample_rows]:
        n = r[total_col].number()
        if n is None:
            continue
        seen += 1
        if 0 <= n <= settings.tiny_total_max:
            tiny += 1
    return (tiny / seen if seen else 0.0), seen


def diagnose(result: Classification, rows: Sequence[Row], settings: ImportSettings = DEFAULT_SETTINGS) -> Diagnostics:
    fatal: List[str] = []
    warnings: List[str] = []

    n_names = len(result.name_header_cols)
    if n_names >= 2:
        fatal.append(f"检测到多个“姓名”列（{n_names}列）。请合并为一列后再导入。")
    elif not result.name_col:
        fatal.append("未识别到“姓名”列（支持“姓名/姓 名/名字”）。")

    if result.class_header_col and not result.class_col:
        pct = int(round((result.class_fill or 0.0) * 100))
        warnings.append(f"检测到“班级”列但几乎全为空（非空 {pct}%），已按“无班级列”处理，将使用自动推断/班级覆盖。")

    if result.total_col:
        share, seen = tiny_total_share(rows, result.total_col, settings)
        if seen >= settings.tiny_total_min_rows and share >= settings.tiny_total_ratio:
            warnings.append("总分列疑似异常（大量值<=20），可能误选为排名列，请检查该sheet表头。")

    return Diagnostics(fatal_errors=tuple(fatal), warnings=tuple(warnings))


def exam_status(record: ExamRecord, duplicate_count: int = 0) -> ExamStatus:
    """
    fail: fatal errors (record kept for visibility only);
    warn: usable with caveats - duplicate names, no total column, or warnings;
    ok otherwise.
    """
    if record.fatal_errors:
        return ExamStatus.FAIL
    if duplicate_count > 0 or not record.total_col or record.warnings:
        return ExamStatus.WARN
    return ExamStatus.OK


def batch_status(statuses: Sequence[ExamStatus]) -> ExamStatus:
    if ExamStatus.FAIL in statuses:
        return ExamStatus.FAIL
    if ExamStatus.WARN in statuses:
        return ExamStatus.WARN
    return ExamStatus.OK
