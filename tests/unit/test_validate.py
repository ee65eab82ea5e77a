from __future__ import annotations
from conftest import NAMES
from exam_ingest.infer import Classification, classify_columns
from exam_ingest.models import ExamRecord, ExamStatus
from exam_ingest.validate import Diagnostics, batch_status, diagnose, exam_status


def test_duplicate_name_columns_are_fatal(table):
    cols, rows = table(["姓名", "姓名", "总分"], [[n, n, 300] for n in NAMES[:20]])
    diag = diagnose(classify_columns(rows, cols), rows)
    assert len(diag.fatal_errors) == 1
    assert "多个“姓名”列（2列）" in diag.fatal_errors[0]


def test_missing_name_column_is_fatal(table):
    cols, rows = table(["编号", "成绩"], [[1, 90], [2, 80]])
    diag = diagnose(classify_columns(rows, cols), rows)
    assert diag.fatal_errors == ("未识别到“姓名”列（支持“姓名/姓 名/名字”）。",)


def test_dropped_class_column_warns_with_fill(table):
    rows = [[n, 3 if i == 0 else None, 300 + i] for i, n in enumerate(NAMES[:20])]
    cols, rows = table(["姓名", "班级", "总分"], rows)
    diag = diagnose(classify_columns(rows, cols), rows)
    assert diag.fatal_errors == ()
    assert len(diag.warnings) == 1
    assert "非空 5%" in diag.warnings[0]


def test_tiny_totals_look_like_ranks(table):
    rows = [[n, i % 20 + 1] for i, n in enumerate(NAMES[:30])]
    cols, rows = table(["姓名", "总分"], rows)
    diag = diagnose(classify_columns(rows, cols), rows)
    assert any("总分列疑似异常" in w for w in diag.warnings)


def test_few_tiny_totals_are_fine(table):
    rows = [[n, i + 1] for i, n in enumerate(NAMES[:5])]
    cols, rows = table(["姓名", "总分"], rows)
    assert diagnose(classify_columns(rows, cols), rows).warnings == ()


def test_clean_sheet_has_no_findings(table):
    rows = [[1001 + i, n, 3, 300 + i] for i, n in enumerate(NAMES[:20])]
    cols, rows = table(["学号", "姓名", "班级", "总分"], rows)
    diag = diagnose(classify_columns(rows, cols), rows)
    assert diag.fatal_errors == ()
    assert diag.warnings == ()


def _record(**kw):
    base = dict(
        id="f::s", file_name="f", sheet_name="s", exam_name="s",
        blocks=(), block_id="block-1", columns=(), rows=[],
        name_col="n", total_col="t",
    )
    base.update(kw)
    return ExamRecord(**base)


def test_exam_status():
    assert exam_status(_record()) is ExamStatus.OK
    assert exam_status(_record(), duplicate_count=2) is ExamStatus.WARN
    assert exam_status(_record(total_col=None)) is ExamStatus.WARN
    assert exam_status(_record(warnings=("x",))) is ExamStatus.WARN
    assert exam_status(_record(fatal_errors=("x",))) is ExamStatus.FAIL


def test_batch_status_takes_the_worst():
    assert batch_status([]) is ExamStatus.OK
    assert batch_status([ExamStatus.OK, ExamStatus.WARN]) is ExamStatus.WARN
    assert batch_status([ExamStatus.WARN, ExamStatus.FAIL, ExamStatus.OK]) is ExamStatus.FAIL


def test_diagnose_accepts_bare_classification():
    diag = diagnose(Classification(name_col="n"), [])
    assert diag == Diagnostics()
