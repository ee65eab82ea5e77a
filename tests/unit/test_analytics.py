from __future__ import annotations
import math
from conftest import NAMES, class_sheet, roster_sheet
from exam_ingest.analytics import (
    class_options,
    default_class,
    duplicate_name_warnings,
    exam_statuses,
    filter_records,
    metric_column,
    overall_status,
    score_table,
    student_series,
)
from exam_ingest.importer import import_sources
from exam_ingest.models import SCHOOL_WIDE, UNKNOWN_CLASS, ExamStatus, MetricId


def _records(make_source, sheets):
    return import_sources([make_source("f.xlsx", sheets)]).records


def test_duplicate_names_inside_a_class_sheet(make_source):
    grid = [["姓名", "班级", "总分"], ["张伟", 3, 300], ["张伟", 3, 280], ["李芳", 3, 290]]
    records = _records(make_source, {"月考": grid})
    msgs, counts = duplicate_name_warnings(records)
    assert counts == {"f.xlsx::月考": 1}
    assert "班级「3」内重名：张伟。" in msgs[0]
    assert exam_statuses(records) == {"f.xlsx::月考": ExamStatus.WARN}
    assert overall_status(records) is ExamStatus.WARN


def test_student_id_makes_repeated_names_harmless(make_source):
    grid = [["学号", "姓名", "班级", "总分"], [1, "张伟", 3, 300], [2, "张伟", 3, 280]]
    assert duplicate_name_warnings(_records(make_source, {"s": grid})) == ([], {})


def test_school_wide_sheets_are_not_checked_for_duplicates(make_source):
    grid = [["姓名", "班级", "总分"], ["张伟", 1, 300], ["张伟", 2, 280]]
    assert duplicate_name_warnings(_records(make_source, {"s": grid})) == ([], {})


def test_duplicate_list_is_truncated(make_source):
    grid = [["姓名", "语文", "总分"]] + [[n, 90, 300] for n in NAMES[:8] for _ in range(2)]
    msgs, counts = duplicate_name_warnings(_records(make_source, {"s": grid}))
    assert counts == {"f.xlsx::s": 8}
    assert "、".join(NAMES[:6]) + "…" in msgs[0]
    assert NAMES[6] not in msgs[0]


def test_clean_batch_is_ok(make_source):
    records = _records(make_source, {"s": class_sheet(NAMES[:5], 1)})
    assert overall_status(records) is ExamStatus.OK


def test_class_options_order(make_source):
    records = _records(make_source, {
        "a": class_sheet(NAMES[:3], 10),
        "b": class_sheet(NAMES[3:6], 2),
        "c": class_sheet(NAMES[6:9], 1),
        "d": roster_sheet(NAMES[50:53]),
    })
    assert class_options(records) == [SCHOOL_WIDE, "1", "2", "10", UNKNOWN_CLASS]


def test_default_class_is_the_most_common(make_source):
    records = _records(make_source, {
        "a": class_sheet(NAMES[:3], 2),
        "b": class_sheet(NAMES[:3], 2),
        "c": class_sheet(NAMES[3:6], 1),
    })
    assert default_class(records) == "2"
    assert default_class([]) == SCHOOL_WIDE


def test_metric_column_falls_back_to_total(make_source):
    (rec,) = _records(make_source, {"s": class_sheet(NAMES[:3], 1)})
    assert metric_column(rec, MetricId.TOTAL) == rec.total_col
    assert rec.column(metric_column(rec, MetricId.MATH)).label == "数学（E列）"
    assert metric_column(rec, MetricId.PHYSICS) is None


def test_score_table_aligns_students_across_exams(make_source):
    records = _records(make_source, {"a": class_sheet(NAMES[:3], 1), "b": roster_sheet(NAMES[1:4])})
    df = score_table(records)
    assert list(df.columns) == ["f.xlsx::a", "f.xlsx::b"]
    assert list(df.index) == sorted(NAMES[:4])
    assert df.loc[NAMES[0], "f.xlsx::a"] == 300
    assert math.isnan(df.loc[NAMES[0], "f.xlsx::b"])
    assert df.loc[NAMES[3], "f.xlsx::b"] == 402

    chinese = score_table(records, MetricId.CHINESE)
    assert chinese.loc[NAMES[2], "f.xlsx::a"] == 92


def test_score_table_class_filter(make_source):
    records = _records(make_source, {
        "a": class_sheet(NAMES[:3], 1) + class_sheet(NAMES[3:6], 2)[1:],
        "b": roster_sheet(NAMES[:3]),
    })
    assert records[1].inferred_class == "1"
    df = score_table(records, class_filter="2")
    assert list(df.index) == sorted(NAMES[3:6])
    assert df["f.xlsx::b"].isna().all()


def test_filter_records_by_sheet_class(make_source):
    records = _records(make_source, {
        "a": class_sheet(NAMES[:3], 1),
        "b": roster_sheet(NAMES[:3]),
        "c": roster_sheet(NAMES[60:63]),
    })
    assert [r.sheet_name for r in filter_records(records, "2")] == ["a"]
    assert [r.sheet_name for r in filter_records(records, "1")] == ["a", "b"]
    assert [r.sheet_name for r in filter_records(records, "2", include_unknown=True)] == ["a", "c"]
    assert len(filter_records(records)) == 3


def test_student_series(make_source):
    records = _records(make_source, {"a": class_sheet(NAMES[:3], 1), "b": roster_sheet(NAMES[1:4])})
    s = student_series(records, NAMES[1])
    assert s.name == NAMES[1]
    assert list(s) == [301.0, 400.0]

    missing = student_series(records, "无名氏")
    assert list(missing.index) == ["f.xlsx::a", "f.xlsx::b"]
    assert missing.isna().all()


def test_rows_without_class_count_as_unknown(make_source):
    grid = class_sheet(NAMES[:3], 1) + class_sheet(NAMES[3:5], None)[1:]
    (rec,) = _records(make_source, {"s": grid})
    assert rec.class_col is not None
    df = score_table([rec], class_filter=UNKNOWN_CLASS)
    assert list(df.index) == sorted(NAMES[3:5])
    s = student_series([rec], NAMES[4], class_filter=UNKNOWN_CLASS)
    assert list(s) == [301.0]
