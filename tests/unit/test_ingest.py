from __future__ import annotations
from io import BytesIO
import pytest
from openpyxl import Workbook
from conftest import NAMES
from exam_ingest.importer import import_file, import_sources
from exam_ingest.ingest import SheetDecodeError, load_sources_from_uploads, read_csv_grid, source_from_bytes
from exam_ingest.models import MergeRange


class Upload:
    def __init__(self, name, data):
        self.name = name
        self._data = data

    def getvalue(self):
        return self._data


def _workbook_bytes() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "说明"
    ws["A1"] = "本文件由教务处导出"

    exam = wb.create_sheet("期中")
    exam["A1"] = "2024学年第一学期期中考试成绩"
    exam.merge_cells("A1:E1")
    exam.append([])
    exam.append(["学号", "姓名", "班级", "语文", "总分"])
    for i, n in enumerate(NAMES[:12]):
        exam.append([1001 + i, n, 3, 90 + i, 300 + i])

    wb.create_sheet("空")
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_workbook_sheets_and_merges():
    src = source_from_bytes("exam.xlsx", _workbook_bytes())
    assert src.sheet_names == ("说明", "期中", "空")
    raw = src.provider("期中")
    assert MergeRange(0, 0, 0, 4) in raw.merges
    assert raw.grid[0][0] == "2024学年第一学期期中考试成绩"
    assert src.provider("空").grid == []
    with pytest.raises(SheetDecodeError):
        src.provider("不存在")


def test_workbook_import_finds_table_below_title():
    (rec,) = import_file(source_from_bytes("exam.xlsx", _workbook_bytes()))
    assert rec.id == "exam.xlsx::期中"
    assert rec.blocks[0].meta.header_start_row == 2
    assert len(rec.rows) == 12
    assert rec.column(rec.name_col).label == "姓名（B列）"
    assert rec.rows[0][rec.class_col].text == "3"
    assert rec.rows[0][rec.total_col].number() == 300


def test_corrupt_workbook_raises_decode_error():
    with pytest.raises(SheetDecodeError) as e:
        source_from_bytes("bad.xlsx", b"definitely not a zip file")
    assert e.value.file_name == "bad.xlsx"


def test_csv_with_title_row_and_bom():
    text = "期中考试成绩\n姓名,语文,总分\n张伟,90,300\n李芳,85,280\n"
    grid = read_csv_grid(text.encode("utf-8-sig"), "a.csv")
    assert len(grid) == 4
    assert grid[1] == ["姓名", "语文", "总分"]
    assert grid[2] == ["张伟", "90", "300"]


def test_gb18030_csv_with_semicolons_imports():
    lines = ["姓名;班级;语文;总分"] + [f"{n};2;{90 + i};{300 + i}" for i, n in enumerate(NAMES[:5])]
    data = ("\n".join(lines) + "\n").encode("gb18030")
    src = source_from_bytes("成绩.CSV", data)
    assert src.sheet_names == ("CSV",)
    (rec,) = import_file(src)
    assert rec.id == "成绩.CSV::CSV"
    assert [r[rec.name_col].text for r in rec.rows] == NAMES[:5]
    assert rec.rows[4][rec.total_col].number() == 304.0


def test_empty_csv_has_no_sheet_content():
    assert read_csv_grid(b"  \n", "e.csv") == []
    assert import_file(source_from_bytes("e.csv", b"")) == []


def test_uploads_keep_going_past_a_broken_file():
    uploads = [
        Upload("bad.xlsx", b"garbage"),
        Upload("good.xlsx", _workbook_bytes()),
    ]
    sources, failed = load_sources_from_uploads(uploads)
    assert [s.file_name for s in sources] == ["good.xlsx"]
    assert list(failed) == ["bad.xlsx"]
    batch = import_sources(sources)
    assert [r.id for r in batch.records] == ["good.xlsx::期中"]
