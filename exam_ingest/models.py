from __future__ import annotations
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

UNKNOWN_CLASS = "未知班级"
SCHOOL_WIDE = "全校"
UNNAMED_HEADER = "未命名"
INSTRUCTIONS_SHEET = "说明"

_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")
# =========================

# Cell: Empty | Numeric | Text
# =========================
class CellKind(Enum):
    EMPTY = "empty"
    NUMERIC = "numeric"
    TEXT = "text"


@dataclass(frozen=True)
class Cell:
    """
    One sheet cell. Closed set of cases:
      - EMPTY   (None, blank or whitespace-only string, NaN)
      - NUMERIC (int/float coming from the workbook)
      - TEXT    (anything else, as a stripped string)
    Conversion never raises.
    """
    kind: CellKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "Cell":
        if isinstance(raw, Cell):
            return raw
        if raw is None:
            return EMPTY
        if isinstance(raw, bool):
            return cls(CellKind.TEXT, str(raw).upper())
        if isinstance(raw, (int, float)):
            if isinstance(raw, float) and not math.isfinite(raw):
                return EMPTY
            return cls(CellKind.NUMERIC, raw)
        s = str(raw).strip()
        if not s:
            return EMPTY
        return cls(CellKind.TEXT, s)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def text(self) -> str:
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.NUMERIC:
            v = self.value
            if isinstance(v, float) and v.is_integer():
                return str(int(v))
            return str(v)
        return self.value

    def number(self) -> Optional[float]:
        # text: drop everything except digits, dot and minus ("95分" -> 95)
        if self.kind is CellKind.NUMERIC:
            return float(self.value)
        if self.kind is CellKind.EMPTY:
            return None
        cleaned = _NON_NUMERIC_RE.sub("", self.value)
        if not cleaned:
            return None
        try:
            n = float(cleaned)
        except ValueError:
            return None
        return n if math.isfinite(n) else None


EMPTY = Cell(CellKind.EMPTY)

Row = Dict[str, Cell]
Matrix = List[List[Cell]]
Trace = Callable[[str, Dict[str, Any]], None]
# =========================

# Closed enumerations
# =========================
class MetricId(Enum):
    TOTAL = "total"
    CHINESE = "chinese"
    MATH = "math"
    ENGLISH = "english"
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    BIOLOGY = "biology"
    POLITICS = "politics"
    HISTORY = "history"
    GEOGRAPHY = "geography"
    CLASS_RANK = "classRank"
    SCHOOL_RANK = "schoolRank"

    @property
    def is_rank(self) -> bool:
        return self in (MetricId.CLASS_RANK, MetricId.SCHOOL_RANK)


class ExamScope(Enum):
    AUTO = "auto"
    CLASS = "class"
    SCHOOL = "school"


class ExamStatus(Enum):
    OK = "ok"
    WARN = "warn"
    FAIL = "fail"
# =========================

# Sheet structure
# =========================
@dataclass(frozen=True)
class MergeRange:
    # 0-based, bounds inclusive
    top: int
    left: int
    bottom: int
    right: int


@dataclass(frozen=True)
class RawSheet:
    grid: List[List[Any]]
    merges: Tuple[MergeRange, ...] = ()


@dataclass(frozen=True)
class SheetSource:
    """
    One uploaded file: its name, sheet names in workbook order and a matrix provider.
    provider(sheet_name) -> RawSheet, or raises SheetDecodeError.
    """
    file_name: str
    sheet_names: Tuple[str, ...]
    provider: Callable[[str], RawSheet]


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    col_index: int


@dataclass(frozen=True)
class BlockMeta:
    start_col: int
    end_col: int
    header_start_row: int
    header_rows_used: int


@dataclass(frozen=True)
class Block:
    block_id: str
    range_label: str
    columns: Tuple[Column, ...]
    rows: List[Row]
    meta: BlockMeta

    def column_keys(self) -> List[str]:
        return [c.key for c in self.columns]
# =========================

# Exam record
# =========================
@dataclass
class ExamRecord:
    """
    Import result for one (file, sheet) pair.
    After import only override_class (and the display exam_name) is changed by callers.
    """
    id: str
    file_name: str
    sheet_name: str
    exam_name: str

    blocks: Tuple[Block, ...]
    block_id: str
    columns: Tuple[Column, ...]
    rows: List[Row]

    id_col: Optional[str] = None
    name_col: Optional[str] = None
    class_col: Optional[str] = None
    total_col: Optional[str] = None
    metric_cols: Dict[MetricId, str] = field(default_factory=dict)

    scope: ExamScope = ExamScope.AUTO
    inferred_class: str = ""
    override_class: str = ""

    fatal_errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def usable(self) -> bool:
        return not self.fatal_errors

    def column(self, key: Optional[str]) -> Optional[Column]:
        if not key:
            return None
        for c in self.columns:
            if c.key == key:
                return c
        return None


def make_exam_id(file_name: str, sheet_name: str) -> str:
    return f"{file_name}::{sheet_name}"


@dataclass(frozen=True)
class ClassIndex:
    class_set: Tuple[str, ...]
    name_to_classes: Dict[str, Tuple[str, ...]]

    def classes_for(self, name: str) -> Tuple[str, ...]:
        return self.name_to_classes.get(name, ())


@dataclass
class ImportBatch:
    records: List[ExamRecord] = field(default_factory=list)
    # file name -> reason the file could not be decoded
    failed_files: Dict[str, str] = field(default_factory=dict)
    # exam id -> reason one sheet could not be decoded (the rest of its file was imported)
    failed_sheets: Dict[str, str] = field(default_factory=dict)
