"""
Import of human-made exam score sheets (one sheet per exam):
- reading uploads into cell grids (XLSX/CSV)
- header row / two-row header detection, splitting side-by-side tables
- column roles (student id, name, class, total, subjects, ranks)
- per-sheet diagnostics
- cross-sheet class inference and effective class resolution
- read-only helpers for downstream charts/reports
"""
from .models import (
    SCHOOL_WIDE,
    UNKNOWN_CLASS,
    Cell,
    ClassIndex,
    ExamRecord,
    ExamScope,
    ExamStatus,
    ImportBatch,
    MergeRange,
    MetricId,
    RawSheet,
    SheetSource,
)
from .settings import ImportSettings, load_settings
from .ingest import SheetDecodeError, load_sources_from_uploads, source_from_bytes
from .importer import import_file, import_sheet, import_sources
from .class_index import effective_class, has_usable_class_data, set_override_class
from .validate import exam_status
from .analytics import class_options, duplicate_name_warnings, score_table, student_series

__all__ = [
    "SCHOOL_WIDE",
    "UNKNOWN_CLASS",
    "Cell",
    "ClassIndex",
    "ExamRecord",
    "ExamScope",
    "ExamStatus",
    "ImportBatch",
    "MergeRange",
    "MetricId",
    "RawSheet",
    "SheetSource",
    "ImportSettings",
    "load_settings",
    "SheetDecodeError",
    "load_sources_from_uploads",
    "source_from_bytes",
    "import_file",
    "import_sheet",
    "import_sources",
    "effective_class",
    "has_usable_class_data",
    "set_override_class",
    "exam_status",
    "class_options",
    "duplicate_name_warnings",
    "score_table",
    "student_series",
]
