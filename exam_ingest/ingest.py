from __future__ import annotations
import csv
import logging
import zipfile
from io import BytesIO, StringIO
from typing import Any, Dict, List, Tuple
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from .models import MergeRange, RawSheet, SheetSource

logger = logging.getLogger(__name__)

CSV_SHEET_NAME = "CSV"


class SheetDecodeError(Exception):
    """The file (or one of its sheets) could not be turned into a cell grid."""

    def __init__(self, file_name: str, message: str):
        super().__init__(f"{file_name}: {message}")
        self.file_name = file_name
        self.message = message
# =========================

# Excel: sheet -> raw grid + merged ranges (merges are applied later)
# =========================
def _open_workbook(data: bytes, file_name: str):
    try:
        return load_workbook(BytesIO(data), read_only=False, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise SheetDecodeError(file_name, f"无法读取工作簿（{e}）") from e


def _sheet_to_raw(ws) -> RawSheet:
    grid: List[List[Any]] = [list(row) for row in ws.iter_rows(values_only=True)]
    merges = []
    for r in ws.merged_cells.ranges:
        min_col, min_row, max_col, max_row = r.bounds
        merges.append(MergeRange(top=min_row - 1, left=min_col - 1, bottom=max_row - 1, right=max_col - 1))
    # openpyxl reports an untouched sheet as one empty cell
    if all(v is None for row in grid for v in row):
        grid = []
    return RawSheet(grid=grid, merges=tuple(merges))


def workbook_source(file_name: str, data: bytes) -> SheetSource:
    wb = _open_workbook(data, file_name)
    cache: Dict[str, RawSheet] = {}

    def provider(sheet_name: str) -> RawSheet:
        if sheet_name not in cache:
            try:
                ws = wb[sheet_name]
            except KeyError as e:
                raise SheetDecodeError(file_name, f"工作表不存在：{sheet_name}") from e
            cache[sheet_name] = _sheet_to_raw(ws)
        return cache[sheet_name]

    return SheetSource(file_name=file_name, sheet_names=tuple(wb.sheetnames), provider=provider)
# =========================

# CSV: tolerant read from bytes
# =========================
CSV_ENCODINGS = ["utf-8-sig", "utf-8", "gb18030"]


def _guess_delimiter(sample_text: str) -> str:
    # ',' from most exports, ';' / tab from some locales; Sniffer first, then counting
    try:
        dialect = csv.Sniffer().sniff(sample_text, delimiters=";,\t|")
        if dialect.delimiter:
            return dialect.delimiter
    except csv.Error:
        pass

    candidates = [",", ";", "\t", "|"]
    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","

    scores = {}
    for d in candidates:
        cnts = [ln.count(d) for ln in lines]
        scores[d] = sum(cnts) / max(1, len(cnts))

    best = max(scores.items(), key=lambda x: x[1])[0]
    return best if scores.get(best, 0) > 0 else ","


def _decode(data: bytes, file_name: str) -> Tuple[str, str]:
    for enc in CSV_ENCODINGS:
        try:
            return data.decode(enc), enc
        except UnicodeDecodeError:
            continue
    raise SheetDecodeError(file_name, "无法识别CSV编码")


def read_csv_grid(data: bytes, file_name: str = "") -> List[List[Any]]:
    """
    Headerless read: the title/header rows stay ordinary rows of the grid,
    header detection decides later. All values are kept as text.
    """
    text, enc = _decode(data, file_name)
    if not text.strip():
        return []
    delim = _guess_delimiter(text[:65536])
    # title rows are shorter than the table, so name every column up front
    width = max((len(r) for r in csv.reader(StringIO(text), delimiter=delim)), default=0)
    try:
        df = pd.read_csv(
            StringIO(text),
            header=None,
            names=list(range(width)),
            sep=delim,
            engine="python",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise SheetDecodeError(file_name, f"CSV解析失败（{e}）") from e

    logger.debug("csv %s: encoding=%s delimiter=%r shape=%s", file_name, enc, delim, df.shape)
    return df.values.tolist()


def csv_source(file_name: str, data: bytes) -> SheetSource:
    grid = read_csv_grid(data, file_name)

    def provider(sheet_name: str) -> RawSheet:
        return RawSheet(grid=grid)

    return SheetSource(file_name=file_name, sheet_names=(CSV_SHEET_NAME,), provider=provider)
# =========================

# Main: uploads -> sources
# =========================
def source_from_bytes(file_name: str, data: bytes) -> SheetSource:
    if file_name.lower().endswith(".csv"):
        return csv_source(file_name, data)
    return workbook_source(file_name, data)


def load_sources_from_uploads(uploads) -> Tuple[List[SheetSource], Dict[str, str]]:
    """
    uploads: objects with .name and .getvalue() (browser / Streamlit style).
    Returns the sources in upload order and {file name: error} for files that
    could not even be opened; the remaining files are unaffected.
    """
    sources: List[SheetSource] = []
    failed: Dict[str, str] = {}
    for up in uploads:
        name = up.name
        try:
            sources.append(source_from_bytes(name, up.getvalue()))
        except SheetDecodeError as e:
            logger.error("cannot decode %s: %s", name, e.message)
            failed[name] = e.message
    return sources, failed

