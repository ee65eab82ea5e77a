from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple
from .blocks import parse_sheet_to_blocks, select_best_block
from .class_index import build_class_index, infer_sheet_class, scope_for
from .infer import classify_columns
from .ingest import SheetDecodeError
from .matrix import normalize_matrix
from .models import INSTRUCTIONS_SHEET, ExamRecord, ImportBatch, RawSheet, SheetSource, Trace, make_exam_id
from .settings import DEFAULT_SETTINGS, ImportSettings
from .validate import diagnose

logger = logging.getLogger(__name__)
# =========================

# First pass: one sheet -> one ExamRecord
# =========================
def import_sheet(
    file_name: str,
    sheet_name: str,
    raw: RawSheet,
    settings: ImportSettings = DEFAULT_SETTINGS,
    trace: Optional[Trace] = None,
) -> Optional[ExamRecord]:
    """
    Runs normalize -> header -> blocks -> roles -> diagnostics for one sheet.
    None when the sheet holds no table at all.
    """
    matrix = normalize_matrix(raw.grid, raw.merges, settings.merge_fill_rows)
    blocks = parse_sheet_to_blocks(matrix, settings)
    if not blocks:
        logger.info("sheet %s/%s: no table found, skipped", file_name, sheet_name)
        return None

    exam_id = make_exam_id(file_name, sheet_name)
    best, block_scores = select_best_block(blocks, settings)
    if trace:
        meta = best.meta
        trace("header", {"exam_id": exam_id, "row": meta.header_start_row, "rows_used": meta.header_rows_used})
        trace("blocks", {"exam_id": exam_id, "blocks": [b.range_label for b in blocks]})
        trace("block_selected", {"exam_id": exam_id, "block_id": best.block_id, "scores": block_scores})

    result = classify_columns(best.rows, best.columns, settings, trace)
    diag = diagnose(result, best.rows, settings)

    if diag.fatal_errors:
        logger.warning("sheet %s/%s unusable: %s", file_name, sheet_name, "; ".join(diag.fatal_errors))
    for w in diag.warnings:
        logger.info("sheet %s/%s: %s", file_name, sheet_name, w)

    return ExamRecord(
        id=exam_id,
        file_name=file_name,
        sheet_name=sheet_name,
        exam_name=sheet_name,
        blocks=tuple(blocks),
        block_id=best.block_id,
        columns=best.columns,
        rows=best.rows,
        id_col=result.id_col,
        name_col=result.name_col,
        class_col=result.class_col,
        total_col=result.total_col,
        metric_cols=dict(result.metric_cols),
        fatal_errors=diag.fatal_errors,
        warnings=diag.warnings,
    )


def import_file(
    source: SheetSource,
    settings: ImportSettings = DEFAULT_SETTINGS,
    trace: Optional[Trace] = None,
    failed_sheets: Optional[Dict[str, str]] = None,
) -> List[ExamRecord]:
    """
    All sheets of one file in workbook order.

    A sheet the provider cannot decode is skipped and reported in failed_sheets
    (exam id -> message). SheetDecodeError propagates only when no sheet of the
    file could be decoded at all.
    """
    records: List[ExamRecord] = []
    errors: Dict[str, str] = {}
    decoded = 0
    for sheet_name in source.sheet_names:
        if sheet_name.strip() == INSTRUCTIONS_SHEET:
            continue
        try:
            raw = source.provider(sheet_name)
        except SheetDecodeError as e:
            logger.warning("sheet %s/%s could not be decoded: %s", source.file_name, sheet_name, e.message)
            errors[make_exam_id(source.file_name, sheet_name)] = e.message
            continue
        decoded += 1
        rec = import_sheet(source.file_name, sheet_name, raw, settings, trace)
        if rec is not None:
            records.append(rec)

    if errors and not decoded:
        raise SheetDecodeError(source.file_name, "；".join(errors.values()))
    if failed_sheets is not None:
        failed_sheets.update(errors)
    logger.info("file %s: %d exam sheet(s), %d undecodable", source.file_name, len(records), len(errors))
    return records
# =========================

# Second pass: class inference over the complete batch
# =========================
def resolve_classes(
    records: List[ExamRecord],
    settings: ImportSettings = DEFAULT_SETTINGS,
    trace: Optional[Trace] = None,
) -> List[ExamRecord]:
    # the index must see every sheet first, otherwise results depend on file order
    index = build_class_index(records, settings)
    out = []
    for rec in records:
        inferred = infer_sheet_class(rec, index, settings, trace)
        rec = replace(rec, inferred_class=inferred)
        out.append(replace(rec, scope=scope_for(rec, settings)))
    return out


def _guarded(
    source: SheetSource, settings: ImportSettings, trace: Optional[Trace]
) -> Tuple[List[ExamRecord], Dict[str, str], Optional[str]]:
    failed_sheets: Dict[str, str] = {}
    try:
        return import_file(source, settings, trace, failed_sheets), failed_sheets, None
    except SheetDecodeError as e:
        logger.error("file %s could not be decoded: %s", source.file_name, e.message)
        return [], {}, e.message


def import_sources(
    sources: Iterable[SheetSource],
    settings: Optional[ImportSettings] = None,
    trace: Optional[Trace] = None,
    max_workers: Optional[int] = None,
) -> ImportBatch:
    """
    Imports a batch of files.

    First pass: every sheet of every file is parsed independently (on a thread
    pool when max_workers > 1); results keep file/sheet submission order.
    A file of which no sheet can be decoded is reported in failed_files and
    contributes no records; single undecodable sheets land in failed_sheets.
    Second pass: class inference over all records.
    """
    settings = settings or DEFAULT_SETTINGS
    sources = list(sources)

    if max_workers and max_workers > 1 and len(sources) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            results = list(ex.map(lambda s: _guarded(s, settings, trace), sources))
    else:
        results = [_guarded(s, settings, trace) for s in sources]

    batch = ImportBatch()
    records: List[ExamRecord] = []
    for source, (recs, sheet_errors, error) in zip(sources, results):
        if error is not None:
            batch.failed_files[source.file_name] = error
            continue
        batch.failed_sheets.update(sheet_errors)
        records.extend(recs)

    batch.records = resolve_classes(records, settings, trace)
    logger.info(
        "imported %d sheet(s) from %d file(s), %d failed file(s)",
        len(batch.records), len(sources), len(batch.failed_files),
    )
    return batch
