from __future__ import annotations
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from .header_detect import build_headers, detect_header_start_row
from .infer import guess_name_col, guess_total_col, is_name_header
from .models import Block, BlockMeta, Column, Matrix, Row
from .settings import DEFAULT_SETTINGS, ImportSettings
from .utils import col_letter, is_likely_chinese_name, key_base, normalize_header

logger = logging.getLogger(__name__)
# =========================

# Splitting side-by-side tables
# =========================
def _is_separator_col(view: Matrix, col: int, top_rows: int = 2) -> bool:
    for r in range(min(top_rows, len(view))):
        row = view[r]
        if col < len(row) and not row[col].is_empty:
            return False
    return True


def split_ranges(view: Matrix, width: int, min_width: int = 3) -> List[Tuple[int, int]]:
    """
    Column ranges (start, end inclusive) between runs of separator columns,
    i.e. columns whose first two rows are empty. Ranges narrower than
    min_width are noise and dropped.
    """
    ranges: List[Tuple[int, int]] = []
    start = 0
    c = 0
    while c < width:
        if _is_separator_col(view, c):
            if c - 1 >= start:
                ranges.append((start, c - 1))
            while c < width and _is_separator_col(view, c):
                c += 1
            start = c
        else:
            c += 1
    if start < width:
        ranges.append((start, width - 1))

    return [(s, e) for s, e in ranges if e - s + 1 >= min_width]


def make_columns(headers: Sequence[str], start: int, end: int) -> Tuple[Column, ...]:
    # the column index suffix keeps keys unique even for repeated header text
    cols = []
    for c in range(start, end + 1):
        base = headers[c]
        key = f"{key_base(base) or 'col'}__{c}"
        cols.append(Column(key=key, label=f"{base}（{col_letter(c)}列）", col_index=c))
    return tuple(cols)


def _block_rows(view: Matrix, columns: Sequence[Column], data_start: int) -> List[Row]:
    rows: List[Row] = []
    for raw in view[data_start:]:
        obj: Row = {}
        any_val = False
        for col in columns:
            cell = raw[col.col_index]
            if not cell.is_empty:
                any_val = True
            obj[col.key] = cell
        if any_val:
            rows.append(obj)
    return rows


def parse_sheet_to_blocks(matrix: Matrix, settings: ImportSettings = DEFAULT_SETTINGS) -> List[Block]:
    if not matrix:
        return []

    header_start = detect_header_start_row(matrix, settings)
    view = matrix[header_start:]
    headers, header_rows_used = build_headers(view)
    ranges = split_ranges(view, len(headers), settings.min_block_width)

    blocks: List[Block] = []
    for idx, (start, end) in enumerate(ranges, start=1):
        columns = make_columns(headers, start, end)
        blocks.append(Block(
            block_id=f"block-{idx}",
            range_label=f"块{idx} ({col_letter(start)}~{col_letter(end)}列)",
            columns=columns,
            rows=_block_rows(view, columns, header_rows_used),
            meta=BlockMeta(
                start_col=start,
                end_col=end,
                header_start_row=header_start,
                header_rows_used=header_rows_used,
            ),
        ))

    logger.debug("header row %d (%d rows), %d block(s)", header_start, header_rows_used, len(blocks))
    return blocks
# =========================

# Choosing the table that looks most like a score sheet
# =========================
def score_block_quality(block: Block, settings: ImportSettings = DEFAULT_SETTINGS) -> float:
    cols = block.columns
    rows = block.rows
    if not cols or not rows:
        return -999.0

    headers = "|".join(normalize_header(c.label) for c in cols)
    score = 0.0
    if any(is_name_header(c.label) for c in cols):
        score += 15
    if "总分" in headers or "total" in headers:
        score += 15

    name_col = guess_name_col(rows, cols, settings.name_sample_rows)
    total_col = guess_total_col(rows, cols, settings)

    seen = name_hit = total_hit = 0
    for r in rows[: settings.block_sample_rows]:
        n = r[name_col].text if name_col else ""
        t = r[total_col].number() if total_col else None
        if not n and t is None:
            continue
        seen += 1
        if is_likely_chinese_name(n):
            name_hit += 1
        if t is not None:
            total_hit += 1
    if seen:
        score += (name_hit / seen) * 20
        score += (total_hit / seen) * 15

    if len(cols) >= 6:
        score += 3
    if len(cols) < 4:
        score -= 10
    return score


def select_best_block(blocks: Sequence[Block], settings: ImportSettings = DEFAULT_SETTINGS) -> Tuple[Optional[Block], Dict[str, float]]:
    """Best block and the score of every candidate; a single block is taken as is."""
    if not blocks:
        return None, {}
    if len(blocks) == 1:
        return blocks[0], {}

    scores: Dict[str, float] = {}
    best = blocks[0]
    best_score = float("-inf")
    for b in blocks:
        s = score_block_quality(b, settings)
        scores[b.block_id] = s
        if s > best_score:
            best_score = s
            best = b
    return best, scores
