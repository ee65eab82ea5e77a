from __future__ import annotations
import re
from typing import List, Sequence, Tuple
from .models import UNNAMED_HEADER, Cell, Matrix
from .settings import DEFAULT_SETTINGS, ImportSettings
from .utils import is_likely_chinese_name, norm_text, ratio

# Terms typical for score-sheet headers. English variants only as whole words,
# otherwise "id"/"name" would fire on ordinary data values.
HEADER_KEYWORDS_RE = re.compile(
    r"姓名|名字|学号|考号|学籍|班级|总分|合计|总计|分数|排名|名次|扣分|原始分|赋分"
    r"|语文|数学|英语|物理|化学|生物|政治|历史|地理"
    r"|(?<![a-z])(?:student|name|class|total|score|rank)(?![a-z])"
)

# Any of these in the second header row means it is a sub-header, not data
STRONG_HEADER_RE = re.compile(r"姓名|原始分|赋分|校内排名|班级排名|年级排名|总分|合计|名次|排名")

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


def has_header_keyword(text: str) -> bool:
    return bool(HEADER_KEYWORDS_RE.search(norm_text(text)))


def _texts(row: Sequence[Cell]) -> List[str]:
    return [c.text for c in row if not c.is_empty]


def _looks_like_title(row: Sequence[Cell], min_len: int) -> bool:
    # "2024届高三第一次月考成绩" spread over a merged row: one long string
    cells = _texts(row)
    return len(cells) == 1 and len(cells[0]) >= min_len


def detect_header_start_row(matrix: Matrix, settings: ImportSettings = DEFAULT_SETTINGS) -> int:
    """
    Picks the header row among the first rows: non-empty cell count plus a
    bonus when the row mentions known header terms. Title rows and sparse rows
    without keywords are never candidates; ties keep the earliest row.
    """
    limit = min(settings.header_scan_rows, len(matrix))

    best_row = 0
    best_score = -1
    for r in range(limit):
        row = matrix[r]
        if _looks_like_title(row, settings.title_min_length):
            continue

        cells = _texts(row)
        kw = has_header_keyword("|".join(cells))
        if len(cells) < settings.header_min_cells and not kw:
            continue

        score = len(cells) + (settings.header_keyword_bonus if kw else 0)
        if score > best_score:
            best_score = score
            best_row = r

    return best_row


def _fill_forward(values: List[str]) -> List[str]:
    out = list(values)
    last = ""
    for i, v in enumerate(out):
        if v:
            last = v
        else:
            out[i] = last
    return out


def build_headers(view: Matrix) -> Tuple[List[str], int]:
    """
    Header labels from the first one or two rows of view.
    Returns (labels, header_rows_used).

    Row 0 is filled forward (a group title spans until the next value), row 1 is not.
    Row 1 is a sub-header unless it reads like data (names or bare numbers without
    any header term); in that case only row 0 is used.
    """
    row0 = view[0] if len(view) > 0 else []
    row1 = view[1] if len(view) > 1 else []
    width = max(len(row0), len(row1))

    raw0 = [row0[i].text if i < len(row0) else "" for i in range(width)]
    r0 = _fill_forward(raw0)
    r1 = [row1[i].text if i < len(row1) else "" for i in range(width)]

    c0 = [s for s in raw0 if s]
    c1 = [s for s in r1 if s]
    kw_hits = sum(1 for s in c1 if has_header_keyword(s))
    name_hits = sum(1 for s in c1 if is_likely_chinese_name(s))
    num_hits = sum(1 for s in c1 if _NUMBER_RE.match(s))

    row1_data = kw_hits == 0 and (ratio(name_hits, len(c1)) >= 0.25 or ratio(num_hits, len(c1)) >= 0.6)
    row1_header = kw_hits >= 1 or any(STRONG_HEADER_RE.search(s) for s in c1)

    # sparsity of row 0 is judged before the fill-forward
    row0_sparse = len(c0) <= max(2, int(width * 0.25))
    row1_rich = len(c1) >= max(4, int(width * 0.35))
    row0_group_kw = any(has_header_keyword(s) for s in c0)
    group_pattern = row1_rich and (row0_sparse or row0_group_kw)

    two_rows = not row1_data and (row1_header or group_pattern)

    headers: List[str] = []
    for a, b in zip(r0, r1):
        if two_rows:
            h = f"{a}_{b}" if a and b and a != b else (a or b)
        else:
            h = a
        headers.append(h or UNNAMED_HEADER)

    return headers, 2 if two_rows else 1
