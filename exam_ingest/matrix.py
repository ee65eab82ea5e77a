from __future__ import annotations
from typing import Any, Iterable, List, Sequence
from .models import EMPTY, Cell, Matrix, MergeRange
# =========================

# Raw grid -> rectangular Cell matrix with merged cells filled in
# =========================
def normalize_matrix(grid: Sequence[Sequence[Any]], merges: Iterable[MergeRange] = (), max_rows: int = 30) -> Matrix:
    """
    Every merge range whose top row lies within the first max_rows rows has its
    empty cells filled with the range's top-left value (only the header area
    matters, deeper merges are left alone). Non-empty cells are never overwritten.
    """
    if not grid:
        return []

    merges = [m for m in merges if m.top < max_rows]
    width = max((len(r) for r in grid), default=0)
    for m in merges:
        width = max(width, m.right + 1)

    matrix: List[List[Cell]] = []
    for raw_row in grid:
        row = [Cell.of(v) for v in raw_row]
        row.extend([EMPTY] * (width - len(row)))
        matrix.append(row)

    # pad to max_rows: merges may reach below the last data row
    while len(matrix) < max_rows:
        matrix.append([EMPTY] * width)

    for m in merges:
        top_left = matrix[m.top][m.left]
        if top_left.is_empty:
            continue
        r_end = min(m.bottom, max_rows - 1)
        for r in range(m.top, r_end + 1):
            row = matrix[r]
            for c in range(m.left, m.right + 1):
                if row[c].is_empty:
                    row[c] = top_left

    return matrix
