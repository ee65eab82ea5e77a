# Shared pytest fixtures
from __future__ import annotations
from typing import Any, Dict, List, Sequence
import pytest
from exam_ingest.blocks import make_columns
from exam_ingest.models import Cell, RawSheet, SheetSource

_SURNAMES = "张李王赵刘陈杨黄周吴"
_GIVEN = "伟芳娜敏静丽强磊军洋勇艳杰娟涛明"

# 160 distinct two-character names
NAMES: List[str] = [s + g for s in _SURNAMES for g in _GIVEN]


@pytest.fixture()
def names() -> List[str]:
    return list(NAMES)


@pytest.fixture()
def table():
    """table(headers, rows) -> (columns, row dicts) as a parsed block would hold them."""

    def _make(headers: Sequence[str], rows: Sequence[Sequence[Any]]):
        cols = make_columns(list(headers), 0, len(headers) - 1)
        out = []
        for raw in rows:
            out.append({c.key: Cell.of(raw[c.col_index] if c.col_index < len(raw) else None) for c in cols})
        return cols, out

    return _make


@pytest.fixture()
def make_source():
    """make_source(file_name, {sheet: grid}) -> SheetSource backed by in-memory grids."""

    def _make(file_name: str, sheets: Dict[str, List[List[Any]]], merges=None) -> SheetSource:
        merges = merges or {}

        def provider(sheet_name: str) -> RawSheet:
            return RawSheet(grid=sheets[sheet_name], merges=tuple(merges.get(sheet_name, ())))

        return SheetSource(file_name=file_name, sheet_names=tuple(sheets), provider=provider)

    return _make


def class_sheet(names: Sequence[str], cls: Any, start_id: int = 1001) -> List[List[Any]]:
    """Plain one-class score sheet with a class column."""
    grid: List[List[Any]] = [["学号", "姓名", "班级", "语文", "数学", "总分"]]
    for i, n in enumerate(names):
        grid.append([start_id + i, n, cls, 90 + i % 10, 80 + i % 15, 300 + i])
    return grid


def roster_sheet(names: Sequence[str]) -> List[List[Any]]:
    """Score sheet without any class column."""
    grid: List[List[Any]] = [["姓名", "语文", "数学", "总分"]]
    for i, n in enumerate(names):
        grid.append([n, 90 + i % 10, 80 + i % 15, 400 + i])
    return grid
