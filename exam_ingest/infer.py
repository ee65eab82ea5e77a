from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from .models import Column, MetricId, Row, Trace
from .settings import DEFAULT_SETTINGS, ImportSettings
from .utils import compact_header, is_likely_chinese_name, normalize_header, ratio

logger = logging.getLogger(__name__)

NAME_KWS = ["姓名", "名字", "name"]
ID_KWS = ["学生id", "学号", "studentid", "student_id", "id"]

CLASS_EXACT = ["班级", "班级号", "行政班", "班号", "班别", "班级编号", "class"]
CLASS_LOOSE_KWS = ["班级号", "行政班", "班号", "班级", "class"]
CLASS_RANK_KWS = ["排名", "名次", "rank", "班级排", "年级排", "班排", "年排", "校排", "级排"]

TOTAL_GOOD_KWS = ["总分", "总分得分", "总分_得分", "总分原始分", "总分_原始分", "总分原始", "总分_原始", "total"]
TOTAL_SCALED_KWS = ["赋分", "scaled", "weighted"]
META_EXACT = ["班级", "姓名", "class", "name"]
META_KWS = ["班级号", "行政班", "班号", "考号", "准考证", "学号", "studentid", "student_id", "名字"]

# Detection keywords per metric. Checked in this order; adding a subject is a new entry here.
METRIC_KWS: Dict[MetricId, Tuple[str, ...]] = {
    MetricId.TOTAL: ("总分", "total"),
    MetricId.CHINESE: ("语文", "chinese"),
    MetricId.MATH: ("数学", "math"),
    MetricId.ENGLISH: ("英语", "english"),
    MetricId.PHYSICS: ("物理", "physics"),
    MetricId.CHEMISTRY: ("化学", "chemistry"),
    MetricId.BIOLOGY: ("生物", "biology"),
    MetricId.POLITICS: ("政治", "politics"),
    MetricId.HISTORY: ("历史", "history"),
    MetricId.GEOGRAPHY: ("地理", "geography"),
}
RANK_WORDS = ("排名", "名次", "排", "rank")
SCHOOL_SCOPE_WORDS = ("年级", "学校", "校", "级", "grade", "school")
CLASS_SCOPE_WORDS = ("班", "class")
# a class rank may still say 班级 (级!), only these rule it out
CLASS_RANK_EXCLUDE = ("年级", "学校", "校", "grade", "school")
# =========================

# Header predicates
# =========================
def _has_any(h: str, kws: Sequence[str]) -> bool:
    return any(k in h for k in kws)


def is_name_header(label: str) -> bool:
    return _has_any(normalize_header(label), NAME_KWS)


def is_rank_like(h: str) -> bool:
    # h is already normalized
    if _has_any(h, CLASS_RANK_KWS):
        return True
    return "排" in h and _has_any(h, ("班", "年", "校", "级"))


def find_all_name_cols(cols: Sequence[Column]) -> List[str]:
    return [c.key for c in cols if is_name_header(c.label)]
# =========================

# Role guessers
# =========================
def guess_id_col(cols: Sequence[Column]) -> Optional[str]:
    for c in cols:
        if _has_any(normalize_header(c.label), ID_KWS):
            return c.key
    return None


def guess_class_col(cols: Sequence[Column]) -> Optional[str]:
    candidates = []
    for c in cols:
        h = normalize_header(c.label)
        if not is_rank_like(h):
            candidates.append((c, h))

    for c, h in candidates:
        if h in CLASS_EXACT:
            return c.key
    for c, h in candidates:
        if _has_any(h, CLASS_LOOSE_KWS):
            return c.key
    return None


def has_any_value(rows: Sequence[Row], key: Optional[str], limit: int) -> bool:
    if not key:
        return False
    return any(not r[key].is_empty for r in rows[:limit])


def class_fill_ratio(rows: Sequence[Row], class_col: str, name_col: Optional[str], limit: int) -> Tuple[float, int]:
    """(share of named rows that carry a class value, number of named rows looked at)"""
    seen = non_empty = 0
    for r in rows[:limit]:
        # rows without a name are padding/footers, they say nothing about the class column
        if not name_col or r[name_col].is_empty:
            continue
        seen += 1
        if not r[class_col].is_empty:
            non_empty += 1
    return ratio(non_empty, seen), seen


def name_column_score(rows: Sequence[Row], col: Column, sample: int = 450) -> float:
    score = 6.0 if is_name_header(col.label) else 0.0
    seen = hit = 0
    for r in rows[:sample]:
        s = r[col.key].text
        if not s:
            continue
        seen += 1
        if is_likely_chinese_name(s):
            hit += 1
    if seen:
        score += (hit / seen) * 10
    return score


def guess_name_col(rows: Sequence[Row], cols: Sequence[Column], sample: int = 450) -> Optional[str]:
    """
    Header hit (+6) plus up to 10 points for the share of personal-name-like values.
    Ties keep the first header match. A column with no evidence at all is not a name column.
    """
    prefer = next((c for c in cols if is_name_header(c.label)), None)
    best = prefer
    best_score = name_column_score(rows, prefer, sample) if prefer else 0.0

    for c in cols:
        s = name_column_score(rows, c, sample)
        if s > best_score:
            best_score = s
            best = c

    if best is None or best_score <= 0:
        return None
    return best.key


def score_total_col(rows: Sequence[Row], col: Column, settings: ImportSettings = DEFAULT_SETTINGS) -> float:
    h = normalize_header(col.label)
    if is_rank_like(h):
        return -9999.0
    if h in META_EXACT or _has_any(h, META_KWS):
        return -9999.0

    score = 0.0
    if _has_any(h, TOTAL_GOOD_KWS):
        score += 20
    if _has_any(h, TOTAL_SCALED_KWS):
        score -= 50

    seen = numeric = in_range = very_large = 0
    for r in rows[: settings.total_sample_rows]:
        cell = r[col.key]
        if cell.is_empty:
            continue
        seen += 1
        n = cell.number()
        if n is None:
            continue
        numeric += 1
        if 0 <= n <= settings.score_max:
            in_range += 1
        if n >= settings.id_like_min:
            very_large += 1

    if seen:
        score += (numeric / seen) * 5
        score += (in_range / seen) * 30
        score -= (very_large / seen) * 200
    else:
        score -= 50
    return score


def guess_total_col(rows: Sequence[Row], cols: Sequence[Column], settings: ImportSettings = DEFAULT_SETTINGS) -> Optional[str]:
    best = None
    best_score = float("-inf")
    for c in cols:
        s = score_total_col(rows, c, settings)
        if s > best_score:
            best_score = s
            best = c
    # a weak winner is worse than admitting there is no total column
    if best is None or best_score < settings.total_min_score:
        return None
    return best.key


def detect_metric_cols(cols: Sequence[Column]) -> Dict[MetricId, str]:
    """
    Metric -> column key by keyword containment on the compacted header.
    Ranks need scope + rank word and must not mention the other scope.
    First column per metric wins.
    """
    found: Dict[MetricId, str] = {}
    for c in cols:
        h = compact_header(c.label)

        has_rank = _has_any(h, RANK_WORDS)
        is_school_rank = has_rank and _has_any(h, SCHOOL_SCOPE_WORDS) and not _has_any(h, CLASS_SCOPE_WORDS)
        is_class_rank = has_rank and _has_any(h, CLASS_SCOPE_WORDS) and not _has_any(h, CLASS_RANK_EXCLUDE)

        if is_school_rank or is_class_rank:
            metric = MetricId.SCHOOL_RANK if is_school_rank else MetricId.CLASS_RANK
            found.setdefault(metric, c.key)
        if has_rank:
            # unscoped ranks ("总分排名") are neither a rank metric nor a score
            continue

        for metric, kws in METRIC_KWS.items():
            if metric not in found and _has_any(h, kws):
                found[metric] = c.key
                break
    return found
# =========================

# Whole-block classification
# =========================
@dataclass(frozen=True)
class Classification:
    id_col: Optional[str] = None
    name_col: Optional[str] = None
    class_col: Optional[str] = None
    total_col: Optional[str] = None
    metric_cols: Dict[MetricId, str] = field(default_factory=dict)
    # raw evidence kept for diagnostics
    name_header_cols: Tuple[str, ...] = ()
    class_header_col: Optional[str] = None
    class_fill: Optional[float] = None


def classify_columns(
    rows: Sequence[Row],
    cols: Sequence[Column],
    settings: ImportSettings = DEFAULT_SETTINGS,
    trace: Optional[Trace] = None,
) -> Classification:
    id_col = guess_id_col(cols)

    name_headers = find_all_name_cols(cols)
    if len(name_headers) >= 2:
        # ambiguous identity, never guess between them
        name_col = None
    elif name_headers:
        name_col = name_headers[0]
    else:
        name_col = guess_name_col(rows, cols, settings.name_sample_rows)

    class_header = guess_class_col(cols)
    class_col = class_header
    fill = None
    if class_col and not has_any_value(rows, class_col, settings.class_presence_rows):
        class_col = None
        fill = 0.0
    if class_col:
        fill, seen = class_fill_ratio(rows, class_col, name_col, min(settings.class_sample_rows, len(rows)))
        if seen >= settings.class_min_named_rows and fill < settings.class_empty_ratio:
            class_col = None

    total_col = guess_total_col(rows, cols, settings)

    metric_cols = detect_metric_cols(cols)
    if MetricId.TOTAL not in metric_cols and total_col:
        metric_cols[MetricId.TOTAL] = total_col

    result = Classification(
        id_col=id_col,
        name_col=name_col,
        class_col=class_col,
        total_col=total_col,
        metric_cols=metric_cols,
        name_header_cols=tuple(name_headers),
        class_header_col=class_header,
        class_fill=fill,
    )
    logger.debug("roles: id=%s name=%s class=%s total=%s", id_col, name_col, class_col, total_col)
    if trace:
        trace("roles", {
            "id_col": id_col,
            "name_col": name_col,
            "class_col": class_col,
            "class_header_col": class_header,
            "total_col": total_col,
            "name_header_cols": list(name_headers),
        })
        trace("metric_cols", {m.value: k for m, k in metric_cols.items()})
    return result
