import json
import re
from pathlib import Path
from typing import Any

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"


def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return default


def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"


_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F\u3000]")  # NBSP variants and ideographic space
_COL_SUFFIX_FULL_RE = re.compile(r"（[a-zA-Z]+列）$")
_COL_SUFFIX_HALF_RE = re.compile(r"\([a-zA-Z]+列\)$")
_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[（）()【】\[\]_\-—·.。:：/\\]")
_CHINESE_NAME_RE = re.compile(r"^[\u4e00-\u9fa5]{2,5}$")


def norm_text(s: Any) -> str:
    """
    Generic text normalization:
    - BOM / non-breaking spaces
    - outer quotes
    - collapsed whitespace
    - lower case
    """
    if s is None:
        return ""

    s = str(s)

    # invisible characters that Excel/CSV exports like to carry
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    s = s.strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    s = _WS_RE.sub(" ", s).strip()
    return s.lower()


def normalize_header(label: Any) -> str:
    """
    Header comparison form: drops the "（B列）" suffix added to labels,
    removes all whitespace ("姓 名" -> "姓名"), unifies full-width brackets.
    """
    s = str(label if label is not None else "").strip()
    s = _COL_SUFFIX_FULL_RE.sub("", s)
    s = _COL_SUFFIX_HALF_RE.sub("", s)
    s = _NBSP_RE.sub(" ", s)
    s = _WS_RE.sub("", s)
    s = s.replace("（", "(").replace("）", ")")
    return s.lower()


def compact_header(label: Any) -> str:
    # normalize_header without any punctuation; used for metric keyword containment
    return _PUNCT_RE.sub("", normalize_header(label))


def key_base(label: Any) -> str:
    s = _WS_RE.sub("", str(label if label is not None else "").strip())
    return s.replace("（", "(").replace("）", ")").lower()


def is_likely_chinese_name(s: Any) -> bool:
    return bool(_CHINESE_NAME_RE.match(str(s if s is not None else "").strip()))


def col_letter(n: int) -> str:
    # 0 -> A, 25 -> Z, 26 -> AA
    s = ""
    x = n + 1
    while x > 0:
        r = (x - 1) % 26
        s = chr(65 + r) + s
        x = (x - 1) // 26
    return s


def ratio(part: int, whole: int) -> float:
    return part / whole if whole else 0.0
