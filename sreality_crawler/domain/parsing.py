# sreality_crawler/domain/parsing.py
from __future__ import annotations

import re
from typing import Any

_NON_NUMERIC = re.compile(r"[^\d.,]")


def to_int(x: Any) -> int | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return None


def to_float(x: Any) -> float | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def parse_czech_number(value: Any) -> float | None:
    """'74 m²' -> 74.0, '1 250,5' -> 1250.5. Upstream uses a decimal comma."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    s = _NON_NUMERIC.sub("", str(value)).replace(",", ".")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return "ano" in str(value or "").lower()


def get_nested(payload: dict[str, Any], path: str) -> Any:
    """Tiny dot-path getter: 'price_czk.value_raw' or 'seo.category_main_cb'."""
    cur: Any = payload
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
        if cur is None:
            return None
    return cur
