"""
reconcile.py — Merge normalized rows into the caller's collections.

Nothing here mutates its inputs: callers get a new list (or dict) back and
decide whether to persist it as a whole.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable

from talent_desk.roster import new_talent
from talent_desk.shared import MONTH_FIELDS, YEAR_TYPES


def _name_key(name: str) -> str:
    return "".join((name or "").split())


def names_match(left: str, right: str) -> bool:
    """Exact or mutual-containment match, ignoring whitespace inside names.

    Short names can match several talents (``田中`` vs ``田中太郎`` and
    ``田中次郎``); callers take the first hit.
    """
    a, b = _name_key(left), _name_key(right)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def find_match(name: str, records: Iterable[dict[str, Any]]) -> int | None:
    for idx, record in enumerate(records):
        if names_match(name, record.get("name", "")):
            return idx
    return None


def compute_average(total: int, divisor: int | None) -> int | None:
    if not divisor:
        return None
    return round(total / divisor)


def attach_averages(normalized: list[dict[str, Any]], divisor: int | None) -> list[dict[str, Any]]:
    """Fill ``average_sales`` on rows that carry a total.

    Without a divisor the average stays ``None``; display code falls back to
    ``total / 12`` itself.
    """
    result = []
    for row in normalized:
        row = dict(row)
        if "total_sales" in row:
            row["average_sales"] = compute_average(row["total_sales"], divisor)
        result.append(row)
    return result


def reconcile_talents(
    normalized: list[dict[str, Any]],
    records: list[dict[str, Any]] | None,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    """Apply normalized rows to the talent list.

    Returns the reconciled list and ``{"updated": n, "created": m}``.
    """
    reconciled = [copy.deepcopy(record) for record in (records or [])]
    stats = {"updated": 0, "created": 0}

    for row in normalized:
        match_idx = find_match(row["name"], reconciled)
        if match_idx is None:
            reconciled.append(new_talent(**row))
            stats["created"] += 1
            continue
        target = reconciled[match_idx]
        for key, value in row.items():
            if key == "name":
                continue
            target[key] = copy.deepcopy(value)
        stats["updated"] += 1
    return reconciled, stats


def replace_series(
    sales: dict[str, list[int]] | None,
    year_type: str,
    series: list[int],
) -> dict[str, list[int]]:
    if year_type not in YEAR_TYPES:
        raise ValueError(f"year_type must be one of {', '.join(YEAR_TYPES)}, got {year_type!r}")
    if len(series) != len(MONTH_FIELDS):
        raise ValueError(f"Company sales series must have {len(MONTH_FIELDS)} values, got {len(series)}")
    updated = {key: list(values) for key, values in (sales or {}).items()}
    for key in YEAR_TYPES:
        updated.setdefault(key, [0] * len(MONTH_FIELDS))
    updated[year_type] = list(series)
    return updated
