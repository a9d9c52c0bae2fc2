"""
columns.py — Header row to semantic column map.

Each import kind carries a label table of ``(field, label variants)``. A field
is mapped to the first header cell that equals or contains one of its labels;
fields without a match map to ``None`` and are defaulted downstream.
"""

from __future__ import annotations

from typing import Dict, Optional

from talent_desk.shared import MONTH_FIELDS, MONTH_LABELS, ImportKind, keyword_pattern

ColumnMap = Dict[str, Optional[int]]


def _normalise_header_for_match(value: str) -> str:
    return " ".join(value.strip().lower().split())


def match_label(cell: str, labels: tuple[str, ...]) -> bool:
    text = _normalise_header_for_match(cell)
    if not text:
        return False
    for label in labels:
        if text == _normalise_header_for_match(label):
            return True
        if keyword_pattern(label).search(text):
            return True
    return False


def map_columns(header_row: list[str], labels) -> ColumnMap:
    column_map: ColumnMap = {}
    for field_name, variants in labels:
        column_map[field_name] = next(
            (idx for idx, cell in enumerate(header_row) if match_label(cell, variants)),
            None,
        )
    return column_map


def mapped_months(column_map: ColumnMap) -> list[int | None]:
    return [column_map.get(month_field) for month_field in MONTH_FIELDS]


def _anchor_months(column_map: ColumnMap, anchor_field: str) -> bool:
    anchor = column_map.get(anchor_field)
    name_idx = column_map.get("name")
    if anchor is None or anchor < len(MONTH_FIELDS) or name_idx is None:
        return False
    if name_idx not in mapped_months(column_map):
        return False
    # The header omits the name heading and starts with the months, so the
    # month block is the twelve columns immediately left of the anchor.
    start = anchor - len(MONTH_FIELDS)
    for offset, month_field in enumerate(MONTH_FIELDS):
        column_map[month_field] = start + offset
    return True


def build_column_map(header_row: list[str], kind: ImportKind) -> tuple[ColumnMap, list[str]]:
    """Map the header for ``kind``, applying its fixed columns and month anchoring.

    Returns the column map and any warnings worth surfacing to the user.
    """
    warnings: list[str] = []
    column_map = map_columns(header_row, kind.labels)

    for field_name, fixed_idx in kind.fixed_columns:
        if column_map.get(field_name) is None:
            column_map[field_name] = fixed_idx

    if kind.anchor_months_to and _anchor_months(column_map, kind.anchor_months_to):
        warnings.append(
            "Month headings start in the name column; month values were read from the "
            "twelve columns before the total column."
        )

    months = mapped_months(column_map)
    if any(idx is not None for idx in months):
        missing = [label for label, idx in zip(MONTH_LABELS, months) if idx is None]
        if missing:
            warnings.append(f"Month columns not found (imported as 0): {', '.join(missing)}")
    return column_map, warnings
