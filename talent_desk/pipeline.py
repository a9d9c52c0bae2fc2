"""
pipeline.py — One import, start to finish.

    result = run_import(text, "talent-sales", records=talents)
    talents = result.records

The caller's collections are never modified; a structural failure raises an
``ImportFailure`` subclass and nothing is applied.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from talent_desk.columns import build_column_map
from talent_desk.decoder import decode_table
from talent_desk.header import require_header
from talent_desk.normalization import extract_series, normalize_rows, read_divisor
from talent_desk.reconcile import attach_averages, reconcile_talents, replace_series
from talent_desk.shared import ImportResult, NoDataRows, get_import_kind


def run_import(
    text: str,
    kind_name: str,
    records: list[dict[str, Any]] | None = None,
    sales: dict[str, list[int]] | None = None,
    today: date | None = None,
) -> ImportResult:
    kind = get_import_kind(kind_name)
    rows = decode_table(text)

    divisor = read_divisor(rows, kind) if kind.uses_divisor else None
    header_index = require_header(rows, kind)
    column_map, warnings = build_column_map(rows[header_index], kind)

    if kind.target == "company_sales":
        series = extract_series(rows, header_index, column_map, kind)
        return ImportResult(
            kind=kind.name,
            header_index=header_index,
            column_map=column_map,
            normalized=[{"year_type": kind.year_type, "monthly_sales": series}],
            sales=replace_series(sales, kind.year_type, series),
            warnings=warnings,
            stats={"raw_rows": len(rows), "series_total": sum(series)},
        )

    normalized, rejected = normalize_rows(rows, header_index, column_map, today)
    if not normalized:
        raise NoDataRows(
            f"No talent rows found below the header for {kind.description} import "
            f"({len(rejected)} row(s) rejected).",
            kind.name,
        )
    normalized = attach_averages(normalized, divisor)
    reconciled, counts = reconcile_talents(normalized, records)

    for item in rejected:
        warnings.append(f"Row {item.row_num} skipped: {item.reason}")

    return ImportResult(
        kind=kind.name,
        header_index=header_index,
        column_map=column_map,
        normalized=normalized,
        rejected=rejected,
        records=reconciled,
        divisor=divisor,
        warnings=warnings,
        stats={
            "raw_rows": len(rows),
            "imported_rows": len(normalized),
            "rejected_rows": len(rejected),
            **counts,
        },
    )
