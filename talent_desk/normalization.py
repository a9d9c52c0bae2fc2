from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from talent_desk.columns import ColumnMap, mapped_months
from talent_desk.shared import (
    AMOUNT_FIELDS,
    AMOUNT_STRIP_RE,
    DATE_FIELDS,
    FIELD_DEFAULTS,
    LABEL_ROW_RE,
    LEADING_INT_RE,
    MONTH_FIELDS,
    SALES_ROW_LABELS,
    SALES_ROW_RE,
    ImportKind,
    InvalidDivisor,
    NoDataRows,
    RejectedRow,
)

YMD_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def cell_at(row: list[str], idx: int | None) -> str:
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def parse_amount(value: str) -> int:
    """Currency text such as ``"¥1,234,567"`` or ``"8,000円"`` to a non-negative int.

    Anything unparseable is 0; sparse money cells never block a row.
    """
    cleaned = AMOUNT_STRIP_RE.sub("", value or "")
    match = LEADING_INT_RE.match(cleaned)
    if not match:
        return 0
    return max(0, int(match.group(0)))


def normalize_date(value: str) -> str:
    text = (value or "").strip()
    if not text:
        return ""
    candidate = text.replace("/", "-")
    match = YMD_RE.match(candidate)
    if not match:
        return text
    year, month, day = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


def parse_iso_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(normalize_date(str(value)), "%Y-%m-%d").date()
    except ValueError:
        return None


def calculate_age(birth_date: str | None, today: date | None = None) -> int | None:
    born = parse_iso_date(birth_date)
    if born is None:
        return None
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def normalize_text(field_name: str, value: str) -> str:
    text = (value or "").strip()
    if text:
        return text
    default = FIELD_DEFAULTS.get(field_name, "")
    return default if isinstance(default, str) else ""


def convert_cell(field_name: str, value: str) -> Any:
    if field_name in AMOUNT_FIELDS:
        return parse_amount(value)
    if field_name in DATE_FIELDS:
        return normalize_date(value)
    return normalize_text(field_name, value)


def rejection_reason(name: str) -> str | None:
    if not name:
        return "Blank name"
    if LABEL_ROW_RE.search(name):
        return "Label or note row (contains a colon)"
    return None


def is_admissible(name: str) -> bool:
    return rejection_reason((name or "").strip()) is None


def read_divisor(rows: list[list[str]], kind: ImportKind) -> int:
    """Months elapsed in the fiscal year, read from cell A1 of a talent sales sheet."""
    first = cell_at(rows[0], 0) if rows else ""
    divisor = parse_amount(first)
    if divisor == 0:
        raise InvalidDivisor(
            f"Invalid divisor for {kind.description} import: cell A1 must hold the number "
            f"of months elapsed (got {first!r}).",
            kind.name,
        )
    return divisor


def normalize_row(
    row: list[str],
    column_map: ColumnMap,
    today: date | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for field_name, idx in column_map.items():
        if idx is None or field_name in MONTH_FIELDS:
            continue
        record[field_name] = convert_cell(field_name, cell_at(row, idx))

    months = mapped_months(column_map)
    if any(idx is not None for idx in months):
        record["monthly_sales"] = [parse_amount(cell_at(row, idx)) for idx in months]

    if "birth_date" in record:
        record["age"] = calculate_age(record["birth_date"], today)
    return record


def normalize_rows(
    rows: list[list[str]],
    header_index: int,
    column_map: ColumnMap,
    today: date | None = None,
) -> tuple[list[dict[str, Any]], list[RejectedRow]]:
    records: list[dict[str, Any]] = []
    rejected: list[RejectedRow] = []
    name_idx = column_map.get("name")

    for row_idx in range(header_index + 1, len(rows)):
        row = rows[row_idx]
        if not any(cell.strip() for cell in row):
            continue
        name = cell_at(row, name_idx)
        reason = rejection_reason(name)
        if reason:
            rejected.append(RejectedRow(row_idx + 1, name, reason))
            continue
        records.append(normalize_row(row, column_map, today))
    return records, rejected


def extract_series(
    rows: list[list[str]],
    header_index: int,
    column_map: ColumnMap,
    kind: ImportKind,
) -> list[int]:
    """Twelve fiscal-ordered monthly totals from the sales row under the header.

    The sales row is the first row with a cell reading exactly 売上高/Sales (or a
    close variant), then the first row whose label merely contains 売上/Sales,
    then the first row carrying a number in any month column.
    """
    months = mapped_months(column_map)
    body = rows[header_index + 1 :]

    def has_numbers(row: list[str]) -> bool:
        return any(
            idx is not None and LEADING_INT_RE.match(AMOUNT_STRIP_RE.sub("", cell_at(row, idx)))
            for idx in months
        )

    labels = {label.lower() for label in SALES_ROW_LABELS}
    sales_row = next((row for row in body if any(c.strip().lower() in labels for c in row)), None)
    if sales_row is None:
        sales_row = next((row for row in body if any(SALES_ROW_RE.search(c) for c in row)), None)
    if sales_row is None:
        sales_row = next((row for row in body if has_numbers(row)), None)
    if sales_row is None:
        raise NoDataRows(
            f"No sales row found below the month header for {kind.description} import.",
            kind.name,
        )
    return [parse_amount(cell_at(sales_row, idx)) for idx in months]
