from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from talent_desk.metrics import monthly_average, needs_renewal_alert
from talent_desk.shared import MONTH_LABELS, YEAR_TYPES

TALENT_COLUMNS = [
    ("name", "氏名"),
    ("status", "ステータス"),
    ("gender", "性別"),
    ("age", "年齢"),
    ("birth_date", "生年月日"),
    ("email", "メール"),
    ("contract_date", "契約開始日"),
    ("contract_end_date", "契約終了日"),
    ("rating", "評価点"),
    ("evaluation_note", "評価コメント"),
    ("total_sales", "年間売上"),
    ("monthly_average", "月平均売上"),
    ("bank_name", "銀行名"),
    ("branch_name", "支店名"),
    ("account_type", "種別"),
    ("account_number", "口座番号"),
    ("account_holder", "口座名義"),
]

SHEET_NAMES = ("Talents", "Company Sales")

FILL_RENEWAL = PatternFill("solid", fgColor="FCE4D6")   # soft orange


def _header_font() -> Font:
    return Font(bold=True, color="FFFFFF")


def _header_fill(hex_color: str) -> PatternFill:
    return PatternFill("solid", fgColor=hex_color)


def _style_sheet(ws, col_widths: list[int], header_color: str):
    """Apply bold header, color, frozen row, and column widths."""
    fill = _header_fill(header_color)
    font = _header_font()
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 40, sample: int = 300) -> list[int]:
    if not rows:
        return []
    # CJK characters render roughly two columns wide.
    def display_len(value) -> int:
        text = "" if value is None else str(value)
        return sum(2 if ord(ch) > 0x2E80 else 1 for ch in text)

    widths = [display_len(v) + 2 for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], display_len(val) + 2)
    return [max(min_width, min(max_width, w)) for w in widths]


def _talent_row(record: dict[str, Any]) -> list[Any]:
    row = []
    for key, _ in TALENT_COLUMNS:
        if key == "monthly_average":
            row.append(monthly_average(record))
        else:
            row.append(record.get(key))
    return row


def write_roster_workbook(
    records: list[dict[str, Any]],
    sales: dict[str, list[int]],
    output_path: Path,
    today: date | None = None,
) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = SHEET_NAMES[0]
    headers = [label for _, label in TALENT_COLUMNS]
    body = [_talent_row(record) for record in records]
    ws1.append(headers)
    for record, row in zip(records, body):
        ws1.append(row)
        if needs_renewal_alert(record.get("contract_end_date"), today):
            for cell in ws1[ws1.max_row]:
                cell.fill = FILL_RENEWAL
    _style_sheet(ws1, _infer_col_widths([headers] + body), "4472C4")

    ws2 = wb.create_sheet(SHEET_NAMES[1])
    sales_header = ["区分", *MONTH_LABELS, "合計"]
    ws2.append(sales_header)
    for year_type in YEAR_TYPES:
        series = list(sales.get(year_type) or [0] * len(MONTH_LABELS))
        ws2.append([year_type, *series, sum(series)])
    for row in ws2.iter_rows(min_row=2, min_col=2):
        for cell in row:
            cell.number_format = "#,##0"
    _style_sheet(ws2, [12] + [12] * len(MONTH_LABELS) + [14], "4CAF50")

    wb.save(output_path)
    return output_path
