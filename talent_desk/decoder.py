"""
decoder.py — Comma-separated text to rows of string cells.

The input is text the caller has already decoded with its chosen encoding.
Cells are returned exactly as written (no trimming); quoting follows the usual
spreadsheet export rules. An unterminated quote runs to end of input instead
of failing.
"""

from __future__ import annotations

BOM = "\ufeff"
QUOTE = '"'
DELIMITER = ","


def decode_table(text: str) -> list[list[str]]:
    if text.startswith(BOM):
        text = text[1:]

    rows: list[list[str]] = []
    row: list[str] = []
    cell: list[str] = []
    in_quote = False
    # Tracks whether anything has been read since the last row break, so a
    # trailing newline does not produce an extra empty row.
    pending = False
    i = 0
    n = len(text)

    while i < n:
        char = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if in_quote:
            if char == QUOTE and nxt == QUOTE:
                cell.append(QUOTE)
                i += 1
            elif char == QUOTE:
                in_quote = False
            else:
                cell.append(char)
        elif char == QUOTE:
            in_quote = True
            pending = True
        elif char == DELIMITER:
            row.append("".join(cell))
            cell = []
            pending = True
        elif char == "\n" or char == "\r":
            row.append("".join(cell))
            rows.append(row)
            row, cell = [], []
            pending = False
            if char == "\r" and nxt == "\n":
                i += 1
        else:
            cell.append(char)
            pending = True
        i += 1

    if pending or cell or row:
        row.append("".join(cell))
        rows.append(row)
    return rows


def _quote_cell(value: str) -> str:
    if any(ch in value for ch in (DELIMITER, QUOTE, "\r", "\n")):
        return QUOTE + value.replace(QUOTE, QUOTE * 2) + QUOTE
    return value


def encode_table(rows: list[list[str]]) -> str:
    """Serialize rows with the quoting rule ``decode_table`` reads back."""
    return "".join(DELIMITER.join(_quote_cell(str(cell)) for cell in row) + "\n" for row in rows)
