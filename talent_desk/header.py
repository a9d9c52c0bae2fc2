from __future__ import annotations

from talent_desk.shared import (
    HEADER_SEARCH_WINDOW,
    MIN_KEYWORD_MATCHES,
    HeaderNotFound,
    ImportKind,
    keyword_pattern,
)


def _joined_row_text(row: list[str]) -> str:
    return " | ".join(cell.strip() for cell in row if cell.strip())


def _whole_cell_hits(row: list[str], keywords: tuple[str, ...] | list[str]) -> set[str]:
    cells = {" ".join(cell.split()).lower() for cell in row if cell.strip()}
    return {token for token in keywords if token.lower() in cells}


def keyword_hits(
    row: list[str],
    keywords: tuple[str, ...] | list[str],
    whole_cell: bool = False,
) -> set[str]:
    """Distinct keywords found in the row's text, or filling a whole cell."""
    if whole_cell:
        return _whole_cell_hits(row, keywords)
    text = _joined_row_text(row)
    if not text:
        return set()
    return {token for token in keywords if keyword_pattern(token).search(text)}


def locate_header(
    rows: list[list[str]],
    keywords: tuple[str, ...] | list[str],
    min_matches: int = MIN_KEYWORD_MATCHES,
    window: int = HEADER_SEARCH_WINDOW,
    whole_cell: bool = False,
) -> int | None:
    for idx, row in enumerate(rows[:window]):
        if len(keyword_hits(row, keywords, whole_cell)) >= min_matches:
            return idx
    return None


def require_header(rows: list[list[str]], kind: ImportKind) -> int:
    idx = locate_header(
        rows,
        kind.header_keywords,
        kind.min_matches,
        whole_cell=kind.header_whole_cell,
    )
    if idx is None:
        raise HeaderNotFound(kind)
    return idx
