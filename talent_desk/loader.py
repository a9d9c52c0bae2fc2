"""
loader.py — Bytes in, import result out.

Spreadsheet exports from Japanese Excel are usually Shift_JIS; files saved from
other tools are UTF-8. ``import_bytes`` decodes with a primary encoding, and if
no header row turns up it retries the whole pipeline once with a fallback
encoding before giving up.

Public API:
    result = import_file("sales.csv", "talent-sales", records=talents)
    result = import_bytes(raw, "company-sales/current", sales=sales)
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import chardet

from talent_desk.pipeline import run_import
from talent_desk.shared import (
    CHARDET_MIN_CONFIDENCE,
    DEFAULT_FALLBACK_ENCODING,
    DEFAULT_PRIMARY_ENCODING,
    EncodingMismatch,
    HeaderNotFound,
    ImportResult,
)

# chardet names mapped onto the Python codec that reads the same files
# without losing vendor-specific characters.
ENCODING_ALIASES = {
    "shift_jis": "cp932",
    "sjis": "cp932",
    "windows-31j": "cp932",
    "ascii": "utf-8",
    "utf-8-sig": "utf-8",
}


def canonical_encoding(name: str | None) -> str | None:
    if not name:
        return None
    lowered = name.strip().lower().replace("_", "-")
    return ENCODING_ALIASES.get(lowered, ENCODING_ALIASES.get(lowered.replace("-", "_"), lowered))


def detect_encoding_info(raw: bytes) -> dict:
    """
    Detect encoding from raw bytes.

    Returns dict with: detected, confidence, is_utf8.
    """
    result = chardet.detect(raw)
    detected = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8 = detected.upper().replace("-", "") in ("UTF8", "ASCII", "UTF8SIG")
    return {
        "detected": detected,
        "confidence": confidence,
        "is_utf8": is_utf8,
    }


def choose_encodings(
    raw: bytes,
    encoding: str | None = None,
    fallback_encoding: str | None = None,
) -> tuple[str, str]:
    """Primary and fallback encodings for one import.

    Without an explicit choice, detection only decides the order of the two
    defaults: confident UTF-8 goes first, anything else starts with Shift_JIS.
    """
    primary = canonical_encoding(encoding)
    if primary is None:
        info = detect_encoding_info(raw)
        if info["is_utf8"] and info["confidence"] >= CHARDET_MIN_CONFIDENCE:
            primary = DEFAULT_FALLBACK_ENCODING
        else:
            primary = DEFAULT_PRIMARY_ENCODING
    fallback = canonical_encoding(fallback_encoding)
    if fallback is None:
        fallback = DEFAULT_PRIMARY_ENCODING if primary == DEFAULT_FALLBACK_ENCODING else DEFAULT_FALLBACK_ENCODING
    return primary, fallback


def decode_bytes(raw: bytes, encoding: str) -> str:
    try:
        return raw.decode(encoding, errors="replace").replace("\x00", "")
    except LookupError as exc:
        raise ValueError(f"Unknown text encoding: {encoding}") from exc


def import_bytes(
    raw: bytes,
    kind_name: str,
    records: list[dict[str, Any]] | None = None,
    sales: dict[str, list[int]] | None = None,
    encoding: str | None = None,
    fallback_encoding: str | None = None,
    today: date | None = None,
) -> ImportResult:
    primary, fallback = choose_encodings(raw, encoding, fallback_encoding)
    try:
        result = run_import(decode_bytes(raw, primary), kind_name, records, sales, today)
        result.encoding = primary
        return result
    except HeaderNotFound as first_failure:
        if fallback == primary:
            raise EncodingMismatch(
                f"{first_failure} (tried encoding {primary})", first_failure.kind
            ) from first_failure
        try:
            result = run_import(decode_bytes(raw, fallback), kind_name, records, sales, today)
        except HeaderNotFound as second_failure:
            raise EncodingMismatch(
                f"{second_failure} (tried encodings {primary} and {fallback})",
                second_failure.kind,
            ) from second_failure
        result.encoding = fallback
        result.warnings.insert(
            0, f"No header found when read as {primary}; imported as {fallback} instead."
        )
        return result


def import_file(path: str | Path, kind_name: str, **kwargs: Any) -> ImportResult:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return import_bytes(path.read_bytes(), kind_name, **kwargs)
