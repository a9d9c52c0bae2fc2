"""
roster.py — Talent records and edits, offline demo data, JSON persistence.

Records are plain dicts keyed by ``TALENT_FIELDS``. The JSON files written here
stand in for the backing store in demo mode (roster, company sales and
lessons); every save writes the whole collection.
"""

from __future__ import annotations

import copy
import json
import random
import uuid
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pandas as pd

from talent_desk.normalization import calculate_age
from talent_desk.shared import FIELD_DEFAULTS, MAX_RATING, MONTH_FIELDS, TALENT_FIELDS, YEAR_TYPES

DEMO_NAMES = [
    "織田 エミリ", "徳田 皓己", "山中 啓伍", "坂本 珠里", "杉村 龍之助",
    "黒川 大聖", "若林 元太", "生田 俊平", "山田 杏華", "林 純一郎",
    "望月 亮人", "村澤 瑠依", "ドンジュン", "田中 美咲", "鈴木 大輔",
]


def generate_id() -> str:
    return uuid.uuid4().hex


def new_talent(**fields: Any) -> dict[str, Any]:
    record: dict[str, Any] = {"id": generate_id()}
    record.update(copy.deepcopy(FIELD_DEFAULTS))
    record["monthly_sales"] = [0] * len(MONTH_FIELDS)
    record.update(fields)
    return record


def empty_company_sales() -> dict[str, list[int]]:
    return {key: [0] * len(MONTH_FIELDS) for key in YEAR_TYPES}


# ── Roster edits ───────────────────────────────────────────────────────────────
# Each edit returns a new list; the caller persists it as a whole.

# age and average_sales are derived, never edited directly.
EDITABLE_FIELDS = tuple(key for key in FIELD_DEFAULTS if key not in ("age", "average_sales"))


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(
            f"Unknown talent field(s): {', '.join(unknown)}. Editable: {', '.join(EDITABLE_FIELDS)}"
        )
    if "name" in fields and not str(fields["name"] or "").strip():
        raise ValueError("A talent needs a non-empty name.")
    if "rating" in fields and not 0 <= int(fields["rating"]) <= MAX_RATING:
        raise ValueError(f"Rating must be between 0 and {MAX_RATING}, got {fields['rating']}")


def _position(records: list[dict[str, Any]], talent_id: str) -> int:
    for idx, record in enumerate(records):
        if record.get("id") == talent_id:
            return idx
    raise ValueError(f"No talent with id {talent_id}")


def add_talent(
    records: list[dict[str, Any]],
    *,
    today: date | None = None,
    **fields: Any,
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Append a new active talent; returns the new list and the created record."""
    if "name" not in fields:
        raise ValueError("A talent needs a non-empty name.")
    _check_fields(fields)
    record = new_talent(**fields)
    record["age"] = calculate_age(record["birth_date"], today)
    return [copy.deepcopy(r) for r in records] + [record], record


def update_talent(
    records: list[dict[str, Any]],
    talent_id: str,
    *,
    today: date | None = None,
    **fields: Any,
) -> list[dict[str, Any]]:
    _check_fields(fields)
    updated = [copy.deepcopy(r) for r in records]
    target = updated[_position(updated, talent_id)]
    target.update(copy.deepcopy(fields))
    if "birth_date" in fields:
        target["age"] = calculate_age(target["birth_date"], today)
    return updated


def delete_talent(records: list[dict[str, Any]], talent_id: str) -> list[dict[str, Any]]:
    _position(records, talent_id)
    return [copy.deepcopy(r) for r in records if r.get("id") != talent_id]


def set_evaluation(
    records: list[dict[str, Any]],
    talent_id: str,
    rating: int,
    note: str | None = None,
) -> list[dict[str, Any]]:
    fields: dict[str, Any] = {"rating": int(rating)}
    if note is not None:
        fields["evaluation_note"] = note.strip() or FIELD_DEFAULTS["evaluation_note"]
    return update_talent(records, talent_id, **fields)


def generate_demo_roster(today: date | None = None, seed: int = 0) -> list[dict[str, Any]]:
    """Fifteen demo talents; the first two have birthdays in the next couple of days."""
    today = today or date.today()
    rng = random.Random(seed)
    roster = []
    for i, name in enumerate(DEMO_NAMES):
        if i < 2:
            upcoming = today + timedelta(days=i + 1)
            b_month, b_day = upcoming.month, upcoming.day
        else:
            b_month, b_day = (i % 12) + 1, (i % 28) + 1
        if (b_month, b_day) == (2, 29):
            b_day = 28
        birth_date = f"2000-{b_month:02d}-{b_day:02d}"
        sales = rng.randint(1_000_000, 5_999_999)
        roster.append(
            new_talent(
                name=name,
                gender="女" if i % 5 == 4 else "男",
                email=f"talent{i}@agency.co.jp",
                birth_date=birth_date,
                age=calculate_age(birth_date, today),
                contract_date="2020-04-01",
                contract_end_date=f"{today.year}-{(i % 9) + 1:02d}-01",
                rating=(i % 5) + 1,
                evaluation_note="特になし",
                height=str(160 + i),
                weight=str(50 + i),
                bust="85",
                waist="60",
                hip="88",
                shoe_size="24.5",
                bank_name="〇〇銀行",
                branch_name="本店",
                account_number="1234567",
                account_holder=name,
                total_sales=sales,
            )
        )
    return roster


# ── JSON persistence ───────────────────────────────────────────────────────────

def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not read {path}: {exc}") from exc


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


def load_roster(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    payload = _read_json(path)
    if not isinstance(payload, list):
        raise ValueError(f"Roster file {path} must contain a JSON list of talents.")
    return payload


def save_roster(path: Path, records: list[dict[str, Any]]) -> None:
    _write_json(path, records)


def load_company_sales(path: Path) -> dict[str, list[int]]:
    if not path.exists():
        return empty_company_sales()
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Company sales file {path} must contain a JSON object.")
    sales = empty_company_sales()
    for key in YEAR_TYPES:
        values = payload.get(key)
        if isinstance(values, list) and len(values) == len(MONTH_FIELDS):
            sales[key] = [int(v or 0) for v in values]
    return sales


def save_company_sales(path: Path, sales: dict[str, list[int]]) -> None:
    _write_json(path, sales)


def load_lessons(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    payload = _read_json(path)
    if not isinstance(payload, list):
        raise ValueError(f"Lessons file {path} must contain a JSON list of lessons.")
    return payload


def save_lessons(path: Path, lessons: list[dict[str, Any]]) -> None:
    _write_json(path, lessons)


def roster_frame(records: list[dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(records, columns=TALENT_FIELDS)
    df["total_sales"] = pd.to_numeric(df["total_sales"], errors="coerce").fillna(0).astype("int64")
    df["status"] = df["status"].fillna("").replace("", FIELD_DEFAULTS["status"])
    df["name"] = df["name"].fillna("")
    return df
