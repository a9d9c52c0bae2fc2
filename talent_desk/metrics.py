from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import pandas as pd

from talent_desk.normalization import parse_iso_date
from talent_desk.roster import roster_frame
from talent_desk.shared import BIRTHDAY_WINDOW_DAYS, RENEWAL_ALERT_MONTHS, TOP_TALENTS_LIMIT


def _active(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [r for r in records if (r.get("status") or "active") == "active"]


def months_until(end: date, today: date) -> int:
    return (end.year - today.year) * 12 + (end.month - today.month)


def needs_renewal_alert(contract_end_date: str | None, today: date | None = None) -> bool:
    """Contract ends this month or within the next seven calendar months."""
    end = parse_iso_date(contract_end_date)
    if end is None:
        return False
    diff = months_until(end, today or date.today())
    return 0 <= diff <= RENEWAL_ALERT_MONTHS


def _birthday_in_year(born: date, year: int) -> date:
    try:
        return born.replace(year=year)
    except ValueError:
        # 29 February outside a leap year
        return date(year, 3, 1)


def next_birthday(birth_date: str | None, today: date) -> date | None:
    born = parse_iso_date(birth_date)
    if born is None:
        return None
    upcoming = _birthday_in_year(born, today.year)
    if upcoming < today:
        upcoming = _birthday_in_year(born, today.year + 1)
    return upcoming


def upcoming_birthdays(
    records: list[dict[str, Any]],
    today: date | None = None,
    days: int = BIRTHDAY_WINDOW_DAYS,
) -> list[dict[str, Any]]:
    today = today or date.today()
    last_day = today + timedelta(days=days - 1)
    hits = []
    for record in _active(records):
        upcoming = next_birthday(record.get("birth_date"), today)
        if upcoming is not None and upcoming <= last_day:
            hits.append((upcoming, record))
    hits.sort(key=lambda item: item[0])
    return [record for _, record in hits]


def top_talents(records: list[dict[str, Any]], limit: int = TOP_TALENTS_LIMIT) -> list[dict[str, Any]]:
    df = roster_frame(records)
    df["_pos"] = range(len(df))
    df = df[df["status"] == "active"]
    ranked = df.sort_values("total_sales", ascending=False, kind="mergesort").head(limit)
    return [records[pos] for pos in ranked["_pos"]]


def dedupe_by_name(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep the first talent for each name, ignoring whitespace inside names."""
    df = roster_frame(records)
    df["_pos"] = range(len(df))
    df["_key"] = df["name"].astype(str).str.replace(r"\s+", "", regex=True)
    kept = df.drop_duplicates(subset="_key", keep="first")
    return [records[pos] for pos in kept["_pos"]]


def monthly_average(record: dict[str, Any]) -> int:
    average = record.get("average_sales")
    if average is not None:
        return int(average)
    return int(record.get("total_sales") or 0) // 12


def sales_growth(sales: dict[str, list[int]]) -> float:
    current = sum(sales.get("current") or [])
    previous = sum(sales.get("previous") or [])
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def dashboard_summary(
    records: list[dict[str, Any]],
    sales: dict[str, list[int]],
    today: date | None = None,
) -> dict[str, Any]:
    today = today or date.today()
    active = _active(records)
    return {
        "as_of": today.isoformat(),
        "talents_total": len(records),
        "talents_active": len(active),
        "company_sales": {
            "current_total": sum(sales.get("current") or []),
            "previous_total": sum(sales.get("previous") or []),
            "growth_percent": sales_growth(sales),
        },
        "renewal_alerts": [
            {"name": r.get("name", ""), "contract_end_date": r.get("contract_end_date", "")}
            for r in records
            if needs_renewal_alert(r.get("contract_end_date"), today)
        ],
        "upcoming_birthdays": [
            {"name": r.get("name", ""), "birth_date": r.get("birth_date", "")}
            for r in upcoming_birthdays(records, today)
        ],
        "top_talents": [
            {
                "name": r.get("name", ""),
                "total_sales": int(r.get("total_sales") or 0),
                "monthly_average": monthly_average(r),
            }
            for r in top_talents(records)
        ],
    }


TALENT_SORT_KEYS = ("name", "rating", "sales")


def sort_talents(records: list[dict[str, Any]], by: str = "name") -> list[dict[str, Any]]:
    """Roster order for listings: by name, or by rating or sales, highest first."""
    if by not in TALENT_SORT_KEYS:
        raise ValueError(f"Unknown sort key '{by}'. Supported: {', '.join(TALENT_SORT_KEYS)}")
    df = roster_frame(records)
    df["_pos"] = range(len(df))
    if by == "name":
        ranked = df.sort_values("name", kind="mergesort")
    elif by == "rating":
        df["rating"] = pd.to_numeric(df["rating"], errors="coerce").fillna(0)
        ranked = df.sort_values("rating", ascending=False, kind="mergesort")
    else:
        ranked = df.sort_values("total_sales", ascending=False, kind="mergesort")
    return [records[pos] for pos in ranked["_pos"]]
