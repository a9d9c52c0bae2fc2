"""
lessons.py — Lesson and event schedule entries.

A lesson is a plain dict keyed by ``id`` plus ``LESSON_FIELDS``. Dates are
stored as ``YYYY-MM-DD`` and times as zero-padded ``HH:MM``.
"""

from __future__ import annotations

import copy
import re
from datetime import date
from typing import Any

from talent_desk.normalization import normalize_date, parse_iso_date
from talent_desk.roster import generate_id

LESSON_FIELDS = ("title", "date", "start_time", "end_time", "type", "location", "instructor")
TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
DEMO_LESSON_COUNT = 5


def normalize_time(value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        return ""
    match = TIME_RE.match(text)
    if not match:
        raise ValueError(f"Time must look like HH:MM, got {text!r}")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def new_lesson(**fields: Any) -> dict[str, Any]:
    unknown = sorted(set(fields) - set(LESSON_FIELDS))
    if unknown:
        raise ValueError(f"Unknown lesson field(s): {', '.join(unknown)}")
    title = str(fields.get("title") or "").strip()
    if not title:
        raise ValueError("A lesson needs a title.")
    lesson_date = normalize_date(str(fields.get("date") or ""))
    if parse_iso_date(lesson_date) is None:
        raise ValueError(f"Lesson date must be YYYY-MM-DD, got {fields.get('date')!r}")
    start = normalize_time(fields.get("start_time"))
    end = normalize_time(fields.get("end_time"))
    if start and end and end < start:
        raise ValueError(f"Lesson ends ({end}) before it starts ({start}).")

    lesson = {"id": generate_id()}
    for key in LESSON_FIELDS:
        lesson[key] = str(fields.get(key) or "").strip()
    lesson.update(title=title, date=lesson_date, start_time=start, end_time=end)
    return lesson


def add_lesson(
    lessons: list[dict[str, Any]], **fields: Any
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    lesson = new_lesson(**fields)
    return [copy.deepcopy(item) for item in lessons] + [lesson], lesson


def delete_lesson(lessons: list[dict[str, Any]], lesson_id: str) -> list[dict[str, Any]]:
    if not any(item.get("id") == lesson_id for item in lessons):
        raise ValueError(f"No lesson with id {lesson_id}")
    return [copy.deepcopy(item) for item in lessons if item.get("id") != lesson_id]


def sorted_lessons(
    lessons: list[dict[str, Any]],
    since: date | None = None,
) -> list[dict[str, Any]]:
    """Lessons in date and start-time order, optionally only those on or after ``since``."""
    picked = []
    for item in lessons:
        day = parse_iso_date(item.get("date"))
        if since is not None and (day is None or day < since):
            continue
        picked.append(item)
    return sorted(picked, key=lambda item: (item.get("date") or "", item.get("start_time") or ""))


def generate_demo_lessons(today: date | None = None, count: int = DEMO_LESSON_COUNT) -> list[dict[str, Any]]:
    today = today or date.today()
    return [
        new_lesson(
            title=f"演技特別レッスン {i + 1}",
            date=today.isoformat(),
            start_time="13:00",
            end_time="15:00",
            type="Acting",
            location="第1スタジオ",
            instructor="田中コーチ",
        )
        for i in range(count)
    ]
