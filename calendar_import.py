from __future__ import annotations
import re
from datetime import datetime, date
from typing import List, Optional
from uuid import uuid4
from icalendar import Calendar
from loguru import logger
from catalog import ALL_SUBJECTS
from models import Event, EventType

TEST_KEYWORDS = ("test", "exam", "quiz", "midterm", "final")
ASSIGNMENT_KEYWORDS = ("assignment", "homework", "report", "essay", "due")


def _normalize_to_date(value) -> date | None:
    dt_value = getattr(value, "dt", value)

    if isinstance(dt_value, datetime):
        if dt_value.tzinfo:
            dt_value = dt_value.astimezone()
        return dt_value.date()
    if isinstance(dt_value, date):
        return dt_value
    return None


def _has_keyword(text: str, keywords: tuple) -> bool:
    return any(re.search(rf"\b{k}", text) for k in keywords)


def guess_event_type(summary: str) -> EventType:
    text = summary.lower()
    if _has_keyword(text, TEST_KEYWORDS):
        return EventType.TEST
    if _has_keyword(text, ASSIGNMENT_KEYWORDS):
        return EventType.ASSIGNMENT
    return EventType.OTHER


def _categories(component) -> List[str]:
    raw = component.get("CATEGORIES")
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else [raw]
    out: List[str] = []
    for item in items:
        cats = getattr(item, "cats", None)
        if cats is None:
            cats = str(item).split(",")
        out.extend(str(c).strip() for c in cats if str(c).strip())
    return out


def guess_subject(summary: str, categories: List[str] | None = None) -> Optional[str]:
    if categories:
        return categories[0]
    text = summary.lower()
    # Longest names first so "Math A" does not shadow "Math I-alpha"
    for s in sorted(ALL_SUBJECTS, key=lambda x: len(x.name), reverse=True):
        if s.name.lower() in text:
            return s.name
    return None


def parse_ics_bytes(data: bytes) -> List[Event]:
    cal = Calendar.from_ical(data)
    out: List[Event] = []

    for component in cal.walk():
        if component.name != "VEVENT":
            continue

        summary = str(component.get("SUMMARY", "Untitled"))
        dtstart = component.get("DTSTART")
        if not dtstart:
            continue

        day = _normalize_to_date(dtstart)
        if day is None:
            continue

        out.append(Event(
            id=str(uuid4()),
            title=summary,
            date=day,
            type=guess_event_type(summary),
            subject=guess_subject(summary, _categories(component)),
        ))

    logger.info(f"Parsed {len(out)} events from calendar file")
    return sorted(out, key=lambda x: x.date)
