from __future__ import annotations
from datetime import datetime, timedelta
from typing import List
from uuid import uuid4
from icalendar import Calendar, Event as IcsEvent
from models import PlanEntry


def plan_to_ics(
    plan: List[PlanEntry],
    start: datetime,
    break_minutes: int = 0,
) -> bytes:
    """
    Lay the plan out as back-to-back calendar blocks starting at `start`,
    with an optional gap between subjects. Naive datetimes are taken as
    local time.
    """
    cal = Calendar()
    cal.add("PRODID", "-//StudyFlow//Local//")
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", "Study Plan")

    if start.tzinfo is None:
        start = start.astimezone()

    cursor = start
    batch = uuid4().hex[:8]
    for i, entry in enumerate(plan):
        end = cursor + timedelta(minutes=entry.minutes)
        event = IcsEvent()
        event.add("uid", f"{batch}-{i}-{cursor.strftime('%Y%m%dT%H%M')}@studyflow")
        event.add("summary", f"Study: {entry.subject}")
        event.add("dtstart", cursor)
        event.add("dtend", end)
        desc = f"{entry.minutes} minutes planned"
        if entry.reason:
            desc += f" ({entry.reason})"
        event.add("description", desc + ".")
        cal.add_component(event)
        cursor = end
        if i < len(plan) - 1:
            cursor += timedelta(minutes=break_minutes)

    return cal.to_ical()
