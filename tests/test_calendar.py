from datetime import date, datetime, timedelta, timezone

from icalendar import Calendar

from calendar_export import plan_to_ics
from calendar_import import guess_event_type, guess_subject, parse_ics_bytes
from models import EventType, PlanEntry
from pdf_export import plan_to_pdf


ICS = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "PRODID:-//test//EN",
    "BEGIN:VEVENT",
    "UID:2@test",
    "SUMMARY:Essay due",
    "DTSTART:20261025T090000",
    "DTEND:20261025T100000",
    "CATEGORIES:Modern History",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:1@test",
    "SUMMARY:Basic Physics test",
    "DTSTART;VALUE=DATE:20261021",
    "DTEND;VALUE=DATE:20261022",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:3@test",
    "SUMMARY:No start",
    "END:VEVENT",
    "END:VCALENDAR",
    "",
]).encode("utf-8")


def test_parse_ics_bytes():
    events = parse_ics_bytes(ICS)
    assert [e.title for e in events] == ["Basic Physics test", "Essay due"]

    physics, essay = events
    assert physics.date == date(2026, 10, 21)
    assert physics.type == EventType.TEST
    assert physics.subject == "Basic Physics"

    assert essay.date == date(2026, 10, 25)
    assert essay.type == EventType.ASSIGNMENT
    assert essay.subject == "Modern History"


def test_guess_event_type():
    assert guess_event_type("Chemistry Quiz") == EventType.TEST
    assert guess_event_type("Math homework") == EventType.ASSIGNMENT
    assert guess_event_type("Club meeting") == EventType.OTHER


def test_guess_subject_prefers_longest_name():
    assert guess_subject("Math I-alpha midterm") == "Math I-alpha"
    assert guess_subject("Dentist") is None
    assert guess_subject("anything", ["Music"]) == "Music"


def test_plan_to_ics_lays_blocks_back_to_back():
    plan = [
        PlanEntry(subject="Math A", minutes=30, reason="test prep"),
        PlanEntry(subject="Modern Japanese", minutes=20),
    ]
    start = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)
    cal = Calendar.from_ical(plan_to_ics(plan, start, break_minutes=5))
    vevents = [c for c in cal.walk() if c.name == "VEVENT"]

    assert [str(v.get("SUMMARY")) for v in vevents] == ["Study: Math A", "Study: Modern Japanese"]
    assert vevents[0].decoded("DTSTART") == start
    assert vevents[0].decoded("DTEND") == start + timedelta(minutes=30)
    assert vevents[1].decoded("DTSTART") == start + timedelta(minutes=35)
    assert "test prep" in str(vevents[0].get("DESCRIPTION"))


def test_plan_to_pdf_produces_a_pdf():
    plan = [PlanEntry(subject="Math A", minutes=30, reason="test prep")]
    data = plan_to_pdf(plan, ["Decide what you want to get done today before you start."], date(2026, 10, 19))
    assert data.startswith(b"%PDF")
