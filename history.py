from __future__ import annotations
from datetime import date, timedelta
from typing import Dict, List, Tuple
from models import SessionType, StudySession


TYPE_LABELS = {
    SessionType.PLANNED: "Planned study",
    SessionType.FREE: "Free study",
    SessionType.EXTENDED: "Extended study",
}


def week_start(today: date) -> date:
    # Weeks start on Sunday
    return today - timedelta(days=(today.weekday() + 1) % 7)


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def minutes_by_subject(sessions: List[StudySession]) -> List[Tuple[str, int]]:
    totals: Dict[str, int] = {}
    for s in sessions:
        totals[s.subject] = totals.get(s.subject, 0) + s.duration
    return sorted(totals.items(), key=lambda x: x[1], reverse=True)


def summarize_sessions(sessions: List[StudySession], today: date | None = None) -> dict:
    today = today or date.today()
    start = week_start(today)

    by_subject = minutes_by_subject(sessions)
    share_rows = by_subject[:8]
    share_total = sum(m for _, m in share_rows)

    return {
        "today_minutes": sum(s.duration for s in sessions if s.date == today),
        "week_minutes": sum(s.duration for s in sessions if s.date >= start),
        "total_minutes": sum(s.duration for s in sessions),
        "session_count": len(sessions),
        "top_subjects": by_subject[:5],
        "subject_share": [
            (name, minutes, round(minutes / share_total * 100, 1) if share_total else 0.0)
            for name, minutes in share_rows
        ],
        "recent": sorted(sessions, key=lambda s: s.date, reverse=True)[:10],
    }
