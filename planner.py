from __future__ import annotations
import math
import time
from datetime import date, timedelta
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Tuple
from loguru import logger
from catalog import (
    ARTS_SUBJECTS,
    ARTS_TOKEN,
    CORE_SUBJECTS,
    FREE_STUDY,
    FREE_STUDY_SUBJECT,
    MATH_TOKEN,
    OPTIONAL_SUBJECTS,
)
from errors import InvalidInputError
from models import Event, EventType, PlanEntry, Subject


RELEVANCE_WINDOW_DAYS = 30
TEST_WINDOW_DAYS = 7
PREFERRED_PRIORITY_BONUS = 10
MAX_BOOSTED_RATIO = 0.7
STEP_MINUTES = 5


def _in_window(d: date, today: date, days: int) -> bool:
    return today <= d <= today + timedelta(days=days)


def _subject_matches(subject_name: str, event_subject: str, math_rule: bool = False) -> bool:
    name = subject_name.lower()
    text = event_subject.lower()
    if name in text or text in name:
        return True
    if math_rule and MATH_TOKEN in text and MATH_TOKEN in name:
        return True
    return ARTS_TOKEN in text and subject_name in ARTS_SUBJECTS


def _event_subject(ev: Event) -> str:
    return (ev.subject or "").strip()


def relevant_optional_subjects(
    events: Iterable[Event],
    today: date | None = None,
    optional_subjects: List[Subject] | None = None,
) -> List[Subject]:
    """
    Optional subjects referenced by an event in the next 30 days,
    deduplicated by name in first-seen order. An "arts" event pulls in
    every arts subject.
    """
    today = today or date.today()
    optional_subjects = OPTIONAL_SUBJECTS if optional_subjects is None else optional_subjects
    relevant: List[Subject] = []
    for ev in events:
        text = _event_subject(ev)
        if not text or not _in_window(ev.date, today, RELEVANCE_WINDOW_DAYS):
            continue
        for s in optional_subjects:
            if _subject_matches(s.name, text) and all(r.name != s.name for r in relevant):
                relevant.append(s)
    return relevant


def _reason_for(ev: Event) -> str:
    return "test prep" if ev.type == EventType.TEST else "assignment prep"


def _target_subject_count(total_minutes: int) -> int:
    if total_minutes < 30:
        return 2
    if total_minutes < 60:
        return 4
    if total_minutes < 90:
        return 6
    if total_minutes < 120:
        return 8
    return 10


def _tie_broken_sort(subjects: List[Subject], seed: float) -> List[Subject]:
    # Near-equal priorities are ordered by a seeded draw so a reshuffle
    # with a new seed gives a different plan.
    def compare(a: Subject, b: Subject) -> int:
        diff = a.priority - b.priority
        if abs(diff) <= 2:
            return 1 if math.sin(seed + a.priority + b.priority) > 0 else -1
        return diff

    return sorted(subjects, key=cmp_to_key(compare))


def boost_for_test(subject: Subject, days_until: int) -> Subject:
    """
    Working copy of `subject` for a test `days_until` days away: the closer
    the test, the lower (more urgent) the priority, and the share cap is
    raised by 0.3 up to 0.7.
    """
    urgency_boost = max(1, 8 - days_until)
    return subject.adjusted(
        priority=max(1, subject.priority - urgency_boost * 5),
        max_ratio=min(MAX_BOOSTED_RATIO, subject.max_ratio + 0.3),
    )


def _single_entry(subject: Subject, minutes: int) -> List[PlanEntry]:
    return [PlanEntry(
        subject=subject.name,
        minutes=minutes,
        color=subject.color,
        bg_color=subject.bg_color,
    )]


def allocate_plan(
    total_minutes: int,
    events: List[Event] | None = None,
    preferred_subjects: Iterable[str] | None = None,
    subject_count: Optional[int] = None,
    seed: Optional[float] = None,
    today: date | None = None,
) -> List[PlanEntry]:
    if total_minutes <= 0:
        raise InvalidInputError("Study time must be a positive number of minutes.")
    if subject_count is not None and subject_count < 0:
        raise InvalidInputError("Number of subjects cannot be negative.")

    events = events or []
    preferred = list(dict.fromkeys(preferred_subjects or []))
    preferred_set = set(preferred)
    today = today or date.today()
    seed = time.time() if seed is None else seed

    if FREE_STUDY in preferred_set:
        return _single_entry(FREE_STUDY_SUBJECT, total_minutes)

    if total_minutes < 10:
        return _single_entry(CORE_SUBJECTS[0], total_minutes)

    upcoming_tests = [
        ev for ev in events
        if ev.type == EventType.TEST and _in_window(ev.date, today, TEST_WINDOW_DAYS)
    ]
    tracked = [
        ev for ev in events
        if ev.type in (EventType.TEST, EventType.ASSIGNMENT)
        and _in_window(ev.date, today, TEST_WINDOW_DAYS)
        and _event_subject(ev)
    ]

    available = CORE_SUBJECTS + relevant_optional_subjects(events, today)
    candidates = [
        s.adjusted(priority=s.priority - PREFERRED_PRIORITY_BONUS) if s.name in preferred_set else s
        for s in available
    ]

    for test in upcoming_tests:
        text = _event_subject(test)
        if not text:
            continue
        idx = next(
            (i for i, s in enumerate(candidates) if _subject_matches(s.name, text, math_rule=True)),
            None,
        )
        if idx is None:
            continue
        days_until = (test.date - today).days
        current = candidates[idx]
        candidates[idx] = boost_for_test(current, days_until)
        logger.debug(
            f"Test '{test.title}' in {days_until} day(s) moves {current.name} "
            f"to priority {candidates[idx].priority}"
        )

    ordered = _tie_broken_sort(candidates, seed)
    target = subject_count if subject_count else _target_subject_count(total_minutes)

    if preferred_set:
        ordered = (
            [s for s in ordered if s.name in preferred_set]
            + [s for s in ordered if s.name not in preferred_set]
        )
    selected = ordered[:target]
    logger.debug(f"Selected subjects: {[s.name for s in selected]}")

    remaining = total_minutes
    allocations: List[Dict] = []
    for s in selected:
        base = min(s.min_time, remaining // len(selected))
        minutes = math.ceil(base / STEP_MINUTES) * STEP_MINUTES
        # Rounding up must not overdraw the session
        minutes = min(minutes, remaining)
        reason_event = next(
            (ev for ev in tracked if _subject_matches(s.name, _event_subject(ev), math_rule=True)),
            None,
        )
        allocations.append({
            "subject": s,
            "minutes": minutes,
            "reason": _reason_for(reason_event) if reason_event else None,
        })
        remaining -= minutes

    count = len(allocations)
    while remaining > 0 and count:
        allocated = False
        start = math.floor(abs(math.sin(seed)) * count)
        for j in range(count):
            i = (start + j) % count
            entry = allocations[i]
            max_time = math.floor(total_minutes * entry["subject"].max_ratio)
            if entry["minutes"] < max_time and remaining > 0:
                base_increment = 10 if abs(math.sin(seed + i)) > 0.5 else 5
                increment = min(
                    base_increment,
                    (remaining // STEP_MINUTES) * STEP_MINUTES,
                    max_time - entry["minutes"],
                )
                if increment >= STEP_MINUTES:
                    entry["minutes"] += increment
                    remaining -= increment
                    allocated = True
        if not allocated:
            break

    if remaining > 0 and allocations:
        allocations[0]["minutes"] += remaining
        remaining = 0

    plan = [
        PlanEntry(
            subject=a["subject"].name,
            minutes=a["minutes"],
            reason=a["reason"],
            color=a["subject"].color,
            bg_color=a["subject"].bg_color,
        )
        for a in allocations
        if a["minutes"] > 0
    ]
    plan.sort(key=lambda p: p.minutes, reverse=True)
    logger.info(
        f"Plan for {total_minutes}m: "
        + ", ".join(f"{p.subject}={p.minutes}m" for p in plan)
    )
    return plan


def plan_total(plan: List[PlanEntry]) -> int:
    return sum(p.minutes for p in plan)


def upcoming_subject_events(
    events: Iterable[Event],
    today: date | None = None,
    window_days: int = 3,
) -> List[Event]:
    today = today or date.today()
    out = [ev for ev in events if _event_subject(ev) and _in_window(ev.date, today, window_days)]
    return sorted(out, key=lambda ev: ev.date)


def recommend_subjects(
    events: Iterable[Event],
    preferred_subjects: Iterable[str] = (),
    today: date | None = None,
    window_days: int = 3,
) -> List[str]:
    """
    Subjects with an event in the next few days that the user has not
    already asked for, in first-seen order.
    """
    preferred = set(preferred_subjects)
    out: List[str] = []
    for ev in events:
        text = _event_subject(ev)
        if not text:
            continue
        if not _in_window(ev.date, today or date.today(), window_days):
            continue
        if text not in out and text not in preferred:
            out.append(text)
    return out


def accept_recommendations(
    preferred_subjects: List[str],
    recommended: List[str],
    subject_count: Optional[int] = None,
) -> Tuple[List[str], int]:
    new_preferred = list(preferred_subjects) + [s for s in recommended if s not in preferred_subjects]
    new_count = max(subject_count or 0, len(new_preferred))
    return new_preferred, new_count


def describe_days_until(event_date: date, today: date | None = None) -> str:
    days = (event_date - (today or date.today())).days
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"
