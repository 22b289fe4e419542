from __future__ import annotations
from typing import List
from catalog import MATH_TOKEN
from models import PlanEntry


def study_tips(total_minutes: int, plan: List[PlanEntry]) -> List[str]:
    tips: List[str] = []

    # Work/break cycle suited to the session length
    if total_minutes >= 100:
        tips.append("Try the pomodoro technique: 25 minutes of study, then a 5 minute break.")
    elif total_minutes >= 60:
        tips.append("Keep your focus with a 20 minute study / 5 minute break cycle.")
    elif total_minutes >= 40:
        tips.append("Work in 15 minute blocks with 3 minute breaks to stay efficient.")
    elif total_minutes >= 25:
        tips.append("Use short 10 minute blocks with 2 minute breaks and stay focused.")
    else:
        tips.append("It's a short session, so focus and get through it in one go.")

    if len(plan) >= 5:
        tips.append("Take a 3-5 minute break whenever you switch subjects.")
    elif len(plan) >= 3:
        tips.append("Start with your weakest subject so you're fresh for it.")
    elif len(plan) >= 2:
        tips.append("A quick stretch between the two subjects helps you refocus.")

    if any(p.reason for p in plan):
        tips.append("For test prep, focus on past papers and reviewing the key points.")
    else:
        tips.append("Decide what you want to get done today before you start.")

    math_subjects = sum(1 for p in plan if MATH_TOKEN in p.subject.lower())
    if math_subjects >= 2:
        tips.append("Leave time to double-check your work in math to avoid careless mistakes.")

    return tips
