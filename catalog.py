from __future__ import annotations
from typing import List
from models import Subject


FREE_STUDY = "free study"
ARTS_TOKEN = "arts"
MATH_TOKEN = "math"

CORE_SUBJECTS: List[Subject] = [
    Subject(name="Modern Japanese", priority=1, color="text-blue-700", bg_color="bg-blue-100", min_time=10, max_ratio=0.25),
    Subject(name="Language and Culture", priority=2, color="text-indigo-700", bg_color="bg-indigo-100", min_time=10, max_ratio=0.25),
    Subject(name="Math I-alpha", priority=3, color="text-purple-700", bg_color="bg-purple-100", min_time=15, max_ratio=0.3),
    Subject(name="Math I-beta", priority=4, color="text-violet-700", bg_color="bg-violet-100", min_time=15, max_ratio=0.3),
    Subject(name="Math A", priority=5, color="text-pink-700", bg_color="bg-pink-100", min_time=15, max_ratio=0.25),
    Subject(name="English Communication I", priority=6, color="text-green-700", bg_color="bg-green-100", min_time=10, max_ratio=0.25),
    Subject(name="Logic and Expression I", priority=7, color="text-emerald-700", bg_color="bg-emerald-100", min_time=10, max_ratio=0.2),
    Subject(name="Basic Chemistry", priority=8, color="text-orange-700", bg_color="bg-orange-100", min_time=10, max_ratio=0.25),
    Subject(name="Basic Physics", priority=9, color="text-amber-700", bg_color="bg-amber-100", min_time=10, max_ratio=0.25),
    Subject(name="Basic Biology", priority=10, color="text-lime-700", bg_color="bg-lime-100", min_time=10, max_ratio=0.25),
    Subject(name="Modern History", priority=11, color="text-red-700", bg_color="bg-red-100", min_time=10, max_ratio=0.2),
]

OPTIONAL_SUBJECTS: List[Subject] = [
    Subject(name="Music", priority=12, color="text-cyan-700", bg_color="bg-cyan-100", min_time=5, max_ratio=0.15, is_optional=True),
    Subject(name="Calligraphy", priority=12, color="text-slate-700", bg_color="bg-slate-100", min_time=5, max_ratio=0.15, is_optional=True),
    Subject(name="Art", priority=12, color="text-rose-700", bg_color="bg-rose-100", min_time=5, max_ratio=0.15, is_optional=True),
    Subject(name="Health", priority=13, color="text-teal-700", bg_color="bg-teal-100", min_time=5, max_ratio=0.1, is_optional=True),
    Subject(name="Science and Information", priority=14, color="text-sky-700", bg_color="bg-sky-100", min_time=5, max_ratio=0.15, is_optional=True),
]

# Subjects an "arts" event covers
ARTS_SUBJECTS = frozenset({"Music", "Calligraphy", "Art"})

ALL_SUBJECTS: List[Subject] = CORE_SUBJECTS + OPTIONAL_SUBJECTS

FREE_STUDY_SUBJECT = Subject(
    name=FREE_STUDY,
    priority=0,
    color="text-purple-700",
    bg_color="bg-purple-100",
    min_time=1,
    max_ratio=1.0,
)


def subject_names(include_free_study: bool = True) -> List[str]:
    names = [s.name for s in ALL_SUBJECTS]
    if include_free_study:
        names.append(FREE_STUDY)
    return names
