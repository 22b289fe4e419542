from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from enum import Enum
from typing import List, Optional


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    priority: int
    color: str = "text-gray-700"
    bg_color: str = "bg-gray-100"
    min_time: int = Field(ge=0)
    max_ratio: float = Field(gt=0, le=1)
    is_optional: bool = False

    def adjusted(self, **changes) -> "Subject":
        """Return a working copy with overridden priority / max_ratio."""
        return self.model_copy(update=changes)


class EventType(str, Enum):
    TEST = "test"
    ASSIGNMENT = "assignment"
    OTHER = "other"


class Event(BaseModel):
    id: str
    title: str
    date: date
    type: EventType = EventType.OTHER
    subject: Optional[str] = None


class PlanEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    minutes: int
    reason: Optional[str] = None
    color: str = "text-gray-700"
    bg_color: str = "bg-gray-100"


class SessionType(str, Enum):
    PLANNED = "planned"
    FREE = "free"
    EXTENDED = "extended"


class StudySession(BaseModel):
    id: str
    subject: str
    duration: int = Field(gt=0)  # minutes
    date: date
    type: SessionType = SessionType.FREE
    notes: str = ""


class Settings(BaseModel):
    default_minutes: int = Field(default=60, ge=1, le=600)
    default_subject_count: Optional[int] = Field(default=None, ge=1, le=16)
    recommend_window_days: int = Field(default=3, ge=0, le=14)
    export_start_hour: int = Field(default=18, ge=0, le=23)
    show_tips: bool = True


class AppState(BaseModel):
    events: List[Event] = Field(default_factory=list)
    sessions: List[StudySession] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)
    preferred_subjects: List[str] = Field(default_factory=list)
    last_plan: List[PlanEntry] = Field(default_factory=list)
    last_total_minutes: Optional[int] = None
    profile: str = "default"
