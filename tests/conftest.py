"""Shared fixtures for the StudyFlow test suite."""
from datetime import date, timedelta
from uuid import uuid4

import pytest

from models import Event, EventType


TODAY = date(2026, 10, 19)  # a Monday


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_event(today):
    """Build an Event `days` days from today."""

    def _make(days=1, type=EventType.TEST, subject=None, title="Event"):
        return Event(
            id=str(uuid4()),
            title=title,
            date=today + timedelta(days=days),
            type=type,
            subject=subject,
        )

    return _make


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the data directory at a temporary folder."""
    monkeypatch.setenv("STUDYFLOW_DATA_DIR", str(tmp_path))
    return tmp_path
