"""
Countdown state machine that walks a user through a study plan.

The machine owns exactly one scheduler. It arms the scheduler when a
countdown starts running and cancels it when the countdown stops or a
different kind of countdown takes over, so there is never more than one
live timer. Pausing suspends the scheduler rather than cancelling it, so
time run before a pause is not lost on resume. Every tick is also checked
against the current state, so a tick that arrives after a reset or quit
does nothing.
"""
from __future__ import annotations
import time
from datetime import date
from enum import Enum
from typing import Callable, List, Literal, Optional, Protocol, Set, Union
from uuid import uuid4
from loguru import logger
from pydantic import BaseModel, ConfigDict
from catalog import FREE_STUDY
from errors import InvalidInputError, InvalidTransitionError
from models import PlanEntry, SessionType, StudySession


TICK_SECONDS = 1.0
BREAK_SECONDS = 5 * 60
MAX_EXTENSION_MINUTES = 60
POMODORO_MINUTES = 60
POMODORO_STUDY_SECONDS = 25 * 60
POMODORO_BREAK_SECONDS = 5 * 60
POMODORO_SESSIONS = 2
FREE_STUDY_PRESETS = (5, 15, 30, 60)


class Scheduler(Protocol):
    def schedule(self, callback: Callable[[], None], interval: float) -> None: ...

    def suspend(self) -> None: ...

    def cancel(self) -> None: ...


class ManualScheduler:
    """Scheduler that only fires when told to. Used by tests and scripts."""

    def __init__(self) -> None:
        self.callback: Optional[Callable[[], None]] = None
        self.interval: Optional[float] = None
        self.schedule_calls = 0
        self.suspend_calls = 0
        self.cancel_calls = 0

    @property
    def active(self) -> bool:
        return self.callback is not None

    def schedule(self, callback: Callable[[], None], interval: float) -> None:
        self.callback = callback
        self.interval = interval
        self.schedule_calls += 1

    def suspend(self) -> None:
        self.callback = None
        self.suspend_calls += 1

    def cancel(self) -> None:
        if self.callback is not None:
            self.cancel_calls += 1
        self.callback = None

    def advance(self, ticks: int = 1) -> int:
        """Fire up to `ticks` ticks, stopping early if the timer is cancelled."""
        fired = 0
        for _ in range(ticks):
            if self.callback is None:
                break
            self.callback()
            fired += 1
        return fired


class PollingScheduler:
    """
    Wall-clock scheduler for hosts that re-run code periodically (the
    Streamlit fragment). `pump()` delivers every whole interval elapsed
    since the last delivered tick; the fraction is carried to the next pump.

    `suspend()` stops ticking but keeps the time already run since the last
    tick, and the next `schedule()` picks it up again. `cancel()` drops it.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._callback: Optional[Callable[[], None]] = None
        self._interval = TICK_SECONDS
        self._last: Optional[float] = None
        self._carry = 0.0
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    def schedule(self, callback: Callable[[], None], interval: float) -> None:
        self._callback = callback
        self._interval = interval
        self._last = self._clock() - self._carry
        self._carry = 0.0
        self._generation += 1

    def suspend(self) -> None:
        if self._last is not None:
            self._carry = self._clock() - self._last
        self._callback = None
        self._last = None
        self._generation += 1

    def cancel(self) -> None:
        self._callback = None
        self._last = None
        self._carry = 0.0
        self._generation += 1

    def pump(self) -> int:
        if self._callback is None or self._last is None:
            return 0
        generation = self._generation
        due = int((self._clock() - self._last) // self._interval)
        fired = 0
        for _ in range(due):
            # A tick that cancels or re-arms ends this batch
            if self._generation != generation:
                break
            self._last += self._interval
            self._callback()
            fired += 1
        return fired


class TimerMode(str, Enum):
    PLAN = "plan"
    FREE_STUDY = "free_study"
    POMODORO = "pomodoro"


class TimerEvent(str, Enum):
    PLAN_LOADED = "plan_loaded"
    STARTED = "started"
    PAUSED = "paused"
    SUBJECT_COMPLETE = "subject_complete"
    NEXT_SUBJECT = "next_subject"
    BREAK_STARTED = "break_started"
    BREAK_ENDED = "break_ended"
    EXTENSION_REQUESTED = "extension_requested"
    EXTENSION_CANCELLED = "extension_cancelled"
    EXTENDED = "extended"
    ALL_COMPLETE = "all_complete"
    FREE_STUDY_STARTED = "free_study_started"
    FREE_STUDY_STOPPED = "free_study_stopped"
    FREE_STUDY_COMPLETE = "free_study_complete"
    POMODORO_PHASE = "pomodoro_phase"
    POMODORO_COMPLETE = "pomodoro_complete"
    RESET = "reset"
    QUIT = "quit"


class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class _Countdown(_State):
    remaining: int
    running: bool = True


class Idle(_State):
    kind: Literal["idle"] = "idle"


class Studying(_Countdown):
    kind: Literal["studying"] = "studying"
    index: int
    running: bool = False
    extension_minutes: int = 0


class BreakDecision(_State):
    kind: Literal["break_decision"] = "break_decision"
    index: int


class Extending(_State):
    kind: Literal["extending"] = "extending"
    index: int


class OnBreak(_Countdown):
    kind: Literal["on_break"] = "on_break"
    index: int


class FreeStudy(_Countdown):
    kind: Literal["free_study"] = "free_study"
    minutes: int


class Pomodoro(_Countdown):
    kind: Literal["pomodoro"] = "pomodoro"
    phase: Literal["study", "break"] = "study"
    session: int = 1


class AllComplete(_State):
    kind: Literal["all_complete"] = "all_complete"
    subjects: int = 0


TimerState = Union[Idle, Studying, BreakDecision, Extending, OnBreak, FreeStudy, Pomodoro, AllComplete]


def _channel(state: TimerState) -> Optional[str]:
    """Which countdown a running state needs, or None if nothing should tick."""
    if not isinstance(state, _Countdown) or not state.running:
        return None
    if isinstance(state, Studying):
        return "subject"
    if isinstance(state, OnBreak):
        return "break"
    return "free"


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, seconds), 60)
    return f"{mins:02d}:{secs:02d}"


class StudyTimer:
    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        on_complete: Optional[Callable[[], None]] = None,
        on_event: Optional[Callable[[TimerEvent], None]] = None,
        on_record: Optional[Callable[[StudySession], None]] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.scheduler: Scheduler = scheduler if scheduler is not None else ManualScheduler()
        self.on_complete = on_complete
        self.on_event = on_event
        self.on_record = on_record
        self._today = today
        self.plan: List[PlanEntry] = []
        self.completed: Set[int] = set()
        self.state: TimerState = Idle()
        self._armed: Optional[str] = None
        self._held = False

    # -- read-only views --------------------------------------------------

    @property
    def mode(self) -> Optional[TimerMode]:
        if isinstance(self.state, FreeStudy):
            return TimerMode.FREE_STUDY
        if isinstance(self.state, Pomodoro):
            return TimerMode.POMODORO
        if isinstance(self.state, (Studying, BreakDecision, Extending, OnBreak)):
            return TimerMode.PLAN
        return None

    @property
    def current_index(self) -> int:
        return getattr(self.state, "index", 0)

    @property
    def current_entry(self) -> Optional[PlanEntry]:
        if not self.plan or self.mode != TimerMode.PLAN:
            return None
        return self.plan[self.current_index]

    @property
    def time_remaining(self) -> int:
        if isinstance(self.state, (Studying, FreeStudy, Pomodoro)):
            return self.state.remaining
        return 0

    @property
    def break_remaining(self) -> int:
        return self.state.remaining if isinstance(self.state, OnBreak) else 0

    @property
    def is_running(self) -> bool:
        return _channel(self.state) is not None

    @property
    def is_last_subject(self) -> bool:
        return bool(self.plan) and self.current_index >= len(self.plan) - 1

    # -- plumbing ---------------------------------------------------------

    def _emit(self, event: TimerEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)

    def _record(self, subject: str, minutes: int, kind: SessionType) -> None:
        session = StudySession(
            id=str(uuid4()),
            subject=subject,
            duration=minutes,
            date=self._today(),
            type=kind,
        )
        logger.info(f"Recorded {kind.value} session: {subject} {minutes}m")
        if self.on_record is not None:
            self.on_record(session)

    def _set_state(self, new: TimerState, hold: bool = False) -> None:
        """
        Swap in `new` and arm or disarm the scheduler to match it. `hold`
        marks a pause or resume of the same countdown: pausing suspends the
        scheduler so the part-second already run is kept for the resume,
        and any other transition out of a paused countdown drops it.
        """
        old = self.state
        self.state = new
        if type(old) is not type(new):
            logger.debug(f"Timer {old.kind} -> {new.kind}")

        wanted = _channel(new)
        if self._armed is not None and self._armed != wanted:
            if hold:
                self.scheduler.suspend()
                self._held = True
            else:
                self.scheduler.cancel()
            self._armed = None
        elif self._held and not hold:
            self.scheduler.cancel()
            self._held = False
        if wanted is not None and self._armed is None:
            self.scheduler.schedule(self.tick, TICK_SECONDS)
            self._armed = wanted
            self._held = False

    def _require(self, command: str, *allowed: type) -> None:
        if not isinstance(self.state, allowed):
            raise InvalidTransitionError(command, self.state.kind.replace("_", " "))

    def _studying(self, index: int, running: bool = False) -> Studying:
        return Studying(index=index, remaining=self.plan[index].minutes * 60, running=running)

    # -- commands ---------------------------------------------------------

    def load_plan(self, plan: List[PlanEntry]) -> None:
        if not plan:
            raise InvalidInputError("A study plan needs at least one subject.")
        if any(entry.minutes <= 0 for entry in plan):
            raise InvalidInputError("Every subject in the plan needs a positive number of minutes.")
        self.plan = list(plan)
        self.completed = set()
        self._set_state(self._studying(0))
        self._emit(TimerEvent.PLAN_LOADED)

    def start_free_study(self, minutes: int) -> None:
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidInputError("Free study needs a positive number of minutes.")
        self._require("start free study", Idle, AllComplete)
        self.plan = []
        self.completed = set()
        if minutes == POMODORO_MINUTES:
            self._set_state(Pomodoro(remaining=POMODORO_STUDY_SECONDS))
        else:
            self._set_state(FreeStudy(remaining=minutes * 60, minutes=minutes))
        self._emit(TimerEvent.FREE_STUDY_STARTED)

    def start(self) -> None:
        self._require("start", Studying, OnBreak, FreeStudy, Pomodoro)
        if not self.state.running:
            self._set_state(self.state.model_copy(update={"running": True}), hold=True)
            self._emit(TimerEvent.STARTED)

    def pause(self) -> None:
        self._require("pause", Studying, OnBreak, FreeStudy, Pomodoro)
        if self.state.running:
            self._set_state(self.state.model_copy(update={"running": False}), hold=True)
            self._emit(TimerEvent.PAUSED)

    def toggle(self) -> None:
        if self.is_running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        self.completed = set()
        self._set_state(self._studying(0) if self.plan else Idle())
        self._emit(TimerEvent.RESET)

    def skip_to_next(self) -> None:
        self._require("skip to the next subject", Studying)
        if self.is_last_subject:
            raise InvalidTransitionError("skip to the next subject", "on the last subject")
        index = self.state.index
        self.completed.add(index)
        self._set_state(self._studying(index + 1, running=self.state.running))
        self._emit(TimerEvent.NEXT_SUBJECT)

    def take_break(self) -> None:
        self._require("take a break", BreakDecision)
        self._set_state(OnBreak(index=self.state.index, remaining=BREAK_SECONDS))
        self._emit(TimerEvent.BREAK_STARTED)

    def skip_break(self) -> None:
        self._require("skip the break", BreakDecision)
        self._advance(self.state.index)

    def end_break(self) -> None:
        self._require("end the break", OnBreak)
        index = self.state.index
        self._emit(TimerEvent.BREAK_ENDED)
        self._advance(index)

    def request_extension(self) -> None:
        self._require("extend", BreakDecision)
        self._set_state(Extending(index=self.state.index))
        self._emit(TimerEvent.EXTENSION_REQUESTED)

    def cancel_extension(self) -> None:
        self._require("cancel the extension", Extending)
        self._set_state(BreakDecision(index=self.state.index))
        self._emit(TimerEvent.EXTENSION_CANCELLED)

    def extend(self, minutes: int) -> None:
        if (
            isinstance(minutes, bool)
            or not isinstance(minutes, int)
            or not 0 < minutes <= MAX_EXTENSION_MINUTES
        ):
            raise InvalidInputError(
                f"Extension must be between 1 and {MAX_EXTENSION_MINUTES} minutes."
            )
        self._require("extend", BreakDecision, Extending)
        self._set_state(Studying(
            index=self.state.index,
            remaining=minutes * 60,
            running=True,
            extension_minutes=minutes,
        ))
        self._emit(TimerEvent.EXTENDED)

    def stop_free_study(self) -> None:
        self._require("stop free study", FreeStudy, Pomodoro)
        self._set_state(Idle())
        self._emit(TimerEvent.FREE_STUDY_STOPPED)

    def quit(self) -> None:
        self.plan = []
        self.completed = set()
        self._set_state(Idle())
        logger.info("Study session quit")
        self._emit(TimerEvent.QUIT)
        if self.on_complete is not None:
            self.on_complete()

    # -- ticking ----------------------------------------------------------

    def tick(self) -> None:
        state = self.state
        if _channel(state) is None:
            return
        if state.remaining > 1:
            self._set_state(state.model_copy(update={"remaining": state.remaining - 1}))
            return

        if isinstance(state, Studying):
            self._finish_subject(state)
        elif isinstance(state, OnBreak):
            self._emit(TimerEvent.BREAK_ENDED)
            self._advance(state.index)
        elif isinstance(state, Pomodoro):
            self._next_pomodoro_phase(state)
        elif isinstance(state, FreeStudy):
            self._set_state(Idle())
            self._record(FREE_STUDY, state.minutes, SessionType.FREE)
            self._emit(TimerEvent.FREE_STUDY_COMPLETE)

    def _advance(self, index: int) -> None:
        if index + 1 < len(self.plan):
            self._set_state(self._studying(index + 1))
            self._emit(TimerEvent.NEXT_SUBJECT)
        else:
            self._finish_all()

    def _finish_subject(self, state: Studying) -> None:
        self.completed.add(state.index)
        entry = self.plan[state.index]
        if state.extension_minutes:
            self._record(entry.subject, state.extension_minutes, SessionType.EXTENDED)
        else:
            self._record(entry.subject, entry.minutes, SessionType.PLANNED)
        self._emit(TimerEvent.SUBJECT_COMPLETE)

        if state.index < len(self.plan) - 1:
            self._set_state(BreakDecision(index=state.index))
        else:
            self._finish_all()

    def _finish_all(self) -> None:
        finished = len(self.plan)
        self.plan = []
        self.completed = set()
        self._set_state(AllComplete(subjects=finished))
        logger.info(f"All {finished} subjects complete")
        self._emit(TimerEvent.ALL_COMPLETE)
        if self.on_complete is not None:
            self.on_complete()

    def _next_pomodoro_phase(self, state: Pomodoro) -> None:
        if state.phase == "study":
            self._set_state(state.model_copy(update={
                "phase": "break",
                "remaining": POMODORO_BREAK_SECONDS,
            }))
        elif state.session < POMODORO_SESSIONS:
            self._set_state(state.model_copy(update={
                "phase": "study",
                "session": state.session + 1,
                "remaining": POMODORO_STUDY_SECONDS,
            }))
        else:
            self._set_state(Idle())
            studied = POMODORO_SESSIONS * POMODORO_STUDY_SECONDS // 60
            self._record(FREE_STUDY, studied, SessionType.FREE)
            self._emit(TimerEvent.POMODORO_COMPLETE)
            return
        self._emit(TimerEvent.POMODORO_PHASE)
