import pytest

from errors import InvalidInputError, InvalidTransitionError
from models import PlanEntry, SessionType
from timer import (
    AllComplete,
    BreakDecision,
    Extending,
    FreeStudy,
    Idle,
    ManualScheduler,
    OnBreak,
    PollingScheduler,
    Pomodoro,
    Studying,
    StudyTimer,
    TimerEvent,
    TimerMode,
    format_time,
)


PLAN = [
    PlanEntry(subject="A", minutes=10),
    PlanEntry(subject="B", minutes=15),
    PlanEntry(subject="C", minutes=5),
]


class Recorder:
    def __init__(self):
        self.completions = 0
        self.events = []
        self.records = []

    def complete(self):
        self.completions += 1


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def timer(scheduler, recorder, today):
    return StudyTimer(
        scheduler=scheduler,
        on_complete=recorder.complete,
        on_event=recorder.events.append,
        on_record=recorder.records.append,
        today=lambda: today,
    )


@pytest.fixture
def loaded(timer):
    timer.load_plan(PLAN)
    return timer


class TestPlanSession:
    def test_load_plan_waits_for_start(self, loaded, scheduler):
        assert isinstance(loaded.state, Studying)
        assert loaded.mode == TimerMode.PLAN
        assert loaded.current_index == 0
        assert loaded.time_remaining == 10 * 60
        assert not loaded.is_running
        assert not scheduler.active

    def test_empty_plan_rejected(self, timer):
        with pytest.raises(InvalidInputError):
            timer.load_plan([])
        assert isinstance(timer.state, Idle)

    def test_subject_completion_asks_about_a_break(self, loaded, scheduler, recorder, today):
        loaded.start()
        assert scheduler.advance(10 * 60 + 5) == 10 * 60
        assert isinstance(loaded.state, BreakDecision)
        assert not loaded.is_running
        assert loaded.completed == {0}
        assert not scheduler.active
        assert TimerEvent.SUBJECT_COMPLETE in recorder.events

        [record] = recorder.records
        assert record.subject == "A"
        assert record.duration == 10
        assert record.type == SessionType.PLANNED
        assert record.date == today

    def test_skip_break_loads_next_subject(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.skip_break()
        assert isinstance(loaded.state, Studying)
        assert loaded.current_index == 1
        assert loaded.time_remaining == 15 * 60
        assert not loaded.is_running

    def test_break_runs_out_into_next_subject(self, loaded, scheduler, recorder):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.take_break()
        assert isinstance(loaded.state, OnBreak)
        assert loaded.break_remaining == 5 * 60
        assert scheduler.active

        assert scheduler.advance(10 * 60) == 5 * 60
        assert isinstance(loaded.state, Studying)
        assert loaded.current_index == 1
        assert loaded.time_remaining == 15 * 60
        assert not scheduler.active
        assert TimerEvent.BREAK_ENDED in recorder.events

    def test_end_break_early(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.take_break()
        scheduler.advance(30)
        loaded.end_break()
        assert loaded.current_index == 1
        assert not scheduler.active

    def test_extension_keeps_the_same_subject(self, loaded, scheduler, recorder):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.extend(7)
        assert isinstance(loaded.state, Studying)
        assert loaded.current_index == 0
        assert loaded.time_remaining == 7 * 60
        assert loaded.is_running

        scheduler.advance(7 * 60)
        assert isinstance(loaded.state, BreakDecision)
        assert recorder.records[-1].type == SessionType.EXTENDED
        assert recorder.records[-1].duration == 7

    def test_cancelled_extension_returns_to_break_decision(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.request_extension()
        assert isinstance(loaded.state, Extending)
        loaded.cancel_extension()
        assert isinstance(loaded.state, BreakDecision)

    @pytest.mark.parametrize("minutes", [0, -3, 61, True, 2.5])
    def test_invalid_extension_leaves_state_alone(self, loaded, scheduler, minutes):
        loaded.start()
        scheduler.advance(10 * 60)
        before = loaded.state
        with pytest.raises(InvalidInputError):
            loaded.extend(minutes)
        assert loaded.state == before

    def test_last_subject_completes_the_plan(self, timer, scheduler, recorder):
        timer.load_plan([PlanEntry(subject="A", minutes=1), PlanEntry(subject="B", minutes=1)])
        timer.start()
        scheduler.advance(60)
        timer.skip_break()
        timer.start()
        scheduler.advance(60)
        assert timer.state == AllComplete(subjects=2)
        assert timer.plan == []
        assert timer.completed == set()
        assert timer.current_index == 0
        assert not timer.is_running
        assert recorder.completions == 1
        assert not scheduler.active
        assert [r.subject for r in recorder.records] == ["A", "B"]

    def test_skip_to_next(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(30)
        loaded.skip_to_next()
        assert loaded.current_index == 1
        assert loaded.time_remaining == 15 * 60
        assert loaded.completed == {0}
        assert loaded.is_running

    def test_skip_to_next_on_last_subject_is_refused(self, loaded):
        loaded.skip_to_next()
        loaded.skip_to_next()
        with pytest.raises(InvalidTransitionError):
            loaded.skip_to_next()
        assert loaded.current_index == 2

    def test_reset_reloads_first_subject(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.skip_break()
        loaded.start()
        scheduler.advance(20)
        loaded.reset()
        assert loaded.current_index == 0
        assert loaded.time_remaining == 10 * 60
        assert loaded.completed == set()
        assert not loaded.is_running
        assert not scheduler.active

    def test_commands_out_of_state_are_refused(self, loaded):
        with pytest.raises(InvalidTransitionError):
            loaded.take_break()
        with pytest.raises(InvalidTransitionError):
            loaded.end_break()
        with pytest.raises(InvalidTransitionError):
            loaded.start_free_study(15)


class TestPauseAndCancel:
    def test_pause_stops_ticking(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(5)
        loaded.pause()
        assert not scheduler.active
        assert scheduler.advance(100) == 0
        assert loaded.time_remaining == 10 * 60 - 5

        loaded.start()
        scheduler.advance(5)
        assert loaded.time_remaining == 10 * 60 - 10

    def test_toggle(self, loaded):
        loaded.toggle()
        assert loaded.is_running
        loaded.toggle()
        assert not loaded.is_running

    @pytest.mark.parametrize("ticks", [0, 30, 10 * 60])
    def test_quit_clears_everything(self, loaded, scheduler, recorder, ticks):
        loaded.start()
        scheduler.advance(ticks)
        loaded.quit()
        assert isinstance(loaded.state, Idle)
        assert loaded.current_index == 0
        assert loaded.completed == set()
        assert not loaded.is_running
        assert loaded.plan == []
        assert recorder.completions == 1
        assert not scheduler.active

    def test_late_tick_after_quit_is_ignored(self, loaded, scheduler):
        loaded.start()
        tick = scheduler.callback
        loaded.quit()
        tick()
        assert isinstance(loaded.state, Idle)
        assert loaded.time_remaining == 0

    def test_only_one_timer_is_ever_armed(self, loaded, scheduler):
        loaded.start()
        scheduler.advance(10 * 60)
        loaded.take_break()
        scheduler.advance(5 * 60)
        loaded.start()
        assert scheduler.active
        assert scheduler.schedule_calls == 3
        assert scheduler.cancel_calls == 2


class TestFreeStudy:
    def test_free_study_runs_to_zero(self, timer, scheduler, recorder):
        timer.start_free_study(15)
        assert isinstance(timer.state, FreeStudy)
        assert timer.mode == TimerMode.FREE_STUDY
        assert timer.is_running

        scheduler.advance(15 * 60)
        assert isinstance(timer.state, Idle)
        assert timer.time_remaining == 0
        assert not scheduler.active
        [record] = recorder.records
        assert record.type == SessionType.FREE
        assert record.duration == 15
        assert recorder.completions == 0

    @pytest.mark.parametrize("minutes", [0, -10])
    def test_non_positive_duration_rejected(self, timer, minutes):
        with pytest.raises(InvalidInputError):
            timer.start_free_study(minutes)
        assert isinstance(timer.state, Idle)

    def test_stop_early_records_nothing(self, timer, scheduler, recorder):
        timer.start_free_study(30)
        scheduler.advance(60)
        timer.stop_free_study()
        assert isinstance(timer.state, Idle)
        assert recorder.records == []
        assert not scheduler.active

    def test_sixty_minutes_runs_a_pomodoro(self, timer, scheduler, recorder):
        phases = []

        def on_event(event):
            if event in (TimerEvent.FREE_STUDY_STARTED, TimerEvent.POMODORO_PHASE):
                phases.append((timer.state.phase, timer.state.session, timer.time_remaining))

        timer.on_event = on_event
        timer.start_free_study(60)
        assert timer.mode == TimerMode.POMODORO

        fired = scheduler.advance(2 * 60 * 60)
        assert fired == 60 * 60
        assert phases == [
            ("study", 1, 25 * 60),
            ("break", 1, 5 * 60),
            ("study", 2, 25 * 60),
            ("break", 2, 5 * 60),
        ]
        assert isinstance(timer.state, Idle)
        assert not scheduler.active
        [record] = recorder.records
        assert record.duration == 50
        assert record.type == SessionType.FREE

    def test_pomodoro_pause_holds_the_phase(self, timer, scheduler):
        timer.start_free_study(60)
        scheduler.advance(25 * 60)
        timer.pause()
        assert isinstance(timer.state, Pomodoro)
        assert timer.state.phase == "break"
        assert timer.time_remaining == 5 * 60


class TestPollingScheduler:
    def make(self):
        now = [100.0]
        return now, PollingScheduler(clock=lambda: now[0])

    def test_delivers_whole_seconds_and_carries_the_rest(self):
        now, sched = self.make()
        calls = []
        sched.schedule(lambda: calls.append(1), 1.0)
        now[0] += 2.5
        assert sched.pump() == 2
        now[0] += 0.6
        assert sched.pump() == 1
        assert len(calls) == 3

    def test_nothing_while_cancelled(self):
        now, sched = self.make()
        sched.schedule(lambda: None, 1.0)
        sched.cancel()
        now[0] += 10
        assert sched.pump() == 0
        assert not sched.active

    def test_rearming_starts_a_fresh_interval(self):
        now, sched = self.make()
        sched.schedule(lambda: None, 1.0)
        now[0] += 10
        sched.cancel()
        sched.schedule(lambda: None, 1.0)
        now[0] += 0.5
        assert sched.pump() == 0

    def test_batch_stops_when_the_callback_cancels(self):
        now, sched = self.make()
        calls = []

        def tick():
            calls.append(1)
            if len(calls) == 2:
                sched.cancel()

        sched.schedule(tick, 1.0)
        now[0] += 5
        assert sched.pump() == 2

    def test_suspend_keeps_the_part_second_already_run(self):
        now, sched = self.make()
        calls = []
        sched.schedule(lambda: calls.append(1), 1.0)
        now[0] += 0.75
        sched.suspend()
        assert not sched.active
        now[0] += 30
        assert sched.pump() == 0

        sched.schedule(lambda: calls.append(1), 1.0)
        now[0] += 0.25
        assert sched.pump() == 1
        assert len(calls) == 1

    def test_cancel_after_suspend_drops_the_carry(self):
        now, sched = self.make()
        sched.schedule(lambda: None, 1.0)
        now[0] += 0.75
        sched.suspend()
        sched.cancel()
        sched.schedule(lambda: None, 1.0)
        now[0] += 0.5
        assert sched.pump() == 0

    def test_pause_and_resume_loses_no_running_time(self):
        now, sched = self.make()
        timer = StudyTimer(scheduler=sched)
        timer.load_plan([PlanEntry(subject="A", minutes=1), PlanEntry(subject="B", minutes=1)])
        for _ in range(4):
            timer.start()
            now[0] += 0.75
            sched.pump()
            timer.pause()
            now[0] += 10
        assert timer.time_remaining == 60 - 3

        timer.start()
        now[0] += 57
        sched.pump()
        assert isinstance(timer.state, BreakDecision)

    def test_reset_while_paused_starts_from_a_whole_second(self):
        now, sched = self.make()
        timer = StudyTimer(scheduler=sched)
        timer.load_plan([PlanEntry(subject="A", minutes=1)])
        timer.start()
        now[0] += 0.75
        timer.pause()
        timer.reset()
        timer.start()
        now[0] += 0.5
        sched.pump()
        assert timer.time_remaining == 60

    def test_drives_a_study_timer(self):
        now, sched = self.make()
        timer = StudyTimer(scheduler=sched)
        timer.load_plan([PlanEntry(subject="A", minutes=1), PlanEntry(subject="B", minutes=1)])
        timer.start()
        now[0] += 61
        sched.pump()
        assert isinstance(timer.state, BreakDecision)
        assert not sched.active


@pytest.mark.parametrize("seconds,expected", [(0, "00:00"), (65, "01:05"), (25 * 60, "25:00"), (-3, "00:00")])
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected
