from __future__ import annotations
import streamlit as st
import pandas as pd
import time
from datetime import date, datetime, time as dtime
from uuid import uuid4

from calendar_export import plan_to_ics
from calendar_import import parse_ics_bytes
from catalog import FREE_STUDY, subject_names
from errors import StudyFlowError
from history import TYPE_LABELS, format_minutes, summarize_sessions
from logs import setup_logger
from models import AppState, Event, EventType, SessionType, StudySession
from pdf_export import plan_to_pdf
from planner import (
    accept_recommendations,
    allocate_plan,
    describe_days_until,
    plan_total,
    recommend_subjects,
    upcoming_subject_events,
)
from profiles import (
    create_profile,
    delete_profile,
    list_profiles,
    load_profile,
    save_profile,
)
from timer import (
    FREE_STUDY_PRESETS,
    MAX_EXTENSION_MINUTES,
    AllComplete,
    BreakDecision,
    Extending,
    FreeStudy,
    Idle,
    OnBreak,
    PollingScheduler,
    Pomodoro,
    Studying,
    StudyTimer,
    TimerEvent,
    format_time,
)
from tips import study_tips


EVENT_TYPE_LABELS = {
    EventType.TEST: "Test",
    EventType.ASSIGNMENT: "Assignment",
    EventType.OTHER: "Other",
}
NO_SUBJECT = "(no subject)"

st.set_page_config(page_title="StudyFlow", page_icon="📚", layout="wide")


def _current_state() -> AppState:
    return st.session_state.state


def _save() -> None:
    save_profile(st.session_state.profile_name, _current_state())


def _on_timer_record(session: StudySession) -> None:
    _current_state().sessions.append(session)
    _save()


def _on_timer_event(event: TimerEvent) -> None:
    if event == TimerEvent.ALL_COMPLETE:
        _queue_toast("All subjects complete. Great work!")
    elif event == TimerEvent.FREE_STUDY_COMPLETE:
        _queue_toast("Free study finished.")
    elif event == TimerEvent.POMODORO_COMPLETE:
        _queue_toast("Pomodoro cycle finished.")


def _on_study_complete() -> None:
    state = _current_state()
    state.last_plan = []
    state.last_total_minutes = None
    state.preferred_subjects = []
    _save()
    st.session_state.next_page = "Plan"
    st.session_state.timer_finished = True


def _ensure_session_state() -> list[str]:
    if "logger_ready" not in st.session_state:
        setup_logger()
        st.session_state.logger_ready = True

    profiles = list_profiles()
    if "profile_name" not in st.session_state or st.session_state.profile_name not in profiles:
        st.session_state.profile_name = profiles[0]

    if "state" not in st.session_state:
        st.session_state.state = load_profile(st.session_state.profile_name)

    if "timer" not in st.session_state:
        st.session_state.timer = StudyTimer(
            scheduler=PollingScheduler(),
            on_complete=_on_study_complete,
            on_event=_on_timer_event,
            on_record=_on_timer_record,
        )

    return profiles


def _drop_timer() -> None:
    timer = st.session_state.pop("timer", None)
    if timer is not None:
        timer.scheduler.cancel()


def _switch_profile(name: str) -> None:
    _drop_timer()
    st.session_state.profile_name = name
    st.session_state.state = load_profile(name)


def _queue_toast(message: str) -> None:
    st.session_state.toast_message = message


def _flush_toast() -> None:
    message = st.session_state.pop("toast_message", None)
    if message:
        st.toast(message)


def _go_to(page: str) -> None:
    st.session_state.next_page = page
    st.rerun()


def _build_plan(state: AppState, minutes: int, preferred: list[str], count: int | None) -> None:
    try:
        plan = allocate_plan(
            minutes,
            state.events,
            preferred,
            subject_count=count,
            seed=time.time(),
        )
    except ValueError as e:
        st.error(str(e))
        return
    state.last_plan = plan
    state.last_total_minutes = minutes
    state.preferred_subjects = preferred
    st.session_state.plan_count = count
    _save()


def render_plan(state: AppState) -> None:
    st.header("Study plan")

    with st.form("plan_form"):
        col1, col2 = st.columns([1, 1])
        with col1:
            minutes = st.number_input(
                "Available study time (minutes)",
                min_value=1,
                max_value=600,
                value=state.last_total_minutes or state.settings.default_minutes,
                step=5,
            )
        with col2:
            count = st.number_input(
                "Number of subjects (0 = automatic)",
                min_value=0,
                max_value=16,
                value=st.session_state.get("plan_count") or state.settings.default_subject_count or 0,
            )
        preferred = st.multiselect(
            "Subjects you especially want to study",
            options=subject_names(),
            default=[s for s in state.preferred_subjects if s in subject_names()],
            help=f"Choose '{FREE_STUDY}' for a single block without a subject breakdown.",
        )
        submitted = st.form_submit_button("Create plan", type="primary")

    if submitted:
        recommended = recommend_subjects(
            state.events,
            preferred,
            window_days=state.settings.recommend_window_days,
        )
        if recommended and FREE_STUDY not in preferred:
            st.session_state.pending_plan = (int(minutes), list(preferred), int(count) or None, recommended)
        else:
            _build_plan(state, int(minutes), list(preferred), int(count) or None)

    pending = st.session_state.get("pending_plan")
    if pending:
        _recommendation_dialog(state, pending)

    if not state.last_plan:
        st.info("Enter your available time to get a plan.")
        return

    plan = state.last_plan
    total = plan_total(plan)
    st.divider()
    head_col, reshuffle_col = st.columns([3, 1])
    head_col.subheader(f"Today's plan ({format_minutes(total)})")
    if reshuffle_col.button("Suggest another plan"):
        _build_plan(
            state,
            state.last_total_minutes or total,
            state.preferred_subjects,
            st.session_state.get("plan_count"),
        )
        st.rerun()

    rows = [
        {
            "#": i,
            "Subject": p.subject,
            "Minutes": p.minutes,
            "Share %": round(p.minutes / total * 100, 1),
            "Reason": p.reason or "",
        }
        for i, p in enumerate(plan, start=1)
    ]
    st.dataframe(pd.DataFrame(rows).set_index("#"), use_container_width=True)

    tips = study_tips(total, plan)
    if state.settings.show_tips:
        with st.expander("Study tips", expanded=True):
            for tip in tips:
                st.write(f"• {tip}")

    start_col, ics_col, pdf_col = st.columns(3)
    if start_col.button("Start studying", type="primary"):
        try:
            st.session_state.timer.load_plan(plan)
        except StudyFlowError as e:
            st.error(str(e))
        else:
            _go_to("Timer")

    export_start = datetime.combine(date.today(), dtime(hour=state.settings.export_start_hour))
    ics_col.download_button(
        "Download ICS",
        data=plan_to_ics(plan, export_start),
        file_name=f"study_plan_{date.today().isoformat()}.ics",
        mime="text/calendar",
    )
    pdf_col.download_button(
        "Download PDF",
        data=plan_to_pdf(plan, tips, date.today()),
        file_name=f"study_plan_{date.today().isoformat()}.pdf",
        mime="application/pdf",
    )


def _recommendation_dialog(state: AppState, pending: tuple) -> None:
    minutes, preferred, count, recommended = pending
    window = state.settings.recommend_window_days

    @st.dialog("You have something coming up!")
    def _confirm() -> None:
        st.write(f"These subjects have events in the next {window} days. Add them to the plan?")
        upcoming = upcoming_subject_events(state.events, window_days=window)
        for subject in recommended:
            when = ", ".join(
                describe_days_until(ev.date) for ev in upcoming if (ev.subject or "").strip() == subject
            )
            st.write(f"• {subject} ({when})")
        col_yes, col_no = st.columns(2)
        if col_yes.button("Include them", type="primary"):
            new_preferred, new_count = accept_recommendations(preferred, recommended, count)
            st.session_state.pop("pending_plan", None)
            _build_plan(state, minutes, new_preferred, new_count)
            st.rerun()
        if col_no.button("Plan without them"):
            st.session_state.pop("pending_plan", None)
            _build_plan(state, minutes, preferred, count)
            st.rerun()

    _confirm()


def render_calendar(state: AppState) -> None:
    st.header("Calendar")

    st.subheader("Add event")
    with st.form("add_event_form", clear_on_submit=True):
        col1, col2, col3, col4 = st.columns([2, 1, 1, 2])
        with col1:
            title = st.text_input("Title", placeholder="Chemistry quiz")
        with col2:
            event_date = st.date_input("Date", value=date.today())
        with col3:
            event_type = st.selectbox(
                "Type",
                list(EventType),
                format_func=lambda t: EVENT_TYPE_LABELS[t],
            )
        with col4:
            subject = st.selectbox("Subject", [NO_SUBJECT] + subject_names(include_free_study=False))
        if st.form_submit_button("Add event", type="primary"):
            if not title.strip():
                st.warning("Title is required.")
            else:
                state.events.append(Event(
                    id=str(uuid4()),
                    title=title.strip(),
                    date=event_date,
                    type=event_type,
                    subject=None if subject == NO_SUBJECT else subject,
                ))
                _save()
                st.toast("Event added.")

    st.subheader("Import calendar (.ics)")
    uploaded = st.file_uploader("Upload .ics file", type=["ics"], key="ics_upload")
    parsed_events = []
    if uploaded:
        try:
            parsed_events = parse_ics_bytes(uploaded.read())
        except ValueError as e:
            st.error(f"Could not read ICS file: {e}")
        else:
            if not parsed_events:
                st.warning("No events found in this file.")

    if parsed_events:
        preview = [
            {
                "Title": ev.title,
                "Date": ev.date,
                "Type": EVENT_TYPE_LABELS[ev.type],
                "Subject": ev.subject or "",
            }
            for ev in parsed_events
        ]
        st.dataframe(preview, use_container_width=True, height=250)
        import_mode = st.radio("Import mode", ["Merge", "Replace"], horizontal=True, index=0)
        if st.button("Import events", type="primary"):
            if import_mode == "Replace":
                state.events = parsed_events
            else:
                existing = {(e.title, e.date): e for e in state.events}
                for ev in parsed_events:
                    existing.setdefault((ev.title, ev.date), ev)
                state.events = list(existing.values())
            _save()
            st.toast("Events imported.")

    st.divider()
    st.subheader("Saved events")
    if not state.events:
        st.info("No events yet.")
        return

    today = date.today()
    show_past = st.checkbox("Show past events", value=False)
    visible = sorted(
        (ev for ev in state.events if show_past or ev.date >= today),
        key=lambda ev: ev.date,
    )
    rows = [
        {
            "Select": False,
            "id": ev.id,
            "Date": ev.date,
            "When": describe_days_until(ev.date, today) if ev.date >= today else "past",
            "Title": ev.title,
            "Type": EVENT_TYPE_LABELS[ev.type],
            "Subject": ev.subject or "",
        }
        for ev in visible
    ]
    if not rows:
        st.info("No upcoming events.")
        return

    edited = st.data_editor(
        pd.DataFrame(rows).set_index("id"),
        hide_index=True,
        use_container_width=True,
        column_config={"Select": st.column_config.CheckboxColumn("Select")},
        disabled=["Date", "When", "Title", "Type", "Subject"],
        key=f"events_editor_{st.session_state.profile_name}",
    )
    selected_ids = {row["id"] for row in edited.reset_index().to_dict("records") if row.get("Select")}

    col_delete, col_clear = st.columns(2)
    if col_delete.button("Delete selected"):
        if not selected_ids:
            st.warning("Select at least one event to delete.")
        else:
            state.events = [ev for ev in state.events if ev.id not in selected_ids]
            _save()
            _queue_toast("Events deleted.")
            st.rerun()

    if col_clear.button("Clear all events"):

        @st.dialog("Clear all events?")
        def _confirm_clear_events() -> None:
            st.write("This will remove every saved event.")
            if st.button("Clear events", type="primary"):
                state.events = []
                _save()
                _queue_toast("Events cleared.")
                st.rerun()

        _confirm_clear_events()


def _run(command, *args) -> None:
    try:
        command(*args)
    except (StudyFlowError, ValueError) as e:
        st.warning(str(e))


@st.fragment(run_every=1)
def _timer_panel() -> None:
    timer: StudyTimer = st.session_state.timer
    timer.scheduler.pump()
    if st.session_state.pop("timer_finished", False):
        st.rerun()

    s = timer.state
    if isinstance(s, Idle):
        _render_free_study_picker(timer)
    elif isinstance(s, (FreeStudy, Pomodoro)):
        _render_free_study(timer)
    elif isinstance(s, AllComplete):
        st.success(f"All {s.subjects} subjects complete. Great work!")
        _render_free_study_picker(timer)
    else:
        _render_plan_session(timer)


def _render_free_study_picker(timer: StudyTimer) -> None:
    st.subheader("Free study")
    st.caption("Choose a duration. 60 minutes runs as a pomodoro: 25 min study + 5 min break, twice.")
    preset = st.radio(
        "Duration",
        list(FREE_STUDY_PRESETS) + [0],
        format_func=lambda m: "Custom" if m == 0 else (f"{m} min (pomodoro)" if m == 60 else f"{m} min"),
        horizontal=True,
    )
    minutes = preset
    if preset == 0:
        minutes = int(st.number_input("Minutes", min_value=1, max_value=600, value=20))
    if st.button("Start free study", type="primary"):
        _run(timer.start_free_study, minutes)
        st.rerun()
    st.caption("Or create a plan on the Plan page and press 'Start studying'.")


def _render_free_study(timer: StudyTimer) -> None:
    s = timer.state
    top, quit_col = st.columns([4, 1])
    if isinstance(s, Pomodoro):
        phase = "Study" if s.phase == "study" else "Break"
        top.subheader(f"Pomodoro: {phase} (round {s.session} of 2)")
    else:
        top.subheader("Free study")
    if quit_col.button("Quit studying"):
        _run(timer.quit)
        st.rerun()

    st.markdown(f"# {format_time(timer.time_remaining)}")
    c1, c2 = st.columns(2)
    if c1.button("Pause" if timer.is_running else "Start"):
        _run(timer.toggle)
        st.rerun()
    if c2.button("Finish"):
        _run(timer.stop_free_study)
        st.rerun()


def _render_plan_session(timer: StudyTimer) -> None:
    s = timer.state
    plan = timer.plan
    entry = plan[timer.current_index]

    top, quit_col = st.columns([4, 1])
    top.subheader(f"Subject {timer.current_index + 1} of {len(plan)}")
    if quit_col.button("Quit studying"):
        _run(timer.quit)
        st.rerun()

    st.progress(len(timer.completed) / len(plan))

    if isinstance(s, BreakDecision):
        st.success(f"{entry.subject} done!")
        st.write("Take a break before the next subject?")
        c1, c2, c3 = st.columns(3)
        if c1.button("5 minute break", type="primary"):
            _run(timer.take_break)
            st.rerun()
        if c2.button("Keep going on this subject"):
            _run(timer.request_extension)
            st.rerun()
        if c3.button("Next subject"):
            _run(timer.skip_break)
            st.rerun()
    elif isinstance(s, Extending):
        st.write(f"How many more minutes of {entry.subject}?")
        extra = st.number_input("Minutes", min_value=1, max_value=MAX_EXTENSION_MINUTES, value=10)
        c1, c2 = st.columns(2)
        if c1.button("Extend", type="primary"):
            _run(timer.extend, int(extra))
            st.rerun()
        if c2.button("Cancel"):
            _run(timer.cancel_extension)
            st.rerun()
    elif isinstance(s, OnBreak):
        st.subheader("Break")
        st.markdown(f"# {format_time(timer.break_remaining)}")
        if st.button("End break"):
            _run(timer.end_break)
            st.rerun()
    elif isinstance(s, Studying):
        label = entry.subject
        if s.extension_minutes:
            label += f" (extra {s.extension_minutes} min)"
        elif entry.reason:
            label += f" ({entry.reason})"
        st.subheader(label)
        st.markdown(f"# {format_time(timer.time_remaining)}")
        c1, c2, c3 = st.columns(3)
        if c1.button("Pause" if timer.is_running else "Start", type="primary"):
            _run(timer.toggle)
            st.rerun()
        if c2.button("Reset"):
            _run(timer.reset)
            st.rerun()
        if c3.button("Skip to next", disabled=timer.is_last_subject):
            _run(timer.skip_to_next)
            st.rerun()

    with st.expander("Plan", expanded=False):
        for i, p in enumerate(plan):
            mark = "✅" if i in timer.completed else ("▶️" if i == timer.current_index else "⬜")
            st.write(f"{mark} {p.subject} - {p.minutes}m")


def render_timer(state: AppState) -> None:
    st.header("Timer")
    _timer_panel()


def render_record(state: AppState) -> None:
    st.header("Study record")

    summary = summarize_sessions(state.sessions)
    a, b, c = st.columns(3)
    a.metric("Today", format_minutes(summary["today_minutes"]))
    b.metric("This week", format_minutes(summary["week_minutes"]))
    c.metric("All time", format_minutes(summary["total_minutes"]))

    st.subheader("Add a session")
    with st.form("add_session_form", clear_on_submit=True):
        col1, col2, col3, col4 = st.columns([2, 1, 1, 1])
        with col1:
            subject = st.selectbox("Subject", subject_names())
        with col2:
            duration = st.number_input("Minutes", min_value=1, max_value=600, value=30)
        with col3:
            session_date = st.date_input("Date", value=date.today())
        with col4:
            kind = st.selectbox("Type", list(SessionType), index=1, format_func=lambda t: TYPE_LABELS[t])
        notes = st.text_input("Notes (optional)")
        if st.form_submit_button("Add session", type="primary"):
            state.sessions.append(StudySession(
                id=str(uuid4()),
                subject=subject,
                duration=int(duration),
                date=session_date,
                type=kind,
                notes=notes.strip(),
            ))
            _save()
            _queue_toast("Session added.")
            st.rerun()

    if not state.sessions:
        st.info("No sessions recorded yet. Finish a subject on the timer to log one.")
        return

    st.divider()
    left, right = st.columns(2)
    with left:
        st.subheader("Top subjects")
        st.table([
            {"Subject": name, "Time": format_minutes(minutes)}
            for name, minutes in summary["top_subjects"]
        ])
    with right:
        st.subheader("Share by subject")
        share = pd.DataFrame(summary["subject_share"], columns=["Subject", "Minutes", "Share %"])
        st.bar_chart(share.set_index("Subject")["Minutes"])

    st.subheader("Recent sessions")
    rows = [
        {
            "Select": False,
            "id": s.id,
            "Date": s.date,
            "Subject": s.subject,
            "Minutes": s.duration,
            "Type": TYPE_LABELS[s.type],
            "Notes": s.notes,
        }
        for s in summary["recent"]
    ]
    edited = st.data_editor(
        pd.DataFrame(rows).set_index("id"),
        hide_index=True,
        use_container_width=True,
        column_config={"Select": st.column_config.CheckboxColumn("Select")},
        disabled=["Date", "Subject", "Minutes", "Type", "Notes"],
        key=f"sessions_editor_{st.session_state.profile_name}",
    )
    selected_ids = {row["id"] for row in edited.reset_index().to_dict("records") if row.get("Select")}
    if st.button("Delete selected sessions"):
        if not selected_ids:
            st.warning("Select at least one session to delete.")
        else:
            state.sessions = [s for s in state.sessions if s.id not in selected_ids]
            _save()
            _queue_toast("Sessions deleted.")
            st.rerun()


def render_settings(state: AppState) -> None:
    st.header("Settings")

    state.settings.default_minutes = st.slider(
        "Default study time (minutes)", 5, 600, state.settings.default_minutes, 5
    )
    auto_count = st.number_input(
        "Default number of subjects (0 = automatic)",
        min_value=0,
        max_value=16,
        value=state.settings.default_subject_count or 0,
    )
    state.settings.default_subject_count = int(auto_count) or None
    state.settings.show_tips = st.checkbox("Show study tips", value=state.settings.show_tips)

    with st.expander("Advanced settings", expanded=False):
        state.settings.recommend_window_days = st.slider(
            "Recommend subjects with events within (days)",
            0,
            14,
            state.settings.recommend_window_days,
        )
        state.settings.export_start_hour = st.slider(
            "Calendar export start hour", 0, 23, state.settings.export_start_hour
        )

    if st.button("Save settings", type="primary"):
        _save()
        st.toast("Settings saved.")

    if st.button("Reset current profile (keep settings)"):

        @st.dialog("Reset current profile?")
        def _confirm_reset() -> None:
            st.write("This will clear events, sessions, and the current plan. Settings stay.")
            if st.button("Reset profile", type="primary"):
                _drop_timer()
                state.last_plan = []
                state.events = []
                state.sessions = []
                _save()
                _queue_toast("Profile reset.")
                st.rerun()

        _confirm_reset()


profiles = _ensure_session_state()
state: AppState = st.session_state.state
current_profile = st.session_state.profile_name

st.title("StudyFlow")
st.caption("Turn the time you have into a study plan, then follow it with a guided timer.")
_flush_toast()

if "nav_page" not in st.session_state:
    st.session_state.nav_page = "Plan"
if "next_page" in st.session_state:
    st.session_state.nav_page = st.session_state.pop("next_page")
st.session_state.pop("timer_finished", None)

with st.sidebar:
    st.header("Profile")
    selected_profile = st.selectbox(
        "Active profile",
        options=profiles,
        index=profiles.index(current_profile) if current_profile in profiles else 0,
    )
    if selected_profile != current_profile:
        _switch_profile(selected_profile)
        st.rerun()

    with st.form("create_profile_form"):
        new_profile_name = st.text_input("New profile name", placeholder="e.g. Term 2")
        if st.form_submit_button("Create profile"):
            try:
                new_state = create_profile(new_profile_name)
            except ValueError as e:
                st.error(str(e))
            else:
                _drop_timer()
                _queue_toast(f"Profile '{new_profile_name.strip()}' created.")
                st.session_state.profile_name = new_profile_name.strip()
                st.session_state.state = new_state
                st.rerun()

    if st.button("Delete profile", disabled=len(profiles) <= 1):

        @st.dialog("Delete profile?")
        def _confirm_delete_profile() -> None:
            st.write(f"Delete profile '{current_profile}' and its data?")
            if st.button("Delete", type="primary"):
                delete_profile(current_profile)
                _switch_profile(list_profiles()[0])
                _queue_toast("Profile deleted.")
                st.rerun()

        _confirm_delete_profile()

    st.divider()
    st.header("Navigate")
    pages = ["Plan", "Calendar", "Timer", "Record", "Settings"]
    page = st.radio("Page", pages, key="nav_page", label_visibility="collapsed")

    st.caption("Workflow: Calendar -> Plan -> Timer -> Record")

if page == "Plan":
    render_plan(state)
elif page == "Calendar":
    render_calendar(state)
elif page == "Timer":
    render_timer(state)
elif page == "Record":
    render_record(state)
elif page == "Settings":
    render_settings(state)
