# taskboard/ui.py
import uuid

import streamlit as st
import pandas as pd

from .config import MAX_GRADE, tasks_sheet
from .data import (
    add_task, list_students, load_class_subject, load_schedule, load_status, load_student_task_sheet,
    load_student_tasks, load_week_schedule, mark_tasks_complete, register,
)
from .errors import TaskboardError
from .filters import subject_points_frame
from .profile import initials_avatar, resolve_picture
from .progress import next_task_id
from .session import SessionContext, new_session
from .store import as_rows
from .utils import today_local


def get_context() -> SessionContext:
    if "ctx" not in st.session_state:
        st.session_state["ctx"] = new_session(uuid.uuid4().hex)
    ctx = st.session_state["ctx"]
    ctx.touch()
    return ctx


@st.cache_data(ttl=3600, show_spinner=False)
def picture_url(username: str):
    return resolve_picture(username)


def flash(message: str):
    """Success message that survives st.rerun()"""
    st.session_state["flash"] = message


def show_flash():
    message = st.session_state.pop("flash", None)
    if message:
        st.success(message)


def render_login(ctx: SessionContext):
    st.markdown("<h2 style='font-size:16pt;'>Sign in</h2>", unsafe_allow_html=True)
    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign In"):
            try:
                ctx.login(username, password)
                st.rerun()
            except TaskboardError as e:
                st.error(e.message)

    with st.expander("New here? Register", expanded=False):
        with st.form("signup_form", clear_on_submit=False):
            c1, c2 = st.columns(2)
            with c1:
                name = st.text_input("Full name *")
                phone = st.text_input("Phone *")
                gmail = st.text_input("Gmail")
                state = st.text_input("State *")
            with c2:
                district = st.text_input("District *")
                place = st.text_input("Place *")
                po = st.text_input("Post office *")
                pin = st.text_input("Pin code *", max_chars=6)
            if st.form_submit_button("Create Account"):
                try:
                    st.success(register(ctx.cache, name, phone, state, district, place, po, pin, gmail=gmail))
                except TaskboardError as e:
                    st.error(f"Registration failed: {e.message}")


def render_sidebar(ctx: SessionContext):
    identity = ctx.identity
    with st.sidebar:
        url = picture_url(identity.username)
        if url:
            st.image(url, width=96)
        else:
            st.markdown(initials_avatar(identity.name, identity.username), unsafe_allow_html=True)
        st.markdown(f"**{identity.name}**  \n@{identity.username}")
        if ctx.scope is not None:
            st.caption(ctx.scope.describe())
        elif identity.class_num:
            st.caption(f"Class {identity.class_num}")

        if st.button("Refresh"):
            ctx.cache.clear()
            st.rerun()
        if st.button("Sign out"):
            ctx.logout()
            st.rerun()

        with st.expander("Change password", expanded=False):
            with st.form("password_form", clear_on_submit=True):
                current = st.text_input("Current password", type="password")
                new = st.text_input("New password", type="password")
                confirm = st.text_input("Confirm new password", type="password")
                if st.form_submit_button("Change Password"):
                    try:
                        flash(ctx.change_password(current, new, confirm))
                        st.rerun()
                    except TaskboardError as e:
                        st.error(e.message)


def render_status(ctx: SessionContext, username=None):
    try:
        view = load_status(ctx, username)
    except TaskboardError as e:
        st.info(e.message)
        return
    c1, c2, c3 = st.columns(3)
    c1.metric("Completed", view.completed)
    c2.metric("Pending", view.pending)
    c3.metric("Progress", f"{view.percent}%")
    if view.points:
        st.dataframe(subject_points_frame(view.points), width="stretch", hide_index=True)


def render_student(ctx: SessionContext):
    tab_list = st.tabs(["Tasks", "Status", "Timetable"])

    with tab_list[0]:
        try:
            groups = load_student_tasks(ctx)
        except TaskboardError as e:
            groups = {}
            st.info(e.message)
        for subject, group in groups.items():
            with st.expander(f"{subject} ({group.completed_count}/{len(group.tasks)})", expanded=False):
                for t in group.tasks:
                    grade = f" · {t.grade}/{MAX_GRADE}" if t.completed and t.grade else ""
                    st.markdown(f"**{t.title}**: {t.status}{grade}  \nDue: {t.due_label}")
                    if t.description:
                        st.caption(t.description)

    with tab_list[1]:
        render_status(ctx)

    with tab_list[2]:
        try:
            periods = load_schedule(ctx)
            st.dataframe(
                pd.DataFrame([{"period": p.number, "subject": p.subject} for p in periods]),
                width="stretch", hide_index=True,
            )
        except TaskboardError as e:
            st.info(e.message)

        with st.expander("Whole week", expanded=False):
            try:
                week = load_week_schedule(ctx)
            except TaskboardError as e:
                st.info(e.message)
            else:
                st.dataframe(
                    pd.DataFrame({day.title(): {p.number: p.subject for p in ps} for day, ps in week.items()}),
                    width="stretch",
                )


def render_admin_tasks(ctx: SessionContext):
    classes = ctx.scope.classes if ctx.scope else []
    if not classes:
        st.info("No classes assigned")
        return

    c1, c2 = st.columns(2)
    with c1:
        class_num = st.selectbox("Class", classes, format_func=lambda c: f"Class {c}")
    subjects = ctx.scope.subjects_for(class_num)
    with c2:
        subject = st.selectbox("Subject", subjects, format_func=str.title) if subjects else None
    if not subject:
        st.info("No subjects assigned to this class")
        return

    try:
        view = load_class_subject(ctx, class_num, subject)
    except TaskboardError as e:
        st.error(e.message)
        return

    st.markdown(f"<h2 style='font-size:16pt;'>Class {class_num} - {subject.title()}</h2>", unsafe_allow_html=True)
    if view.tasks_message:
        st.info(view.tasks_message)
    for t in view.tasks:
        st.markdown(f"**{t.task_id} · {t.title}**: {t.status}  \nDue: {t.due_label}")

    with st.expander("Add task", expanded=False):
        with st.form(f"add_task_{class_num}_{subject}", clear_on_submit=True):
            st.text_input("Task ID", value=next_task_id(as_rows(ctx.cache.get(tasks_sheet(class_num)))), disabled=True)
            title = st.text_input("Title")
            description = st.text_area("Description")
            due = st.date_input("Due date", value=today_local())
            if st.form_submit_button("Add Task"):
                try:
                    task_id = add_task(ctx, class_num, subject, title, description, due)
                    flash(f"Task {task_id} added successfully!")
                    st.rerun()
                except TaskboardError as e:
                    st.error(f"Error adding task: {e.message}")

    if view.students_message:
        st.info(view.students_message)
        return
    username = st.selectbox(
        "Student", view.students["username"].tolist(),
        format_func=dict(zip(view.students["username"], view.students["name"])).get,
    )
    try:
        items = load_student_task_sheet(ctx, username, class_num, subject)
    except TaskboardError as e:
        st.info(e.message)
        return

    with st.form(f"mark_{username}_{subject}"):
        grades = {}
        for item in items:
            t = item.task
            cols = st.columns([4, 1])
            with cols[0]:
                checked = st.checkbox(f"{t.title}: {item.label}", value=t.completed,
                                      disabled=t.completed, key=f"chk_{username}_{t.task_id}")
            with cols[1]:
                grade = st.number_input("Points", min_value=0, value=item.grade,
                                        disabled=t.completed, key=f"grade_{username}_{t.task_id}")
            if checked and not t.completed:
                grades[t.task_id] = grade
        if st.form_submit_button("Submit Selected"):
            try:
                n = mark_tasks_complete(ctx, username, class_num, subject, grades)
                flash(f"{n} task(s) marked as completed successfully!")
                st.rerun()
            except TaskboardError as e:
                st.error(e.message)


def render_admin(ctx: SessionContext):
    tab_list = st.tabs(["Tasks", "All Status"])

    with tab_list[0]:
        render_admin_tasks(ctx)

    with tab_list[1]:
        try:
            students = list_students(ctx)
        except TaskboardError as e:
            st.error(e.message)
            return
        if students.empty:
            st.info("No students found")
            return
        labels = {
            r["username"]: f"{r['name']} (Class {r['class'] or 'N/A'})"
            for _, r in students.iterrows()
        }
        username = st.selectbox("User", list(labels), format_func=labels.get)
        if username:
            render_status(ctx, username)


def run_app():
    ctx = get_context()
    show_flash()
    if not ctx.authenticated:
        render_login(ctx)
        return

    render_sidebar(ctx)
    st.markdown(f"<h2 style='font-size:16pt;'>Welcome, {ctx.identity.name}</h2>", unsafe_allow_html=True)
    if ctx.identity.is_admin:
        render_admin(ctx)
    else:
        render_student(ctx)
