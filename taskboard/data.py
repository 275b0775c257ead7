# taskboard/data.py
"""
View loaders: fetch what one view needs (concurrently, through the cache), then
hand the rows to the reconciler. Raised TaskboardErrors are meant to be shown
inline in the affected view only.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .cache import CacheLayer
from .config import (
    COL_CLASS, COL_DESCRIPTION, COL_DUE_DATE, COL_FULL_NAME, COL_TASK_ID, COL_TITLE, COL_USERNAME,
    LABEL_COMPLETED, MAX_GRADE, SHEET_REGISTRATION, SHEET_USERS, progress_sheet, schedule_sheet,
    tasks_sheet,
)
from .errors import AccessDenied, EmptyResult, ValidationError
from .filters import students_frame, students_in_class, tasks_for_subject
from .progress import (
    SubjectGroup, SubjectPoints, TaskView, admin_task_status,
    completion_row, compute_aggregate_progress, compute_subject_points, default_grade,
    find_completion, group_by_subject, new_task_row, next_task_id, task_chart_counts, task_view,
)
from .schedule import Period, periods_for_today, week_schedule
from .session import SessionContext, cell_str
from .store import as_rows, failure_message, is_failure, raise_for_failure
from .utils import clean, format_date, parse_date, today_local

logger = logging.getLogger(__name__)

RE_PIN_CODE = re.compile(r"\d{6}")


@dataclass
class StatusView:
    username: str
    name: str
    class_num: Optional[str]
    completed: int = 0
    pending: int = 0
    percent: int = 0
    points: Dict[str, SubjectPoints] = field(default_factory=dict)


@dataclass
class AdminTaskView:
    task_id: str
    title: str
    description: str
    due_label: str
    status: str


@dataclass
class ClassSubjectView:
    class_num: str
    subject: str
    tasks: List[AdminTaskView]
    students: pd.DataFrame
    tasks_message: Optional[str] = None
    students_message: Optional[str] = None


@dataclass
class MarkableTask:
    task: TaskView
    grade: int
    label: str


def _class_or_fail(class_num) -> str:
    c = cell_str(class_num).strip()
    if not c:
        raise EmptyResult("Class: Not Assigned")
    return c


def load_student_tasks(ctx: SessionContext, today: Optional[date] = None) -> Dict[str, SubjectGroup]:
    """Signed-in student's tasks grouped by subject, with completion status"""
    identity = ctx.require_identity()
    class_num = _class_or_fail(identity.class_num)

    tasks_name, progress_name = tasks_sheet(class_num), progress_sheet(identity.username)
    results = ctx.cache.get_many([tasks_name, progress_name])

    tasks = as_rows(results[tasks_name])
    if not tasks:
        raise EmptyResult(failure_message(results[tasks_name], "No tasks found"))
    return group_by_subject(tasks, as_rows(results[progress_name]), today)


def find_user(ctx: SessionContext, username: str) -> dict:
    users = as_rows(ctx.cache.get(SHEET_USERS))
    row = next((u for u in users if cell_str(u.get(COL_USERNAME)) == username), None)
    if row is None:
        raise EmptyResult("User not found!")
    return row


def load_status(ctx: SessionContext, username: Optional[str] = None) -> StatusView:
    """
    Completed/pending counts, completion percentage and per-subject points.
    username=None -> the signed-in user; any other user needs an admin session.
    """
    identity = ctx.require_identity()
    if username is None or username == identity.username:
        view = StatusView(identity.username, identity.name, identity.class_num)
    else:
        ctx.require_admin()
        row = find_user(ctx, username)
        view = StatusView(
            username,
            clean(row.get(COL_FULL_NAME)) or username,
            cell_str(row.get(COL_CLASS)).strip() or None,
        )

    class_num = _class_or_fail(view.class_num)
    tasks_name, progress_name = tasks_sheet(class_num), progress_sheet(view.username)
    results = ctx.cache.get_many([tasks_name, progress_name])
    tasks = as_rows(results[tasks_name])
    progress = as_rows(results[progress_name])

    view.completed, view.pending = task_chart_counts(progress, tasks)
    view.percent = compute_aggregate_progress(progress, len(tasks))
    view.points = compute_subject_points(tasks, progress)
    return view


def list_students(ctx: SessionContext) -> pd.DataFrame:
    ctx.require_admin()
    users = ctx.cache.get(SHEET_USERS)
    raise_for_failure(users, "Error loading students.")
    return students_frame(as_rows(users))


def load_class_subject(ctx: SessionContext, class_num, subject, today: Optional[date] = None) -> ClassSubjectView:
    """Admin view of one class/subject: its tasks (class-level status) and the class's students"""
    subject = ctx.check_access(class_num, subject)
    class_num = clean(class_num)
    today = today or today_local()

    tasks_name = tasks_sheet(class_num)
    results = ctx.cache.get_many([tasks_name, SHEET_USERS])
    view = ClassSubjectView(class_num, subject, [], students_in_class([], class_num))

    tasks = as_rows(results[tasks_name])
    if not tasks:
        view.tasks_message = "No tasks found for this class."
    else:
        for t in tasks_for_subject(tasks, subject):
            view.tasks.append(AdminTaskView(
                task_id=clean(t.get(COL_TASK_ID)),
                title=clean(t.get(COL_TITLE)),
                description=clean(t.get(COL_DESCRIPTION)),
                due_label=format_date(t.get(COL_DUE_DATE)),
                status=admin_task_status(t, today),
            ))
        if not view.tasks:
            view.tasks_message = f"No tasks found for {subject} in Class {class_num}."

    users = results[SHEET_USERS]
    if is_failure(users) or not isinstance(users, list):
        view.students_message = "Error loading students."
    else:
        view.students = students_in_class(as_rows(users), class_num)
        if view.students.empty:
            view.students_message = f"No students found in Class {class_num}."
    return view


def load_student_task_sheet(
    ctx: SessionContext, username: str, class_num, subject, today: Optional[date] = None
) -> List[MarkableTask]:
    """One student's tasks in the selected class/subject, with the grade to pre-fill"""
    subject = ctx.check_access(class_num, subject)
    progress_name, tasks_name = progress_sheet(username), tasks_sheet(clean(class_num))
    results = ctx.cache.get_many([progress_name, tasks_name])

    tasks = as_rows(results[tasks_name])
    if not tasks:
        raise EmptyResult("No tasks found for this class.")
    subject_tasks = tasks_for_subject(tasks, subject)
    if not subject_tasks:
        raise EmptyResult(f"No tasks found for {subject} in this class.")

    progress = as_rows(results[progress_name])
    out = []
    for t in subject_tasks:
        view = task_view(t, progress, today)
        grade = default_grade(find_completion(t.get(COL_TASK_ID), progress))
        label = f"{LABEL_COMPLETED} ({grade}/{MAX_GRADE})" if view.completed else view.status
        out.append(MarkableTask(view, grade, label))
    return out


def mark_tasks_complete(
    ctx: SessionContext,
    username: str,
    class_num,
    subject,
    grades: Mapping[str, object],
    completed_on: Optional[date] = None,
) -> int:
    """Append one completion row per selected task ({task_id: grade}); returns the count written"""
    ctx.check_access(class_num, subject)
    if not grades:
        raise ValidationError("No tasks selected for submission.")

    completed_on = completed_on or today_local()
    sheet = progress_sheet(username)
    written = 0
    # sequential: every row goes to the same sheet
    for task_id, grade in grades.items():
        result = ctx.cache.append(sheet, completion_row(task_id, grade, completed_on))
        raise_for_failure(result, "Error submitting tasks. Please try again.")
        written += 1
    logger.info("marked %d task(s) complete for %s", written, username)
    return written


def add_task(
    ctx: SessionContext, class_num, subject, title: str, description: str, due_date
) -> str:
    """Append a task to the class sheet under the next free T<n> id; returns that id"""
    subject = ctx.check_access(class_num, subject)
    title, description = clean(title), clean(description)
    due = parse_date(due_date)
    if not title or not description or due is None:
        raise ValidationError("Please fill in all required fields.")

    sheet = tasks_sheet(clean(class_num))
    # fresh read: task ids must stay unique across sessions
    task_id = next_task_id(as_rows(ctx.cache.get(sheet, allow_cache=False)))
    result = ctx.cache.append(sheet, new_task_row(subject, task_id, title, description, due))
    raise_for_failure(result, "Failed to add task")
    logger.info("added task %s to %s", task_id, sheet)
    return task_id


def register(
    cache: CacheLayer,
    name: str,
    phone: str,
    state: str,
    district: str,
    place: str,
    post_office: str,
    pin_code: str,
    gmail: str = "",
    registered_on: Optional[date] = None,
) -> str:
    """Signup request: one row in the registration sheet; credentials are issued by an admin"""
    fields = [clean(v) for v in (name, phone, state, district, place, post_office, pin_code)]
    if not all(fields):
        raise ValidationError("Please fill in all required fields")
    name, phone, state, district, place, post_office, pin_code = fields
    if not RE_PIN_CODE.fullmatch(pin_code):
        raise ValidationError("Please enter a valid 6-digit pin code")

    registered_on = registered_on or today_local()
    row = [name, phone, clean(gmail), state, district, place, post_office, pin_code, registered_on.isoformat()]
    result = cache.append(SHEET_REGISTRATION, row)
    raise_for_failure(result, "Registration failed")
    logger.info("registration submitted for %s", name)
    return "Account created successfully! Please contact admin for login credentials."


def _schedule_rows(ctx: SessionContext, class_num) -> List[dict]:
    identity = ctx.require_identity()
    class_num = _class_or_fail(identity.class_num if class_num is None else class_num)
    if identity.is_admin and ctx.scope is not None and class_num not in ctx.scope.classes:
        raise AccessDenied(f"Access denied: Class {class_num} is not assigned to you.")

    rows = ctx.cache.get(schedule_sheet(class_num))
    raise_for_failure(rows, "Schedule not available")
    return as_rows(rows)


def load_schedule(ctx: SessionContext, class_num=None, on: Optional[date] = None) -> List[Period]:
    """Timetable of one day for a class (default: the signed-in student's class, today)"""
    periods = periods_for_today(_schedule_rows(ctx, class_num), on)
    if not periods:
        raise EmptyResult("No schedule for today")
    return periods


def load_week_schedule(ctx: SessionContext, class_num=None) -> Dict[str, List[Period]]:
    week = week_schedule(_schedule_rows(ctx, class_num))
    if not week:
        raise EmptyResult("No schedule found")
    return week
