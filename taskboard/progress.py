# taskboard/progress.py
"""
Derived state from raw sheet rows. No I/O, inputs are never mutated.

Progress sheets are append-only logs: the same item can be completed more than
once, so "completed" means *any* matching complete row exists.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from .config import (
    COL_DESCRIPTION, COL_DUE_DATE, COL_GRADE, COL_ITEM_ID, COL_ITEM_TYPE, COL_STATUS,
    COL_SUBJECT, COL_TASK_ID, COL_TITLE, DEFAULT_GRADE, DEFAULT_SUBJECT, ITEM_TASK,
    LABEL_ACTIVE, LABEL_COMPLETED, LABEL_DUE_TODAY, LABEL_OVERDUE, LABEL_PENDING,
    STATUS_COMPLETE,
)
from .utils import clean, format_date, parse_date, parse_int, same_id, today_local

RE_TASK_ID = re.compile(r"T(\d+)")


@dataclass(frozen=True)
class TaskStatus:
    completed: bool
    grade: Optional[str]
    status: str


@dataclass
class TaskView:
    task_id: str
    subject: str
    title: str
    description: str
    due_date: Optional[date]
    due_label: str
    completed: bool
    grade: Optional[str]
    status: str


@dataclass
class SubjectGroup:
    tasks: List[TaskView] = field(default_factory=list)
    completed_count: int = 0


@dataclass
class SubjectPoints:
    total_tasks: int = 0
    completed_tasks: int = 0
    earned_points: int = 0
    total_points: int = 0


def find_completion(item_id, progress_rows: Sequence[dict], item_type: str = ITEM_TASK) -> Optional[dict]:
    """First complete progress row for item_id, or None"""
    for p in progress_rows:
        if (
            same_id(p.get(COL_ITEM_ID), item_id)
            and p.get(COL_ITEM_TYPE) == item_type
            and p.get(COL_STATUS) == STATUS_COMPLETE
        ):
            return p
    return None


def due_status(due: Optional[date], today: date, pending_label: str = LABEL_PENDING) -> str:
    # an unparseable due date is neither past nor today
    if due is None:
        return pending_label
    if due < today:
        return LABEL_OVERDUE
    if due == today:
        return LABEL_DUE_TODAY
    return pending_label


def reconcile_task(task: dict, progress_rows: Sequence[dict], today: Optional[date] = None) -> TaskStatus:
    today = today or today_local()
    match = find_completion(task.get(COL_TASK_ID), progress_rows)
    if match is not None:
        grade = match.get(COL_GRADE)
        return TaskStatus(True, None if grade is None else str(grade), LABEL_COMPLETED)
    return TaskStatus(False, None, due_status(parse_date(task.get(COL_DUE_DATE)), today))


def admin_task_status(task: dict, today: Optional[date] = None) -> str:
    """Class-level view (no student): Active / Overdue / Due Today"""
    return due_status(parse_date(task.get(COL_DUE_DATE)), today or today_local(), LABEL_ACTIVE)


def subject_of(task: dict) -> str:
    return clean(task.get(COL_SUBJECT)) or DEFAULT_SUBJECT


def task_view(task: dict, progress_rows: Sequence[dict], today: Optional[date] = None) -> TaskView:
    st = reconcile_task(task, progress_rows, today)
    return TaskView(
        task_id=clean(task.get(COL_TASK_ID)),
        subject=subject_of(task),
        title=clean(task.get(COL_TITLE)),
        description=clean(task.get(COL_DESCRIPTION)),
        due_date=parse_date(task.get(COL_DUE_DATE)),
        due_label=format_date(task.get(COL_DUE_DATE)),
        completed=st.completed,
        grade=st.grade,
        status=st.status,
    )


def group_by_subject(
    tasks: Sequence[dict], progress_rows: Sequence[dict], today: Optional[date] = None
) -> Dict[str, SubjectGroup]:
    """subject -> SubjectGroup, in order of first appearance"""
    today = today or today_local()
    groups: Dict[str, SubjectGroup] = {}
    for task in tasks:
        view = task_view(task, progress_rows, today)
        group = groups.setdefault(view.subject, SubjectGroup())
        group.tasks.append(view)
        if view.completed:
            group.completed_count += 1
    return groups


def compute_subject_points(tasks: Sequence[dict], progress_rows: Sequence[dict]) -> Dict[str, SubjectPoints]:
    """
    Per subject: task count, completed count and the sum of grades of completed tasks.
    total_points is the earned sum as well; there is no per-task maximum to normalise by.
    """
    stats: Dict[str, SubjectPoints] = {}
    for task in tasks:
        s = stats.setdefault(subject_of(task), SubjectPoints())
        s.total_tasks += 1

        match = find_completion(task.get(COL_TASK_ID), progress_rows)
        if match is not None:
            s.completed_tasks += 1
            s.earned_points += parse_grade(match.get(COL_GRADE))

    for s in stats.values():
        s.total_points = s.earned_points
    return stats


def completed_item_ids(progress_rows: Sequence[dict], item_type: str = ITEM_TASK) -> List[str]:
    """Distinct completed item ids, first-seen order"""
    seen: Dict[str, None] = {}
    for p in progress_rows:
        if p.get(COL_ITEM_TYPE) == item_type and p.get(COL_STATUS) == STATUS_COMPLETE:
            seen.setdefault(clean(p.get(COL_ITEM_ID)), None)
    return list(seen)


def compute_aggregate_progress(progress_rows: Sequence[dict], total: int, item_type: str = ITEM_TASK) -> int:
    """round(completed / total * 100); 0 when total is 0"""
    if not total or total <= 0:
        return 0
    completed = len(completed_item_ids(progress_rows, item_type))
    # half-up rounding, not banker's
    return int(math.floor(completed / total * 100 + 0.5))


def task_chart_counts(progress_rows: Sequence[dict], tasks: Sequence[dict]) -> Tuple[int, int]:
    """(completed, pending) for the completed/pending doughnut"""
    completed = len(completed_item_ids(progress_rows, ITEM_TASK))
    return completed, max(0, len(tasks) - completed)


def parse_grade(v) -> int:
    return parse_int(v, 0)


def next_task_id(existing_tasks: Sequence[dict]) -> str:
    """T<max+1> over ids shaped 'T<integer>'; 'T1' for an empty sheet"""
    numbers = []
    for task in existing_tasks or []:
        m = RE_TASK_ID.fullmatch(clean(task.get(COL_TASK_ID)))
        if m:
            numbers.append(int(m.group(1)))
    if not numbers:
        return "T1"
    return f"T{max(numbers) + 1}"


def default_grade(match: Optional[dict]) -> int:
    """Grade pre-filled in the marking form: the recorded grade, else DEFAULT_GRADE"""
    if match is None:
        return DEFAULT_GRADE
    return parse_int(match.get(COL_GRADE), DEFAULT_GRADE)


def completion_row(task_id, grade, completed_on: date, item_type: str = ITEM_TASK) -> list:
    """[item_id, item_type, status, completion_date, grade] as the progress sheet expects"""
    return [clean(task_id), item_type, STATUS_COMPLETE, completed_on.isoformat(), str(max(0, parse_int(grade, 0)))]


def new_task_row(subject: str, task_id: str, title: str, description: str, due: date) -> list:
    """[subject, task_id, title, description, due_date(MM-DD-YYYY)]"""
    return [subject, task_id, title, description, due.strftime("%m-%d-%Y")]
