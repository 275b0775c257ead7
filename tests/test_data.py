from datetime import date

import pytest

from conftest import TODAY
from taskboard.data import (
    add_task, list_students, load_class_subject, load_schedule, load_status,
    load_student_task_sheet, load_student_tasks, load_week_schedule, mark_tasks_complete, register,
)
from taskboard.errors import (
    AccessDenied, EmptyResult, TransportFailure, ValidationError,
)
from taskboard.session import new_session


def add_user(store, username, password, class_num, role="student"):
    store.sheets["user_credentials"].append(
        {"username": username, "password": password, "full_name": "", "role": role, "class": class_num}
    )


# --- student views ---

def test_student_tasks_grouped_with_status(student_ctx):
    groups = load_student_tasks(student_ctx, TODAY)
    assert list(groups) == ["English", "Mathematics", "General"]
    assert groups["English"].completed_count == 1
    assert groups["English"].tasks[0].grade == "25"
    assert groups["Mathematics"].tasks[0].status == "Due Today"


def test_student_without_class(ctx, store):
    add_user(store, "dan", "pw-dan", "")
    ctx.login("dan", "pw-dan")
    with pytest.raises(EmptyResult, match="Class: Not Assigned"):
        load_student_tasks(ctx, TODAY)


def test_student_class_without_task_sheet(ctx, store):
    add_user(store, "eve", "pw-eve", 7)
    ctx.login("eve", "pw-eve")
    with pytest.raises(EmptyResult):
        load_student_tasks(ctx, TODAY)


def test_own_status(student_ctx):
    view = load_status(student_ctx)
    assert (view.completed, view.pending, view.percent) == (1, 3, 25)
    english = view.points["English"]
    assert (english.total_tasks, english.completed_tasks, english.total_points) == (2, 1, 25)
    assert view.points["General"].completed_tasks == 0


def test_status_without_progress_sheet(ctx):
    ctx.login("bob", "123456")
    view = load_status(ctx)
    assert (view.completed, view.pending, view.percent) == (0, 4, 0)


def test_admin_reads_another_students_status(admin_ctx):
    view = load_status(admin_ctx, "alice")
    assert view.name == "Alice Mathew"
    assert view.class_num == "5"
    assert view.percent == 25

    with pytest.raises(EmptyResult, match="User not found!"):
        load_status(admin_ctx, "ghost")


def test_student_cannot_read_other_status(student_ctx):
    with pytest.raises(AccessDenied):
        load_status(student_ctx, "bob")


def test_schedule_for_today(student_ctx):
    periods = load_schedule(student_ctx, on=TODAY)
    assert [(p.number, p.subject, p.free) for p in periods] == [
        (1, "English", False), (2, "Free", True), (3, "Free", True), (4, "Mathematics", False),
    ]
    assert [p.subject for p in load_schedule(student_ctx, on=date(2025, 3, 11))] == ["Urdu", "Science"]
    with pytest.raises(EmptyResult, match="No schedule for today"):
        load_schedule(student_ctx, on=date(2025, 3, 12))


def test_schedule_missing_sheet(ctx):
    ctx.login("carol", "pw-carol")
    with pytest.raises(EmptyResult):
        load_schedule(ctx, on=TODAY)


def test_admin_schedule_limited_to_assigned_classes(admin_ctx):
    assert len(load_schedule(admin_ctx, "5", on=TODAY)) == 4
    with pytest.raises(AccessDenied):
        load_schedule(admin_ctx, "7", on=TODAY)


def test_week_schedule(student_ctx):
    week = load_week_schedule(student_ctx)
    assert list(week) == ["monday", "tuesday"]
    assert [p.subject for p in week["tuesday"]] == ["Urdu", "Science"]


def test_week_schedule_missing_sheet(ctx):
    ctx.login("carol", "pw-carol")
    with pytest.raises(EmptyResult):
        load_week_schedule(ctx)


# --- admin views ---

def test_list_students(admin_ctx):
    df = list_students(admin_ctx)
    assert df["username"].tolist() == ["alice", "bob", "carol"]
    assert df["name"].tolist() == ["Alice Mathew", "bob", "Carol"]
    assert df["class"].tolist() == ["5", "5", "6"]
    assert df["initials"].tolist() == ["AM", "BO", "C"]
    assert "password" not in df.columns


def test_list_students_requires_admin(student_ctx):
    with pytest.raises(AccessDenied):
        list_students(student_ctx)


def test_class_subject_view(admin_ctx):
    view = load_class_subject(admin_ctx, "5", "English", TODAY)
    assert view.subject == "english"
    assert [(t.task_id, t.status) for t in view.tasks] == [("T1", "Overdue"), ("T3", "Active")]
    assert view.tasks[0].due_label == "Mar 1, 2025"
    assert view.students["username"].tolist() == ["alice", "bob"]
    assert view.tasks_message is None and view.students_message is None


def test_class_subject_view_outside_scope(admin_ctx):
    with pytest.raises(AccessDenied):
        load_class_subject(admin_ctx, "6", "english", TODAY)


def test_class_subject_view_reports_student_load_errors_inline(admin_ctx, store):
    store.fail.add("user_credentials")
    view = load_class_subject(admin_ctx, "6", "science", TODAY)
    assert [t.task_id for t in view.tasks] == ["T2"]
    assert view.students_message == "Error loading students."
    assert view.students.empty


def test_student_task_sheet_prefills_grades(admin_ctx):
    items = load_student_task_sheet(admin_ctx, "alice", "5", "english", TODAY)
    assert [(i.task.task_id, i.grade, i.label) for i in items] == [
        ("T1", 25, "Completed (25/30)"),
        ("T3", 30, "Pending"),
    ]


def test_mark_tasks_complete_appends_and_refreshes(admin_ctx, store):
    load_student_task_sheet(admin_ctx, "alice", "5", "english", TODAY)

    written = mark_tasks_complete(admin_ctx, "alice", "5", "english", {"T3": 28}, completed_on=TODAY)
    assert written == 1
    assert store.appends[-1] == ("alice_progress", ["T3", "task", "complete", "2025-03-10", "28"])

    items = load_student_task_sheet(admin_ctx, "alice", "5", "english", TODAY)
    assert items[1].label == "Completed (28/30)"
    assert store.read_count("alice_progress") == 2


def test_mark_tasks_complete_for_student_without_progress_sheet(admin_ctx, store):
    assert mark_tasks_complete(admin_ctx, "bob", "5", "English", {"T1": "30", "T3": 12}, TODAY) == 2
    assert [r["item_id"] for r in store.sheets["bob_progress"]] == ["T1", "T3"]
    assert load_status(admin_ctx, "bob").percent == 50


def test_mark_tasks_complete_validation(admin_ctx, store):
    with pytest.raises(ValidationError, match="No tasks selected"):
        mark_tasks_complete(admin_ctx, "alice", "5", "english", {})
    with pytest.raises(AccessDenied):
        mark_tasks_complete(admin_ctx, "carol", "6", "art", {"T3": 30})
    assert store.appends == []


def test_mark_tasks_complete_write_failure(admin_ctx, store):
    store.fail.add("alice_progress")
    with pytest.raises(TransportFailure):
        mark_tasks_complete(admin_ctx, "alice", "5", "english", {"T3": 30}, TODAY)


def test_add_task_uses_next_id(admin_ctx, store):
    task_id = add_task(admin_ctx, "5", "English", "Notes", "Copy chapter 3", date(2025, 3, 30))
    assert task_id == "T5"
    assert store.appends[-1] == ("5_tasks_master", ["english", "T5", "Notes", "Copy chapter 3", "03-30-2025"])

    view = load_class_subject(admin_ctx, "5", "english", TODAY)
    assert [t.task_id for t in view.tasks][-1] == "T5"
    assert add_task(admin_ctx, "5", "english", "More", "Again", "04-01-2025") == "T6"


def test_add_task_ids_stay_unique_across_sessions(store, tmp_path):
    first = new_session("a", client=store, cache_dir=tmp_path, background_refresh=False)
    second = new_session("b", client=store, cache_dir=tmp_path, background_refresh=False)
    first.login("rahman", "teach")
    second.login("rahman", "teach")
    load_class_subject(first, "5", "english", TODAY)

    assert add_task(second, "5", "english", "Essay", "Write one page", date(2025, 3, 30)) == "T5"
    assert add_task(first, "5", "english", "Poem", "Learn by heart", date(2025, 3, 31)) == "T6"


@pytest.mark.parametrize("title, description, due", [
    ("", "desc", date(2025, 3, 30)),
    ("Title", "  ", date(2025, 3, 30)),
    ("Title", "desc", "someday"),
])
def test_add_task_validation(admin_ctx, store, title, description, due):
    with pytest.raises(ValidationError, match="Please fill in all required fields."):
        add_task(admin_ctx, "5", "english", title, description, due)
    assert store.appends == []


# --- registration ---

def test_register(cache, store):
    message = register(cache, " Sara ", "9876543210", "Kerala", "Malappuram", "Tirur", "Tirur PO", "676101",
                       gmail="sara@gmail.com", registered_on=TODAY)
    assert message == "Account created successfully! Please contact admin for login credentials."
    assert store.appends[-1] == ("registration", [
        "Sara", "9876543210", "sara@gmail.com", "Kerala", "Malappuram", "Tirur", "Tirur PO", "676101", "2025-03-10",
    ])


@pytest.mark.parametrize("pin, message", [
    ("67610", "valid 6-digit pin code"),
    ("67610a", "valid 6-digit pin code"),
    ("", "required fields"),
])
def test_register_validation(cache, store, pin, message):
    with pytest.raises(ValidationError, match=message):
        register(cache, "Sara", "98765", "Kerala", "Malappuram", "Tirur", "Tirur PO", pin)
    assert store.appends == []
