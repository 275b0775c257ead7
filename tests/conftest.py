from datetime import date

import pytest

from taskboard.cache import CacheLayer
from taskboard.errors import EmptyResult, TransportFailure
from taskboard.session import SessionContext
from taskboard.store import Failure

TODAY = date(2025, 3, 10)  # a Monday

TASK_COLUMNS = ["subject", "task_id", "title", "description", "due_date"]
PROGRESS_COLUMNS = ["item_id", "item_type", "status", "completion_date", "grade"]


def default_sheets():
    return {
        "user_credentials": [
            {"username": "alice", "password": "secret1", "full_name": "Alice Mathew", "role": "student", "class": 5},
            {"username": "bob", "password": 123456, "full_name": "", "role": "student", "class": "5"},
            {"username": "carol", "password": "pw-carol", "full_name": "Carol", "role": "student", "class": 6},
            {"username": "rahman", "password": "teach", "full_name": "Mr Rahman", "role": "admin",
             "class": "5, 6", "subjects": "(5-all)(6-math,science)"},
            {"username": "flat", "password": "flatpw", "full_name": "Flat Admin", "role": "admin",
             "class": "5", "subjects": "English, Physics"},
        ],
        "5_tasks_master": [
            {"subject": "English", "task_id": "T1", "title": "Essay", "description": "Write", "due_date": "03-01-2025"},
            {"subject": "Mathematics", "task_id": "T2", "title": "Algebra", "description": "Ex 2", "due_date": "03-10-2025"},
            {"subject": "English", "task_id": "T3", "title": "Poem", "description": "Read", "due_date": "03-20-2025"},
            {"subject": "", "task_id": "T4", "title": "Assembly", "description": "Attend", "due_date": "03-25-2025"},
        ],
        "6_tasks_master": [
            {"subject": "Math", "task_id": "T1", "title": "Fractions", "description": "", "due_date": "03-05-2025"},
            {"subject": "Science", "task_id": "T2", "title": "Plants", "description": "", "due_date": "03-15-2025"},
            {"subject": "Art", "task_id": "T3", "title": "Drawing", "description": "", "due_date": "03-15-2025"},
        ],
        "alice_progress": [
            {"item_id": "T1", "item_type": "task", "status": "complete", "completion_date": "2025-03-02", "grade": "25"},
            {"item_id": "T1", "item_type": "task", "status": "complete", "completion_date": "2025-03-03", "grade": "20"},
            {"item_id": "C1", "item_type": "course", "status": "complete", "completion_date": "2025-03-03", "grade": ""},
        ],
        "5_schedule": [
            {"day": "Monday", "period_1": "English", "period_2": "", "period_3": "Free", "period_4": "Mathematics"},
            {"day": "tuesday", "period_1": "Urdu", "period_2": "Science"},
        ],
    }


class FakeStore:
    """In-memory stand-in for RemoteStoreClient: sheets as lists of records."""

    def __init__(self, sheets=None):
        self.sheets = {k: [dict(r) for r in v] for k, v in (sheets or {}).items()}
        self.reads = []
        self.appends = []
        self.password_updates = []
        self.fail = set()

    def read(self, sheet_name):
        self.reads.append(sheet_name)
        if sheet_name in self.fail:
            return Failure("HTTP 500", TransportFailure.kind)
        if sheet_name not in self.sheets:
            return Failure("Sheet not found", EmptyResult.kind)
        return [dict(r) for r in self.sheets[sheet_name]]

    def append(self, sheet_name, row):
        self.appends.append((sheet_name, list(row)))
        if sheet_name in self.fail:
            return Failure("HTTP 500", TransportFailure.kind)
        if sheet_name.endswith("_tasks_master"):
            columns = TASK_COLUMNS
        elif sheet_name.endswith("_progress"):
            columns = PROGRESS_COLUMNS
        else:
            columns = [f"col{i}" for i in range(len(row))]
        self.sheets.setdefault(sheet_name, []).append(dict(zip(columns, row)))
        return {"success": True}

    def update_password(self, username, new_password):
        self.password_updates.append(("append", username, new_password))
        return self.append("password_updates", [username, new_password])

    def update_password_via_query(self, username, new_password):
        self.password_updates.append(("query", username, new_password))
        return {"success": True}

    def read_count(self, sheet_name):
        return self.reads.count(sheet_name)


class FakeClock:
    def __init__(self, t=1_000_000.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


class FakeResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """Records requests; answers from a queue of FakeResponse objects or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def head(self, url, **kwargs):
        return self.request("HEAD", url, **kwargs)


@pytest.fixture
def store():
    return FakeStore(default_sheets())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "dhdc_cache.json"


@pytest.fixture
def cache(store, cache_path, clock):
    return CacheLayer(store, path=cache_path, clock=clock)


@pytest.fixture
def ctx(cache):
    return SessionContext(cache, background_refresh=False)


@pytest.fixture
def student_ctx(ctx):
    ctx.login("alice", "secret1")
    return ctx


@pytest.fixture
def admin_ctx(ctx):
    ctx.login("rahman", "teach")
    return ctx
