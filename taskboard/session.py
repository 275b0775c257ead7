# taskboard/session.py
"""
Signed-in identity and, for admins, the class/subject scope they may manage.

Admin `class` cell   : "5, 6" / "5 6"                  -> ["5", "6"]
Admin `subjects` cell: "(5-all)(6-math,science)"        -> per-class lists ('all' = ALL_SUBJECTS)
                       "math, science"                  -> same list for every class
Declared subjects are then narrowed to the subjects that actually have tasks in each
class's task sheet.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from apscheduler.schedulers.base import BaseScheduler

from .cache import BackgroundRefresher, CacheLayer
from .config import (
    ALL_SUBJECTS, CACHE_DIR, COL_CLASS, COL_FULL_NAME, COL_PASSWORD, COL_ROLE, COL_SUBJECT, COL_SUBJECTS,
    COL_USERNAME, MIN_PASSWORD_LENGTH, REFRESH_INTERVAL, ROLE_ADMIN, ROLE_STUDENT, SHEET_USERS,
    SESSION_IDLE_TIMEOUT, cache_path, progress_sheet, tasks_sheet,
)
from .errors import AccessDenied, AuthFailure, TransportFailure, ValidationError
from .store import RemoteStoreClient, as_rows, failure_message, is_failure
from .utils import clean, split_classes, split_list

logger = logging.getLogger(__name__)

RE_SUBJECT_GROUP = re.compile(r"\(\d+-[^)]+\)")


@dataclass
class Identity:
    username: str
    name: str
    role: str = ROLE_STUDENT
    class_num: Optional[str] = None
    subjects: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_row(cls, row: Mapping) -> "Identity":
        username = cell_str(row.get(COL_USERNAME))
        return cls(
            username=username,
            name=clean(row.get(COL_FULL_NAME)) or username,
            role=clean(row.get(COL_ROLE)) or ROLE_STUDENT,
            class_num=cell_str(row.get(COL_CLASS)) or None,
            subjects=clean(row.get(COL_SUBJECTS)) or None,
        )


@dataclass
class AdminScope:
    classes: List[str] = field(default_factory=list)
    subjects: Dict[str, List[str]] = field(default_factory=dict)

    def subjects_for(self, class_num) -> List[str]:
        return list(self.subjects.get(clean(class_num), []))

    def allows(self, class_num, subject) -> bool:
        return clean(subject).lower() in self.subjects.get(clean(class_num), [])

    def describe(self) -> str:
        if not self.classes:
            return "No classes or subjects assigned"
        parts = [f"Classes: {', '.join(self.classes)}"]
        for c in self.classes:
            subjs = self.subjects.get(c, [])
            parts.append(f"Class {c}: {', '.join(subjs) if subjs else 'No subjects'}")
        return " | ".join(parts)


def cell_str(v) -> str:
    """A credential cell as the string it was typed as (123456 -> '123456'), untrimmed"""
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def parse_admin_classes(class_field) -> List[str]:
    return split_classes(class_field)


def parse_admin_subjects(subjects_field, classes: Sequence[str]) -> Dict[str, List[str]]:
    """Declared subjects per class, before checking them against the task sheets"""
    declared: Dict[str, List[str]] = {}
    s = clean(subjects_field)
    if not s or not classes:
        return declared

    groups = RE_SUBJECT_GROUP.findall(s)
    if not groups:
        subjects = split_list(s)
        for c in classes:
            declared[c] = list(subjects)
        return declared

    for group in groups:
        class_part, _, subject_part = group[1:-1].partition("-")
        class_num = class_part.strip()
        if subject_part.strip().lower() == "all":
            subjects = list(ALL_SUBJECTS)
        else:
            subjects = split_list(subject_part)
        if subjects and class_num in classes:
            declared[class_num] = subjects
    return declared


def verify_scope(
    classes: Sequence[str], declared: Mapping[str, List[str]], class_tasks: Mapping[str, Sequence[dict]]
) -> AdminScope:
    """Drop declared subjects that have no task in that class's sheet."""
    verified: Dict[str, List[str]] = {}
    for c in classes:
        tasks = class_tasks.get(c) or []
        present = {clean(t.get(COL_SUBJECT)).lower() for t in tasks} - {""}
        verified[c] = [s for s in declared.get(c, []) if s.lower() in present]
    return AdminScope(list(classes), verified)


def build_scope(identity: Identity, cache: CacheLayer) -> AdminScope:
    classes = parse_admin_classes(identity.class_num)
    declared = parse_admin_subjects(identity.subjects, classes)

    results = cache.get_many(tasks_sheet(c) for c in classes)
    class_tasks = {c: as_rows(results.get(tasks_sheet(c))) for c in classes}
    scope = verify_scope(classes, declared, class_tasks)
    logger.info("admin scope for %s: %s", identity.username, scope.describe())
    return scope


class SessionContext:
    """Lifecycle: login() at sign-in, touch() on every page run, logout() at sign-out."""

    def __init__(
        self,
        cache: CacheLayer,
        refresh_interval: float = REFRESH_INTERVAL,
        background_refresh: bool = True,
        idle_timeout: Optional[float] = SESSION_IDLE_TIMEOUT,
        scheduler: Optional[BaseScheduler] = None,
    ):
        self.cache = cache
        self.identity: Optional[Identity] = None
        self.scope: Optional[AdminScope] = None
        self.background_refresh = background_refresh
        self.refresher = BackgroundRefresher(
            cache, self.critical_sheets, refresh_interval, idle_timeout=idle_timeout, scheduler=scheduler,
        )

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    def touch(self) -> None:
        """Mark the session alive; resumes a refresh job that was retired while idle"""
        self.refresher.touch()
        if self.authenticated and self.background_refresh and not self.refresher.running:
            self.refresher.start()

    def login(self, username: str, password: str) -> Identity:
        username = (username or "").strip()
        password = (password or "").strip()
        if not username or not password:
            raise AuthFailure("Please enter both username and password")

        users = self.cache.get(SHEET_USERS, allow_cache=False)
        if is_failure(users) or not isinstance(users, list):
            raise TransportFailure("Failed to fetch user data")

        # exact, case-sensitive match
        row = next(
            (
                u for u in as_rows(users)
                if cell_str(u.get(COL_USERNAME)) == username and cell_str(u.get(COL_PASSWORD)) == password
            ),
            None,
        )
        if row is None:
            logger.info("login failed for %s", username)
            raise AuthFailure("Invalid username or password")

        if self.authenticated:
            self.logout()

        identity = Identity.from_row(row)
        self.identity = identity
        self.scope = build_scope(identity, self.cache) if identity.is_admin else None
        logger.info("login %s (%s)", identity.username, identity.role)

        if self.background_refresh:
            self.refresher.start()
        return identity

    def logout(self) -> None:
        self.refresher.stop()
        self.cache.clear()
        if self.identity is not None:
            logger.info("logout %s", self.identity.username)
        self.identity = None
        self.scope = None

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise AuthFailure("Not signed in")
        return self.identity

    def require_admin(self) -> Identity:
        identity = self.require_identity()
        if not identity.is_admin:
            raise AccessDenied("Admin access required")
        return identity

    def check_access(self, class_num, subject) -> str:
        """Raise AccessDenied unless (class, subject) is inside the admin scope; returns the subject lower-cased"""
        self.require_admin()
        if self.scope is None or not self.scope.allows(class_num, subject):
            logger.warning("access denied: %s -> class %s / %s", self.identity.username, class_num, subject)
            raise AccessDenied("Access denied: You are not assigned to this class-subject combination.")
        return clean(subject).lower()

    def critical_sheets(self) -> List[str]:
        identity = self.identity
        if identity is None:
            return []
        sheets = [SHEET_USERS]
        if identity.role == ROLE_STUDENT and identity.class_num:
            sheets += [tasks_sheet(identity.class_num), progress_sheet(identity.username)]
        elif identity.is_admin and self.scope is not None:
            sheets += [tasks_sheet(c) for c in self.scope.classes]
        return sheets

    def change_password(self, current: str, new: str, confirm: str, via_query: bool = False) -> str:
        """Validate, verify the current password, submit the update, then sign out."""
        identity = self.require_identity()
        current = (current or "").strip()
        new = (new or "").strip()
        confirm = (confirm or "").strip()

        if not current or not new or not confirm:
            raise ValidationError("Please fill in all fields")
        if len(new) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if new != confirm:
            raise ValidationError("New passwords do not match")
        if new == current:
            raise ValidationError("New password must be different from current password")

        users = self.cache.get(SHEET_USERS, allow_cache=False)
        if is_failure(users) or not isinstance(users, list):
            raise TransportFailure("Failed to fetch user data")

        # trimmed, case-insensitive username here (login is exact)
        me = identity.username.strip().lower()
        row = next(
            (
                u for u in as_rows(users)
                if cell_str(u.get(COL_USERNAME)).strip().lower() == me
                and cell_str(u.get(COL_PASSWORD)).strip() == current
            ),
            None,
        )
        if row is None or not cell_str(row.get(COL_USERNAME)) or not cell_str(row.get(COL_PASSWORD)):
            raise AuthFailure("Current password is incorrect")

        result = self.cache.update_password(identity.username, new, via_query=via_query)
        if is_failure(result):
            raise TransportFailure(failure_message(result, "Failed to update password"))

        logger.info("password changed for %s", identity.username)
        self.logout()
        return "Password changed successfully! Please sign in again."


def new_session(session_key: str, client=None, cache_dir=CACHE_DIR, **kwargs) -> SessionContext:
    """A SessionContext for one browser session, with its own durable cache file"""
    cache = CacheLayer(
        client if client is not None else RemoteStoreClient(),
        path=cache_path(session_key, cache_dir),
    )
    return SessionContext(cache, **kwargs)
