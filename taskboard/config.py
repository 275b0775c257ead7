# taskboard/config.py
import os

from dotenv import load_dotenv

load_dotenv()

PAGE_TITLE = "DHDC Task Dashboard"

API_URL = os.environ.get(
    "TASKBOARD_API_URL",
    "https://script.google.com/macros/s/AKfycbw0jNeTVwrG8wVloSCtsqPf76yAy4_LP4JrZa9OGoIOivBQ2B0OaEBr5XHyhCUjvh_cXg/exec",
)
HTTP_TIMEOUT = float(os.environ.get("TASKBOARD_HTTP_TIMEOUT", "15"))
HTTP_RETRIES = int(os.environ.get("TASKBOARD_HTTP_RETRIES", "0"))  # 0 = no retry

# Both cache tiers are keyed by sheet name; one durable file per browser session
CACHE_DIR = os.environ.get(
    "TASKBOARD_CACHE_DIR",
    os.path.join(os.path.expanduser("~"), ".cache", "taskboard"),
)
MEMORY_TTL = 30          # seconds
DURABLE_TTL = 5 * 60     # seconds
REFRESH_INTERVAL = 2 * 60
SESSION_IDLE_TIMEOUT = int(os.environ.get("TASKBOARD_SESSION_IDLE_TIMEOUT", str(15 * 60)))
BATCH_WORKERS = 4


def cache_path(session_key, cache_dir=CACHE_DIR) -> str:
    return os.path.join(cache_dir, f"dhdc_cache_{session_key}.json")


TIMEZONE = os.environ.get("TASKBOARD_TIMEZONE", "Asia/Kolkata")

PROFILE_PIC_BASE = os.environ.get("TASKBOARD_PROFILE_PIC_BASE", "https://dqdhdc.netlify.app/pic")
PROFILE_PIC_EXTENSIONS = ["png", "jpg", "jpeg"]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"

# Sheet names
SHEET_USERS = "user_credentials"
SHEET_REGISTRATION = "registration"
SHEET_PASSWORD_UPDATES = "password_updates"


def tasks_sheet(class_num) -> str:
    return f"{class_num}_tasks_master"


def progress_sheet(username) -> str:
    return f"{username}_progress"


def schedule_sheet(class_num) -> str:
    return f"{class_num}_schedule"


# Record fields
COL_USERNAME = "username"
COL_PASSWORD = "password"
COL_FULL_NAME = "full_name"
COL_ROLE = "role"
COL_CLASS = "class"
COL_SUBJECTS = "subjects"

COL_TASK_ID = "task_id"
COL_SUBJECT = "subject"
COL_TITLE = "title"
COL_DESCRIPTION = "description"
COL_DUE_DATE = "due_date"

COL_ITEM_ID = "item_id"
COL_ITEM_TYPE = "item_type"
COL_STATUS = "status"
COL_COMPLETION_DATE = "completion_date"
COL_GRADE = "grade"

COL_DAY = "day"
PERIOD_PREFIX = "period"  # period_1, period_2, ... (also "Period 1")

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

ITEM_TASK = "task"
ITEM_COURSE = "course"
STATUS_COMPLETE = "complete"

DEFAULT_SUBJECT = "General"
ALL_SUBJECTS = ["english", "mathematics", "urdu", "arabic", "malayalam", "social science", "science"]

# Task status labels
LABEL_COMPLETED = "Completed"
LABEL_OVERDUE = "Overdue"
LABEL_DUE_TODAY = "Due Today"
LABEL_PENDING = "Pending"
LABEL_ACTIVE = "Active"

DEFAULT_GRADE = 30
MAX_GRADE = 30
MIN_PASSWORD_LENGTH = 6

FREE_PERIOD = "Free"
WEEKDAY_ORDER = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
