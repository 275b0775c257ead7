# taskboard/utils.py
import re
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

import pandas as pd

from .config import TIMEZONE

RE_SPACES = re.compile(r"\s+")
RE_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
RE_CLASS_SPLIT = re.compile(r"[,\s]+")

LOCAL_TZ = ZoneInfo(TIMEZONE)

DATE_FORMATS = ["%m-%d-%Y", "%Y-%m-%d", "%m/%d/%Y", "%d %b %Y", "%b %d, %Y"]


def now_local() -> datetime:
    return datetime.now(LOCAL_TZ)


def today_local() -> date:
    return now_local().date()


def is_blank(v) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and pd.isna(v):
        return True
    return str(v).strip() == ""


def norm(v) -> str:
    """Cell normalisation: NaN -> '', NBSP/full-width spaces and all whitespace removed"""
    if is_blank(v):
        return ""
    s = str(v).replace("\u00A0", "").replace("\u3000", "")
    return RE_SPACES.sub("", s)


def clean(v) -> str:
    """Trimmed string form of a cell; NaN/None -> ''"""
    if is_blank(v):
        return ""
    return str(v).replace("\u00A0", " ").strip()


def same_id(a, b) -> bool:
    """Ids from the sheet arrive as str or number; compare them as strings."""
    return id_str(a) == id_str(b)


def id_str(v) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return clean(v)


def parse_int(v, default: int = 0) -> int:
    """Leading-integer parse: '25' -> 25, '12.5' -> 12, '7pts' -> 7, 'abc' -> default"""
    if isinstance(v, bool):
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return default if pd.isna(v) else int(v)
    m = RE_LEADING_INT.match(clean(v))
    return int(m.group(1)) if m else default


def parse_date(v) -> Optional[date]:
    """
    Day-granularity parse of a sheet date cell.
    - 'MM-DD-YYYY' (what the add-task form writes), ISO dates, a few display formats
    - ISO timestamps (the sheet's serialised dates) are moved to local time first
    Unparseable -> None
    """
    if isinstance(v, datetime):
        return _local_date(v)
    if isinstance(v, date):
        return v

    s = clean(v)
    if not s:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue

    ts = pd.to_datetime(s, errors="coerce")
    if pd.isna(ts):
        return None
    return _local_date(ts.to_pydatetime())


def _local_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(LOCAL_TZ)
    return dt.date()


def format_date(v) -> str:
    """'Jan 5, 2025' style label; 'Invalid Date' when the cell cannot be parsed"""
    d = parse_date(v)
    if d is None:
        return "Invalid Date"
    return f"{d.strftime('%b')} {d.day}, {d.year}"


def split_classes(class_str) -> List[str]:
    """'5, 6' / '5 6' / '5,6' -> ['5', '6'] (numeric tokens only)"""
    s = clean(class_str)
    return [c for c in RE_CLASS_SPLIT.split(s) if c and c.isdigit()]


def split_list(s, sep: str = ",") -> List[str]:
    """'Math, Science,' -> ['math', 'science']"""
    return [x.strip().lower() for x in clean(s).split(sep) if x.strip()]


def initials(full_name, username) -> str:
    name = clean(full_name)
    if name:
        return "".join(part[0] for part in name.split()).upper()[:2]
    return clean(username)[:2].upper()
