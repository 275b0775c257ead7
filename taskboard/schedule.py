# taskboard/schedule.py
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from .config import COL_DAY, FREE_PERIOD, PERIOD_PREFIX, WEEKDAY_ORDER
from .utils import clean, norm, today_local

RE_PERIOD_COL = re.compile(rf"{re.escape(PERIOD_PREFIX)}_?(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class Period:
    number: int
    subject: str
    free: bool


def weekday_name(d: date) -> str:
    return WEEKDAY_ORDER[d.weekday()]


def normalize_day(day) -> str:
    """'Monday' / ' mon ' / 'MON' -> 'monday'; unknown -> ''"""
    s = norm(day).lower()
    if not s:
        return ""
    for d in WEEKDAY_ORDER:
        if d == s or (len(s) >= 3 and d.startswith(s)):
            return d
    return ""


def period_cells(row: dict) -> List[Tuple[int, str]]:
    """period_N columns of one row as (N, cell), ordered by N"""
    out = []
    for key, value in row.items():
        m = RE_PERIOD_COL.fullmatch(norm(key))
        if m and int(m.group(1)) > 0:
            out.append((int(m.group(1)), clean(value)))
    return sorted(out)


def to_periods(row: dict) -> List[Period]:
    periods = []
    for number, cell in period_cells(row):
        free = not cell or cell.lower() == FREE_PERIOD.lower()
        periods.append(Period(number, FREE_PERIOD if free else cell, free))
    return periods


def find_day_row(rows: Sequence[dict], weekday: str) -> Optional[dict]:
    target = normalize_day(weekday)
    for row in rows:
        if target and normalize_day(row.get(COL_DAY)) == target:
            return row
    return None


def day_schedule(rows: Sequence[dict], weekday: str) -> List[Period]:
    row = find_day_row(rows, weekday)
    return to_periods(row) if row is not None else []


def periods_for_today(rows: Sequence[dict], today: Optional[date] = None) -> List[Period]:
    return day_schedule(rows, weekday_name(today or today_local()))


def week_schedule(rows: Sequence[dict]) -> Dict[str, List[Period]]:
    """weekday -> periods, Monday first; days missing from the sheet are left out"""
    out = {}
    for day in WEEKDAY_ORDER:
        row = find_day_row(rows, day)
        if row is not None:
            out[day] = to_periods(row)
    return out

