# taskboard/filters.py
from typing import Dict, List, Sequence

import pandas as pd

from .config import (
    COL_CLASS, COL_FULL_NAME, COL_ROLE, COL_SUBJECT, COL_USERNAME, ROLE_STUDENT,
)
from .utils import id_str, initials, norm


def norm_series(sr: pd.Series) -> pd.Series:
    """Series normalisation: NaN -> '', NBSP/full-width spaces and all whitespace removed"""
    return (
        sr.fillna("")
          .astype(str)
          .str.replace("\u00A0", "", regex=False)
          .str.replace("\u3000", "", regex=False)
          .str.replace(r"\s+", "", regex=True)
    )


def records_frame(rows: Sequence[dict]) -> pd.DataFrame:
    """Rows -> DataFrame with normalised headers (the sheet is schema-less)"""
    df = pd.DataFrame(list(rows))
    if df.empty:
        return df
    df.columns = [norm(c) for c in df.columns]
    return df


def students_frame(users: Sequence[dict]) -> pd.DataFrame:
    """Student rows only, with display name and initials; credentials dropped."""
    df = records_frame(users)
    cols = [COL_USERNAME, COL_FULL_NAME, COL_CLASS]
    if df.empty or COL_ROLE not in df.columns or COL_USERNAME not in df.columns:
        return pd.DataFrame(columns=cols + ["name", "initials"])

    for c in cols:
        if c not in df.columns:
            df[c] = ""

    df = df[norm_series(df[COL_ROLE]) == ROLE_STUDENT].copy()
    df[COL_USERNAME] = df[COL_USERNAME].fillna("").astype(str).str.strip()
    df[COL_CLASS] = [norm(id_str(v)) for v in df[COL_CLASS]]
    df[COL_FULL_NAME] = df[COL_FULL_NAME].fillna("").astype(str).str.strip()
    df["name"] = df[COL_FULL_NAME].where(df[COL_FULL_NAME] != "", df[COL_USERNAME])
    df["initials"] = [initials(f, u) for f, u in zip(df[COL_FULL_NAME], df[COL_USERNAME])]
    return df[cols + ["name", "initials"]].reset_index(drop=True)


def students_in_class(users: Sequence[dict], class_num) -> pd.DataFrame:
    df = students_frame(users)
    if df.empty:
        return df
    return df[df[COL_CLASS] == norm(id_str(class_num))].reset_index(drop=True)


def tasks_for_subject(tasks: Sequence[dict], subject: str) -> List[dict]:
    """Case-insensitive subject match; rows without a subject never match"""
    target = str(subject).strip().lower()
    return [
        t for t in tasks
        if t.get(COL_SUBJECT) and str(t.get(COL_SUBJECT)).strip().lower() == target
    ]


def subject_points_frame(points: Dict[str, object]) -> pd.DataFrame:
    """{subject: SubjectPoints} -> one row per subject, for st.dataframe"""
    rows = [
        {
            "subject": subject,
            "completed": f"{p.completed_tasks}/{p.total_tasks}",
            "points": p.total_points,
        }
        for subject, p in points.items()
    ]
    return pd.DataFrame(rows, columns=["subject", "completed", "points"])
