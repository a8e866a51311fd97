import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Tuple, Union

import pandas as pd

from .errors import InvalidInputData
from .models import Course, Hall, Student, UNGROUPED
from .params import ColumnMapping

logger = logging.getLogger(__name__)

Table = Union[pd.DataFrame, Iterable[Mapping[str, Any]], None]


@dataclass(frozen=True)
class NormalizedInput:
    students: Dict[str, Student]
    courses: Dict[str, Course]
    halls: Tuple[Hall, ...]
    # distinct (student_id, course_id) pairs, sorted
    registrations: Tuple[Tuple[str, str], ...]


def as_frame(table: Table) -> pd.DataFrame:
    if table is None:
        return pd.DataFrame()
    if isinstance(table, pd.DataFrame):
        return table.reset_index(drop=True)
    return pd.DataFrame(list(table))


def _clean(series: pd.Series) -> pd.Series:
    """Cells as stripped strings; missing values become ''."""
    return series.map(lambda v: "" if pd.isna(v) else str(v).strip())


def _require_columns(df: pd.DataFrame, what: str, *columns: str):
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise InvalidInputData(
            f"{what}: missing required column(s): {', '.join(missing)}",
            details={"missing": missing, "columns": [str(c) for c in df.columns]},
        )


def _reject_partial_rows(df: pd.DataFrame, what: str, columns) -> pd.DataFrame:
    """Drop fully blank rows; raise when only some required fields are blank."""
    blank = df[list(columns)] == ""
    df = df[~blank.all(axis=1)]
    partial = blank.loc[df.index].any(axis=1)
    if partial.any():
        rows = [int(i) + 1 for i in df.index[partial][:10]]
        raise InvalidInputData(
            f"{what}: {int(partial.sum())} row(s) with empty required fields (rows {rows})",
            details={"rows": rows},
        )
    return df


def normalize_registrations(table: Table, mapping: Optional[ColumnMapping] = None):
    """Return (students, courses, registrations) from rows of (student, course)."""
    mapping = mapping or ColumnMapping()
    df = as_frame(table)
    s_col, c_col = mapping.student_id_column, mapping.course_id_column
    if df.empty and not len(df.columns):
        return {}, {}, ()
    _require_columns(df, "registrations", s_col, c_col)

    regs = pd.DataFrame({"student_id": _clean(df[s_col]), "course_id": _clean(df[c_col])})
    regs = _reject_partial_rows(regs, "registrations", ["student_id", "course_id"])
    before = len(regs)
    regs = regs.drop_duplicates().sort_values(["course_id", "student_id"], kind="mergesort")
    if len(regs) < before:
        logger.info("Dropped %d duplicate registration row(s)", before - len(regs))

    courses = {
        cid: Course(id=cid, students=tuple(group["student_id"]))
        for cid, group in regs.groupby("course_id", sort=True)
    }
    students = {
        sid: Student(id=sid, courses=tuple(sorted(group["course_id"])))
        for sid, group in regs.groupby("student_id", sort=True)
    }
    pairs = tuple(sorted(zip(regs["student_id"], regs["course_id"])))
    return students, courses, pairs


def normalize_halls(table: Table, mapping: Optional[ColumnMapping] = None) -> Tuple[Hall, ...]:
    mapping = mapping or ColumnMapping()
    df = as_frame(table)
    if df.empty and not len(df.columns):
        return ()
    h_col, cap_col, g_col = mapping.hall_id_column, mapping.capacity_column, mapping.group_column
    _require_columns(df, "halls", h_col, cap_col)

    rows = pd.DataFrame({"hall": _clean(df[h_col]), "capacity": _clean(df[cap_col])})
    rows["group"] = _clean(df[g_col]) if g_col in df.columns else ""
    rows = _reject_partial_rows(rows, "halls", ["hall", "capacity"])

    caps = pd.to_numeric(rows["capacity"], errors="coerce")
    bad = caps.isna() | (caps < 0) | (caps != caps.round())
    if bad.any():
        offenders = rows.loc[bad, "hall"].tolist()[:10]
        raise InvalidInputData(
            f"halls: capacity must be a non-negative integer (halls {offenders})",
            details={"halls": offenders},
        )

    halls: Dict[str, Hall] = {}
    for hid, cap, grp in zip(rows["hall"], caps.astype(int), rows["group"]):
        hall = Hall(id=hid, capacity=int(cap), group=grp or UNGROUPED)
        seen = halls.get(hid)
        if seen is None:
            halls[hid] = hall
        elif seen != hall:
            raise InvalidInputData(
                f"halls: hall {hid} is listed twice with different data",
                details={"hall": hid},
            )
        else:
            logger.info("Dropped duplicate row for hall %s", hid)
    return tuple(halls.values())


def normalize_allowed_slots(table: Table) -> Dict[str, Set[str]]:
    df = as_frame(table)
    if df.empty:
        return {}
    _require_columns(df, "allowed slots", "course_id", "slot_id")
    rows = pd.DataFrame({"course_id": _clean(df["course_id"]), "slot_id": _clean(df["slot_id"])})
    rows = _reject_partial_rows(rows, "allowed slots", ["course_id", "slot_id"])
    allowed: Dict[str, Set[str]] = {}
    for cid, sid in zip(rows["course_id"], rows["slot_id"]):
        allowed.setdefault(cid, set()).add(sid)
    return allowed


def normalize_inputs(registrations: Table, halls: Table,
                     mapping: Optional[ColumnMapping] = None,
                     allowed_slots: Table = None) -> NormalizedInput:
    students, courses, pairs = normalize_registrations(registrations, mapping)
    hall_list = normalize_halls(halls, mapping)

    for cid, slot_ids in sorted(normalize_allowed_slots(allowed_slots).items()):
        if cid not in courses:
            logger.warning("Allowed-slot rows for unknown course %s ignored", cid)
            continue
        courses[cid] = replace(courses[cid], allowed_slots=tuple(sorted(slot_ids)))

    logger.info("Normalized %d students, %d courses, %d halls, %d registrations",
                len(students), len(courses), len(hall_list), len(pairs))
    return NormalizedInput(students=students, courses=courses, halls=hall_list, registrations=pairs)
