import io
import json
import os
from dataclasses import asdict
from typing import IO, Iterable, Sequence, Tuple, Union

import pandas as pd

from .errors import InvalidInputData
from .models import ScheduleResult, ScheduleRow
from .normalize import as_frame

TextOrPath = Union[str, os.PathLike, IO]

SCHEDULE_COLUMNS = ["course_id", "slot_id", "slot_datetime", "halls", "enrolled_count", "notes"]


def _open_text(src: TextOrPath):
    """Return a text-mode file handle and a flag indicating whether to close it.

    Accepts a filesystem path, a text IO object, or a BytesIO buffer.
    Ensures CSV readers get strings, not bytes.
    """
    if isinstance(src, (str, os.PathLike)):
        f = open(src, 'r', newline='', encoding='utf-8')
        return f, True
    if isinstance(src, io.BytesIO):
        src.seek(0)
        f = io.TextIOWrapper(src, encoding='utf-8', newline='')
        return f, True
    if hasattr(src, 'read'):
        if hasattr(src, 'seek'):
            src.seek(0)
        return src, False
    raise TypeError("Unsupported input type; expected path or file-like object")


def load_table(src: TextOrPath) -> pd.DataFrame:
    """Read a CSV table as strings. Lines whose first cell starts with '#' are comments."""
    f, should_close = _open_text(src)
    try:
        df = pd.read_csv(f, dtype=str, keep_default_na=False, skipinitialspace=True,
                         skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    finally:
        if should_close:
            f.close()
    df.columns = [str(c).strip() for c in df.columns]
    if len(df.columns) and len(df):
        first = df[df.columns[0]].astype(str).str.lstrip()
        df = df[~first.str.startswith('#')].reset_index(drop=True)
    return df


def rows_from_table(table: Union[Sequence[ScheduleRow], pd.DataFrame, Iterable, None]) -> Tuple[ScheduleRow, ...]:
    if table is None:
        return ()
    if not isinstance(table, pd.DataFrame):
        table = list(table)
        if all(isinstance(r, ScheduleRow) for r in table):
            return tuple(table)
    df = as_frame(table)
    if df.empty:
        return ()
    missing = [c for c in SCHEDULE_COLUMNS[:5] if c not in df.columns]
    if missing:
        raise InvalidInputData(f"schedule: missing required column(s): {', '.join(missing)}",
                               details={"missing": missing})
    rows = []
    for rec in df.to_dict(orient="records"):
        cell = {k: "" if pd.isna(v) else str(v).strip() for k, v in rec.items()}
        count = cell["enrolled_count"] or "0"
        try:
            enrolled = int(float(count))
        except ValueError:
            raise InvalidInputData(f"schedule: course {cell['course_id']} has a non-numeric "
                                   f"enrolled_count {count!r}")
        rows.append(ScheduleRow(
            course_id=cell["course_id"],
            slot_id=cell["slot_id"],
            slot_datetime=cell["slot_datetime"],
            halls=cell["halls"],
            enrolled_count=enrolled,
            notes=cell.get("notes", ""),
        ))
    return tuple(rows)


def schedule_to_frame(rows: Iterable[ScheduleRow]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in rows], columns=SCHEDULE_COLUMNS)


def save_schedule_csv(path: TextOrPath, rows: Iterable[ScheduleRow]):
    schedule_to_frame(rows).to_csv(path, index=False)


def load_schedule_csv(src: TextOrPath) -> Tuple[ScheduleRow, ...]:
    return rows_from_table(load_table(src))


def save_result_json(path: str, result: ScheduleResult):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2)
