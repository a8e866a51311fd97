from collections import defaultdict
from datetime import datetime
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx

from ..models import Hall, ScheduleRow, ValidationReport


def _parse_start(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _minutes_apart(a: datetime, b: datetime) -> float:
    if (a.tzinfo is None) != (b.tzinfo is None):
        a, b = a.replace(tzinfo=None), b.replace(tzinfo=None)
    return abs((a - b).total_seconds()) / 60.0


def _capacity_warnings(scheduled: Dict[str, ScheduleRow], students_of: Dict[str, Set[str]],
                       capacity: Dict[str, int]) -> List[str]:
    """Seat checks per course, then per group of courses sharing halls within a slot."""
    warnings: List[str] = []
    by_slot: Dict[str, nx.Graph] = defaultdict(nx.Graph)
    for cid, row in sorted(scheduled.items()):
        enrolled = len(students_of.get(cid, ()))
        if row.enrolled_count != enrolled:
            warnings.append(
                f"course {cid} lists {row.enrolled_count} enrolled but registrations give {enrolled}"
            )
        G = by_slot[row.slot_id]
        G.add_node(("course", cid), need=enrolled)
        seats = 0
        for hid in row.hall_ids:
            if hid not in capacity:
                warnings.append(f"course {cid} is assigned to unknown hall {hid}")
                continue
            seats += capacity[hid]
            G.add_edge(("course", cid), ("hall", hid))
        if seats < enrolled:
            warnings.append(
                f"slot {row.slot_id}: course {cid} has {enrolled} enrolled but only {seats} "
                f"seats in halls [{row.halls}]"
            )

    # courses sharing halls in one slot must fit into those halls together
    for slot_id, G in sorted(by_slot.items()):
        for component in sorted(nx.connected_components(G), key=lambda c: sorted(c)):
            cids = sorted(name for kind, name in component if kind == "course")
            hids = sorted(name for kind, name in component if kind == "hall")
            if len(cids) < 2:
                continue
            need = sum(G.nodes[("course", c)]["need"] for c in cids)
            seats = sum(capacity[h] for h in hids)
            if need > seats:
                warnings.append(
                    f"slot {slot_id}: halls [{';'.join(hids)}] seat {seats} but courses "
                    f"{', '.join(cids)} need {need}"
                )
    return warnings


def validate_schedule(registrations: Iterable[Tuple[str, str]], schedule: Iterable[ScheduleRow],
                      halls: Optional[Sequence[Hall]] = None, min_gap: int = 0,
                      gap_scope: str = "absolute") -> ValidationReport:
    """Re-check a schedule against (student_id, course_id) registrations from scratch.

    Nothing produced by the search is trusted: enrolment, clashes, capacity and coverage are
    all derived again, so schedules from outside the engine can be checked the same way.
    Capacity is only checked when ``halls`` is given; gap checks only when ``min_gap`` > 0.
    """
    students_of: Dict[str, Set[str]] = defaultdict(set)
    courses_of: Dict[str, Set[str]] = defaultdict(set)
    for sid, cid in registrations:
        students_of[cid].add(sid)
        courses_of[sid].add(cid)

    errors: List[str] = []
    warnings: List[str] = []
    row_of: Dict[str, ScheduleRow] = {}
    seen: Dict[str, int] = defaultdict(int)
    for row in schedule:
        seen[row.course_id] += 1
        if row.course_id not in row_of:
            row_of[row.course_id] = row
    for cid, count in sorted(seen.items()):
        if count > 1:
            errors.append(f"course {cid} appears {count} times in the schedule")
    scheduled = {cid: row for cid, row in row_of.items() if row.slot_id}

    starts: Dict[str, datetime] = {}
    if min_gap > 0:
        for cid, row in sorted(scheduled.items()):
            start = _parse_start(row.slot_datetime)
            if start is None:
                errors.append(f"course {cid} has an unreadable slot time {row.slot_datetime!r}")
            else:
                starts[cid] = start

    conflicts = 0
    clashes: List[str] = []
    gap_violations: List[str] = []
    for sid in sorted(courses_of):
        mine = sorted(c for c in courses_of[sid] if c in scheduled)
        for a, b in combinations(mine, 2):
            slot_a, slot_b = scheduled[a].slot_id, scheduled[b].slot_id
            if slot_a == slot_b:
                conflicts += 1
                clashes.append(f"student {sid} has {a} and {b} in the same slot {slot_a}")
                continue
            if a in starts and b in starts:
                if gap_scope == "day" and starts[a].date() != starts[b].date():
                    continue
                apart = _minutes_apart(starts[a], starts[b])
                if apart < min_gap:
                    gap_violations.append(
                        f"student {sid} has {a} (slot {slot_a}) and {b} (slot {slot_b}) "
                        f"{apart:g} min apart, minimum is {min_gap}"
                    )

    if halls is not None:
        warnings.extend(_capacity_warnings(scheduled, students_of, {h.id: h.capacity for h in halls}))

    unassigned = tuple(sorted(cid for cid in students_of if cid not in scheduled))
    return ValidationReport(
        valid=conflicts == 0 and not unassigned and not errors,
        conflicts=conflicts,
        unassigned=unassigned,
        capacity_warnings=tuple(warnings),
        errors=tuple(errors),
        student_clashes=tuple(clashes),
        gap_violations=tuple(gap_violations),
    )
