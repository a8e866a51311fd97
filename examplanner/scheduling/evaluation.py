from typing import List, Mapping, Sequence, Tuple

import networkx as nx

from ..models import (Course, ScheduleResult, ScheduleRow, ScheduleStats, Slot, TrialResult,
                      ValidationReport)


def greedy_clique_lb(G: nx.Graph) -> int:
    """Size of a clique of mutually conflicting courses, grown greedily from the busiest course.

    Every course of a clique needs its own slot, so a calendar with fewer slots than this
    bound cannot be conflict-free whatever the search does. The clique is only a greedy one,
    so the true minimum may be higher.
    """
    if not G:
        return 0
    # busiest course first, ties by name
    rank = lambda u: (-G.degree(u), u)
    clique = [min(G.nodes(), key=rank)]
    # candidates stay adjacent to every course already in the clique
    candidates = set(G.adj[clique[0]])
    while candidates:
        nxt = min(candidates, key=rank)
        clique.append(nxt)
        candidates &= set(G.adj[nxt])
    return len(clique)


def _notes(course: Course, halls: Tuple[str, ...], missing: int) -> str:
    notes = []
    if missing > 0:
        notes.append(f"capacity shortfall: {missing} seat(s) missing")
    elif len(halls) > 1:
        notes.append(f"split across {len(halls)} halls")
    if course.enrolled_count == 0:
        notes.append("no students enrolled")
    if course.allowed_slots is not None:
        notes.append(f"restricted to {len(course.allowed_slots)} slot(s)")
    return "; ".join(notes)


def build_rows(best: TrialResult, courses: Mapping[str, Course], slots: Sequence[Slot]) -> Tuple[ScheduleRow, ...]:
    """Timetable rows for every placed course, ordered by slot then course id."""
    rows: List[ScheduleRow] = []
    for cid, index in sorted(best.slot_of.items(), key=lambda item: (item[1], item[0])):
        slot = slots[index]
        halls = best.halls_of.get(cid, ())
        rows.append(ScheduleRow(
            course_id=cid,
            slot_id=slot.id,
            slot_datetime=slot.start.isoformat(),
            halls=";".join(halls),
            enrolled_count=courses[cid].enrolled_count,
            notes=_notes(courses[cid], halls, best.shortfall_of.get(cid, 0)),
        ))
    return tuple(rows)


def assemble(rows: Tuple[ScheduleRow, ...], report: ValidationReport, best: TrialResult,
             seed: int, attempts: int, elapsed_ms: float, cancelled: bool = False,
             slots_available: int = 0, clique_lower_bound: int = 0,
             conflict_pairs: int = 0) -> ScheduleResult:
    stats = ScheduleStats(
        seed=seed,
        total_time_ms=elapsed_ms,
        attempts=attempts,
        best_penalty=best.penalty.total,
        slots_used=len({r.slot_id for r in rows}),
        # no trial runs when there is nothing to schedule
        best_trial=best.trial if attempts else None,
        cancelled=cancelled,
        slots_available=slots_available,
        clique_lower_bound=clique_lower_bound,
        conflict_pairs=conflict_pairs,
    )
    return ScheduleResult(success=True, schedule=rows, report=report, stats=stats, cancelled=cancelled)


def summary(result: ScheduleResult) -> str:
    if not result.success:
        return f"Scheduling failed: {result.error}\n"
    report, stats = result.report, result.stats
    courses = len(result.schedule) + len(report.unassigned)
    warning = ""
    if stats.slots_available < stats.clique_lower_bound:
        warning = (
            f"Warning: slots={stats.slots_available} < clique LB={stats.clique_lower_bound}; "
            f"zero-conflict timetable is impossible.\n"
        )
    return (
        f"Courses: {courses}  Conflict pairs: {stats.conflict_pairs}\n"
        f"Slots available: {stats.slots_available}  Used: {stats.slots_used}\n"
        f"Clique lower bound: {stats.clique_lower_bound}\n"
        f"Seed: {stats.seed}  Attempts: {stats.attempts}  Best penalty: {stats.best_penalty:g}"
        f"{'  (cancelled)' if stats.cancelled else ''}\n"
        f"Valid: {report.valid}  Conflicts: {report.conflicts}  Unassigned: {len(report.unassigned)}  "
        f"Capacity warnings: {len(report.capacity_warnings)}  Gap violations: {len(report.gap_violations)}\n"
        f"{warning}"
    )
