import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Sequence, Tuple

from ..graph_build import ConflictGraph
from ..models import Course, Hall, Slot
from ..params import PenaltyWeights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchContext:
    """Read-only state shared by every trial of one request."""
    course_ids: Tuple[str, ...]
    enrolled: Dict[str, int]
    degree: Dict[str, int]
    # course -> ((neighbor, shared students), ...), neighbors sorted
    neighbors: Dict[str, Tuple[Tuple[str, int], ...]]
    # course -> slot indices it may use, ascending
    candidates: Dict[str, Tuple[int, ...]]
    slots: Tuple[Slot, ...]
    slot_day: Tuple[int, ...]
    # slot index -> other slot indices closer than the minimum gap
    too_close: Tuple[FrozenSet[int], ...]
    halls: Tuple[Hall, ...]
    total_capacity: int
    balance_target: float
    mean_hall_capacity: float
    weights: PenaltyWeights
    min_gap: int = 0


def _gap_table(slots: Sequence[Slot], min_gap: int, gap_scope: str) -> Tuple[FrozenSet[int], ...]:
    if min_gap <= 0:
        return tuple(frozenset() for _ in slots)
    minutes = [s.epoch_minutes for s in slots]
    table = []
    for i, a in enumerate(slots):
        close = set()
        for j, b in enumerate(slots):
            if i == j:
                continue
            if gap_scope == "day" and a.day_index != b.day_index:
                continue
            if abs(minutes[i] - minutes[j]) < min_gap:
                close.add(j)
        table.append(frozenset(close))
    return tuple(table)


def build_context(courses: Mapping[str, Course], halls: Sequence[Hall], slots: Sequence[Slot],
                  graph: ConflictGraph, weights: PenaltyWeights = None, min_gap: int = 0,
                  gap_scope: str = "absolute") -> SearchContext:
    weights = weights or PenaltyWeights()
    course_ids = tuple(sorted(courses))
    slot_index = {s.id: i for i, s in enumerate(slots)}

    candidates: Dict[str, Tuple[int, ...]] = {}
    for cid in course_ids:
        allowed = courses[cid].allowed_slots
        if allowed is None:
            candidates[cid] = tuple(range(len(slots)))
            continue
        unknown = [sid for sid in allowed if sid not in slot_index]
        if unknown:
            logger.warning("Course %s: allowed slot(s) %s are not in the calendar", cid, ", ".join(unknown))
        candidates[cid] = tuple(sorted(slot_index[sid] for sid in allowed if sid in slot_index))

    neighbors = {
        cid: tuple(sorted((v, data["weight"]) for v, data in graph.neighbors(cid).items()))
        for cid in course_ids
    }
    enrolled = {cid: courses[cid].enrolled_count for cid in course_ids}
    total_capacity = sum(h.capacity for h in halls)
    return SearchContext(
        course_ids=course_ids,
        enrolled=enrolled,
        degree={cid: graph.degree(cid) for cid in course_ids},
        neighbors=neighbors,
        candidates=candidates,
        slots=tuple(slots),
        slot_day=tuple(s.day_index for s in slots),
        too_close=_gap_table(slots, min_gap, gap_scope),
        halls=tuple(halls),
        total_capacity=total_capacity,
        balance_target=math.ceil(sum(enrolled.values()) / len(slots)) if slots else 0.0,
        mean_hall_capacity=(total_capacity / len(halls)) if halls and total_capacity else 1.0,
        weights=weights,
        min_gap=min_gap,
    )
