from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import Hall


@dataclass(frozen=True)
class Space:
    """A hall and the seats still free in it for the current slot."""
    hall: Hall
    free: int


@dataclass(frozen=True)
class SlotPacking:
    """Halls and seats chosen for every course of one slot."""
    halls_of: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    # course -> ((hall_id, seats), ...)
    seats_of: Dict[str, Tuple[Tuple[str, int], ...]] = field(default_factory=dict)
    # course -> seats that could not be provided
    shortfall_of: Dict[str, int] = field(default_factory=dict)
    free: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.shortfall_of


def _by_free_capacity(spaces: Iterable[Space]) -> List[Space]:
    # stable: equal free seats keep inventory order
    return sorted((s for s in spaces if s.free > 0), key=lambda s: -s.free)


def _best_single(need: int, spaces: Sequence[Space]) -> Optional[Space]:
    fits = [s for s in spaces if s.free >= need]
    return min(fits, key=lambda s: s.free) if fits else None


def _cover(need: int, spaces: Sequence[Space]) -> Optional[Tuple[Space, ...]]:
    """Fewest halls (largest first) whose free seats sum to ``need``; the last one is a best fit."""
    pool = list(spaces)
    chosen: List[Space] = []
    remaining = need
    while remaining > 0 and pool:
        last = _best_single(remaining, pool)
        if last is not None:
            chosen.append(last)
            return tuple(chosen)
        biggest = pool.pop(0)
        chosen.append(biggest)
        remaining -= biggest.free
    return tuple(chosen) if remaining <= 0 else None


def fit_course(need: int, spaces: Sequence[Space]) -> Optional[Tuple[Space, ...]]:
    """Pick halls for one course out of ``spaces`` (sorted by descending free seats).

    A single hall is preferred, then the smallest covering set inside one hall group,
    then a covering set that mixes groups. Returns None when nothing covers ``need``.
    """
    if need <= 0:
        return ()
    single = _best_single(need, spaces)
    if single is not None:
        return (single,)

    groups: Dict[str, List[Space]] = {}
    for s in spaces:
        groups.setdefault(s.hall.group, []).append(s)
    best = None
    for name in sorted(groups):
        combo = _cover(need, groups[name])
        if combo is None:
            continue
        key = (len(combo), sum(s.free for s in combo) - need, name)
        if best is None or key < best[0]:
            best = (key, combo)
    if best is not None:
        return best[1]
    if len(groups) > 1:
        return _cover(need, spaces)
    return None


def _take(need: int, combo: Sequence[Space]) -> Tuple[Tuple[str, int], ...]:
    """Seats drawn from each hall of ``combo``: earlier halls are filled, the last tops up."""
    taken = []
    remaining = need
    for s in combo:
        seats = min(s.free, remaining)
        taken.append((s.hall.id, seats))
        remaining -= seats
    return tuple(taken)


def pack_slot(demands: Iterable[Tuple[str, int]], halls: Sequence[Hall]) -> SlotPacking:
    """Seat each (course, enrolled) demand of one slot in the halls' free capacity.

    Courses are packed largest first; several courses may share a hall while seats remain.
    A course that no combination of free seats can hold takes every remaining seat and is
    recorded as a shortfall instead of being over-filled.
    """
    free: Dict[str, int] = {h.id: h.capacity for h in halls}
    halls_of: Dict[str, Tuple[str, ...]] = {}
    seats_of: Dict[str, Tuple[Tuple[str, int], ...]] = {}
    shortfall_of: Dict[str, int] = {}
    for course, need in sorted(demands, key=lambda d: (-d[1], d[0])):
        spaces = _by_free_capacity(Space(h, free[h.id]) for h in halls)
        combo = fit_course(need, spaces)
        if combo is None:
            combo = tuple(spaces)
            shortfall_of[course] = need - sum(s.free for s in combo)
        taken = _take(need, combo)
        for hid, seats in taken:
            free[hid] -= seats
        seats_of[course] = taken
        halls_of[course] = tuple(hid for hid, _ in taken)
    return SlotPacking(halls_of=halls_of, seats_of=seats_of, shortfall_of=shortfall_of, free=free)


def assign_rooms(slot_of: Mapping[str, int], enrolled: Mapping[str, int],
                 halls: Sequence[Hall]) -> Dict[int, SlotPacking]:
    """Pack every used slot of an assignment."""
    by_slot: Dict[int, List[str]] = {}
    for course, slot in slot_of.items():
        by_slot.setdefault(slot, []).append(course)
    return {
        slot: pack_slot([(c, enrolled[c]) for c in sorted(courses)], halls)
        for slot, courses in sorted(by_slot.items())
    }
