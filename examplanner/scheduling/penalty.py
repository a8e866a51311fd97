from typing import Dict, Iterable, Mapping, Optional

from ..models import PenaltyBreakdown
from .context import SearchContext


def placement_cost(ctx: SearchContext, course: str, slot: int, slot_of: Mapping[str, int],
                   exclude: Optional[str] = None) -> float:
    """Penalty contributed by ``course`` sitting in ``slot`` against its placed neighbors.

    Every shared student counts once per offending pair: a same-slot pair is a direct
    conflict, a pair closer than the minimum gap is a gap violation, and a pair on the same
    calendar day pays the (usually zero) same-day weight.
    """
    w = ctx.weights
    close = ctx.too_close[slot]
    day = ctx.slot_day[slot]
    cost = 0.0
    for other, shared in ctx.neighbors[course]:
        if other == exclude:
            continue
        s = slot_of.get(other)
        if s is None:
            continue
        if s == slot:
            cost += w.conflict * shared
            continue
        if s in close:
            cost += w.min_gap * shared
        if w.same_day and ctx.slot_day[s] == day:
            cost += w.same_day * shared
    return cost


def balance_cost(ctx: SearchContext, load: int, extra: int) -> float:
    """Soft cost of raising a slot's seat load from ``load`` to ``load + extra``.

    Only the part above the per-slot balance target counts, in units of an average hall.
    """
    if not ctx.weights.balance or extra <= 0:
        return 0.0
    before = max(0, load - ctx.balance_target)
    after = max(0, load + extra - ctx.balance_target)
    return ctx.weights.balance * (after - before) / ctx.mean_hall_capacity


def score(ctx: SearchContext, slot_of: Mapping[str, int], shortfall_of: Mapping[str, int],
          unassigned: Iterable[str]) -> PenaltyBreakdown:
    """Total penalty of a complete trial assignment."""
    w = ctx.weights
    conflicts = gaps = same_day = 0
    for course, slot in slot_of.items():
        close = ctx.too_close[slot]
        day = ctx.slot_day[slot]
        for other, shared in ctx.neighbors[course]:
            # each unordered pair once
            if other <= course:
                continue
            s = slot_of.get(other)
            if s is None:
                continue
            if s == slot:
                conflicts += shared
                continue
            if s in close:
                gaps += shared
            if ctx.slot_day[s] == day:
                same_day += shared
    shortfalls = sum(1 for missing in shortfall_of.values() if missing > 0)
    n_unassigned = len(list(unassigned))
    total = (w.conflict * conflicts + w.min_gap * gaps + w.same_day * same_day
             + w.capacity_shortfall * shortfalls + w.unassigned * n_unassigned)
    return PenaltyBreakdown(
        conflicts=conflicts,
        gap_violations=gaps,
        same_day=same_day,
        capacity_shortfalls=shortfalls,
        unassigned=n_unassigned,
        total=total,
    )


def course_costs(ctx: SearchContext, slot_of: Mapping[str, int]) -> Dict[str, float]:
    return {c: placement_cost(ctx, c, s, slot_of) for c, s in slot_of.items()}
