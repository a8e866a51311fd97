import random

from ..scheduling.penalty import course_costs, placement_cost
from .construct import Placement


def improve_by_swaps(state: Placement, rng: random.Random, iterations: int) -> int:
    """Greedy slot swaps between pairs of placed courses; returns the number accepted.

    The first course of each pair is drawn from courses that currently carry a cost
    (refreshed every round), the second from all placed courses. A swap is kept only
    when it strictly lowers conflict, gap and shortfall penalty together.
    """
    ctx = state.ctx
    placed = sorted(state.slot_of)
    if len(placed) < 2 or iterations <= 0:
        return 0
    shortfall_weight = ctx.weights.capacity_shortfall
    accepted = 0
    round_len = len(placed)
    hot = []
    for it in range(iterations):
        if it % round_len == 0:
            costs = course_costs(ctx, state.slot_of)
            hot = [c for c in placed if costs[c] > 0]
            if not hot:
                break
        a = rng.choice(hot)
        b = rng.choice(placed)
        sa, sb = state.slot_of[a], state.slot_of[b]
        if sa == sb or sb not in ctx.candidates[a] or sa not in ctx.candidates[b]:
            continue
        delta = (placement_cost(ctx, a, sb, state.slot_of, exclude=b)
                 + placement_cost(ctx, b, sa, state.slot_of, exclude=a)
                 - placement_cost(ctx, a, sa, state.slot_of, exclude=b)
                 - placement_cost(ctx, b, sb, state.slot_of, exclude=a))
        if delta >= 0:
            continue
        packing_b = state.try_pack(sa, add=b, remove=a)
        packing_a = state.try_pack(sb, add=a, remove=b)
        extra = (len(packing_a.shortfall_of) + len(packing_b.shortfall_of)
                 - len(state.packing[sa].shortfall_of) - len(state.packing[sb].shortfall_of))
        if delta + shortfall_weight * extra < 0:
            state.swap(a, b, packing_a, packing_b)
            accepted += 1
    return accepted
