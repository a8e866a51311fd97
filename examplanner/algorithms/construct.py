import random
from typing import Dict, List, Optional

from ..scheduling.context import SearchContext
from ..scheduling.penalty import balance_cost, placement_cost
from ..scheduling.room_assignment import SlotPacking, pack_slot


class Placement:
    """Trial-local course -> slot state with per-slot membership and packings."""

    def __init__(self, ctx: SearchContext):
        self.ctx = ctx
        self.slot_of: Dict[str, int] = {}
        self.members: List[List[str]] = [[] for _ in ctx.slots]
        self.load: List[int] = [0] * len(ctx.slots)
        self.packing: List[SlotPacking] = [SlotPacking() for _ in ctx.slots]
        self.unassigned: List[str] = []

    def try_pack(self, slot: int, add: Optional[str] = None, remove: Optional[str] = None) -> SlotPacking:
        enrolled = self.ctx.enrolled
        courses = [c for c in self.members[slot] if c != remove]
        if add is not None:
            courses.append(add)
        return pack_slot([(c, enrolled[c]) for c in courses], self.ctx.halls)

    def fits(self, slot: int, course: str) -> Optional[SlotPacking]:
        """Packing of ``slot`` with ``course`` added, or None if it creates a new shortfall."""
        need = self.ctx.enrolled[course]
        if need > 0 and self.load[slot] + need > self.ctx.total_capacity:
            return None
        packing = self.try_pack(slot, add=course)
        if len(packing.shortfall_of) > len(self.packing[slot].shortfall_of):
            return None
        return packing

    def place(self, course: str, slot: int, packing: SlotPacking):
        self.slot_of[course] = slot
        self.members[slot].append(course)
        self.load[slot] += self.ctx.enrolled[course]
        self.packing[slot] = packing

    def swap(self, a: str, b: str, packing_a: SlotPacking, packing_b: SlotPacking):
        """Exchange the slots of ``a`` and ``b``; packings are for a's and b's new slots."""
        sa, sb = self.slot_of[a], self.slot_of[b]
        enrolled = self.ctx.enrolled
        self.members[sa].remove(a)
        self.members[sb].remove(b)
        self.members[sa].append(b)
        self.members[sb].append(a)
        self.load[sa] += enrolled[b] - enrolled[a]
        self.load[sb] += enrolled[a] - enrolled[b]
        self.slot_of[a], self.slot_of[b] = sb, sa
        self.packing[sb], self.packing[sa] = packing_a, packing_b


def order_courses(ctx: SearchContext, rng: random.Random, jitter: float) -> List[str]:
    """Most-constrained first: conflict degree with random noise, then enrolment, then chance."""
    keyed = []
    for c in ctx.course_ids:
        noisy_degree = ctx.degree[c] * (1.0 + jitter * rng.random())
        keyed.append((-noisy_degree, -ctx.enrolled[c], rng.random(), c))
    keyed.sort()
    return [k[-1] for k in keyed]


def construct(ctx: SearchContext, rng: random.Random, jitter: float = 0.35) -> Placement:
    state = Placement(ctx)
    shortfall_weight = ctx.weights.capacity_shortfall
    for course in order_courses(ctx, rng, jitter):
        need = ctx.enrolled[course]
        scored = sorted(
            (placement_cost(ctx, course, s, state.slot_of)
             + balance_cost(ctx, state.load[s], need), s)
            for s in ctx.candidates[course]
        )
        placed = False
        for _, slot in scored:
            packing = state.fits(slot, course)
            if packing is not None:
                state.place(course, slot, packing)
                placed = True
                break
        if placed:
            continue
        if scored and need > ctx.total_capacity:
            # no slot can ever seat it: best-effort placement carrying a shortfall
            options = []
            for cost, slot in scored:
                packing = state.try_pack(slot, add=course)
                extra = len(packing.shortfall_of) - len(state.packing[slot].shortfall_of)
                options.append((cost + shortfall_weight * extra, slot, packing))
            _, slot, packing = min(options, key=lambda o: (o[0], o[1]))
            state.place(course, slot, packing)
        else:
            state.unassigned.append(course)
    return state
