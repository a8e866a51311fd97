import random

import pytest

from examplanner.calendar_build import build_slots
from examplanner.graph_build import build_conflict_graph
from examplanner.models import Hall
from examplanner.normalize import normalize_registrations
from examplanner.scheduling.context import build_context


def regs(*pairs):
    """Registration rows from (student_id, course_id) pairs."""
    return [{"student_id": s, "course_id": c} for s, c in pairs]


def cohort(course, n, prefix=None):
    """``n`` distinct students all registered in ``course``."""
    prefix = prefix or f"{course}-s"
    return [(f"{prefix}{i}", course) for i in range(n)]


def make_context(pairs, halls, days=1, slots_per_day=2, min_gap=0, gap_scope="absolute", weights=None):
    students, courses, _ = normalize_registrations(regs(*pairs))
    slots = build_slots("2025-01-06", f"2025-01-{5 + days:02d}", slots_per_day, 180)
    graph = build_conflict_graph(students, courses)
    return build_context(courses, halls, slots, graph, weights, min_gap, gap_scope)


class CancelAfter:
    """Reports cancelled once ``is_set`` has been asked more than ``n`` times."""

    def __init__(self, n):
        self.n = n
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.n


@pytest.fixture
def base_params():
    return {
        "exam_start_date": "2025-01-06",
        "exam_end_date": "2025-01-06",
        "slots_per_day": 1,
        "slot_duration": 180,
        "tries": 5,
        "seed": 7,
    }


@pytest.fixture
def one_hall():
    return [{"hall": "H1", "capacity": 10}]


@pytest.fixture
def medium_instance():
    """40 students taking 3 of 12 courses each, three halls."""
    rng = random.Random(1)
    courses = [f"C{i:02d}" for i in range(12)]
    pairs = []
    for s in range(40):
        for c in rng.sample(courses, 3):
            pairs.append((f"s{s:02d}", c))
    halls = [
        {"hall": "Main", "capacity": 40, "group": "north"},
        {"hall": "Annex", "capacity": 25, "group": "north"},
        {"hall": "Lab", "capacity": 20, "group": "south"},
    ]
    return regs(*pairs), halls


@pytest.fixture
def halls_abc():
    return (Hall("H1", 100), Hall("H2", 50), Hall("H3", 30))
