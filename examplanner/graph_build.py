from dataclasses import dataclass
from itertools import combinations
from typing import Dict, Mapping, Tuple

import networkx as nx

from .models import Course, Student


@dataclass(frozen=True)
class ConflictGraph:
    """Courses as nodes; an edge joins two courses sharing students (weight = shared count).

    The graph is frozen after construction and shared by every trial.
    """
    graph: nx.Graph
    # student_id -> their course ids, sorted
    student_courses: Dict[str, Tuple[str, ...]]

    def degree(self, course_id: str) -> int:
        return self.graph.degree(course_id)

    def neighbors(self, course_id: str) -> Mapping[str, dict]:
        return self.graph.adj[course_id]


def build_conflict_graph(students: Mapping[str, Student], courses: Mapping[str, Course]) -> ConflictGraph:
    G = nx.Graph()
    for cid in sorted(courses):
        G.add_node(cid, enrolled=courses[cid].enrolled_count)
    student_courses: Dict[str, Tuple[str, ...]] = {}
    # cost is the sum over students of (their course count)^2, not all course pairs
    for sid in sorted(students):
        own = tuple(sorted(set(students[sid].courses)))
        student_courses[sid] = own
        for u, v in combinations(own, 2):
            if G.has_edge(u, v):
                G[u][v]["weight"] += 1
            else:
                G.add_edge(u, v, weight=1)
    return ConflictGraph(graph=nx.freeze(G), student_courses=student_courses)

