from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

UNGROUPED = "ungrouped"


@dataclass(frozen=True)
class Student:
    id: str
    courses: Tuple[str, ...] = ()  # sorted course ids


@dataclass(frozen=True)
class Course:
    id: str
    students: Tuple[str, ...] = ()  # sorted, distinct
    allowed_slots: Optional[Tuple[str, ...]] = None  # None -> unrestricted

    @property
    def enrolled_count(self) -> int:
        return len(self.students)


@dataclass(frozen=True)
class Hall:
    id: str
    capacity: int
    group: str = UNGROUPED


@dataclass(frozen=True)
class Slot:
    id: str
    index: int
    start: datetime  # timezone-aware
    duration_min: int
    day_index: int
    index_in_day: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_min)

    @property
    def epoch_minutes(self) -> float:
        return self.start.timestamp() / 60.0


@dataclass(frozen=True)
class ScheduleRow:
    """One line of the output timetable."""
    course_id: str
    slot_id: str
    slot_datetime: str  # ISO-8601 with offset
    halls: str  # semicolon-joined hall ids
    enrolled_count: int
    notes: str = ""

    @property
    def hall_ids(self) -> List[str]:
        return [h for h in self.halls.split(";") if h]


@dataclass(frozen=True)
class PenaltyBreakdown:
    conflicts: int = 0
    gap_violations: int = 0
    same_day: int = 0
    capacity_shortfalls: int = 0
    unassigned: int = 0
    total: float = 0.0

    @property
    def feasible(self) -> bool:
        return self.conflicts == 0 and self.capacity_shortfalls == 0 and self.unassigned == 0


@dataclass
class TrialResult:
    trial: int
    seed: int
    # course_id -> slot index; courses absent here are unassigned
    slot_of: Dict[str, int] = field(default_factory=dict)
    # course_id -> hall ids, from the final per-slot packing
    halls_of: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    shortfall_of: Dict[str, int] = field(default_factory=dict)  # course_id -> seats missing
    unassigned: Tuple[str, ...] = ()
    penalty: PenaltyBreakdown = field(default_factory=PenaltyBreakdown)

    def beats(self, other: Optional["TrialResult"]) -> bool:
        """Strictly better penalty, or equal penalty and an earlier trial index."""
        if other is None:
            return True
        return (self.penalty.total, self.trial) < (other.penalty.total, other.trial)


@dataclass(frozen=True)
class ValidationReport:
    valid: bool = True
    conflicts: int = 0
    unassigned: Tuple[str, ...] = ()
    capacity_warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    student_clashes: Tuple[str, ...] = ()
    gap_violations: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "conflicts": self.conflicts,
            "unassigned": list(self.unassigned),
            "capacityWarnings": list(self.capacity_warnings),
            "errors": list(self.errors),
            "studentClashes": list(self.student_clashes),
            "gapViolations": list(self.gap_violations),
        }


@dataclass(frozen=True)
class ScheduleStats:
    seed: int = 0
    total_time_ms: float = 0.0
    attempts: int = 0
    best_penalty: float = 0.0
    slots_used: int = 0
    best_trial: Optional[int] = None
    cancelled: bool = False
    slots_available: int = 0
    clique_lower_bound: int = 0
    conflict_pairs: int = 0

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "totalTime": self.total_time_ms,
            "attempts": self.attempts,
            "bestPenalty": self.best_penalty,
            "slotsUsed": self.slots_used,
            "bestTrial": self.best_trial,
            "cancelled": self.cancelled,
            "slotsAvailable": self.slots_available,
            "cliqueLowerBound": self.clique_lower_bound,
            "conflictPairs": self.conflict_pairs,
        }


@dataclass(frozen=True)
class ScheduleResult:
    success: bool
    schedule: Tuple[ScheduleRow, ...] = ()
    report: Optional[ValidationReport] = None
    stats: Optional[ScheduleStats] = None
    error: Optional[str] = None
    cancelled: bool = False

    def to_dict(self) -> dict:
        out = {"success": self.success}
        if self.success:
            out["schedule"] = [asdict(r) for r in self.schedule]
        else:
            out["error"] = self.error
        if self.report is not None:
            out["report"] = self.report.to_dict()
        if self.stats is not None:
            out["stats"] = self.stats.to_dict()
        out["cancelled"] = self.cancelled
        return out
