"""Public entry points: ``run_schedule`` and the standalone ``validate``.

Both are synchronous, side-effect free and deterministic for identical inputs and a
non-zero seed. Structural input problems come back as a failed result value rather than
an exception.
"""
import logging
import platform
import time
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .calendar_build import build_slots
from .errors import InvalidScheduleParams, SchedulerError
from .graph_build import ConflictGraph, build_conflict_graph
from .io_utils import rows_from_table
from .models import ScheduleResult, ScheduleStats, Slot, ValidationReport
from .normalize import NormalizedInput, Table, normalize_halls, normalize_inputs, normalize_registrations
from .params import ColumnMapping, RunParams
from .scheduling.context import SearchContext, build_context
from .scheduling.evaluation import assemble, build_rows, greedy_clique_lb
from .scheduling.search import SearchParams, search
from .scheduling.validation import validate_schedule
from .settings import get_settings

logger = logging.getLogger(__name__)

PROJECT_NAME = "exam-planner"


@dataclass(frozen=True)
class Prepared:
    """Per-request read model shared by all trials."""
    data: NormalizedInput
    slots: List[Slot]
    graph: ConflictGraph
    ctx: SearchContext
    clique_lb: int = 0


def coerce_params(params: Union[RunParams, Mapping[str, Any]]) -> RunParams:
    if isinstance(params, RunParams):
        return params
    try:
        return RunParams.model_validate(params)
    except ValidationError as exc:
        raise InvalidScheduleParams(f"invalid parameters: {exc}", details={"errors": exc.errors()})


def prepare(registrations: Table, halls: Table, params: RunParams) -> Prepared:
    data = normalize_inputs(registrations, halls, params.column_mapping, params.allowed_slots)
    slots = build_slots(
        params.exam_start_date, params.exam_end_date, params.slots_per_day, params.slot_duration,
        slot_times=params.slot_times, holidays=params.holidays, tz=params.timezone,
        exclude_weekends=params.exclude_weekends, day_start=params.day_start, day_end=params.day_end,
    )
    graph = build_conflict_graph(data.students, data.courses)
    ctx = build_context(data.courses, data.halls, slots, graph, params.penalty_weights,
                        params.min_gap, params.gap_scope)
    lb = greedy_clique_lb(graph.graph)
    if len(slots) < lb:
        logger.warning("Calendar has %d slot(s) but a clique of %d conflicting courses; "
                       "a conflict-free timetable is impossible", len(slots), lb)
    logger.info("Scheduling %d courses for %d students into %d slots and %d halls",
                len(data.courses), len(data.students), len(slots), len(data.halls))
    return Prepared(data=data, slots=slots, graph=graph, ctx=ctx, clique_lb=lb)


def _failure(message: str, started: float, seed: int = 0, cancelled: bool = False) -> ScheduleResult:
    stats = ScheduleStats(seed=seed, total_time_ms=(time.perf_counter() - started) * 1000.0,
                          cancelled=cancelled)
    return ScheduleResult(success=False, error=message, stats=stats, cancelled=cancelled)


def run_schedule(registrations: Table, halls: Table, params: Union[RunParams, Mapping[str, Any]],
                 cancel=None) -> ScheduleResult:
    """Build a validated timetable from registration and hall tables.

    ``registrations`` and ``halls`` are DataFrames or iterables of row mappings whose column
    names follow ``params.column_mapping``. ``cancel`` is an optional object with
    ``is_set()`` checked between trials.
    """
    started = time.perf_counter()
    try:
        params = coerce_params(params)
        prepared = prepare(registrations, halls, params)
        settings = get_settings()
        outcome = search(prepared.ctx, SearchParams(
            tries=params.tries,
            seed=params.seed,
            workers=params.workers,
            early_exit=params.early_exit,
            iterations_per_course=settings.local_search_iterations_per_course,
            jitter=settings.ordering_jitter,
        ), cancel=cancel)
    except SchedulerError as exc:
        logger.warning("Scheduling request rejected: %s", exc.message)
        return _failure(exc.message, started)

    if outcome.best is None:
        return _failure("cancelled before any trial completed", started,
                        seed=outcome.seed, cancelled=outcome.cancelled)

    rows = build_rows(outcome.best, prepared.data.courses, prepared.slots)
    report = validate_schedule(prepared.data.registrations, rows, prepared.data.halls,
                               min_gap=params.min_gap, gap_scope=params.gap_scope)
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return assemble(rows, report, outcome.best, outcome.seed, outcome.attempts, elapsed_ms,
                    cancelled=outcome.cancelled, slots_available=len(prepared.slots),
                    clique_lower_bound=prepared.clique_lb,
                    conflict_pairs=prepared.graph.graph.number_of_edges())


def validate(registrations: Table, schedule: Union[Table, Sequence], halls: Table = None,
             min_gap: int = 0, gap_scope: str = "absolute",
             column_mapping: Optional[ColumnMapping] = None) -> ValidationReport:
    """Check any schedule, generated here or elsewhere, against the registrations.

    ``schedule`` is a sequence of ``ScheduleRow`` or a table with the columns
    ``course_id, slot_id, slot_datetime, halls, enrolled_count[, notes]``. Malformed input
    yields an invalid report carrying the problem in ``errors``.
    """
    try:
        _, _, pairs = normalize_registrations(registrations, column_mapping)
        rows = rows_from_table(schedule)
        hall_list = normalize_halls(halls, column_mapping) if halls is not None else None
    except SchedulerError as exc:
        return ValidationReport(valid=False, errors=(exc.message,))
    return validate_schedule(pairs, rows, hall_list, min_gap=min_gap, gap_scope=gap_scope)


def version_info() -> dict:
    try:
        pkg_version = version(PROJECT_NAME)
    except PackageNotFoundError:
        pkg_version = "0.0.0"
    return {"name": PROJECT_NAME, "version": pkg_version, "python": platform.python_version()}
