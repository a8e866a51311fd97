import logging
import random
import secrets
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Iterator, Optional

from ..algorithms.construct import construct
from ..algorithms.local_search import improve_by_swaps
from ..errors import InvalidScheduleParams
from ..models import TrialResult
from .context import SearchContext
from .penalty import score
from .room_assignment import assign_rooms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchParams:
    tries: int = 100
    seed: int = 0
    workers: int = 1
    early_exit: bool = True
    iterations_per_course: int = 25
    jitter: float = 0.35


@dataclass(frozen=True)
class SearchOutcome:
    best: Optional[TrialResult]
    seed: int
    attempts: int
    cancelled: bool = False


def fresh_seed() -> int:
    return secrets.randbits(63) or 1


def trial_rng(seed: int, trial: int) -> random.Random:
    """Independent stream per (seed, trial); string seeds hash deterministically."""
    return random.Random(f"examplanner:{seed}:{trial}")


def run_trial(ctx: SearchContext, seed: int, trial: int,
              iterations_per_course: int = 25, jitter: float = 0.35) -> TrialResult:
    """One construction + local refinement attempt; a pure function of its arguments."""
    rng = trial_rng(seed, trial)
    state = construct(ctx, rng, jitter)
    improve_by_swaps(state, rng, iterations_per_course * len(state.slot_of))

    halls_of, shortfall_of = {}, {}
    for packing in assign_rooms(state.slot_of, ctx.enrolled, ctx.halls).values():
        halls_of.update(packing.halls_of)
        shortfall_of.update(packing.shortfall_of)
    unassigned = tuple(sorted(state.unassigned))
    return TrialResult(
        trial=trial,
        seed=seed,
        slot_of=dict(sorted(state.slot_of.items())),
        halls_of=halls_of,
        shortfall_of=shortfall_of,
        unassigned=unassigned,
        penalty=score(ctx, state.slot_of, shortfall_of, unassigned),
    )


def check_search_inputs(ctx: SearchContext, tries: int):
    if tries <= 0:
        raise InvalidScheduleParams(f"tries must be positive, got {tries}")
    if ctx.course_ids and not ctx.halls:
        raise InvalidScheduleParams("registrations are present but no halls were supplied")
    if ctx.course_ids and not ctx.slots:
        raise InvalidScheduleParams("registrations are present but the calendar has no slots")


# process-pool workers receive the shared context once, at start-up
_worker_ctx: Optional[SearchContext] = None


def _init_worker(ctx: SearchContext):
    global _worker_ctx
    _worker_ctx = ctx


def _pool_trial(seed: int, trial: int, iterations_per_course: int, jitter: float) -> TrialResult:
    return run_trial(_worker_ctx, seed, trial, iterations_per_course, jitter)


def _serial_trials(ctx: SearchContext, params: SearchParams, seed: int) -> Iterator[TrialResult]:
    for trial in range(params.tries):
        yield run_trial(ctx, seed, trial, params.iterations_per_course, params.jitter)


def search(ctx: SearchContext, params: SearchParams, cancel=None) -> SearchOutcome:
    """Run up to ``params.tries`` independent trials and keep the lowest-penalty one.

    Ties go to the earliest trial index. ``cancel`` is any object with ``is_set()``
    (e.g. ``threading.Event``); it is checked between trials only, so a cancelled search
    still reports a complete trial. Trial results are consumed in index order in both
    the serial and the process-pool path, which keeps early exit and cancellation
    independent of worker timing.
    """
    check_search_inputs(ctx, params.tries)
    seed = params.seed if params.seed != 0 else fresh_seed()
    if not ctx.course_ids:
        return SearchOutcome(best=TrialResult(trial=0, seed=seed), seed=seed, attempts=0)

    best: Optional[TrialResult] = None
    attempts = 0
    cancelled = False

    def fold(results: Iterator[TrialResult]) -> bool:
        """Reduce trial results in index order; True when stopped before the last trial."""
        nonlocal best, attempts, cancelled
        for result in results:
            attempts += 1
            logger.debug("Trial %d: penalty %.1f", result.trial, result.penalty.total)
            if result.beats(best):
                best = result
            if params.early_exit and best.penalty.total == 0 and best.penalty.feasible:
                logger.info("Trial %d is fully feasible; stopping early", best.trial)
                return True
            if cancel is not None and cancel.is_set() and attempts < params.tries:
                logger.info("Search cancelled after %d trial(s)", attempts)
                cancelled = True
                return True
        return False

    if cancel is not None and cancel.is_set():
        logger.info("Search cancelled before the first trial")
        return SearchOutcome(best=None, seed=seed, attempts=0, cancelled=True)

    if params.workers <= 1 or params.tries == 1:
        fold(_serial_trials(ctx, params, seed))
    else:
        with ProcessPoolExecutor(max_workers=params.workers, initializer=_init_worker,
                                 initargs=(ctx,)) as pool:
            futures = [
                pool.submit(_pool_trial, seed, t, params.iterations_per_course, params.jitter)
                for t in range(params.tries)
            ]
            stopped = fold(f.result() for f in futures)
            if stopped:
                for f in futures:
                    f.cancel()

    if best is not None:
        logger.info("Best trial %d of %d: penalty %.1f (%d unassigned)",
                    best.trial, attempts, best.penalty.total, best.penalty.unassigned)
    return SearchOutcome(best=best, seed=seed, attempts=attempts, cancelled=cancelled)
