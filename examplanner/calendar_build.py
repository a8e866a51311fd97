import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidDateRange, InvalidSlotConfig
from .models import Slot

logger = logging.getLogger(__name__)

DateLike = Union[date, str]


def resolve_timezone(name: Optional[str]):
    """IANA zone for ``name``; unknown or blank names fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return timezone.utc


def _as_date(value: DateLike, what: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidSlotConfig(f"invalid {what}: {value!r} (expected YYYY-MM-DD)")


def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(str(value).strip(), "%H:%M").time()
    except ValueError:
        raise InvalidSlotConfig(f"invalid slot time {value!r} (expected HH:MM)")


def _day_offsets(slots_per_day: int, duration_min: int, slot_times: Sequence[str],
                 day_start: str, day_end: str) -> List[timedelta]:
    """Offsets from midnight for each slot of a day."""
    if slot_times:
        return [timedelta(hours=t.hour, minutes=t.minute) for t in map(parse_hhmm, slot_times)]
    first = parse_hhmm(day_start)
    last = parse_hhmm(day_end)
    window = (last.hour * 60 + last.minute) - (first.hour * 60 + first.minute)
    # evenly divide the day window; never let consecutive slots overlap
    step = max(float(duration_min), window / slots_per_day)
    base = timedelta(hours=first.hour, minutes=first.minute)
    return [base + timedelta(minutes=round(i * step)) for i in range(slots_per_day)]


def build_slots(start_date: DateLike, end_date: DateLike, slots_per_day: int, slot_duration: int,
                slot_times: Optional[Sequence[str]] = None, holidays: Iterable[DateLike] = (),
                tz: Optional[str] = "UTC", exclude_weekends: bool = False,
                day_start: str = "09:00", day_end: str = "17:00") -> List[Slot]:
    """Expand the exam window into an ordered list of concrete slots.

    Days run from ``start_date`` to ``end_date`` inclusive. Holidays (and weekends when
    ``exclude_weekends`` is set) produce no slots, so day indices count emitted days only.
    Each emitted day gets ``slots_per_day`` slots, started either at the explicit
    ``slot_times`` (HH:MM, one per slot) or spread evenly between ``day_start`` and ``day_end``.
    Slot ids are ``day_index * slots_per_day + index_in_day`` and depend on nothing else,
    so identical parameters always give identical slots.
    """
    start = _as_date(start_date, "start date")
    end = _as_date(end_date, "end date")
    if end < start:
        raise InvalidDateRange(start, end)
    if slots_per_day <= 0:
        raise InvalidSlotConfig(f"slots per day must be positive, got {slots_per_day}")
    if slot_duration <= 0:
        raise InvalidSlotConfig(f"slot duration must be positive, got {slot_duration}")
    slot_times = [t for t in (slot_times or []) if str(t).strip()]
    if slot_times and len(slot_times) != slots_per_day:
        raise InvalidSlotConfig(
            f"{len(slot_times)} slot time(s) given for {slots_per_day} slots per day",
            details={"slot_times": list(slot_times), "slots_per_day": slots_per_day},
        )

    zone = resolve_timezone(tz)
    skip = {_as_date(h, "holiday") for h in holidays}
    offsets = _day_offsets(slots_per_day, slot_duration, slot_times, day_start, day_end)

    slots: List[Slot] = []
    day_index = 0
    d = start
    while d <= end:
        if d in skip or (exclude_weekends and d.weekday() >= 5):
            d += timedelta(days=1)
            continue
        midnight = datetime.combine(d, time(0, 0))
        for i, offset in enumerate(offsets):
            index = day_index * slots_per_day + i
            slots.append(Slot(
                id=str(index),
                index=index,
                start=(midnight + offset).replace(tzinfo=zone),
                duration_min=slot_duration,
                day_index=day_index,
                index_in_day=i,
            ))
        day_index += 1
        d += timedelta(days=1)
    logger.debug("Built %d slots over %d exam day(s)", len(slots), day_index)
    return slots
