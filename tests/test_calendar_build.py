import logging
from datetime import date, datetime, timezone

import pytest

from examplanner.calendar_build import build_slots, parse_hhmm, resolve_timezone
from examplanner.errors import InvalidDateRange, InvalidScheduleParams, InvalidSlotConfig


def test_holiday_in_middle_of_window():
    slots = build_slots("2025-01-06", "2025-01-10", 2, 180, holidays=["2025-01-08"])

    assert len(slots) == 8
    assert [s.id for s in slots] == [str(i) for i in range(8)]
    assert date(2025, 1, 8) not in {s.start.date() for s in slots}
    # day indices count emitted days only
    assert [s.day_index for s in slots] == [0, 0, 1, 1, 2, 2, 3, 3]


def test_even_spacing_inside_day_window():
    slots = build_slots("2025-01-06", "2025-01-06", 2, 180)
    assert [s.start.strftime("%H:%M") for s in slots] == ["09:00", "13:00"]
    assert all(s.start.tzinfo is not None for s in slots)
    assert slots[0].end == datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def test_spacing_never_overlaps_long_slots():
    slots = build_slots("2025-01-06", "2025-01-06", 3, 240)
    assert [s.start.strftime("%H:%M") for s in slots] == ["09:00", "13:00", "17:00"]


def test_explicit_slot_times_win():
    slots = build_slots("2025-01-06", "2025-01-07", 2, 120, slot_times=["08:30", "14:00"])
    assert [s.start.strftime("%d %H:%M") for s in slots] == ["06 08:30", "06 14:00", "07 08:30", "07 14:00"]
    assert [s.index_in_day for s in slots] == [0, 1, 0, 1]


def test_weekends_only_skipped_on_request():
    # Friday to Monday
    assert len(build_slots("2025-01-10", "2025-01-13", 1, 60)) == 4
    kept = build_slots("2025-01-10", "2025-01-13", 1, 60, exclude_weekends=True)
    assert [s.start.date() for s in kept] == [date(2025, 1, 10), date(2025, 1, 13)]


def test_identical_parameters_give_identical_slots():
    a = build_slots("2025-03-01", "2025-03-09", 3, 90, holidays=[date(2025, 3, 4)])
    b = build_slots("2025-03-01", "2025-03-09", 3, 90, holidays=["2025-03-04"])
    assert a == b


def test_end_before_start():
    with pytest.raises(InvalidDateRange) as exc:
        build_slots("2025-01-10", "2025-01-06", 2, 180)
    assert isinstance(exc.value, InvalidScheduleParams)
    assert exc.value.details == {"start": "2025-01-10", "end": "2025-01-06"}


@pytest.mark.parametrize("spd, duration", [(0, 180), (-1, 180), (2, 0)])
def test_non_positive_slot_config(spd, duration):
    with pytest.raises(InvalidSlotConfig):
        build_slots("2025-01-06", "2025-01-07", spd, duration)


def test_slot_time_count_must_match():
    with pytest.raises(InvalidSlotConfig):
        build_slots("2025-01-06", "2025-01-07", 3, 60, slot_times=["09:00", "13:00"])


def test_bad_time_string():
    with pytest.raises(InvalidSlotConfig):
        parse_hhmm("9 o'clock")


def test_unknown_timezone_falls_back_to_utc(caplog):
    with caplog.at_level(logging.WARNING):
        assert resolve_timezone("Not/AZone") is timezone.utc
    assert "falling back to UTC" in caplog.text
    slots = build_slots("2025-01-06", "2025-01-06", 1, 60, tz="Not/AZone")
    assert slots[0].start.utcoffset().total_seconds() == 0
