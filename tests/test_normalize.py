import logging

import pandas as pd
import pytest

from examplanner.errors import InvalidInputData
from examplanner.models import UNGROUPED, Hall
from examplanner.normalize import (normalize_allowed_slots, normalize_halls, normalize_inputs,
                                   normalize_registrations)
from examplanner.params import ColumnMapping

from conftest import regs


def test_registrations_deduplicated_and_sorted():
    students, courses, pairs = normalize_registrations(
        regs(("s2", "B"), ("s1", "B"), ("s1", "A"), ("s1", "A"))
    )
    assert pairs == (("s1", "A"), ("s1", "B"), ("s2", "B"))
    assert courses["B"].students == ("s1", "s2")
    assert courses["B"].enrolled_count == 2
    assert students["s1"].courses == ("A", "B")


def test_custom_column_names_and_whitespace():
    df = pd.DataFrame({"Roll": [" 101", "102 "], "Subject": ["MATH1 ", "MATH1"]})
    mapping = ColumnMapping(student_id_column="Roll", course_id_column="Subject")
    _, courses, pairs = normalize_registrations(df, mapping)
    assert list(courses) == ["MATH1"]
    assert pairs == (("101", "MATH1"), ("102", "MATH1"))


def test_missing_column_is_reported():
    with pytest.raises(InvalidInputData) as exc:
        normalize_registrations([{"student": "s1", "course_id": "A"}])
    assert exc.value.details["missing"] == ["student_id"]


def test_blank_rows_dropped_partial_rows_rejected():
    _, courses, _ = normalize_registrations(regs(("s1", "A"), ("", "")))
    assert list(courses) == ["A"]
    with pytest.raises(InvalidInputData):
        normalize_registrations(regs(("s1", "A"), ("s2", "")))


def test_empty_table():
    assert normalize_registrations([]) == ({}, {}, ())
    assert normalize_halls(None) == ()


def test_halls_with_groups():
    halls = normalize_halls([
        {"hall": "H1", "capacity": "120", "group": "north"},
        {"hall": "H2", "capacity": 40.0, "group": ""},
        {"hall": "H1", "capacity": 120, "group": "north"},
    ])
    assert halls == (Hall("H1", 120, "north"), Hall("H2", 40, UNGROUPED))


@pytest.mark.parametrize("capacity", ["lots", "-5", "12.5"])
def test_bad_capacity(capacity):
    with pytest.raises(InvalidInputData):
        normalize_halls([{"hall": "H1", "capacity": capacity}])


def test_hall_listed_twice_with_different_capacity():
    with pytest.raises(InvalidInputData):
        normalize_halls([{"hall": "H1", "capacity": 10}, {"hall": "H1", "capacity": 20}])


def test_allowed_slots_grouped_per_course():
    allowed = normalize_allowed_slots([
        {"course_id": "A", "slot_id": "0"},
        {"course_id": "A", "slot_id": "3"},
        {"course_id": "B", "slot_id": 1},
    ])
    assert allowed == {"A": {"0", "3"}, "B": {"1"}}


def test_allowed_slots_for_unknown_course_are_ignored(caplog):
    with caplog.at_level(logging.WARNING):
        data = normalize_inputs(
            regs(("s1", "A")),
            [{"hall": "H1", "capacity": 5}],
            allowed_slots=[{"course_id": "A", "slot_id": "1"}, {"course_id": "Q", "slot_id": "0"}],
        )
    assert data.courses["A"].allowed_slots == ("1",)
    assert "Q" not in data.courses
    assert "unknown course Q" in caplog.text
