import io
import json

import networkx as nx
import pytest

import main
from examplanner.engine import run_schedule
from examplanner.errors import InvalidInputData
from examplanner.io_utils import load_schedule_csv, load_table, rows_from_table, save_schedule_csv
from examplanner.models import ScheduleRow
from examplanner.scheduling.evaluation import greedy_clique_lb, summary

REGISTRATIONS = """student_id,course_id
# first cohort
s1,MATH101
s1,PHYS101
s2,MATH101
s3,CHEM101

"""

HALLS = """hall,capacity,group
Main,2,north
Side,2,north
"""


def test_load_table_skips_comments_and_blank_lines():
    df = load_table(io.StringIO(REGISTRATIONS))
    assert list(df.columns) == ["student_id", "course_id"]
    assert df["student_id"].tolist() == ["s1", "s1", "s2", "s3"]


def test_load_table_from_bytes():
    df = load_table(io.BytesIO(HALLS.encode("utf-8")))
    assert df.to_dict(orient="records")[0] == {"hall": "Main", "capacity": "2", "group": "north"}


def test_schedule_csv_keeps_ids_as_text(tmp_path):
    rows = (
        ScheduleRow("007", "0", "2025-01-06T09:00:00+00:00", "Main;Side", 3, "split across 2 halls"),
        ScheduleRow("CHEM101", "1", "2025-01-06T13:00:00+00:00", "", 0, ""),
    )
    path = tmp_path / "schedule.csv"
    save_schedule_csv(path, rows)
    assert path.read_text().splitlines()[0] == "course_id,slot_id,slot_datetime,halls,enrolled_count,notes"
    assert load_schedule_csv(path) == rows


def test_schedule_table_needs_core_columns():
    with pytest.raises(InvalidInputData):
        rows_from_table([{"course_id": "A", "slot_id": "0"}])


def test_clique_bound():
    G = nx.Graph([("A", "B"), ("B", "C"), ("A", "C"), ("C", "D")])
    assert greedy_clique_lb(G) == 3
    assert greedy_clique_lb(nx.Graph()) == 0


def test_summary_warns_when_calendar_is_below_clique_bound():
    registrations = [{"student_id": "s1", "course_id": c} for c in ("A", "B", "C")]
    params = {"exam_start_date": "2025-01-06", "exam_end_date": "2025-01-06", "slots_per_day": 1,
              "tries": 2, "seed": 4}
    result = run_schedule(registrations, [{"hall": "H1", "capacity": 5}], params)

    assert result.stats.clique_lower_bound == 3
    assert result.stats.slots_available == 1
    text = summary(result)
    assert "Courses: 3  Conflict pairs: 3" in text
    assert "Warning: slots=1 < clique LB=3; zero-conflict timetable is impossible." in text


def test_cli_run_then_verify(tmp_path, capsys):
    regs_path = tmp_path / "regs.csv"
    halls_path = tmp_path / "halls.csv"
    regs_path.write_text(REGISTRATIONS)
    halls_path.write_text(HALLS)
    out_schedule = tmp_path / "out.csv"
    out_report = tmp_path / "report.json"

    code = main.main([
        "run", "--registrations", str(regs_path), "--halls", str(halls_path),
        "--start", "2025-01-06", "--end", "2025-01-07", "--slots-per-day", "2",
        "--seed", "3", "--tries", "5",
        "--out-schedule", str(out_schedule), "--out-report", str(out_report),
    ])
    assert code == 0
    printed = capsys.readouterr().out
    assert "Valid: True" in printed
    assert "Slots available: 4  Used:" in printed
    assert "Clique lower bound: 2" in printed
    report = json.loads(out_report.read_text())
    assert report["success"] is True
    assert report["stats"]["seed"] == 3
    assert report["stats"]["bestTrial"] == 0
    assert report["stats"]["conflictPairs"] == 1
    assert report["stats"]["cliqueLowerBound"] == 2
    assert {r["course_id"] for r in report["schedule"]} == {"MATH101", "PHYS101", "CHEM101"}

    code = main.main(["verify", "--registrations", str(regs_path), "--schedule", str(out_schedule),
                      "--halls", str(halls_path)])
    assert code == 0
    assert json.loads(capsys.readouterr().out)["valid"] is True


def test_cli_failure_exit_code(tmp_path, capsys):
    regs_path = tmp_path / "regs.csv"
    halls_path = tmp_path / "halls.csv"
    regs_path.write_text(REGISTRATIONS)
    halls_path.write_text(HALLS)
    code = main.main([
        "run", "--registrations", str(regs_path), "--halls", str(halls_path),
        "--start", "2025-01-07", "--end", "2025-01-06", "--out-schedule", str(tmp_path / "out.csv"),
    ])
    assert code == 2
    assert "precedes start date" in capsys.readouterr().err


def test_cli_version(capsys):
    assert main.main(["--version"]) == 0
    assert json.loads(capsys.readouterr().out)["name"] == "exam-planner"
