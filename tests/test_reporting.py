from __future__ import annotations

import csv
import io

import pytest
from openpyxl import load_workbook

from gogocae.application.reporting import REPORT_COLUMNS
from gogocae.exporters.request_export import (
    export_requests_csv,
    export_requests_xlsx,
    requests_csv_bytes,
    requests_xlsx_bytes,
)


@pytest.fixture()
def portfolio(desk, people, submit, clock):
    """One request completed four days after intake and one still pending."""

    done = submit("Front bracket stiffness")
    desk.requests.assign(done.id, people["u1"].id, people["u1"])
    desk.requests.transition(done.id, "in_progress", people["u1"])
    clock.advance(days=4)
    desk.requests.transition(done.id, "completed", people["u1"])
    waiting = submit("Hood flutter")
    return done, waiting


def test_dashboard_counts(desk, people, portfolio):
    summary = desk.reporting.dashboard(people["u1"])
    assert summary["total"] == 2
    assert summary["pending"] == 1
    assert summary["in_progress"] == 0
    assert summary["completed"] == 1
    assert len(summary["recent"]) == 2

    assert desk.reporting.dashboard(people["other_client"])["total"] == 0


def test_dashboard_in_progress_includes_before_start(desk, people, submit):
    request = submit()
    desk.requests.assign(request.id, people["u1"].id, people["u1"])
    assert desk.reporting.dashboard(people["requester"])["in_progress"] == 1


def test_calendar_lists_intake_and_completion(desk, people, portfolio):
    done, waiting = portfolio
    events = desk.reporting.calendar(people["u1"], 2025, 3)

    assert [(item["request_id"], item["kind"], item["date"]) for item in events] == [
        (done.id, "requested", "2025-03-03"),
        (done.id, "completed", "2025-03-07"),
        (waiting.id, "requested", "2025-03-07"),
    ]
    assert desk.reporting.calendar(people["u1"], 2025, 4) == []


def test_statistics(desk, people, portfolio):
    stats = desk.reporting.statistics(people["u1"])
    assert stats["total"] == 2
    assert stats["by_status"] == {
        "pending_assignment": 1,
        "before_start": 0,
        "in_progress": 0,
        "completed": 1,
    }
    assert stats["by_vehicle"] == {"SUV-X1": 2}
    assert stats["mean_turnaround_days"] == 4.0


def test_statistics_without_completed_requests(desk, people, submit):
    submit()
    assert desk.reporting.statistics(people["u1"])["mean_turnaround_days"] is None


def test_frame_resolves_names(desk, people, portfolio):
    frame = desk.reporting.frame(people["u1"])
    assert list(frame.columns) == REPORT_COLUMNS
    row = frame.set_index("analysis_name").loc["Front bracket stiffness"]
    assert row["vehicle"] == "SUV-X1"
    assert row["requester"] == "Kim Design"
    assert row["assignee"] == "Park Analyst"
    assert row["design_files"] == 1


def test_csv_export(desk, people, portfolio, tmp_path):
    frame = desk.reporting.frame(people["u1"])

    payload = requests_csv_bytes(frame)
    assert payload.startswith(b"\xef\xbb\xbf")
    rows = list(csv.DictReader(io.StringIO(payload.decode("utf-8-sig"))))
    assert {row["analysis_name"] for row in rows} == {"Front bracket stiffness", "Hood flutter"}

    path = export_requests_csv(tmp_path / "exports" / "requests.csv", frame)
    assert path.exists()


def test_xlsx_export(desk, people, portfolio, tmp_path):
    frame = desk.reporting.frame(people["u1"])

    workbook = load_workbook(io.BytesIO(requests_xlsx_bytes(frame)))
    sheet = workbook["requests"]
    header = [cell.value for cell in next(sheet.iter_rows(max_row=1))]
    assert header == REPORT_COLUMNS
    assert sheet.max_row == 3

    path = export_requests_xlsx(tmp_path / "exports" / "requests.xlsx", frame)
    assert load_workbook(path)["requests"].max_row == 3
