from datetime import date

import pytest
from pointage.leaves import LeaveRequestFacts, LeaveStatus
from pointage.schedules import DEFAULT_SCHEDULE, WorkSchedule
from pointage.timesheets import (CSV_BOM, CSV_HEADER, DayStatus, ExportRow,
                                 TeamMember, TimeEntryFacts, build_grid,
                                 export_csv, export_filename, month_view,
                                 occupation_rate, team_view, week_view)

EASTER_MONDAY = "2025-04-21"
HOLIDAYS = {EASTER_MONDAY}


def _entry(id, day, hours, task_id=10, employee_id=1, validated=False):
    return TimeEntryFacts(
        id=id,
        employee_id=employee_id,
        task_id=task_id,
        day=day,
        hours=hours,
        is_validated=validated,
    )


ENTRIES = [
    _entry(1, date(2025, 4, 22), 5.0, task_id=10),
    _entry(2, date(2025, 4, 22), 3.0, task_id=11),
    _entry(3, date(2025, 4, 23), 1.0, task_id=11),
    _entry(4, date(2025, 4, 24), 4.0, task_id=10),
    _entry(5, date(2025, 4, 26), 2.0, task_id=10),
    # other employee, ignored
    _entry(6, date(2025, 4, 22), 8.0, employee_id=2),
]

LEAVES = [
    LeaveRequestFacts(
        id=1,
        employee_id=1,
        leave_type_id=1,
        start_date=date(2025, 4, 23),
        end_date=date(2025, 4, 23),
        status=LeaveStatus.APPROVED,
        days=1,
        label="RTT",
    ),
    # pending leave does not count on the grid
    LeaveRequestFacts(
        id=2,
        employee_id=1,
        leave_type_id=1,
        start_date=date(2025, 4, 25),
        end_date=date(2025, 4, 25),
        status=LeaveStatus.PENDING,
        days=1,
    ),
]


@pytest.fixture
def week():
    return week_view(
        1,
        date(2025, 4, 24),
        entries=ENTRIES,
        schedule=DEFAULT_SCHEDULE,
        holidays=HOLIDAYS,
        leaves=LEAVES,
    )


def test_week_view_starts_on_monday(week):
    assert week.start == date(2025, 4, 21)
    assert week.end == date(2025, 4, 27)
    assert len(week.days) == 7


def test_week_view_day_statuses(week):
    assert [cell.status for cell in week.days] == [
        DayStatus.HOLIDAY,
        DayStatus.FULL,
        DayStatus.LEAVE,
        DayStatus.PARTIAL,
        DayStatus.MISSING,
        DayStatus.WEEKEND,
        DayStatus.WEEKEND,
    ]


def test_week_view_expected_is_zero_off_days(week):
    assert [cell.expected for cell in week.days] == [0.0, 8.0, 0.0, 8.0, 8.0, 0.0, 0.0]
    assert week.days[0].template_hours == 8.0


def test_week_view_leave_cell(week):
    leave_cell = week.days[2]
    assert leave_cell.is_leave
    assert leave_cell.leave_label == "RTT"
    assert leave_cell.conflict
    assert not week.days[4].is_leave


def test_week_view_totals(week):
    assert week.total_logged == 15.0
    assert week.total_expected == 24.0
    assert week.leave_days == 1
    assert week.occupation_rate == 63


def test_week_view_task_rows(week):
    rows = {row.task_id: row for row in week.task_rows}
    assert rows[10].hours == (0.0, 5.0, 0.0, 4.0, 0.0, 2.0, 0.0)
    assert rows[10].total == 11.0
    assert rows[11].total == 4.0
    assert week.days[1].entry_ids == (1, 2)


def test_weekend_status_wins_over_logged_hours(week):
    saturday = week.days[5]
    assert saturday.logged == 2.0
    assert saturday.status == DayStatus.WEEKEND


def test_holiday_status_wins_over_leave():
    leave = LeaveRequestFacts(
        id=1,
        employee_id=1,
        leave_type_id=1,
        start_date=date(2025, 4, 21),
        end_date=date(2025, 4, 22),
        status=LeaveStatus.APPROVED,
        days=1,
    )
    grid = build_grid(
        1,
        date(2025, 4, 21),
        date(2025, 4, 22),
        entries=[],
        schedule=DEFAULT_SCHEDULE,
        holidays=HOLIDAYS,
        leaves=[leave],
    )
    assert grid.days[0].status == DayStatus.HOLIDAY
    assert grid.days[1].status == DayStatus.LEAVE
    assert grid.days[1].leave_label == "Congé"


def test_zero_template_day_without_hours_is_missing():
    part_time = WorkSchedule(contract_type="temps_partiel", monday_hours=7.0, weekly_hours=7.0)
    grid = build_grid(
        1,
        date(2025, 3, 4),
        date(2025, 3, 4),
        entries=[_entry(1, date(2025, 3, 4), 2.0)],
        schedule=part_time,
    )
    assert grid.days[0].expected == 0.0
    assert grid.days[0].status == DayStatus.PARTIAL
    assert grid.occupation_rate is None


@pytest.mark.parametrize(
    "logged, expected, rate",
    [(0, 0, None), (5, 0, None), (0, 40, 0), (40, 40, 100), (20, 40, 50), (44, 40, 110)],
)
def test_occupation_rate(logged, expected, rate):
    assert occupation_rate(logged, expected) == rate


def test_month_view_week_summaries():
    month = month_view(
        1,
        2025,
        3,
        entries=[_entry(1, date(2025, 3, 3), 8.0), _entry(2, date(2025, 3, 31), 4.0)],
        schedule=DEFAULT_SCHEDULE,
    )
    assert month.month_key == "2025-03"
    assert len(month.grid.days) == 31
    assert [s.week_start for s in month.week_summaries] == [
        date(2025, 2, 24),
        date(2025, 3, 3),
        date(2025, 3, 10),
        date(2025, 3, 17),
        date(2025, 3, 24),
        date(2025, 3, 31),
    ]
    first, second, *_, last = month.week_summaries
    assert first.expected == 0.0 and first.occupation_rate is None
    assert second.logged == 8.0 and second.expected == 40.0
    assert second.iso_week == 10
    # Only March days count towards the last week
    assert last.expected == 8.0 and last.occupation_rate == 50
    assert month.grid.total_expected == 168.0


def test_team_view():
    members = [
        TeamMember(employee_id=1, contract_type="cdi", display_name="Alice Martin"),
        TeamMember(employee_id=2, contract_type="stage", display_name="Bob Durand"),
    ]
    entries = [
        _entry(1, date(2025, 4, 22), 8.0, validated=True),
        _entry(2, date(2025, 4, 24), 4.0),
        _entry(3, date(2025, 4, 22), 7.0, employee_id=2),
        # outside the week
        _entry(4, date(2025, 4, 28), 7.0, employee_id=2),
    ]
    team = team_view(
        date(2025, 4, 23),
        members,
        entries=entries,
        schedules={"cdi": DEFAULT_SCHEDULE},
        holidays=HOLIDAYS,
        leaves=LEAVES,
    )
    assert team.week_start == date(2025, 4, 21)
    alice, bob = team.rows
    assert alice.total_logged == 12.0
    assert alice.total_expected == 24.0
    assert alice.validated_count == 1
    assert alice.pending_entry_ids == (2,)
    assert alice.occupation_rate == 50

    assert bob.total_expected is None
    assert bob.occupation_rate is None
    assert bob.pending_count == 1
    assert bob.pending_entry_ids == (3,)

    assert team.team_logged == 19.0
    assert team.team_expected == 24.0


def test_export_csv():
    rows = [
        ExportRow(
            day=date(2025, 3, 3),
            employee_name="Alice Martin ",
            task_reference="T-001",
            project_title="Projet; A",
            hours=7.5,
            comment="ligne 1\nligne 2",
            is_validated=True,
        ),
        ExportRow(
            day=date(2025, 3, 4),
            employee_name="Alice Martin",
            task_reference="T-002",
            project_title="",
            hours=2,
        ),
    ]
    content = export_csv(rows)
    assert content.startswith(CSV_BOM)
    lines = content[len(CSV_BOM):].split("\n")
    assert lines == [
        CSV_HEADER,
        "2025-03-03;Alice Martin;T-001;Projet, A;7.50;ligne 1 ligne 2;Oui",
        "2025-03-04;Alice Martin;T-002;;2.00;;Non",
    ]


def test_export_csv_empty_has_header():
    assert export_csv([]) == CSV_BOM + CSV_HEADER


def test_export_filename():
    assert export_filename(date(2025, 3, 1), date(2025, 3, 31)) == "pointage_2025-03-01_2025-03-31.csv"
