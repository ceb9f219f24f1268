from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Mapping, Sequence

from .business_calendar import (
    HolidaySet,
    is_holiday,
    is_weekend,
    iter_days,
    month_bounds,
    monday_of,
    normalize_holidays,
)
from .errors import UnresolvedError
from .leaves import LeaveRequestFacts, LeaveStatus
from .schedules import WorkSchedule, resolve_schedule


class DayStatus(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    MISSING = "missing"
    LEAVE = "leave"
    HOLIDAY = "holiday"
    WEEKEND = "weekend"


@dataclass(frozen=True)
class TimeEntryFacts:
    id: int
    employee_id: int
    task_id: int
    day: date
    hours: float
    is_validated: bool = False
    comment: str | None = None


@dataclass(frozen=True)
class DayCell:
    day: date
    logged: float
    expected: float
    template_hours: float
    status: DayStatus
    is_weekend: bool
    is_holiday: bool
    is_leave: bool
    leave_label: str | None = None
    entry_ids: tuple[int, ...] = ()

    @property
    def conflict(self) -> bool:
        """Hours were logged on a day the employee is on approved leave."""
        return self.is_leave and self.logged > 0


@dataclass(frozen=True)
class TaskRow:
    task_id: int
    hours: tuple[float, ...]
    total: float


@dataclass(frozen=True)
class TimesheetGrid:
    employee_id: int
    start: date
    end: date
    days: tuple[DayCell, ...]
    task_rows: tuple[TaskRow, ...] = ()

    @property
    def total_logged(self) -> float:
        return sum(cell.logged for cell in self.days)

    @property
    def total_expected(self) -> float:
        return sum(cell.expected for cell in self.days)

    @property
    def leave_days(self) -> int:
        return sum(1 for cell in self.days if cell.is_leave)

    @property
    def occupation_rate(self) -> int | None:
        return occupation_rate(self.total_logged, self.total_expected)


@dataclass(frozen=True)
class WeekSummary:
    week_start: date
    iso_week: int
    logged: float
    expected: float

    @property
    def occupation_rate(self) -> int | None:
        return occupation_rate(self.logged, self.expected)


@dataclass(frozen=True)
class MonthTimesheet:
    year: int
    month: int
    grid: TimesheetGrid
    week_summaries: tuple[WeekSummary, ...]

    @property
    def month_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class TeamMember:
    employee_id: int
    contract_type: str | None
    display_name: str = ""


@dataclass(frozen=True)
class TeamRow:
    employee_id: int
    display_name: str
    total_logged: float
    total_expected: float | None
    validated_count: int
    pending_count: int
    pending_entry_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def occupation_rate(self) -> int | None:
        if self.total_expected is None:
            return None
        return occupation_rate(self.total_logged, self.total_expected)


@dataclass(frozen=True)
class TeamTimesheet:
    week_start: date
    week_end: date
    rows: tuple[TeamRow, ...]

    @property
    def team_logged(self) -> float:
        return sum(row.total_logged for row in self.rows)

    @property
    def team_expected(self) -> float:
        return sum(row.total_expected for row in self.rows if row.total_expected is not None)


def occupation_rate(logged: float, expected: float) -> int | None:
    """
    round(100 * logged / expected), half up.
    None when nothing is expected: 0% would read as "no capacity used".
    """
    if expected <= 0:
        return None
    return int(math.floor(100.0 * logged / expected + 0.5))


def _leave_days_map(
    employee_id: int,
    start: date,
    end: date,
    leaves: Iterable[LeaveRequestFacts],
) -> dict[date, str]:
    covered: dict[date, str] = {}
    for leave in leaves:
        if leave.employee_id != employee_id or leave.status != LeaveStatus.APPROVED:
            continue
        first = max(leave.start_date, start)
        last = min(leave.end_date, end)
        for day in iter_days(first, last):
            covered[day] = leave.label or "Congé"
    return covered


def _day_status(
    *,
    weekend: bool,
    holiday: bool,
    on_leave: bool,
    logged: float,
    expected: float,
) -> DayStatus:
    if weekend:
        return DayStatus.WEEKEND
    if holiday:
        return DayStatus.HOLIDAY
    if on_leave:
        return DayStatus.LEAVE
    if expected > 0 and logged >= expected:
        return DayStatus.FULL
    if logged > 0:
        return DayStatus.PARTIAL
    return DayStatus.MISSING


def build_grid(
    employee_id: int,
    start: date,
    end: date,
    *,
    entries: Iterable[TimeEntryFacts],
    schedule: WorkSchedule,
    holidays: HolidaySet | None = None,
    leaves: Iterable[LeaveRequestFacts] = (),
    by_task: bool = False,
) -> TimesheetGrid:
    """
    Day-by-day grid of logged vs expected hours for one employee.

    Expected hours come from the schedule template, zeroed on weekends,
    holidays and approved leave days. Several entries for the same
    (task, day) are summed.
    """
    holiday_set = normalize_holidays(holidays)
    days = list(iter_days(start, end))
    index = {day: i for i, day in enumerate(days)}

    logged_by_day: dict[date, float] = defaultdict(float)
    ids_by_day: dict[date, list[int]] = defaultdict(list)
    task_hours: dict[int, list[float]] = {}

    for entry in entries:
        if entry.employee_id != employee_id or entry.day not in index:
            continue
        logged_by_day[entry.day] += float(entry.hours)
        ids_by_day[entry.day].append(entry.id)
        if by_task:
            row = task_hours.setdefault(entry.task_id, [0.0] * len(days))
            row[index[entry.day]] += float(entry.hours)

    leave_map = _leave_days_map(employee_id, start, end, leaves)

    cells = []
    for day in days:
        weekend = is_weekend(day)
        holiday = is_holiday(day, holiday_set)
        on_leave = day in leave_map
        template = schedule.hours_for(day)
        expected = 0.0 if (weekend or holiday or on_leave) else template
        logged = logged_by_day.get(day, 0.0)
        cells.append(
            DayCell(
                day=day,
                logged=logged,
                expected=expected,
                template_hours=template,
                status=_day_status(
                    weekend=weekend,
                    holiday=holiday,
                    on_leave=on_leave,
                    logged=logged,
                    expected=expected,
                ),
                is_weekend=weekend,
                is_holiday=holiday,
                is_leave=on_leave,
                leave_label=leave_map.get(day),
                entry_ids=tuple(ids_by_day.get(day, ())),
            )
        )

    rows = tuple(
        TaskRow(task_id=task_id, hours=tuple(hours), total=sum(hours))
        for task_id, hours in task_hours.items()
    )
    return TimesheetGrid(
        employee_id=employee_id,
        start=start,
        end=end,
        days=tuple(cells),
        task_rows=rows,
    )


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def week_view(
    employee_id: int,
    any_day: date,
    *,
    entries: Iterable[TimeEntryFacts],
    schedule: WorkSchedule,
    holidays: HolidaySet | None = None,
    leaves: Iterable[LeaveRequestFacts] = (),
) -> TimesheetGrid:
    week_start = monday_of(any_day)
    return build_grid(
        employee_id,
        week_start,
        week_start + timedelta(days=6),
        entries=entries,
        schedule=schedule,
        holidays=holidays,
        leaves=leaves,
        by_task=True,
    )


def month_view(
    employee_id: int,
    year: int,
    month: int,
    *,
    entries: Iterable[TimeEntryFacts],
    schedule: WorkSchedule,
    holidays: HolidaySet | None = None,
    leaves: Iterable[LeaveRequestFacts] = (),
) -> MonthTimesheet:
    start, end = month_bounds(year, month)
    grid = build_grid(
        employee_id,
        start,
        end,
        entries=entries,
        schedule=schedule,
        holidays=holidays,
        leaves=leaves,
    )

    summaries = []
    week_start = monday_of(start)
    while week_start <= end:
        week_end = week_start + timedelta(days=6)
        week_cells = [cell for cell in grid.days if week_start <= cell.day <= week_end]
        summaries.append(
            WeekSummary(
                week_start=week_start,
                iso_week=week_start.isocalendar()[1],
                logged=sum(cell.logged for cell in week_cells),
                expected=sum(cell.expected for cell in week_cells),
            )
        )
        week_start += timedelta(days=7)

    return MonthTimesheet(year=year, month=month, grid=grid, week_summaries=tuple(summaries))


def team_view(
    week_start: date,
    members: Sequence[TeamMember],
    *,
    entries: Iterable[TimeEntryFacts],
    schedules: Mapping[str, WorkSchedule],
    holidays: HolidaySet | None = None,
    leaves: Iterable[LeaveRequestFacts] = (),
) -> TeamTimesheet:
    week_start = monday_of(week_start)
    week_end = week_start + timedelta(days=6)
    holiday_set = normalize_holidays(holidays)
    entries = [e for e in entries if week_start <= e.day <= week_end]
    leaves = list(leaves)

    rows = []
    for member in members:
        own = [e for e in entries if e.employee_id == member.employee_id]
        pending = [e.id for e in own if not e.is_validated]

        try:
            schedule = resolve_schedule(member.contract_type, schedules)
        except UnresolvedError:
            total_expected = None
        else:
            grid = build_grid(
                member.employee_id,
                week_start,
                week_end,
                entries=own,
                schedule=schedule,
                holidays=holiday_set,
                leaves=leaves,
            )
            total_expected = grid.total_expected

        rows.append(
            TeamRow(
                employee_id=member.employee_id,
                display_name=member.display_name,
                total_logged=sum(float(e.hours) for e in own),
                total_expected=total_expected,
                validated_count=len(own) - len(pending),
                pending_count=len(pending),
                pending_entry_ids=tuple(pending),
            )
        )

    return TeamTimesheet(week_start=week_start, week_end=week_end, rows=tuple(rows))


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

CSV_BOM = "\ufeff"
CSV_HEADER = "Date;Employé;Réf Tâche;Projet;Heures;Commentaire;Validé"


@dataclass(frozen=True)
class ExportRow:
    day: date
    employee_name: str
    task_reference: str
    project_title: str
    hours: float
    comment: str | None = None
    is_validated: bool = False


def _clean_cell(value: str | None) -> str:
    return (value or "").replace(";", ",").replace("\n", " ")


def export_csv(rows: Iterable[ExportRow]) -> str:
    """
    Excel-friendly export: ';' separated, UTF-8 BOM, one line per entry.
    """
    lines = [CSV_HEADER]
    for row in rows:
        lines.append(
            ";".join(
                [
                    row.day.isoformat(),
                    _clean_cell(row.employee_name.strip()),
                    _clean_cell(row.task_reference),
                    _clean_cell(row.project_title),
                    f"{float(row.hours):.2f}",
                    _clean_cell(row.comment),
                    "Oui" if row.is_validated else "Non",
                ]
            )
        )
    return CSV_BOM + "\n".join(lines)


def export_filename(start: date, end: date) -> str:
    return f"pointage_{start.isoformat()}_{end.isoformat()}.csv"
