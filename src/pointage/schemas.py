from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from .leaves import LeaveStatus
from .production import TaskStatus
from .timesheets import DayStatus


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class CellSaveIn(BaseModel):
    employee_id: int
    task_id: int
    date: date
    hours: float = Field(ge=0, le=24)


class TimeEntryUpdateIn(BaseModel):
    hours: float = Field(ge=0, le=24)
    comment: str | None = None


class BulkValidateIn(BaseModel):
    ids: list[int] = Field(min_length=1, max_length=500)


class LeaveCreateIn(BaseModel):
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    reason: str | None = None


class LeaveDecisionIn(BaseModel):
    approver_id: int
    comment: str | None = None


class LeaveCancelIn(BaseModel):
    employee_id: int


class TaskStatusIn(BaseModel):
    status: TaskStatus
    changed_by: int | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

class DayCellOut(BaseModel):
    date: date
    day_of_week: int
    logged: float
    expected: float
    status: DayStatus
    is_weekend: bool
    is_holiday: bool
    is_leave: bool
    leave_label: str | None = None
    conflict: bool = False
    entry_ids: list[int] = []


class TaskRowOut(BaseModel):
    task_id: int
    hours: list[float]
    total: float


class WeekSummaryOut(BaseModel):
    week_start: date
    iso_week: int
    logged: float
    expected: float
    occupation_rate: int | None


class WeeklyTimesheetOut(BaseModel):
    employee_id: int
    week_start: date
    week_end: date
    days: list[DayCellOut]
    task_rows: list[TaskRowOut]
    weekly_total: float
    weekly_expected: float
    leave_days: int
    occupation_rate: int | None


class MonthlyTimesheetOut(BaseModel):
    employee_id: int
    month: str
    days: list[DayCellOut]
    week_summaries: list[WeekSummaryOut]
    monthly_total: float
    monthly_expected: float
    occupation_rate: int | None


class TeamRowOut(BaseModel):
    employee_id: int
    display_name: str
    total_hours: float
    expected_hours: float | None
    occupation_rate: int | None
    validated_count: int
    pending_count: int
    pending_entry_ids: list[int]


class TeamTimesheetOut(BaseModel):
    week_start: date
    week_end: date
    subordinates: list[TeamRowOut]
    team_total: float
    team_expected: float


class TimeEntryOut(BaseModel):
    id: int
    employee_id: int
    task_id: int
    date: date
    hours: float
    comment: str | None = None
    is_validated: bool


class CellSaveOut(BaseModel):
    action: str
    entry: TimeEntryOut | None = None


class BulkValidateOut(BaseModel):
    validated: int
    validated_ids: list[int]
    skipped_ids: list[int]


class LeaveOut(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    days: int
    status: LeaveStatus


class LeaveBalanceOut(BaseModel):
    employee_id: int
    leave_type_id: int
    year: int
    allowance: float | None
    remaining: float | None


class TaskMetricsOut(BaseModel):
    task_id: int
    total_hours: float
    rendement: float | None
    rendement_display: str
    delai_rl: int | None


class TaskStatusOut(BaseModel):
    task_id: int
    status: TaskStatus
