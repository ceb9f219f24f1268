from __future__ import annotations

import logging
from datetime import date, timedelta

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from . import crud
from .business_calendar import month_bounds, monday_of, parse_month
from .config import settings
from .db import get_db
from .errors import (
    AuthorizationError,
    EngineError,
    InvalidTransitionError,
    LockedError,
    UnresolvedError,
    ValidationError,
)
from .leaves import LeaveStatus, approve, cancel, leave_balance, refuse
from .production import display_rendement, task_metrics
from .schedules import resolve_schedule
from .schemas import (
    BulkValidateIn,
    BulkValidateOut,
    CellSaveIn,
    CellSaveOut,
    DayCellOut,
    LeaveBalanceOut,
    LeaveCancelIn,
    LeaveCreateIn,
    LeaveDecisionIn,
    LeaveOut,
    MonthlyTimesheetOut,
    TaskMetricsOut,
    TaskRowOut,
    TaskStatusIn,
    TaskStatusOut,
    TeamRowOut,
    TeamTimesheetOut,
    TimeEntryOut,
    TimeEntryUpdateIn,
    WeeklyTimesheetOut,
    WeekSummaryOut,
)
from .timesheets import (
    DayCell,
    TeamMember,
    export_csv,
    export_filename,
    month_view,
    team_view,
    week_view,
)

logger = logging.getLogger("pointage")
if not logger.handlers:
    logging.basicConfig(level=settings.log_level)

app = FastAPI(title=settings.app_name, debug=settings.debug)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

ERROR_STATUS: list[tuple[type[EngineError], int]] = [
    (AuthorizationError, 403),
    (InvalidTransitionError, 409),
    (LockedError, 423),
    (UnresolvedError, 422),
    (ValidationError, 400),
]


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 400)
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def not_found(what: str, ident: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} {ident} not found")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def day_out(cell: DayCell) -> DayCellOut:
    return DayCellOut(
        date=cell.day,
        day_of_week=cell.day.weekday(),
        logged=cell.logged,
        expected=cell.expected,
        status=cell.status,
        is_weekend=cell.is_weekend,
        is_holiday=cell.is_holiday,
        is_leave=cell.is_leave,
        leave_label=cell.leave_label,
        conflict=cell.conflict,
        entry_ids=list(cell.entry_ids),
    )


def entry_out(entry) -> TimeEntryOut:
    return TimeEntryOut(
        id=entry.id,
        employee_id=entry.employee_id,
        task_id=entry.task_id,
        date=entry.day,
        hours=entry.hours,
        comment=entry.comment,
        is_validated=entry.is_validated,
    )


def leave_out(leave) -> LeaveOut:
    return LeaveOut(
        id=leave.id,
        employee_id=leave.employee_id,
        leave_type_id=leave.leave_type_id,
        start_date=leave.start_date,
        end_date=leave.end_date,
        days=leave.days,
        status=leave.status,
    )


def _employee_inputs(db: Session, employee_id: int, start: date, end: date):
    employee = crud.get_employee(db, employee_id)
    if not employee:
        raise not_found("Employee", employee_id)

    schedule = resolve_schedule(employee.contract_type, crud.list_schedules(db))
    entries = [crud.entry_facts(e) for e in crud.list_entries(db, start, end, employee_ids=[employee_id])]
    leaves = [
        crud.leave_facts(leave)
        for leave in crud.list_leaves(
            db,
            employee_ids=[employee_id],
            start=start,
            end=end,
            statuses=[LeaveStatus.APPROVED],
        )
    ]
    holidays = crud.holiday_set(db, start, end, settings.holiday_country)
    return schedule, entries, leaves, holidays


# ---------------------------------------------------------------------------
# Timesheets
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/timesheets/weekly", response_model=WeeklyTimesheetOut)
def weekly_timesheet(employee_id: int, week_start: date, db: Session = Depends(get_db)):
    start = monday_of(week_start)
    end = start + timedelta(days=6)
    schedule, entries, leaves, holidays = _employee_inputs(db, employee_id, start, end)

    grid = week_view(
        employee_id, start, entries=entries, schedule=schedule, holidays=holidays, leaves=leaves
    )
    return WeeklyTimesheetOut(
        employee_id=employee_id,
        week_start=grid.start,
        week_end=grid.end,
        days=[day_out(cell) for cell in grid.days],
        task_rows=[
            TaskRowOut(task_id=row.task_id, hours=list(row.hours), total=row.total)
            for row in grid.task_rows
        ],
        weekly_total=grid.total_logged,
        weekly_expected=grid.total_expected,
        leave_days=grid.leave_days,
        occupation_rate=grid.occupation_rate,
    )


@app.get("/api/timesheets/monthly", response_model=MonthlyTimesheetOut)
def monthly_timesheet(employee_id: int, month: str, db: Session = Depends(get_db)):
    year, month_number = parse_month(month)
    start, end = month_bounds(year, month_number)
    schedule, entries, leaves, holidays = _employee_inputs(db, employee_id, start, end)

    view = month_view(
        employee_id,
        year,
        month_number,
        entries=entries,
        schedule=schedule,
        holidays=holidays,
        leaves=leaves,
    )
    return MonthlyTimesheetOut(
        employee_id=employee_id,
        month=view.month_key,
        days=[day_out(cell) for cell in view.grid.days],
        week_summaries=[
            WeekSummaryOut(
                week_start=ws.week_start,
                iso_week=ws.iso_week,
                logged=ws.logged,
                expected=ws.expected,
                occupation_rate=ws.occupation_rate,
            )
            for ws in view.week_summaries
        ],
        monthly_total=view.grid.total_logged,
        monthly_expected=view.grid.total_expected,
        occupation_rate=view.grid.occupation_rate,
    )


@app.get("/api/timesheets/team", response_model=TeamTimesheetOut)
def team_timesheet(week_start: date, manager_id: int | None = None, db: Session = Depends(get_db)):
    start = monday_of(week_start)
    end = start + timedelta(days=6)

    employees = crud.list_subordinates(db, manager_id)
    ids = [e.id for e in employees]
    members = [
        TeamMember(employee_id=e.id, contract_type=e.contract_type, display_name=e.display_name)
        for e in employees
    ]
    team = team_view(
        start,
        members,
        entries=[crud.entry_facts(e) for e in crud.list_entries(db, start, end, employee_ids=ids)],
        schedules=crud.list_schedules(db),
        holidays=crud.holiday_set(db, start, end, settings.holiday_country),
        leaves=[
            crud.leave_facts(leave)
            for leave in crud.list_leaves(
                db, employee_ids=ids, start=start, end=end, statuses=[LeaveStatus.APPROVED]
            )
        ],
    )
    return TeamTimesheetOut(
        week_start=team.week_start,
        week_end=team.week_end,
        subordinates=[
            TeamRowOut(
                employee_id=row.employee_id,
                display_name=row.display_name,
                total_hours=row.total_logged,
                expected_hours=row.total_expected,
                occupation_rate=row.occupation_rate,
                validated_count=row.validated_count,
                pending_count=row.pending_count,
                pending_entry_ids=list(row.pending_entry_ids),
            )
            for row in team.rows
        ],
        team_total=team.team_logged,
        team_expected=team.team_expected,
    )


@app.get("/api/timesheets/export")
def export_timesheet(
    date_from: date,
    date_to: date,
    employee_id: int | None = None,
    db: Session = Depends(get_db),
):
    rows = crud.export_rows(db, date_from, date_to, employee_id=employee_id)
    return Response(
        content=export_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(date_from, date_to)}"'
        },
    )


@app.put("/api/timesheets/cells", response_model=CellSaveOut)
def save_cell(payload: CellSaveIn, db: Session = Depends(get_db)):
    action, entry = crud.save_cell(
        db,
        employee_id=payload.employee_id,
        task_id=payload.task_id,
        day=payload.date,
        hours=payload.hours,
        daily_cap=settings.daily_hours_cap,
    )
    db.commit()
    return CellSaveOut(action=action.value, entry=entry_out(entry) if entry else None)


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------

@app.patch("/api/time-entries/{entry_id}", response_model=TimeEntryOut)
def update_time_entry(entry_id: int, payload: TimeEntryUpdateIn, db: Session = Depends(get_db)):
    entry = crud.update_entry_hours(
        db,
        entry_id,
        hours=payload.hours,
        comment=payload.comment,
        daily_cap=settings.daily_hours_cap,
    )
    if entry is None:
        raise not_found("TimeEntry", entry_id)
    db.commit()
    return entry_out(entry)


@app.delete("/api/time-entries/{entry_id}", status_code=204)
def delete_time_entry(entry_id: int, db: Session = Depends(get_db)):
    if not crud.delete_entry(db, entry_id):
        raise not_found("TimeEntry", entry_id)
    db.commit()
    return Response(status_code=204)


@app.post("/api/time-entries/bulk-validate", response_model=BulkValidateOut)
def bulk_validate_entries(payload: BulkValidateIn, db: Session = Depends(get_db)):
    result = crud.validate_entries(db, payload.ids)
    db.commit()
    return BulkValidateOut(
        validated=result.count,
        validated_ids=list(result.validated),
        skipped_ids=list(result.skipped),
    )


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------

@app.post("/api/leaves", response_model=LeaveOut, status_code=201)
def create_leave(payload: LeaveCreateIn, db: Session = Depends(get_db)):
    if not crud.get_employee(db, payload.employee_id):
        raise not_found("Employee", payload.employee_id)
    if not crud.get_leave_type(db, payload.leave_type_id):
        raise not_found("LeaveType", payload.leave_type_id)

    leave = crud.create_leave(
        db,
        employee_id=payload.employee_id,
        leave_type_id=payload.leave_type_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        country=settings.holiday_country,
        reason=payload.reason,
    )
    db.commit()
    return leave_out(leave)


def _get_leave_or_404(db: Session, leave_id: int):
    leave = crud.get_leave(db, leave_id)
    if not leave:
        raise not_found("LeaveRequest", leave_id)
    return leave


@app.post("/api/leaves/{leave_id}/approve", response_model=LeaveOut)
def approve_leave(leave_id: int, payload: LeaveDecisionIn, db: Session = Depends(get_db)):
    leave = _get_leave_or_404(db, leave_id)
    crud.decide_leave(db, leave, approve, approver_id=payload.approver_id, comment=payload.comment)
    db.commit()
    return leave_out(leave)


@app.post("/api/leaves/{leave_id}/refuse", response_model=LeaveOut)
def refuse_leave(leave_id: int, payload: LeaveDecisionIn, db: Session = Depends(get_db)):
    leave = _get_leave_or_404(db, leave_id)
    crud.decide_leave(db, leave, refuse, approver_id=payload.approver_id, comment=payload.comment)
    db.commit()
    return leave_out(leave)


@app.post("/api/leaves/{leave_id}/cancel", response_model=LeaveOut)
def cancel_leave(leave_id: int, payload: LeaveCancelIn, db: Session = Depends(get_db)):
    leave = _get_leave_or_404(db, leave_id)
    crud.decide_leave(
        db, leave, lambda facts: cancel(facts, requesting_employee_id=payload.employee_id)
    )
    db.commit()
    return leave_out(leave)


@app.get("/api/leaves/balance", response_model=LeaveBalanceOut)
def leave_balance_api(employee_id: int, leave_type_id: int, year: int, db: Session = Depends(get_db)):
    if not crud.get_employee(db, employee_id):
        raise not_found("Employee", employee_id)
    leave_type = crud.get_leave_type(db, leave_type_id)
    if not leave_type:
        raise not_found("LeaveType", leave_type_id)

    remaining = None
    if leave_type.days_per_year is not None:
        requests = [
            crud.leave_facts(leave)
            for leave in crud.list_leaves(db, employee_ids=[employee_id], statuses=[LeaveStatus.APPROVED])
        ]
        remaining = leave_balance(
            leave_type.days_per_year,
            requests,
            leave_type_id=leave_type_id,
            employee_id=employee_id,
            period=(date(year, 1, 1), date(year, 12, 31)),
        )
    return LeaveBalanceOut(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year,
        allowance=leave_type.days_per_year,
        remaining=remaining,
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@app.get("/api/tasks/{task_id}/metrics", response_model=TaskMetricsOut)
def task_metrics_api(task_id: int, db: Session = Depends(get_db)):
    task = crud.get_task(db, task_id)
    if not task:
        raise not_found("Task", task_id)

    facts = crud.task_facts(db, task)
    today = date.today()
    measured_on = facts.actual_end_date or today
    holidays = (
        crud.holiday_set(db, facts.reception_date, measured_on, settings.holiday_country)
        if facts.reception_date
        else set()
    )
    metrics = task_metrics(facts, holidays=holidays, today=today)
    return TaskMetricsOut(
        task_id=task_id,
        total_hours=metrics.total_hours,
        rendement=metrics.rendement,
        rendement_display=display_rendement(metrics.rendement),
        delai_rl=metrics.delay_rl,
    )


@app.post("/api/tasks/{task_id}/status", response_model=TaskStatusOut)
def change_task_status(task_id: int, payload: TaskStatusIn, db: Session = Depends(get_db)):
    task = crud.get_task(db, task_id)
    if not task:
        raise not_found("Task", task_id)

    crud.change_task_status(db, task, payload.status, changed_by=payload.changed_by)
    db.commit()
    return TaskStatusOut(task_id=task.id, status=task.status)
