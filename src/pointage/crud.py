from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from . import schedules as sched
from .entries import (
    BulkValidationResult,
    CellAction,
    bulk_validate,
    check_daily_cap,
    ensure_editable,
    plan_cell_save,
    validate_hours,
)
from .errors import InvalidTransitionError, LockedError
from .leaves import LeaveRequestFacts, LeaveStatus, LeaveTypeFacts, new_leave_request
from .models import (
    Employee,
    LeaveRequest,
    LeaveType,
    PublicHoliday,
    StatusHistory,
    Task,
    TaskDeliverable,
    TimeEntry,
    WorkSchedule,
)
from .production import TaskFacts, TaskStatus, check_status_change
from .timesheets import ExportRow, TimeEntryFacts

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Employees & schedules
# ---------------------------------------------------------------------------

def get_employee(db: Session, employee_id: int) -> Employee | None:
    return db.get(Employee, employee_id)


def list_subordinates(db: Session, manager_id: int | None) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.last_name.asc(), Employee.first_name.asc())
    if manager_id is not None:
        stmt = stmt.where(Employee.manager_id == manager_id)
    return list(db.scalars(stmt).all())


def schedule_facts(row: WorkSchedule) -> sched.WorkSchedule:
    return sched.WorkSchedule(
        contract_type=row.contract_type,
        monday_hours=row.monday_hours,
        tuesday_hours=row.tuesday_hours,
        wednesday_hours=row.wednesday_hours,
        thursday_hours=row.thursday_hours,
        friday_hours=row.friday_hours,
        saturday_hours=row.saturday_hours,
        sunday_hours=row.sunday_hours,
        weekly_hours=row.weekly_hours,
    )


def list_schedules(db: Session) -> dict[str, sched.WorkSchedule]:
    rows = db.scalars(select(WorkSchedule)).all()
    return {row.contract_type: schedule_facts(row) for row in rows}


def holiday_set(db: Session, start: date, end: date, country: str) -> set[str]:
    stmt = (
        select(PublicHoliday.day)
        .where(PublicHoliday.country == country)
        .where(PublicHoliday.day >= start)
        .where(PublicHoliday.day <= end)
    )
    return {d.isoformat() for d in db.scalars(stmt).all()}


def upsert_holiday(db: Session, *, day: date, label: str, country: str) -> PublicHoliday:
    stmt = select(PublicHoliday).where(PublicHoliday.day == day, PublicHoliday.country == country)
    existing = db.scalar(stmt)

    if existing:
        existing.label = label
        existing.year = day.year
        return existing

    holiday = PublicHoliday(day=day, label=label, country=country, year=day.year)
    db.add(holiday)
    db.flush()
    return holiday


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------

def entry_facts(row: TimeEntry) -> TimeEntryFacts:
    return TimeEntryFacts(
        id=row.id,
        employee_id=row.employee_id,
        task_id=row.task_id,
        day=row.day,
        hours=row.hours,
        is_validated=row.is_validated,
        comment=row.comment,
    )


def list_entries(
    db: Session,
    start: date,
    end: date,
    *,
    employee_ids: Iterable[int] | None = None,
) -> list[TimeEntry]:
    stmt = (
        select(TimeEntry)
        .where(TimeEntry.day >= start)
        .where(TimeEntry.day <= end)
        .order_by(TimeEntry.day.asc(), TimeEntry.id.asc())
    )
    if employee_ids is not None:
        stmt = stmt.where(TimeEntry.employee_id.in_(list(employee_ids)))
    return list(db.scalars(stmt).all())


def get_entry(db: Session, entry_id: int) -> TimeEntry | None:
    return db.get(TimeEntry, entry_id)


def find_cell_entry(db: Session, *, employee_id: int, task_id: int, day: date) -> TimeEntry | None:
    stmt = (
        select(TimeEntry)
        .where(
            TimeEntry.employee_id == employee_id,
            TimeEntry.task_id == task_id,
            TimeEntry.day == day,
        )
        .order_by(TimeEntry.id.asc())
    )
    return db.scalars(stmt).first()


def day_total_hours(db: Session, *, employee_id: int, day: date, exclude_id: int | None = None) -> float:
    stmt = select(func.coalesce(func.sum(TimeEntry.hours), 0.0)).where(
        TimeEntry.employee_id == employee_id,
        TimeEntry.day == day,
    )
    if exclude_id is not None:
        stmt = stmt.where(TimeEntry.id != exclude_id)
    return float(db.scalar(stmt) or 0.0)


def create_entry(
    db: Session,
    *,
    employee_id: int,
    task_id: int,
    day: date,
    hours: float,
    comment: str | None = None,
    daily_cap: float = 24.0,
) -> TimeEntry:
    hours = validate_hours(hours)
    check_daily_cap(day_total_hours(db, employee_id=employee_id, day=day), hours, daily_cap)

    entry = TimeEntry(employee_id=employee_id, task_id=task_id, day=day, hours=hours, comment=comment)
    db.add(entry)
    db.flush()
    return entry


def update_entry_hours(
    db: Session,
    entry_id: int,
    *,
    hours: float,
    comment: str | None = None,
    daily_cap: float = 24.0,
) -> TimeEntry | None:
    """
    Edit an unvalidated entry. The write is conditional on
    is_validated = false so it cannot land on an entry validated meanwhile.
    Returns None when the entry does not exist.
    """
    hours = validate_hours(hours)
    entry = get_entry(db, entry_id)
    if entry is None:
        return None
    ensure_editable(entry_facts(entry))
    check_daily_cap(
        day_total_hours(db, employee_id=entry.employee_id, day=entry.day, exclude_id=entry_id),
        hours,
        daily_cap,
    )

    values: dict = {"hours": hours}
    if comment is not None:
        values["comment"] = comment
    result = db.execute(
        update(TimeEntry)
        .where(TimeEntry.id == entry_id, TimeEntry.is_validated.is_(False))
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        # validated between the read and the write
        raise LockedError(f"Time entry {entry_id} is validated and cannot be modified")
    return entry


def delete_entry(db: Session, entry_id: int) -> bool:
    result = db.execute(
        delete(TimeEntry)
        .where(TimeEntry.id == entry_id, TimeEntry.is_validated.is_(False))
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 1:
        return True
    if get_entry(db, entry_id) is None:
        return False
    raise LockedError(f"Time entry {entry_id} is validated and cannot be deleted")


def mark_entry_validated(db: Session, entry_id: int) -> bool:
    result = db.execute(
        update(TimeEntry)
        .where(TimeEntry.id == entry_id, TimeEntry.is_validated.is_(False))
        .values(is_validated=True)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


class SqlEntryStore:
    """EntryStore backed by one conditional UPDATE per entry."""

    def __init__(self, db: Session):
        self._db = db

    def mark_validated(self, entry_id: int) -> bool:
        return mark_entry_validated(self._db, entry_id)


def validate_entries(db: Session, entry_ids: Iterable[int]) -> BulkValidationResult:
    result = bulk_validate(entry_ids, SqlEntryStore(db))
    logger.info(
        "bulk validation: %d validated, %d skipped", len(result.validated), len(result.skipped)
    )
    return result


def save_cell(
    db: Session,
    *,
    employee_id: int,
    task_id: int,
    day: date,
    hours: float,
    daily_cap: float = 24.0,
) -> tuple[CellAction, TimeEntry | None]:
    existing = find_cell_entry(db, employee_id=employee_id, task_id=task_id, day=day)
    action = plan_cell_save(entry_facts(existing) if existing else None, hours)

    if action == CellAction.CREATE:
        entry = create_entry(
            db, employee_id=employee_id, task_id=task_id, day=day, hours=hours, daily_cap=daily_cap
        )
        return action, entry
    if action == CellAction.UPDATE:
        return action, update_entry_hours(db, existing.id, hours=hours, daily_cap=daily_cap)
    if action == CellAction.DELETE:
        delete_entry(db, existing.id)
    return action, None


def export_rows(
    db: Session,
    start: date,
    end: date,
    *,
    employee_id: int | None = None,
) -> list[ExportRow]:
    stmt = (
        select(TimeEntry, Employee, Task)
        .join(Employee, TimeEntry.employee_id == Employee.id)
        .join(Task, TimeEntry.task_id == Task.id)
        .where(TimeEntry.day >= start, TimeEntry.day <= end)
        .order_by(TimeEntry.day.asc(), TimeEntry.employee_id.asc())
    )
    if employee_id is not None:
        stmt = stmt.where(TimeEntry.employee_id == employee_id)

    return [
        ExportRow(
            day=entry.day,
            employee_name=employee.display_name,
            task_reference=task.reference,
            project_title=task.project_title or "",
            hours=entry.hours,
            comment=entry.comment,
            is_validated=entry.is_validated,
        )
        for entry, employee, task in db.execute(stmt).all()
    ]


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------

def get_leave_type(db: Session, leave_type_id: int) -> LeaveType | None:
    return db.get(LeaveType, leave_type_id)


def leave_type_facts(row: LeaveType) -> LeaveTypeFacts:
    return LeaveTypeFacts(
        id=row.id,
        name=row.name,
        days_per_year=row.days_per_year,
        is_carry_over=row.is_carry_over,
    )


def leave_facts(row: LeaveRequest) -> LeaveRequestFacts:
    return LeaveRequestFacts(
        id=row.id,
        employee_id=row.employee_id,
        leave_type_id=row.leave_type_id,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,
        days=row.days,
        label=row.leave_type.name if row.leave_type else None,
    )


def get_leave(db: Session, leave_id: int) -> LeaveRequest | None:
    return db.get(LeaveRequest, leave_id)


def list_leaves(
    db: Session,
    *,
    employee_ids: Iterable[int] | None = None,
    start: date | None = None,
    end: date | None = None,
    statuses: Iterable[LeaveStatus] | None = None,
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.start_date.asc())
    if employee_ids is not None:
        stmt = stmt.where(LeaveRequest.employee_id.in_(list(employee_ids)))
    if start is not None:
        stmt = stmt.where(LeaveRequest.end_date >= start)
    if end is not None:
        stmt = stmt.where(LeaveRequest.start_date <= end)
    if statuses is not None:
        stmt = stmt.where(LeaveRequest.status.in_(list(statuses)))
    return list(db.scalars(stmt).all())


def create_leave(
    db: Session,
    *,
    employee_id: int,
    leave_type_id: int,
    start_date: date,
    end_date: date,
    country: str,
    reason: str | None = None,
) -> LeaveRequest:
    holidays = holiday_set(db, start_date, end_date, country)
    existing = [leave_facts(row) for row in list_leaves(db, employee_ids=[employee_id])]
    facts = new_leave_request(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        start_date=start_date,
        end_date=end_date,
        holidays=holidays,
        existing=existing,
    )

    leave = LeaveRequest(
        employee_id=facts.employee_id,
        leave_type_id=facts.leave_type_id,
        start_date=facts.start_date,
        end_date=facts.end_date,
        days=facts.days,
        status=facts.status,
        reason=reason,
    )
    db.add(leave)
    db.flush()
    logger.info("leave request %s created: %d day(s)", leave.id, leave.days)
    return leave


def decide_leave(
    db: Session,
    leave: LeaveRequest,
    transition: Callable[[LeaveRequestFacts], LeaveRequestFacts],
    *,
    approver_id: int | None = None,
    comment: str | None = None,
) -> LeaveRequest:
    """
    Apply a state-machine transition and persist it only if the row is
    still in the state the transition was computed from.
    """
    before = leave.status
    after = transition(leave_facts(leave)).status

    values: dict = {"status": after}
    if approver_id is not None:
        values["approver_id"] = approver_id
    if comment is not None:
        values["comment"] = comment
    result = db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave.id, LeaveRequest.status == before)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise InvalidTransitionError(f"Leave request {leave.id} changed concurrently")
    db.refresh(leave)

    logger.info("leave request %s: %s -> %s", leave.id, before.value, after.value)
    return leave


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def get_task(db: Session, task_id: int) -> Task | None:
    return db.get(Task, task_id)


def task_total_hours(db: Session, task_id: int) -> float:
    stmt = select(func.coalesce(func.sum(TimeEntry.hours), 0.0)).where(TimeEntry.task_id == task_id)
    return float(db.scalar(stmt) or 0.0)


def deliverable_count(db: Session, task_id: int) -> int:
    stmt = select(func.count(TaskDeliverable.id)).where(TaskDeliverable.task_id == task_id)
    return int(db.scalar(stmt) or 0)


def task_facts(db: Session, task: Task) -> TaskFacts:
    return TaskFacts(
        id=task.id,
        status=task.status,
        reception_date=task.reception_date,
        actual_end_date=task.actual_end_date,
        estimated_hours=task.time_gamme,
        actual_hours=task_total_hours(db, task.id),
        quantity=task.quantity,
        deliverable_count=deliverable_count(db, task.id),
        has_deliverable_links=bool(task.deliverable_links),
    )


def change_task_status(
    db: Session,
    task: Task,
    target: TaskStatus | str,
    *,
    changed_by: int | None = None,
) -> Task:
    new_status = check_status_change(
        task.status,
        target,
        deliverable_count=deliverable_count(db, task.id),
        has_deliverable_links=bool(task.deliverable_links),
    )
    if new_status == task.status:
        return task

    db.add(
        StatusHistory(
            task_id=task.id,
            previous_status=task.status,
            new_status=new_status,
            changed_by=changed_by,
        )
    )
    logger.info("task %s: %s -> %s", task.id, task.status.value, new_status.value)
    task.status = new_status
    task.date_last_status = datetime.utcnow()
    return task
