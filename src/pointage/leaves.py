from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Collection, Iterable

from .business_calendar import CountMode, count_business_days
from .errors import AuthorizationError, InvalidTransitionError, ValidationError


class LeaveStatus(str, Enum):
    PENDING = "en_attente"
    APPROVED = "approuve"
    REFUSED = "refuse"
    CANCELLED = "annule"


# Requests that still hold days on the calendar.
ACTIVE_STATUSES = frozenset({LeaveStatus.PENDING, LeaveStatus.APPROVED})

TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset(
        {LeaveStatus.APPROVED, LeaveStatus.REFUSED, LeaveStatus.CANCELLED}
    ),
    LeaveStatus.APPROVED: frozenset(),
    LeaveStatus.REFUSED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class LeaveTypeFacts:
    id: int
    name: str
    days_per_year: float | None
    is_carry_over: bool = False


@dataclass(frozen=True)
class LeaveRequestFacts:
    id: int | None
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    status: LeaveStatus = LeaveStatus.PENDING
    days: int = 0
    label: str | None = None


# ---------------------------------------------------------------------------
# Day counts, overlap, balance
# ---------------------------------------------------------------------------

def leave_days(start: date, end: date, holidays: Collection[str | date] | None = None) -> int:
    """Business days of [start, end]; the employee's own schedule is ignored."""
    return count_business_days(start, end, holidays, CountMode.INCLUSIVE)


def ranges_overlap(start: date, end: date, other_start: date, other_end: date) -> bool:
    # Inclusive on both sides: sharing a single boundary day is an overlap.
    return start <= other_end and end >= other_start


def find_overlaps(
    start: date,
    end: date,
    existing: Iterable[LeaveRequestFacts],
    *,
    employee_id: int | None = None,
) -> list[LeaveRequestFacts]:
    return [
        leave
        for leave in existing
        if leave.status in ACTIVE_STATUSES
        and (employee_id is None or leave.employee_id == employee_id)
        and ranges_overlap(start, end, leave.start_date, leave.end_date)
    ]


def has_overlap(
    start: date,
    end: date,
    existing: Iterable[LeaveRequestFacts],
    *,
    employee_id: int | None = None,
) -> bool:
    return bool(find_overlaps(start, end, existing, employee_id=employee_id))


def leave_balance(
    allowance: float,
    requests: Iterable[LeaveRequestFacts],
    *,
    leave_type_id: int,
    employee_id: int | None = None,
    period: tuple[date, date] | None = None,
) -> float:
    """
    remaining = allowance - sum(days of approved requests)

    A request belongs to the period when its start date falls inside it.
    The result is not clamped: a negative balance means over-allocation.
    """
    consumed = 0
    for req in requests:
        if req.status != LeaveStatus.APPROVED or req.leave_type_id != leave_type_id:
            continue
        if employee_id is not None and req.employee_id != employee_id:
            continue
        if period is not None and not period[0] <= req.start_date <= period[1]:
            continue
        consumed += req.days
    return float(allowance) - consumed


def new_leave_request(
    *,
    employee_id: int,
    leave_type_id: int,
    start_date: date,
    end_date: date,
    holidays: Collection[str | date] | None = None,
    existing: Iterable[LeaveRequestFacts] = (),
    label: str | None = None,
) -> LeaveRequestFacts:
    """
    Build a pending request with its business-day count frozen.
    `days` is never recomputed afterwards, even if holidays change.
    """
    if end_date < start_date:
        raise ValidationError("End date must be after start date")

    days = leave_days(start_date, end_date, holidays)
    if days == 0:
        raise ValidationError("No working days in the selected period")

    clashes = find_overlaps(start_date, end_date, existing, employee_id=employee_id)
    if clashes:
        first = clashes[0]
        raise ValidationError(
            f"Leave overlaps an existing request "
            f"({first.start_date.isoformat()} to {first.end_date.isoformat()})"
        )

    return LeaveRequestFacts(
        id=None,
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        start_date=start_date,
        end_date=end_date,
        status=LeaveStatus.PENDING,
        days=days,
        label=label,
    )


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def can_transition(current: LeaveStatus, target: LeaveStatus) -> bool:
    return target in TRANSITIONS[current]


def _move(request: LeaveRequestFacts, target: LeaveStatus) -> LeaveRequestFacts:
    if not can_transition(request.status, target):
        raise InvalidTransitionError(
            f"Leave request is already {request.status.value}; cannot move to {target.value}"
        )
    return replace(request, status=target)


def approve(request: LeaveRequestFacts) -> LeaveRequestFacts:
    return _move(request, LeaveStatus.APPROVED)


def refuse(request: LeaveRequestFacts) -> LeaveRequestFacts:
    return _move(request, LeaveStatus.REFUSED)


def cancel(request: LeaveRequestFacts, *, requesting_employee_id: int) -> LeaveRequestFacts:
    if request.employee_id != requesting_employee_id:
        raise AuthorizationError("You can only cancel your own leave requests")
    if request.status != LeaveStatus.PENDING:
        raise InvalidTransitionError("Only pending leave requests can be cancelled")
    return replace(request, status=LeaveStatus.CANCELLED)
