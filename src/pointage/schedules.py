from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping

from .business_calendar import iter_days
from .errors import UnresolvedError


@dataclass(frozen=True)
class WorkSchedule:
    contract_type: str
    monday_hours: float = 0.0
    tuesday_hours: float = 0.0
    wednesday_hours: float = 0.0
    thursday_hours: float = 0.0
    friday_hours: float = 0.0
    saturday_hours: float = 0.0
    sunday_hours: float = 0.0
    weekly_hours: float = 0.0

    @property
    def day_hours(self) -> tuple[float, ...]:
        # Indexed like date.weekday(): Monday == 0
        return (
            self.monday_hours,
            self.tuesday_hours,
            self.wednesday_hours,
            self.thursday_hours,
            self.friday_hours,
            self.saturday_hours,
            self.sunday_hours,
        )

    def hours_for(self, day: date) -> float:
        return float(self.day_hours[day.weekday()])


# Offered to hosts that want a fallback; the resolver never applies it on its own.
DEFAULT_SCHEDULE = WorkSchedule(
    contract_type="default",
    monday_hours=8.0,
    tuesday_hours=8.0,
    wednesday_hours=8.0,
    thursday_hours=8.0,
    friday_hours=8.0,
    weekly_hours=40.0,
)


def resolve_schedule(
    contract_type: str | None,
    schedules: Mapping[str, WorkSchedule],
) -> WorkSchedule:
    if not contract_type:
        raise UnresolvedError("Employee has no contract type; expected hours unknown")
    schedule = schedules.get(contract_type)
    if schedule is None:
        raise UnresolvedError(f"No work schedule configured for contract type {contract_type!r}")
    return schedule


def expected_hours(schedule: WorkSchedule, start: date, end: date) -> float:
    """
    Raw capacity: template hours summed over every day of [start, end].
    Holidays and leave are NOT subtracted here (see timesheets.build_grid).
    """
    return sum(schedule.hours_for(day) for day in iter_days(start, end))


def expected_hours_for_employee(
    contract_type: str | None,
    schedules: Mapping[str, WorkSchedule],
    start: date,
    end: date,
) -> float:
    return expected_hours(resolve_schedule(contract_type, schedules), start, end)
