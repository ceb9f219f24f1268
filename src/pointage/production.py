from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Collection, Iterable

from .business_calendar import CountMode, count_business_days
from .errors import InvalidTransitionError, ValidationError

UNDEFINED_DISPLAY = "—"


class TaskStatus(str, Enum):
    A_TRAITER = "a_traiter"
    EN_ATTENTE = "en_attente"
    EN_COURS = "en_cours"
    A_COMPLETER = "a_completer"
    EN_REVUE = "en_revue"
    TERMINEE = "terminee"
    LIVREE = "livree"
    BLOQUEE = "bloquee"
    ANNULEE = "annulee"


# Statuses that require at least one deliverable.
TERMINAL_STATUSES = frozenset({TaskStatus.TERMINEE, TaskStatus.LIVREE})


@dataclass(frozen=True)
class TaskFacts:
    id: int
    status: TaskStatus
    reception_date: date | None = None
    actual_end_date: date | None = None
    estimated_hours: float | None = None
    actual_hours: float = 0.0
    quantity: int | None = 1
    deliverable_count: int = 0
    has_deliverable_links: bool = False


@dataclass(frozen=True)
class TaskMetrics:
    total_hours: float
    rendement: float | None
    delay_rl: int | None


def _round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def _efficiency(estimated_hours: float | None, actual_hours: float | None, quantity: int | None) -> float | None:
    if not estimated_hours or not actual_hours:
        return None
    qty = 1 if quantity is None else quantity
    return (float(estimated_hours) * qty / float(actual_hours)) * 100


def rendement(
    estimated_hours: float | None,
    actual_hours: float | None,
    quantity: int | None = 1,
) -> float | None:
    """
    Rendement = (time_gamme * quantity) / actual_hours * 100, one decimal.

    None (displayed as "—") when there is no estimate or no hours logged.
    Above 100 means faster than estimated.
    """
    ratio = _efficiency(estimated_hours, actual_hours, quantity)
    if ratio is None:
        return None
    return _round_half_up(ratio, 1)


def display_rendement(value: float | None) -> str:
    return UNDEFINED_DISPLAY if value is None else f"{value:.1f}"


def delay_rl(
    reception_date: date | None,
    measured_on: date,
    holidays: Collection[str | date] | None = None,
) -> int | None:
    """Business days from reception (excluded) to measurement (included)."""
    if reception_date is None:
        return None
    return count_business_days(reception_date, measured_on, holidays, CountMode.EXCLUSIVE_START)


def task_metrics(
    task: TaskFacts,
    *,
    holidays: Collection[str | date] | None = None,
    today: date,
) -> TaskMetrics:
    measured_on = task.actual_end_date or today
    return TaskMetrics(
        total_hours=float(task.actual_hours),
        rendement=rendement(task.estimated_hours, task.actual_hours, task.quantity),
        delay_rl=delay_rl(task.reception_date, measured_on, holidays),
    )


def average_rendement(tasks: Iterable[TaskFacts]) -> int | None:
    ratios = [
        r
        for r in (_efficiency(t.estimated_hours, t.actual_hours, t.quantity) for t in tasks)
        if r is not None
    ]
    if not ratios:
        return None
    return int(_round_half_up(sum(ratios) / len(ratios)))


# ---------------------------------------------------------------------------
# Status gate
# ---------------------------------------------------------------------------

def parse_task_status(value: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown task status {value!r}") from exc


def can_transition_to_status(
    target: TaskStatus | str,
    deliverable_count: int,
    has_deliverable_links: bool,
) -> bool:
    if parse_task_status(target) in TERMINAL_STATUSES:
        return deliverable_count > 0 or has_deliverable_links
    return True


def check_status_change(
    current: TaskStatus | str,
    target: TaskStatus | str,
    *,
    deliverable_count: int,
    has_deliverable_links: bool,
) -> TaskStatus:
    current_status = parse_task_status(current)
    target_status = parse_task_status(target)
    if target_status == current_status:
        return target_status
    if not can_transition_to_status(target_status, deliverable_count, has_deliverable_links):
        raise InvalidTransitionError(
            f'Cannot move task to "{target_status.value}" without at least one deliverable link.'
        )
    return target_status
