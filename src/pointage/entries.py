from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol

from .errors import LockedError, ValidationError
from .timesheets import TimeEntryFacts

logger = logging.getLogger(__name__)

MAX_HOURS_PER_DAY = 24.0


class EntryState(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"


class CellAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


def entry_state(entry: TimeEntryFacts) -> EntryState:
    return EntryState.VALIDATED if entry.is_validated else EntryState.PENDING


def validate_hours(hours: float) -> float:
    if not 0 <= hours <= MAX_HOURS_PER_DAY:
        raise ValidationError(f"hours must be between 0 and 24 (got {hours})")
    return float(hours)


def ensure_editable(entry: TimeEntryFacts) -> None:
    if entry.is_validated:
        raise LockedError(f"Time entry {entry.id} is validated and cannot be modified")


def check_daily_cap(other_hours: float, new_hours: float, cap: float = MAX_HOURS_PER_DAY) -> None:
    """Total hours of one employee on one day (all tasks) may not exceed the cap."""
    if other_hours + new_hours > cap:
        raise ValidationError(
            f"Adding {new_hours:g}h would exceed the {cap:g}h daily cap. "
            f"Current total: {other_hours:g}h."
        )


def plan_cell_save(existing: TimeEntryFacts | None, hours: float) -> CellAction:
    """
    Decide what saving a (employee, task, day) cell does:

        existing + 0        -> DELETE
        existing + non-zero -> UPDATE
        none     + non-zero -> CREATE
        none     + 0        -> NOOP

    A validated cell rejects every value.
    """
    hours = validate_hours(hours)

    if existing is not None:
        ensure_editable(existing)
        return CellAction.DELETE if hours == 0 else CellAction.UPDATE

    return CellAction.NOOP if hours == 0 else CellAction.CREATE


# ---------------------------------------------------------------------------
# Bulk validation
# ---------------------------------------------------------------------------

class EntryStore(Protocol):
    def mark_validated(self, entry_id: int) -> bool:
        """Flip one entry pending -> validated; True only if it flipped."""
        raise NotImplementedError


@dataclass(frozen=True)
class BulkValidationResult:
    validated: tuple[int, ...]
    skipped: tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.validated)


def bulk_validate(entry_ids: Iterable[int], store: EntryStore) -> BulkValidationResult:
    """
    Each id is its own conditional transition: a missing or already
    validated entry is skipped and never blocks the others.
    """
    validated: list[int] = []
    skipped: list[int] = []
    for entry_id in dict.fromkeys(entry_ids):
        if store.mark_validated(entry_id):
            validated.append(entry_id)
        else:
            logger.debug("time entry %s skipped: missing or already validated", entry_id)
            skipped.append(entry_id)
    return BulkValidationResult(validated=tuple(validated), skipped=tuple(skipped))
