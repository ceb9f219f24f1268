from datetime import date

import pytest
from pointage import crud
from pointage.entries import CellAction
from pointage.errors import InvalidTransitionError, LockedError, ValidationError
from pointage.leaves import LeaveStatus, approve, refuse
from pointage.models import LeaveRequest, StatusHistory, TaskDeliverable, TimeEntry
from pointage.production import TaskStatus
from sqlalchemy import inspect, select, update
from sqlalchemy.exc import IntegrityError

MONDAY = date(2025, 3, 3)


def _save(db, seeded, hours, day=MONDAY):
    return crud.save_cell(
        db, employee_id=seeded["employee"], task_id=seeded["task"], day=day, hours=hours
    )


def test_save_cell_lifecycle(db, seeded):
    assert _save(db, seeded, 0) == (CellAction.NOOP, None)

    action, entry = _save(db, seeded, 4)
    assert action == CellAction.CREATE
    assert entry.hours == 4.0

    action, updated = _save(db, seeded, 6.5)
    assert action == CellAction.UPDATE
    assert updated.id == entry.id
    assert updated.hours == 6.5

    action, _ = _save(db, seeded, 0)
    assert action == CellAction.DELETE
    assert db.scalars(select(TimeEntry)).all() == []


def test_validated_cell_cannot_be_saved(db, seeded):
    _, entry = _save(db, seeded, 4)
    crud.validate_entries(db, [entry.id])
    db.commit()

    with pytest.raises(LockedError):
        _save(db, seeded, 5)
    with pytest.raises(LockedError):
        _save(db, seeded, 0)


def test_update_and_delete_validated_entry_are_locked(db, seeded):
    _, entry = _save(db, seeded, 4)
    crud.validate_entries(db, [entry.id])
    db.commit()

    with pytest.raises(LockedError):
        crud.update_entry_hours(db, entry.id, hours=2)
    with pytest.raises(LockedError):
        crud.delete_entry(db, entry.id)
    assert crud.get_entry(db, entry.id).hours == 4.0


def test_update_loses_race_against_validation(db, seeded):
    _, entry = _save(db, seeded, 4)
    db.commit()
    # Another writer validates the row; the loaded object is not refreshed
    db.execute(
        update(TimeEntry)
        .where(TimeEntry.id == entry.id)
        .values(is_validated=True)
        .execution_options(synchronize_session=False)
    )
    assert entry.is_validated is False

    with pytest.raises(LockedError):
        crud.update_entry_hours(db, entry.id, hours=2)


def test_missing_entry(db, seeded):
    assert crud.update_entry_hours(db, 999, hours=2) is None
    assert crud.delete_entry(db, 999) is False


def test_daily_cap_spans_tasks(db, seeded):
    crud.create_entry(db, employee_id=seeded["employee"], task_id=seeded["task"], day=MONDAY, hours=20)
    with pytest.raises(ValidationError):
        crud.create_entry(
            db, employee_id=seeded["employee"], task_id=seeded["task"], day=MONDAY, hours=5
        )
    assert crud.day_total_hours(db, employee_id=seeded["employee"], day=MONDAY) == 20.0


def test_validate_entries_is_idempotent(db, seeded):
    _, first = _save(db, seeded, 4)
    _, second = _save(db, seeded, 3, day=date(2025, 3, 4))
    db.commit()

    result = crud.validate_entries(db, [first.id, second.id, 999])
    assert result.validated == (first.id, second.id)
    assert result.skipped == (999,)

    again = crud.validate_entries(db, [first.id, second.id])
    assert again.count == 0


def test_holidays(db, seeded):
    crud.upsert_holiday(db, day=date(2025, 5, 1), label="Fête du Travail", country="FR")
    crud.upsert_holiday(db, day=date(2025, 5, 1), label="1er mai", country="FR")
    crud.upsert_holiday(db, day=date(2025, 5, 8), label="Victoire 1945", country="BE")
    db.commit()

    assert crud.holiday_set(db, date(2025, 1, 1), date(2025, 12, 31), "FR") == {
        "2025-03-05",
        "2025-05-01",
    }


def test_create_leave_freezes_days_and_rejects_overlap(db, seeded):
    leave = crud.create_leave(
        db,
        employee_id=seeded["employee"],
        leave_type_id=seeded["paid_leave"],
        start_date=date(2025, 3, 3),
        end_date=date(2025, 3, 9),
        country="FR",
    )
    # 2025-03-05 is a holiday
    assert leave.days == 4
    assert leave.status == LeaveStatus.PENDING

    with pytest.raises(ValidationError):
        crud.create_leave(
            db,
            employee_id=seeded["employee"],
            leave_type_id=seeded["paid_leave"],
            start_date=date(2025, 3, 9),
            end_date=date(2025, 3, 11),
            country="FR",
        )


def test_decide_leave(db, seeded):
    leave = crud.create_leave(
        db,
        employee_id=seeded["employee"],
        leave_type_id=seeded["paid_leave"],
        start_date=date(2025, 3, 10),
        end_date=date(2025, 3, 11),
        country="FR",
    )
    crud.decide_leave(db, leave, approve, approver_id=seeded["manager"], comment="ok")
    db.commit()
    assert leave.status == LeaveStatus.APPROVED
    assert leave.approver_id == seeded["manager"]
    assert leave.comment == "ok"

    with pytest.raises(InvalidTransitionError):
        crud.decide_leave(db, leave, refuse)


def test_decide_leave_detects_concurrent_change(db, seeded):
    leave = crud.create_leave(
        db,
        employee_id=seeded["employee"],
        leave_type_id=seeded["paid_leave"],
        start_date=date(2025, 3, 10),
        end_date=date(2025, 3, 11),
        country="FR",
    )
    db.commit()
    db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave.id)
        .values(status=LeaveStatus.REFUSED)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(InvalidTransitionError):
        crud.decide_leave(db, leave, approve)


def test_export_rows(db, seeded):
    _save(db, seeded, 4)
    db.commit()
    rows = crud.export_rows(db, date(2025, 3, 1), date(2025, 3, 31))
    assert len(rows) == 1
    assert rows[0].employee_name == "Alice Martin"
    assert rows[0].task_reference == "T-001"
    assert rows[0].project_title == "Projet A"


def test_task_facts(db, seeded):
    _save(db, seeded, 6)
    _save(db, seeded, 4, day=date(2025, 3, 4))
    task = crud.get_task(db, seeded["task"])
    facts = crud.task_facts(db, task)
    assert facts.actual_hours == 10.0
    assert facts.estimated_hours == 8.0
    assert facts.deliverable_count == 0


def test_change_task_status_records_history(db, seeded):
    task = crud.get_task(db, seeded["task"])
    crud.change_task_status(db, task, TaskStatus.EN_COURS, changed_by=seeded["manager"])
    db.commit()

    history = db.scalars(select(StatusHistory)).all()
    assert len(history) == 1
    assert history[0].previous_status == TaskStatus.A_TRAITER
    assert history[0].new_status == TaskStatus.EN_COURS
    assert task.date_last_status is not None

    # same status: no new history row
    crud.change_task_status(db, task, "en_cours")
    db.commit()
    assert len(db.scalars(select(StatusHistory)).all()) == 1


def test_change_task_status_requires_deliverable(db, seeded):
    task = crud.get_task(db, seeded["task"])
    with pytest.raises(InvalidTransitionError):
        crud.change_task_status(db, task, TaskStatus.TERMINEE)
    assert task.status == TaskStatus.A_TRAITER

    db.add(TaskDeliverable(task_id=task.id, label="Plan PDF", url="https://example.org/plan.pdf"))
    db.flush()
    crud.change_task_status(db, task, TaskStatus.TERMINEE)
    assert task.status == TaskStatus.TERMINEE


def test_change_task_status_accepts_deliverable_links(db, seeded):
    task = crud.get_task(db, seeded["task"])
    task.deliverable_links = ["https://example.org/drive/plan"]
    db.flush()
    crud.change_task_status(db, task, TaskStatus.LIVREE)
    assert task.status == TaskStatus.LIVREE


def test_schema_rejects_out_of_range_hours(db, seeded):
    db.add(TimeEntry(employee_id=seeded["employee"], task_id=seeded["task"], day=MONDAY, hours=30))
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_schema_rejects_reversed_leave(db, seeded):
    db.add(
        LeaveRequest(
            employee_id=seeded["employee"],
            leave_type_id=seeded["paid_leave"],
            start_date=date(2025, 3, 14),
            end_date=date(2025, 3, 10),
            days=0,
        )
    )
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_schema_indexes_time_entries_by_employee_and_day(db):
    inspector = inspect(db.get_bind())
    indexes = {index["name"]: index["column_names"] for index in inspector.get_indexes("time_entry")}
    assert indexes["ix_time_entry_employee_date"] == ["employee_id", "date"]
