from datetime import date

from pointage.db import session_scope
from pointage.models import Employee, LeaveType, Task, WorkSchedule

SCHEDULES = {
    "cdi_35h": (7.0, 7.0, 7.0, 7.0, 7.0, 0.0, 0.0),
    "cdi_39h": (8.0, 8.0, 8.0, 8.0, 7.0, 0.0, 0.0),
    "temps_partiel": (7.0, 7.0, 0.0, 7.0, 0.0, 0.0, 0.0),
}

LEAVE_TYPES = [
    ("Congés payés", 25.0, True),
    ("RTT", 10.0, False),
    ("Maladie", None, False),
]

with session_scope() as db:
    for contract_type, hours in SCHEDULES.items():
        db.add(
            WorkSchedule(
                contract_type=contract_type,
                monday_hours=hours[0],
                tuesday_hours=hours[1],
                wednesday_hours=hours[2],
                thursday_hours=hours[3],
                friday_hours=hours[4],
                saturday_hours=hours[5],
                sunday_hours=hours[6],
                weekly_hours=sum(hours),
            )
        )

    for name, days_per_year, carry_over in LEAVE_TYPES:
        db.add(LeaveType(name=name, days_per_year=days_per_year, is_carry_over=carry_over))

    manager = Employee(first_name="Claire", last_name="Martin", contract_type="cdi_39h")
    db.add(manager)
    db.flush()

    employee = Employee(
        first_name="Test",
        last_name="Technicien",
        contract_type="cdi_35h",
        manager_id=manager.id,
    )
    db.add(employee)

    task = Task(
        reference="T-0001",
        title="Tâche de démonstration",
        project_title="Projet démo",
        reception_date=date.today(),
        time_gamme=8.0,
        quantity=1,
        deliverable_links=[],
    )
    db.add(task)
    db.flush()

    print("manager_id=", manager.id, "employee_id=", employee.id, "task_id=", task.id)
