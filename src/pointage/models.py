from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import (CheckConstraint, Float, ForeignKey, Index, Integer, String,
                        Text, UniqueConstraint)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .leaves import LeaveStatus
from .production import TaskStatus

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

class WorkSchedule(Base):
    __tablename__ = "work_schedule"

    id: Mapped[int] = mapped_column(primary_key=True)
    contract_type: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    monday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    tuesday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    wednesday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    thursday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    friday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    saturday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    sunday_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    weekly_hours: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)


class PublicHoliday(Base):
    __tablename__ = "public_holiday"
    __table_args__ = (
        UniqueConstraint("date", "country", name="uq_public_holiday_date_country"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str] = mapped_column(String(2), default="FR", nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)


class LeaveType(Base):
    __tablename__ = "leave_type"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    days_per_year: Mapped[float | None] = mapped_column(Float)
    is_carry_over: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class Employee(Base):
    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contract_type: Mapped[str | None] = mapped_column(String(50))
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("employee.id"))

    manager: Mapped[Optional["Employee"]] = relationship(remote_side=[id])

    time_entries: Mapped[list["TimeEntry"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    leave_requests: Mapped[list["LeaveRequest"]] = relationship(
        back_populates="employee",
        foreign_keys="LeaveRequest.employee_id",
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------

class LeaveRequest(Base):
    __tablename__ = "leave_request"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employee.id"), nullable=False)
    leave_type_id: Mapped[int] = mapped_column(ForeignKey("leave_type.id"), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Frozen at creation
    days: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[LeaveStatus] = mapped_column(
        SQLEnum(LeaveStatus), default=LeaveStatus.PENDING, nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text)
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("employee.id"))
    comment: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(
        back_populates="leave_requests",
        foreign_keys=[employee_id],
    )
    leave_type: Mapped["LeaveType"] = relationship()


# ---------------------------------------------------------------------------
# Tasks & time
# ---------------------------------------------------------------------------

class Task(Base):
    __tablename__ = "task"

    id: Mapped[int] = mapped_column(primary_key=True)
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    project_title: Mapped[str | None] = mapped_column(String(200))

    status: Mapped[TaskStatus] = mapped_column(
        SQLEnum(TaskStatus), default=TaskStatus.A_TRAITER, nullable=False
    )
    reception_date: Mapped[date | None] = mapped_column(Date)
    actual_end_date: Mapped[date | None] = mapped_column(Date)
    time_gamme: Mapped[float | None] = mapped_column(Float)
    quantity: Mapped[int | None] = mapped_column(Integer, default=1)
    deliverable_links: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    date_last_status: Mapped[datetime | None] = mapped_column(DateTime)

    deliverables: Mapped[list["TaskDeliverable"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
    )

    time_entries: Mapped[list["TimeEntry"]] = relationship(back_populates="task")

    status_history: Mapped[list["StatusHistory"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="StatusHistory.changed_at",
    )


class TaskDeliverable(Base):
    __tablename__ = "task_deliverable"

    id: Mapped[int] = mapped_column(primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("task.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str | None] = mapped_column(String(500))

    task: Mapped["Task"] = relationship(back_populates="deliverables")


class StatusHistory(Base):
    __tablename__ = "status_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("task.id"), nullable=False)
    previous_status: Mapped[TaskStatus] = mapped_column(SQLEnum(TaskStatus), nullable=False)
    new_status: Mapped[TaskStatus] = mapped_column(SQLEnum(TaskStatus), nullable=False)
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("employee.id"))
    changed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    task: Mapped["Task"] = relationship(back_populates="status_history")


class TimeEntry(Base):
    __tablename__ = "time_entry"
    __table_args__ = (
        CheckConstraint("hours >= 0 AND hours <= 24", name="ck_time_entry_hours"),
        Index("ix_time_entry_employee_date", "employee_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employee.id"), nullable=False)
    task_id: Mapped[int] = mapped_column(ForeignKey("task.id"), nullable=False)

    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    is_validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    employee: Mapped["Employee"] = relationship(back_populates="time_entries")
    task: Mapped["Task"] = relationship(back_populates="time_entries")
