"""initial schema

Revision ID: 3f1a9b7c2d10
Revises:
Create Date: 2025-02-03 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1a9b7c2d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEAVE_STATUS = sa.Enum("PENDING", "APPROVED", "REFUSED", "CANCELLED", name="leavestatus")
TASK_STATUS = sa.Enum(
    "A_TRAITER",
    "EN_ATTENTE",
    "EN_COURS",
    "A_COMPLETER",
    "EN_REVUE",
    "TERMINEE",
    "LIVREE",
    "BLOQUEE",
    "ANNULEE",
    name="taskstatus",
)


def upgrade() -> None:
    op.create_table(
        "work_schedule",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contract_type", sa.String(length=50), nullable=False, unique=True),
        sa.Column("monday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tuesday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("wednesday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("thursday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("friday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("saturday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("sunday_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("weekly_hours", sa.Float(), nullable=False, server_default="0"),
    )
    op.create_table(
        "public_holiday",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="FR"),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.UniqueConstraint("date", "country", name="uq_public_holiday_date_country"),
    )
    op.create_table(
        "leave_type",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("days_per_year", sa.Float(), nullable=True),
        sa.Column("is_carry_over", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_table(
        "employee",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("contract_type", sa.String(length=50), nullable=True),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("employee.id"), nullable=True),
    )
    op.create_table(
        "leave_request",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employee.id"), nullable=False),
        sa.Column("leave_type_id", sa.Integer(), sa.ForeignKey("leave_type.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        sa.Column("status", LEAVE_STATUS, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("approver_id", sa.Integer(), sa.ForeignKey("employee.id"), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
    )
    op.create_table(
        "task",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(length=50), nullable=False, unique=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("project_title", sa.String(length=200), nullable=True),
        sa.Column("status", TASK_STATUS, nullable=False),
        sa.Column("reception_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("time_gamme", sa.Float(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("deliverable_links", sa.JSON(), nullable=False),
        sa.Column("date_last_status", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "task_deliverable",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("task.id"), nullable=False),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=True),
    )
    op.create_table(
        "time_entry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employee.id"), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("task.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("is_validated", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.CheckConstraint("hours >= 0 AND hours <= 24", name="ck_time_entry_hours"),
    )
    op.create_index("ix_time_entry_employee_date", "time_entry", ["employee_id", "date"])


def downgrade() -> None:
    op.drop_index("ix_time_entry_employee_date", table_name="time_entry")
    op.drop_table("time_entry")
    op.drop_table("task_deliverable")
    op.drop_table("task")
    op.drop_table("leave_request")
    op.drop_table("employee")
    op.drop_table("leave_type")
    op.drop_table("public_holiday")
    op.drop_table("work_schedule")

    bind = op.get_bind()
    TASK_STATUS.drop(bind, checkfirst=True)
    LEAVE_STATUS.drop(bind, checkfirst=True)
