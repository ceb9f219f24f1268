"""add task status history

Revision ID: b84e2c6d5a93
Revises: 3f1a9b7c2d10
Create Date: 2025-03-11 14:20:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "b84e2c6d5a93"
down_revision = "3f1a9b7c2d10"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # taskstatus already exists since the initial schema
    task_status = postgresql.ENUM(name="taskstatus", create_type=False)
    bind = op.get_bind()
    status_type = task_status if bind.dialect.name == "postgresql" else sa.String(length=20)

    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("previous_status", status_type, nullable=False),
        sa.Column("new_status", status_type, nullable=False),
        sa.Column("changed_by", sa.Integer(), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["task.id"]),
        sa.ForeignKeyConstraint(["changed_by"], ["employee.id"]),
    )


def downgrade() -> None:
    op.drop_table("status_history")
