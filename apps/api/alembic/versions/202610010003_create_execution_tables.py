"""create execution tables

Revision ID: 202610010003
Revises: 202610010002
Create Date: 2026-10-01 10:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010003"
down_revision: str | None = "202610010002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "execution_plan",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("admin_approved", sa.Boolean(), nullable=False),
        sa.Column("client_approved", sa.Boolean(), nullable=False),
        sa.Column("admin_approved_by", sa.String(length=128), nullable=True),
        sa.Column("client_approved_by", sa.String(length=128), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("execution_marked_complete", sa.Boolean(), nullable=False),
        sa.Column("marked_complete_by", sa.String(length=128), nullable=True),
        sa.Column("marked_complete_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=128), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases_case.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_id"),
    )

    op.create_table(
        "execution_plan_day",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("work_description", sa.Text(), nullable=False),
        sa.Column("labor_count", sa.Integer(), nullable=False),
        sa.Column("labor_type", sa.String(length=64), nullable=True),
        sa.Column("materials", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["execution_plan.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "day_date", name="uq_execution_plan_day_date"),
    )

    op.create_table(
        "execution_daily_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("log_date", sa.Date(), nullable=False),
        sa.Column("work_description", sa.Text(), nullable=False),
        sa.Column("manpower_count", sa.Integer(), nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases_case.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_id", "log_date", name="uq_execution_daily_log_day"),
    )
    op.create_index("ix_execution_daily_log_case", "execution_daily_log", ["case_id", "log_date"])

    op.create_table(
        "execution_jms",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("launched_by", sa.String(length=128), nullable=False),
        sa.Column("launched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signed_by", sa.String(length=128), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_signature", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases_case.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_id"),
    )


def downgrade() -> None:
    op.drop_table("execution_jms")
    op.drop_index("ix_execution_daily_log_case", table_name="execution_daily_log")
    op.drop_table("execution_daily_log")
    op.drop_table("execution_plan_day")
    op.drop_table("execution_plan")
