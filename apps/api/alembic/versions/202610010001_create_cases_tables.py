"""create cases tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "cases_case",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=128), nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("client_phone", sa.String(length=32), nullable=True),
        sa.Column("client_email", sa.String(length=255), nullable=True),
        sa.Column("site_address", sa.Text(), nullable=True),
        sa.Column("client_id", sa.String(length=128), nullable=True),
        sa.Column("sales_owner_id", sa.String(length=128), nullable=True),
        sa.Column("project_head_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="LEAD"),
        sa.Column("total_budget", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("spent_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("received_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("jms_signed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("jms_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(length=128), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cases_case_scope", "cases_case", ["tenant_id", "organization_id"])
    op.create_index("ix_cases_case_status", "cases_case", ["status"])
    op.create_index("ix_cases_case_project_head", "cases_case", ["project_head_id"])

    op.create_table(
        "cases_activity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases_case.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cases_activity_case", "cases_activity", ["case_id", "occurred_at"])


def downgrade() -> None:
    op.drop_index("ix_cases_activity_case", table_name="cases_activity")
    op.drop_table("cases_activity")
    op.drop_index("ix_cases_case_project_head", table_name="cases_case")
    op.drop_index("ix_cases_case_status", table_name="cases_case")
    op.drop_index("ix_cases_case_scope", table_name="cases_case")
    op.drop_table("cases_case")
