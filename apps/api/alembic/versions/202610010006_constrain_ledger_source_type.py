"""constrain ledger source types

Revision ID: 202610010006
Revises: 202610010005
Create Date: 2026-10-01 11:30:00
"""

from collections.abc import Sequence

from alembic import op


revision: str = "202610010006"
down_revision: str | None = "202610010005"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_check_constraint(
        "ck_ledger_entry_source_type",
        "ledger_journal_entry",
        "source_type IN ('case_payment', 'case_expense', 'salary_entry', 'invoice', 'adjustment', 'reversal')",
    )
    op.create_check_constraint(
        "ck_ledger_entry_case_source",
        "ledger_journal_entry",
        "source_type NOT IN ('case_payment', 'case_expense') OR case_id IS NOT NULL",
    )


def downgrade() -> None:
    op.drop_constraint("ck_ledger_entry_case_source", "ledger_journal_entry", type_="check")
    op.drop_constraint("ck_ledger_entry_source_type", "ledger_journal_entry", type_="check")
