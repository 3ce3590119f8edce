"""create troubleshooter issues table

Revision ID: 3c1f9a7b2d40
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3c1f9a7b2d40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "troubleshooter_issues",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=True),
        sa.Column("issue_type", sa.String(length=50), nullable=False),
        sa.Column("issue_category", sa.String(length=50), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column(
            "detected_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_troubleshooter_issues_subscription_id"),
        "troubleshooter_issues",
        ["subscription_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_troubleshooter_issues_issue_type"),
        "troubleshooter_issues",
        ["issue_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_troubleshooter_issues_severity"),
        "troubleshooter_issues",
        ["severity"],
        unique=False,
    )
    op.create_index(
        op.f("ix_troubleshooter_issues_detected_at"),
        "troubleshooter_issues",
        ["detected_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_troubleshooter_issues_detected_at"), table_name="troubleshooter_issues")
    op.drop_index(op.f("ix_troubleshooter_issues_severity"), table_name="troubleshooter_issues")
    op.drop_index(op.f("ix_troubleshooter_issues_issue_type"), table_name="troubleshooter_issues")
    op.drop_index(
        op.f("ix_troubleshooter_issues_subscription_id"), table_name="troubleshooter_issues"
    )
    op.drop_table("troubleshooter_issues")
