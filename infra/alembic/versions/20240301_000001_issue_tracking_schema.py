"""Issue tracking schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20240301_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("email", sa.Text(), nullable=True, unique=True),
    )

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("ot", sa.Text(), nullable=False),
        sa.Column("client", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
    )
    op.create_index("ix_work_orders_location", "work_orders", ["location"])

    op.create_table(
        "issues",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("work_order_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'OPEN'")),
        sa.Column("priority", sa.Text(), nullable=False),
        sa.Column("stage", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("updated_by", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_issues_work_order_id", "issues", ["work_order_id"])

    op.create_table(
        "issue_notes",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("issue_id", sa.Text(), sa.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_issue_notes_issue_id", "issue_notes", ["issue_id"])

    op.create_table(
        "issue_delays",
        sa.Column("id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("issue_id", sa.Text(), sa.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("updated_by", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_issue_delays_issue_id", "issue_delays", ["issue_id"])

    op.execute(
        """
        CREATE OR REPLACE VIEW issue_notes_with_users AS
        SELECT n.id, n.issue_id, n.content, n.created_by, n.created_at, u.email AS user_email
        FROM issue_notes n
        LEFT JOIN users u ON u.id = n.created_by
        """
    )


def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS issue_notes_with_users")
    op.drop_index("ix_issue_delays_issue_id", table_name="issue_delays")
    op.drop_table("issue_delays")
    op.drop_index("ix_issue_notes_issue_id", table_name="issue_notes")
    op.drop_table("issue_notes")
    op.drop_index("ix_issues_work_order_id", table_name="issues")
    op.drop_table("issues")
    op.drop_index("ix_work_orders_location", table_name="work_orders")
    op.drop_table("work_orders")
    op.drop_table("users")
