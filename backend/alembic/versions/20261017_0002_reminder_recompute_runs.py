"""Create reminder recompute run table."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017_0002"
down_revision = "20261017_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reminder_recompute_runs",
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("trigger", sa.String(length=32), nullable=False),
        sa.Column("evaluated_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("appended_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("changed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("appended_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("run_id"),
    )
    op.create_index("ix_reminder_recompute_runs_created_at", "reminder_recompute_runs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_reminder_recompute_runs_created_at", table_name="reminder_recompute_runs")
    op.drop_table("reminder_recompute_runs")
