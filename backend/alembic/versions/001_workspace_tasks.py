"""Add workspace tasks and recurring task rules.

Revision ID: 001
Revises:
Create Date: 2025-12-26

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "workspace_recurring_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("role_scope", sa.String(50), nullable=True),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("template_data", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("recurrence_type", sa.String(20), nullable=False),
        sa.Column("recurrence_config", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("next_occurrence", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("occurrence_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_occurrences", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_workspace_recurring_tasks"),
        sa.CheckConstraint(
            "max_occurrences IS NULL OR occurrence_count <= max_occurrences",
            name="ck_recurring_tasks_occurrence_limit",
        ),
    )
    op.create_index(
        "ix_recurring_tasks_active_next",
        "workspace_recurring_tasks",
        ["is_active", "next_occurrence"],
    )

    op.create_table(
        "workspace_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("role_scope", sa.String(50), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="NOT_STARTED"),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("dependencies", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("tags", postgresql.ARRAY(sa.String), nullable=False, server_default="{}"),
        sa.Column("estimated_hours", sa.Float, nullable=True),
        sa.Column("subtasks", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column(
            "source_rule_id",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            index=True,
        ),
        sa.Column("occurrence_number", sa.Integer, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_workspace_tasks"),
        sa.ForeignKeyConstraint(
            ["source_rule_id"],
            ["workspace_recurring_tasks.id"],
            name="fk_workspace_tasks_source_rule_id_workspace_recurring_tasks",
            ondelete="SET NULL",
        ),
    )


def downgrade() -> None:
    op.drop_table("workspace_tasks")
    op.drop_index("ix_recurring_tasks_active_next", table_name="workspace_recurring_tasks")
    op.drop_table("workspace_recurring_tasks")
