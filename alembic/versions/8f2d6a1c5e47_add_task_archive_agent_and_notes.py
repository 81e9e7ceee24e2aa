"""add_task_archive_agent_and_notes

Revision ID: 8f2d6a1c5e47
Revises: 3b7c1e9a4d20
Create Date: 2026-09-21 16:40:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8f2d6a1c5e47"
down_revision: str | Sequence[str] | None = "3b7c1e9a4d20"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    with op.batch_alter_table("tasks", schema=None) as batch_op:
        batch_op.add_column(
            sa.Column("agent", sa.String(length=120), nullable=False, server_default="main")
        )
        batch_op.add_column(
            sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false())
        )
        batch_op.add_column(sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True))
        batch_op.create_index(batch_op.f("ix_tasks_agent"), ["agent"], unique=False)
        batch_op.create_index(batch_op.f("ix_tasks_archived"), ["archived"], unique=False)
        batch_op.create_index(
            "ix_tasks_archived_status_updated_at",
            ["archived", "status", "updated_at"],
            unique=False,
        )

    op.create_table(
        "task_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.String(length=36), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("author", sa.String(length=320), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(note) >= 1", name="ck_task_notes_note_present"),
        sa.ForeignKeyConstraint(
            ["task_id"],
            ["tasks.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_task_notes_task_id"), "task_notes", ["task_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_task_notes_task_id"), table_name="task_notes")
    op.drop_table("task_notes")

    with op.batch_alter_table("tasks", schema=None) as batch_op:
        batch_op.drop_index("ix_tasks_archived_status_updated_at")
        batch_op.drop_index(batch_op.f("ix_tasks_archived"))
        batch_op.drop_index(batch_op.f("ix_tasks_agent"))
        batch_op.drop_column("archived_at")
        batch_op.drop_column("archived")
        batch_op.drop_column("agent")
