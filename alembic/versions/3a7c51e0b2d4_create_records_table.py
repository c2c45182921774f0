"""create_records_table

Revision ID: 3a7c51e0b2d4
Revises:
Create Date: 2026-09-14 10:12:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from minutebook.core.store.sequencer_ddl import sequencer_function_ddl

# revision identifiers, used by Alembic.
revision: str = "3a7c51e0b2d4"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the records table and the legacy folio assignment function.

    (user_id, folio_serial) is unique: the assignment function's owner lock
    makes collisions rare, the constraint makes them impossible.

    The function is PostgreSQL-only; SQLite deployments assign folios
    in-process.
    """
    op.create_table(
        "records",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("folio", sa.String(16), nullable=False),
        sa.Column("folio_serial", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("task_done", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("work_type", sa.String(32), nullable=True),
        sa.Column("is_protected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_name", sa.String(256), nullable=True),
        sa.Column("created_by_email", sa.String(256), nullable=True),
        sa.UniqueConstraint("user_id", "folio_serial", name="uq_records_owner_folio_serial"),
        sa.CheckConstraint("folio_serial >= 1", name="ck_records_folio_serial_positive"),
        sa.CheckConstraint(
            "work_type IS NULL OR work_type IN ('gran_formato', 'publicomercial', 'editorial', 'empaques')",
            name="ck_records_work_type",
        ),
    )
    op.create_index("ix_records_owner_date", "records", ["user_id", "date"])

    if op.get_bind().dialect.name == "postgresql":
        op.execute(sequencer_function_ddl("assign_and_insert_legacy"))


def downgrade() -> None:
    """Drop the legacy function and the records table."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP FUNCTION IF EXISTS assign_and_insert_legacy(text, jsonb)")
    op.drop_index("ix_records_owner_date", table_name="records")
    op.drop_table("records")
