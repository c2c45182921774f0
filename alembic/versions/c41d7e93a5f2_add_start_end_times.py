"""add_start_end_times

Revision ID: c41d7e93a5f2
Revises: 8e2f04c1d9a6
Create Date: 2026-10-18 10:05:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "c41d7e93a5f2"
down_revision: str | Sequence[str] | None = "8e2f04c1d9a6"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add the start/stop time-of-day columns.

    Both are nullable: existing records were never started, and the
    application treats the columns as optional until this revision lands.
    """
    with op.batch_alter_table("records") as batch_op:
        batch_op.add_column(sa.Column("start_time", sa.Time(), nullable=True))
        batch_op.add_column(sa.Column("end_time", sa.Time(), nullable=True))


def downgrade() -> None:
    """Remove the start/stop time-of-day columns."""
    with op.batch_alter_table("records") as batch_op:
        batch_op.drop_column("end_time")
        batch_op.drop_column("start_time")
