"""add_assign_and_insert

Revision ID: 8e2f04c1d9a6
Revises: 3a7c51e0b2d4
Create Date: 2026-10-02 16:40:00.000000

"""

from collections.abc import Sequence

from alembic import op

from minutebook.core.store.sequencer_ddl import sequencer_function_ddl

# revision identifiers, used by Alembic.
revision: str = "8e2f04c1d9a6"
down_revision: str | Sequence[str] | None = "3a7c51e0b2d4"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Install assign_and_insert alongside the legacy function.

    Both names share one body. Application instances deployed before this
    revision keep working through the legacy name; instances deployed after
    it prefer the new name and fall back while the revision is pending.
    The legacy body is refreshed too so both stay identical.
    """
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute(sequencer_function_ddl("assign_and_insert"))
    op.execute(sequencer_function_ddl("assign_and_insert_legacy"))


def downgrade() -> None:
    """Remove assign_and_insert; callers fall back to the legacy name."""
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP FUNCTION IF EXISTS assign_and_insert(text, jsonb)")
