"""Dedup key ledger that outlives notification deletion and retention.

Revision ID: 20260315000000
Revises: 20260301000000
Create Date: 2026-03-15

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260315000000"
down_revision: Union[str, None] = "20260301000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notification_keys",
        sa.Column("dedup_key", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("dedup_key"),
    )
    # Keys of notifications that still exist; keys of already-deleted rows are unrecoverable.
    op.execute(
        "INSERT INTO notification_keys (dedup_key, created_at) "
        "SELECT dedup_key, created_at FROM notifications"
    )


def downgrade() -> None:
    op.drop_table("notification_keys")
