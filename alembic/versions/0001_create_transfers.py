"""create transfers table

Revision ID: 0001_create_transfers
Revises:
Create Date: 2026-10-05 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_create_transfers"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.transfers (
          id uuid PRIMARY KEY,
          external_ref text NULL,
          is_external boolean NOT NULL DEFAULT TRUE,
          status varchar(20) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
          amount numeric(20, 4) NOT NULL CHECK (amount > 0),
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now(),
          completed_at timestamptz NULL,
          failed_at timestamptz NULL,
          error_message text NULL,
          CONSTRAINT transfers_completed_at_iff_completed
            CHECK ((status = 'completed') = (completed_at IS NOT NULL))
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_transfers_reconcile
          ON app.transfers (created_at)
          WHERE is_external AND status IN ('pending', 'processing');
        """
    )
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_transfers_external_ref ON app.transfers (external_ref) WHERE external_ref IS NOT NULL;"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.transfers;")
