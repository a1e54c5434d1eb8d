"""create regulator notification queue

Revision ID: 0002_regulator_notifications
Revises: 0001_create_transfers
Create Date: 2026-10-06 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0002_regulator_notifications"
down_revision = "0001_create_transfers"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.regulator_notifications (
          id uuid PRIMARY KEY,
          transfer_id uuid NOT NULL REFERENCES app.transfers (id),
          url varchar(512) NOT NULL DEFAULT '',
          status varchar(20) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'sent', 'failed')),
          attempts int NOT NULL DEFAULT 0 CHECK (attempts >= 0 AND attempts <= 5),
          last_attempt_at timestamptz NULL,
          next_attempt_at timestamptz NOT NULL DEFAULT now(),
          response_status_code int NULL,
          response_body text NULL,
          created_at timestamptz NOT NULL DEFAULT now(),
          updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    # One notification per transfer; enqueue is ON CONFLICT DO NOTHING
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_regulator_notifications_transfer ON app.regulator_notifications (transfer_id);"
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_regulator_notifications_due
          ON app.regulator_notifications (next_attempt_at)
          WHERE status IN ('pending', 'failed') AND attempts < 5;
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.regulator_notifications;")
