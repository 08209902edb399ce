"""003: create amm_events table

Revision ID: 003
Revises: 002
Create Date: 2026-10-14
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE amm_events (
            sequence        BIGINT          PRIMARY KEY,
            event_type      VARCHAR(40)     NOT NULL,
            payload         JSONB           NOT NULL,
            emitted_at      BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_amm_event_type CHECK (
                event_type IN (
                    'POOL_STARTED',
                    'DEPOSITED',
                    'WITHDRAWAL_REQUESTED',
                    'TICKET_COMMITTED',
                    'ROUND_CLOSING_PREPARED',
                    'ROUND_CLOSING_BATCH_PROCESSED',
                    'ROUND_CLOSED',
                    'SAFE_BOX_SHARE_PAID',
                    'TICKET_CREATED',
                    'TICKET_EXERCISED',
                    'TICKET_EXPIRED',
                    'TICKET_MARKED_AS_LOST',
                    'TICKET_CANCELLED',
                    'TICKET_PAUSED',
                    'RESULTS_SET',
                    'GAME_CANCELLED',
                    'MARKET_CANCELLED'
                )
            )
        );
    """)
    op.execute("CREATE INDEX idx_amm_events_type_time ON amm_events (event_type, emitted_at);")
    op.execute("CREATE INDEX idx_amm_events_ticket ON amm_events USING GIN ((payload->'ticket_id'));")
    op.execute("COMMENT ON TABLE amm_events IS 'Settlement domain events, append-only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS amm_events CASCADE;")
