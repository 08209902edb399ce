"""001: create pool_rounds, pool_user_balances, ticket_bindings

Revision ID: 001
Revises: 
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE pool_rounds (
            round_index                 INTEGER         PRIMARY KEY,
            phase                       VARCHAR(30)     NOT NULL DEFAULT 'OPEN',
            allocation                  NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            profit_and_loss             NUMERIC(78, 0),
            cumulative_profit_and_loss  NUMERIC(78, 0),
            next_exercise_index         INTEGER         NOT NULL DEFAULT 0,
            users_processed             INTEGER         NOT NULL DEFAULT 0,
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_round_index_positive CHECK (round_index >= 1),
            CONSTRAINT ck_round_phase CHECK (
                phase IN ('OPEN', 'CLOSING_PREPARED', 'CLOSING_IN_PROGRESS', 'CLOSED')
            ),
            CONSTRAINT ck_round_allocation CHECK (allocation >= 0)
        );
    """)

    op.execute("""
        CREATE TABLE pool_user_balances (
            round_index             INTEGER         NOT NULL REFERENCES pool_rounds(round_index),
            account                 VARCHAR(128)    NOT NULL,
            balance                 NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            withdrawal_requested    BOOLEAN         NOT NULL DEFAULT false,
            withdrawal_share        NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (round_index, account),
            CONSTRAINT ck_user_balance CHECK (balance >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_pool_user_balances_account ON pool_user_balances (account);")

    op.execute("""
        CREATE TABLE ticket_bindings (
            ticket_id           VARCHAR(32)     PRIMARY KEY,
            round_index         INTEGER         NOT NULL,
            position_in_round   INTEGER         NOT NULL,
            owner               VARCHAR(128)    NOT NULL,
            buy_in              NUMERIC(78, 0)  NOT NULL,
            payout              NUMERIC(78, 0)  NOT NULL,
            fees                NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            expiry              BIGINT          NOT NULL,
            is_system           BOOLEAN         NOT NULL DEFAULT false,
            resolved            BOOLEAN         NOT NULL DEFAULT false,
            cancelled           BOOLEAN         NOT NULL DEFAULT false,
            final_payout        NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_ticket_round_position UNIQUE (round_index, position_in_round)
        );
    """)
    op.execute("CREATE INDEX idx_ticket_bindings_owner ON ticket_bindings (owner, resolved);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ticket_bindings CASCADE;")
    op.execute("DROP TABLE IF EXISTS pool_user_balances CASCADE;")
    op.execute("DROP TABLE IF EXISTS pool_rounds CASCADE;")
