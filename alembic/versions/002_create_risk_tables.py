"""002: create risk_exposures, risk_game_spend

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # exposures are signed: the mirrored side of a market goes negative
    op.execute("""
        CREATE TABLE risk_exposures (
            game_id     VARCHAR(66)     NOT NULL,
            type_id     INTEGER         NOT NULL,
            player_id   INTEGER         NOT NULL DEFAULT 0,
            position    INTEGER         NOT NULL,
            exposure    NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (game_id, type_id, player_id, position),
            CONSTRAINT ck_exposure_position CHECK (position >= 0)
        );
    """)

    op.execute("""
        CREATE TABLE risk_game_spend (
            game_id     VARCHAR(66)     PRIMARY KEY,
            spent       NUMERIC(78, 0)  NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS risk_game_spend CASCADE;")
    op.execute("DROP TABLE IF EXISTS risk_exposures CASCADE;")
