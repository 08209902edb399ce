"""RiskExposureRepository — persists the risk ledger.

Raw text() SQL; exposures are signed NUMERIC(78, 0) values.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.amm_common.markets import MarketKey
from src.amm_risk.domain.ledger import RiskLedger

_UPSERT_EXPOSURE_SQL = text("""
    INSERT INTO risk_exposures (game_id, type_id, player_id, position, exposure)
    VALUES (:game_id, :type_id, :player_id, :position, :exposure)
    ON CONFLICT (game_id, type_id, player_id, position) DO UPDATE SET
        exposure = EXCLUDED.exposure,
        updated_at = NOW()
""")

_UPSERT_GAME_SPEND_SQL = text("""
    INSERT INTO risk_game_spend (game_id, spent)
    VALUES (:game_id, :spent)
    ON CONFLICT (game_id) DO UPDATE SET
        spent = EXCLUDED.spent,
        updated_at = NOW()
""")

_GET_MARKET_EXPOSURES_SQL = text("""
    SELECT position, exposure
    FROM risk_exposures
    WHERE game_id = :game_id AND type_id = :type_id AND player_id = :player_id
    ORDER BY position
""")


class RiskExposureRepository:
    async def save_ledger(self, db: AsyncSession, ledger: RiskLedger) -> int:
        """Upsert every position exposure and game spend; returns rows written."""
        written = 0
        for (key, position), exposure in ledger.position_items():
            await db.execute(
                _UPSERT_EXPOSURE_SQL,
                {
                    "game_id": key.game_id,
                    "type_id": key.type_id,
                    "player_id": key.player_id,
                    "position": position,
                    "exposure": Decimal(exposure),
                },
            )
            written += 1
        for game_id, spent in ledger.game_items():
            await db.execute(_UPSERT_GAME_SPEND_SQL, {"game_id": game_id, "spent": Decimal(spent)})
            written += 1
        return written

    async def get_market_exposures(self, db: AsyncSession, key: MarketKey) -> dict[int, int]:
        result = await db.execute(
            _GET_MARKET_EXPOSURES_SQL,
            {"game_id": key.game_id, "type_id": key.type_id, "player_id": key.player_id},
        )
        return {row.position: int(row.exposure) for row in result.fetchall()}
