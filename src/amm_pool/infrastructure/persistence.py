"""PoolStateRepository — persists round accounting and ticket-to-round bindings.

All queries use raw text() SQL (no ORM). Wei amounts are NUMERIC(78, 0)
columns, bound as Decimal so asyncpg never truncates them.

Transaction ownership: the CALLER starts and commits the transaction.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.amm_pool.domain.pool import LiquidityPool
from src.amm_ticket.domain.ticket import Ticket

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_UPSERT_ROUND_SQL = text("""
    INSERT INTO pool_rounds
        (round_index, phase, allocation, profit_and_loss, cumulative_profit_and_loss,
         next_exercise_index, users_processed)
    VALUES
        (:round_index, :phase, :allocation, :profit_and_loss, :cumulative_profit_and_loss,
         :next_exercise_index, :users_processed)
    ON CONFLICT (round_index) DO UPDATE SET
        phase = EXCLUDED.phase,
        allocation = EXCLUDED.allocation,
        profit_and_loss = EXCLUDED.profit_and_loss,
        cumulative_profit_and_loss = EXCLUDED.cumulative_profit_and_loss,
        next_exercise_index = EXCLUDED.next_exercise_index,
        users_processed = EXCLUDED.users_processed,
        updated_at = NOW()
""")

_UPSERT_USER_BALANCE_SQL = text("""
    INSERT INTO pool_user_balances (round_index, account, balance, withdrawal_requested, withdrawal_share)
    VALUES (:round_index, :account, :balance, :withdrawal_requested, :withdrawal_share)
    ON CONFLICT (round_index, account) DO UPDATE SET
        balance = EXCLUDED.balance,
        withdrawal_requested = EXCLUDED.withdrawal_requested,
        withdrawal_share = EXCLUDED.withdrawal_share,
        updated_at = NOW()
""")

_UPSERT_TICKET_BINDING_SQL = text("""
    INSERT INTO ticket_bindings
        (ticket_id, round_index, position_in_round, owner, buy_in, payout, fees,
         expiry, is_system, resolved, cancelled, final_payout)
    VALUES
        (:ticket_id, :round_index, :position_in_round, :owner, :buy_in, :payout, :fees,
         :expiry, :is_system, :resolved, :cancelled, :final_payout)
    ON CONFLICT (ticket_id) DO UPDATE SET
        resolved = EXCLUDED.resolved,
        cancelled = EXCLUDED.cancelled,
        final_payout = EXCLUDED.final_payout,
        updated_at = NOW()
""")

_GET_ROUND_SQL = text("""
    SELECT round_index, phase, allocation, profit_and_loss, cumulative_profit_and_loss,
           next_exercise_index, users_processed
    FROM pool_rounds
    WHERE round_index = :round_index
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

@dataclass
class RoundRecord:
    round_index: int
    phase: str
    allocation: int
    profit_and_loss: int | None
    cumulative_profit_and_loss: int | None
    next_exercise_index: int
    users_processed: int


def _numeric(value: int | None) -> Decimal | None:
    return None if value is None else Decimal(value)


def _int_or_none(value: object) -> int | None:
    return None if value is None else int(value)  # type: ignore[call-overload]


def _row_to_round(row: object) -> RoundRecord:
    return RoundRecord(
        round_index=row.round_index,  # type: ignore[attr-defined]
        phase=row.phase,  # type: ignore[attr-defined]
        allocation=int(row.allocation),  # type: ignore[attr-defined]
        profit_and_loss=_int_or_none(row.profit_and_loss),  # type: ignore[attr-defined]
        cumulative_profit_and_loss=_int_or_none(row.cumulative_profit_and_loss),  # type: ignore[attr-defined]
        next_exercise_index=row.next_exercise_index,  # type: ignore[attr-defined]
        users_processed=row.users_processed,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class PoolStateRepository:
    async def upsert_round(self, db: AsyncSession, pool: LiquidityPool, round_index: int) -> None:
        accounting = pool.accounting
        users_processed = pool.users_processed_in_round if round_index == pool.round else 0
        await db.execute(
            _UPSERT_ROUND_SQL,
            {
                "round_index": round_index,
                "phase": pool.round_phase(round_index).value,
                "allocation": Decimal(accounting.allocation(round_index)),
                "profit_and_loss": _numeric(accounting.profit_and_loss(round_index)),
                "cumulative_profit_and_loss": _numeric(
                    accounting.cumulative_profit_and_loss(round_index)
                ),
                "next_exercise_index": pool.next_exercise_index_per_round.get(round_index, 0),
                "users_processed": users_processed,
            },
        )

    async def upsert_user_balance(
        self, db: AsyncSession, pool: LiquidityPool, round_index: int, account: str
    ) -> None:
        await db.execute(
            _UPSERT_USER_BALANCE_SQL,
            {
                "round_index": round_index,
                "account": account,
                "balance": Decimal(pool.accounting.balance_of(round_index, account)),
                "withdrawal_requested": bool(pool.withdrawal_requested.get(account)),
                "withdrawal_share": Decimal(pool.withdrawal_share.get(account, 0)),
            },
        )

    async def upsert_ticket_binding(
        self, db: AsyncSession, ticket: Ticket, position_in_round: int
    ) -> None:
        data, state = ticket.data, ticket.state
        await db.execute(
            _UPSERT_TICKET_BINDING_SQL,
            {
                "ticket_id": data.id,
                "round_index": data.round_index,
                "position_in_round": position_in_round,
                "owner": data.owner,
                "buy_in": Decimal(data.buy_in),
                "payout": Decimal(data.payout),
                "fees": Decimal(data.fees),
                "expiry": data.expiry,
                "is_system": data.is_system,
                "resolved": state.resolved,
                "cancelled": state.cancelled,
                "final_payout": Decimal(state.final_payout),
            },
        )

    async def get_round(self, db: AsyncSession, round_index: int) -> RoundRecord | None:
        result = await db.execute(_GET_ROUND_SQL, {"round_index": round_index})
        row = result.fetchone()
        return _row_to_round(row) if row else None
