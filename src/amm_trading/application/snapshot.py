"""snapshot_state — write the in-memory settlement state to PostgreSQL.

Every table is an upsert keyed on its natural key, so running the snapshot
twice writes the same rows. Events are appended from the last persisted
sequence onwards.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.amm_pool.domain.rounds import DEFAULT_ROUND
from src.amm_pool.infrastructure.persistence import PoolStateRepository
from src.amm_risk.infrastructure.persistence import RiskExposureRepository
from src.amm_trading.application.service import AmmService
from src.amm_trading.infrastructure.event_writer import write_event

logger = logging.getLogger(__name__)

_pool_repo = PoolStateRepository()
_risk_repo = RiskExposureRepository()


@dataclass
class SnapshotResult:
    rounds: int = 0
    user_balances: int = 0
    tickets: int = 0
    risk_rows: int = 0
    events: int = 0


async def snapshot_state(service: AmmService, db: AsyncSession) -> SnapshotResult:
    result = SnapshotResult()
    async with service.lock:
        pool = service.pool
        rounds = sorted({DEFAULT_ROUND, pool.round, *(r for r, _ in pool.accounting.allocation_items())})
        for round_index in rounds:
            await _pool_repo.upsert_round(db, pool, round_index)
            result.rounds += 1

        for (round_index, account), _ in pool.accounting.balance_items():
            await _pool_repo.upsert_user_balance(db, pool, round_index, account)
            result.user_balances += 1

        for round_index in sorted(pool.tickets_per_round):
            for index, ticket_id in enumerate(pool.get_tickets_per_round(round_index)):
                await _pool_repo.upsert_ticket_binding(db, service.tickets.get(ticket_id), index)
                result.tickets += 1

        result.risk_rows = await _risk_repo.save_ledger(db, service.risk_manager.ledger)

        pending = service.events.since(service.persisted_event_sequence)
        for event in pending:
            await write_event(event, db)
        result.events = len(pending)

        await db.commit()
        if pending:
            service.persisted_event_sequence = pending[-1].sequence

    logger.info(
        "Snapshot written: %d rounds, %d balances, %d tickets, %d risk rows, %d events",
        result.rounds, result.user_balances, result.tickets, result.risk_rows, result.events,
    )
    return result
