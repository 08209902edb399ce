"""Unit tests for AmmService: serialized mutations and the operator helpers."""
import asyncio

from config.settings import Settings
from src.amm_common.datetime_utils import FakeClock
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE, to_wei
from src.amm_pool.domain.rounds import FIRST_ROUND
from src.amm_trading.application.service import (
    AmmService,
    pool_params_from_settings,
    risk_params_from_settings,
)

T0 = 1_700_000_000
DAY = 24 * 3600


def _make_leg(game_id: str) -> MarketLeg:
    return MarketLeg(
        game_id=game_id,
        sport_id=9001,
        type_id=0,
        maturity=T0 + DAY,
        position=0,
        odds=[to_wei("0.5"), to_wei("0.5")],
    )


class TestSettingsMapping:
    def test_risk_params(self) -> None:
        params = risk_params_from_settings(Settings(DEFAULT_CAP=500, MAX_SUPPORTED_ODDS="0.02"))
        assert params.default_cap == 500 * ONE
        assert params.max_supported_odds == to_wei("0.02")

    def test_pool_params(self) -> None:
        params = pool_params_from_settings(Settings(UTILIZATION_RATE="0.5"))
        assert params.utilization_rate == to_wei("0.5")
        assert params.min_deposit == 20 * ONE


class TestConcurrency:
    async def test_concurrent_trades_serialize(self, service: AmmService) -> None:
        for user in ("u1", "u2", "u3", "u4"):
            service.collateral.mint(user, 10 * ONE)
        tickets = await asyncio.gather(*(
            service.trade(user, [_make_leg(f"game-{i}")], 10 * ONE, to_wei("0.5"), 0)
            for i, user in enumerate(("u1", "u2", "u3", "u4"))
        ))
        assert sorted(t.id for t in tickets) == [f"TKT-{n:08d}" for n in range(1, 5)]
        assert all(t.balance() == 20 * ONE for t in tickets)

    async def test_lock_blocks_mutations(self, service: AmmService) -> None:
        service.collateral.mint("alice", 100 * ONE)
        async with service.lock:
            task = asyncio.create_task(service.deposit("alice", 100 * ONE))
            await asyncio.sleep(0)
            assert not task.done()
            assert service.pool.accounting.allocation(FIRST_ROUND) == 0
        await task
        assert service.pool.accounting.allocation(FIRST_ROUND) == 100 * ONE


class TestOperatorHelpers:
    async def test_close_round_fully(self, service: AmmService, clock: FakeClock) -> None:
        for user in ("alice", "bob", "carol"):
            service.collateral.mint(user, 100 * ONE)
            await service.deposit(user, 100 * ONE)
        await service.start_pool()
        clock.advance(7 * DAY)

        pnl = await service.close_round_fully(batch_size=2)

        assert pnl == ONE
        assert service.pool.round == FIRST_ROUND + 1
        assert service.pool.accounting.allocation(FIRST_ROUND + 1) == 300 * ONE

    async def test_withdrawal_request_routes_by_share(self, service: AmmService) -> None:
        service.collateral.mint("alice", 100 * ONE)
        await service.deposit("alice", 100 * ONE)
        await service.start_pool()
        await service.withdrawal_request("alice", to_wei("0.5"))
        assert service.pool.withdrawal_share["alice"] == to_wei("0.5")
        # partial withdrawals keep the LP counted in the pool
        assert service.pool.users_currently_in_pool == 1
