"""AmmService — asyncio facade over the settlement core.

The domain objects are synchronous and each call is atomic. Every mutating
call goes through one asyncio.Lock per pool instance: combination checks
read several markets at once, so no finer-grained locking is safe.
Batch operations hold the lock for one bounded batch only, which makes each
batch call a cooperative yield point between callers.
"""

import asyncio
import logging
from collections.abc import Sequence

from config.settings import Settings, settings
from src.amm_common.collateral import CollateralTransfer, InMemoryCollateral
from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import ResultType
from src.amm_common.events import EventLog
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE, to_wei
from src.amm_pool.domain.default_provider import DefaultLiquidityProvider
from src.amm_pool.domain.pool import LiquidityPool
from src.amm_pool.domain.rounds import PoolParams
from src.amm_results.domain.result_manager import ResultManager
from src.amm_risk.domain.manager import RiskManager
from src.amm_risk.domain.models import RiskParams
from src.amm_ticket.domain.registry import TicketRegistry
from src.amm_ticket.domain.ticket import Ticket
from src.amm_trading.domain.orchestrator import SettlementOrchestrator, TradeQuote

logger = logging.getLogger(__name__)


def risk_params_from_settings(cfg: Settings) -> RiskParams:
    return RiskParams(
        default_cap=cfg.DEFAULT_CAP * ONE,
        default_risk_multiplier=cfg.DEFAULT_RISK_MULTIPLIER,
        max_cap=cfg.MAX_CAP * ONE,
        max_risk_multiplier=cfg.MAX_RISK_MULTIPLIER,
        min_buy_in=cfg.MIN_BUY_IN * ONE,
        max_ticket_size=cfg.MAX_TICKET_SIZE,
        max_supported_amount=cfg.MAX_SUPPORTED_AMOUNT * ONE,
        max_supported_odds=to_wei(cfg.MAX_SUPPORTED_ODDS),
        max_combinations=cfg.MAX_COMBINATIONS,
        minimal_time_left_to_maturity=cfg.MINIMAL_TIME_LEFT_TO_MATURITY,
        expiry_duration=cfg.EXPIRY_DURATION,
    )


def pool_params_from_settings(cfg: Settings) -> PoolParams:
    return PoolParams(
        max_allowed_deposit=cfg.MAX_ALLOWED_DEPOSIT * ONE,
        min_deposit=cfg.MIN_DEPOSIT * ONE,
        max_allowed_users=cfg.MAX_ALLOWED_USERS,
        round_length=cfg.ROUND_LENGTH,
        utilization_rate=to_wei(cfg.UTILIZATION_RATE),
        safe_box_impact=to_wei(cfg.SAFE_BOX_IMPACT),
    )


class AmmService:
    def __init__(
        self,
        cfg: Settings = settings,
        clock: Clock = unix_now,
        collateral: CollateralTransfer | None = None,
    ) -> None:
        self.clock = clock
        self.events = EventLog()
        self.collateral = collateral or InMemoryCollateral(decimals=cfg.COLLATERAL_DECIMALS)
        self.results = ResultManager(self.events, clock)
        self.risk_manager = RiskManager(risk_params_from_settings(cfg), self.results, clock=clock)
        self.tickets = TicketRegistry()
        self.default_provider = DefaultLiquidityProvider(self.collateral)
        self.pool = LiquidityPool(
            pool_params_from_settings(cfg),
            self.collateral,
            self.default_provider,
            self.tickets,
            self.events,
            clock,
        )
        self.orchestrator = SettlementOrchestrator(
            self.risk_manager,
            self.pool,
            self.results,
            self.tickets,
            self.collateral,
            self.events,
            to_wei(cfg.SAFE_BOX_FEE),
            clock,
        )
        self._lock = asyncio.Lock()
        self.persisted_event_sequence = 0

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    # --- trading ---

    async def trade_quote(self, legs: Sequence[MarketLeg], buy_in: int, is_live: bool = False) -> TradeQuote:
        return self.orchestrator.trade_quote(legs, buy_in, is_live)

    async def trade_quote_system(
        self, legs: Sequence[MarketLeg], buy_in: int, denominator: int, is_live: bool = False
    ) -> TradeQuote:
        return self.orchestrator.trade_quote_system(legs, buy_in, denominator, is_live)

    async def trade(
        self,
        user: str,
        legs: Sequence[MarketLeg],
        buy_in: int,
        expected_quote: int,
        additional_slippage: int,
        is_live: bool = False,
        is_free_bet: bool = False,
    ) -> Ticket:
        async with self._lock:
            return self.orchestrator.trade(
                user, legs, buy_in, expected_quote, additional_slippage, is_live, is_free_bet
            )

    async def trade_system_bet(
        self,
        user: str,
        legs: Sequence[MarketLeg],
        buy_in: int,
        expected_quote: int,
        additional_slippage: int,
        denominator: int,
        is_live: bool = False,
        is_free_bet: bool = False,
    ) -> Ticket:
        async with self._lock:
            return self.orchestrator.trade_system_bet(
                user, legs, buy_in, expected_quote, additional_slippage, denominator,
                is_live, is_free_bet,
            )

    async def exercise_ticket(self, ticket_id: str) -> int:
        async with self._lock:
            return self.orchestrator.exercise_ticket(ticket_id)

    async def expire_tickets(self, ticket_ids: Sequence[str]) -> int:
        async with self._lock:
            return self.orchestrator.expire_tickets(ticket_ids)

    async def cancel_ticket(self, user: str, ticket_id: str, legs: Sequence[MarketLeg]) -> int:
        async with self._lock:
            return self.orchestrator.cancel_ticket_by_owner(user, ticket_id, legs)

    async def mark_ticket_as_lost(self, ticket_id: str) -> int:
        async with self._lock:
            return self.orchestrator.mark_ticket_as_lost(ticket_id)

    async def set_ticket_paused(self, ticket_id: str, paused: bool) -> None:
        async with self._lock:
            self.orchestrator.set_ticket_paused(ticket_id, paused)

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.tickets.get(ticket_id)

    def get_tickets_per_user(self, user: str, active_only: bool = False) -> list[Ticket]:
        return self.orchestrator.get_tickets_per_user(user, active_only)

    # --- risk administration ---

    async def set_paused_game(self, game_id: str, paused: bool) -> None:
        async with self._lock:
            self.risk_manager.set_paused_game(game_id, paused)

    async def set_cap_per_market(self, game_id: str, type_id: int, player_id: int, line: int, cap: int) -> None:
        async with self._lock:
            self.risk_manager.set_cap_per_market(game_id, type_id, player_id, line, cap)

    # --- collateral ---

    async def mint(self, account: str, amount: int) -> None:
        """Credit collateral to an account (in-memory collateral only)."""
        async with self._lock:
            self.collateral.mint(account, amount)

    async def fund_default_provider(self, source: str, amount: int) -> None:
        async with self._lock:
            self.default_provider.fund(source, amount)

    def balance_of(self, account: str) -> int:
        return self.collateral.balance_of(account)

    # --- liquidity pool ---

    async def deposit(self, user: str, amount: int) -> None:
        async with self._lock:
            self.pool.deposit(user, amount)

    async def withdrawal_request(self, user: str, share: int | None = None) -> None:
        async with self._lock:
            if share is None:
                self.pool.withdrawal_request(user)
            else:
                self.pool.partial_withdrawal_request(user, share)

    async def start_pool(self) -> None:
        async with self._lock:
            self.pool.start()

    async def exercise_ready_batch(self, batch_size: int, default_round: bool = False) -> int:
        async with self._lock:
            if default_round:
                return self.pool.exercise_default_round_tickets_ready_to_be_exercised_batch(batch_size)
            return self.pool.exercise_tickets_ready_to_be_exercised_batch(batch_size)

    async def prepare_round_closing(self) -> int:
        async with self._lock:
            return self.pool.prepare_round_closing()

    async def process_round_closing_batch(self, batch_size: int) -> int:
        async with self._lock:
            return self.pool.process_round_closing_batch(batch_size)

    async def close_round(self) -> int:
        async with self._lock:
            return self.pool.close_round()

    async def close_round_fully(self, batch_size: int) -> int:
        """Operator helper: prepare, process users batch by batch, close."""
        await self.prepare_round_closing()
        while True:
            async with self._lock:
                remaining = self.pool.accounting.user_count(self.pool.round) - self.pool.users_processed_in_round
                if remaining <= 0:
                    break
                self.pool.process_round_closing_batch(batch_size)
            await asyncio.sleep(0)
        return await self.close_round()

    # --- results ---

    async def set_result_types(self, type_ids: Sequence[int], result_types: Sequence[ResultType]) -> None:
        async with self._lock:
            self.results.set_result_types_per_market_types(type_ids, result_types)

    async def set_results(
        self,
        game_ids: Sequence[str],
        type_ids: Sequence[int],
        player_ids: Sequence[int],
        results: Sequence[Sequence[int]],
    ) -> int:
        async with self._lock:
            return self.results.set_results_per_markets(game_ids, type_ids, player_ids, results)

    async def cancel_game(self, game_id: str) -> None:
        async with self._lock:
            self.results.cancel_game(game_id)


_service: AmmService | None = None


def get_amm_service() -> AmmService:
    """FastAPI dependency: process-wide service, built on first use."""
    global _service  # noqa: PLW0603
    if _service is None:
        _service = AmmService()
        logger.info("AMM service initialised")
    return _service
