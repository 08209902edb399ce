"""SettlementOrchestrator — the trading entry point ("the AMM").

trade():  quote -> limits -> balance pre-checks -> risk update
          -> ticket funding + round binding -> ticket registered
Funding of a ticket account:
  user (or free-bet holder)      buy_in
  round pool / default provider  payout - buy_in + fees
  ticket -> safe box             fees
so the ticket always holds exactly the payout it may owe.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from src.amm_common.collateral import (
    FREE_BETS_HOLDER,
    SAFE_BOX,
    CollateralTransfer,
    ticket_account,
)
from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import EventType, RiskStatus, TicketPhase
from src.amm_common.errors import (
    AlreadyExercisedError,
    AppError,
    InsufficientBalanceError,
    InvalidTicketLegsError,
    NonCancelableTicketError,
    NotTradingError,
    OnlyTicketOwnerError,
    TicketNotExpiredError,
)
from src.amm_common.events import EventLog
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE, payout_for_quote
from src.amm_pool.domain.pool import LiquidityPool
from src.amm_results.domain.result_manager import ResultManager
from src.amm_risk.domain.manager import RiskManager
from src.amm_risk.domain.models import RiskUpdate
from src.amm_risk.domain.system_bets import parlay_quote
from src.amm_ticket.domain.registry import TicketRegistry
from src.amm_ticket.domain.ticket import Ticket, TicketData

logger = logging.getLogger(__name__)


@dataclass
class TradeQuote:
    total_quote: int
    payout: int
    fees: int
    risk_status: RiskStatus
    out_of_liquidity: list[bool] = field(default_factory=list)


class SettlementOrchestrator:
    def __init__(
        self,
        risk_manager: RiskManager,
        pool: LiquidityPool,
        results: ResultManager,
        tickets: TicketRegistry,
        collateral: CollateralTransfer,
        events: EventLog,
        safe_box_fee: int,
        clock: Clock = unix_now,
    ) -> None:
        self.risk_manager = risk_manager
        self.pool = pool
        self.results = results
        self.tickets = tickets
        self._collateral = collateral
        self._events = events
        self.safe_box_fee = safe_box_fee
        self._clock = clock
        self._risk_updates: dict[str, RiskUpdate] = {}

    def calculate_fees(self, buy_in: int) -> int:
        return buy_in * self.safe_box_fee // ONE

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def trade_quote(
        self, legs: Sequence[MarketLeg], buy_in: int, is_live: bool = False
    ) -> TradeQuote:
        self.risk_manager.check_positions(legs)
        total_quote = parlay_quote([leg.selected_odds for leg in legs])
        status, flags = self.risk_manager.check_risks(legs, buy_in, is_live)
        return TradeQuote(
            total_quote=total_quote,
            payout=payout_for_quote(buy_in, total_quote),
            fees=self.calculate_fees(buy_in),
            risk_status=status,
            out_of_liquidity=flags,
        )

    def trade_quote_system(
        self,
        legs: Sequence[MarketLeg],
        buy_in: int,
        system_bet_denominator: int,
        is_live: bool = False,
    ) -> TradeQuote:
        self.risk_manager.check_positions(legs)
        payout, quote = self.risk_manager.get_max_system_bet_payout(
            legs, system_bet_denominator, buy_in
        )
        status, flags = self.risk_manager.check_risks(
            legs, buy_in, is_live, True, system_bet_denominator
        )
        return TradeQuote(
            total_quote=quote,
            payout=payout,
            fees=self.calculate_fees(buy_in),
            risk_status=status,
            out_of_liquidity=flags,
        )

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def trade(
        self,
        user: str,
        legs: Sequence[MarketLeg],
        buy_in: int,
        expected_quote: int,
        additional_slippage: int,
        is_live: bool = False,
        is_free_bet: bool = False,
    ) -> Ticket:
        if not legs:
            raise InvalidTicketLegsError()
        quote = self.trade_quote(legs, buy_in, is_live)
        return self._execute_trade(
            user, legs, buy_in, quote, expected_quote, additional_slippage,
            is_live=is_live, is_free_bet=is_free_bet,
        )

    def trade_system_bet(
        self,
        user: str,
        legs: Sequence[MarketLeg],
        buy_in: int,
        expected_quote: int,
        additional_slippage: int,
        system_bet_denominator: int,
        is_live: bool = False,
        is_free_bet: bool = False,
    ) -> Ticket:
        if not legs:
            raise InvalidTicketLegsError()
        quote = self.trade_quote_system(legs, buy_in, system_bet_denominator, is_live)
        return self._execute_trade(
            user, legs, buy_in, quote, expected_quote, additional_slippage,
            is_live=is_live, is_free_bet=is_free_bet,
            system_bet_denominator=system_bet_denominator,
        )

    def _execute_trade(
        self,
        user: str,
        legs: Sequence[MarketLeg],
        buy_in: int,
        quote: TradeQuote,
        expected_quote: int,
        additional_slippage: int,
        is_live: bool,
        is_free_bet: bool,
        system_bet_denominator: int = 0,
    ) -> Ticket:
        is_system = system_bet_denominator > 0
        self.risk_manager.check_limits(
            buy_in,
            quote.total_quote,
            quote.payout,
            payout_for_quote(buy_in, expected_quote),
            additional_slippage,
            len(legs),
        )

        payer = FREE_BETS_HOLDER if is_free_bet else user
        maturity = max(leg.maturity for leg in legs)
        funding = quote.payout - buy_in + quote.fees

        # Nothing is mutated until every funding source is known to cover its part.
        available = self._collateral.balance_of(payer)
        if available < buy_in:
            raise InsufficientBalanceError(payer, buy_in, available)
        self.pool.check_can_commit(maturity, funding)

        update = self.risk_manager.check_and_update_risks(
            legs, buy_in, is_live, is_system, system_bet_denominator
        )
        ticket_id = self.tickets.next_id()
        try:
            round_index, liquidity_account = self.pool.commit_trade(ticket_id, maturity, funding)
        except AppError:
            self.risk_manager.revert_risks(update)
            raise
        account = ticket_account(ticket_id)
        self._collateral.transfer(payer, account, buy_in)
        self._collateral.transfer(account, SAFE_BOX, quote.fees)

        data = TicketData(
            id=ticket_id,
            owner=payer,
            legs=list(legs),
            buy_in=buy_in,
            total_quote=quote.total_quote,
            payout=quote.payout,
            fees=quote.fees,
            created_at=self._clock(),
            expiry=maturity + self.risk_manager.params.expiry_duration,
            round_index=round_index,
            liquidity_account=liquidity_account,
            is_live=is_live,
            is_system=is_system,
            system_bet_denominator=system_bet_denominator,
            is_free_bet=is_free_bet,
            system_odds_floor=self.risk_manager.params.max_supported_odds if is_system else 0,
        )
        ticket = Ticket(data, self._collateral, self.results, self._events, self._clock)
        self.tickets.add(ticket)
        self._risk_updates[ticket_id] = update

        self._events.emit(
            EventType.TICKET_CREATED,
            self._clock(),
            ticket_id=ticket_id,
            owner=payer,
            buy_in=buy_in,
            payout=quote.payout,
            fees=quote.fees,
            round=round_index,
            is_system=is_system,
        )
        logger.info(
            "Ticket %s created for %s: buy_in=%d payout=%d round=%d legs=%d",
            ticket_id, payer, buy_in, quote.payout, round_index, len(legs),
        )
        return ticket

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def exercise_ticket(self, ticket_id: str) -> int:
        ticket = self.tickets.get(ticket_id)
        return ticket.exercise(self.pool.settlement_account(ticket_id))

    def expire_tickets(self, ticket_ids: Sequence[str]) -> int:
        """Drain every listed ticket to the safe box; all must be expired and unresolved."""
        tickets = [self.tickets.get(tid) for tid in ticket_ids]
        for ticket in tickets:
            if ticket.resolved:
                raise AlreadyExercisedError(ticket.id)
            if ticket.phase() != TicketPhase.EXPIRED:
                raise TicketNotExpiredError(ticket.id)
        total = sum(ticket.expire() for ticket in tickets)
        logger.info("Expired %d tickets, %d forfeited", len(tickets), total)
        return total

    def mark_ticket_as_lost(self, ticket_id: str) -> int:
        ticket = self.tickets.get(ticket_id)
        return ticket.mark_as_lost(self.pool.settlement_account(ticket_id))

    def set_ticket_paused(self, ticket_id: str, paused: bool) -> None:
        self.tickets.get(ticket_id).set_paused(paused)

    def cancel_ticket_by_owner(
        self, user: str, ticket_id: str, legs: Sequence[MarketLeg]
    ) -> int:
        """Refund an open ticket at current odds minus twice the safe-box fee."""
        ticket = self.tickets.get(ticket_id)
        if ticket.data.is_system or ticket.data.is_free_bet:
            raise NonCancelableTicketError(ticket_id)
        if ticket.data.owner != user:
            raise OnlyTicketOwnerError()
        if ticket.resolved:
            raise AlreadyExercisedError(ticket_id)
        if len(legs) != len(ticket.data.legs) or not all(
            new.same_market(old) for new, old in zip(legs, ticket.data.legs)
        ):
            raise InvalidTicketLegsError()
        self.risk_manager.check_positions(legs)
        for leg in ticket.data.legs:
            if not self.risk_manager.is_market_in_amm_trading(leg, ticket.data.is_live):
                raise NotTradingError(leg.game_id)

        buy_in = ticket.data.buy_in
        original_payout = ticket.data.payout
        new_payout = payout_for_quote(buy_in, parlay_quote([leg.selected_odds for leg in legs]))
        if new_payout >= original_payout:
            base_refund = buy_in * original_payout // new_payout
        else:
            base_refund = buy_in
        fee = base_refund * 2 * self.safe_box_fee // ONE
        refund = base_refund - fee

        ticket.cancel(refund, fee, self.pool.settlement_account(ticket_id))
        update = self._risk_updates.pop(ticket_id, None)
        if update is not None:
            self.risk_manager.revert_risks(update)
        return refund

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_tickets(self) -> list[Ticket]:
        return self.tickets.active()

    def get_tickets_per_user(self, user: str, active_only: bool = False) -> list[Ticket]:
        return self.tickets.per_user(user, active_only)
