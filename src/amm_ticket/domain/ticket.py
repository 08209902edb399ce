"""Ticket — per-wager state machine.

Phases: TRADING(0) -> EXERCISABLE(1) -> exercised (resolved) or EXPIRED(2).
The ticket's collateral account holds exactly the reserved payout from the
moment of trade; settlement only moves that balance out:
  winner  -> final payout to the owner, remainder to the liquidity account
  loser   -> everything to the liquidity account
  expired -> everything to the safe box
"""

import logging
from dataclasses import dataclass

from src.amm_common.collateral import SAFE_BOX, CollateralTransfer, ticket_account
from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import EventType, MarketPositionStatus, TicketPhase
from src.amm_common.errors import (
    AlreadyExercisedError,
    TicketNotExercisableError,
    TicketNotExpiredError,
    TicketPausedError,
)
from src.amm_common.events import EventLog
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE
from src.amm_results.domain.result_manager import ResultManager
from src.amm_risk.domain.system_bets import realized_system_bet_payout

logger = logging.getLogger(__name__)

_SETTLED_WON = (MarketPositionStatus.WINNING, MarketPositionStatus.CANCELLED)


@dataclass
class TicketData:
    """Trade-time facts of a ticket, fixed at creation."""

    id: str
    owner: str
    legs: list[MarketLeg]
    buy_in: int
    total_quote: int
    payout: int
    fees: int
    created_at: int
    expiry: int
    round_index: int
    liquidity_account: str  # where losing stakes and leftovers settle
    collateral: str = "USDC"
    is_live: bool = False
    is_system: bool = False
    system_bet_denominator: int = 0
    is_free_bet: bool = False
    system_odds_floor: int = 0


@dataclass
class TicketState:
    resolved: bool = False
    cancelled: bool = False
    paused: bool = False
    marked_as_lost: bool = False
    expired: bool = False
    final_payout: int = 0
    settled_at: int | None = None


class Ticket:
    def __init__(
        self,
        data: TicketData,
        collateral: CollateralTransfer,
        results: ResultManager,
        events: EventLog,
        clock: Clock = unix_now,
    ) -> None:
        self.data = data
        self.state = TicketState()
        self._collateral = collateral
        self._results = results
        self._events = events
        self._clock = clock

    @property
    def id(self) -> str:
        return self.data.id

    @property
    def account(self) -> str:
        return ticket_account(self.data.id)

    @property
    def resolved(self) -> bool:
        return self.state.resolved

    def balance(self) -> int:
        return self._collateral.balance_of(self.account)

    # ------------------------------------------------------------------
    # Result evaluation
    # ------------------------------------------------------------------

    def leg_statuses(self) -> list[MarketPositionStatus]:
        return [self._results.get_leg_status(leg) for leg in self.data.legs]

    def are_all_markets_resolved(self) -> bool:
        return all(s != MarketPositionStatus.OPEN for s in self.leg_statuses())

    def _losing_legs(self) -> int:
        return sum(1 for s in self.leg_statuses() if s == MarketPositionStatus.LOSING)

    def is_ticket_lost(self) -> bool:
        if self.data.is_system:
            return self._losing_legs() > len(self.data.legs) - self.data.system_bet_denominator
        return self._losing_legs() > 0

    def is_ticket_exercisable(self) -> bool:
        if self.state.resolved:
            return False
        return self.are_all_markets_resolved() or self.is_ticket_lost()

    def is_user_the_winner(self) -> bool:
        if self.data.is_system:
            return self.get_system_bet_payout() > 0
        return all(s in _SETTLED_WON for s in self.leg_statuses())

    def phase(self) -> TicketPhase:
        if self.state.expired or self._clock() >= self.data.expiry:
            return TicketPhase.EXPIRED
        # an exercised ticket stays in the phase it was settled from
        if self.is_ticket_exercisable() or (self.state.resolved and not self.state.cancelled):
            return TicketPhase.EXERCISABLE
        return TicketPhase.TRADING

    def get_system_bet_payout(self) -> int:
        if not self.data.is_system:
            return 0
        statuses = self.leg_statuses()

        def outcome(i: int) -> int | None:
            if statuses[i] == MarketPositionStatus.WINNING:
                return self.data.legs[i].selected_odds
            if statuses[i] == MarketPositionStatus.CANCELLED:
                return ONE
            return None

        return realized_system_bet_payout(
            [leg.selected_odds for leg in self.data.legs],
            self.data.system_bet_denominator,
            self.data.buy_in,
            outcome,
            self.data.system_odds_floor,
        )

    def calculate_final_payout(self) -> int:
        """Payout owed to a winner, recomputed for cancelled legs."""
        if self.data.is_system:
            return self.get_system_bet_payout()
        statuses = self.leg_statuses()
        if all(s == MarketPositionStatus.CANCELLED for s in statuses):
            return self.data.buy_in
        if MarketPositionStatus.CANCELLED not in statuses:
            return self.data.payout
        quote = ONE
        for leg, status in zip(self.data.legs, statuses):
            if status != MarketPositionStatus.CANCELLED:
                quote = quote * leg.selected_odds // ONE
        return self.data.buy_in * ONE // quote

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _finish(self, final_payout: int) -> None:
        self.state.resolved = True
        self.state.final_payout = final_payout
        self.state.settled_at = self._clock()

    def exercise(self, liquidity_account: str | None = None) -> int:
        """Settle the ticket; returns the amount paid to the owner.

        `liquidity_account` overrides where the non-paid balance goes.
        """
        if self.state.resolved:
            raise AlreadyExercisedError(self.id)
        if self.state.paused:
            raise TicketPausedError(self.id)
        if not self.is_ticket_exercisable():
            raise TicketNotExercisableError(self.id)

        balance = self.balance()
        paid = 0
        if self.is_user_the_winner():
            paid = min(self.calculate_final_payout(), balance)
            self._collateral.transfer(self.account, self.data.owner, paid)
        self._collateral.transfer(
            self.account, liquidity_account or self.data.liquidity_account, balance - paid
        )
        self._finish(paid)

        self._events.emit(
            EventType.TICKET_EXERCISED,
            self._clock(),
            ticket_id=self.id,
            owner=self.data.owner,
            payout=paid,
            returned_to_pool=balance - paid,
        )
        logger.info("Ticket %s exercised: paid=%d returned=%d", self.id, paid, balance - paid)
        return paid

    def expire(self) -> int:
        """Forfeit an unclaimed ticket to the safe box; returns the drained amount."""
        if self._clock() < self.data.expiry:
            raise TicketNotExpiredError(self.id)
        if self.state.resolved:
            raise AlreadyExercisedError(self.id)
        balance = self.balance()
        self._collateral.transfer(self.account, SAFE_BOX, balance)
        self.state.expired = True
        self._finish(0)
        self._events.emit(
            EventType.TICKET_EXPIRED, self._clock(), ticket_id=self.id, amount=balance
        )
        logger.info("Ticket %s expired, %d sent to safe box", self.id, balance)
        return balance

    def mark_as_lost(self, liquidity_account: str | None = None) -> int:
        """Admin settlement as a loss; returns the amount sent to the liquidity account."""
        if self.state.resolved:
            raise AlreadyExercisedError(self.id)
        balance = self.balance()
        self._collateral.transfer(self.account, liquidity_account or self.data.liquidity_account, balance)
        self.state.marked_as_lost = True
        self._finish(0)
        self._events.emit(
            EventType.TICKET_MARKED_AS_LOST, self._clock(), ticket_id=self.id, amount=balance
        )
        logger.warning("Ticket %s marked as lost", self.id)
        return balance

    def set_paused(self, paused: bool) -> None:
        self.state.paused = paused
        self._events.emit(EventType.TICKET_PAUSED, self._clock(), ticket_id=self.id, paused=paused)

    def cancel(self, refund: int, fee: int, liquidity_account: str | None = None) -> None:
        """Owner cancellation; the orchestrator has computed refund and fee."""
        if self.state.resolved:
            raise AlreadyExercisedError(self.id)
        balance = self.balance()
        self._collateral.transfer(self.account, self.data.owner, refund)
        self._collateral.transfer(self.account, SAFE_BOX, fee)
        self._collateral.transfer(
            self.account, liquidity_account or self.data.liquidity_account, balance - refund - fee
        )
        self.state.cancelled = True
        self._finish(refund)
        self._events.emit(
            EventType.TICKET_CANCELLED, self._clock(), ticket_id=self.id, refund=refund, fee=fee
        )
        logger.info("Ticket %s cancelled: refund=%d fee=%d", self.id, refund, fee)
