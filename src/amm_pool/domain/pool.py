"""LiquidityPool — round lifecycle, ticket-to-round binding and settlement sweeps.

Round lifecycle:
  OPEN -> prepare_round_closing() -> CLOSING_PREPARED
       -> process_round_closing_batch(n)... -> CLOSING_IN_PROGRESS
       -> close_round() -> CLOSED, next round OPEN

Deposits always fund the *next* round. Each round owns the collateral
account round-pool:<n>; round 1 is the default-round sentinel whose tickets
settle straight into the default liquidity provider.

Long sweeps are chunked by a caller-supplied batch size and resume from
persisted cursors (next_exercise_index_per_round, users processed).
"""

import logging
from collections import defaultdict

from src.amm_common.collateral import (
    SAFE_BOX,
    CollateralTransfer,
    round_pool_account,
    ticket_account,
)
from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import EventType, RoundPhase
from src.amm_common.errors import (
    AllUsersAlreadyProcessedError,
    AlreadyDepositedForNextRoundError,
    AmountBelowMinimumError,
    CannotCloseCurrentRoundError,
    DefaultProviderCannotDepositError,
    DepositExceedsCapError,
    InsufficientBalanceError,
    InvalidBatchSizeError,
    InvalidWithdrawalShareError,
    MaxUsersReachedError,
    NoDepositsToStartError,
    NotAllUsersProcessedYetError,
    NothingToWithdrawError,
    PoolAlreadyStartedError,
    PoolNotStartedError,
    RoundClosingAlreadyPreparedError,
    RoundClosingNotPreparedError,
    WithdrawalAlreadyRequestedError,
    WithdrawalRequestedCannotDepositError,
)
from src.amm_common.events import EventLog
from src.amm_common.wei import ONE
from src.amm_pool.domain.default_provider import DefaultLiquidityProvider
from src.amm_pool.domain.rounds import DEFAULT_ROUND, FIRST_ROUND, PoolParams, RoundAccounting
from src.amm_ticket.domain.registry import TicketRegistry
from src.amm_ticket.domain.ticket import Ticket

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL_SHARE = ONE // 10
MAX_WITHDRAWAL_SHARE = 9 * ONE // 10


class LiquidityPool:
    def __init__(
        self,
        params: PoolParams,
        collateral: CollateralTransfer,
        default_provider: DefaultLiquidityProvider,
        tickets: TicketRegistry,
        events: EventLog,
        clock: Clock = unix_now,
    ) -> None:
        self.params = params
        self.accounting = RoundAccounting()
        self._collateral = collateral
        self._default_provider = default_provider
        self._tickets = tickets
        self._events = events
        self._clock = clock

        self.started = False
        self.round = DEFAULT_ROUND
        self.first_round_start_time = 0

        self.round_closing_prepared = False
        self.users_processed_in_round = 0
        self._pending_profit_and_loss = ONE

        self.is_user_lping: dict[str, bool] = {}
        self.users_currently_in_pool = 0
        self.withdrawal_requested: dict[str, bool] = {}
        self.withdrawal_share: dict[str, int] = {}  # 0 = full withdrawal

        self.tickets_per_round: dict[int, list[str]] = defaultdict(list)
        self.ticket_round: dict[str, int] = {}
        self.next_exercise_index_per_round: dict[int, int] = defaultdict(int)
        self._settled_in_round: set[str] = set()

    # ------------------------------------------------------------------
    # Round clock
    # ------------------------------------------------------------------

    def get_round_start_time(self, round_index: int) -> int:
        if not self.started or round_index < FIRST_ROUND:
            return 0
        return self.first_round_start_time + (round_index - FIRST_ROUND) * self.params.round_length

    def get_round_end_time(self, round_index: int) -> int:
        if not self.started or round_index < FIRST_ROUND:
            return 0
        return self.get_round_start_time(round_index) + self.params.round_length

    def round_phase(self, round_index: int | None = None) -> RoundPhase:
        r = self.round if round_index is None else round_index
        if r < self.round:
            return RoundPhase.CLOSED
        if r == self.round and self.round_closing_prepared:
            if self.users_processed_in_round == 0:
                return RoundPhase.CLOSING_PREPARED
            return RoundPhase.CLOSING_IN_PROGRESS
        return RoundPhase.OPEN

    def round_pool_balance(self, round_index: int) -> int:
        return self._collateral.balance_of(round_pool_account(round_index))

    # ------------------------------------------------------------------
    # LP actions
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.started:
            raise PoolAlreadyStartedError()
        if self.accounting.allocation(FIRST_ROUND) == 0:
            raise NoDepositsToStartError()
        self.started = True
        self.round = FIRST_ROUND
        self.first_round_start_time = self._clock()
        self._events.emit(
            EventType.POOL_STARTED,
            self._clock(),
            round=self.round,
            allocation=self.accounting.allocation(FIRST_ROUND),
        )
        logger.info(
            "Pool started: round %d ends at %d", self.round, self.get_round_end_time(self.round)
        )

    def _total_deposited(self) -> int:
        current = self.accounting.allocation(self.round) if self.started else 0
        return current + self.accounting.allocation(self.round + 1)

    def deposit(self, user: str, amount: int) -> None:
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        if user == self._default_provider.account:
            raise DefaultProviderCannotDepositError()
        if amount < self.params.min_deposit:
            raise AmountBelowMinimumError()
        if self._total_deposited() + amount > self.params.max_allowed_deposit:
            raise DepositExceedsCapError()
        if self.withdrawal_requested.get(user):
            raise WithdrawalRequestedCannotDepositError()
        is_new_user = not self.is_user_lping.get(user, False)
        if is_new_user and self.users_currently_in_pool >= self.params.max_allowed_users:
            raise MaxUsersReachedError()

        next_round = self.round + 1
        self._collateral.transfer(user, round_pool_account(next_round), amount)
        self.accounting.credit(next_round, user, amount)
        if is_new_user:
            self.is_user_lping[user] = True
            self.users_currently_in_pool += 1

        self._events.emit(
            EventType.DEPOSITED, self._clock(), user=user, amount=amount, round=next_round
        )
        logger.info("Deposit %d from %s into round %d", amount, user, next_round)

    def _check_withdrawal_allowed(self, user: str) -> None:
        if not self.started:
            raise PoolNotStartedError()
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        if self.accounting.balance_of(self.round, user) == 0:
            raise NothingToWithdrawError()
        if self.accounting.balance_of(self.round + 1, user) > 0:
            raise AlreadyDepositedForNextRoundError()
        if self.withdrawal_requested.get(user):
            raise WithdrawalAlreadyRequestedError()

    def withdrawal_request(self, user: str) -> None:
        self._check_withdrawal_allowed(user)
        self.withdrawal_requested[user] = True
        self.withdrawal_share[user] = 0
        if self.is_user_lping.get(user):
            self.is_user_lping[user] = False
            self.users_currently_in_pool -= 1
        self._events.emit(
            EventType.WITHDRAWAL_REQUESTED, self._clock(), user=user, round=self.round, share=ONE
        )
        logger.info("Full withdrawal requested by %s in round %d", user, self.round)

    def partial_withdrawal_request(self, user: str, share: int) -> None:
        if not (MIN_WITHDRAWAL_SHARE <= share <= MAX_WITHDRAWAL_SHARE):
            raise InvalidWithdrawalShareError()
        self._check_withdrawal_allowed(user)
        self.withdrawal_requested[user] = True
        self.withdrawal_share[user] = share
        self._events.emit(
            EventType.WITHDRAWAL_REQUESTED, self._clock(), user=user, round=self.round, share=share
        )
        logger.info("Partial withdrawal (%d) requested by %s in round %d", share, user, self.round)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def get_round_for_maturity(self, maturity: int) -> int:
        if not self.started:
            return DEFAULT_ROUND
        current_end = self.get_round_end_time(self.round)
        if maturity <= current_end:
            return self.round
        if maturity <= current_end + self.params.round_length:
            return self.round + 1
        return DEFAULT_ROUND

    def liquidity_account_for_round(self, round_index: int) -> str:
        if round_index == DEFAULT_ROUND:
            return self._default_provider.account
        return round_pool_account(round_index)

    def settlement_account(self, ticket_id: str) -> str:
        """Where a ticket's stake or leftover settles now.

        A closed round's pool has already been rolled forward, so late
        settlements land in the current round instead.
        """
        round_index = self.ticket_round.get(ticket_id, DEFAULT_ROUND)
        if round_index != DEFAULT_ROUND and round_index < self.round:
            return round_pool_account(self.round)
        return self.liquidity_account_for_round(round_index)

    def available_to_commit(self) -> int:
        """How much the current round pool can still reserve for new tickets."""
        if not self.started:
            return 0
        allocation = self.accounting.allocation(self.round)
        floor = allocation * (ONE - self.params.utilization_rate) // ONE
        return max(self.round_pool_balance(self.round) - floor, 0)

    def check_can_commit(self, maturity: int, amount: int) -> int:
        """Raise InsufficientBalance if the funding source can't cover `amount`."""
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        round_index = self.get_round_for_maturity(maturity)
        if round_index == self.round and self.started:
            available = self.available_to_commit()
            if amount > available:
                raise InsufficientBalanceError(round_pool_account(round_index), amount, available)
        else:
            available = self._default_provider.balance()
            if amount > available:
                raise InsufficientBalanceError(self._default_provider.account, amount, available)
        return round_index

    def commit_trade(self, ticket_id: str, maturity: int, amount: int) -> tuple[int, str]:
        """Bind a ticket to a round and move `amount` of LP funding into it.

        Returns (round, liquidity account the ticket settles into).
        """
        round_index = self.check_can_commit(maturity, amount)
        destination = ticket_account(ticket_id)
        if round_index == self.round and self.started:
            self._collateral.transfer(round_pool_account(round_index), destination, amount)
        elif round_index == DEFAULT_ROUND:
            self._default_provider.pay(destination, amount)
            self.accounting.add_allocation(DEFAULT_ROUND, amount)
        else:
            # next round: the default LP stands in as a depositor of that round
            self._default_provider.pay(destination, amount)
            self.accounting.credit(round_index, self._default_provider.account, amount)

        self.tickets_per_round[round_index].append(ticket_id)
        self.ticket_round[ticket_id] = round_index
        self._events.emit(
            EventType.TICKET_COMMITTED,
            self._clock(),
            ticket_id=ticket_id,
            round=round_index,
            amount=amount,
        )
        logger.info("Ticket %s bound to round %d (funding %d)", ticket_id, round_index, amount)
        return round_index, self.liquidity_account_for_round(round_index)

    def get_ticket_round(self, ticket_id: str) -> int | None:
        return self.ticket_round.get(ticket_id)

    def get_tickets_per_round(self, round_index: int) -> list[str]:
        return list(self.tickets_per_round.get(round_index, []))

    def get_users_per_round(self, round_index: int) -> list[str]:
        return self.accounting.users(round_index)

    def balance_of(self, round_index: int, user: str) -> int:
        return self.accounting.balance_of(round_index, user)

    # ------------------------------------------------------------------
    # Exercise sweeps
    # ------------------------------------------------------------------

    def _is_ready(self, ticket: Ticket) -> bool:
        """Losing and exercisable; winners are left for their owners to claim."""
        return (
            not ticket.resolved
            and not ticket.state.paused
            and ticket.is_ticket_exercisable()
            and not ticket.is_user_the_winner()
        )

    def _sweep(self, round_index: int, batch_size: int | None) -> int:
        ticket_ids = self.tickets_per_round.get(round_index, [])
        cursor = self.next_exercise_index_per_round[round_index]
        exercised = 0
        for ticket_id in ticket_ids[cursor:]:
            if batch_size is not None and exercised >= batch_size:
                break
            if ticket_id in self._settled_in_round:
                continue
            ticket = self._tickets.get(ticket_id)
            if ticket.resolved:
                self._settled_in_round.add(ticket_id)
            elif self._is_ready(ticket):
                ticket.exercise()
                self._settled_in_round.add(ticket_id)
                exercised += 1
            elif ticket.is_ticket_exercisable() and ticket.is_user_the_winner():
                # payout already sits in the ticket; the pool has nothing left to settle
                self._settled_in_round.add(ticket_id)

        while cursor < len(ticket_ids) and ticket_ids[cursor] in self._settled_in_round:
            cursor += 1
        self.next_exercise_index_per_round[round_index] = cursor
        if exercised:
            logger.info("Round %d sweep exercised %d tickets, cursor=%d", round_index, exercised, cursor)
        return exercised

    def _has_ready(self, round_index: int) -> bool:
        ticket_ids = self.tickets_per_round.get(round_index, [])
        cursor = self.next_exercise_index_per_round[round_index]
        return any(
            ticket_id not in self._settled_in_round and self._is_ready(self._tickets.get(ticket_id))
            for ticket_id in ticket_ids[cursor:]
        )

    def has_tickets_ready_to_be_exercised(self) -> bool:
        return self._has_ready(self.round)

    def has_default_round_tickets_ready_to_be_exercised(self) -> bool:
        return self._has_ready(DEFAULT_ROUND)

    def exercise_tickets_ready_to_be_exercised(self) -> int:
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        return self._sweep(self.round, None)

    def exercise_tickets_ready_to_be_exercised_batch(self, batch_size: int) -> int:
        if batch_size <= 0:
            raise InvalidBatchSizeError()
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        return self._sweep(self.round, batch_size)

    def exercise_default_round_tickets_ready_to_be_exercised(self) -> int:
        return self._sweep(DEFAULT_ROUND, None)

    def exercise_default_round_tickets_ready_to_be_exercised_batch(self, batch_size: int) -> int:
        if batch_size <= 0:
            raise InvalidBatchSizeError()
        return self._sweep(DEFAULT_ROUND, batch_size)

    # ------------------------------------------------------------------
    # Round closing
    # ------------------------------------------------------------------

    def can_close_current_round(self) -> bool:
        if not self.started or self.round_closing_prepared:
            return False
        if self._clock() < self.get_round_end_time(self.round):
            return False
        for ticket_id in self.tickets_per_round.get(self.round, []):
            ticket = self._tickets.get(ticket_id)
            if ticket.resolved:
                continue
            # the sweep skips paused tickets
            if ticket.state.paused or not ticket.is_ticket_exercisable():
                return False
        return True

    def prepare_round_closing(self) -> int:
        """Sweep losers, realize the round's PnL and pay the safe-box share."""
        if not self.started:
            raise PoolNotStartedError()
        if self.round_closing_prepared:
            raise RoundClosingAlreadyPreparedError()
        if not self.can_close_current_round():
            raise CannotCloseCurrentRoundError()

        self._sweep(self.round, None)

        pool = round_pool_account(self.round)
        balance = self._collateral.balance_of(pool)
        allocation = self.accounting.allocation(self.round)
        if allocation == 0:
            profit_and_loss = ONE
        else:
            if balance > allocation:
                safe_box_share = (balance - allocation) * self.params.safe_box_impact // ONE
                self._collateral.transfer(pool, SAFE_BOX, safe_box_share)
                balance -= safe_box_share
                self._events.emit(
                    EventType.SAFE_BOX_SHARE_PAID,
                    self._clock(),
                    round=self.round,
                    amount=safe_box_share,
                )
            profit_and_loss = balance * ONE // allocation

        self._pending_profit_and_loss = profit_and_loss
        self.round_closing_prepared = True
        self.users_processed_in_round = 0
        self._events.emit(EventType.ROUND_CLOSING_PREPARED, self._clock(), round=self.round)
        logger.info(
            "Round %d closing prepared: balance=%d allocation=%d pnl=%d",
            self.round, balance, allocation, profit_and_loss,
        )
        return profit_and_loss

    def process_round_closing_batch(self, batch_size: int) -> int:
        """Pay out or roll forward the next `batch_size` users; returns users processed."""
        if not self.round_closing_prepared:
            raise RoundClosingNotPreparedError()
        if batch_size <= 0:
            raise InvalidBatchSizeError()
        users = self.accounting.users(self.round)
        if self.users_processed_in_round >= len(users):
            raise AllUsersAlreadyProcessedError()

        pool = round_pool_account(self.round)
        next_round = self.round + 1
        pnl = self._pending_profit_and_loss
        batch = users[self.users_processed_in_round:self.users_processed_in_round + batch_size]
        for user in batch:
            balance_after = self.accounting.balance_of(self.round, user) * pnl // ONE
            if user == self._default_provider.account:
                self._collateral.transfer(pool, self._default_provider.account, balance_after)
            elif self.withdrawal_requested.get(user):
                share = self.withdrawal_share.get(user, 0)
                payout = balance_after * share // ONE if share else balance_after
                self._collateral.transfer(pool, user, payout)
                if balance_after > payout:
                    self.accounting.credit(next_round, user, balance_after - payout)
                self.withdrawal_requested[user] = False
                self.withdrawal_share[user] = 0
            else:
                self.accounting.credit(next_round, user, balance_after)
            self.users_processed_in_round += 1

        self._events.emit(
            EventType.ROUND_CLOSING_BATCH_PROCESSED,
            self._clock(),
            round=self.round,
            batch_size=len(batch),
        )
        logger.info(
            "Round %d closing batch: %d users (%d/%d)",
            self.round, len(batch), self.users_processed_in_round, len(users),
        )
        return len(batch)

    def close_round(self) -> int:
        """Record PnL, move leftover collateral to the next round and open it."""
        if not self.round_closing_prepared:
            raise RoundClosingNotPreparedError()
        if self.users_processed_in_round < self.accounting.user_count(self.round):
            raise NotAllUsersProcessedYetError()

        closed_round = self.round
        pool = round_pool_account(closed_round)
        remaining = self._collateral.balance_of(pool)
        self._collateral.transfer(pool, round_pool_account(closed_round + 1), remaining)

        pnl = self._pending_profit_and_loss
        cumulative = self.accounting.record_profit_and_loss(closed_round, pnl)

        self.round = closed_round + 1
        self.round_closing_prepared = False
        self.users_processed_in_round = 0
        self._pending_profit_and_loss = ONE

        self._events.emit(
            EventType.ROUND_CLOSED,
            self._clock(),
            round=closed_round,
            profit_and_loss=pnl,
            cumulative_profit_and_loss=cumulative,
        )
        logger.info(
            "Round %d closed: pnl=%d cumulative=%d, next allocation=%d",
            closed_round, pnl, cumulative, self.accounting.allocation(self.round),
        )
        return pnl
