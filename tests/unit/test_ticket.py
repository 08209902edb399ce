"""Unit tests for the Ticket state machine and its settlement transfers."""

import pytest

from src.amm_common.collateral import SAFE_BOX, InMemoryCollateral, ticket_account
from src.amm_common.datetime_utils import FakeClock
from src.amm_common.enums import EventType, ResultType, TicketPhase
from src.amm_common.errors import (
    AlreadyExercisedError,
    TicketNotExercisableError,
    TicketNotExpiredError,
    TicketPausedError,
)
from src.amm_common.events import EventLog
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE, to_wei
from src.amm_results.domain.result_manager import CANCEL_ID, ResultManager
from src.amm_ticket.domain.ticket import Ticket, TicketData

T0 = 1_700_000_000
DAY = 24 * 3600
POOL = "round-pool:2"


def _make_leg(game_id: str, odds: str = "0.5") -> MarketLeg:
    selected = to_wei(odds)
    return MarketLeg(
        game_id=game_id,
        sport_id=9001,
        type_id=0,
        maturity=T0 + DAY,
        position=0,
        odds=[selected, ONE - selected],
    )


class _Env:
    def __init__(self) -> None:
        self.clock = FakeClock(T0)
        self.events = EventLog()
        self.results = ResultManager(self.events, clock=self.clock)
        self.results.set_result_types_per_market_types([0], [ResultType.EXACT_POSITION])
        self.collateral = InMemoryCollateral()

    def make_ticket(
        self,
        legs: list[MarketLeg],
        payout: int,
        buy_in: int = 10 * ONE,
        **kwargs: object,
    ) -> Ticket:
        data = TicketData(
            id="TKT-00000001",
            owner="alice",
            legs=legs,
            buy_in=buy_in,
            total_quote=buy_in * ONE // payout,
            payout=payout,
            fees=0,
            created_at=T0,
            expiry=T0 + DAY + 90 * DAY,
            round_index=2,
            liquidity_account=POOL,
            **kwargs,  # type: ignore[arg-type]
        )
        self.collateral.mint(ticket_account(data.id), payout)
        return Ticket(data, self.collateral, self.results, self.events, clock=self.clock)

    def settle(self, game_id: str, winner: int) -> None:
        self.results.set_results_per_markets([game_id], [0], [0], [[winner]])


@pytest.fixture
def env() -> _Env:
    return _Env()


class TestPhase:
    def test_trading_until_resolved(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        assert ticket.phase() == TicketPhase.TRADING
        assert not ticket.is_ticket_exercisable()

    def test_exercisable_once_resolved(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.settle("g1", 0)
        assert ticket.phase() == TicketPhase.EXERCISABLE

    def test_parlay_exercisable_on_first_loss(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1"), _make_leg("g2")], 40 * ONE)
        env.settle("g1", 1)
        assert ticket.is_ticket_lost()
        assert ticket.is_ticket_exercisable()

    def test_expired_after_expiry(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.clock.advance(DAY + 90 * DAY)
        assert ticket.phase() == TicketPhase.EXPIRED


class TestExercise:
    def test_winner_gets_payout(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.settle("g1", 0)
        assert ticket.exercise() == 20 * ONE
        assert env.collateral.balance_of("alice") == 20 * ONE
        assert env.collateral.balance_of(POOL) == 0
        assert ticket.balance() == 0
        assert ticket.resolved
        assert len(env.events.of_type(EventType.TICKET_EXERCISED)) == 1

    def test_loser_returns_everything(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.settle("g1", 1)
        assert ticket.exercise() == 0
        assert env.collateral.balance_of(POOL) == 20 * ONE

    def test_cancelled_leg_reprices_parlay(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1"), _make_leg("g2")], 40 * ONE)
        env.settle("g1", 0)
        env.settle("g2", CANCEL_ID)
        assert ticket.calculate_final_payout() == 20 * ONE
        assert ticket.exercise() == 20 * ONE
        assert env.collateral.balance_of(POOL) == 20 * ONE

    def test_all_cancelled_refunds_buy_in(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.results.cancel_game("g1")
        assert ticket.exercise() == 10 * ONE
        assert env.collateral.balance_of(POOL) == 10 * ONE

    def test_twice(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.settle("g1", 0)
        ticket.exercise()
        with pytest.raises(AlreadyExercisedError):
            ticket.exercise()

    def test_not_exercisable(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        with pytest.raises(TicketNotExercisableError):
            ticket.exercise()

    def test_paused(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.settle("g1", 0)
        ticket.set_paused(True)
        with pytest.raises(TicketPausedError):
            ticket.exercise()
        ticket.set_paused(False)
        assert ticket.exercise() == 20 * ONE


class TestSystemTicket:
    def _make(self, env: _Env) -> Ticket:
        legs = [_make_leg("g1", "0.52"), _make_leg("g2", "0.5"), _make_leg("g3", "0.9")]
        return env.make_ticket(
            legs,
            27350427350427350423,
            is_system=True,
            system_bet_denominator=2,
            system_odds_floor=to_wei("0.01"),
        )

    def test_two_of_three_winning(self, env: _Env) -> None:
        ticket = self._make(env)
        env.settle("g1", 1)
        env.settle("g2", 0)
        env.settle("g3", 0)
        assert ticket.is_user_the_winner()
        assert ticket.exercise() == 7407407407407407406
        assert env.collateral.balance_of(POOL) == 27350427350427350423 - 7407407407407407406

    def test_lost_once_too_many_legs_lose(self, env: _Env) -> None:
        ticket = self._make(env)
        env.settle("g1", 1)
        assert ticket.is_ticket_exercisable() is False
        env.settle("g2", 1)
        # two losses out of three leave no winning pair
        assert ticket.is_ticket_exercisable()
        assert ticket.get_system_bet_payout() == 0
        assert ticket.exercise() == 0

    def test_single_win_pays_nothing(self, env: _Env) -> None:
        ticket = self._make(env)
        env.settle("g1", 1)
        env.settle("g2", 1)
        env.settle("g3", 0)
        assert not ticket.is_user_the_winner()
        assert ticket.exercise() == 0


class TestAdminTransitions:
    def test_expire_too_early(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        with pytest.raises(TicketNotExpiredError):
            ticket.expire()

    def test_expire_drains_to_safe_box(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        env.clock.advance(DAY + 90 * DAY)
        assert ticket.expire() == 20 * ONE
        assert env.collateral.balance_of(SAFE_BOX) == 20 * ONE
        assert ticket.resolved

    def test_mark_as_lost(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        assert ticket.mark_as_lost() == 20 * ONE
        assert env.collateral.balance_of(POOL) == 20 * ONE
        with pytest.raises(AlreadyExercisedError):
            ticket.mark_as_lost()

    def test_cancel_splits_balance(self, env: _Env) -> None:
        ticket = env.make_ticket([_make_leg("g1")], 20 * ONE)
        ticket.cancel(refund=9 * ONE, fee=ONE)
        assert env.collateral.balance_of("alice") == 9 * ONE
        assert env.collateral.balance_of(SAFE_BOX) == ONE
        assert env.collateral.balance_of(POOL) == 10 * ONE
        assert ticket.state.cancelled
