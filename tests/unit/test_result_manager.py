"""Unit tests for ResultManager: write-once results and position status rules."""

import pytest

from src.amm_common.enums import EventType, MarketPositionStatus, ResultType
from src.amm_common.errors import InvalidResultInputError, ResultTypeNotSetError
from src.amm_common.events import EventLog
from src.amm_common.markets import CombinedPosition, MarketLeg
from src.amm_common.wei import to_wei
from src.amm_results.domain.result_manager import CANCEL_ID, ResultManager

MONEYLINE, TOTALS, SPREAD, COMBINED = 0, 10002, 10001, 10004
WIN, LOSE, OPEN, CANCELLED = (
    MarketPositionStatus.WINNING,
    MarketPositionStatus.LOSING,
    MarketPositionStatus.OPEN,
    MarketPositionStatus.CANCELLED,
)


def _make_manager() -> ResultManager:
    rm = ResultManager(EventLog(), clock=lambda: 1_700_000_000)
    rm.set_result_types_per_market_types(
        [MONEYLINE, TOTALS, SPREAD, COMBINED],
        [
            ResultType.EXACT_POSITION,
            ResultType.OVER_UNDER,
            ResultType.SPREAD,
            ResultType.COMBINED_POSITIONS,
        ],
    )
    return rm


def _make_leg(type_id: int = MONEYLINE, position: int = 0, line: int = 0, **kwargs: object) -> MarketLeg:
    return MarketLeg(
        game_id="game-1",
        sport_id=9001,
        type_id=type_id,
        maturity=1_700_100_000,
        position=position,
        odds=[to_wei("0.5"), to_wei("0.5")],
        line=line,
        **kwargs,  # type: ignore[arg-type]
    )


class TestSetResults:
    def test_write_once(self) -> None:
        rm = _make_manager()
        assert rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[0]]) == 1
        # re-set is ignored, not overwritten
        assert rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[1]]) == 0
        assert rm.get_results_per_market("game-1", MONEYLINE, 0) == [0]

    def test_length_mismatch(self) -> None:
        rm = _make_manager()
        with pytest.raises(InvalidResultInputError):
            rm.set_results_per_markets(["game-1", "game-2"], [MONEYLINE], [0], [[0]])

    def test_rejected_batch_writes_nothing(self) -> None:
        rm = _make_manager()
        with pytest.raises(InvalidResultInputError):
            rm.set_results_per_markets(["game-1", "game-2"], [MONEYLINE] * 2, [0, 0], [[0], []])
        assert not rm.are_results_per_market_set("game-1", MONEYLINE, 0)
        # the corrected batch is then written in full
        assert rm.set_results_per_markets(["game-1", "game-2"], [MONEYLINE] * 2, [0, 0], [[0], [1]]) == 2

    def test_unassigned_result_type(self) -> None:
        rm = _make_manager()
        with pytest.raises(ResultTypeNotSetError):
            rm.set_results_per_markets(["game-1"], [777], [0], [[0]])
        assert not rm.are_results_per_market_set("game-1", 777, 0)

    def test_emits_results_set(self) -> None:
        events = EventLog()
        rm = ResultManager(events)
        rm.set_result_types_per_market_types([MONEYLINE], [ResultType.EXACT_POSITION])
        rm.set_results_per_markets(["game-1", "game-2"], [MONEYLINE, MONEYLINE], [0, 0], [[0], [1]])
        assert len(events.of_type(EventType.RESULTS_SET)) == 2


class TestExactPosition:
    def test_open_until_set(self) -> None:
        rm = _make_manager()
        assert rm.get_leg_status(_make_leg()) == OPEN
        assert not rm.is_leg_resolved(_make_leg())

    def test_winning_and_losing(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[1]])
        assert rm.get_leg_status(_make_leg(position=1)) == WIN
        assert rm.get_leg_status(_make_leg(position=0)) == LOSE
        assert rm.is_winning_market_position(_make_leg(position=1))

    def test_cancel_id(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[CANCEL_ID]])
        assert rm.is_cancelled_market_position(_make_leg(position=0))
        assert rm.is_cancelled_market_position(_make_leg(position=1))


class TestOverUnder:
    @pytest.mark.parametrize(
        ("total", "over", "under"),
        [(2100, WIN, LOSE), (2000, LOSE, WIN), (2050, CANCELLED, CANCELLED)],
    )
    def test_against_line(
        self, total: int, over: MarketPositionStatus, under: MarketPositionStatus
    ) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [TOTALS], [0], [[total]])
        assert rm.get_leg_status(_make_leg(TOTALS, position=0, line=2050)) == over
        assert rm.get_leg_status(_make_leg(TOTALS, position=1, line=2050)) == under


class TestSpread:
    def test_home_covers(self) -> None:
        rm = _make_manager()
        # home won by 7, line -5.5
        rm.set_results_per_markets(["game-1"], [SPREAD], [0], [[700]])
        assert rm.get_leg_status(_make_leg(SPREAD, position=0, line=-550)) == WIN
        assert rm.get_leg_status(_make_leg(SPREAD, position=1, line=-550)) == LOSE

    def test_push(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [SPREAD], [0], [[-300]])
        assert rm.get_leg_status(_make_leg(SPREAD, position=0, line=300)) == CANCELLED


class TestCombinedPositions:
    def _leg(self) -> MarketLeg:
        return _make_leg(
            COMBINED,
            combined_positions=[
                CombinedPosition(MONEYLINE, 0, 0),
                CombinedPosition(TOTALS, 0, 2050),
            ],
        )

    def test_open_while_any_component_open(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[0]])
        assert rm.get_leg_status(self._leg()) == OPEN
        assert not rm.is_leg_resolved(self._leg())

    def test_winning_when_all_win(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1", "game-1"], [MONEYLINE, TOTALS], [0, 0], [[0], [2200]])
        assert rm.get_leg_status(self._leg()) == WIN
        assert rm.is_leg_resolved(self._leg())

    def test_any_losing_loses(self) -> None:
        rm = _make_manager()
        rm.set_results_per_markets(["game-1"], [MONEYLINE], [0], [[1]])
        assert rm.get_leg_status(self._leg()) == LOSE


class TestCancellation:
    def test_cancel_game(self) -> None:
        rm = _make_manager()
        rm.cancel_game("game-1")
        assert rm.get_leg_status(_make_leg(TOTALS, line=2050)) == CANCELLED
        assert rm.is_leg_resolved(_make_leg())

    def test_cancel_market_is_per_line(self) -> None:
        rm = _make_manager()
        rm.cancel_market("game-1", TOTALS, 0, 2050)
        assert rm.is_market_cancelled("game-1", TOTALS, 0, 2050)
        assert not rm.is_market_cancelled("game-1", TOTALS, 0, 2150)
