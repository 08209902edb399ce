"""Unit tests for RiskManager: caps, combinations, limits and all-or-nothing updates."""

import pytest

from src.amm_common.datetime_utils import FakeClock
from src.amm_common.enums import ResultType, RiskStatus
from src.amm_common.errors import (
    ExceededMaxAmountError,
    ExceededMaxOddsError,
    ExceededMaxSizeError,
    InvalidCombinationError,
    InvalidParameterError,
    InvalidPositionError,
    LowBuyInError,
    NotTradingError,
    RiskPerGameExceededError,
    RiskPerMarketAndPositionExceededError,
    SlippageTooHighError,
)
from src.amm_common.markets import MarketLeg
from src.amm_common.wei import ONE, to_wei
from src.amm_results.domain.result_manager import ResultManager
from src.amm_risk.domain.manager import RiskManager, marginal_risk
from src.amm_risk.domain.models import RiskParams

T0 = 1_700_000_000
DAY = 24 * 3600
SPORT = 9001
TOTALS = 10002


def _make_manager(clock: FakeClock | None = None) -> RiskManager:
    results = ResultManager()
    results.set_result_types_per_market_types([0, TOTALS], [ResultType.EXACT_POSITION, ResultType.OVER_UNDER])
    return RiskManager(RiskParams(), results, clock=clock or FakeClock(T0))


def _make_leg(
    game_id: str = "game-1",
    type_id: int = 0,
    position: int = 0,
    odds: str = "0.5",
    maturity: int = T0 + DAY,
    player_id: int = 0,
    line: int = 0,
) -> MarketLeg:
    selected = to_wei(odds)
    return MarketLeg(
        game_id=game_id,
        sport_id=SPORT,
        type_id=type_id,
        maturity=maturity,
        position=position,
        odds=[selected, ONE - selected] if position == 0 else [ONE - selected, selected],
        line=line,
        player_id=player_id,
    )


def _snapshot(rm: RiskManager) -> tuple[list, list]:
    return rm.ledger.position_items(), rm.ledger.game_items()


class TestMarginalRisk:
    def test_even_odds(self) -> None:
        assert marginal_risk(10 * ONE, to_wei("0.5")) == 10 * ONE

    def test_never_negative(self) -> None:
        assert marginal_risk(10 * ONE, ONE) == 0

    def test_zero_odds(self) -> None:
        assert marginal_risk(10 * ONE, 0) == 0


class TestCapToBeUsed:
    def test_moneyline_default(self) -> None:
        assert _make_manager().calculate_cap_to_be_used(_make_leg()) == 1000 * ONE

    def test_child_market_defaults_to_half_sport_cap(self) -> None:
        rm = _make_manager()
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS)) == 500 * ONE

    def test_sport_cap_overrides_default(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_sport(SPORT, 800 * ONE)
        assert rm.calculate_cap_to_be_used(_make_leg()) == 800 * ONE
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS)) == 400 * ONE

    def test_sport_and_type_beats_sport_child(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_sport_child(SPORT, 300 * ONE)
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS)) == 300 * ONE
        rm.set_cap_per_sport_and_type(SPORT, TOTALS, 200 * ONE)
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS)) == 200 * ONE

    def test_child_capped_at_half_of_game_moneyline_cap(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-1", 0, 0, 0, 600 * ONE)
        assert rm.calculate_cap_to_be_used(_make_leg()) == 600 * ONE
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS)) == 300 * ONE

    def test_explicit_market_cap_wins(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-1", TOTALS, 0, 2050, 50 * ONE)
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS, line=2050)) == 50 * ONE
        assert rm.calculate_cap_to_be_used(_make_leg(type_id=TOTALS, line=2150)) == 500 * ONE

    def test_started_market_has_zero_cap(self) -> None:
        assert _make_manager().calculate_cap_to_be_used(_make_leg(maturity=T0)) == 0

    def test_live_divider(self) -> None:
        rm = _make_manager()
        assert rm.calculate_cap_to_be_used(_make_leg(), is_live=True) == 500 * ONE
        rm.set_live_cap_divider_per_sport(SPORT, 4)
        assert rm.calculate_cap_to_be_used(_make_leg(), is_live=True) == 250 * ONE

    def test_dynamic_liquidity_before_cutoff(self) -> None:
        rm = _make_manager()
        rm.set_dynamic_liquidity_params_per_sport(SPORT, 2 * DAY, 4)
        assert rm.calculate_cap_to_be_used(_make_leg(maturity=T0 + 3 * DAY)) == 250 * ONE

    def test_dynamic_liquidity_ramps_linearly(self) -> None:
        rm = _make_manager()
        rm.set_dynamic_liquidity_params_per_sport(SPORT, 2 * DAY, 4)
        # halfway through the cutoff window: 1000 - 750 * 0.5
        assert rm.calculate_cap_to_be_used(_make_leg(maturity=T0 + DAY)) == 625 * ONE

    def test_cap_above_max_rejected(self) -> None:
        rm = _make_manager()
        with pytest.raises(InvalidParameterError):
            rm.set_cap_per_sport(SPORT, 20001 * ONE)


class TestRiskMultiplier:
    def test_fallback_chain(self) -> None:
        rm = _make_manager()
        assert rm.calculate_risk_multiplier("game-1", SPORT) == 3
        rm.set_risk_multiplier_per_sport(SPORT, 4)
        assert rm.calculate_risk_multiplier("game-1", SPORT) == 4
        rm.set_risk_multiplier_per_game("game-1", 2)
        assert rm.calculate_risk_multiplier("game-1", SPORT) == 2

    def test_total_risk_on_game(self) -> None:
        rm = _make_manager()
        assert rm.calculate_total_risk_on_game(_make_leg(type_id=TOTALS)) == 3000 * ONE

    def test_multiplier_above_max_rejected(self) -> None:
        with pytest.raises(InvalidParameterError):
            _make_manager().set_risk_multiplier_per_game("game-1", 6)


class TestTrading:
    def test_too_close_to_maturity(self) -> None:
        rm = _make_manager()
        assert not rm.is_market_in_amm_trading(_make_leg(maturity=T0 + 5))
        # live trading ignores the pre-start buffer
        assert rm.is_market_in_amm_trading(_make_leg(maturity=T0 + 5), is_live=True)

    def test_paused_game_and_market(self) -> None:
        rm = _make_manager()
        rm.set_paused_game("game-1", True)
        assert not rm.is_market_in_amm_trading(_make_leg())
        rm.set_paused_game("game-1", False)
        rm.set_paused_market("game-1", 0, 0, True)
        assert not rm.is_market_in_amm_trading(_make_leg())
        assert rm.is_market_in_amm_trading(_make_leg(type_id=TOTALS))

    def test_resolved_market_not_trading(self) -> None:
        rm = _make_manager()
        rm._results.set_results_per_markets(["game-1"], [0], [0], [[0]])
        assert not rm.is_market_in_amm_trading(_make_leg())


class TestCombinations:
    def test_same_game_disabled_by_default(self) -> None:
        rm = _make_manager()
        legs = [_make_leg(), _make_leg(type_id=TOTALS)]
        assert rm.has_illegal_combinations_on_ticket(legs)
        status, _ = rm.check_risks(legs, 10 * ONE)
        assert status == RiskStatus.INVALID_COMBINATION

    def test_distinct_player_props_allowed_when_enabled(self) -> None:
        rm = _make_manager()
        rm.set_combining_per_sport_enabled(SPORT, True)
        legs = [_make_leg(type_id=TOTALS, player_id=11), _make_leg(type_id=TOTALS, player_id=12)]
        assert not rm.has_illegal_combinations_on_ticket(legs)

    def test_same_player_or_game_level_still_illegal(self) -> None:
        rm = _make_manager()
        rm.set_combining_per_sport_enabled(SPORT, True)
        assert rm.has_illegal_combinations_on_ticket(
            [_make_leg(type_id=TOTALS, player_id=11), _make_leg(type_id=TOTALS, player_id=11, line=300)]
        )
        assert rm.has_illegal_combinations_on_ticket([_make_leg(), _make_leg(type_id=TOTALS, player_id=11)])

    def test_different_games_are_fine(self) -> None:
        rm = _make_manager()
        assert not rm.has_illegal_combinations_on_ticket([_make_leg(), _make_leg(game_id="game-2")])


class TestCheckLimits:
    def test_passes(self) -> None:
        _make_manager().check_limits(10 * ONE, to_wei("0.5"), 20 * ONE, 20 * ONE, 0, 1)

    def test_low_buy_in(self) -> None:
        with pytest.raises(LowBuyInError):
            _make_manager().check_limits(2 * ONE, to_wei("0.5"), 4 * ONE, 4 * ONE, 0, 1)

    def test_max_size(self) -> None:
        with pytest.raises(ExceededMaxSizeError):
            _make_manager().check_limits(10 * ONE, to_wei("0.5"), 20 * ONE, 20 * ONE, 0, 11)

    def test_max_odds(self) -> None:
        with pytest.raises(ExceededMaxOddsError):
            _make_manager().check_limits(10 * ONE, to_wei("0.009"), 1111 * ONE, 1111 * ONE, 0, 3)

    def test_max_amount(self) -> None:
        with pytest.raises(ExceededMaxAmountError):
            _make_manager().check_limits(1000 * ONE, to_wei("0.04"), 25000 * ONE, 25000 * ONE, 0, 3)

    def test_slippage(self) -> None:
        rm = _make_manager()
        # expected 21 vs actual 20 is 5% worse
        with pytest.raises(SlippageTooHighError):
            rm.check_limits(10 * ONE, to_wei("0.5"), 20 * ONE, 21 * ONE, to_wei("0.02"), 1)
        rm.check_limits(10 * ONE, to_wei("0.5"), 20 * ONE, 21 * ONE, to_wei("0.05"), 1)


class TestCheckAndUpdateRisks:
    def test_commits_mirrored_exposure(self) -> None:
        rm = _make_manager()
        leg = _make_leg()
        rm.check_and_update_risks([leg], 10 * ONE)
        assert rm.ledger.market_exposures(leg.key, 2) == [10 * ONE, -10 * ONE]
        assert rm.ledger.spent_on_game("game-1") == 10 * ONE

    def test_invalid_position(self) -> None:
        rm = _make_manager()
        leg = _make_leg()
        leg.position = 2
        with pytest.raises(InvalidPositionError):
            rm.check_and_update_risks([leg], 10 * ONE)

    def test_zero_odds_not_trading(self) -> None:
        rm = _make_manager()
        leg = _make_leg()
        leg.odds = [0, ONE]
        with pytest.raises(NotTradingError):
            rm.check_and_update_risks([leg], 10 * ONE)

    def test_position_cap_rejection_leaves_ledger_untouched(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-1", 0, 0, 0, 15 * ONE)
        rm.check_and_update_risks([_make_leg()], 10 * ONE)
        before = _snapshot(rm)
        with pytest.raises(RiskPerMarketAndPositionExceededError):
            rm.check_and_update_risks([_make_leg()], 10 * ONE)
        assert _snapshot(rm) == before

    def test_exposure_never_exceeds_cap(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-1", 0, 0, 0, 25 * ONE)
        leg = _make_leg()
        for _ in range(5):
            try:
                rm.check_and_update_risks([leg], 10 * ONE)
            except RiskPerMarketAndPositionExceededError:
                pass
            assert rm.ledger.risk_per_market_and_position(leg.key, 0) <= 25 * ONE
        assert rm.ledger.risk_per_market_and_position(leg.key, 0) == 20 * ONE

    def test_game_cap(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_sport(SPORT, 100 * ONE)
        rm.set_risk_multiplier_per_game("game-1", 1)
        rm.check_and_update_risks([_make_leg()], 60 * ONE)
        before = _snapshot(rm)
        with pytest.raises(RiskPerGameExceededError):
            rm.check_and_update_risks([_make_leg(type_id=TOTALS, line=2050)], 45 * ONE)
        assert _snapshot(rm) == before

    def test_multi_leg_rejection_is_all_or_nothing(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-2", 0, 0, 0, 5 * ONE)
        before = _snapshot(rm)
        with pytest.raises(RiskPerMarketAndPositionExceededError):
            rm.check_and_update_risks([_make_leg(), _make_leg(game_id="game-2")], 10 * ONE)
        assert _snapshot(rm) == before

    def test_invalid_combination_raises(self) -> None:
        rm = _make_manager()
        with pytest.raises(InvalidCombinationError):
            rm.check_and_update_risks([_make_leg(), _make_leg(type_id=TOTALS)], 10 * ONE)

    def test_system_bet_scales_marginal_by_k_over_n(self) -> None:
        rm = _make_manager()
        legs = [_make_leg(game_id=f"game-{i}") for i in range(3)]
        rm.check_and_update_risks(legs, 9 * ONE, is_system_bet=True, system_bet_denominator=2)
        assert rm.ledger.spent_on_game("game-0") == 6 * ONE

    def test_revert(self) -> None:
        rm = _make_manager()
        update = rm.check_and_update_risks([_make_leg()], 10 * ONE)
        rm.revert_risks(update)
        assert all(v == 0 for _, v in rm.ledger.position_items())
        assert rm.ledger.spent_on_game("game-1") == 0


class TestCheckRisks:
    def test_no_risk(self) -> None:
        status, flags = _make_manager().check_risks([_make_leg()], 10 * ONE)
        assert status == RiskStatus.NO_RISK
        assert flags == [False]

    def test_out_of_liquidity_flags_only_offending_leg(self) -> None:
        rm = _make_manager()
        rm.set_cap_per_market("game-2", 0, 0, 0, 5 * ONE)
        status, flags = rm.check_risks([_make_leg(), _make_leg(game_id="game-2")], 10 * ONE)
        assert status == RiskStatus.OUT_OF_LIQUIDITY
        assert flags == [False, True]
        assert rm.ledger.position_items() == []
