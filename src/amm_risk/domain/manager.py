"""RiskManager — admission control over the risk ledger.

The orchestrator owns the single instance and is its only mutating caller.
Every check stages the full ticket first and commits only when all legs
pass, so a rejected trade leaves the ledger untouched.
"""

import logging
from collections.abc import Sequence

from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import RiskStatus
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
from src.amm_common.markets import MarketKey, MarketLeg
from src.amm_common.wei import ONE
from src.amm_results.domain.result_manager import ResultManager
from src.amm_risk.domain.ledger import RiskLedger, mirrored_deltas
from src.amm_risk.domain.models import RiskParams, RiskUpdate
from src.amm_risk.domain.system_bets import max_system_bet_payout

logger = logging.getLogger(__name__)

MONEYLINE_TYPE_ID = 0


def marginal_risk(buy_in: int, odds: int) -> int:
    """What the pool pays out beyond the stake if this leg wins; never negative."""
    if odds == 0:
        return 0
    return max(buy_in * ONE // odds - buy_in, 0)


class RiskManager:
    def __init__(
        self,
        params: RiskParams,
        result_manager: ResultManager,
        ledger: RiskLedger | None = None,
        clock: Clock = unix_now,
    ) -> None:
        self.params = params
        self._results = result_manager
        self.ledger = ledger if ledger is not None else RiskLedger()
        self._clock = clock

        # (game, type, player, line) -> explicit cap
        self._cap_per_market: dict[tuple[str, int, int, int], int] = {}
        self._cap_per_sport: dict[int, int] = {}
        self._cap_per_sport_and_type: dict[tuple[int, int], int] = {}
        self._cap_per_sport_child: dict[int, int] = {}
        self._risk_multiplier_per_sport: dict[int, int] = {}
        self._risk_multiplier_per_game: dict[str, int] = {}
        self._dynamic_cutoff_time_per_sport: dict[int, int] = {}
        self._dynamic_cutoff_divider_per_sport: dict[int, int] = {}
        self._live_cap_divider_per_sport: dict[int, int] = {}
        self._combining_per_sport_enabled: set[int] = set()
        self._paused_games: set[str] = set()
        self._paused_markets: set[MarketKey] = set()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def _validate_cap(self, cap: int) -> None:
        if cap < 0 or cap > self.params.max_cap:
            raise InvalidParameterError(f"cap {cap} outside [0, {self.params.max_cap}]")

    def _validate_multiplier(self, multiplier: int) -> None:
        if multiplier < 0 or multiplier > self.params.max_risk_multiplier:
            raise InvalidParameterError(
                f"risk multiplier {multiplier} outside [0, {self.params.max_risk_multiplier}]"
            )

    def set_default_cap_and_multiplier(
        self, default_cap: int, default_risk_multiplier: int, max_cap: int, max_risk_multiplier: int
    ) -> None:
        if default_cap > max_cap or default_risk_multiplier > max_risk_multiplier:
            raise InvalidParameterError("defaults must not exceed maxima")
        self.params.default_cap = default_cap
        self.params.default_risk_multiplier = default_risk_multiplier
        self.params.max_cap = max_cap
        self.params.max_risk_multiplier = max_risk_multiplier

    def set_cap_per_market(self, game_id: str, type_id: int, player_id: int, line: int, cap: int) -> None:
        self._validate_cap(cap)
        self._cap_per_market[(game_id, type_id, player_id, line)] = cap

    def set_cap_per_sport(self, sport_id: int, cap: int) -> None:
        self._validate_cap(cap)
        self._cap_per_sport[sport_id] = cap

    def set_cap_per_sport_and_type(self, sport_id: int, type_id: int, cap: int) -> None:
        self._validate_cap(cap)
        self._cap_per_sport_and_type[(sport_id, type_id)] = cap

    def set_cap_per_sport_child(self, sport_id: int, cap: int) -> None:
        self._validate_cap(cap)
        self._cap_per_sport_child[sport_id] = cap

    def set_risk_multiplier_per_sport(self, sport_id: int, multiplier: int) -> None:
        self._validate_multiplier(multiplier)
        self._risk_multiplier_per_sport[sport_id] = multiplier

    def set_risk_multiplier_per_game(self, game_id: str, multiplier: int) -> None:
        self._validate_multiplier(multiplier)
        self._risk_multiplier_per_game[game_id] = multiplier

    def set_dynamic_liquidity_params_per_sport(
        self, sport_id: int, cutoff_time: int, cutoff_divider: int
    ) -> None:
        if cutoff_time < 0 or cutoff_divider < 0:
            raise InvalidParameterError("dynamic liquidity params must be >= 0")
        self._dynamic_cutoff_time_per_sport[sport_id] = cutoff_time
        self._dynamic_cutoff_divider_per_sport[sport_id] = cutoff_divider

    def set_live_cap_divider_per_sport(self, sport_id: int, divider: int) -> None:
        if divider < 0:
            raise InvalidParameterError("live cap divider must be >= 0")
        self._live_cap_divider_per_sport[sport_id] = divider

    def set_combining_per_sport_enabled(self, sport_id: int, enabled: bool) -> None:
        if enabled:
            self._combining_per_sport_enabled.add(sport_id)
        else:
            self._combining_per_sport_enabled.discard(sport_id)

    def set_paused_game(self, game_id: str, paused: bool) -> None:
        if paused:
            self._paused_games.add(game_id)
        else:
            self._paused_games.discard(game_id)

    def set_paused_market(self, game_id: str, type_id: int, player_id: int, paused: bool) -> None:
        key = MarketKey(game_id, type_id, player_id)
        if paused:
            self._paused_markets.add(key)
        else:
            self._paused_markets.discard(key)

    def set_ticket_params(
        self,
        min_buy_in: int,
        max_ticket_size: int,
        max_supported_amount: int,
        max_supported_odds: int,
        max_combinations: int,
    ) -> None:
        if max_ticket_size < 1 or max_combinations < 1 or not (0 < max_supported_odds <= ONE):
            raise InvalidParameterError("ticket params out of range")
        self.params.min_buy_in = min_buy_in
        self.params.max_ticket_size = max_ticket_size
        self.params.max_supported_amount = max_supported_amount
        self.params.max_supported_odds = max_supported_odds
        self.params.max_combinations = max_combinations

    def set_times(self, minimal_time_left_to_maturity: int, expiry_duration: int) -> None:
        if minimal_time_left_to_maturity < 0 or expiry_duration <= 0:
            raise InvalidParameterError("times out of range")
        self.params.minimal_time_left_to_maturity = minimal_time_left_to_maturity
        self.params.expiry_duration = expiry_duration

    def is_combining_enabled(self, sport_id: int) -> bool:
        return sport_id in self._combining_per_sport_enabled

    # ------------------------------------------------------------------
    # Caps
    # ------------------------------------------------------------------

    def _sport_moneyline_cap(self, sport_id: int) -> int:
        return self._cap_per_sport.get(sport_id) or self.params.default_cap

    def calculate_cap_to_be_used(self, leg: MarketLeg, is_live: bool = False) -> int:
        now = self._clock()
        if leg.maturity <= now:
            return 0

        cap = self._cap_per_market.get((leg.game_id, leg.type_id, leg.player_id, leg.line), 0)
        if cap == 0:
            sport_cap = self._sport_moneyline_cap(leg.sport_id)
            if leg.type_id == MONEYLINE_TYPE_ID:
                cap = sport_cap
            else:
                cap = (
                    self._cap_per_sport_and_type.get((leg.sport_id, leg.type_id))
                    or self._cap_per_sport_child.get(leg.sport_id)
                    or sport_cap // 2
                )
                game_moneyline_cap = self._cap_per_market.get(
                    (leg.game_id, MONEYLINE_TYPE_ID, 0, 0), 0
                )
                if game_moneyline_cap:
                    cap = min(cap, game_moneyline_cap // 2)

        cutoff = self._dynamic_cutoff_time_per_sport.get(leg.sport_id, 0)
        if cutoff > 0:
            divider = (
                self._dynamic_cutoff_divider_per_sport.get(leg.sport_id)
                or self.params.default_dynamic_cutoff_divider
            )
            time_to_start = leg.maturity - now
            reduced = cap // divider
            if time_to_start >= cutoff:
                cap = reduced
            else:
                # linear from cap/divider at the cutoff to the full cap at start
                cap = cap - (cap - reduced) * time_to_start // cutoff

        if is_live:
            divider = (
                self._live_cap_divider_per_sport.get(leg.sport_id)
                or self.params.default_live_cap_divider
            )
            cap //= divider
        return cap

    def calculate_risk_multiplier(self, game_id: str, sport_id: int) -> int:
        return (
            self._risk_multiplier_per_game.get(game_id)
            or self._risk_multiplier_per_sport.get(sport_id)
            or self.params.default_risk_multiplier
        )

    def calculate_total_risk_on_game(self, leg: MarketLeg, is_live: bool = False) -> int:
        """Game cap: the game's moneyline cap times its risk multiplier."""
        moneyline = MarketLeg(
            game_id=leg.game_id,
            sport_id=leg.sport_id,
            type_id=MONEYLINE_TYPE_ID,
            maturity=leg.maturity,
            position=0,
            odds=[ONE],
        )
        cap = self.calculate_cap_to_be_used(moneyline, is_live)
        return cap * self.calculate_risk_multiplier(leg.game_id, leg.sport_id)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def is_market_in_amm_trading(self, leg: MarketLeg, is_live: bool = False) -> bool:
        now = self._clock()
        if leg.maturity <= now:
            return False
        if not is_live and leg.maturity - now <= self.params.minimal_time_left_to_maturity:
            return False
        if leg.game_id in self._paused_games or leg.key in self._paused_markets:
            return False
        return not self._results.is_leg_resolved(leg)

    def has_illegal_combinations_on_ticket(self, legs: Sequence[MarketLeg]) -> bool:
        for i, first in enumerate(legs):
            for second in legs[i + 1:]:
                if first.game_id != second.game_id:
                    continue
                if not self.is_combining_enabled(first.sport_id):
                    return True
                if first.player_id == 0 or second.player_id == 0:
                    return True
                if first.player_id == second.player_id:
                    return True
        return False

    def check_limits(
        self,
        buy_in: int,
        total_quote: int,
        payout: int,
        expected_payout: int,
        additional_slippage: int,
        ticket_size: int,
    ) -> None:
        p = self.params
        if buy_in < p.min_buy_in:
            raise LowBuyInError()
        if ticket_size > p.max_ticket_size:
            raise ExceededMaxSizeError()
        if total_quote < p.max_supported_odds:
            raise ExceededMaxOddsError()
        if payout - buy_in > p.max_supported_amount:
            raise ExceededMaxAmountError()
        if payout == 0 or expected_payout * ONE // payout > ONE + additional_slippage:
            raise SlippageTooHighError()

    def check_positions(self, legs: Sequence[MarketLeg]) -> None:
        """Every leg must select one of its market's positions."""
        for leg in legs:
            if not (0 <= leg.position < leg.position_count):
                raise InvalidPositionError(leg.position)

    def get_max_system_bet_payout(
        self, legs: Sequence[MarketLeg], system_bet_denominator: int, buy_in: int
    ) -> tuple[int, int]:
        """(max payout, system quote); raises before enumerating too many combinations."""
        return max_system_bet_payout(
            [leg.selected_odds for leg in legs],
            system_bet_denominator,
            buy_in,
            self.params.max_supported_odds,
            self.params.max_combinations,
        )

    def _stage(
        self,
        legs: Sequence[MarketLeg],
        buy_in: int,
        is_system_bet: bool,
        system_bet_denominator: int,
    ) -> tuple[RiskUpdate, list[int]]:
        """Stage exposure deltas for the ticket; returns (update, marginal per leg)."""
        update = RiskUpdate()
        marginals: list[int] = []
        for leg in legs:
            m = marginal_risk(buy_in, leg.selected_odds)
            if is_system_bet and legs:
                m = m * system_bet_denominator // len(legs)
            marginals.append(m)
            for position, delta in mirrored_deltas(leg.position, leg.position_count, m).items():
                update.add_position((leg.key, position), delta)
            update.add_game(leg.game_id, m)
        return update, marginals

    def _leg_out_of_liquidity(self, leg: MarketLeg, update: RiskUpdate, is_live: bool) -> tuple[bool, bool]:
        """(position cap exceeded, game cap exceeded) after the staged update."""
        pos_key = (leg.key, leg.position)
        exposure = self.ledger.risk_per_market_and_position(leg.key, leg.position)
        exposure += update.position_deltas.get(pos_key, 0)
        spent = self.ledger.spent_on_game(leg.game_id) + update.game_deltas.get(leg.game_id, 0)
        position_exceeded = exposure > self.calculate_cap_to_be_used(leg, is_live)
        game_exceeded = spent > self.calculate_total_risk_on_game(leg, is_live)
        return position_exceeded, game_exceeded

    def check_risks(
        self,
        legs: Sequence[MarketLeg],
        buy_in: int,
        is_live: bool = False,
        is_system_bet: bool = False,
        system_bet_denominator: int = 0,
    ) -> tuple[RiskStatus, list[bool]]:
        """Read-only evaluation used for quoting."""
        self.check_positions(legs)
        flags = [False] * len(legs)
        if self.has_illegal_combinations_on_ticket(legs):
            return RiskStatus.INVALID_COMBINATION, flags
        update, _ = self._stage(legs, buy_in, is_system_bet, system_bet_denominator)
        for i, leg in enumerate(legs):
            position_exceeded, game_exceeded = self._leg_out_of_liquidity(leg, update, is_live)
            flags[i] = position_exceeded or game_exceeded
        status = RiskStatus.OUT_OF_LIQUIDITY if any(flags) else RiskStatus.NO_RISK
        return status, flags

    def check_and_update_risks(
        self,
        legs: Sequence[MarketLeg],
        buy_in: int,
        is_live: bool = False,
        is_system_bet: bool = False,
        system_bet_denominator: int = 0,
    ) -> RiskUpdate:
        self.check_positions(legs)
        for leg in legs:
            if leg.selected_odds == 0 or not self.is_market_in_amm_trading(leg, is_live):
                raise NotTradingError(leg.game_id)
        if self.has_illegal_combinations_on_ticket(legs):
            raise InvalidCombinationError()

        update, _ = self._stage(legs, buy_in, is_system_bet, system_bet_denominator)
        for leg in legs:
            position_exceeded, game_exceeded = self._leg_out_of_liquidity(leg, update, is_live)
            if position_exceeded:
                raise RiskPerMarketAndPositionExceededError(leg.game_id, leg.position)
            if game_exceeded:
                raise RiskPerGameExceededError(leg.game_id)

        self.ledger.apply(update)
        logger.info(
            "Risk updated for %d legs (buy_in=%d, system=%s)", len(legs), buy_in, is_system_bet
        )
        return update

    def revert_risks(self, update: RiskUpdate) -> None:
        self.ledger.revert(update)
        logger.info("Risk reverted for %d positions", len(update.position_deltas))
