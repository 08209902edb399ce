"""Unit tests for the risk ledger and mirrored exposure deltas."""

import pytest

from src.amm_common.markets import MarketKey
from src.amm_common.wei import ONE
from src.amm_risk.domain.ledger import RiskLedger, mirrored_deltas
from src.amm_risk.domain.models import RiskUpdate

KEY = MarketKey("game-1", 0, 0)


class TestMirroredDeltas:
    def test_binary(self) -> None:
        assert mirrored_deltas(0, 2, 10 * ONE) == {0: 10 * ONE, 1: -10 * ONE}

    def test_three_way_even_split(self) -> None:
        assert mirrored_deltas(0, 3, 10) == {0: 10, 1: -5, 2: -5}

    def test_remainder_goes_to_lowest_indices(self) -> None:
        assert mirrored_deltas(1, 4, 10) == {1: 10, 0: -4, 2: -3, 3: -3}

    @pytest.mark.parametrize("count", [2, 3, 4, 7])
    def test_sums_to_zero(self, count: int) -> None:
        for position in range(count):
            assert sum(mirrored_deltas(position, count, 123_456_789).values()) == 0

    def test_single_position_market_has_no_exposure(self) -> None:
        assert mirrored_deltas(0, 1, 10) == {0: 0}


class TestRiskLedger:
    def _update(self, position: int, amount: int) -> RiskUpdate:
        update = RiskUpdate()
        for p, delta in mirrored_deltas(position, 2, amount).items():
            update.add_position((KEY, p), delta)
        update.add_game(KEY.game_id, amount)
        return update

    def test_apply_keeps_market_symmetric(self) -> None:
        ledger = RiskLedger()
        ledger.apply(self._update(0, 10 * ONE))
        ledger.apply(self._update(1, 4 * ONE))
        assert ledger.market_exposures(KEY, 2) == [6 * ONE, -6 * ONE]
        assert sum(ledger.market_exposures(KEY, 2)) == 0
        assert ledger.spent_on_game("game-1") == 14 * ONE

    def test_revert_restores(self) -> None:
        ledger = RiskLedger()
        first = self._update(0, 10 * ONE)
        ledger.apply(first)
        second = self._update(0, 3 * ONE)
        ledger.apply(second)
        ledger.revert(second)
        assert ledger.risk_per_market_and_position(KEY, 0) == 10 * ONE
        assert ledger.spent_on_game("game-1") == 10 * ONE

    def test_items_are_sorted(self) -> None:
        ledger = RiskLedger()
        ledger.apply(self._update(1, ONE))
        assert [pos for (_, pos), _ in ledger.position_items()] == [0, 1]
        assert ledger.game_items() == [("game-1", ONE)]

    def test_negated(self) -> None:
        update = self._update(0, 5)
        neg = update.negated()
        assert neg.position_deltas[(KEY, 0)] == -5
        assert neg.game_deltas["game-1"] == -5
