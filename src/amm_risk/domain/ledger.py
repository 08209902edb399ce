"""Risk ledger: signed exposure per market position and per game.

Pure accounting with no policy. For every market the exposures of all its
positions sum to zero: what the pool risks on one side it gains on the others.
"""

from collections import defaultdict

from src.amm_common.markets import MarketKey
from src.amm_risk.domain.models import PositionKey, RiskUpdate


def mirrored_deltas(position: int, position_count: int, amount: int) -> dict[int, int]:
    """+amount on `position`, -amount split over the other positions.

    The split is even; the remainder goes to the lowest-indexed positions,
    so the deltas sum to exactly zero.
    """
    if position_count < 2:
        return {position: 0}
    others = [p for p in range(position_count) if p != position]
    share, remainder = divmod(amount, len(others))
    deltas = {position: amount}
    for i, other in enumerate(others):
        deltas[other] = -(share + (1 if i < remainder else 0))
    return deltas


class RiskLedger:
    def __init__(self) -> None:
        self._risk_per_market_and_position: dict[PositionKey, int] = defaultdict(int)
        self._spent_on_game: dict[str, int] = defaultdict(int)

    def risk_per_market_and_position(self, key: MarketKey, position: int) -> int:
        return self._risk_per_market_and_position.get((key, position), 0)

    def spent_on_game(self, game_id: str) -> int:
        return self._spent_on_game.get(game_id, 0)

    def market_exposures(self, key: MarketKey, position_count: int) -> list[int]:
        return [self.risk_per_market_and_position(key, p) for p in range(position_count)]

    def apply(self, update: RiskUpdate) -> None:
        for pos_key, delta in update.position_deltas.items():
            self._risk_per_market_and_position[pos_key] += delta
        for game_id, delta in update.game_deltas.items():
            self._spent_on_game[game_id] += delta

    def revert(self, update: RiskUpdate) -> None:
        self.apply(update.negated())

    def position_items(self) -> list[tuple[PositionKey, int]]:
        return sorted(
            self._risk_per_market_and_position.items(),
            key=lambda item: (item[0][0].game_id, item[0][0].type_id, item[0][0].player_id, item[0][1]),
        )

    def game_items(self) -> list[tuple[str, int]]:
        return sorted(self._spent_on_game.items())
