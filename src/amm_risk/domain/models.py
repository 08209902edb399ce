from dataclasses import dataclass, field

from src.amm_common.markets import MarketKey
from src.amm_common.wei import ONE, to_wei

PositionKey = tuple[MarketKey, int]


@dataclass
class RiskParams:
    """Admission-control parameters, all amounts in wei."""

    default_cap: int = 1000 * ONE
    default_risk_multiplier: int = 3
    max_cap: int = 20000 * ONE
    max_risk_multiplier: int = 5
    min_buy_in: int = 3 * ONE
    max_ticket_size: int = 10
    max_supported_amount: int = 20000 * ONE
    max_supported_odds: int = to_wei("0.01")  # smallest accepted total quote
    max_combinations: int = 500
    minimal_time_left_to_maturity: int = 10  # seconds
    expiry_duration: int = 90 * 24 * 3600  # seconds
    default_dynamic_cutoff_divider: int = 2
    default_live_cap_divider: int = 2


@dataclass
class RiskUpdate:
    """Committed exposure deltas of one trade; applied negated on cancel."""

    position_deltas: dict[PositionKey, int] = field(default_factory=dict)
    game_deltas: dict[str, int] = field(default_factory=dict)

    def add_position(self, key: PositionKey, amount: int) -> None:
        self.position_deltas[key] = self.position_deltas.get(key, 0) + amount

    def add_game(self, game_id: str, amount: int) -> None:
        self.game_deltas[game_id] = self.game_deltas.get(game_id, 0) + amount

    def negated(self) -> "RiskUpdate":
        return RiskUpdate(
            position_deltas={k: -v for k, v in self.position_deltas.items()},
            game_deltas={k: -v for k, v in self.game_deltas.items()},
        )
