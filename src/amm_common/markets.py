"""Market leg types shared by the risk manager, tickets and the result feed."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MarketKey:
    """Results are keyed per (game, type, player); lines share one result."""

    game_id: str
    type_id: int
    player_id: int


@dataclass(frozen=True)
class CombinedPosition:
    """One component of a combined-position market (same game and player)."""

    type_id: int
    position: int
    line: int


@dataclass
class MarketLeg:
    game_id: str
    sport_id: int
    type_id: int
    maturity: int  # unix seconds
    position: int
    odds: list[int]  # implied probability per position, 1e18 fixed point
    line: int = 0  # x100: 2050 = 20.5
    player_id: int = 0
    combined_positions: list[CombinedPosition] = field(default_factory=list)

    @property
    def key(self) -> MarketKey:
        return MarketKey(self.game_id, self.type_id, self.player_id)

    @property
    def position_count(self) -> int:
        return len(self.odds)

    @property
    def selected_odds(self) -> int:
        return self.odds[self.position]

    def same_market(self, other: "MarketLeg") -> bool:
        return (
            self.game_id == other.game_id
            and self.type_id == other.type_id
            and self.player_id == other.player_id
            and self.line == other.line
            and self.position == other.position
        )
