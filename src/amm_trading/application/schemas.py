"""Request/response schemas for trading, ticket and result endpoints.

Wei amounts and fixed-point odds travel as decimal strings.
"""
from typing import Annotated

from pydantic import BaseModel, Field

from src.amm_common.markets import CombinedPosition, MarketLeg
from src.amm_ticket.domain.ticket import Ticket
from src.amm_trading.domain.orchestrator import TradeQuote

WeiStr = Annotated[str, Field(pattern=r"^\d+$", description="Integer amount in 1e18 fixed point")]


class CombinedPositionSchema(BaseModel):
    type_id: int
    position: int
    line: int = 0


class LegSchema(BaseModel):
    game_id: str = Field(min_length=1, max_length=66)
    sport_id: int
    type_id: int = 0
    maturity: int = Field(gt=0, description="Unix seconds")
    position: int = Field(ge=0)
    odds: list[WeiStr] = Field(min_length=1)
    line: int = 0
    player_id: int = 0
    combined_positions: list[CombinedPositionSchema] = Field(default_factory=list)

    def to_domain(self) -> MarketLeg:
        return MarketLeg(
            game_id=self.game_id,
            sport_id=self.sport_id,
            type_id=self.type_id,
            maturity=self.maturity,
            position=self.position,
            odds=[int(o) for o in self.odds],
            line=self.line,
            player_id=self.player_id,
            combined_positions=[
                CombinedPosition(cp.type_id, cp.position, cp.line) for cp in self.combined_positions
            ],
        )


class QuoteRequest(BaseModel):
    legs: list[LegSchema] = Field(min_length=1)
    buy_in: WeiStr
    is_live: bool = False
    system_bet_denominator: int = Field(default=0, ge=0)

    def domain_legs(self) -> list[MarketLeg]:
        return [leg.to_domain() for leg in self.legs]


class QuoteResponse(BaseModel):
    total_quote: str
    payout: str
    fees: str
    risk_status: str
    out_of_liquidity: list[bool]

    @classmethod
    def from_quote(cls, quote: TradeQuote) -> "QuoteResponse":
        return cls(
            total_quote=str(quote.total_quote),
            payout=str(quote.payout),
            fees=str(quote.fees),
            risk_status=quote.risk_status.value,
            out_of_liquidity=quote.out_of_liquidity,
        )


class TradeRequest(QuoteRequest):
    expected_quote: WeiStr
    additional_slippage: WeiStr = "0"
    is_free_bet: bool = False


class CancelTicketRequest(BaseModel):
    legs: list[LegSchema] = Field(min_length=1)


class ExpireTicketsRequest(BaseModel):
    ticket_ids: list[str] = Field(min_length=1, max_length=500)


class TicketResponse(BaseModel):
    id: str
    owner: str
    buy_in: str
    total_quote: str
    payout: str
    fees: str
    round: int
    expiry: int
    phase: int
    is_system: bool
    system_bet_denominator: int
    is_live: bool
    resolved: bool
    cancelled: bool
    paused: bool
    final_payout: str
    balance: str

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketResponse":
        d, s = ticket.data, ticket.state
        return cls(
            id=d.id,
            owner=d.owner,
            buy_in=str(d.buy_in),
            total_quote=str(d.total_quote),
            payout=str(d.payout),
            fees=str(d.fees),
            round=d.round_index,
            expiry=d.expiry,
            phase=int(ticket.phase()),
            is_system=d.is_system,
            system_bet_denominator=d.system_bet_denominator,
            is_live=d.is_live,
            resolved=s.resolved,
            cancelled=s.cancelled,
            paused=s.paused,
            final_payout=str(s.final_payout),
            balance=str(ticket.balance()),
        )


class SetResultsRequest(BaseModel):
    game_ids: list[str] = Field(min_length=1)
    type_ids: list[int]
    player_ids: list[int]
    results: list[list[int]]


class SetResultTypesRequest(BaseModel):
    type_ids: list[int] = Field(min_length=1)
    result_types: list[int]
