"""Risk REST API — read-only exposure queries and pre-trade checks."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.amm_common.markets import MarketKey
from src.amm_common.response import ApiResponse, amount_str, success_response
from src.amm_trading.application.schemas import QuoteRequest
from src.amm_trading.application.service import AmmService, get_amm_service

router = APIRouter(prefix="/risk", tags=["risk"])


@router.post("/check")
async def check_risks(
    body: QuoteRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    denominator = body.system_bet_denominator
    status, flags = service.risk_manager.check_risks(
        body.domain_legs(), int(body.buy_in), body.is_live, denominator > 0, denominator
    )
    resp = success_response({"risk_status": status.value, "out_of_liquidity": flags})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/exposure/{game_id}/{type_id}/{player_id}")
async def get_market_exposure(
    game_id: str,
    type_id: int,
    player_id: int,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
    positions: int = Query(2, ge=1, le=64, description="Number of positions in the market"),
) -> ApiResponse:
    key = MarketKey(game_id, type_id, player_id)
    exposures = service.risk_manager.ledger.market_exposures(key, positions)
    resp = success_response({
        "game_id": game_id,
        "type_id": type_id,
        "player_id": player_id,
        "exposures": [amount_str(e) for e in exposures],
    })
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/exposure/{game_id}")
async def get_game_spend(
    game_id: str,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    spent = service.risk_manager.ledger.spent_on_game(game_id)
    resp = success_response({"game_id": game_id, "spent": amount_str(spent)})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
