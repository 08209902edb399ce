# src/amm_admin/api/router.py
"""Admin REST API — operator controls and state snapshots."""
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.amm_common.database import get_db_session
from src.amm_common.response import ApiResponse, amount_str, success_response
from src.amm_trading.application.schemas import WeiStr
from src.amm_trading.application.service import AmmService, get_amm_service
from src.amm_trading.application.snapshot import snapshot_state

router = APIRouter(prefix="/admin", tags=["admin"])


class MintRequest(BaseModel):
    account: str = Field(min_length=1, max_length=128)
    amount: WeiStr


class FundDefaultProviderRequest(BaseModel):
    source: str = Field(min_length=1, max_length=128)
    amount: WeiStr


class PauseRequest(BaseModel):
    paused: bool


class MarketCapRequest(BaseModel):
    game_id: str
    type_id: int
    player_id: int = 0
    line: int = 0
    cap: WeiStr


@router.post("/snapshot")
async def snapshot(
    service: Annotated[AmmService, Depends(get_amm_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await snapshot_state(service, db)
    return success_response(result.__dict__)


@router.post("/mint")
async def mint(
    body: MintRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    await service.mint(body.account, int(body.amount))
    return success_response({"account": body.account, "balance": amount_str(service.balance_of(body.account))})


@router.post("/default-provider/fund")
async def fund_default_provider(
    body: FundDefaultProviderRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    await service.fund_default_provider(body.source, int(body.amount))
    return success_response({"balance": amount_str(service.default_provider.balance())})


@router.post("/games/{game_id}/pause")
async def pause_game(
    game_id: str,
    body: PauseRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    await service.set_paused_game(game_id, body.paused)
    return success_response({"game_id": game_id, "paused": body.paused})


@router.post("/markets/cap")
async def set_market_cap(
    body: MarketCapRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    await service.set_cap_per_market(body.game_id, body.type_id, body.player_id, body.line, int(body.cap))
    return success_response({"game_id": body.game_id, "type_id": body.type_id, "cap": body.cap})


@router.post("/tickets/{ticket_id}/pause")
async def pause_ticket(
    ticket_id: str,
    body: PauseRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    await service.set_ticket_paused(ticket_id, body.paused)
    return success_response({"ticket_id": ticket_id, "paused": body.paused})


@router.post("/tickets/{ticket_id}/mark-lost")
async def mark_ticket_as_lost(
    ticket_id: str,
    service: Annotated[AmmService, Depends(get_amm_service)],
) -> ApiResponse:
    forfeited = await service.mark_ticket_as_lost(ticket_id)
    return success_response({"ticket_id": ticket_id, "forfeited": amount_str(forfeited)})
