"""Result feed REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.amm_common.enums import ResultType
from src.amm_common.errors import InvalidResultInputError
from src.amm_common.response import ApiResponse, success_response
from src.amm_trading.application.schemas import SetResultsRequest, SetResultTypesRequest
from src.amm_trading.application.service import AmmService, get_amm_service

router = APIRouter(prefix="/results", tags=["results"])


@router.post("/types")
async def set_result_types(
    body: SetResultTypesRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    try:
        result_types = [ResultType(rt) for rt in body.result_types]
    except ValueError as exc:
        raise InvalidResultInputError(str(exc)) from exc
    await service.set_result_types(body.type_ids, result_types)
    resp = success_response({"type_ids": body.type_ids})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("")
async def set_results(
    body: SetResultsRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    written = await service.set_results(body.game_ids, body.type_ids, body.player_ids, body.results)
    resp = success_response({"written": written, "submitted": len(body.game_ids)})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/games/{game_id}/cancel")
async def cancel_game(
    game_id: str,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    await service.cancel_game(game_id)
    resp = success_response({"game_id": game_id, "cancelled": True})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{game_id}/{type_id}/{player_id}")
async def get_results(
    game_id: str,
    type_id: int,
    player_id: int,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    results = service.results
    resp = success_response({
        "game_id": game_id,
        "type_id": type_id,
        "player_id": player_id,
        "is_set": results.are_results_per_market_set(game_id, type_id, player_id),
        "results": results.get_results_per_market(game_id, type_id, player_id),
    })
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
