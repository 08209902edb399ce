"""Liquidity pool REST API — LP deposits/withdrawals and round operations."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.amm_common.dependencies import get_caller_account
from src.amm_common.response import ApiResponse, amount_str, success_response
from src.amm_pool.application.schemas import (
    BatchRequest,
    DepositRequest,
    RoundResponse,
    WithdrawalRequest,
)
from src.amm_trading.application.service import AmmService, get_amm_service

router = APIRouter(prefix="/pool", tags=["pool"])


def _round_data(service: AmmService, round_index: int) -> dict:
    return RoundResponse.from_pool(service.pool, round_index).model_dump()


@router.post("/deposit")
async def deposit(
    body: DepositRequest,
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    await service.deposit(account, int(body.amount))
    next_round = service.pool.round + 1
    resp = success_response({
        "round": next_round,
        "balance": amount_str(service.pool.accounting.balance_of(next_round, account)),
    })
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/withdrawal-request")
async def withdrawal_request(
    body: WithdrawalRequest,
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    share = None if body.share is None else int(body.share)
    await service.withdrawal_request(account, share)
    resp = success_response({"round": service.pool.round, "share": body.share})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/start")
async def start(
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    await service.start_pool()
    resp = success_response(_round_data(service, service.pool.round))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/exercise-batch")
async def exercise_batch(
    body: BatchRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    exercised = await service.exercise_ready_batch(body.batch_size, body.default_round)
    resp = success_response({"exercised": exercised})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/prepare-round-closing")
async def prepare_round_closing(
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    pnl = await service.prepare_round_closing()
    resp = success_response({"round": service.pool.round, "profit_and_loss": amount_str(pnl)})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/process-round-closing-batch")
async def process_round_closing_batch(
    body: BatchRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    processed = await service.process_round_closing_batch(body.batch_size)
    resp = success_response({
        "processed": processed,
        "users_processed_in_round": service.pool.users_processed_in_round,
    })
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/close-round")
async def close_round(
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    closed = service.pool.round
    await service.close_round()
    resp = success_response(_round_data(service, closed))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/rounds/{round_index}")
async def get_round(
    round_index: int,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    resp = success_response(_round_data(service, round_index))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
