"""Trading REST API: quotes, trades and ticket settlement."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.amm_common.dependencies import get_caller_account
from src.amm_common.response import ApiResponse, amount_str, success_response
from src.amm_trading.application.schemas import (
    CancelTicketRequest,
    ExpireTicketsRequest,
    QuoteRequest,
    QuoteResponse,
    TicketResponse,
    TradeRequest,
)
from src.amm_trading.application.service import AmmService, get_amm_service

router = APIRouter(tags=["trading"])


def _with_request_id(resp: ApiResponse, request: Request) -> ApiResponse:
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/quote")
async def quote(
    body: QuoteRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    result = await service.trade_quote(body.domain_legs(), int(body.buy_in), body.is_live)
    return _with_request_id(success_response(QuoteResponse.from_quote(result).model_dump()), request)


@router.post("/quote/system")
async def quote_system(
    body: QuoteRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    result = await service.trade_quote_system(
        body.domain_legs(), int(body.buy_in), body.system_bet_denominator, body.is_live
    )
    return _with_request_id(success_response(QuoteResponse.from_quote(result).model_dump()), request)


@router.post("/trade", status_code=201)
async def trade(
    body: TradeRequest,
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    ticket = await service.trade(
        account,
        body.domain_legs(),
        int(body.buy_in),
        int(body.expected_quote),
        int(body.additional_slippage),
        body.is_live,
        body.is_free_bet,
    )
    return _with_request_id(success_response(TicketResponse.from_ticket(ticket).model_dump()), request)


@router.post("/trade/system", status_code=201)
async def trade_system(
    body: TradeRequest,
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    ticket = await service.trade_system_bet(
        account,
        body.domain_legs(),
        int(body.buy_in),
        int(body.expected_quote),
        int(body.additional_slippage),
        body.system_bet_denominator,
        body.is_live,
        body.is_free_bet,
    )
    return _with_request_id(success_response(TicketResponse.from_ticket(ticket).model_dump()), request)


@router.get("/tickets")
async def list_tickets(
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
    active_only: bool = Query(False, description="Only unresolved tickets"),
) -> ApiResponse:
    tickets = service.get_tickets_per_user(account, active_only)
    data = [TicketResponse.from_ticket(t).model_dump() for t in tickets]
    return _with_request_id(success_response(data), request)


@router.get("/tickets/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    ticket = service.get_ticket(ticket_id)
    return _with_request_id(success_response(TicketResponse.from_ticket(ticket).model_dump()), request)


@router.post("/tickets/{ticket_id}/exercise")
async def exercise_ticket(
    ticket_id: str,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    paid = await service.exercise_ticket(ticket_id)
    return _with_request_id(
        success_response({"ticket_id": ticket_id, "paid": amount_str(paid)}), request
    )


@router.post("/tickets/{ticket_id}/cancel")
async def cancel_ticket(
    ticket_id: str,
    body: CancelTicketRequest,
    account: Annotated[str, Depends(get_caller_account)],
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    refund = await service.cancel_ticket(account, ticket_id, [leg.to_domain() for leg in body.legs])
    return _with_request_id(
        success_response({"ticket_id": ticket_id, "refund": amount_str(refund)}), request
    )


@router.post("/tickets/expire")
async def expire_tickets(
    body: ExpireTicketsRequest,
    service: Annotated[AmmService, Depends(get_amm_service)],
    request: Request,
) -> ApiResponse:
    total = await service.expire_tickets(body.ticket_ids)
    return _with_request_id(
        success_response({"expired": len(body.ticket_ids), "forfeited": amount_str(total)}), request
    )
