from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from ..schemas import AccountsRequest, AccountsResponse, TransactionsRequest, TransactionsResponse
from ..services.aggregation import AggregationEngine

router = APIRouter(tags=["aggregation"])


def _engine(request: Request) -> AggregationEngine:
    return request.app.state.aggregation


@router.post("/accounts", response_model=AccountsResponse)
async def get_accounts(request: Request, req: Optional[AccountsRequest] = None):
    """Accounts merged across every institution linked to the user."""
    req = req or AccountsRequest()
    user_id = req.resolved_user_id(request.app.state.settings.default_user_id)
    result = await _engine(request).accounts(user_id)
    return AccountsResponse(accounts=result.records)


@router.post("/transactions", response_model=TransactionsResponse)
async def get_transactions(request: Request, req: Optional[TransactionsRequest] = None):
    """One page of transactions per linked institution, merged in link order."""
    req = req or TransactionsRequest()
    result = await _engine(request).transactions(
        req.resolved_user_id(request.app.state.settings.default_user_id),
        start_date=req.start_date,
        end_date=req.end_date,
    )
    return TransactionsResponse(transactions=result.records)


@router.post("/api/accounts", response_model=AccountsResponse)
async def get_accounts_alias(request: Request, req: Optional[AccountsRequest] = None):
    """Legacy alias for /accounts."""
    return await get_accounts(request, req)


@router.post("/api/transactions", response_model=TransactionsResponse)
async def get_transactions_alias(request: Request, req: Optional[TransactionsRequest] = None):
    """Legacy alias for /transactions."""
    return await get_transactions(request, req)
