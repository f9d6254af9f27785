from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from ..schemas import LinkExchangeRequest, LinkExchangeResponse, LinkSessionRequest
from ..services.linking import LinkLifecycleManager

router = APIRouter(tags=["link"])


def _manager(request: Request) -> LinkLifecycleManager:
    return request.app.state.linking


@router.post("/link/session")
async def create_link_session(request: Request, req: Optional[LinkSessionRequest] = None) -> Dict[str, Any]:
    """Start a link flow and hand the provider's link-token payload to the client."""
    req = req or LinkSessionRequest()
    settings = request.app.state.settings
    session = await _manager(request).begin_link(req.resolved_user_id(settings.default_user_id))
    return session.payload


@router.post("/link/exchange", response_model=LinkExchangeResponse)
async def exchange_link_token(request: Request, req: Optional[LinkExchangeRequest] = None):
    req = req or LinkExchangeRequest()
    settings = request.app.state.settings
    await _manager(request).complete_link(
        req.resolved_user_id(settings.default_user_id),
        req.transient_proof,
        req.institution_label or settings.default_institution_label,
    )
    return LinkExchangeResponse(success=True)


@router.post("/api/create_link_token")
async def create_link_token_alias(request: Request, req: Optional[LinkSessionRequest] = None) -> Dict[str, Any]:
    """Legacy alias for /link/session."""
    return await create_link_session(request, req)


@router.post("/api/exchange_public_token", response_model=LinkExchangeResponse)
async def exchange_public_token_alias(request: Request, req: Optional[LinkExchangeRequest] = None):
    """Legacy alias for /link/exchange."""
    return await exchange_link_token(request, req)
