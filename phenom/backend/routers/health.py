from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(
        status="healthy",
        environment=request.app.state.settings.environment_label,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
