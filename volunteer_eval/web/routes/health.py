from __future__ import annotations

from fastapi import APIRouter

from volunteer_eval.infrastructure.config import get_settings
from volunteer_eval.web.schemas import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok", version=settings.app.version, environment=settings.app.environment
    )
