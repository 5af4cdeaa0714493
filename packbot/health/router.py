import logging

from fastapi import APIRouter, Request

from packbot.dependencies import get_repository
from packbot.models import HealthChecks, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    backend_ok = await request.app.state.backend_client.is_available()
    database_ok = await get_repository(request).ping()
    if not (backend_ok and database_ok):
        logger.warning("Health degraded (backend=%s, database=%s)", backend_ok, database_ok)
    return HealthResponse(
        status="ok" if backend_ok and database_ok else "degraded",
        checks=HealthChecks(backend=backend_ok, database=database_ok),
    )
