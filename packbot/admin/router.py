import logging

from fastapi import APIRouter, HTTPException, Request

from packbot.dependencies import get_repository
from packbot.models import ResetThreadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.post("/users/{user_id}/reset-thread", response_model=ResetThreadResponse)
async def reset_thread(request: Request, user_id: str) -> ResetThreadResponse:
    """Drop the user's durable thread; the next message starts a fresh one."""
    repository = get_repository(request)
    if await repository.get_user(user_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown user: {user_id}")
    cleared = await repository.clear_thread_ids(user_id) > 0
    logger.info("Thread reset for %s (cleared=%s)", user_id, cleared)
    return ResetThreadResponse(user_id=user_id, cleared=cleared)
