import logging

from fastapi import APIRouter, HTTPException, Request

from packbot.dependencies import get_orchestrator
from packbot.errors import BackendError, UnknownUserError
from packbot.models import ChatReply, ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat")


@router.post("", response_model=ChatReply)
async def chat(request: Request, body: ChatRequest) -> ChatReply:
    orchestrator = get_orchestrator(request)
    try:
        return await orchestrator.handle_message(body.user_id, body.message)
    except UnknownUserError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/history", response_model=list[ChatReply])
async def history(request: Request, user_id: str) -> list[ChatReply]:
    orchestrator = get_orchestrator(request)
    try:
        return await orchestrator.get_history(user_id)
    except UnknownUserError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except BackendError as e:
        logger.warning("Could not load history for %s: %s", user_id, e)
        raise HTTPException(status_code=502, detail="Chat history is unavailable") from e
