from __future__ import annotations

from fastapi import Request

from packbot.conversation.orchestrator import ConversationOrchestrator
from packbot.database.repository import Repository


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator
