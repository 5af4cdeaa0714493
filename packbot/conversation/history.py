from __future__ import annotations

import json
import re

from packbot.backend.models import ThreadMessage
from packbot.conversation.response import is_card_payload, shape_reply
from packbot.models import ChatReply

_RE_CONTEXT_PREFIX = re.compile(
    r"^\[Current Context:.*?User Preferences \(stable profile\): \{.*?\}\.[^\]]*\]\s*",
    re.DOTALL,
)
_TOOL_ECHO_MARKERS = ('"tool_call_id"', '"success":true', '"success": true')


def strip_context(content: str) -> str:
    return _RE_CONTEXT_PREFIX.sub("", content, count=1)


def _is_hidden(content: str) -> bool:
    """Tool outputs echoed into the thread and raw data dumps are not shown."""
    trimmed = content.strip()
    if any(marker in trimmed for marker in _TOOL_ECHO_MARKERS):
        return True
    looks_like_json = (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    )
    if not looks_like_json:
        return False
    try:
        return not is_card_payload(json.loads(trimmed))
    except ValueError:
        return True


def build_history(messages: list[ThreadMessage]) -> list[ChatReply]:
    history = []
    for msg in messages:
        if msg.role not in ("user", "assistant"):
            continue
        content = strip_context(msg.content) if msg.role == "user" else msg.content
        if _is_hidden(content):
            continue
        if msg.role == "user":
            history.append(ChatReply(role="user", message=content))
        else:
            history.append(shape_reply(content))
    return history
