"""Run/tool-call shapes exchanged with the reasoning backend."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class RunState(StrEnum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"  # terminal, never produced by the run loop itself

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Any = None

    def parsed_arguments(self) -> dict[str, Any]:
        """Arguments as a dict; accepts a JSON string or an already-parsed object."""
        args = self.arguments
        if args is None or args == "":
            return {}
        if isinstance(args, str):
            args = json.loads(args)
        if not isinstance(args, dict):
            raise ValueError(f"Tool arguments must be an object, got {type(args).__name__}")
        return args

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ToolCall:
        func = payload.get("function") or {}
        return cls(
            id=str(payload.get("id") or ""),
            name=str(func.get("name") or payload.get("name") or ""),
            arguments=func.get("arguments", payload.get("arguments")),
        )


@dataclass
class ToolOutput:
    tool_call_id: str
    output: str  # JSON-serialized

    def to_dict(self) -> dict[str, str]:
        return {"tool_call_id": self.tool_call_id, "output": self.output}


@dataclass
class Run:
    run_id: str | None
    status: RunState
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Any) -> Run:
        if not isinstance(payload, dict):
            payload = {}
        raw_status = str(payload.get("status") or "queued").lower()
        try:
            status = RunState(raw_status)
        except ValueError:
            logger.warning("Unknown run status %r, treating as in_progress", raw_status)
            status = RunState.IN_PROGRESS

        calls = payload.get("tool_calls")
        if not calls:
            required = payload.get("required_action") or {}
            calls = (required.get("submit_tool_outputs") or {}).get("tool_calls")
        tool_calls = [ToolCall.from_payload(c) for c in calls or [] if isinstance(c, dict)]

        run_id = payload.get("run_id") or payload.get("id")
        return cls(
            run_id=str(run_id) if run_id else None,
            status=status,
            tool_calls=tool_calls,
            raw=payload,
        )


@dataclass
class ThreadMessage:
    role: str
    content: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ThreadMessage:
        return cls(role=str(payload.get("role") or ""), content=message_text(payload.get("content")))


def message_text(content: Any) -> str:
    """Flatten message content; arrays of text parts are joined by newlines."""
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                text = part.get("text")
                if isinstance(text, dict):
                    parts.append(str(text.get("value") or ""))
                elif isinstance(text, str):
                    parts.append(text)
            elif isinstance(part, str):
                parts.append(part)
        return "\n".join(parts)
    if content is None:
        return ""
    return str(content)
