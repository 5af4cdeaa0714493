from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass(frozen=True)
class ToolContext:
    """Per-turn data handed to every tool handler."""

    user_id: str


ToolHandler = Callable[[ToolContext, dict[str, Any]], Awaitable[Any]]


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler


@dataclass
class ToolResult:
    tool_name: str
    payload: Any = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_output(self) -> Any:
        """Value reported back to the backend: the payload, or ``{"error": ...}``."""
        if self.error is not None:
            return {"error": self.error}
        return self.payload
