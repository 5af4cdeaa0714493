from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from packbot.errors import ToolRegistryError
from packbot.tools.models import ToolContext, ToolDefinition, ToolHandler, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
        handler: ToolHandler,
    ) -> None:
        if name in self._tools:
            raise ToolRegistryError(f"Tool already registered: {name}")
        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            parameters=parameters,
            handler=handler,
        )
        logger.info("Registered tool: %s", name)

    def validate(self, expected: Iterable[str]) -> None:
        """Fail fast when the registered set differs from the declared tool contract."""
        expected_names = set(expected)
        registered = set(self._tools)
        missing = sorted(expected_names - registered)
        unknown = sorted(registered - expected_names)
        if missing or unknown:
            raise ToolRegistryError(
                f"Tool registry mismatch (missing: {missing or 'none'}, unknown: {unknown or 'none'})"
            )
        logger.info("Tool registry validated: %d tools", len(registered))

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def has_tools(self) -> bool:
        return len(self._tools) > 0

    def get_tool_schemas(self) -> list[dict]:
        """Return tool schemas in the function-tool format used for assistant setup."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in self._tools.values()
        ]

    async def execute(self, name: str, ctx: ToolContext, arguments: dict[str, Any]) -> ToolResult:
        """Run a tool; failures come back as data, never as exceptions."""
        tool = self.get(name)
        if tool is None:
            logger.warning("Backend requested unknown tool: %s", name)
            return ToolResult(tool_name=name, error=f"Unknown tool: {name}")
        try:
            payload = await tool.handler(ctx, arguments)
            return ToolResult(tool_name=name, payload=payload)
        except Exception as e:
            logger.exception("Tool %s execution failed", name)
            return ToolResult(tool_name=name, error=str(e) or type(e).__name__)
