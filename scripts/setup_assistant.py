#!/usr/bin/env python
"""Create the PackBot assistants on the reasoning backend and print their ids.

Usage:
    python scripts/setup_assistant.py [--print-tools]

Reads BACKEND_API_KEY / BACKEND_BASE_URL / BACKEND_MODEL from the
environment or .env. With --print-tools the tool schemas are printed and
nothing is created. Two assistants are created: the tool-bearing chat
assistant and a tool-free scope classifier.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on sys.path when running from scripts/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import httpx

from packbot.backend.client import BackendClient
from packbot.config import Settings
from packbot.conversation.prompts import SYSTEM_PROMPT
from packbot.database.db import init_db
from packbot.database.repository import Repository
from packbot.scope.gate import SCOPE_INSTRUCTIONS
from packbot.tools import register_builtin_tools
from packbot.tools.registry import ToolRegistry
from packbot.weather.open_meteo import OpenMeteoClient


async def build_tool_schemas(http: httpx.AsyncClient) -> list[dict]:
    # Handlers are never invoked here; an in-memory database is enough to build them.
    conn = await init_db(":memory:")
    try:
        registry = ToolRegistry()
        register_builtin_tools(registry, Repository(conn), OpenMeteoClient(http_client=http))
        return registry.get_tool_schemas()
    finally:
        await conn.close()


async def provision(client: BackendClient, tools: list[dict], model: str) -> tuple[str, str]:
    """Return (chat assistant id, scope classifier assistant id)."""
    assistant_id = await client.create_assistant(
        name="PackBot",
        instructions=SYSTEM_PROMPT,
        tools=tools,
        model=model,
        description="AI hiking guide and gear assistant",
    )
    scope_assistant_id = await client.create_assistant(
        name="PackBot scope classifier",
        instructions=SCOPE_INSTRUCTIONS,
        tools=[],
        model=model,
        description="Decides whether a message is in scope for PackBot",
    )
    return assistant_id, scope_assistant_id


async def _setup(print_tools: bool) -> int:
    async with httpx.AsyncClient(timeout=60.0) as http:
        tools = await build_tool_schemas(http)
        if print_tools:
            print(json.dumps(tools, indent=2))
            return 0

        settings = Settings()
        client = BackendClient(
            http_client=http,
            base_url=settings.backend_base_url,
            api_key=settings.backend_api_key,
        )
        assistant_id, scope_assistant_id = await provision(client, tools, settings.backend_model)

    print(f"Assistants created: {assistant_id} (chat), {scope_assistant_id} (scope)")
    print("Add these to your .env file:")
    print(f"BACKEND_ASSISTANT_ID={assistant_id}")
    print(f"SCOPE_ASSISTANT_ID={scope_assistant_id}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision the PackBot assistant.")
    parser.add_argument(
        "--print-tools", action="store_true", help="Print tool schemas and exit"
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(_setup(args.print_tools)))


if __name__ == "__main__":
    main()
