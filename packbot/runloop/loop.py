"""Drive one assistant turn to completion.

The backend is push/poll: appending a message starts a run, and every
tool-output submission returns the next run state. The loop is bounded by
an iteration count; every round (a tool batch or a wait) consumes one
iteration, so a backend that never settles cannot keep a turn alive forever.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from packbot.backend.models import Run, RunState, ToolCall, ToolOutput
from packbot.errors import RunFailedError, RunIncompleteError, RunProtocolError
from packbot.tools.models import ToolContext

if TYPE_CHECKING:
    from packbot.backend.client import BackendClient
    from packbot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_RUN_ITERATIONS = 10
RUN_POLL_INTERVAL = 1.0


class RunLoop:
    def __init__(
        self,
        backend: BackendClient,
        registry: ToolRegistry,
        max_iterations: int = MAX_RUN_ITERATIONS,
        poll_interval: float = RUN_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._backend = backend
        self._registry = registry
        self._max_iterations = max_iterations
        self._poll_interval = poll_interval
        self._sleep = sleep

    async def run(self, thread_id: str, content: str, ctx: ToolContext) -> str:
        """Submit ``content`` and return the assistant's final text.

        Raises RunFailedError, RunProtocolError or RunIncompleteError; callers
        turn those into a user-facing apology.
        """
        run = await self._backend.add_message(thread_id, "user", content)
        run = await self.drive(thread_id, run, ctx)

        text = await self._backend.get_latest_response(thread_id)
        if not text:
            raise RunIncompleteError(
                f"No assistant reply on thread {thread_id} (last run status: {run.status})"
            )
        return text

    async def drive(self, thread_id: str, run: Run, ctx: ToolContext) -> Run:
        """Advance ``run`` until it completes or the iteration cap is reached."""
        for iteration in range(1, self._max_iterations + 1):
            logger.debug("Run %s status %s (iteration %d)", run.run_id, run.status, iteration)

            if run.status.is_terminal:
                if run.status == RunState.COMPLETED:
                    return run
                raise RunFailedError(f"Run {run.run_id} ended with status {run.status}")

            if run.status == RunState.REQUIRES_ACTION:
                if not run.tool_calls:
                    raise RunProtocolError(
                        f"Run {run.run_id} requires action but exposes no tool calls"
                    )
                outputs = [await self._dispatch(call, ctx) for call in run.tool_calls]
                run = await self._backend.submit_tool_outputs(thread_id, run.run_id, outputs)
                continue

            # queued / in_progress
            await self._sleep(self._poll_interval)
            refreshed = await self._backend.get_run(thread_id, run.run_id)
            if refreshed is not None:
                run = refreshed

        logger.warning(
            "Run %s did not complete within %d iterations (last status: %s)",
            run.run_id, self._max_iterations, run.status,
        )
        return run

    async def _dispatch(self, call: ToolCall, ctx: ToolContext) -> ToolOutput:
        logger.info("Calling tool %s (call %s)", call.name, call.id)
        try:
            arguments = call.parsed_arguments()
        except ValueError as e:
            output: object = {"error": f"Invalid arguments for {call.name}: {e}"}
        else:
            result = await self._registry.execute(call.name, ctx, arguments)
            output = result.to_output()
        return ToolOutput(
            tool_call_id=call.id,
            output=json.dumps(output, ensure_ascii=False, default=str),
        )
