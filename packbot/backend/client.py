from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from packbot.backend.models import Run, RunState, ThreadMessage, ToolOutput
from packbot.errors import BackendError

logger = logging.getLogger(__name__)


class BackendClient:
    """Thin client for the assistant backend (threads, messages, runs).

    Appending a message to a thread starts a run; the returned payload is the
    run object whose ``status`` drives the tool dispatch loop.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        assistant_id: str = "",
    ):
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._assistant_id = assistant_id

    @property
    def assistant_id(self) -> str:
        return self._assistant_id

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{endpoint}"
        headers = {"X-API-Key": self._api_key, **kwargs.pop("headers", {})}
        try:
            resp = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"Backend request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error("Backend API error [%d] %s %s: %s", resp.status_code, method, endpoint, resp.text[:300])
            raise BackendError(
                f"Backend API error ({resp.status_code})", status_code=resp.status_code
            )

        text = resp.text
        if not text:
            return {}
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def create_thread(self, assistant_id: str | None = None) -> str:
        asst_id = assistant_id or self._assistant_id
        if not asst_id:
            raise BackendError("No assistant id configured")
        data = await self._request("POST", f"/assistants/{asst_id}/threads", json={})
        thread_id = data.get("thread_id") if isinstance(data, dict) else None
        if not thread_id:
            raise BackendError("Backend did not return a thread id")
        logger.info("Created thread %s (assistant %s)", thread_id, asst_id)
        return str(thread_id)

    async def add_message(self, thread_id: str, role: str, content: str) -> Run:
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            data={"role": role, "content": content},
        )
        return Run.from_payload(data)

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str | None, outputs: list[ToolOutput]
    ) -> Run:
        """Send every output as a tool-role message; the last reply is the next run state."""
        last: Any = None
        for output in outputs:
            form = {"role": "tool", "tool_call_id": output.tool_call_id, "content": output.output}
            if run_id:
                form["run_id"] = run_id
            last = await self._request("POST", f"/threads/{thread_id}/messages", data=form)
        if last is None:
            return Run(run_id=run_id, status=RunState.QUEUED)
        return Run.from_payload(last)

    async def get_run(self, thread_id: str, run_id: str | None) -> Run | None:
        """Refresh a run's status. Returns None when the backend cannot poll runs."""
        if not run_id:
            return None
        try:
            data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        except BackendError as e:
            if e.status_code in (404, 405):
                return None
            raise
        return Run.from_payload(data)

    async def get_thread_messages(self, thread_id: str) -> list[ThreadMessage]:
        data = await self._request("GET", f"/threads/{thread_id}")
        messages = data.get("messages") if isinstance(data, dict) else None
        return [ThreadMessage.from_payload(m) for m in messages or [] if isinstance(m, dict)]

    async def get_latest_response(self, thread_id: str) -> str:
        """Text of the last message if the assistant wrote it, else an empty string."""
        messages = await self.get_thread_messages(thread_id)
        if not messages or messages[-1].role != "assistant":
            return ""
        return messages[-1].content

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        tools: list[dict],
        model: str,
        description: str = "",
    ) -> str:
        data = await self._request(
            "POST",
            "/assistants",
            json={
                "name": name,
                "model": model,
                "description": description,
                "instructions": instructions,
                "tools": tools,
            },
        )
        assistant_id = data.get("assistant_id") if isinstance(data, dict) else None
        if not assistant_id:
            raise BackendError("Backend did not return an assistant id")
        return str(assistant_id)

    async def is_available(self) -> bool:
        try:
            resp = await self._http.get(
                f"{self._base_url}/assistants",
                headers={"X-API-Key": self._api_key},
                timeout=5.0,
            )
            return resp.status_code == 200
        except httpx.HTTPError:
            return False
