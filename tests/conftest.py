import asyncio
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from packbot.backend.models import Run, RunState, ThreadMessage, ToolOutput
from packbot.config import Settings
from packbot.conversation.orchestrator import ConversationOrchestrator
from packbot.database.db import init_db
from packbot.database.repository import Repository
from packbot.main import app
from packbot.preferences.scheduler import QuestionScheduler
from packbot.runloop.loop import RunLoop
from packbot.scope.gate import ScopeGate
from packbot.tools import register_builtin_tools
from packbot.tools.registry import ToolRegistry
from packbot.weather.open_meteo import OpenMeteoClient

TEST_SETTINGS = Settings(
    backend_api_key="test_key",
    backend_base_url="https://backend.test/api",
    backend_assistant_id="asst_test",
    scope_classifier_enabled=False,
    database_path=":memory:",
    log_file="",
)


class FakeBackend:
    """Scripted stand-in for BackendClient.

    ``add_runs`` / ``submit_runs`` / ``poll_runs`` are consumed in order;
    when empty, add/submit return a completed run and polling returns None.
    Each add_message pops one entry from ``replies`` (if any) and appends
    it to the thread as the assistant's answer.
    """

    def __init__(self):
        self.assistant_id = "asst_test"
        self.threads: dict[str, list[ThreadMessage]] = {}
        self.created_threads: list[str] = []
        self.add_runs: list[Run] = []
        self.submit_runs: list[Run] = []
        self.poll_runs: list[Run | None] = []
        self.replies: list[str] = []
        self.submitted: list[list[ToolOutput]] = []
        self.poll_count = 0

    async def create_thread(self, assistant_id: str | None = None) -> str:
        thread_id = f"thread-{len(self.created_threads) + 1}"
        self.created_threads.append(thread_id)
        self.threads[thread_id] = []
        return thread_id

    async def add_message(self, thread_id: str, role: str, content: str) -> Run:
        self.threads.setdefault(thread_id, []).append(ThreadMessage(role=role, content=content))
        if self.replies:
            self.threads[thread_id].append(ThreadMessage(role="assistant", content=self.replies.pop(0)))
        if self.add_runs:
            return self.add_runs.pop(0)
        return Run(run_id="run-1", status=RunState.COMPLETED)

    async def submit_tool_outputs(self, thread_id: str, run_id: str | None, outputs: list[ToolOutput]) -> Run:
        self.submitted.append(list(outputs))
        if self.submit_runs:
            return self.submit_runs.pop(0)
        return Run(run_id=run_id, status=RunState.COMPLETED)

    async def get_run(self, thread_id: str, run_id: str | None) -> Run | None:
        self.poll_count += 1
        if self.poll_runs:
            return self.poll_runs.pop(0)
        return None

    async def get_thread_messages(self, thread_id: str) -> list[ThreadMessage]:
        return list(self.threads.get(thread_id, []))

    async def get_latest_response(self, thread_id: str) -> str:
        messages = self.threads.get(thread_id, [])
        if not messages or messages[-1].role != "assistant":
            return ""
        return messages[-1].content

    async def is_available(self) -> bool:
        return True


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


# --- Async fixtures for unit tests ---


@pytest.fixture
async def db_connection():
    conn = await init_db(":memory:")
    yield conn
    await conn.close()


@pytest.fixture
async def repository(db_connection):
    return Repository(db_connection)


@pytest.fixture
def weather_client() -> OpenMeteoClient:
    return OpenMeteoClient(http_client=AsyncMock())


@pytest.fixture
async def tool_registry(repository, weather_client) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, repository, weather_client)
    return registry


@pytest.fixture
async def orchestrator(repository, fake_backend, tool_registry) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        repository=repository,
        backend=fake_backend,
        scope_gate=ScopeGate(backend=None),
        run_loop=RunLoop(fake_backend, tool_registry, sleep=no_sleep),
        scheduler=QuestionScheduler(),
    )


# --- Sync fixture for TestClient-based integration tests ---


@pytest.fixture
def client(settings: Settings) -> TestClient:
    tmp_dir = tempfile.mkdtemp()
    db_path = str(Path(tmp_dir) / "test.db")

    conn = asyncio.run(init_db(db_path))
    repository = Repository(conn)
    backend = FakeBackend()
    weather = OpenMeteoClient(http_client=MagicMock())

    registry = ToolRegistry()
    register_builtin_tools(registry, repository, weather)

    app.state.settings = settings
    app.state.repository = repository
    app.state.backend_client = backend
    app.state.weather_client = weather
    app.state.tool_registry = registry
    app.state.orchestrator = ConversationOrchestrator(
        repository=repository,
        backend=backend,
        scope_gate=ScopeGate(backend=None),
        run_loop=RunLoop(backend, registry, sleep=no_sleep),
    )

    yield TestClient(app, raise_server_exceptions=False)

    # Stop the aiosqlite worker thread so pytest does not hang on exit.
    conn.stop()
