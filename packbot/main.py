import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI

from packbot.admin.router import router as admin_router
from packbot.backend.client import BackendClient
from packbot.chat.router import router as chat_router
from packbot.config import Settings
from packbot.conversation.orchestrator import ConversationOrchestrator
from packbot.database.db import init_db
from packbot.database.repository import Repository
from packbot.health.router import router as health_router
from packbot.logging_config import configure_logging
from packbot.preferences.scheduler import QuestionScheduler
from packbot.runloop.loop import RunLoop
from packbot.scope.gate import ScopeGate
from packbot.tools import register_builtin_tools
from packbot.tools.registry import ToolRegistry
from packbot.users.router import router as users_router
from packbot.weather.open_meteo import OpenMeteoClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file or None,
    )

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.backend_timeout, connect=10.0))

    # Database
    Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
    db_conn = await init_db(settings.database_path)
    repository = Repository(db_conn)

    backend_client = BackendClient(
        http_client=http_client,
        base_url=settings.backend_base_url,
        api_key=settings.backend_api_key,
        assistant_id=settings.backend_assistant_id,
    )
    weather_client = OpenMeteoClient(
        http_client=http_client,
        forecast_url=settings.open_meteo_forecast_url,
        geocoding_url=settings.open_meteo_geocoding_url,
        timeout=settings.weather_timeout,
    )

    if settings.scope_classifier_enabled and not settings.scope_assistant_id:
        logger.warning(
            "SCOPE_ASSISTANT_ID not set, scope classifier shares the tool-bearing assistant; "
            "run scripts/setup_assistant.py to create a dedicated one"
        )

    # Tools (validated against the declared contract at startup)
    tool_registry = ToolRegistry()
    register_builtin_tools(tool_registry, repository, weather_client)

    scope_gate = ScopeGate(
        backend=backend_client,
        classifier_enabled=settings.scope_classifier_enabled,
        assistant_id=settings.scope_assistant_id or settings.backend_assistant_id,
        poll_interval=settings.scope_poll_interval,
        timeout=settings.scope_timeout,
        deny_categories=settings.scope_deny_categories,
    )
    run_loop = RunLoop(
        backend=backend_client,
        registry=tool_registry,
        max_iterations=settings.run_max_iterations,
        poll_interval=settings.run_poll_interval,
    )

    app.state.settings = settings
    app.state.http_client = http_client
    app.state.repository = repository
    app.state.backend_client = backend_client
    app.state.weather_client = weather_client
    app.state.tool_registry = tool_registry
    app.state.orchestrator = ConversationOrchestrator(
        repository=repository,
        backend=backend_client,
        scope_gate=scope_gate,
        run_loop=run_loop,
        scheduler=QuestionScheduler(min_turn_gap=settings.min_turns_between_questions),
    )
    logger.info("PackBot started (tools: %s)", ", ".join(tool_registry.names()))

    yield

    await db_conn.close()
    await http_client.aclose()


app = FastAPI(title="PackBot", lifespan=lifespan)
app.include_router(health_router)
app.include_router(chat_router)
app.include_router(users_router)
app.include_router(admin_router)
