import pytest

from packbot.errors import ToolRegistryError
from packbot.tools import TOOL_NAMES
from packbot.tools.models import ToolContext, ToolResult
from packbot.tools.registry import ToolRegistry

CTX = ToolContext(user_id="user-1")
SCHEMA = {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]}


async def _echo(ctx: ToolContext, args: dict) -> dict:
    return {"user": ctx.user_id, "text": args["text"]}


async def _explode(ctx: ToolContext, args: dict) -> dict:
    raise RuntimeError("disk on fire")


async def _bare_error(ctx: ToolContext, args: dict) -> dict:
    raise KeyError


def _make_registry() -> ToolRegistry:
    reg = ToolRegistry()
    reg.register_tool("echo", "Echo text back", SCHEMA, _echo)
    return reg


def test_register_and_lookup():
    reg = _make_registry()
    assert reg.has_tools()
    assert reg.names() == ["echo"]
    assert reg.get("echo").description == "Echo text back"
    assert reg.get("missing") is None
    assert not ToolRegistry().has_tools()


def test_duplicate_registration_rejected():
    reg = _make_registry()
    with pytest.raises(ToolRegistryError, match="already registered"):
        reg.register_tool("echo", "again", SCHEMA, _echo)


def test_tool_schemas():
    schemas = _make_registry().get_tool_schemas()
    assert schemas == [
        {
            "type": "function",
            "function": {"name": "echo", "description": "Echo text back", "parameters": SCHEMA},
        }
    ]


def test_validate_reports_missing_and_unknown():
    reg = _make_registry()
    reg.validate(["echo"])
    with pytest.raises(ToolRegistryError, match=r"missing: \['other'\]"):
        reg.validate(["echo", "other"])
    with pytest.raises(ToolRegistryError, match=r"unknown: \['echo'\]"):
        reg.validate([])


async def test_execute_success():
    result = await _make_registry().execute("echo", CTX, {"text": "hi"})
    assert result.success
    assert result.payload == {"user": "user-1", "text": "hi"}
    assert result.to_output() == {"user": "user-1", "text": "hi"}


async def test_execute_unknown_tool():
    result = await _make_registry().execute("teleport", CTX, {})
    assert not result.success
    assert result.to_output() == {"error": "Unknown tool: teleport"}


async def test_execute_handler_exception_becomes_error():
    reg = ToolRegistry()
    reg.register_tool("explode", "Always fails", {}, _explode)
    reg.register_tool("bare", "Fails without a message", {}, _bare_error)

    result = await reg.execute("explode", CTX, {})
    assert result.to_output() == {"error": "disk on fire"}

    result = await reg.execute("bare", CTX, {})
    assert result.error == "KeyError"


def test_tool_result_output():
    assert ToolResult(tool_name="x", payload=[1, 2]).to_output() == [1, 2]
    assert ToolResult(tool_name="x", error="bad").to_output() == {"error": "bad"}


async def test_builtin_registry_matches_contract(tool_registry):
    assert sorted(tool_registry.names()) == sorted(TOOL_NAMES)
    for schema in tool_registry.get_tool_schemas():
        assert schema["function"]["parameters"]["type"] == "object"
