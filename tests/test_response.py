import json
import re
from datetime import date

from packbot.backend.models import ThreadMessage
from packbot.conversation.history import build_history, strip_context
from packbot.conversation.prompts import SYSTEM_PROMPT, build_context_message
from packbot.conversation.response import (
    APOLOGY_MESSAGE,
    DEFAULT_CARD_MESSAGE,
    OUT_OF_SCOPE_ACTIONS,
    apology_reply,
    normalize_quick_actions,
    out_of_scope_reply,
    shape_reply,
)
from packbot.formatting.payload import extract_json_payload
from packbot.models import QuickAction
from packbot.preferences.scheduler import build_single_choice_question
from packbot.preferences.store import create_default_store
from packbot.tools import TOOL_NAMES

TRAIL_CARD = {
    "type": "trail_options",
    "message": "Three options near Boulder:",
    "options": [{"id": "1", "name": "Mesa Trail"}],
    "quick_actions": ["Pick Mesa", {"label": "Show more", "value": "more"}, 7, {"value": ""}],
}


# --- JSON payload extraction ---


def test_extract_fenced_json():
    text = "Sure!\n```json\n{\"a\": 1}\n```\nAnything else?"
    assert extract_json_payload(text) == {"a": 1}


def test_extract_bare_json():
    assert extract_json_payload('  [{"a": 1}]  ') == [{"a": 1}]


def test_extract_json_none():
    assert extract_json_payload("") is None
    assert extract_json_payload("just prose") is None
    assert extract_json_payload("{not: json}") is None


# --- Reply shaping ---


def test_shape_card_reply():
    text = "Here you go:\n```json\n" + json.dumps(TRAIL_CARD) + "\n```"
    reply = shape_reply(text)

    assert reply.is_json is True
    assert reply.message == "Three options near Boulder:"
    assert reply.data == TRAIL_CARD
    assert reply.quick_actions == [
        QuickAction(label="Pick Mesa", value="Pick Mesa"),
        QuickAction(label="Show more", value="more"),
    ]


def test_shape_card_without_message():
    reply = shape_reply(json.dumps({"type": "gear_analysis", "summary": "Mostly ready"}))
    assert reply.is_json is True
    assert reply.message == DEFAULT_CARD_MESSAGE
    assert reply.quick_actions == []


def test_shape_plain_and_non_card_json():
    assert shape_reply("Bring layers.").model_dump() == {
        "role": "assistant",
        "message": "Bring layers.",
        "is_json": False,
        "data": None,
        "quick_actions": [],
    }
    raw = '{"type": "weather", "temp": 12}'
    reply = shape_reply(raw)
    assert reply.is_json is False
    assert reply.message == raw

    broken = '```json\n{"type": "trail_options", \n```'
    assert shape_reply(broken).is_json is False


def test_normalize_quick_actions_rejects_non_list():
    assert normalize_quick_actions("Pick Mesa") == []


def test_out_of_scope_and_apology():
    reply = out_of_scope_reply()
    assert "PackBot" in reply.message
    assert [a.value for a in reply.quick_actions] == list(OUT_OF_SCOPE_ACTIONS)
    assert apology_reply().message == APOLOGY_MESSAGE


# --- Context message ---


def test_context_message():
    store = create_default_store("2026-01-01T00:00:00+00:00")
    content = build_context_message("Plan a hike", store, location="Boulder, CO", today=date(2026, 6, 5))

    assert content.startswith("[Current Context: Today is Fri Jun 05 2026. User Location: Boulder, CO. ")
    assert '"pack_style":{"value":"balanced","confidence":"default"}' in content
    assert "updated_at" not in content
    assert "Ask EXACTLY ONE" not in content
    assert content.endswith("] Plan a hike")


def test_context_message_with_question():
    store = create_default_store()
    question = build_single_choice_question("pack_style")
    content = build_context_message("Packing list please", store, question=question)

    assert "User Location: Unknown." in content
    assert "Ask EXACTLY ONE single-choice preference question before anything else: " + question.text in content
    assert strip_context(content) == "Packing list please"


# --- History ---


def test_history_filters_and_shapes():
    store = create_default_store()
    messages = [
        ThreadMessage(role="system", content="setup"),
        ThreadMessage(role="user", content=build_context_message("Find trails [near Boulder]", store)),
        ThreadMessage(role="assistant", content="```json\n" + json.dumps(TRAIL_CARD) + "\n```"),
        ThreadMessage(role="tool", content='{"tool_call_id": "c1"}'),
        ThreadMessage(role="assistant", content='{"success": true, "trip_id": "t1"}'),
        ThreadMessage(role="assistant", content='{"raw": "dump"}'),
        ThreadMessage(role="assistant", content="[broken json"),
        ThreadMessage(role="assistant", content="[not json]"),
        ThreadMessage(role="assistant", content="Trip created! Want a packing list?"),
    ]

    history = build_history(messages)

    assert [(h.role, h.message, h.is_json) for h in history] == [
        ("user", "Find trails [near Boulder]", False),
        ("assistant", "Three options near Boulder:", True),
        ("assistant", "[broken json", False),
        ("assistant", "Trip created! Want a packing list?", False),
    ]


def test_history_empty():
    assert build_history([]) == []


def test_history_strips_context_when_location_has_brackets():
    store = create_default_store()
    question = build_single_choice_question("rain_tolerance")
    messages = [
        ThreadMessage(role="user", content=build_context_message("Find me a hike", store, location="Whistler [BC]")),
        ThreadMessage(
            role="user",
            content=build_context_message("Pack list?", store, location="]]", question=question),
        ),
    ]

    history = build_history(messages)

    assert [h.message for h in history] == ["Find me a hike", "Pack list?"]


def test_context_message_replaces_brackets_in_location():
    content = build_context_message("hi", create_default_store(), location="Whistler [BC]")
    assert "User Location: Whistler (BC). " in content


def test_system_prompt_capabilities_are_registered_tools():
    capabilities = SYSTEM_PROMPT.split("CAPABILITIES:")[1].split("RULES:")[0]
    assert set(re.findall(r"\((\w+)\)", capabilities)) == set(TOOL_NAMES)
    assert "web" not in capabilities.lower()
