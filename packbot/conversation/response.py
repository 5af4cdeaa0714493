from __future__ import annotations

from typing import Any

from packbot.formatting.payload import extract_json_payload
from packbot.models import ChatReply, QuickAction

CARD_TYPES = frozenset({"trail_options", "gear_analysis"})
DEFAULT_CARD_MESSAGE = "Here is what I found:"

OUT_OF_SCOPE_MESSAGE = (
    "I'm PackBot. I can only help with hiking and trail planning, trip logistics and "
    "gear packing. Ask me about a hike you want to do, your trip dates or location, "
    "or what gear you have."
)
OUT_OF_SCOPE_ACTIONS = ("Find a hike nearby", "Plan a weekend trip", "Analyze my gear closet")

APOLOGY_MESSAGE = (
    "Sorry, I ran into a problem while working on that. Please try again in a moment."
)


def normalize_quick_actions(raw: Any) -> list[QuickAction]:
    """Accept plain strings or {label, value} mappings; drop anything else."""
    if not isinstance(raw, list):
        return []
    actions = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            actions.append(QuickAction(label=item, value=item))
        elif isinstance(item, dict):
            label = item.get("label") or item.get("value")
            if isinstance(label, str) and label.strip():
                value = item.get("value")
                actions.append(QuickAction(label=label, value=value if isinstance(value, str) else label))
    return actions


def is_card_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("type") in CARD_TYPES


def shape_reply(text: str, role: str = "assistant") -> ChatReply:
    """Turn assistant text into a reply, promoting UI-card payloads.

    Malformed or non-card JSON is left as plain prose.
    """
    payload = extract_json_payload(text)
    if is_card_payload(payload):
        message = payload.get("message")
        return ChatReply(
            role=role,
            message=message if isinstance(message, str) and message else DEFAULT_CARD_MESSAGE,
            is_json=True,
            data=payload,
            quick_actions=normalize_quick_actions(payload.get("quick_actions")),
        )
    return ChatReply(role=role, message=text)


def out_of_scope_reply() -> ChatReply:
    return ChatReply(
        message=OUT_OF_SCOPE_MESSAGE,
        quick_actions=[QuickAction(label=a, value=a) for a in OUT_OF_SCOPE_ACTIONS],
    )


def apology_reply() -> ChatReply:
    return ChatReply(message=APOLOGY_MESSAGE)
