from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from packbot.errors import UnknownUserError
from packbot.preferences.store import apply_updates, normalize_store, updates_from_payload
from packbot.preferences.vocabulary import PREFERENCE_OPTIONS
from packbot.tools.models import ToolContext

if TYPE_CHECKING:
    from packbot.database.repository import Repository
    from packbot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def register(registry: ToolRegistry, repository: Repository) -> None:
    async def get_user_profile(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        user = await repository.get_user(ctx.user_id)
        if user is None:
            raise UnknownUserError(ctx.user_id)
        store, _ = normalize_store(user.preferences)
        return {
            "name": user.full_name or "User",
            "location": user.location or "Unknown",
            "preferences": store.profile_snapshot(),
        }

    async def update_user_preferences(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        user = await repository.get_user(ctx.user_id)
        if user is None:
            raise UnknownUserError(ctx.user_id)

        store, _ = normalize_store(user.preferences)
        result = apply_updates(store, updates_from_payload(args.get("updates")))
        if result.applied or result.conflicts_added:
            await repository.save_preferences(ctx.user_id, result.store.to_document())
            logger.info(
                "Preferences updated via tool for %s: %s",
                ctx.user_id,
                [u.key for u in result.applied],
            )
        return {
            "success": True,
            "applied": [u.to_dict() for u in result.applied],
            "conflicts": [c.to_dict() for c in result.conflicts_added],
        }

    registry.register_tool(
        name="get_user_profile",
        description="Get the user's name, home location and stored hiking preferences with confidence",
        parameters={"type": "object", "properties": {}},
        handler=get_user_profile,
    )
    registry.register_tool(
        name="update_user_preferences",
        description=(
            "Persist stable hiking preferences the user stated. Use confidence 'confirmed' "
            "only for explicit statements; one-off trip choices are not preferences."
        ),
        parameters={
            "type": "object",
            "properties": {
                "updates": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "key": {"type": "string", "enum": list(PREFERENCE_OPTIONS)},
                            "value": {"type": "string"},
                            "confidence": {"type": "string", "enum": ["inferred", "confirmed"]},
                            "evidence": {"type": "string"},
                        },
                        "required": ["key", "value"],
                    },
                },
            },
            "required": ["updates"],
        },
        handler=update_user_preferences,
    )
