from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from packbot.models import GearItem
from packbot.tools.models import ToolContext

if TYPE_CHECKING:
    from packbot.database.repository import Repository
    from packbot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_RE_EMBEDDED_ID = re.compile(r"\[id:([^\]]+)\]")

NO_GEAR_MESSAGE = "User has no gear in closet."


def format_gear_line(item: GearItem) -> str:
    """One compact line per item; the trailing ``[id:...]`` tag lets the id be recovered."""
    details = [item.category, f"{item.weight_grams}g" if item.weight_grams is not None else "N/A"]
    if item.temp_rating is not None:
        details.append(f"{item.temp_rating}F")
    details.append(item.condition)
    return f"{item.name} ({', '.join(details)}) [id:{item.id}]"


def resolve_gear_reference(ref: Any) -> tuple[str | None, int, bool]:
    """Return (gear_id, quantity, is_shared) from an id, a gear line, or a mapping."""
    quantity, is_shared = 1, False
    if isinstance(ref, dict):
        raw = ref.get("gear_id") or ref.get("gearId") or ref.get("id")
        try:
            quantity = max(1, int(ref.get("quantity") or 1))
        except (TypeError, ValueError):
            quantity = 1
        is_shared = bool(ref.get("is_shared") or ref.get("isShared"))
    else:
        raw = ref

    if not isinstance(raw, str) or not raw.strip():
        return None, quantity, is_shared
    match = _RE_EMBEDDED_ID.search(raw)
    gear_id = match.group(1).strip() if match else raw.strip()
    return gear_id or None, quantity, is_shared


def register(registry: ToolRegistry, repository: Repository) -> None:
    async def get_user_gear(ctx: ToolContext, args: dict[str, Any]) -> list[str] | dict[str, str]:
        items = await repository.list_gear(ctx.user_id)
        if not items:
            return {"message": NO_GEAR_MESSAGE}
        return [format_gear_line(item) for item in items]

    async def add_gear_to_trip(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        trip_id = args.get("trip_id")
        if not isinstance(trip_id, str) or not trip_id.strip():
            raise ValueError("Missing required field: trip_id")
        trip = await repository.get_trip(trip_id.strip())
        if trip is None:
            raise ValueError(f"Trip not found: {trip_id}")

        refs = args.get("gear_items")
        if not isinstance(refs, list):
            refs = [refs] if refs else []

        count = 0
        for ref in refs:
            gear_id, quantity, is_shared = resolve_gear_reference(ref)
            if gear_id is None:
                logger.warning("Skipping gear reference without an id: %r", ref)
                continue
            if await repository.get_gear(gear_id) is None:
                logger.warning("Skipping unknown gear id %s", gear_id)
                continue
            if await repository.add_trip_gear(trip.id, gear_id, quantity=quantity, is_shared=is_shared):
                count += 1

        return {"success": True, "count": count, "message": f"Added {count} items to trip."}

    registry.register_tool(
        name="get_user_gear",
        description=(
            "List the user's gear closet. Each line ends with [id:...]; pass the line "
            "or the id to add_gear_to_trip."
        ),
        parameters={"type": "object", "properties": {}},
        handler=get_user_gear,
    )
    registry.register_tool(
        name="add_gear_to_trip",
        description="Attach gear items from the user's closet to a trip",
        parameters={
            "type": "object",
            "properties": {
                "trip_id": {"type": "string"},
                "gear_items": {
                    "type": "array",
                    "description": "Gear ids, gear lines from get_user_gear, or objects",
                    "items": {
                        "anyOf": [
                            {"type": "string"},
                            {
                                "type": "object",
                                "properties": {
                                    "gear_id": {"type": "string"},
                                    "quantity": {"type": "number"},
                                    "is_shared": {"type": "boolean"},
                                },
                            },
                        ]
                    },
                },
            },
            "required": ["trip_id", "gear_items"],
        },
        handler=add_gear_to_trip,
    )
