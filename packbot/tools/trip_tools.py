from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from packbot.tools.models import ToolContext
from packbot.weather.open_meteo import normalize_date

if TYPE_CHECKING:
    from packbot.database.repository import Repository
    from packbot.tools.registry import ToolRegistry
    from packbot.weather.open_meteo import OpenMeteoClient

logger = logging.getLogger(__name__)

TRIP_TYPES = ("DAY_HIKE", "OVERNIGHT", "MULTI_DAY", "THRU_HIKE", "OTHER")
DIFFICULTIES = ("EASY", "MODERATE", "HARD", "EXTREME")


def _optional_float(args: dict[str, Any], name: str) -> float | None:
    value = args.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number") from None


def _required_str(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Missing required field: {name}")
    return value.strip()


def _enum_value(args: dict[str, Any], name: str, allowed: tuple[str, ...], default: str) -> str:
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    value = str(raw).strip().upper().replace(" ", "_").replace("-", "_")
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)}")
    return value


def register(
    registry: ToolRegistry,
    repository: Repository,
    weather: OpenMeteoClient | None = None,
) -> None:
    async def create_trip(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        name = _required_str(args, "name")
        start_date = normalize_date(_required_str(args, "start_date"))
        end_date = normalize_date(args.get("end_date") or start_date)
        if end_date < start_date:
            raise ValueError("end_date is before start_date")

        latitude = _optional_float(args, "latitude")
        longitude = _optional_float(args, "longitude")
        trip = await repository.create_trip(
            organizer_id=ctx.user_id,
            name=name,
            location=str(args.get("location") or ""),
            start_date=start_date,
            end_date=end_date,
            type=_enum_value(args, "type", TRIP_TYPES, "DAY_HIKE"),
            difficulty=_enum_value(args, "difficulty", DIFFICULTIES, "MODERATE"),
            distance=_optional_float(args, "distance"),
            elevation_gain=_optional_float(args, "elevation_gain"),
            description=str(args.get("description") or ""),
            external_url=args.get("external_url") or None,
            latitude=latitude,
            longitude=longitude,
        )
        logger.info("Trip %s created for user %s", trip.id, ctx.user_id)

        result: dict[str, Any] = {
            "success": True,
            "trip_id": trip.id,
            "message": f'Trip "{trip.name}" created successfully!',
        }
        if weather is not None and latitude is not None and longitude is not None:
            try:
                result["weather"] = await weather.trip_summary(
                    latitude, longitude, trip.start_date, trip.end_date
                )
            except Exception:
                logger.exception("Weather summary for trip %s failed", trip.id)
        return result

    registry.register_tool(
        name="create_trip",
        description=(
            "Create a new hiking trip for the user. Only call this after the user "
            "explicitly confirmed a specific trail and date."
        ),
        parameters={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "location": {"type": "string"},
                "start_date": {"type": "string", "description": "ISO date (YYYY-MM-DD)"},
                "end_date": {"type": "string", "description": "ISO date (YYYY-MM-DD)"},
                "type": {"type": "string", "enum": list(TRIP_TYPES)},
                "difficulty": {"type": "string", "enum": list(DIFFICULTIES)},
                "distance": {"type": "number", "description": "Distance in km"},
                "elevation_gain": {"type": "number", "description": "Elevation gain in meters"},
                "description": {"type": "string"},
                "external_url": {"type": "string", "description": "Link to a trail or park page"},
                "latitude": {"type": "number", "description": "Latitude of the trailhead"},
                "longitude": {"type": "number", "description": "Longitude of the trailhead"},
            },
            "required": ["name", "location", "start_date", "end_date", "difficulty"],
        },
        handler=create_trip,
    )
