from __future__ import annotations

from typing import TYPE_CHECKING, Any

from packbot.tools.models import ToolContext
from packbot.weather.open_meteo import choose_forecast_mode

if TYPE_CHECKING:
    from packbot.tools.registry import ToolRegistry
    from packbot.weather.open_meteo import OpenMeteoClient


def register(registry: ToolRegistry, weather: OpenMeteoClient) -> None:
    async def geocode_location(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        name = args.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Missing required field: name")
        try:
            limit = int(args.get("limit") or 5)
        except (TypeError, ValueError):
            limit = 5
        candidates = await weather.geocode(name, limit=limit)
        if not candidates:
            return {"results": [], "message": f"Could not find location: '{name}'."}
        return {"results": candidates}

    async def get_weather_forecast(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
        start_date = args.get("start_date")
        if not isinstance(start_date, str) or not start_date.strip():
            raise ValueError("Missing required field: start_date")
        end_date = args.get("end_date") or start_date
        mode = args.get("mode") or choose_forecast_mode(start_date, end_date, args.get("trip_type"))
        try:
            latitude = float(args["latitude"])
            longitude = float(args["longitude"])
        except (KeyError, TypeError, ValueError):
            raise ValueError("latitude and longitude are required numbers") from None
        return await weather.forecast(latitude, longitude, start_date, end_date, mode)

    registry.register_tool(
        name="geocode_location",
        description="Resolve a place name to candidate coordinates",
        parameters={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Place, park or trailhead name"},
                "limit": {"type": "number", "description": "Max candidates (1-10)"},
            },
            "required": ["name"],
        },
        handler=geocode_location,
    )
    registry.register_tool(
        name="get_weather_forecast",
        description=(
            "Get a forecast for trip coordinates and dates. Hourly for same-day or day "
            "hikes, daily otherwise. Includes risk flags for wind, gusts and precipitation. "
            "Only report what this tool returns."
        ),
        parameters={
            "type": "object",
            "properties": {
                "latitude": {"type": "number"},
                "longitude": {"type": "number"},
                "start_date": {"type": "string", "description": "ISO date (YYYY-MM-DD)"},
                "end_date": {"type": "string", "description": "ISO date (YYYY-MM-DD)"},
                "trip_type": {
                    "type": "string",
                    "enum": ["DAY_HIKE", "OVERNIGHT", "MULTI_DAY", "THRU_HIKE", "OTHER"],
                },
                "mode": {"type": "string", "enum": ["hourly", "daily"]},
            },
            "required": ["latitude", "longitude", "start_date"],
        },
        handler=get_weather_forecast,
    )
