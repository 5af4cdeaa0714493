from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from packbot.database.repository import Repository
    from packbot.tools.registry import ToolRegistry
    from packbot.weather.open_meteo import OpenMeteoClient

# The tool contract the assistant is provisioned with.
TOOL_NAMES = (
    "create_trip",
    "get_user_gear",
    "get_user_profile",
    "update_user_preferences",
    "add_gear_to_trip",
    "geocode_location",
    "get_weather_forecast",
)


def register_builtin_tools(
    registry: ToolRegistry,
    repository: Repository,
    weather: OpenMeteoClient,
) -> None:
    from packbot.tools.gear_tools import register as register_gear
    from packbot.tools.profile_tools import register as register_profile
    from packbot.tools.trip_tools import register as register_trips
    from packbot.tools.weather_tools import register as register_weather

    register_trips(registry, repository, weather=weather)
    register_gear(registry, repository)
    register_profile(registry, repository)
    register_weather(registry, weather)
    registry.validate(TOOL_NAMES)
