from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Any, Literal

import httpx

from packbot.errors import WeatherError

logger = logging.getLogger(__name__)

OPENMETEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
OPENMETEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
API_TIMEOUT = 10.0

HIGH_WIND_KMH = 35
HIGH_GUST_KMH = 50
HIGH_PRECIP_PROBABILITY = 60

ForecastMode = Literal["hourly", "daily"]

HOURLY_VARIABLES = (
    "temperature_2m",
    "apparent_temperature",
    "precipitation",
    "precipitation_probability",
    "rain",
    "showers",
    "snowfall",
    "wind_speed_10m",
    "wind_gusts_10m",
    "cloud_cover",
    "weather_code",
)

DAILY_VARIABLES = (
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "apparent_temperature_max",
    "apparent_temperature_min",
    "precipitation_sum",
    "rain_sum",
    "snowfall_sum",
    "precipitation_probability_max",
    "wind_speed_10m_max",
    "wind_gusts_10m_max",
    "sunrise",
    "sunset",
)

# (mode -> (wind, gust, precip probability)) series names used for risk flags
_RISK_SERIES = {
    "hourly": ("wind_speed_10m", "wind_gusts_10m", "precipitation_probability"),
    "daily": ("wind_speed_10m_max", "wind_gusts_10m_max", "precipitation_probability_max"),
}

_RE_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def normalize_date(value: str) -> str:
    """Accept an ISO date or datetime; return YYYY-MM-DD."""
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValueError("Missing date")
    if _RE_ISO_DATE.match(trimmed):
        return trimmed
    try:
        return datetime.fromisoformat(trimmed.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        raise ValueError(f"Invalid date: {value}") from None


def choose_forecast_mode(
    start_date: str, end_date: str | None = None, trip_type: str | None = None
) -> ForecastMode:
    """Hourly for a same-day range or a day hike, daily otherwise."""
    if (trip_type or "").upper() == "DAY_HIKE":
        return "hourly"
    start = normalize_date(start_date)
    end = normalize_date(end_date) if end_date else start
    return "hourly" if start == end else "daily"


def _series_max(block: dict[str, Any], name: str) -> float | None:
    values = [v for v in block.get(name) or [] if _is_number(v)]
    return max(values) if values else None


def summarize_risks(block: dict[str, Any] | None, mode: ForecastMode) -> tuple[list[str], list[str]]:
    """Return (risk_flags, notes) for an hourly or daily forecast block."""
    if not isinstance(block, dict):
        return [], []
    wind_name, gust_name, precip_name = _RISK_SERIES[mode]

    flags: list[str] = []
    wind = _series_max(block, wind_name)
    gust = _series_max(block, gust_name)
    precip = _series_max(block, precip_name)
    if precip is not None and precip >= HIGH_PRECIP_PROBABILITY:
        flags.append("high_precip_probability")
    if wind is not None and wind >= HIGH_WIND_KMH:
        flags.append("high_wind")
    if gust is not None and gust >= HIGH_GUST_KMH:
        flags.append("high_gusts")

    notes: list[str] = []
    if "high_precip_probability" in flags:
        notes.append("High chance of precipitation. Plan rain protection and traction if needed.")
    if "high_wind" in flags or "high_gusts" in flags:
        notes.append("Strong winds or gusts. Avoid exposed ridges and pack wind layers.")
    return flags, notes


def decode_weather_code(code: object) -> str:
    """Map a WMO weather code to a short label."""
    if not _is_number(code):
        return "Unknown"
    code = int(code)
    if code == 0:
        return "Clear sky"
    if code == 1:
        return "Mainly clear"
    if code == 2:
        return "Partly cloudy"
    if code == 3:
        return "Overcast"
    if 45 <= code <= 48:
        return "Fog"
    if 51 <= code <= 55:
        return "Drizzle"
    if 56 <= code <= 57:
        return "Freezing drizzle"
    if 61 <= code <= 65:
        return "Rain"
    if 66 <= code <= 67:
        return "Freezing rain"
    if 71 <= code <= 77:
        return "Snow"
    if 80 <= code <= 82:
        return "Rain showers"
    if 85 <= code <= 86:
        return "Snow showers"
    if code >= 95:
        return "Thunderstorm"
    return "Unknown"


class OpenMeteoClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        forecast_url: str = OPENMETEO_FORECAST_URL,
        geocoding_url: str = OPENMETEO_GEOCODING_URL,
        timeout: float = API_TIMEOUT,
    ):
        self._http = http_client
        self._forecast_url = forecast_url
        self._geocoding_url = geocoding_url
        self._timeout = timeout

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        try:
            resp = await self._http.get(url, params=params, timeout=self._timeout)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise WeatherError(
                f"Open-Meteo request failed ({e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise WeatherError(f"Open-Meteo unavailable: {e}") from e
        return resp.json()

    async def geocode(self, name: str, limit: int = 5) -> list[dict[str, Any]]:
        query = (name or "").strip()
        if not query:
            return []

        logger.info("Geocoding location: %s", query)
        data = await self._get_json(
            self._geocoding_url,
            {
                "name": query,
                "count": max(1, min(10, limit)),
                "language": "en",
                "format": "json",
            },
        )
        results = data.get("results") if isinstance(data, dict) else None

        candidates = []
        for row in results or []:
            if not isinstance(row, dict):
                continue
            if not (
                _is_number(row.get("latitude"))
                and _is_number(row.get("longitude"))
                and isinstance(row.get("name"), str)
            ):
                continue
            candidate = {
                "name": row["name"],
                "latitude": row["latitude"],
                "longitude": row["longitude"],
            }
            for extra in ("country", "admin1", "timezone"):
                if isinstance(row.get(extra), str):
                    candidate[extra] = row[extra]
            candidates.append(candidate)
        return candidates

    async def forecast(
        self,
        latitude: float,
        longitude: float,
        start_date: str,
        end_date: str,
        mode: ForecastMode = "daily",
    ) -> dict[str, Any]:
        if not _is_number(latitude) or not _is_number(longitude):
            raise ValueError("Invalid latitude/longitude")
        if mode not in _RISK_SERIES:
            raise ValueError(f"Invalid forecast mode: {mode}")

        lat = max(-90.0, min(90.0, float(latitude)))
        lon = max(-180.0, min(180.0, float(longitude)))
        start = normalize_date(start_date)
        end = normalize_date(end_date)

        params: dict[str, Any] = {
            "latitude": lat,
            "longitude": lon,
            "timezone": "auto",
            "start_date": start,
            "end_date": end,
            mode: ",".join(HOURLY_VARIABLES if mode == "hourly" else DAILY_VARIABLES),
        }
        logger.info("Fetching %s forecast for %.4f,%.4f (%s..%s)", mode, lat, lon, start, end)
        data = await self._get_json(self._forecast_url, params)
        if not isinstance(data, dict):
            data = {}

        units: dict[str, str] = {}
        for units_key in ("hourly_units", "daily_units"):
            if isinstance(data.get(units_key), dict):
                units.update(data[units_key])

        flags, notes = summarize_risks(data.get(mode), mode)
        summary: dict[str, Any] = {"headline": f"Forecast loaded ({mode}) for {start} to {end}."}
        if notes:
            summary["notes"] = notes
        if flags:
            summary["risk_flags"] = flags

        return {
            "mode": mode,
            "latitude": lat,
            "longitude": lon,
            "timezone": data.get("timezone") if isinstance(data.get("timezone"), str) else "auto",
            "units": units,
            mode: data.get(mode),
            "summary": summary,
            "source": "open-meteo",
        }

    async def trip_summary(
        self, latitude: float, longitude: float, start_date: str, end_date: str | None = None
    ) -> dict[str, Any]:
        """Compact daily outlook for a trip card: temperature range, max precip, condition."""
        result = await self.forecast(latitude, longitude, start_date, end_date or start_date, "daily")
        daily = result.get("daily") or {}
        maxes = [v for v in daily.get("temperature_2m_max") or [] if _is_number(v)]
        mins = [v for v in daily.get("temperature_2m_min") or [] if _is_number(v)]
        precip = [v for v in daily.get("precipitation_probability_max") or [] if _is_number(v)]
        codes = daily.get("weather_code") or []

        outlook: dict[str, Any] = {
            "condition": decode_weather_code(codes[0] if codes else None),
            "headline": result["summary"]["headline"],
        }
        if maxes:
            outlook["temp_max"] = max(maxes)
        if mins:
            outlook["temp_min"] = min(mins)
        if precip:
            outlook["precip_probability"] = max(precip)
        if result["summary"].get("risk_flags"):
            outlook["risk_flags"] = result["summary"]["risk_flags"]
        return outlook
