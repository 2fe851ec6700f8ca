"""Open-Meteo lookups: current weather and place-name geocoding.

Both are best-effort. A report without weather is still a report, and a
failed geocode is reported to the caller as "not found", so every failure
is logged and turned into None.
"""

from __future__ import annotations

import httpx
import structlog

from siterecap.config import settings
from siterecap.models.contracts import Coordinates, Weather
from siterecap.utils.numbers import round_half_up

logger = structlog.get_logger()

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"

DEFAULT_DESCRIPTION = "Partly Cloudy"

WEATHER_CODES: dict[int, str] = {
    0: "Clear",
    1: "Mostly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Foggy",
    51: "Light Drizzle",
    53: "Drizzle",
    55: "Heavy Drizzle",
    61: "Light Rain",
    63: "Rain",
    65: "Heavy Rain",
    71: "Light Snow",
    73: "Snow",
    75: "Heavy Snow",
    80: "Showers",
    81: "Showers",
    82: "Heavy Showers",
    95: "Thunderstorms",
    96: "Thunderstorms",
    99: "Heavy Thunderstorms",
}


def describe_weather_code(code: int | None) -> str:
    if code is None:
        return DEFAULT_DESCRIPTION
    return WEATHER_CODES.get(code, DEFAULT_DESCRIPTION)


async def get_current_weather(lat: float, lon: float) -> Weather | None:
    """Current conditions in Fahrenheit, or None if Open-Meteo can't be reached."""
    params = {
        "latitude": lat,
        "longitude": lon,
        "current_weather": "true",
        "temperature_unit": "fahrenheit",
        "timezone": "auto",
    }
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.get(FORECAST_URL, params=params)
            response.raise_for_status()
            current = response.json().get("current_weather") or {}
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("weather_fetch_failed", lat=lat, lon=lon, error=str(exc))
        return None

    temperature = current.get("temperature")
    if temperature is None:
        logger.warning("weather_missing_temperature", lat=lat, lon=lon)
        return None
    code = current.get("weathercode")
    code = int(code) if code is not None else None
    return Weather(
        temperature=round_half_up(float(temperature)),
        description=describe_weather_code(code),
        code=code,
    )


async def geocode_location(
    city: str | None, state: str | None = None, postal_code: str | None = None
) -> Coordinates | None:
    """Resolve "city, state, postal" to coordinates; None when nothing matches."""
    name = ", ".join(part for part in (city, state, postal_code) if part)
    if not name:
        return None
    params = {"name": name, "count": 1, "language": "en", "format": "json"}
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.get(GEOCODING_URL, params=params)
            response.raise_for_status()
            results = response.json().get("results") or []
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("geocode_failed", query=name, error=str(exc))
        return None

    if not results:
        logger.info("geocode_no_results", query=name)
        return None
    hit = results[0]
    return Coordinates(
        lat=hit["latitude"],
        lon=hit["longitude"],
        city=hit.get("name") or city,
        state=hit.get("admin1") or state,
        country=hit.get("country"),
    )
