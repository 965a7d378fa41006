"""
Open-Meteo weather client.

Fetches current conditions for a coordinate and maps WMO weather codes
to the condition names the risk scorer understands.
"""

from typing import Optional
import httpx

from climaroute.app.core.clock import utcnow
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.weather import WeatherSnapshot
from climaroute.app.services.providers import WeatherSource


# WMO weather interpretation codes
WMO_CONDITIONS = {
    0: "Clear",
    1: "Mainly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    56: "Freezing Drizzle",
    57: "Freezing Drizzle",
    61: "Rain",
    63: "Rain",
    65: "Heavy Rain",
    66: "Freezing Rain",
    67: "Freezing Rain",
    71: "Snow",
    73: "Snow",
    75: "Heavy Snow",
    77: "Snow Grains",
    80: "Rain Showers",
    81: "Rain Showers",
    82: "Heavy Rain",
    85: "Snow Showers",
    86: "Snow Showers",
    95: "Thunderstorm",
    96: "Thunderstorm with Hail",
    99: "Thunderstorm with Hail",
}


def condition_for_code(code: Optional[int]) -> str:
    if code is None:
        return "Unknown"
    return WMO_CONDITIONS.get(int(code), "Unknown")


class OpenMeteoWeatherSource(WeatherSource):
    """Current weather from the Open-Meteo forecast API (no API key)."""

    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    async def current(self, point: GeoPoint) -> WeatherSnapshot:
        params = {
            "latitude": point.lat,
            "longitude": point.lon,
            "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
            "hourly": "precipitation_probability",
            "forecast_hours": 1,
        }

        if self._client is not None:
            response = await self._client.get(self.base_url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url, params=params)

        response.raise_for_status()
        data = response.json()

        current = data.get("current") or {}
        hourly = (data.get("hourly") or {}).get("precipitation_probability") or [0]

        return WeatherSnapshot(
            condition=condition_for_code(current.get("weather_code")),
            rain_probability=float(hourly[0] or 0),
            wind_speed=float(current.get("wind_speed_10m") or 0),
            temperature=float(current.get("temperature_2m", 20.0)),
            humidity=current.get("relative_humidity_2m"),
            observed_at=utcnow(),
        )
