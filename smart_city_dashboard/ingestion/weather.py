"""Weather forecast ingestion from OpenWeatherMap with Open-Meteo fallback."""
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx

from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import Coordinates, WeatherSeries


class WeatherClient:
    """Client for hourly temperature forecasts."""

    OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/forecast"
    OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(
        self,
        client: httpx.AsyncClient,
        openweather_api_key: str = "",
        timeout: float = 10.0
    ):
        """
        Initialize weather client.

        Args:
            client: Shared async HTTP client
            openweather_api_key: OpenWeatherMap API key; empty skips that source
            timeout: Request timeout in seconds
        """
        self.client = client
        self.openweather_api_key = openweather_api_key
        self.timeout = timeout
        self.logger = get_logger("ingestion.weather")

    async def get_forecast(
        self,
        coords: Coordinates,
        entries: int = 24
    ) -> Optional[WeatherSeries]:
        """
        Get the temperature forecast for a location.

        Tries OpenWeatherMap first when a key is configured, then Open-Meteo.

        Args:
            coords: Location coordinates
            entries: Maximum number of forecast entries

        Returns:
            WeatherSeries, or None if both sources fail
        """
        if self.openweather_api_key:
            try:
                raw_data = await self._get_json(
                    self.OPENWEATHER_URL,
                    {
                        "lat": coords.lat,
                        "lon": coords.lon,
                        "appid": self.openweather_api_key,
                        "units": "metric",
                        "cnt": entries,
                    }
                )
                return self.process_openweather(raw_data, entries)

            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                self.logger.warning(f"OpenWeatherMap forecast failed, trying Open-Meteo: {e}")

        try:
            raw_data = await self._get_json(
                self.OPEN_METEO_URL,
                {
                    "latitude": coords.lat,
                    "longitude": coords.lon,
                    "hourly": "temperature_2m,relativehumidity_2m",
                    "current_weather": "true",
                    "timezone": "auto",
                }
            )
            return self.process_open_meteo(raw_data, entries)

        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self.logger.error(f"Error fetching weather: {e}")
            return None

    async def _get_json(self, url: str, params: Dict) -> Dict:
        response = await self.client.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def process_openweather(self, raw_data: Dict, entries: int = 24) -> WeatherSeries:
        """
        Process an OpenWeatherMap 5 day / 3 hour forecast.

        Timestamps are shown in the city's local time using the
        ``city.timezone`` offset of the response.

        Args:
            raw_data: Raw forecast from API
            entries: Maximum number of entries

        Returns:
            WeatherSeries
        """
        items = raw_data["list"][:entries]
        if not items:
            raise ValueError("empty forecast list")

        offset = (raw_data.get("city") or {}).get("timezone") or 0
        tz = timezone(timedelta(seconds=int(offset)))

        labels = [
            datetime.fromtimestamp(item["dt"], tz=tz).strftime("%H:%M")
            for item in items
        ]
        temps = [float(item["main"]["temp"]) for item in items]
        humidity = items[0]["main"].get("humidity")

        return WeatherSeries(
            time_labels=labels,
            temperatures=temps,
            current_temperature=temps[0],
            current_humidity=float(humidity) if humidity is not None else None,
            source="openweathermap",
        )

    def process_open_meteo(self, raw_data: Dict, entries: int = 24) -> WeatherSeries:
        """
        Process an Open-Meteo hourly forecast.

        Args:
            raw_data: Raw forecast from API
            entries: Maximum number of entries

        Returns:
            WeatherSeries
        """
        hourly = raw_data["hourly"]
        times = hourly["time"][:entries]
        temps = hourly["temperature_2m"][:entries]
        humidity = (hourly.get("relativehumidity_2m") or [None])[0]

        # Local times without offset, e.g. "2024-05-01T13:00"
        labels = [str(t)[11:16] for t in times]
        temps = [float(t) if t is not None else float("nan") for t in temps]

        current = (raw_data.get("current_weather") or {}).get("temperature")
        if current is None and temps and not math.isnan(temps[0]):
            current = temps[0]

        return WeatherSeries(
            time_labels=labels,
            temperatures=temps,
            current_temperature=float(current) if current is not None else None,
            current_humidity=float(humidity) if humidity is not None else None,
            source="open-meteo",
        )
