"""Air quality forecast from the Open-Meteo API."""
import asyncio
from typing import Optional

import httpx

from smart_city_dashboard.ingestion.providers import (
    DEFAULT_TIMEOUT,
    OpenMeteoProvider,
    parse_open_meteo_hourly,
)
from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import Coordinates, ForecastPayload


logger = get_logger("ingestion.forecast")


async def fetch_air_quality_forecast(
    client: httpx.AsyncClient,
    coords: Coordinates,
    forecast_days: int = 5,
    timeout: float = DEFAULT_TIMEOUT
) -> Optional[ForecastPayload]:
    """
    Fetch the hourly PM forecast for a location.

    Best effort: any failure is logged and returns None.

    Args:
        client: Shared async HTTP client
        coords: Location coordinates
        forecast_days: Number of forecast days to request
        timeout: Upper bound in seconds for the request

    Returns:
        ForecastPayload, or None if unavailable
    """
    params = {
        "latitude": coords.lat,
        "longitude": coords.lon,
        "hourly": "pm10,pm2_5,european_aqi,us_aqi",
        "forecast_days": forecast_days,
        "timezone": "auto",
    }

    try:
        response = await asyncio.wait_for(
            client.get(OpenMeteoProvider.BASE_URL, params=params, timeout=timeout),
            timeout=timeout
        )
        response.raise_for_status()
        payload = response.json()
        hourly = parse_open_meteo_hourly(payload) if isinstance(payload, dict) else None

    except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as e:
        logger.warning(f"Air quality forecast unavailable: {e}")
        return None

    if hourly is None:
        logger.warning("Air quality forecast response has no hourly data")
        return None

    return ForecastPayload(hourly=hourly)
