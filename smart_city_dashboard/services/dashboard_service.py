"""Service assembling one dashboard refresh cycle."""
import asyncio
from datetime import datetime
from typing import List, Optional, Tuple

import httpx
import numpy as np

from smart_city_dashboard.analytics.aqi import resolve_aqi
from smart_city_dashboard.analytics.insights import (
    build_error_insights,
    build_insights,
    provenance_label,
)
from smart_city_dashboard.analytics.normalizer import normalize
from smart_city_dashboard.analytics.synthetic import (
    build_energy_series,
    build_traffic_series,
    hourly_labels,
)
from smart_city_dashboard.config import ProviderConfig, Settings
from smart_city_dashboard.exceptions import GeocodeFailure
from smart_city_dashboard.ingestion.forecast import fetch_air_quality_forecast
from smart_city_dashboard.ingestion.geocoding import NominatimGeocoder
from smart_city_dashboard.ingestion.weather import WeatherClient
from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import (
    AirQualitySeries,
    DashboardSnapshot,
    ForecastPayload,
    SessionState,
    WeatherSeries,
)
from smart_city_dashboard.services.orchestrator import (
    FallbackOrchestrator,
    build_provider_chain,
)


GENERIC_ERROR = "Failed to load data. Please check your internet connection and try again."


class DashboardService:
    """Service for loading air quality, weather, traffic and energy for a city."""

    def __init__(
        self,
        settings: Settings,
        provider_config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize dashboard service.

        Args:
            settings: Application settings
            provider_config: Provider chain configuration
            transport: Optional httpx transport (tests inject a mock)
            rng: Random generator for the simulated series
        """
        self.settings = settings
        self.provider_config = provider_config
        self.transport = transport
        self.rng = rng if rng is not None else np.random.default_rng()
        self.logger = get_logger("services.dashboard")

        if not settings.api_ninjas_api_key:
            self.logger.warning("API Ninjas API key not configured, requests are sent without a key")

    async def load_city(
        self,
        city_name: str,
        previous: Optional[DashboardSnapshot] = None,
        auto_refresh: bool = False
    ) -> DashboardSnapshot:
        """
        Run one refresh cycle for a city.

        Geocodes the city, then fetches air quality (fallback chain), the air
        quality forecast and the weather forecast concurrently.

        Args:
            city_name: City to load
            previous: Last snapshot; kept on screen when this cycle fails
            auto_refresh: Whether the refresh timer is running (for the status line)

        Returns:
            DashboardSnapshot; on failure ``error`` is set and the previous
            session and series are retained
        """
        self.logger.info(f"Loading dashboard for {city_name}")

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.provider_timeout_seconds,
                transport=self.transport
            ) as client:
                geocoder = NominatimGeocoder(
                    client,
                    user_agent=self.settings.geocoder_user_agent,
                    timeout=self.settings.provider_timeout_seconds
                )
                location = await geocoder.geocode(city_name)
                session = SessionState(city=location.display_name, coords=location.coords)

                reading, forecast, weather = await self._fetch_all(client, session)

            return self._build_snapshot(session, reading, forecast, weather, auto_refresh)

        except GeocodeFailure as e:
            self.logger.warning(f"Geocoding failed: {e.message}")
            return self._error_snapshot(e.message, previous)

        except Exception as e:
            self.logger.exception(f"Unexpected error loading {city_name}: {e}")
            return self._error_snapshot(GENERIC_ERROR, previous)

    async def _fetch_all(
        self,
        client: httpx.AsyncClient,
        session: SessionState
    ) -> Tuple[object, Optional[ForecastPayload], Optional[WeatherSeries]]:
        timeout = self.settings.provider_timeout_seconds
        orchestrator = FallbackOrchestrator(
            build_provider_chain(client, self.settings, self.provider_config)
        )
        weather_client = WeatherClient(client, self.settings.openweather_api_key, timeout=timeout)

        return await asyncio.gather(
            orchestrator.fetch_air_quality(session.coords, session.city),
            fetch_air_quality_forecast(
                client,
                session.coords,
                forecast_days=self.provider_config.forecast_days,
                timeout=timeout
            ),
            weather_client.get_forecast(session.coords, entries=self.provider_config.weather_entries),
        )

    def _build_snapshot(
        self,
        session: SessionState,
        reading,
        forecast: Optional[ForecastPayload],
        weather: Optional[WeatherSeries],
        auto_refresh: bool
    ) -> DashboardSnapshot:
        series = normalize(reading, forecast)
        pm25, pm10 = summarize_pollutants(series)
        aqi = resolve_aqi(series.current_raw_index, pm25, pm10)

        now = datetime.now().astimezone()
        labels = weather.time_labels if weather is not None and weather.time_labels else hourly_labels(now.hour)
        traffic = build_traffic_series(labels, now.hour, self.rng)
        energy = build_energy_series(
            labels,
            now.hour,
            weather.temperatures if weather is not None else None,
            self.rng
        )

        insights = build_insights(
            city=session.city,
            coords=session.coords,
            series=series,
            aqi=aqi,
            provenance=reading.provenance,
            weather=weather,
            traffic=traffic,
            energy=energy,
            auto_refresh=auto_refresh,
            refresh_interval_seconds=self.settings.refresh_interval_seconds,
        )

        self.logger.info(
            f"{session.city}: AQI {aqi.value} ({aqi.label}) from {reading.provenance}, "
            f"{len(series.time_labels)} samples"
        )

        return DashboardSnapshot(
            session=session,
            air_quality=series,
            aqi=aqi,
            provenance=reading.provenance,
            provenance_label=provenance_label(reading.provenance),
            weather=weather,
            traffic=traffic,
            energy=energy,
            insights=insights,
            generated_at=now,
        )

    def _error_snapshot(
        self,
        message: str,
        previous: Optional[DashboardSnapshot]
    ) -> DashboardSnapshot:
        now = datetime.now().astimezone()
        insights = build_error_insights(message)

        if previous is None:
            return DashboardSnapshot(insights=insights, error=message, generated_at=now)

        return previous.model_copy(update={
            "insights": insights,
            "error": message,
            "generated_at": now,
        })


def summarize_pollutants(series: AirQualitySeries) -> Tuple[Optional[float], Optional[float]]:
    """
    PM2.5/PM10 values used for the AQI.

    The mean of measured samples wins; without one the plain series mean is
    used, and an empty series falls back to the current value.

    Args:
        series: Normalized air quality series

    Returns:
        (pm25, pm10)
    """
    return (
        _pollutant_summary(series.mean_pm25, series.pm25, series.current_pm25),
        _pollutant_summary(series.mean_pm10, series.pm10, series.current_pm10),
    )


def _pollutant_summary(
    measured: Optional[float],
    values: List[float],
    current: Optional[float]
) -> Optional[float]:
    if measured is not None:
        return measured
    if values:
        return float(np.mean(values))
    return current
