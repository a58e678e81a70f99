"""Sequential fallback over the air quality provider chain."""
from datetime import datetime
from typing import List, Optional, Sequence

import httpx

from smart_city_dashboard.config import ProviderConfig, Settings
from smart_city_dashboard.ingestion.providers import (
    AirQualityProvider,
    ApiNinjasProvider,
    AqicnCityProvider,
    AqicnGeoProvider,
    OpenAQProvider,
    OpenMeteoProvider,
    OpenWeatherPollutionProvider,
)
from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import Coordinates, EmptyReading, ProviderFailure


class FallbackOrchestrator:
    """Tries providers strictly in order until one returns a usable reading."""

    def __init__(self, providers: Sequence[AirQualityProvider]):
        """
        Initialize orchestrator.

        Args:
            providers: Adapters in priority order
        """
        self.providers = list(providers)
        self.logger = get_logger("services.orchestrator")

    async def fetch_air_quality(
        self,
        coords: Coordinates,
        city_name: Optional[str] = None
    ):
        """
        Fetch the first usable air quality reading.

        Providers are awaited one after another; later ones are only hit
        when every earlier one failed. City-based providers are skipped
        when no city name is known.

        Args:
            coords: Location coordinates
            city_name: City name for city-based providers

        Returns:
            RawReading tagged with its provider, or EmptyReading
        """
        failures: List[ProviderFailure] = []

        for provider in self.providers:
            if provider.requires_city and not city_name:
                continue

            result = await provider.fetch(coords, city_name)
            if isinstance(result, ProviderFailure):
                failures.append(result)
                continue

            if failures:
                self.logger.info(
                    f"Air quality from {provider.name} after {len(failures)} failed provider(s)"
                )
            else:
                self.logger.info(f"Air quality from {provider.name}")
            return result.model_copy(update={"provenance": provider.name})

        self.logger.warning(
            "No air quality provider returned data: "
            + "; ".join(f"{f.provider}: {f.reason}" for f in failures)
        )
        return EmptyReading(fetched_at=datetime.now().astimezone())


def build_provider_chain(
    client: httpx.AsyncClient,
    settings: Settings,
    provider_config: ProviderConfig
) -> List[AirQualityProvider]:
    """
    Instantiate the configured provider chain.

    The OpenWeatherMap adapter is left out when no API key is configured.

    Args:
        client: Shared async HTTP client
        settings: Application settings (keys, timeout)
        provider_config: Chain order and provider options

    Returns:
        Adapters in priority order
    """
    logger = get_logger("services.orchestrator")
    timeout = settings.provider_timeout_seconds
    chain: List[AirQualityProvider] = []

    for name in provider_config.get_chain():
        options = provider_config.get_options(name)

        if name == "api_ninjas":
            chain.append(ApiNinjasProvider(client, settings.api_ninjas_api_key, timeout=timeout))
        elif name == "aqicn_city":
            chain.append(AqicnCityProvider(client, settings.aqicn_token, timeout=timeout))
        elif name == "aqicn_geo":
            chain.append(AqicnGeoProvider(client, settings.aqicn_token, timeout=timeout))
        elif name == "open_meteo":
            chain.append(OpenMeteoProvider(client, timeout=timeout))
        elif name == "openweather":
            if not settings.openweather_api_key:
                logger.debug("OpenWeather API key not configured, skipping provider")
                continue
            chain.append(OpenWeatherPollutionProvider(client, settings.openweather_api_key, timeout=timeout))
        elif name == "openaq":
            chain.append(OpenAQProvider(
                client,
                settings.openaq_api_key,
                radius_m=int(options.get("radius_m", 10000)),
                limit=int(options.get("limit", 50)),
                timeout=timeout
            ))

    return chain
