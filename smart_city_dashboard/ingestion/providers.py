"""Air quality provider adapters.

Each adapter calls one external service and parses its response into the
matching ``RawReading`` variant. ``fetch`` never raises: transport errors,
timeouts and unusable payloads come back as ``ProviderFailure`` so the
fallback chain can move on to the next provider.
"""
import asyncio
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from smart_city_dashboard.exceptions import ProviderError
from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import (
    ApiNinjasReading,
    AqicnReading,
    Coordinates,
    ForecastSample,
    GenericReading,
    HourlySeries,
    OpenAQSample,
    OpenAQSeriesReading,
    OpenMeteoCurrent,
    OpenMeteoReading,
    ProviderFailure,
    RawReading,
)


DEFAULT_TIMEOUT = 10.0

ProviderResult = Union[RawReading, ProviderFailure]


def _number(value: Any) -> Optional[float]:
    """Numeric value or None (vendors send "-", "", null for missing data)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _now() -> datetime:
    return datetime.now().astimezone()


def parse_open_meteo_hourly(payload: Dict[str, Any]) -> Optional[HourlySeries]:
    """
    Extract the hourly PM arrays from an Open-Meteo air quality payload.

    Args:
        payload: Decoded JSON response

    Returns:
        HourlySeries, or None when the payload has no hourly timestamps
    """
    hourly = _mapping(payload.get("hourly"))
    times = hourly.get("time")
    if not isinstance(times, list) or not times:
        return None

    return HourlySeries(
        timestamps=[str(t) for t in times],
        pm25=[_number(v) for v in hourly.get("pm2_5") or []],
        pm10=[_number(v) for v in hourly.get("pm10") or []],
    )


class AirQualityProvider:
    """Base class for air quality provider adapters."""

    name: str = "provider"
    requires_city: bool = False

    def __init__(self, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize provider.

        Args:
            client: Shared async HTTP client
            timeout: Upper bound in seconds for one fetch
        """
        self.client = client
        self.timeout = timeout
        self.logger = get_logger(f"ingestion.providers.{self.name}")

    async def fetch(
        self,
        coords: Coordinates,
        city_name: Optional[str] = None
    ) -> ProviderResult:
        """
        Fetch and parse a reading.

        Args:
            coords: Location coordinates
            city_name: City name, used by city-based providers

        Returns:
            A RawReading tagged with this provider's name, or ProviderFailure
        """
        if self.requires_city and not city_name:
            return self._failure("city name required")

        try:
            return await asyncio.wait_for(self._fetch(coords, city_name), timeout=self.timeout)

        except asyncio.TimeoutError:
            return self._failure(f"timed out after {self.timeout:.0f}s")

        except httpx.HTTPStatusError as e:
            return self._failure(f"HTTP {e.response.status_code}")

        except httpx.HTTPError as e:
            return self._failure(f"transport error: {e.__class__.__name__}: {e}")

        except ProviderError as e:
            return self._failure(e.message)

        except (ValueError, KeyError, TypeError) as e:
            return self._failure(f"malformed response: {e}")

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        raise NotImplementedError

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        response = await self.client.get(
            url,
            params=params,
            headers=headers,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def _failure(self, reason: str) -> ProviderFailure:
        self.logger.warning(f"{self.name} unavailable: {reason}")
        return ProviderFailure(provider=self.name, reason=reason)

    def _error(self, message: str, **details) -> ProviderError:
        return ProviderError(message, provider=self.name, details=details)


class ApiNinjasProvider(AirQualityProvider):
    """API Ninjas air quality by city name."""

    name = "api-ninjas"
    requires_city = True
    BASE_URL = "https://api.api-ninjas.com/v1/airquality"

    def __init__(self, client: httpx.AsyncClient, api_key: str = "", timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client, timeout)
        self.api_key = api_key

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        data = await self._get_json(
            self.BASE_URL,
            params={"city": city_name},
            headers={"X-Api-Key": self.api_key}
        )

        if not isinstance(data, dict):
            raise self._error("unexpected payload type")

        # Pollutants come as {"concentration": ..., "aqi": ...}
        pm25 = _mapping(data.get("PM2.5", data.get("PM2_5")))
        pm10 = _mapping(data.get("PM10"))
        overall = _number(data.get("overall_aqi"))
        if overall is None:
            overall = _number(pm25.get("aqi"))
        if overall is None:
            overall = _number(pm10.get("aqi"))

        reading = ApiNinjasReading(
            provenance=self.name,
            fetched_at=_now(),
            overall_aqi=overall,
            pm25_concentration=_number(pm25.get("concentration")),
            pm10_concentration=_number(pm10.get("concentration")),
        )
        if (
            reading.overall_aqi is None
            and reading.pm25_concentration is None
            and reading.pm10_concentration is None
        ):
            raise self._error("response has no AQI or PM values", keys=sorted(data)[:10])
        return reading


class _AqicnProvider(AirQualityProvider):
    """World Air Quality Index (AQICN) feed."""

    BASE_URL = "https://api.waqi.info"

    def __init__(self, client: httpx.AsyncClient, token: str = "demo", timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client, timeout)
        self.token = token

    def _station(self, coords: Coordinates, city_name: Optional[str]) -> str:
        raise NotImplementedError

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        station = self._station(coords, city_name)
        payload = await self._get_json(
            f"{self.BASE_URL}/feed/{station}/",
            params={"token": self.token}
        )

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            status = payload.get("status") if isinstance(payload, dict) else None
            raise self._error(f"status {status!r}", data=str(_mapping(payload).get("data"))[:100])

        data = payload.get("data")
        if not isinstance(data, dict):
            raise self._error("missing data block")

        iaqi = _mapping(data.get("iaqi"))
        reading = AqicnReading(
            provenance=self.name,
            fetched_at=_now(),
            aqi=_number(data.get("aqi")),
            pm25=_number(_mapping(iaqi.get("pm25")).get("v")),
            pm10=_number(_mapping(iaqi.get("pm10")).get("v")),
        )
        if reading.aqi is None and reading.pm25 is None and reading.pm10 is None:
            raise self._error("station reports no AQI or PM values")
        return reading


class AqicnCityProvider(_AqicnProvider):
    name = "aqicn-city"
    requires_city = True

    def _station(self, coords: Coordinates, city_name: Optional[str]) -> str:
        return quote(city_name, safe="")


class AqicnGeoProvider(_AqicnProvider):
    name = "aqicn-geo"

    def _station(self, coords: Coordinates, city_name: Optional[str]) -> str:
        return f"geo:{coords.lat};{coords.lon}"


class OpenMeteoProvider(AirQualityProvider):
    """Open-Meteo air quality API (global, no key)."""

    name = "open-meteo"
    BASE_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        payload = await self._get_json(
            self.BASE_URL,
            params={
                "latitude": coords.lat,
                "longitude": coords.lon,
                "hourly": "pm10,pm2_5,european_aqi,us_aqi",
                "current": "european_aqi,us_aqi,pm10,pm2_5",
                "timezone": "auto",
            }
        )

        if not isinstance(payload, dict):
            raise self._error("unexpected payload type")

        current = _mapping(payload.get("current"))
        reading = OpenMeteoReading(
            provenance=self.name,
            fetched_at=_now(),
            current=OpenMeteoCurrent(
                pm25=_number(current.get("pm2_5")),
                pm10=_number(current.get("pm10")),
                us_aqi=_number(current.get("us_aqi")),
                european_aqi=_number(current.get("european_aqi")),
            ),
            hourly=parse_open_meteo_hourly(payload),
        )

        has_current = any(
            v is not None for v in reading.current.model_dump().values()
        )
        if not has_current and reading.hourly is None:
            raise self._error("response has neither current nor hourly data")
        return reading


class OpenWeatherPollutionProvider(AirQualityProvider):
    """OpenWeatherMap air pollution forecast (AQI on a 1-5 scale)."""

    name = "openweather"
    BASE_URL = "https://api.openweathermap.org/data/2.5/air_pollution/forecast"

    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float = DEFAULT_TIMEOUT):
        super().__init__(client, timeout)
        self.api_key = api_key

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        if not self.api_key:
            raise self._error("API key not configured")

        payload = await self._get_json(
            self.BASE_URL,
            params={"lat": coords.lat, "lon": coords.lon, "appid": self.api_key}
        )

        entries = _mapping(payload).get("list")
        if not isinstance(entries, list) or not entries:
            raise self._error("empty forecast list")

        samples: List[ForecastSample] = []
        for entry in entries:
            entry = _mapping(entry)
            components = _mapping(entry.get("components"))
            samples.append(ForecastSample(
                timestamp=_number(entry.get("dt")),
                pm25=_number(components.get("pm2_5")),
                pm10=_number(components.get("pm10")),
            ))

        first = _mapping(entries[0])
        return GenericReading(
            provenance=self.name,
            fetched_at=_now(),
            aqi=_number(_mapping(first.get("main")).get("aqi")),
            pm25=samples[0].pm25,
            pm10=samples[0].pm10,
            forecast_samples=samples,
        )


class OpenAQProvider(AirQualityProvider):
    """
    OpenAQ measurements near the coordinates.

    Final fallback of the chain: it never fails terminally. Request errors
    and empty answers both yield a reading with no samples, which
    normalizes to an empty series.
    """

    name = "openaq"
    BASE_URL = "https://api.openaq.org/v2/measurements"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str = "",
        radius_m: int = 10000,
        limit: int = 50,
        timeout: float = DEFAULT_TIMEOUT
    ):
        super().__init__(client, timeout)
        self.api_key = api_key
        self.radius_m = radius_m
        self.limit = limit

    async def _fetch(self, coords: Coordinates, city_name: Optional[str]) -> RawReading:
        headers = {"X-API-Key": self.api_key} if self.api_key else None
        try:
            payload = await self._get_json(
                self.BASE_URL,
                params={
                    "coordinates": f"{coords.lat},{coords.lon}",
                    "limit": self.limit,
                    "sort": "desc",
                    "radius": self.radius_m,
                },
                headers=headers
            )
        except (httpx.HTTPError, ValueError) as e:
            self.logger.warning(f"OpenAQ request failed, using empty result set: {e}")
            payload = {"results": []}

        samples = []
        for record in _mapping(payload).get("results") or []:
            record = _mapping(record)
            parameter = record.get("parameter")
            value = _number(record.get("value"))
            timestamp = _mapping(record.get("date")).get("utc")
            if parameter not in ("pm25", "pm10") or value is None:
                continue
            samples.append(OpenAQSample(
                parameter=parameter,
                value=value,
                timestamp_utc=str(timestamp) if timestamp is not None else "",
            ))

        if not samples:
            self.logger.info("OpenAQ has no PM2.5/PM10 measurements nearby")

        return OpenAQSeriesReading(
            provenance=self.name,
            fetched_at=_now(),
            samples=samples,
        )
