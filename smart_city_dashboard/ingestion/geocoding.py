"""City name geocoding via OpenStreetMap Nominatim."""
import httpx

from smart_city_dashboard.exceptions import GeocodeFailure
from smart_city_dashboard.logging_config import get_logger
from smart_city_dashboard.models import GeocodeResult


class NominatimGeocoder:
    """Client for the Nominatim search API."""

    BASE_URL = "https://nominatim.openstreetmap.org/search"

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = "SmartCityDashboard/1.0",
        timeout: float = 10.0
    ):
        self.client = client
        self.user_agent = user_agent
        self.timeout = timeout
        self.logger = get_logger("ingestion.geocoding")

    async def geocode(self, city: str) -> GeocodeResult:
        """
        Resolve a city name to coordinates.

        Args:
            city: Free-form city name

        Returns:
            GeocodeResult with the short display name (first component)

        Raises:
            GeocodeFailure: If the city is unknown or the lookup fails
        """
        try:
            response = await self.client.get(
                self.BASE_URL,
                params={"format": "json", "q": city, "limit": 1},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout
            )
            response.raise_for_status()
            results = response.json()

        except (httpx.HTTPError, ValueError) as e:
            self.logger.warning(f"Geocoding '{city}' failed: {e}")
            raise GeocodeFailure(city, details={"error": str(e)})

        if not isinstance(results, list) or not results:
            raise GeocodeFailure(city)

        first = results[0]
        try:
            display_name = str(first.get("display_name") or city).split(",")[0].strip()
            return GeocodeResult(
                lat=float(first["lat"]),
                lon=float(first["lon"]),
                display_name=display_name or city
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(city, details={"error": f"malformed result: {e}"})
