"""Plain-text insight lines for the dashboard panel."""
from typing import List, Optional

from smart_city_dashboard.models import (
    AirQualitySeries,
    AQIResult,
    Coordinates,
    SyntheticSeries,
    WeatherSeries,
)


PROVENANCE_LABELS = {
    "api-ninjas": "API Ninjas (Live)",
    "aqicn-city": "AQICN (Live)",
    "aqicn-geo": "AQICN (Live)",
    "open-meteo": "Open-Meteo",
    "openweather": "OpenWeather",
    "openaq": "OpenAQ",
}

HEALTH_ALERT_THRESHOLD = 100
HOT_THRESHOLD_C = 30
COLD_THRESHOLD_C = 10

RETRY_TIP = 'Tip: Try entering a major city name (e.g., "Delhi", "London", "New York")'


def provenance_label(provenance: str) -> str:
    """Human-readable name of the provider that produced a reading."""
    return PROVENANCE_LABELS.get(provenance, "Calculated")


def build_insights(
    city: str,
    coords: Coordinates,
    series: AirQualitySeries,
    aqi: AQIResult,
    provenance: str,
    weather: Optional[WeatherSeries],
    traffic: SyntheticSeries,
    energy: SyntheticSeries,
    auto_refresh: bool,
    refresh_interval_seconds: int
) -> List[str]:
    """
    Build the insight lines shown after a successful refresh.

    Args:
        city: Display name of the city
        coords: Resolved coordinates
        series: Normalized air quality series
        aqi: Resolved AQI
        provenance: Provider tag of the air quality reading
        weather: Weather series, if any
        traffic: Simulated traffic series
        energy: Simulated energy series
        auto_refresh: Whether the refresh timer is running
        refresh_interval_seconds: Timer interval

    Returns:
        Ordered list of insight strings
    """
    insights = [f"Location: {city} ({coords.lat:.4f}°N, {coords.lon:.4f}°E)"]

    if aqi.label != "No Data":
        insights.append(
            f"Air Quality: {aqi.label} (AQI: {aqi.value}) [{provenance_label(provenance)}]"
        )
        if series.current_pm25 is not None:
            insights.append(f"PM2.5: {series.current_pm25:.1f} µg/m³")
        if series.current_pm10 is not None:
            insights.append(f"PM10: {series.current_pm10:.1f} µg/m³")
        if aqi.value > HEALTH_ALERT_THRESHOLD:
            insights.append(
                f"Health Alert: Air quality is {aqi.label.lower()}. "
                "Sensitive groups should limit outdoor activities."
            )
    else:
        insights.append("Air Quality: No recent data available for this location.")
        insights.append("Tip: Try a major city name. Air quality data may not be available for all locations.")

    if weather is not None and weather.current_temperature is not None:
        temp = weather.current_temperature
        insights.append(f"Current Temperature: {round(temp)}°C")
        if temp > HOT_THRESHOLD_C:
            insights.append("Weather Note: High temperature detected. Stay hydrated and avoid prolonged sun exposure.")
        elif temp < COLD_THRESHOLD_C:
            insights.append("Weather Note: Low temperature. Dress warmly and be cautious of icy conditions.")

    insights.append(f"Traffic Density: Average {round(traffic.average)}% ({traffic.label})")
    insights.append(f"Energy Consumption: Average index {round(energy.average)} ({energy.label})")

    if auto_refresh:
        insights.append(f"Data Status: Auto-refresh enabled ({refresh_interval_seconds}s interval)")
    else:
        insights.append("Data Status: Auto-refresh disabled")

    return insights


def build_error_insights(message: str) -> List[str]:
    """Insight lines replacing the panel when a refresh cycle fails."""
    return [f"Error: {message}", RETRY_TIP]
