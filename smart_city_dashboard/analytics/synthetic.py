"""Simulated traffic density and energy demand series.

Neither signal comes from a real feed: both are hour-of-day heuristics with
uniform noise, the energy index additionally reacting to the temperature
forecast. Pass a seeded ``numpy.random.Generator`` for reproducible output.
"""
from typing import List, Optional, Sequence

import numpy as np

from smart_city_dashboard.models import SyntheticSeries


DEFAULT_TEMPERATURE_C = 20.0


def _hours_of_day(start_hour: int, hours: int) -> np.ndarray:
    return (start_hour + np.arange(hours)) % 24


def generate_traffic(
    start_hour: int,
    hours: int = 24,
    rng: Optional[np.random.Generator] = None
) -> List[int]:
    """
    Simulate traffic density (%) for the coming hours.

    Rush hours (07-09, 17-19) sit at 85-95%, night (22-05) at 20-35%,
    the rest of the day at 50-70%.

    Args:
        start_hour: Hour of day of the first value
        hours: Number of hourly values
        rng: Random generator

    Returns:
        List of integer percentages
    """
    rng = rng if rng is not None else np.random.default_rng()
    h = _hours_of_day(start_hour, hours)
    noise = rng.random(hours)

    rush = ((h >= 7) & (h <= 9)) | ((h >= 17) & (h <= 19))
    night = (h >= 22) | (h <= 5)

    levels = np.where(rush, 85 + noise * 10, np.where(night, 20 + noise * 15, 50 + noise * 20))
    return np.round(levels).astype(int).tolist()


def generate_energy(
    start_hour: int,
    temperatures: Optional[Sequence[float]] = None,
    hours: int = 24,
    rng: Optional[np.random.Generator] = None
) -> List[int]:
    """
    Simulate an energy demand index (0-100) for the coming hours.

    Peaks (06-10, 18-22) sit at 70-85, night (23-05) at 30-45, otherwise
    50-65. Hours colder than 10°C or hotter than 30°C add 15 for heating or
    cooling load.

    Args:
        start_hour: Hour of day of the first value
        temperatures: Hourly temperatures in °C; missing hours use 20°C
        hours: Number of hourly values
        rng: Random generator

    Returns:
        List of integer index values clipped to [0, 100]
    """
    rng = rng if rng is not None else np.random.default_rng()
    h = _hours_of_day(start_hour, hours)
    noise = rng.random(hours)

    temps = np.full(hours, DEFAULT_TEMPERATURE_C)
    if temperatures:
        known = np.asarray(list(temperatures)[:hours], dtype=float)
        temps[:len(known)] = np.where(np.isnan(known), DEFAULT_TEMPERATURE_C, known)

    peak = ((h >= 6) & (h <= 10)) | ((h >= 18) & (h <= 22))
    night = (h >= 22) | (h <= 6)

    levels = np.where(peak, 70 + noise * 15, np.where(night, 30 + noise * 15, 50 + noise * 15))
    levels = levels + np.where((temps < 10) | (temps > 30), 15, 0)

    return np.clip(np.round(levels), 0, 100).astype(int).tolist()


def classify_traffic(average: float) -> str:
    if average >= 80:
        return "Heavy"
    if average >= 60:
        return "Moderate"
    return "Light"


def classify_energy(average: float) -> str:
    if average >= 70:
        return "High"
    if average >= 50:
        return "Normal"
    return "Low"


def hourly_labels(start_hour: int, hours: int = 24) -> List[str]:
    """``HH:00`` labels for the coming hours."""
    return [f"{int(h):02d}:00" for h in _hours_of_day(start_hour, hours)]


def build_traffic_series(
    labels: Sequence[str],
    start_hour: int,
    rng: Optional[np.random.Generator] = None
) -> SyntheticSeries:
    values = generate_traffic(start_hour, len(labels), rng)
    average = float(np.mean(values))
    return SyntheticSeries(
        time_labels=list(labels),
        values=values,
        average=average,
        label=classify_traffic(average),
    )


def build_energy_series(
    labels: Sequence[str],
    start_hour: int,
    temperatures: Optional[Sequence[float]] = None,
    rng: Optional[np.random.Generator] = None
) -> SyntheticSeries:
    values = generate_energy(start_hour, temperatures, len(labels), rng)
    average = float(np.mean(values))
    return SyntheticSeries(
        time_labels=list(labels),
        values=values,
        average=average,
        label=classify_energy(average),
    )
