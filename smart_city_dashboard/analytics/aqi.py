"""US EPA Air Quality Index calculation."""
import math
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, NamedTuple, Optional, Tuple

from smart_city_dashboard.exceptions import CalculationError
from smart_city_dashboard.models import AQIResult


class Breakpoint(NamedTuple):
    low: float
    high: float
    aqi_low: int
    aqi_high: int


# Concentrations in µg/m³
AQI_BREAKPOINTS: Dict[str, List[Breakpoint]] = {
    "pm25": [
        Breakpoint(0.0, 12.0, 0, 50),
        Breakpoint(12.1, 35.4, 51, 100),
        Breakpoint(35.5, 55.4, 101, 150),
        Breakpoint(55.5, 150.4, 151, 200),
        Breakpoint(150.5, 250.4, 201, 300),
        Breakpoint(250.5, 500.4, 301, 500),
    ],
    "pm10": [
        Breakpoint(0, 54, 0, 50),
        Breakpoint(55, 154, 51, 100),
        Breakpoint(155, 254, 101, 150),
        Breakpoint(255, 354, 151, 200),
        Breakpoint(355, 424, 201, 300),
        Breakpoint(425, 604, 301, 500),
    ],
}

# EPA reporting precision used before the breakpoint lookup
_TRUNCATION = {
    "pm25": Decimal("0.1"),
    "pm10": Decimal("1"),
}

AQI_CATEGORIES: List[Tuple[int, str, str]] = [
    (50, "Good", "#10b981"),
    (100, "Moderate", "#84cc16"),
    (150, "Unhealthy for Sensitive", "#f59e0b"),
    (200, "Unhealthy", "#f97316"),
    (300, "Very Unhealthy", "#ef4444"),
]
HAZARDOUS = ("Hazardous", "#991b1b")

# 1-5 vendor scale (1 = Good ... 5 = Very Poor) -> representative US AQI
VENDOR_SCALE: Dict[int, Tuple[int, str, str]] = {
    1: (50, "Good", "#10b981"),
    2: (100, "Fair", "#84cc16"),
    3: (150, "Moderate", "#f59e0b"),
    4: (200, "Poor", "#f97316"),
    5: (300, "Very Poor", "#ef4444"),
}

NO_DATA_COLOR = "#94a3b8"
MAX_AQI = 500


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _truncate(concentration: float, pollutant: str) -> float:
    quantum = _TRUNCATION[pollutant]
    return float(Decimal(str(concentration)).quantize(quantum, rounding=ROUND_DOWN))


def compute_us_aqi_from_concentration(concentration: float, pollutant: str) -> int:
    """
    Convert a pollutant concentration to a US AQI value.

    Uses the EPA piecewise-linear formula
    ``I = (I_hi - I_lo) / (C_hi - C_lo) * (C - C_lo) + I_lo``.
    Concentrations are truncated to the EPA reporting precision first
    (0.1 µg/m³ for PM2.5, 1 µg/m³ for PM10), which closes the gaps between
    adjacent published bands.

    Args:
        concentration: Concentration in µg/m³ (must be >= 0)
        pollutant: "pm25" or "pm10"

    Returns:
        Integer AQI, saturating at 500 above the top band

    Raises:
        CalculationError: If the concentration is negative, not finite,
            or the pollutant is unknown
    """
    if pollutant not in AQI_BREAKPOINTS:
        raise CalculationError(
            f"Unknown pollutant '{pollutant}'",
            details={"supported": list(AQI_BREAKPOINTS)}
        )

    try:
        value = float(concentration)
    except (TypeError, ValueError):
        raise CalculationError(
            "Concentration must be a number",
            details={"concentration": concentration, "pollutant": pollutant}
        )

    if math.isnan(value) or value < 0:
        raise CalculationError(
            "Concentration must be a non-negative number",
            details={"concentration": concentration, "pollutant": pollutant}
        )

    breakpoints = AQI_BREAKPOINTS[pollutant]
    if math.isinf(value) or value > breakpoints[-1].high:
        return MAX_AQI

    c = _truncate(value, pollutant)
    for bp in breakpoints:
        if bp.low <= c <= bp.high:
            aqi = (bp.aqi_high - bp.aqi_low) / (bp.high - bp.low) * (c - bp.low) + bp.aqi_low
            return _round_half_up(aqi)

    # Truncation keeps every in-range value inside a band
    return MAX_AQI


def classify_aqi(value: float) -> Tuple[str, str]:
    """
    Map a US AQI value to its category label and colour.

    Args:
        value: US AQI value

    Returns:
        (label, hex colour)
    """
    for upper, label, color in AQI_CATEGORIES:
        if value <= upper:
            return label, color
    return HAZARDOUS


def _has_value(x: Optional[float]) -> bool:
    return x is not None and not (isinstance(x, float) and math.isnan(x))


def resolve_aqi(
    native_index: Optional[float],
    pm25: Optional[float],
    pm10: Optional[float]
) -> AQIResult:
    """
    Resolve the displayed AQI from a vendor index or raw concentrations.

    Priority:
        1. ``native_index`` in (5, 500]: already a US AQI value
        2. ``native_index`` in [1, 5]: 5-level vendor scale
        3. PM2.5 > 0: EPA formula for PM2.5
        4. PM10 > 0: EPA formula for PM10
        5. otherwise "No Data"

    The ``> 5`` cutoff separating the two index scales is a heuristic:
    a genuine US AQI of 1-5 is read as the vendor scale.

    Args:
        native_index: Vendor-supplied index, if any
        pm25: PM2.5 concentration in µg/m³
        pm10: PM10 concentration in µg/m³

    Returns:
        AQIResult
    """
    if _has_value(native_index):
        if 5 < native_index <= MAX_AQI:
            value = _round_half_up(native_index)
            label, color = classify_aqi(value)
            return AQIResult(value=value, label=label, severity_color=color, raw_aqi=native_index)

        if 1 <= native_index <= 5:
            level = _round_half_up(native_index)
            value, label, color = VENDOR_SCALE[level]
            return AQIResult(value=value, label=label, severity_color=color, raw_aqi=native_index)

    if _has_value(pm25) and pm25 > 0:
        value = compute_us_aqi_from_concentration(pm25, "pm25")
    elif _has_value(pm10) and pm10 > 0:
        value = compute_us_aqi_from_concentration(pm10, "pm10")
    else:
        return AQIResult(value=0, label="No Data", severity_color=NO_DATA_COLOR, raw_aqi=None)

    label, color = classify_aqi(value)
    return AQIResult(value=value, label=label, severity_color=color, raw_aqi=None)
