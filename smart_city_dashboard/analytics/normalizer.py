"""Normalization of provider readings into a canonical air quality series.

Every provider family has its own reading variant (see ``models``); this
module turns any of them into an ``AirQualitySeries``. Dispatch happens on
the variant's ``source`` tag only, the payload is never re-inspected to
guess which provider produced it.

Labels are ``HH:MM`` strings in the clock of the timestamp they come from,
except OpenAQ's UTC timestamps, which are shown in the fetch time's zone.
A timestamp that cannot be parsed is labelled with the reading's fetch time
instead; the rest of the series is unaffected.
"""
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from smart_city_dashboard.models import (
    AirQualitySeries,
    ForecastPayload,
    ForecastSample,
    HourlySeries,
)


LABEL_FORMAT = "%H:%M"
SERIES_LIMIT = 24
OPENAQ_LIMIT = 30
OPENAQ_BUCKET = "h"


def _concentration(value) -> float:
    """Series value: missing, negative or non-numeric readings count as 0."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v) or v < 0:
        return 0.0
    return v


def _current(value) -> Optional[float]:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or v < 0:
        return None
    return v


def _measured_mean(values) -> Optional[float]:
    measured = [v for v in (_current(x) for x in values) if v is not None]
    if not measured:
        return None
    return float(np.mean(measured))


def _parse_timestamp(raw, utc: bool = False) -> Optional[pd.Timestamp]:
    if raw is None:
        return None
    ts = pd.to_datetime(raw, errors="coerce", utc=utc)
    if pd.isna(ts):
        return None
    return ts


def _label(raw, fetched_at: datetime) -> str:
    ts = _parse_timestamp(raw)
    if ts is None:
        return fetched_at.strftime(LABEL_FORMAT)
    return ts.strftime(LABEL_FORMAT)


def _single_sample(reading, pm25, pm10, raw_index) -> AirQualitySeries:
    pm25 = _current(pm25)
    pm10 = _current(pm10)
    if pm25 is None and pm10 is None:
        return AirQualitySeries(current_raw_index=raw_index)

    return AirQualitySeries(
        time_labels=[reading.fetched_at.strftime(LABEL_FORMAT)],
        pm25=[_concentration(pm25)],
        pm10=[_concentration(pm10)],
        current_pm25=pm25,
        current_pm10=pm10,
        current_raw_index=raw_index,
    )


def _from_hourly(
    hourly: HourlySeries,
    fetched_at: datetime,
    pm25,
    pm10,
    raw_index
) -> AirQualitySeries:
    timestamps = hourly.timestamps[:SERIES_LIMIT]
    pm25_values = hourly.pm25[:SERIES_LIMIT]
    pm10_values = hourly.pm10[:SERIES_LIMIT]
    return AirQualitySeries(
        time_labels=[_label(t, fetched_at) for t in timestamps],
        pm25=[_concentration(v) for v in pm25_values],
        pm10=[_concentration(v) for v in pm10_values],
        current_pm25=_current(pm25),
        current_pm10=_current(pm10),
        current_raw_index=raw_index,
        mean_pm25=_measured_mean(pm25_values),
        mean_pm10=_measured_mean(pm10_values),
    )


def _forecast_hourly(forecast: Optional[ForecastPayload]) -> Optional[HourlySeries]:
    if forecast is not None and forecast.hourly.is_aligned:
        return forecast.hourly
    return None


def _normalize_api_ninjas(reading, forecast) -> AirQualitySeries:
    return _single_sample(
        reading,
        reading.pm25_concentration,
        reading.pm10_concentration,
        reading.overall_aqi,
    )


def _normalize_aqicn(reading, forecast) -> AirQualitySeries:
    return _single_sample(reading, reading.pm25, reading.pm10, reading.aqi)


def _normalize_open_meteo(reading, forecast) -> AirQualitySeries:
    current = reading.current
    raw_index = current.us_aqi if current.us_aqi is not None else current.european_aqi

    if reading.hourly is not None and reading.hourly.is_aligned:
        return _from_hourly(reading.hourly, reading.fetched_at, current.pm25, current.pm10, raw_index)

    backfill = _forecast_hourly(forecast)
    if backfill is not None:
        return _from_hourly(backfill, reading.fetched_at, current.pm25, current.pm10, raw_index)

    return _single_sample(reading, current.pm25, current.pm10, raw_index)


def _normalize_openaq(reading, forecast) -> AirQualitySeries:
    """
    Build aligned PM2.5/PM10 series from OpenAQ measurements.

    The most recent 30 samples of each pollutant are kept, then both are
    bucketed by hour and outer-joined so every label refers to the same
    sampling hour for both pollutants. Several samples in one bucket are
    averaged; a pollutant with no sample in a bucket reads 0 on the chart
    but is left out of ``mean_pm25``/``mean_pm10``. Labels are rendered in
    the fetch time's zone.
    """
    samples = [s for s in reading.samples if s.value >= 0]
    if not samples:
        return AirQualitySeries()

    fetched_utc = pd.Timestamp(reading.fetched_at)
    if fetched_utc.tzinfo is None:
        fetched_utc = fetched_utc.tz_localize("UTC")
    else:
        fetched_utc = fetched_utc.tz_convert("UTC")

    parsed = [_parse_timestamp(s.timestamp_utc, utc=True) for s in samples]
    df = pd.DataFrame({
        "parameter": [s.parameter for s in samples],
        "value": [float(s.value) for s in samples],
        "ts": pd.to_datetime([p if p is not None else fetched_utc for p in parsed], utc=True),
        "parsed": [p is not None for p in parsed],
    })

    df = df.sort_values("ts", ascending=False, kind="stable")
    recent = df.groupby("parameter", sort=False).head(OPENAQ_LIMIT).copy()
    latest = recent.groupby("parameter", sort=False)["value"].first()

    # Unparseable timestamps keep the exact fetch time as their label
    recent["bucket"] = recent["ts"].dt.floor(OPENAQ_BUCKET).where(recent["parsed"], recent["ts"])
    buckets = (
        recent.pivot_table(index="bucket", columns="parameter", values="value", aggfunc="mean")
        .reindex(columns=["pm25", "pm10"])
        .sort_index()
    )
    measured = buckets.mean()
    aligned = buckets.fillna(0.0)

    index = aligned.index
    if reading.fetched_at.tzinfo is not None:
        index = index.tz_convert(reading.fetched_at.tzinfo)

    return AirQualitySeries(
        time_labels=[ts.strftime(LABEL_FORMAT) for ts in index],
        pm25=[float(v) for v in aligned["pm25"]],
        pm10=[float(v) for v in aligned["pm10"]],
        current_pm25=float(latest["pm25"]) if "pm25" in latest.index else None,
        current_pm10=float(latest["pm10"]) if "pm10" in latest.index else None,
        current_raw_index=None,
        mean_pm25=None if pd.isna(measured["pm25"]) else float(measured["pm25"]),
        mean_pm10=None if pd.isna(measured["pm10"]) else float(measured["pm10"]),
    )


def _sample_label(sample: ForecastSample, index: int, fetched_at: datetime) -> str:
    if sample.timestamp is None:
        return (fetched_at + timedelta(hours=index)).strftime(LABEL_FORMAT)
    try:
        return datetime.fromtimestamp(sample.timestamp, tz=fetched_at.tzinfo).strftime(LABEL_FORMAT)
    except (OverflowError, OSError, ValueError):
        return fetched_at.strftime(LABEL_FORMAT)


def _normalize_generic(reading, forecast) -> AirQualitySeries:
    samples: List[ForecastSample] = reading.forecast_samples[:SERIES_LIMIT]
    if samples:
        return AirQualitySeries(
            time_labels=[_sample_label(s, i, reading.fetched_at) for i, s in enumerate(samples)],
            pm25=[_concentration(s.pm25) for s in samples],
            pm10=[_concentration(s.pm10) for s in samples],
            current_pm25=_current(reading.pm25),
            current_pm10=_current(reading.pm10),
            current_raw_index=reading.aqi,
            mean_pm25=_measured_mean(s.pm25 for s in samples),
            mean_pm10=_measured_mean(s.pm10 for s in samples),
        )

    backfill = _forecast_hourly(forecast)
    if backfill is not None:
        return _from_hourly(backfill, reading.fetched_at, reading.pm25, reading.pm10, reading.aqi)

    return _single_sample(reading, reading.pm25, reading.pm10, reading.aqi)


def _normalize_empty(reading, forecast) -> AirQualitySeries:
    return AirQualitySeries()


_NORMALIZERS: Dict[str, Callable] = {
    "api_ninjas": _normalize_api_ninjas,
    "aqicn": _normalize_aqicn,
    "open_meteo": _normalize_open_meteo,
    "openaq": _normalize_openaq,
    "generic": _normalize_generic,
    "empty": _normalize_empty,
}


def normalize(reading, forecast: Optional[ForecastPayload] = None) -> AirQualitySeries:
    """
    Normalize a raw provider reading into an ``AirQualitySeries``.

    Args:
        reading: Any ``RawReading`` variant
        forecast: Optional hourly forecast used to backfill single-sample
            Open-Meteo and generic readings

    Returns:
        Series with equally long labels, PM2.5 and PM10 sequences
    """
    return _NORMALIZERS[reading.source](reading, forecast)
