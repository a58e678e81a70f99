"""Tests for reading normalization."""
from datetime import datetime, timedelta, timezone

import pytest

from smart_city_dashboard.analytics.normalizer import normalize
from smart_city_dashboard.models import (
    AirQualitySeries,
    ApiNinjasReading,
    AqicnReading,
    EmptyReading,
    ForecastPayload,
    ForecastSample,
    GenericReading,
    HourlySeries,
    OpenAQSample,
    OpenAQSeriesReading,
    OpenMeteoCurrent,
    OpenMeteoReading,
)


FETCHED_AT = datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc)

# 2024-05-01T10:00:00Z
BASE_TS = 1714557600


def hourly(hours: int, pm25: float = 10.0, pm10: float = 20.0) -> HourlySeries:
    return HourlySeries(
        timestamps=[f"2024-05-{1 + h // 24:02d}T{h % 24:02d}:00" for h in range(hours)],
        pm25=[pm25 + h for h in range(hours)],
        pm10=[pm10 + h for h in range(hours)],
    )


def assert_aligned(series: AirQualitySeries):
    assert len(series.time_labels) == len(series.pm25) == len(series.pm10)
    assert all(v >= 0 for v in series.pm25 + series.pm10)


class TestSingleSampleReadings:
    """Test providers that report only current values."""

    def test_api_ninjas(self):
        reading = ApiNinjasReading(
            provenance="api-ninjas",
            fetched_at=FETCHED_AT,
            overall_aqi=68,
            pm25_concentration=20.0,
        )

        series = normalize(reading)

        assert series.time_labels == ["14:30"]
        assert series.pm25 == [20.0]
        assert series.pm10 == [0.0]
        assert series.current_pm25 == 20.0
        assert series.current_pm10 is None
        assert series.current_raw_index == 68

    def test_api_ninjas_index_only(self):
        """Test a reading without concentrations keeps its index but no samples."""
        reading = ApiNinjasReading(provenance="api-ninjas", fetched_at=FETCHED_AT, overall_aqi=42)

        series = normalize(reading)

        assert series.is_empty
        assert series.current_raw_index == 42

    def test_aqicn(self):
        reading = AqicnReading(
            provenance="aqicn-geo",
            fetched_at=FETCHED_AT,
            aqi=152,
            pm25=152,
            pm10=64,
        )

        series = normalize(reading)

        assert series.time_labels == ["14:30"]
        assert series.pm25 == [152.0]
        assert series.pm10 == [64.0]
        assert series.current_raw_index == 152

    def test_negative_values_are_dropped(self):
        reading = AqicnReading(provenance="aqicn-city", fetched_at=FETCHED_AT, pm25=-3, pm10=40)

        series = normalize(reading)

        assert series.pm25 == [0.0]
        assert series.current_pm25 is None
        assert series.current_pm10 == 40.0


class TestOpenMeteo:
    """Test Open-Meteo readings."""

    def test_hourly_series_truncated_to_24(self):
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            current=OpenMeteoCurrent(pm25=11.0, pm10=22.0, us_aqi=46, european_aqi=20),
            hourly=hourly(30),
        )

        series = normalize(reading)

        assert len(series.time_labels) == 24
        assert series.time_labels[0] == "00:00"
        assert series.time_labels[-1] == "23:00"
        assert series.pm25[0] == 10.0
        assert series.current_pm25 == 11.0
        assert series.current_raw_index == 46

    def test_european_index_used_without_us_index(self):
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            current=OpenMeteoCurrent(pm25=11.0, european_aqi=20),
        )

        assert normalize(reading).current_raw_index == 20

    def test_missing_hourly_values_read_zero(self):
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            hourly=HourlySeries(
                timestamps=["2024-05-01T00:00", "2024-05-01T01:00"],
                pm25=[None, 5.0],
                pm10=[7.0, None],
            ),
        )

        series = normalize(reading)

        assert series.pm25 == [0.0, 5.0]
        assert series.pm10 == [7.0, 0.0]
        assert series.mean_pm25 == 5.0
        assert series.mean_pm10 == 7.0

    def test_unparseable_timestamp_uses_fetch_time(self):
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            hourly=HourlySeries(
                timestamps=["2024-05-01T08:00", "not a time", "2024-05-01T10:00"],
                pm25=[1.0, 2.0, 3.0],
                pm10=[1.0, 2.0, 3.0],
            ),
        )

        series = normalize(reading)

        assert series.time_labels == ["08:00", "14:30", "10:00"]
        assert series.pm25 == [1.0, 2.0, 3.0]

    def test_misaligned_hourly_falls_back_to_forecast(self):
        broken = HourlySeries(timestamps=["2024-05-01T00:00"], pm25=[1.0, 2.0], pm10=[1.0])
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            current=OpenMeteoCurrent(pm25=9.0),
            hourly=broken,
        )
        forecast = ForecastPayload(hourly=hourly(48, pm25=5.0))

        series = normalize(reading, forecast)

        assert len(series.time_labels) == 24
        assert series.pm25[:2] == [5.0, 6.0]
        assert series.current_pm25 == 9.0

    def test_current_only_without_forecast(self):
        reading = OpenMeteoReading(
            provenance="open-meteo",
            fetched_at=FETCHED_AT,
            current=OpenMeteoCurrent(pm25=9.0, pm10=18.0, us_aqi=38),
        )

        series = normalize(reading)

        assert series.time_labels == ["14:30"]
        assert series.pm25 == [9.0]
        assert series.pm10 == [18.0]


class TestOpenAQ:
    """Test OpenAQ measurement alignment."""

    def test_series_aligned_by_hour(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[
                OpenAQSample(parameter="pm25", value=30, timestamp_utc="2024-05-01T10:00:00+00:00"),
                OpenAQSample(parameter="pm10", value=50, timestamp_utc="2024-05-01T10:00:00+00:00"),
                OpenAQSample(parameter="pm25", value=20, timestamp_utc="2024-05-01T09:00:00+00:00"),
                OpenAQSample(parameter="pm25", value=10, timestamp_utc="2024-05-01T08:00:00+00:00"),
                OpenAQSample(parameter="pm10", value=40, timestamp_utc="2024-05-01T08:00:00+00:00"),
            ],
        )

        series = normalize(reading)

        assert series.time_labels == ["08:00", "09:00", "10:00"]
        assert series.pm25 == [10.0, 20.0, 30.0]
        assert series.pm10 == [40.0, 0.0, 50.0]
        assert series.current_pm25 == 30.0
        assert series.current_pm10 == 50.0
        assert series.current_raw_index is None

    def test_samples_in_same_hour_are_averaged(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[
                OpenAQSample(parameter="pm25", value=30, timestamp_utc="2024-05-01T10:45:00Z"),
                OpenAQSample(parameter="pm25", value=10, timestamp_utc="2024-05-01T10:15:00Z"),
            ],
        )

        series = normalize(reading)

        assert series.time_labels == ["10:00"]
        assert series.pm25 == [20.0]
        assert series.pm10 == [0.0]
        assert series.current_pm25 == 30.0
        assert series.current_pm10 is None

    def test_keeps_30_most_recent_per_pollutant(self):
        samples = [
            OpenAQSample(
                parameter="pm25",
                value=float(h),
                timestamp_utc=f"2024-05-{1 + h // 24:02d}T{h % 24:02d}:00:00Z",
            )
            for h in range(40)
        ]
        reading = OpenAQSeriesReading(provenance="openaq", fetched_at=FETCHED_AT, samples=samples)

        series = normalize(reading)

        assert len(series.pm25) == 30
        assert series.pm25[0] == 10.0
        assert series.pm25[-1] == 39.0
        assert series.current_pm25 == 39.0

    def test_unparseable_timestamp_uses_fetch_time(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[
                OpenAQSample(parameter="pm25", value=5, timestamp_utc="2024-05-01T10:00:00Z"),
                OpenAQSample(parameter="pm25", value=7, timestamp_utc="garbage"),
            ],
        )

        series = normalize(reading)

        assert series.time_labels == ["10:00", "14:30"]
        assert series.pm25 == [5.0, 7.0]

    def test_negative_measurements_discarded(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[OpenAQSample(parameter="pm25", value=-999, timestamp_utc="2024-05-01T10:00:00Z")],
        )

        series = normalize(reading)

        assert series.is_empty
        assert series.current_pm25 is None

    def test_padding_left_out_of_measured_means(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[
                OpenAQSample(parameter="pm25", value=60, timestamp_utc="2024-05-01T10:00:00Z"),
                OpenAQSample(parameter="pm25", value=60, timestamp_utc="2024-05-01T11:00:00Z"),
                OpenAQSample(parameter="pm10", value=40, timestamp_utc="2024-05-01T12:00:00Z"),
                OpenAQSample(parameter="pm10", value=40, timestamp_utc="2024-05-01T13:00:00Z"),
            ],
        )

        series = normalize(reading)

        assert series.pm25 == [60.0, 60.0, 0.0, 0.0]
        assert series.pm10 == [0.0, 0.0, 40.0, 40.0]
        assert series.mean_pm25 == 60.0
        assert series.mean_pm10 == 40.0

    def test_missing_pollutant_has_no_mean(self):
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[OpenAQSample(parameter="pm10", value=12, timestamp_utc="2024-05-01T12:00:00Z")],
        )

        series = normalize(reading)

        assert series.mean_pm10 == 12.0
        assert series.mean_pm25 is None

    def test_labels_in_fetch_time_zone(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        reading = OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=datetime(2024, 5, 1, 20, 0, tzinfo=ist),
            samples=[
                OpenAQSample(parameter="pm25", value=5, timestamp_utc="2024-05-01T10:00:00Z"),
                OpenAQSample(parameter="pm25", value=7, timestamp_utc="garbage"),
            ],
        )

        series = normalize(reading)

        assert series.time_labels == ["15:30", "20:00"]
        assert series.pm25 == [5.0, 7.0]


class TestGeneric:
    """Test generic forecast-list readings."""

    def test_forecast_samples(self):
        reading = GenericReading(
            provenance="openweather",
            fetched_at=FETCHED_AT,
            aqi=3,
            pm25=12.5,
            pm10=30.0,
            forecast_samples=[
                ForecastSample(timestamp=BASE_TS, pm25=12.5, pm10=30.0),
                ForecastSample(timestamp=BASE_TS + 3600, pm25=14.0),
            ],
        )

        series = normalize(reading)

        assert series.time_labels == ["10:00", "11:00"]
        assert series.pm25 == [12.5, 14.0]
        assert series.pm10 == [30.0, 0.0]
        assert series.current_raw_index == 3

    def test_samples_without_timestamps_count_hours_from_fetch(self):
        reading = GenericReading(
            provenance="openweather",
            fetched_at=FETCHED_AT,
            forecast_samples=[ForecastSample(pm25=1.0), ForecastSample(pm25=2.0)],
        )

        assert normalize(reading).time_labels == ["14:30", "15:30"]

    def test_forecast_samples_truncated_to_24(self):
        reading = GenericReading(
            provenance="openweather",
            fetched_at=FETCHED_AT,
            forecast_samples=[
                ForecastSample(timestamp=BASE_TS + 3600 * i, pm25=float(i)) for i in range(30)
            ],
        )

        assert len(normalize(reading).time_labels) == 24

    def test_backfilled_from_forecast(self):
        reading = GenericReading(provenance="openweather", fetched_at=FETCHED_AT, aqi=2, pm25=8.0)

        series = normalize(reading, ForecastPayload(hourly=hourly(5)))

        assert len(series.time_labels) == 5
        assert series.current_pm25 == 8.0
        assert series.current_raw_index == 2


class TestNormalizeProperties:
    """Test properties shared by every reading variant."""

    READINGS = [
        ApiNinjasReading(provenance="api-ninjas", fetched_at=FETCHED_AT, pm25_concentration=3.0),
        AqicnReading(provenance="aqicn-city", fetched_at=FETCHED_AT, aqi=80),
        OpenMeteoReading(provenance="open-meteo", fetched_at=FETCHED_AT, hourly=hourly(26)),
        OpenAQSeriesReading(
            provenance="openaq",
            fetched_at=FETCHED_AT,
            samples=[OpenAQSample(parameter="pm10", value=12, timestamp_utc="2024-05-01T12:00:00Z")],
        ),
        GenericReading(
            provenance="openweather",
            fetched_at=FETCHED_AT,
            forecast_samples=[ForecastSample(timestamp=BASE_TS, pm25=4.0)],
        ),
        EmptyReading(fetched_at=FETCHED_AT),
    ]

    @pytest.mark.parametrize("reading", READINGS, ids=lambda r: r.source)
    def test_labels_and_values_aligned(self, reading):
        series = normalize(reading)

        assert_aligned(series)
        assert len(series.time_labels) <= 30

    @pytest.mark.parametrize("reading", READINGS, ids=lambda r: r.source)
    def test_idempotent(self, reading):
        forecast = ForecastPayload(hourly=hourly(3))

        assert normalize(reading, forecast) == normalize(reading, forecast)

    def test_empty_reading(self):
        series = normalize(EmptyReading(fetched_at=FETCHED_AT))

        assert series.is_empty
        assert series.current_pm25 is None
        assert series.current_pm10 is None
        assert series.current_raw_index is None
