"""Data models for air quality readings, series and dashboard snapshots."""
from datetime import datetime
from typing import Annotated, Optional, List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


class Coordinates(BaseModel):
    """Resolved location, immutable for a refresh cycle."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class GeocodeResult(BaseModel):
    """Geocoder answer for a city name."""
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    display_name: str

    @property
    def coords(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


class SessionState(BaseModel):
    """City and coordinates targeted by the dashboard session."""
    model_config = ConfigDict(frozen=True)

    city: str
    coords: Optional[Coordinates] = None


# Raw readings: one variant per provider family, tagged by ``source``.

class HourlySeries(BaseModel):
    """Hourly pollutant arrays as returned by Open-Meteo."""
    timestamps: List[str] = Field(default_factory=list)
    pm25: List[Optional[float]] = Field(default_factory=list)
    pm10: List[Optional[float]] = Field(default_factory=list)

    @property
    def is_aligned(self) -> bool:
        """True when all three arrays are non-empty and equally long."""
        n = len(self.timestamps)
        return n > 0 and len(self.pm25) == n and len(self.pm10) == n


class OpenMeteoCurrent(BaseModel):
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    us_aqi: Optional[float] = None
    european_aqi: Optional[float] = None


class OpenAQSample(BaseModel):
    parameter: Literal["pm25", "pm10"]
    value: float
    timestamp_utc: str


class ForecastSample(BaseModel):
    """Entry of a vendor forecast list; timestamp is Unix seconds."""
    timestamp: Optional[float] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None


class _ReadingBase(BaseModel):
    provenance: str
    fetched_at: datetime


class ApiNinjasReading(_ReadingBase):
    source: Literal["api_ninjas"] = "api_ninjas"
    overall_aqi: Optional[float] = None
    pm25_concentration: Optional[float] = None
    pm10_concentration: Optional[float] = None


class AqicnReading(_ReadingBase):
    source: Literal["aqicn"] = "aqicn"
    aqi: Optional[float] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None


class OpenMeteoReading(_ReadingBase):
    source: Literal["open_meteo"] = "open_meteo"
    current: OpenMeteoCurrent = Field(default_factory=OpenMeteoCurrent)
    hourly: Optional[HourlySeries] = None


class OpenAQSeriesReading(_ReadingBase):
    source: Literal["openaq"] = "openaq"
    samples: List[OpenAQSample] = Field(default_factory=list)


class GenericReading(_ReadingBase):
    source: Literal["generic"] = "generic"
    aqi: Optional[float] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    forecast_samples: List[ForecastSample] = Field(default_factory=list)


class EmptyReading(_ReadingBase):
    source: Literal["empty"] = "empty"
    provenance: str = "none"


RawReading = Annotated[
    Union[
        ApiNinjasReading,
        AqicnReading,
        OpenMeteoReading,
        OpenAQSeriesReading,
        GenericReading,
        EmptyReading,
    ],
    Field(discriminator="source"),
]


class ProviderFailure(BaseModel):
    """Recoverable failure of a single provider attempt."""
    provider: str
    reason: str


class ForecastPayload(BaseModel):
    """Best-effort hourly air quality forecast for the coordinates."""
    hourly: HourlySeries


# Canonical outputs

class AirQualitySeries(BaseModel):
    """Chart-ready PM2.5/PM10 series plus the current snapshot."""
    time_labels: List[str] = Field(default_factory=list)
    pm25: List[float] = Field(default_factory=list)
    pm10: List[float] = Field(default_factory=list)
    current_pm25: Optional[float] = None
    current_pm10: Optional[float] = None
    current_raw_index: Optional[float] = None
    # Averages over measured samples only; padded or missing points are excluded
    mean_pm25: Optional[float] = Field(default=None, ge=0)
    mean_pm10: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_alignment(self):
        if not (len(self.time_labels) == len(self.pm25) == len(self.pm10)):
            raise ValueError(
                "time_labels, pm25 and pm10 must have the same length "
                f"({len(self.time_labels)}, {len(self.pm25)}, {len(self.pm10)})"
            )
        if any(v < 0 for v in self.pm25) or any(v < 0 for v in self.pm10):
            raise ValueError("pollutant concentrations must be non-negative")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.time_labels


class AQIResult(BaseModel):
    """Resolved index with its display label and colour."""
    value: int = Field(ge=0, le=500)
    label: str
    severity_color: str
    raw_aqi: Optional[float] = None


class WeatherSeries(BaseModel):
    """Temperature series from the weather collaborator."""
    time_labels: List[str]
    temperatures: List[float]
    current_temperature: Optional[float] = None
    current_humidity: Optional[float] = None
    source: Literal["openweathermap", "open-meteo"]


class SyntheticSeries(BaseModel):
    """Simulated hourly traffic or energy index."""
    time_labels: List[str]
    values: List[int]
    average: float
    label: str


class DashboardSnapshot(BaseModel):
    """Everything the dashboard renders after one refresh cycle."""
    session: Optional[SessionState] = None
    air_quality: AirQualitySeries = Field(default_factory=AirQualitySeries)
    aqi: Optional[AQIResult] = None
    provenance: str = "none"
    provenance_label: str = "Calculated"
    weather: Optional[WeatherSeries] = None
    traffic: Optional[SyntheticSeries] = None
    energy: Optional[SyntheticSeries] = None
    insights: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    generated_at: datetime

    @property
    def ok(self) -> bool:
        return self.error is None
