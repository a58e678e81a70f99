"""Configuration management using Pydantic settings."""
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from smart_city_dashboard.exceptions import ConfigurationError
from smart_city_dashboard.logging_config import LOG_LEVELS


KNOWN_PROVIDERS = (
    "api_ninjas",
    "aqicn_city",
    "aqicn_geo",
    "open_meteo",
    "openweather",
    "openaq",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # API Keys
    api_ninjas_api_key: str = Field(default="", alias="API_NINJAS_API_KEY")
    aqicn_token: str = Field(default="demo", alias="AQICN_TOKEN")
    openweather_api_key: str = Field(default="", alias="OPENWEATHER_API_KEY")
    openaq_api_key: str = Field(default="", alias="OPENAQ_API_KEY")

    # Paths
    provider_config_path: Path = Field(
        default=Path(__file__).parent / "providers.yaml",
        alias="PROVIDER_CONFIG_PATH"
    )

    # Application
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")
    default_city: str = Field(default="Delhi", alias="DEFAULT_CITY")
    geocoder_user_agent: str = Field(
        default="SmartCityDashboard/1.0",
        alias="GEOCODER_USER_AGENT"
    )

    # Network / refresh
    provider_timeout_seconds: float = Field(default=10.0, gt=0, alias="PROVIDER_TIMEOUT_SECONDS")
    refresh_interval_seconds: int = Field(default=60, gt=0, alias="REFRESH_INTERVAL_SECONDS")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the level name; unknown names are rejected at load time."""
        v = v.strip().upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Allowed: {', '.join(LOG_LEVELS)}")
        return v


class ProviderConfig:
    """Provider chain configuration loaded from YAML."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self._config = self._load_config()

    def _load_config(self) -> Dict:
        """Load provider configuration from YAML."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def get_chain(self) -> List[str]:
        """Get the ordered list of air quality provider names."""
        chain = self._config.get("air_quality", {}).get("chain") or list(KNOWN_PROVIDERS)

        unknown = [name for name in chain if name not in KNOWN_PROVIDERS]
        if unknown:
            raise ConfigurationError(
                f"Unknown air quality provider(s): {', '.join(unknown)}",
                details={"known": list(KNOWN_PROVIDERS)}
            )
        return list(chain)

    def get_options(self, provider: str) -> Dict[str, Any]:
        """Get provider-specific options (empty when none are configured)."""
        if provider not in KNOWN_PROVIDERS:
            raise ConfigurationError(f"Provider '{provider}' not found in configuration")
        options = self._config.get("air_quality", {}).get("options") or {}
        return dict(options.get(provider) or {})

    @property
    def forecast_days(self) -> int:
        return int(self._config.get("forecast", {}).get("forecast_days", 5))

    @property
    def weather_entries(self) -> int:
        return int(self._config.get("weather", {}).get("forecast_entries", 24))


# Global settings instance
settings = Settings()
provider_config = ProviderConfig(settings.provider_config_path)
