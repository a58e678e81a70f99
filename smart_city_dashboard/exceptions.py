"""Custom exceptions for the Smart City Dashboard."""
from typing import Optional, Dict, Any


class DashboardException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CalculationError(DashboardException):
    """Raised when the AQI formula receives invalid input."""


class GeocodeFailure(DashboardException):
    """Raised when a city name cannot be resolved to coordinates."""

    def __init__(self, city: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"City '{city}' not found. Please try a different city name.",
            details
        )
        self.city = city


class ProviderError(DashboardException):
    """Raised inside a provider adapter when its response is unusable."""

    def __init__(
        self,
        message: str,
        provider: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.provider = provider


class ConfigurationError(DashboardException):
    """Raised when configuration is invalid or missing."""
