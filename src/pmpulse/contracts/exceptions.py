"""Exception hierarchy for pmpulse."""

from __future__ import annotations


class PmPulseError(Exception):
    """Base exception for all pmpulse errors."""

    remediation = ""


class ConfigError(PmPulseError):
    """Configuration loading or validation failure."""

    remediation = "Check the configuration file and the required fields."


class StoreError(PmPulseError):
    """Key/value persistence failure."""

    remediation = "Check that the store file is readable and writable."


class ForecastNotFoundError(PmPulseError):
    """Forecast id is unknown in the active context."""

    def __init__(self, message: str, *, forecast_id: str) -> None:
        super().__init__(message)
        self.forecast_id = forecast_id


class ProviderError(PmPulseError):
    """Base upstream tracker failure."""


class AuthenticationError(ProviderError):
    """Token is missing, invalid or expired."""

    remediation = "Check the access token and its expiry date."


class NotFoundError(ProviderError):
    """Project or group does not exist or is not visible to the token."""

    remediation = "Check the project id / group path and the tracker URL."


class ForbiddenError(ProviderError):
    """Token lacks the scopes required for the request."""

    remediation = "Check the token scopes (read_api is required)."


class UpstreamError(ProviderError):
    """Server-side failure or unexpected status from the tracker."""

    remediation = "The tracker responded with an error; retry later."

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ProviderError):
    """Tracker is unreachable."""

    remediation = "Check network connectivity, proxies and the tracker URL."


class FeatureUnavailableError(ProviderError):
    """Requested data class is not available on the tracker (tier or version)."""

    def __init__(self, message: str, *, feature: str) -> None:
        super().__init__(message)
        self.feature = feature
