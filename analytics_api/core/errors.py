"""Error taxonomy shared by services and the HTTP layer."""


class AnalyticsError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AnalyticsError):
    """Missing or malformed request parameters."""

    status_code = 400


class AuthError(AnalyticsError):
    """Missing (401) or invalid (403) API key."""

    status_code = 401


class UpstreamQueryError(AnalyticsError):
    """A warehouse query failed or returned rows of an unexpected shape."""

    status_code = 500


class ConfigurationError(AnalyticsError):
    """Runtime configuration is missing or invalid."""

    status_code = 500
