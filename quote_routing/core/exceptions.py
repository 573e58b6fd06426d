"""Exception hierarchy for the routing engine."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when the geocoding provider answers with an error status."""
    pass


class APITimeoutError(APIClientError):
    """Raised when the geocoding provider does not answer in time."""
    pass


class InvalidPayloadError(APIClientError):
    """Raised when the geocoding provider answers with an unusable body."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class GeospatialUnavailableError(DatabaseError):
    """Raised when the spatial extension cannot be enabled."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass
