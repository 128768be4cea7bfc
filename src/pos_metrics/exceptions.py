"""Domain-specific exceptions for POS Metrics.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from PosMetricsError for easy catching.
"""

from __future__ import annotations


class PosMetricsError(Exception):
    """Base exception for all POS Metrics errors.

    Users can catch this exception to handle any error raised by the sync
    orchestrators, the API clients or the store.
    """

    pass


class ConfigError(PosMetricsError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Required settings (credentials, location ids, unit id) are missing
    - Environment values cannot be parsed
    """

    pass


class ETLError(PosMetricsError):
    """Raised when a sync stage fails."""

    pass


class ExtractionError(ETLError):
    """Raised when data extraction from a source system fails.

    This exception is raised when:
    - Network connection to the source API fails
    - The API returns an unexpected response
    """

    pass


class APIError(ExtractionError):
    """Raised when a source API answers with a non-success HTTP status.

    Attributes:
        path: Request path (without host).
        status_code: HTTP status code returned by the API.
        body: First part of the response body, for diagnostics.
    """

    def __init__(self, path: str, status_code: int, body: str = "") -> None:
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"API {path} failed: HTTP {status_code} {body}".rstrip())


class AuthenticationError(APIError):
    """Raised when the credential exchange with a source API fails.

    Always fatal for the sync key being processed.
    """

    pass
