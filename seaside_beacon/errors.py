"""
Error taxonomy for Seaside Beacon

Upstream failures are classified once (see resilience.classify_failure) and
surface to callers as one of these types:

- TransientUpstreamError: timeout, connection error, 5xx, 408/429
- AuthError:              credential rejected or missing, never retried
- MalformedResponseError: payload lacks the record we need (e.g. the 6 AM hour)
- NoDataAvailable:        fresh, stale and in-flight layers all came up empty
- DataUnavailable:        a score cannot be computed for a point
- UnknownPointError:      point id is not configured (synchronous validation)
"""

from typing import Any, Optional


class SeasideBeaconError(Exception):
    """Base class for every error raised by this package."""


class UpstreamError(SeasideBeaconError):
    """An upstream provider call failed."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status_code = status_code


class TransientUpstreamError(UpstreamError):
    """Retryable failure: timeout, 5xx, explicit rate limit."""


class AuthError(UpstreamError):
    """Credential rejected. Retrying cannot succeed."""


class MalformedResponseError(SeasideBeaconError):
    """A successful response did not contain the expected record."""


# Raised by payload parsers on a shape they do not expect
PARSE_ERRORS = (ValueError, TypeError, AttributeError, KeyError)


class NoDataAvailable(SeasideBeaconError):
    """No payload of any age exists for this provider key."""

    def __init__(self, provider: str, endpoint: str, key: Any):
        super().__init__(f"[{provider}] No data available for {endpoint} key={key!r}")
        self.provider = provider
        self.endpoint = endpoint
        self.key = key


class DataUnavailable(SeasideBeaconError):
    """The primary forecast sources are exhausted for a point."""

    def __init__(self, point_id: str, reason: str):
        super().__init__(f"Forecast unavailable for '{point_id}': {reason}")
        self.point_id = point_id
        self.reason = reason


class UnknownPointError(SeasideBeaconError, ValueError):
    """Raised synchronously for a point id that is not configured."""

    def __init__(self, point_id: str):
        super().__init__(f"Point '{point_id}' not found")
        self.point_id = point_id
