"""Exception hierarchy for track resolution and verification.

Not-found outcomes are ordinary failed results, not exceptions. The classes
here cover the transient, auth, malformed-input and misconfiguration cases.
"""

from typing import Any


class CrossTrackError(Exception):
    """Base exception for all crosstrack errors."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class InvalidIdentifierError(CrossTrackError, ValueError):
    """A platform identifier does not have the platform's id shape."""

    def __init__(self, platform: str, value: str) -> None:
        super().__init__(f"Invalid {platform} identifier: {value!r}")
        self.platform = platform
        self.value = value


class ConfigurationError(CrossTrackError):
    """The engine was wired up with settings it cannot run with."""


class PlatformRequestError(CrossTrackError):
    """An upstream platform request failed.

    Carries the platform name and, when the server answered, the HTTP status.
    """

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code


class RateLimitExhaustedError(PlatformRequestError):
    """Retries for a rate-limited or unreachable platform ran out."""


class PlatformAuthError(PlatformRequestError):
    """Missing, expired or rejected access token.

    The platform is skipped for the rest of the run instead of being retried.
    """
