"""Error types raised by the feed pipeline and the profile store."""

from __future__ import annotations


class TubeFeedError(Exception):
    """Base class for all feed pipeline failures."""


class Unauthenticated(TubeFeedError):
    """Raised when the token provider yields no usable bearer token."""

    def __init__(self, message: str = "No YouTube access token available") -> None:
        super().__init__(message)


class RemoteFailure(TubeFeedError):
    """Raised when the YouTube API answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"YouTube API responded with HTTP {status_code}")


class DecodeFailure(TubeFeedError):
    """Raised when a response body does not match the expected schema."""


class StorageFailure(TubeFeedError):
    """Raised when the persistence layer rejects an operation."""


class ValidationFailure(TubeFeedError, ValueError):
    """Raised for invalid caller input such as an empty profile name."""


NoAccessToken = Unauthenticated
BadStatus = RemoteFailure
DecodeFailed = DecodeFailure

__all__ = [
    "BadStatus",
    "DecodeFailed",
    "DecodeFailure",
    "NoAccessToken",
    "RemoteFailure",
    "StorageFailure",
    "TubeFeedError",
    "Unauthenticated",
    "ValidationFailure",
]
