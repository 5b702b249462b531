from __future__ import annotations

from enum import StrEnum


class CacheError(Exception):
    """Base class for cache and durable storage failures."""


class NoStorageLocation(CacheError):
    def __init__(self, directory: object, reason: str = "") -> None:
        self.directory = directory
        detail = f": {reason}" if reason else ""
        super().__init__(f"No writable cache directory at {directory}{detail}")


class CacheSerializationError(CacheError):
    def __init__(self, key: str, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to serialize cache value key={key}: {cause}")


class CacheSaveError(CacheError):
    def __init__(self, key: str, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to save to cache key={key}: {cause}")


class CacheReadError(CacheError):
    def __init__(self, key: str | None, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to access cache key={key}: {cause}")


class CacheDecodeError(CacheError):
    def __init__(self, key: str, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to decode cache data key={key}: {cause}")


class FetchErrorKind(StrEnum):
    INVALID_URL = "invalid_url"
    REQUEST_FAILED = "request_failed"
    INVALID_RESPONSE = "invalid_response"
    DECODING_FAILED = "decoding_failed"
    SERVER_ERROR = "server_error"
    NO_DATA = "no_data"
    MAX_RETRY_REACHED = "max_retry_reached"
    CANCELLED = "cancelled"


class FetchError(Exception):
    """Base class for every failure surfaced by the fetch client.

    ``kind`` is the structured error category; ``message`` is a short
    human-readable description suitable for display.
    """

    kind: FetchErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidURL(FetchError):
    kind = FetchErrorKind.INVALID_URL

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid URL: {url!r}")


class RequestFailed(FetchError):
    kind = FetchErrorKind.REQUEST_FAILED

    def __init__(self, underlying: Exception) -> None:
        self.underlying = underlying
        super().__init__(f"Request failed: {underlying}")

    @property
    def is_transient(self) -> bool:
        return bool(getattr(self.underlying, "is_transient", False))


class InvalidResponse(FetchError):
    kind = FetchErrorKind.INVALID_RESPONSE

    def __init__(self) -> None:
        super().__init__("Invalid server response")


class DecodingFailed(FetchError):
    kind = FetchErrorKind.DECODING_FAILED

    def __init__(self, underlying: Exception) -> None:
        self.underlying = underlying
        super().__init__(f"Failed to decode response: {underlying}")


class ServerError(FetchError):
    kind = FetchErrorKind.SERVER_ERROR

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Server error with status code: {status_code}")


class NoData(FetchError):
    kind = FetchErrorKind.NO_DATA

    def __init__(self) -> None:
        super().__init__("No data received")


class MaxRetryReached(FetchError):
    kind = FetchErrorKind.MAX_RETRY_REACHED

    def __init__(self, attempts: int, last_error: FetchError | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Maximum retry attempts reached ({attempts} attempts)")


class Cancelled(FetchError):
    kind = FetchErrorKind.CANCELLED

    def __init__(self) -> None:
        super().__init__("Request was cancelled")
