from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

import requests
from urllib3.exceptions import MaxRetryError, NewConnectionError

logger = logging.getLogger(__name__)

USER_AGENT = "paperclip-client/0.1.0 (+https://github.com/leboncoin/paperclip)"


class TransportErrorKind(StrEnum):
    TIMED_OUT = "timed_out"
    CONNECTION_LOST = "connection_lost"
    NOT_CONNECTED = "not_connected"
    CANCELLED = "cancelled"
    OTHER = "other"


_TRANSIENT_KINDS = {
    TransportErrorKind.TIMED_OUT,
    TransportErrorKind.CONNECTION_LOST,
    TransportErrorKind.NOT_CONNECTED,
}


class TransportError(Exception):
    def __init__(self, kind: TransportErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)

    @property
    def is_transient(self) -> bool:
        return self.kind in _TRANSIENT_KINDS


@dataclass(frozen=True, slots=True)
class HTTPRequest:
    url: str
    method: str = "GET"
    timeout_seconds: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class HTTPResponse:
    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class Transport(Protocol):
    def send(self, request: HTTPRequest) -> HTTPResponse: ...


class RequestsTransport:
    """Blocking transport on top of ``requests.Session``."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.session.headers.setdefault("Accept", "application/json")

    def send(self, request: HTTPRequest) -> HTTPResponse:
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=request.headers or None,
                timeout=request.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise TransportError(TransportErrorKind.TIMED_OUT, str(exc)) from exc
        except requests.ConnectionError as exc:
            raise TransportError(_classify_connection_error(exc), str(exc)) from exc
        except requests.exceptions.ChunkedEncodingError as exc:
            raise TransportError(TransportErrorKind.CONNECTION_LOST, str(exc)) from exc
        except requests.RequestException as exc:
            raise TransportError(TransportErrorKind.OTHER, str(exc)) from exc

        logger.info(
            "http response method=%s url=%s status=%d bytes=%d",
            request.method,
            request.url,
            response.status_code,
            len(response.content),
        )
        return HTTPResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        self.session.close()


def _classify_connection_error(error: requests.ConnectionError) -> TransportErrorKind:
    # requests wraps urllib3 failures as ConnectionError(MaxRetryError(reason=...)).
    reason = error.args[0] if error.args else None
    if isinstance(reason, MaxRetryError):
        reason = reason.reason
    # NameResolutionError subclasses NewConnectionError.
    if isinstance(reason, NewConnectionError):
        return TransportErrorKind.NOT_CONNECTED
    return TransportErrorKind.CONNECTION_LOST
