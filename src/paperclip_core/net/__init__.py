"""HTTP fetching: endpoints, transport, request registry and the fetch client."""

from .client import FetchClient
from .endpoint import CATEGORIES_URL, LISTINGS_URL, Endpoint, HTTPMethod
from .registry import InFlightRequest, RequestRegistry
from .transport import (
    HTTPRequest,
    HTTPResponse,
    RequestsTransport,
    Transport,
    TransportError,
    TransportErrorKind,
)

__all__ = [
    "CATEGORIES_URL",
    "Endpoint",
    "FetchClient",
    "HTTPMethod",
    "HTTPRequest",
    "HTTPResponse",
    "InFlightRequest",
    "LISTINGS_URL",
    "RequestRegistry",
    "RequestsTransport",
    "Transport",
    "TransportError",
    "TransportErrorKind",
]
