from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import urlsplit

from pydantic import ValidationError
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from paperclip_core.errors import (
    CacheError,
    Cancelled,
    DecodingFailed,
    FetchError,
    InvalidResponse,
    InvalidURL,
    MaxRetryReached,
    NoData,
    RequestFailed,
    ServerError,
)
from paperclip_core.schemas import validate_json
from paperclip_core.storage import Cache

from .endpoint import Endpoint
from .registry import InFlightRequest, RequestRegistry
from .transport import (
    HTTPRequest,
    HTTPResponse,
    RequestsTransport,
    Transport,
    TransportError,
    TransportErrorKind,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
FetchCallback = Callable[[Any, FetchError | None], None]

DEFAULT_MAX_DELAY_SECONDS = 30.0
DEFAULT_MAX_JITTER_SECONDS = 0.5


@dataclass(slots=True)
class _AttemptState:
    attempt_number: int = 0
    last_error: FetchError | None = None


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, RequestFailed) and error.is_transient


class FetchClient:
    """Cache-first HTTP client with retry, backoff and bulk cancellation.

    ``fetch`` consults the cache before the network and never re-validates a
    cached value. On a miss it sends up to ``endpoint.retry_count + 1``
    requests; only transient transport failures (timeout, lost connection,
    offline) are retried. Status errors, empty bodies and undecodable
    payloads fail immediately. A decoded value is written back to the cache
    on a best-effort basis.

    ``cancel_all`` stops every in-flight request and backoff sleep and makes
    all later attempts fail with ``Cancelled`` until ``reset_cancellation``.
    """

    def __init__(
        self,
        cache: Cache,
        transport: Transport | None = None,
        *,
        max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS,
        max_jitter_seconds: float = DEFAULT_MAX_JITTER_SECONDS,
        max_workers: int = 4,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if max_jitter_seconds < 0:
            raise ValueError("max_jitter_seconds must be >= 0")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self.cache = cache
        self._owned_transport: RequestsTransport | None = None
        if transport is None:
            transport = self._owned_transport = RequestsTransport()
        self.transport = transport
        self.max_delay_seconds = max_delay_seconds
        self.max_jitter_seconds = max_jitter_seconds
        self.registry = RequestRegistry()
        self._sleep = sleep or self.registry.sleep
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="paperclip-fetch")

    @property
    def is_cancelled(self) -> bool:
        return self.registry.is_cancelled

    def fetch(self, endpoint: Endpoint, model: type[T] | Any) -> T:
        cached = self._read_cache(endpoint, model)
        if cached is not None:
            return cached

        if not self._is_valid_url(endpoint.url):
            raise InvalidURL(endpoint.url)

        state = _AttemptState()
        retrying = Retrying(
            stop=stop_after_attempt(endpoint.retry_count + 1),
            wait=(
                wait_exponential(multiplier=1, exp_base=2, max=self.max_delay_seconds)
                + wait_random(0, self.max_jitter_seconds)
            ),
            retry=retry_if_exception(_is_transient),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            value = retrying(self._attempt, endpoint, model, state)
        except RetryError:
            logger.warning(
                "fetch gave up url=%s attempts=%d last_error=%s",
                endpoint.url,
                state.attempt_number,
                state.last_error,
            )
            raise MaxRetryReached(state.attempt_number, state.last_error) from state.last_error
        except FetchError as exc:
            logger.warning(
                "fetch failed url=%s attempt=%d kind=%s error=%s",
                endpoint.url,
                state.attempt_number,
                exc.kind,
                exc,
            )
            raise

        self._write_cache(endpoint, value, model)
        logger.info("fetch ok url=%s attempts=%d", endpoint.url, state.attempt_number)
        return value

    def submit(self, endpoint: Endpoint, model: type[T] | Any) -> Future[T]:
        return self._executor.submit(self.fetch, endpoint, model)

    def fetch_with_callback(
        self,
        endpoint: Endpoint,
        model: type[T] | Any,
        callback: FetchCallback,
    ) -> Future[T]:
        """Run ``fetch`` in the background and report through ``callback``.

        The callback receives ``(value, None)`` on success or
        ``(None, error)`` on failure, exactly once, on a worker thread.
        """
        future = self.submit(endpoint, model)

        def _deliver(done: Future[T]) -> None:
            if done.cancelled():
                callback(None, Cancelled())
                return
            error = done.exception()
            if error is None:
                callback(done.result(), None)
            elif isinstance(error, FetchError):
                callback(None, error)
            else:
                callback(None, RequestFailed(error))  # type: ignore[arg-type]

        future.add_done_callback(_deliver)
        return future

    def cancel_all(self) -> None:
        self.registry.cancel_all()

    def reset_cancellation(self) -> None:
        self.registry.reset()

    def close(self) -> None:
        self.cancel_all()
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self._owned_transport is not None:
            self._owned_transport.close()

    def __enter__(self) -> FetchClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _attempt(self, endpoint: Endpoint, model: Any, state: _AttemptState) -> Any:
        state.attempt_number += 1
        self.registry.check()

        request = HTTPRequest(
            url=endpoint.url,
            method=endpoint.method.value,
            timeout_seconds=endpoint.timeout_seconds,
        )
        handle = InFlightRequest(request)
        token = self.registry.register(handle)
        try:
            response = handle.run(self.transport)
        except TransportError as exc:
            if exc.kind is TransportErrorKind.CANCELLED:
                raise Cancelled() from exc
            error = RequestFailed(exc)
            state.last_error = error
            raise error from exc
        except FetchError:
            raise
        except Exception as exc:
            error = RequestFailed(exc)
            state.last_error = error
            raise error from exc
        finally:
            self.registry.deregister(token)

        return self._decode_response(response, model)

    @staticmethod
    def _decode_response(response: object, model: Any) -> Any:
        if not isinstance(response, HTTPResponse):
            raise InvalidResponse()
        if not 200 <= response.status_code < 300:
            raise ServerError(response.status_code)
        if not response.body:
            raise NoData()
        try:
            return validate_json(model, response.body)
        except (ValidationError, ValueError) as exc:
            raise DecodingFailed(exc) from exc

    def _read_cache(self, endpoint: Endpoint, model: Any) -> Any | None:
        try:
            return self.cache.fetch(endpoint.cache_key, model)
        except CacheError as exc:
            logger.warning("cache read failed, fetching url=%s error=%s", endpoint.url, exc)
            return None

    def _write_cache(self, endpoint: Endpoint, value: Any, model: Any) -> None:
        try:
            self.cache.save(value, endpoint.cache_key, model=model)
        except CacheError as exc:
            logger.warning("cache write failed url=%s error=%s", endpoint.url, exc)

    @staticmethod
    def _is_valid_url(url: str) -> bool:
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        return parts.scheme in {"http", "https"} and bool(parts.netloc)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        endpoint: Endpoint = retry_state.args[0]
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "fetch retry url=%s attempt=%d delay=%.2f error=%s",
            endpoint.url,
            retry_state.attempt_number,
            delay,
            error,
        )
