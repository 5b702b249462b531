from __future__ import annotations

import itertools
import logging
import threading

from paperclip_core.errors import Cancelled

from .transport import HTTPRequest, HTTPResponse, Transport

logger = logging.getLogger(__name__)


class InFlightRequest:
    """A single cancellable send.

    ``run`` performs the blocking send on a daemon worker thread and waits for
    either its outcome or ``cancel``. A cancelled send is abandoned: the
    worker finishes on its own and its outcome is discarded.
    """

    def __init__(self, request: HTTPRequest) -> None:
        self.request = request
        self._settled = threading.Event()
        self._lock = threading.Lock()
        self._cancelled = False
        self._response: HTTPResponse | None = None
        self._error: BaseException | None = None

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> bool:
        with self._lock:
            if self._settled.is_set():
                return False
            self._cancelled = True
            self._settled.set()
        logger.info("request cancelled method=%s url=%s", self.request.method, self.request.url)
        return True

    def run(self, transport: Transport) -> HTTPResponse:
        if self.cancelled:
            raise Cancelled()
        worker = threading.Thread(
            target=self._send,
            args=(transport,),
            name=f"paperclip-send-{id(self):x}",
            daemon=True,
        )
        worker.start()
        self._settled.wait()

        with self._lock:
            if self._cancelled:
                raise Cancelled()
            if self._error is not None:
                raise self._error
            return self._response  # type: ignore[return-value]

    def _send(self, transport: Transport) -> None:
        response: HTTPResponse | None = None
        error: BaseException | None = None
        try:
            response = transport.send(self.request)
        except Exception as exc:
            error = exc

        with self._lock:
            if self._settled.is_set():
                return
            self._response = response
            self._error = error
            self._settled.set()


class RequestRegistry:
    """Cancellation flag plus the set of in-flight requests, behind one lock.

    Handles are stored under opaque integer tokens; callers only ever hold
    the token returned by :meth:`register`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: dict[int, InFlightRequest] = {}
        self._tokens = itertools.count(1)
        self._cancelled = False
        self._wakeup = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._handles)

    def check(self) -> None:
        if self.is_cancelled:
            raise Cancelled()

    def register(self, handle: InFlightRequest) -> int:
        with self._lock:
            if self._cancelled:
                raise Cancelled()
            token = next(self._tokens)
            self._handles[token] = handle
            return token

    def deregister(self, token: int) -> None:
        with self._lock:
            self._handles.pop(token, None)

    def cancel_all(self) -> int:
        with self._lock:
            self._cancelled = True
            handles = list(self._handles.values())
            self._handles.clear()
            self._wakeup.set()

        cancelled = sum(1 for handle in handles if handle.cancel())
        logger.info("cancel_all in_flight=%d cancelled=%d", len(handles), cancelled)
        return cancelled

    def reset(self) -> None:
        with self._lock:
            self._cancelled = False
            self._wakeup = threading.Event()

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first; raises ``Cancelled`` then."""
        with self._lock:
            if self._cancelled:
                raise Cancelled()
            wakeup = self._wakeup

        if wakeup.wait(timeout=max(0.0, seconds)):
            raise Cancelled()
        self.check()
