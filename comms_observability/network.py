"""
Outbound HTTP call monitoring.

``NetworkInterceptor`` wraps an httpx transport so that every request made
through the client is timed and, if the recording policy allows it, stored
in a bounded buffer. The wrapped transport's response or exception is passed
back to the caller unchanged.

Usage:
    interceptor = NetworkInterceptor()
    client = interceptor.create_client(base_url="https://api.example.com")
    client.get("/functions/getLiveKitRoomStatus")
"""

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from . import config
from .payloads import NetworkRequestPayload
from .privacy import is_comms_endpoint, sanitize_url
from .ring_buffer import RingBuffer
from .types import NetworkRequestRecord

logger = logging.getLogger("comms_observability")


class NetworkInterceptor:
    """
    Times outbound HTTP calls and keeps the most recent outcomes.

    Recording policy: in verbose mode every call is recorded; otherwise only
    calls whose sanitized URL matches one of ``comms_endpoints``.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        verbose: Optional[bool] = None,
        comms_endpoints: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._buffer: RingBuffer[NetworkRequestRecord] = RingBuffer(
            config.REQUEST_CAPACITY if capacity is None else capacity
        )
        self._verbose = config.VERBOSE_REQUESTS if verbose is None else bool(verbose)
        self.comms_endpoints = list(
            config.COMMS_ENDPOINTS if comms_endpoints is None else comms_endpoints
        )
        self._clock = clock
        self._count_lock = threading.Lock()
        self.total_count = 0

    # ── Policy ──────────────────────────────────────────────────────

    @property
    def verbose(self) -> bool:
        return self._verbose

    def set_verbose(self, enabled: bool) -> None:
        self._verbose = bool(enabled)
        logger.info(f"Verbose request recording {'enabled' if self._verbose else 'disabled'}")

    def is_comms_request(self, url: str) -> bool:
        return is_comms_endpoint(url, self.comms_endpoints)

    def should_record(self, url: str) -> bool:
        """Apply the recording policy to a sanitized URL."""
        return self._verbose or self.is_comms_request(url)

    # ── Installation ────────────────────────────────────────────────

    def instrument(self, transport=None, asynchronous: bool = False):
        """
        Wrap a transport so its calls are recorded.

        Wrapping a transport this interceptor already wraps returns it
        unchanged, so instrumenting twice never records a call twice.

        Args:
            transport: httpx transport (defaults to a new HTTP transport)
            asynchronous: Wrap for use with ``httpx.AsyncClient``

        Returns:
            ``InterceptingTransport`` or ``AsyncInterceptingTransport``
        """
        wrapper_class = AsyncInterceptingTransport if asynchronous else InterceptingTransport
        if transport is None:
            transport = httpx.AsyncHTTPTransport() if asynchronous else httpx.HTTPTransport()
        if isinstance(transport, wrapper_class) and transport.interceptor is self:
            return transport
        return wrapper_class(transport, self)

    def create_client(self, transport: Optional[httpx.BaseTransport] = None, **kwargs) -> httpx.Client:
        """Build an ``httpx.Client`` whose calls go through this interceptor."""
        return httpx.Client(transport=self.instrument(transport), **kwargs)

    def create_async_client(
        self, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs
    ) -> httpx.AsyncClient:
        """Build an ``httpx.AsyncClient`` whose calls go through this interceptor."""
        return httpx.AsyncClient(transport=self.instrument(transport, asynchronous=True), **kwargs)

    # ── Ingestion ───────────────────────────────────────────────────

    def record_network_request(self, data: Any) -> NetworkRequestRecord:
        """
        Store the outcome of a call, regardless of the recording policy.

        Args:
            data: Mapping or ``NetworkRequestPayload`` with url, status_code,
                duration_ms, error and method. Missing fields default to
                an empty URL, status 0 and zero duration.

        Returns:
            The stored record
        """
        if isinstance(data, NetworkRequestPayload):
            payload = data
        elif isinstance(data, Mapping):
            try:
                payload = NetworkRequestPayload.model_validate(dict(data))
            except ValidationError as e:
                logger.debug(f"Unusable request payload, storing empty record: {e}")
                payload = NetworkRequestPayload()
        else:
            payload = NetworkRequestPayload()

        record = NetworkRequestRecord(
            url=sanitize_url(payload.url or ""),
            status_code=payload.status_code,
            duration_ms=payload.duration_ms,
            captured_at=self._clock(),
            error=payload.error,
            method=payload.method.upper() if payload.method else None,
        )
        self._buffer.push(record)
        with self._count_lock:
            self.total_count += 1
        logger.debug(
            f"Recorded {record.method or 'request'} {record.url} -> "
            f"{record.status_code} in {record.duration_ms:.1f}ms"
        )
        return record

    def _settle(
        self,
        request: httpx.Request,
        url: str,
        started: float,
        status_code: int,
        error: Optional[str] = None,
    ) -> None:
        try:
            self.record_network_request(NetworkRequestPayload(
                url=url,
                method=request.method,
                status_code=status_code,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            ))
        except Exception as e:
            logger.warning(f"Failed to record request to {url}: {e}")

    # ── Queries ─────────────────────────────────────────────────────

    def all(self) -> List[NetworkRequestRecord]:
        return self._buffer.all()

    def get_recent_comms_requests(self, limit: Optional[int] = 10) -> List[NetworkRequestRecord]:
        """Stored calls to comms endpoints, newest first, whatever the verbose setting."""
        comms = [r for r in self._buffer.all() if self.is_comms_request(r.url)]
        return comms if limit is None else comms[:max(limit, 0)]

    def count_recent(self, window_ms: Optional[int] = None) -> int:
        window = config.REQUEST_WINDOW_MS if window_ms is None else window_ms
        cutoff = self._clock() - window / 1000.0
        return sum(1 for r in self._buffer.all() if r.captured_at >= cutoff)

    def get_requests_per_minute(self) -> int:
        return self.count_recent(60_000)

    def count_failures(self) -> int:
        """Buffered calls that failed at the transport or returned 5xx."""
        return sum(1 for r in self._buffer.all() if r.failed)

    def clear(self) -> None:
        self._buffer.clear()
        with self._count_lock:
            self.total_count = 0


class InterceptingTransport(httpx.BaseTransport):
    """Sync transport that records each call on its interceptor."""

    def __init__(self, transport: httpx.BaseTransport, interceptor: NetworkInterceptor):
        self.transport = transport
        self.interceptor = interceptor

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        url = sanitize_url(str(request.url))
        record = self.interceptor.should_record(url)
        started = time.perf_counter()
        try:
            response = self.transport.handle_request(request)
        except Exception as e:
            if record:
                self.interceptor._settle(request, url, started, 0, error=str(e) or type(e).__name__)
            raise
        if record:
            self.interceptor._settle(request, url, started, response.status_code)
        return response

    def close(self) -> None:
        self.transport.close()


class AsyncInterceptingTransport(httpx.AsyncBaseTransport):
    """Async transport that records each call on its interceptor."""

    def __init__(self, transport: httpx.AsyncBaseTransport, interceptor: NetworkInterceptor):
        self.transport = transport
        self.interceptor = interceptor

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = sanitize_url(str(request.url))
        record = self.interceptor.should_record(url)
        started = time.perf_counter()
        try:
            response = await self.transport.handle_async_request(request)
        except Exception as e:
            if record:
                self.interceptor._settle(request, url, started, 0, error=str(e) or type(e).__name__)
            raise
        if record:
            self.interceptor._settle(request, url, started, response.status_code)
        return response

    async def aclose(self) -> None:
        await self.transport.aclose()
