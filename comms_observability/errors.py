"""
Runtime error capture.

Hooks the interpreter's uncaught-exception signals (``sys.excepthook``,
``threading.excepthook``) and asyncio's unhandled-exception handler, and
keeps the most recent errors in a bounded buffer.
"""

import asyncio
import logging
import sys
import threading
import time
import traceback
import weakref
from collections.abc import Mapping
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from . import config
from .payloads import ErrorPayload, _text_or_none
from .ring_buffer import RingBuffer
from .types import ErrorKind, ErrorRecord

logger = logging.getLogger("comms_observability")

ErrorSubscriber = Callable[[ErrorRecord], None]

_REJECTION_KINDS = {"unhandled_rejection", "unhandledrejection", "rejection", "unhandled"}


def _parse_kind(value: Optional[str]) -> ErrorKind:
    if value and value.strip().lower().replace("-", "_") in _REJECTION_KINDS:
        return ErrorKind.UNHANDLED_REJECTION
    return ErrorKind.UNCAUGHT


def _innermost_location(exc: BaseException) -> Optional[str]:
    tb = exc.__traceback__
    if tb is None:
        return None
    frames = traceback.extract_tb(tb)
    if not frames:
        return None
    frame = frames[-1]
    return f"{frame.filename}:{frame.lineno}"


class ErrorCapture:
    """
    Collects uncaught errors into a ring buffer.

    ``install()`` is idempotent: a second call does not register the hooks
    again, so one uncaught error always produces exactly one record. The
    previously installed hooks are still called after recording.
    """

    def __init__(
        self,
        capacity: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._buffer: RingBuffer[ErrorRecord] = RingBuffer(
            config.ERROR_CAPACITY if capacity is None else capacity
        )
        self._clock = clock
        self._subscribers: List[ErrorSubscriber] = []
        self._subscribers_lock = threading.Lock()
        self._installed = False
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        # Loop -> the exception handler it had before attach_loop (None = default)
        self._loops: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Any]" = (
            weakref.WeakKeyDictionary()
        )
        self._count_lock = threading.Lock()
        self.total_count = 0

    @property
    def installed(self) -> bool:
        return self._installed

    # ── Host hooks ──────────────────────────────────────────────────

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """
        Register against the interpreter's uncaught-exception hooks.

        Also attaches to ``loop`` (or the running loop, if any) for
        unhandled task exceptions.

        Returns:
            True if hooks were registered, False if already installed
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self.attach_loop(loop)

        if self._installed:
            return False

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        if hasattr(threading, "excepthook"):
            self._previous_threading_excepthook = threading.excepthook
            threading.excepthook = self._threading_excepthook
        self._installed = True
        logger.info("Error capture installed")
        return True

    def uninstall(self) -> None:
        """Restore the hooks that were active before ``install()`` and detach loops."""
        for loop, previous in list(self._loops.items()):
            if loop.get_exception_handler() == self._loop_exception_handler:
                loop.set_exception_handler(previous)
        self._loops = weakref.WeakKeyDictionary()
        if not self._installed:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if self._previous_threading_excepthook is not None and threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._previous_threading_excepthook
        self._installed = False
        logger.info("Error capture uninstalled")

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> bool:
        """
        Route the loop's unhandled exceptions here. Idempotent per loop.

        A handler the application already set on the loop keeps being
        called after each record, and is put back by ``uninstall()``.
        """
        if loop in self._loops:
            return False
        self._loops[loop] = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)
        return True

    def _excepthook(self, exc_type, exc_value, exc_tb) -> None:
        self._record_exception(exc_value, ErrorKind.UNCAUGHT)
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc_value, exc_tb)

    def _threading_excepthook(self, args) -> None:
        if args.exc_value is not None:
            self._record_exception(args.exc_value, ErrorKind.UNCAUGHT)
        if self._previous_threading_excepthook is not None:
            self._previous_threading_excepthook(args)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        if isinstance(exc, BaseException):
            self._record_exception(exc, ErrorKind.UNHANDLED_REJECTION)
        else:
            self.record_error({
                "kind": ErrorKind.UNHANDLED_REJECTION.value,
                "message": context.get("message"),
            })
        previous = self._loops.get(loop)
        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)

    def _record_exception(self, exc: BaseException, kind: ErrorKind) -> None:
        try:
            self.record_error(exc, kind=kind)
        except Exception as e:
            logger.warning(f"Failed to record uncaught error: {e}")

    # ── Ingestion ───────────────────────────────────────────────────

    def record_error(self, data: Any, kind: Optional[ErrorKind] = None) -> ErrorRecord:
        """
        Normalize a raw error payload and store it.

        Accepts an exception, a mapping of loosely-typed fields, an
        ``ErrorPayload``, or anything else (stored as its string form).
        Missing or unconvertible fields become ``None``.

        Args:
            data: Raw error payload
            kind: Overrides the kind found in the payload

        Returns:
            The stored ErrorRecord
        """
        record = self._normalize(data, kind)
        self._buffer.push(record)
        with self._count_lock:
            self.total_count += 1
        logger.debug(f"Captured {record.kind.value} error: {record.message}")
        self._notify(record)
        return record

    def _normalize(self, data: Any, kind: Optional[ErrorKind]) -> ErrorRecord:
        now = self._clock()

        if isinstance(data, BaseException):
            stack = "".join(traceback.format_exception(type(data), data, data.__traceback__))
            return ErrorRecord(
                kind=kind or ErrorKind.UNCAUGHT,
                message=_text_or_none(data) or type(data).__name__,
                captured_at=now,
                error_type=type(data).__name__,
                source_location=_innermost_location(data),
                stack_trace=stack.strip() or None,
            )

        if isinstance(data, ErrorPayload):
            payload = data
        elif isinstance(data, Mapping):
            try:
                payload = ErrorPayload.model_validate(dict(data))
            except ValidationError as e:
                logger.debug(f"Unusable error payload, storing empty record: {e}")
                payload = ErrorPayload()
        elif data is None:
            payload = ErrorPayload()
        else:
            payload = ErrorPayload(message=data)

        return ErrorRecord(
            kind=kind or _parse_kind(payload.kind),
            message=payload.message,
            captured_at=now,
            error_type=payload.error_type,
            source_location=payload.location(),
            stack_trace=payload.stack_trace,
        )

    # ── Subscribers ─────────────────────────────────────────────────

    def subscribe(self, callback: ErrorSubscriber) -> Callable[[], None]:
        """
        Call ``callback`` with every new ErrorRecord.

        Returns:
            A function that removes the subscription
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, record: ErrorRecord) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(record)
            except Exception as e:
                logger.warning(f"Error subscriber {callback!r} failed: {e}")

    # ── Queries ─────────────────────────────────────────────────────

    def all(self) -> List[ErrorRecord]:
        return self._buffer.all()

    def get_recent_errors(self, limit: Optional[int] = 10, window_ms: Optional[int] = None) -> List[ErrorRecord]:
        """
        Errors captured within ``window_ms`` of now, newest first.

        Older records stay in the buffer but are left out of the result.
        """
        window = config.ERROR_WINDOW_MS if window_ms is None else window_ms
        cutoff = self._clock() - window / 1000.0
        recent = [r for r in self._buffer.all() if r.captured_at >= cutoff]
        return recent if limit is None else recent[:max(limit, 0)]

    def count_recent(self, window_ms: Optional[int] = None) -> int:
        window = config.ERROR_WINDOW_MS if window_ms is None else window_ms
        cutoff = self._clock() - window / 1000.0
        return sum(1 for r in self._buffer.all() if r.captured_at >= cutoff)

    def clear(self) -> None:
        """Drop all records and reset the lifetime total. Hooks stay installed."""
        self._buffer.clear()
        with self._count_lock:
            self.total_count = 0
