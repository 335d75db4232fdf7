"""
Deadline and cancellation support for blocking backend I/O.

Native clients (SQLAlchemy, valkey, boto3) only expose blocking calls. To let
callers bound a call with a timeout or abandon it through a cancel event, the
call is executed on a worker thread while the caller polls for completion.
An abandoned call keeps running until the driver gives up on its own; any
resource it produces afterwards is handed to ``on_abandon`` for cleanup.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, TypeVar

from ..exceptions import OperationCancelledError, OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLL_INTERVAL = 0.05

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor

    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=32, thread_name_prefix="connhub-io")
        return _executor


class Deadline:
    """
    Absolute point in time shared by the steps of one operation.

    A deadline built from ``None`` never expires.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        """Seconds left, ``None`` for an unbounded deadline, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at


def check_cancelled(cancel: Optional[threading.Event], operation: str = "operation") -> None:
    """Raise OperationCancelledError if ``cancel`` has been set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError(f"{operation} cancelled")


def _discard_late_result(on_abandon: Callable[[Any], None], operation: str) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        try:
            on_abandon(future.result())
        except Exception as e:
            logger.warning(f"Cleanup of abandoned {operation} failed: {e}")

    return _callback


def run_blocking(
    func: Callable[[], T],
    *,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    operation: str = "operation",
    on_abandon: Optional[Callable[[T], None]] = None,
) -> T:
    """
    Run a blocking callable bounded by a timeout and/or a cancel event.

    Without a timeout and a cancel event the callable runs inline.

    Args:
        func: Zero-argument callable performing the I/O
        timeout: Seconds to wait before giving up
        cancel: Event that aborts the wait when set
        operation: Label used in error messages and logs
        on_abandon: Receives the result of a call that completes after the
            caller stopped waiting for it

    Returns:
        Whatever ``func`` returns

    Raises:
        OperationTimeoutError: If the deadline passes first
        OperationCancelledError: If ``cancel`` is set first
        Exception: Anything raised by ``func`` itself
    """
    check_cancelled(cancel, operation)
    if timeout is None and cancel is None:
        return func()

    deadline = Deadline(timeout)
    future = _get_executor().submit(func)

    while True:
        wait_for = POLL_INTERVAL
        remaining = deadline.remaining()
        if remaining is not None:
            wait_for = min(wait_for, remaining)

        done, _ = wait([future], timeout=wait_for)
        if done:
            return future.result()

        if cancel is not None and cancel.is_set():
            _abandon(future, on_abandon, operation)
            raise OperationCancelledError(f"{operation} cancelled")

        if deadline.expired:
            _abandon(future, on_abandon, operation)
            raise OperationTimeoutError(f"{operation} timed out after {timeout:.2f}s")


def _abandon(future: Future, on_abandon: Optional[Callable[[Any], None]], operation: str) -> None:
    if future.cancel():
        return
    logger.debug(f"Abandoning in-flight {operation}")
    if on_abandon is not None:
        future.add_done_callback(_discard_late_result(on_abandon, operation))


def acquire_lock(
    lock: threading.Lock,
    *,
    deadline: Deadline,
    cancel: Optional[threading.Event] = None,
    operation: str = "lock acquisition",
) -> None:
    """
    Acquire ``lock`` while honouring a deadline and a cancel event.

    Raises:
        OperationTimeoutError: If the deadline passes first
        OperationCancelledError: If ``cancel`` is set first
    """
    if deadline.timeout is None and cancel is None:
        lock.acquire()
        return

    while True:
        check_cancelled(cancel, operation)
        remaining = deadline.remaining()
        wait_for = POLL_INTERVAL if remaining is None else min(POLL_INTERVAL, remaining)
        if lock.acquire(timeout=wait_for):
            return
        if deadline.expired:
            raise OperationTimeoutError(f"{operation} timed out after {deadline.timeout:.2f}s")
