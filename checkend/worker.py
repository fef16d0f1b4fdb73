"""
Background thread that delivers queued notices.

Application threads hand notices to ``Worker.push`` and return immediately;
a single daemon thread pops them in FIFO order and sends them one at a time.
Repeated delivery failures slow the thread down with an exponential delay
that shrinks again one step per successful send.  ``shutdown`` stops the
thread and drains whatever is still queued.
"""

import queue
import threading
import time
from enum import Enum
from typing import Optional

from .client import Client, Sender
from .config import Configuration
from .constants import BASE_THROTTLE, MAX_THROTTLE, WORKER_THREAD_NAME
from .notice import Notice

# Queue markers
_SHUTDOWN = object()


class WorkerState(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Worker:
    """Bounded queue plus one sender thread.

    Usage::

        worker = Worker(config)
        worker.push(notice)
        ...
        worker.shutdown(timeout=5)
    """

    def __init__(self, config: Configuration, client: Optional[Sender] = None) -> None:
        self.config = config
        self.client: Sender = client if client is not None else Client(config)
        self.logger = config.resolved_logger()

        self._queue: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._state = WorkerState.RUNNING
        self._throttle = 0
        self._shutdown_requested = False

        self._thread = threading.Thread(target=self._run, name=WORKER_THREAD_NAME, daemon=True)
        self._thread.start()

    # ── Producer side ────────────────────────────────────────────

    def push(self, notice: Notice) -> bool:
        """Queue *notice* for delivery.

        Returns:
            ``False`` if the worker is shutting down or the queue is full.
        """
        with self._lock:
            if self._state is not WorkerState.RUNNING:
                return False
            if self._queue.qsize() >= self.config.max_queue_size:
                return False
            self._queue.put_nowait(notice)
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until everything queued before this call has been attempted.

        Returns:
            ``True`` if the thread reached the flush marker within *timeout*.
        """
        if timeout is None:
            timeout = self.config.timeout
        if not self.is_running():
            return False

        marker = threading.Event()
        self._queue.put_nowait(marker)
        return marker.wait(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop accepting notices, let the thread drain, and wait up to *timeout*.

        Calling it again is a no-op.
        """
        if timeout is None:
            timeout = self.config.shutdown_timeout

        with self._lock:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True
            if self._state is WorkerState.RUNNING:
                self._state = WorkerState.SHUTTING_DOWN
            self._queue.put_nowait(_SHUTDOWN)

        self._thread.join(timeout)

        if self._thread.is_alive():
            self.logger.warning(
                "Worker did not finish within %ss; %d notices may be lost",
                timeout,
                self._queue.qsize(),
                extra={"queue_size": self._queue.qsize()},
            )
            return

        # The thread is gone; send anything it could not get to
        self._drain()
        self._state = WorkerState.STOPPED

    # ── Observability ────────────────────────────────────────────

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def throttle_level(self) -> int:
        return self._throttle

    def is_running(self) -> bool:
        return self._state is WorkerState.RUNNING and self._thread.is_alive()

    # ── Consumer side ────────────────────────────────────────────

    def _run(self) -> None:
        try:
            while True:
                item = self._queue.get()

                if item is _SHUTDOWN:
                    break
                if isinstance(item, threading.Event):
                    item.set()
                    continue
                if isinstance(item, Notice):
                    self._send_with_throttle(item)

            self._drain()
        except Exception as e:
            self.logger.error("Worker crashed: %s - %s", type(e).__name__, e, exc_info=True)
        finally:
            self._state = WorkerState.STOPPED
            self._release_markers()

    def _send_with_throttle(self, notice: Notice) -> bool:
        delay = self.throttle_delay()
        if delay > 0:
            time.sleep(delay)

        try:
            result = self.client.send_notice(notice)
        except Exception as e:
            self.logger.error("Sender raised: %s - %s", type(e).__name__, e)
            result = None

        if result is None:
            self._throttle = min(self._throttle + 1, MAX_THROTTLE)
            self.logger.debug(
                "Delivery failed, throttle level %d",
                self._throttle,
                extra={"throttle_level": self._throttle},
            )
            return False

        self._throttle = max(self._throttle - 1, 0)
        return True

    def throttle_delay(self) -> float:
        """Seconds to wait before the next send at the current throttle level."""
        return round((BASE_THROTTLE ** self._throttle) - 1, 3)

    def _drain(self) -> None:
        """Send every queued notice once, without waiting or throttling."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break

            if isinstance(item, threading.Event):
                item.set()
                continue
            if not isinstance(item, Notice):
                continue
            try:
                self.client.send_notice(item)
            except Exception as e:
                self.logger.debug("Dropping notice during drain: %s - %s", type(e).__name__, e)

    def _release_markers(self) -> None:
        """Wake pending ``flush`` callers; notices stay queued for ``shutdown``."""
        kept = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, threading.Event):
                item.set()
            else:
                kept.append(item)
        for item in kept:
            self._queue.put_nowait(item)
