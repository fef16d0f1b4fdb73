"""
The public entry point: a service object that owns a configuration, a sender
and (in async mode) a background worker.

Nothing here raises into the host application.  Invalid configuration,
ignored errors, rejected notices and delivery failures all end in a log line
and a ``None`` return.

Usage::

    with Notifier(Configuration(api_key="...", environment="production")) as checkend:
        try:
            risky()
        except Exception as exc:
            checkend.notify(exc, context={"order_id": 7})
"""

import threading
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional

from .client import Client, Sender
from .config import Configuration
from .context import Scope, clear_scopes, ensure_scope, open_scope
from .filters.ignore import IgnoreFilter
from .notice import Notice
from .notice_builder import NoticeBuilder
from .worker import Worker


class Notifier:
    """Coordinates filtering, building, callbacks and dispatch of notices."""

    def __init__(self, config: Optional[Configuration] = None, *, client: Optional[Sender] = None) -> None:
        """
        Args:
            config: Settings; defaults to ``Configuration.from_env()``.
            client: Sender to use instead of the HTTP ``Client``.
        """
        self.config = config if config is not None else Configuration.from_env()
        self.logger = self.config.resolved_logger()
        self.builder = NoticeBuilder(self.config)
        self.ignore_filter = IgnoreFilter.from_config(self.config)
        self.client: Optional[Sender] = client
        self.worker: Optional[Worker] = None
        self._started = False
        self._lock = threading.Lock()

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> "Notifier":
        """Create the sender and, in async mode, the worker.  Idempotent."""
        with self._lock:
            if self._started:
                return self
            if self.client is None:
                self.client = Client(self.config)
            if self.config.async_mode:
                self.worker = Worker(self.config, self.client)
            self._started = True

        self.logger.info(
            "Started (environment: %s, async: %s)", self.config.environment, self.config.async_mode
        )
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        """Drain and stop the worker; later ``notify`` calls return ``None``."""
        with self._lock:
            worker, self.worker = self.worker, None
            was_started, self._started = self._started, False

        if worker is not None:
            worker.shutdown(timeout)
        if was_started:
            self.logger.info("Stopped")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until notices queued so far have been attempted."""
        if self.worker is None:
            return True
        return self.worker.flush(timeout)

    @property
    def started(self) -> bool:
        return self._started

    def __enter__(self) -> "Notifier":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ── Reporting ────────────────────────────────────────────────

    def notify(
        self,
        error: Any,
        *,
        error_class: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
        user: Optional[Dict[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        scope: Optional[Scope] = None,
    ) -> Optional[Dict[str, Any]]:
        """Report an exception, a message or a record.

        Args:
            error: An exception, a message string, or a mapping with
                ``error_class``, ``message``, ``backtrace`` and friends.
            error_class: Class name for message reports.
            context: Extra context, merged over the ambient scope's.
            request: Request details.
            user: User details; defaults to the ambient scope's user.
            fingerprint: Custom grouping key.
            tags: Labels for filtering.
            scope: Explicit ambient scope instead of the thread's current one.

        Returns:
            The server response for synchronous delivery, else ``None``.
        """
        try:
            notice = self._prepare(error, error_class, context, request, user, fingerprint, tags, scope)
            if notice is None:
                return None
            return self._dispatch(notice)
        except Exception as e:
            self.logger.error("notify failed: %s - %s", type(e).__name__, e)
            return None

    def notify_sync(self, error: Any, **options: Any) -> Optional[Dict[str, Any]]:
        """Like ``notify`` but always delivers on the calling thread."""
        try:
            notice = self._prepare(
                error,
                options.get("error_class"),
                options.get("context"),
                options.get("request"),
                options.get("user"),
                options.get("fingerprint"),
                options.get("tags"),
                options.get("scope"),
            )
            if notice is None:
                return None
            return self._send_now(notice)
        except Exception as e:
            self.logger.error("notify_sync failed: %s - %s", type(e).__name__, e)
            return None

    def should_notify(self) -> bool:
        return self._started and self.config.valid and self.config.is_enabled()

    # ── Ambient context ──────────────────────────────────────────

    @contextmanager
    def scope(
        self,
        context: Optional[Dict[str, Any]] = None,
        user: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Scope]:
        """Open an ambient scope for the current thread."""
        with open_scope(context=context, user=user) as scope:
            yield scope

    def set_context(self, **kwargs: Any) -> None:
        ensure_scope().set_context(**kwargs)

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        ensure_scope().set_user(user)

    def clear(self) -> None:
        clear_scopes()

    # ── internals ────────────────────────────────────────────────

    def _prepare(self, error, error_class, context, request, user, fingerprint, tags, scope) -> Optional[Notice]:
        if not self.should_notify():
            return None

        options = dict(
            context=context,
            request=request,
            user=user,
            fingerprint=fingerprint,
            tags=tags,
            scope=scope,
        )

        if isinstance(error, BaseException):
            if self.ignore_filter.ignore(error):
                self.logger.debug("Ignoring %s", type(error).__name__)
                return None
            notice = self.builder.build(error, **options)
        elif isinstance(error, str):
            notice = self.builder.build_from_message(error, error_class=error_class, **options)
        elif isinstance(error, Mapping):
            notice = self.builder.build_from_record(error, **options)
        else:
            self.logger.debug("notify called with unsupported type: %s", type(error).__name__)
            return None

        if not self.config.send_user_data:
            notice.user = {}

        if not self._callbacks_allow(notice):
            return None
        return notice

    def _callbacks_allow(self, notice: Notice) -> bool:
        # A callback that raises does not veto; only a falsy return does
        for callback in self.config.before_notify:
            try:
                result = callback(notice)
            except Exception as e:
                self.logger.debug("before_notify callback failed: %s", e)
                continue
            if not result:
                return False
        return True

    def _dispatch(self, notice: Notice) -> Optional[Dict[str, Any]]:
        worker = self.worker
        if self.config.async_mode and worker is not None:
            if not worker.push(notice):
                self.logger.debug(
                    "Notice dropped: worker not accepting (queue size %d)",
                    worker.queue_size,
                )
            return None
        return self._send_now(notice)

    def _send_now(self, notice: Notice) -> Optional[Dict[str, Any]]:
        if self.client is None:
            self.client = Client(self.config)
        try:
            return self.client.send_notice(notice)
        except Exception as e:
            self.logger.error("Failed to send notice: %s - %s", type(e).__name__, e)
            return None
