"""
Flask integration: request context for every notice and automatic reporting
of unhandled exceptions.

1. ``before_request`` opens an ambient scope holding ``request_id``,
   ``method`` and ``path``.
2. Unhandled exceptions (``got_request_exception``) are reported with the
   request's URL, params, headers and client address.
3. ``teardown_request`` closes the scope.

Sensitive headers are replaced by ``[FILTERED]`` and params go through the
configured ``SanitizeFilter``.  Reporting failures are logged and never reach
the application.
"""

from typing import Any, Dict, Optional

from flask import Flask, g, got_request_exception, request

from ..constants import FILTERED
from ..context import Scope, pop_scope, push_scope
from ..filters.sanitize import SanitizeFilter


class FlaskReporter:
    """Report unhandled Flask exceptions to Checkend.

    Usage::

        notifier = Notifier(config).start()
        FlaskReporter(app, notifier)
    """

    # Headers whose values never leave the process
    FILTERED_HEADERS = frozenset({"cookie", "authorization", "x-api-key", "x-auth-token"})
    # Headers that are not worth sending at all
    EXCLUDED_HEADERS = frozenset({"host", "connection", "accept-encoding"})

    REQUEST_ID_HEADER = "X-Request-ID"

    def __init__(self, app: Optional[Flask] = None, notifier=None) -> None:
        """
        Args:
            app: The Flask application; may be bound later with ``init_app``.
            notifier: ``Notifier`` to report through; defaults to the global one.
        """
        self._notifier = notifier
        if app is not None:
            self.init_app(app)

    @property
    def notifier(self):
        if self._notifier is None:
            from .. import get_notifier

            return get_notifier()
        return self._notifier

    # ── installation ─────────────────────────────────────────────

    def init_app(self, app: Flask) -> None:
        app.before_request(self._before)
        app.teardown_request(self._teardown)
        got_request_exception.connect(self._on_exception, app, weak=False)
        app.extensions["checkend"] = self

    # ── hooks ────────────────────────────────────────────────────

    def _before(self) -> None:
        context = {
            "request_id": request.headers.get(self.REQUEST_ID_HEADER),
            "method": request.method,
            "path": request.path,
        }
        g.checkend_scope = push_scope(Scope(context={k: v for k, v in context.items() if v is not None}))

    def _teardown(self, exc=None) -> None:
        scope = g.pop("checkend_scope", None)
        if scope is not None:
            pop_scope(scope)

    def _on_exception(self, sender, exception: BaseException, **extra) -> None:
        try:
            notifier = self.notifier
            if not notifier.config.valid:
                return
            scope = g.get("checkend_scope")
            notifier.notify(
                exception,
                request=self.extract_request_data(),
                user=scope.user if scope is not None else None,
                scope=scope,
            )
        except Exception as e:
            self.notifier.logger.error("Failed to notify: %s", e)

    # ── request extraction ───────────────────────────────────────

    def extract_request_data(self) -> Dict[str, Any]:
        send_data = self.notifier.config.send_request_data
        data = {
            "url": request.url,
            "method": request.method,
            "path": request.path,
            "query_string": request.query_string.decode("utf-8", errors="replace"),
            "params": self._extract_params() if send_data else {},
            "headers": self._extract_headers() if send_data else {},
            "remote_ip": self._extract_remote_ip(),
            "user_agent": request.headers.get("User-Agent"),
            "referer": request.headers.get("Referer"),
            "content_type": request.content_type,
            "content_length": request.content_length,
        }
        return {k: v for k, v in data.items() if v is not None}

    def _extract_params(self) -> Dict[str, Any]:
        try:
            params: Dict[str, Any] = request.args.to_dict()
            if request.form:
                params.update(request.form.to_dict())
            elif request.is_json:
                body = request.get_json(silent=True)
                if isinstance(body, dict):
                    params.update(body)
            return SanitizeFilter.from_config(self.notifier.config)(params)
        except Exception:
            return {}

    def _extract_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for name, value in request.headers.items():
            lowered = name.lower()
            if lowered in self.EXCLUDED_HEADERS:
                continue
            headers[name] = FILTERED if lowered in self.FILTERED_HEADERS else str(value)
        return headers

    def _extract_remote_ip(self) -> Optional[str]:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.headers.get("X-Real-IP") or request.remote_addr
