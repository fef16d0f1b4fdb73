"""
Turns exceptions, messages and structured records into ``Notice`` objects.

All three entry points share the same post-processing: message truncation,
backtrace capping and root-path cleaning, ambient context merging, user and
request defaults, and the configured environment.
"""

import traceback
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import Configuration
from .constants import (
    DEFAULT_ERROR_CLASS,
    MAX_BACKTRACE_LINES,
    MAX_MESSAGE_LENGTH,
    PROJECT_ROOT_PLACEHOLDER,
)
from .context import Scope, current_scope
from .notice import Notice


class NoticeBuilder:
    """Build notices for one configuration.

    Usage::

        builder = NoticeBuilder(config)
        notice = builder.build(exc, context={"order_id": 7})
    """

    def __init__(self, config: Configuration) -> None:
        self.config = config

    # ── Entry points ─────────────────────────────────────────────

    def build(
        self,
        exception: BaseException,
        *,
        context: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
        user: Optional[Dict[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        scope: Optional[Scope] = None,
    ) -> Notice:
        """Build a notice from an exception instance."""
        notice = Notice(
            error_class=type(exception).__name__,
            message=truncate_message(str(exception)),
            backtrace=self.clean_backtrace(extract_backtrace(exception)),
        )
        return self._finish(notice, context, request, user, fingerprint, tags, scope)

    def build_from_message(
        self,
        message: Optional[str],
        *,
        error_class: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
        user: Optional[Dict[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        scope: Optional[Scope] = None,
    ) -> Notice:
        """Build a notice from a plain message; the backtrace is empty."""
        notice = Notice(
            error_class=error_class or DEFAULT_ERROR_CLASS,
            message=truncate_message(message),
        )
        return self._finish(notice, context, request, user, fingerprint, tags, scope)

    def build_from_record(
        self,
        record: Mapping[str, Any],
        *,
        context: Optional[Dict[str, Any]] = None,
        request: Optional[Dict[str, Any]] = None,
        user: Optional[Dict[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        scope: Optional[Scope] = None,
    ) -> Notice:
        """Build a notice from a mapping of explicit fields.

        Recognised keys are ``error_class`` (or ``class``), ``message``,
        ``backtrace``, ``fingerprint`` and ``tags``.  Call-site *fingerprint*
        and *tags* win over the record's own values.
        """
        error_class = record.get("error_class") or record.get("class")
        backtrace = record.get("backtrace") or []
        if isinstance(backtrace, str):
            backtrace = backtrace.splitlines()

        notice = Notice(
            error_class=str(error_class) if error_class else DEFAULT_ERROR_CLASS,
            message=truncate_message(record.get("message")),
            backtrace=self.clean_backtrace(str(line) for line in backtrace),
        )
        if fingerprint is None:
            fingerprint = record.get("fingerprint")
        if not tags:
            tags = record.get("tags")
        return self._finish(notice, context, request, user, fingerprint, tags, scope)

    # ── Shared post-processing ───────────────────────────────────

    def clean_backtrace(self, frames: Iterable[str]) -> List[str]:
        """Keep the first ``MAX_BACKTRACE_LINES`` frames and hide the project root."""
        root_path = str(self.config.root_path) if self.config.root_path else None
        cleaned: List[str] = []
        for frame in frames:
            if len(cleaned) >= MAX_BACKTRACE_LINES:
                break
            if root_path:
                frame = frame.replace(root_path, PROJECT_ROOT_PLACEHOLDER)
            cleaned.append(frame)
        return cleaned

    def _finish(
        self,
        notice: Notice,
        context: Optional[Dict[str, Any]],
        request: Optional[Dict[str, Any]],
        user: Optional[Dict[str, Any]],
        fingerprint: Optional[str],
        tags: Optional[Iterable[str]],
        scope: Optional[Scope],
    ) -> Notice:
        if scope is None:
            scope = current_scope()

        merged = dict(scope.context) if scope else {}
        merged.update(context or {})

        if user is None and scope is not None:
            user = scope.user

        notice.fingerprint = str(fingerprint) if fingerprint is not None else None
        notice.tags = normalize_tags(tags)
        notice.context = merged
        notice.user = dict(user) if user else {}
        notice.request = dict(request) if request else {}
        notice.environment = self.config.environment
        return notice


# ── Helpers ──────────────────────────────────────────────────────


def truncate_message(message: Any) -> str:
    if message is None:
        return ""
    message = str(message)
    if len(message) <= MAX_MESSAGE_LENGTH:
        return message
    return message[: MAX_MESSAGE_LENGTH - 3] + "..."


def extract_backtrace(exception: BaseException) -> List[str]:
    """Format the exception's traceback, innermost frame first."""
    tb = exception.__traceback__
    if tb is None:
        return []
    frames = traceback.extract_tb(tb)
    return [f"{f.filename}:{f.lineno}:in {f.name}" for f in reversed(frames)]


def normalize_tags(tags: Any) -> List[str]:
    """Coerce *tags* to a list of unique strings, first occurrence wins."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = [tags]
    return list(dict.fromkeys(str(t) for t in tags))
