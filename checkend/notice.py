"""
The in-memory form of one error report and its wire serialization.
"""

import json
import platform
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import NOTIFIER_LANGUAGE, NOTIFIER_NAME, VERSION


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class Notice:
    """A single error report.

    Usually created by ``NoticeBuilder``; tests may construct one directly.
    Before-notify callbacks receive the live object and may change it before
    it is serialized.
    """

    error_class: Optional[str] = None
    message: str = ""
    backtrace: List[str] = field(default_factory=list)
    fingerprint: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    context: Dict[str, Any] = field(default_factory=dict)
    request: Dict[str, Any] = field(default_factory=dict)
    user: Dict[str, Any] = field(default_factory=dict)
    breadcrumbs: List[Dict[str, Any]] = field(default_factory=list)

    environment: Optional[str] = None
    occurred_at: str = field(default_factory=_utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self._error_payload(),
            "context": self._context_with_environment(),
            "request": self.request or {},
            "user": self.user or {},
            "breadcrumbs": self.breadcrumbs or [],
            "notifier": notifier_payload(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, ensure_ascii=False)

    # ── payload sections ─────────────────────────────────────────

    def _error_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "class": self.error_class,
            "message": self.message,
            "backtrace": self.backtrace or [],
        }
        if self.fingerprint is not None:
            payload["fingerprint"] = self.fingerprint
        if self.tags:
            payload["tags"] = list(self.tags)
        return payload

    def _context_with_environment(self) -> Dict[str, Any]:
        ctx = dict(self.context or {})
        if self.environment:
            ctx["environment"] = self.environment
        return ctx


def notifier_payload() -> Dict[str, str]:
    """Identify this library to the ingestion service."""
    return {
        "name": NOTIFIER_NAME,
        "version": VERSION,
        "language": NOTIFIER_LANGUAGE,
        "language_version": platform.python_version(),
    }
