"""
Test helpers: capture notices in memory instead of sending them.

Usage with pytest::

    @pytest.fixture
    def captured():
        with checkend.testing.capture() as fake:
            yield fake

    def test_reports_error(captured):
        checkend.notify(ValueError("boom"))
        assert captured.last_notice.error_class == "ValueError"
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .context import clear_scopes
from .notice import Notice


class FakeClient:
    """Sender that records notices and always reports success."""

    def __init__(self) -> None:
        self._notices: List[Notice] = []
        self._lock = threading.Lock()

    def send_notice(self, notice: Notice) -> Dict[str, Any]:
        with self._lock:
            self._notices.append(notice)
            n = len(self._notices)
        return {"id": n, "problem_id": n}

    @property
    def notices(self) -> List[Notice]:
        with self._lock:
            return list(self._notices)

    @property
    def last_notice(self) -> Optional[Notice]:
        notices = self.notices
        return notices[-1] if notices else None

    @property
    def first_notice(self) -> Optional[Notice]:
        notices = self.notices
        return notices[0] if notices else None

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._notices)

    def clear(self) -> None:
        with self._lock:
            self._notices.clear()


@contextmanager
def capture(notifier=None) -> Iterator[FakeClient]:
    """Route *notifier* (default: the global one) to a ``FakeClient``.

    Async delivery is switched off and the notifier is marked started so
    notices are captured synchronously and deterministically.  Everything is
    restored on exit.
    """
    if notifier is None:
        from . import get_notifier

        notifier = get_notifier()

    fake = FakeClient()
    original_async = notifier.config.async_mode
    original_client = notifier.client
    original_started = notifier._started

    notifier.config.async_mode = False
    notifier.client = fake
    notifier._started = True
    clear_scopes()
    try:
        yield fake
    finally:
        notifier.config.async_mode = original_async
        notifier.client = original_client
        notifier._started = original_started
        fake.clear()
        clear_scopes()
