"""
Test fixtures and configuration for pytest
"""

import threading
import time

import pytest

VALID_API_KEY = "test_ingestion_key_12345"
TEST_ENDPOINT = "https://test.checkend.io"


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch):
    """Reset the default notifier and thread scopes around every test, and
    keep CHECKEND_* variables from the developer's shell out of the tests."""
    import checkend

    for var in ("CHECKEND_API_KEY", "CHECKEND_ENDPOINT", "CHECKEND_ENVIRONMENT", "CHECKEND_ENABLED"):
        monkeypatch.delenv(var, raising=False)
    checkend.reset()
    yield
    checkend.reset()


@pytest.fixture
def config():
    """A valid, enabled, synchronous configuration."""
    from checkend.config import Configuration

    return Configuration(
        api_key=VALID_API_KEY,
        endpoint=TEST_ENDPOINT,
        environment="test",
        enabled=True,
        async_mode=False,
        max_queue_size=100,
        shutdown_timeout=2,
    )


class RecordingSender:
    """Sender test double: records notices, optionally slow or failing."""

    def __init__(self, results=None, delay: float = 0.0):
        self.notices = []
        self.results = list(results) if results is not None else None
        self.delay = delay
        self._lock = threading.Lock()

    def send_notice(self, notice):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.notices.append(notice)
            if self.results:
                result = self.results.pop(0)
                if isinstance(result, Exception):
                    raise result
                return result
        return {"id": len(self.notices), "problem_id": 1}


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_notice():
    from checkend.notice import Notice

    def _make(error_class: str = "TestError", message: str = "test message"):
        return Notice(error_class=error_class, message=message)

    return _make


def raise_and_catch(exc: BaseException) -> BaseException:
    """Raise *exc* so it carries a traceback, then return it."""
    try:
        raise exc
    except BaseException as caught:
        return caught
