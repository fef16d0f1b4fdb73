"""
Checkend error-monitoring client.

Provides:
- ``Notifier``: the reporting service (configuration, sender, background worker)
- ``Configuration`` / ``load_config``: settings from code, environment or JSON
- ``Notice`` / ``NoticeBuilder``: the error report and how it is built
- ``Worker``: asynchronous delivery with throttling and drain-on-shutdown
- ``SanitizeFilter`` / ``IgnoreFilter``: data scrubbing and error suppression

The module-level functions below drive one default ``Notifier``::

    import checkend

    checkend.configure(api_key="...", environment="production")
    try:
        risky()
    except Exception as exc:
        checkend.notify(exc)
    finally:
        checkend.stop()
"""

import threading
from typing import Any, Dict, Optional

from .client import Client, Sender
from .config import ConfigError, Configuration, load_config, validate_config
from .constants import VERSION
from .context import Scope, clear_scopes, current_scope
from .filters import ErrorIdentity, IgnoreFilter, SanitizeFilter
from .notice import Notice
from .notice_builder import NoticeBuilder
from .notifier import Notifier
from .worker import Worker, WorkerState

__version__ = VERSION

__all__ = [
    "Client",
    "ConfigError",
    "Configuration",
    "ErrorIdentity",
    "IgnoreFilter",
    "Notice",
    "NoticeBuilder",
    "Notifier",
    "SanitizeFilter",
    "Scope",
    "Sender",
    "Worker",
    "WorkerState",
    "clear",
    "configure",
    "current_scope",
    "flush",
    "get_notifier",
    "load_config",
    "notify",
    "notify_sync",
    "reset",
    "scope",
    "set_context",
    "set_user",
    "stop",
    "validate_config",
]

# ── Default instance ─────────────────────────────────────────────

_default: Optional[Notifier] = None
_default_lock = threading.Lock()


def get_notifier() -> Notifier:
    """Return the default notifier, creating an unstarted one from the environment."""
    global _default
    with _default_lock:
        if _default is None:
            _default = Notifier(Configuration.from_env())
        return _default


def configure(config: Optional[Configuration] = None, **settings: Any) -> Notifier:
    """Replace the default notifier and start it if the configuration is valid.

    Args:
        config: A ready ``Configuration``; otherwise one is built with
            ``Configuration.from_env(**settings)``.
    """
    global _default
    if config is None:
        config = Configuration.from_env(**settings)

    with _default_lock:
        previous, _default = _default, Notifier(config)
        notifier = _default

    if previous is not None:
        previous.stop(timeout=0)
    if config.valid:
        notifier.start()
    return notifier


def notify(error: Any, **options: Any) -> Optional[Dict[str, Any]]:
    return get_notifier().notify(error, **options)


def notify_sync(error: Any, **options: Any) -> Optional[Dict[str, Any]]:
    return get_notifier().notify_sync(error, **options)


def flush(timeout: Optional[float] = None) -> bool:
    return get_notifier().flush(timeout)


def stop(timeout: Optional[float] = None) -> None:
    get_notifier().stop(timeout)


def scope(context: Optional[Dict[str, Any]] = None, user: Optional[Dict[str, Any]] = None):
    """Open an ambient scope for the current thread (context manager)."""
    return get_notifier().scope(context=context, user=user)


def set_context(**kwargs: Any) -> None:
    get_notifier().set_context(**kwargs)


def set_user(user: Optional[Dict[str, Any]]) -> None:
    get_notifier().set_user(user)


def clear() -> None:
    get_notifier().clear()


def reset() -> None:
    """Stop and forget the default notifier (for tests)."""
    global _default
    with _default_lock:
        previous, _default = _default, None
    if previous is not None:
        previous.stop(timeout=0)
    clear_scopes()
