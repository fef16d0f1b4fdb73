"""
Ambient context for notices.

A ``Scope`` holds the key/value context and the user that should be attached
to every notice built during one unit of work (a request, a job, a CLI
command).  Scopes are plain objects: callers can pass one explicitly to the
notice builder, or open one for the current thread with ``open_scope()`` so
that every notice built on that thread picks it up until the scope closes.

Usage::

    with open_scope(context={"request_id": rid}, user={"id": 42}):
        handle_request()
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

# Thread-local stack of open scopes; the last one is current
_local = threading.local()


@dataclass
class Scope:
    """Context and user for one unit of work."""

    context: Dict[str, Any] = field(default_factory=dict)
    user: Optional[Dict[str, Any]] = None

    def set_context(self, **kwargs: Any) -> None:
        """Merge key/value pairs into this scope's context."""
        self.context.update(kwargs)

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        self.user = user

    def clear(self) -> None:
        self.context = {}
        self.user = None

    def child(self, context: Optional[Dict[str, Any]] = None, user: Optional[Dict[str, Any]] = None) -> "Scope":
        """Return a new scope that starts from a copy of this one."""
        merged = dict(self.context)
        merged.update(context or {})
        return Scope(context=merged, user=user if user is not None else self.user)


def _stack() -> List[Scope]:
    if not hasattr(_local, "scopes"):
        _local.scopes = []
    return _local.scopes


def current_scope() -> Optional[Scope]:
    """Return the innermost scope opened on this thread, or ``None``."""
    stack = _stack()
    return stack[-1] if stack else None


def ensure_scope() -> Scope:
    """Return the current scope, opening a root scope for this thread if needed."""
    scope = current_scope()
    if scope is None:
        scope = Scope()
        _stack().append(scope)
    return scope


def push_scope(scope: Scope) -> Scope:
    _stack().append(scope)
    return scope


def pop_scope(scope: Optional[Scope] = None) -> None:
    """Close *scope* (and anything opened after it), or the innermost scope."""
    stack = _stack()
    if not stack:
        return
    if scope is None:
        stack.pop()
        return
    for i in range(len(stack) - 1, -1, -1):
        if stack[i] is scope:
            del stack[i:]
            return


def clear_scopes() -> None:
    """Drop every scope opened on this thread."""
    _local.scopes = []


@contextmanager
def open_scope(
    context: Optional[Dict[str, Any]] = None,
    user: Optional[Dict[str, Any]] = None,
) -> Iterator[Scope]:
    """Open a scope for the current thread, inheriting from the enclosing one."""
    parent = current_scope()
    scope = parent.child(context, user) if parent else Scope(context=dict(context or {}), user=user)
    push_scope(scope)
    try:
        yield scope
    finally:
        pop_scope(scope)
