"""
Background-job helper: report exceptions raised by a job function.

Wraps the job in an ambient scope carrying the job name and its sanitized
arguments, notifies on failure, and re-raises so the job runner's own retry
and failure handling still applies.
"""

import functools
from typing import Any, Callable, Iterable, List, Optional

from ..filters.sanitize import SanitizeFilter


def report_job_errors(
    name: Optional[str] = None,
    *,
    notifier=None,
    tags: Optional[Iterable[str]] = None,
) -> Callable:
    """Decorator for background job callables.

    Usage::

        @report_job_errors("nightly_export", tags=["exports"])
        def export(account_id):
            ...

    Args:
        name: Job name reported in context; defaults to the function's qualified name.
        notifier: ``Notifier`` to report through; defaults to the global one.
        tags: Extra tags added after ``background_job``.
    """

    def decorator(func: Callable) -> Callable:
        job_name = name or f"{func.__module__}.{func.__qualname__}"
        job_tags: List[str] = ["background_job", *(tags or [])]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            active = notifier
            if active is None:
                from .. import get_notifier

                active = get_notifier()

            job_context = {
                "name": job_name,
                "arguments": _sanitize_arguments(active, args, kwargs),
            }
            with active.scope(context={"job": job_context}):
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    active.notify(exc, context={"job": job_context}, tags=job_tags)
                    raise

        return wrapper

    return decorator


def _sanitize_arguments(notifier, args: tuple, kwargs: dict) -> Any:
    try:
        scrub = SanitizeFilter.from_config(notifier.config)
        return {"args": scrub(list(args)), "kwargs": scrub(kwargs)}
    except Exception:
        return ["[ARGS HIDDEN]"]
