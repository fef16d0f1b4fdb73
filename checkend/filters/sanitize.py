"""
Scrubbing of sensitive values from nested data before it leaves the process.

Only mapping keys trigger filtering: a key is filtered when it contains any of
the configured filter tokens, case-insensitively (``user_password`` matches
``password``).  Long strings are truncated and anything nested deeper than
``MAX_SANITIZE_DEPTH`` collapses to the filtered marker.
"""

import re
from typing import Any, Iterable, Mapping, Optional

from ..constants import FILTERED, MAX_SANITIZE_DEPTH, TRUNCATE_LIMIT, TRUNCATED_SUFFIX


class SanitizeFilter:
    """Return sanitized deep copies of arbitrary JSON-like data.

    Usage::

        scrub = SanitizeFilter(["password", "token"])
        scrub({"password": "x", "name": "z"})
        # {"password": "[FILTERED]", "name": "z"}
    """

    def __init__(self, filter_keys: Optional[Iterable[str]] = None) -> None:
        self.filter_keys = [str(k).lower() for k in (filter_keys or []) if str(k)]
        self._pattern = _build_pattern(self.filter_keys)

    @classmethod
    def from_config(cls, config) -> "SanitizeFilter":
        return cls(config.filter_keys)

    def __call__(self, data: Any) -> Any:
        return self.sanitize(data)

    def sanitize(self, data: Any) -> Any:
        """Return a sanitized copy of *data*; the input is never modified."""
        return self._sanitize(data, 0)

    def should_filter(self, key: Any) -> bool:
        if key is None or self._pattern is None:
            return False
        return self._pattern.search(str(key)) is not None

    # ── internals ────────────────────────────────────────────────

    def _sanitize(self, obj: Any, depth: int) -> Any:
        if depth > MAX_SANITIZE_DEPTH:
            return FILTERED

        if isinstance(obj, Mapping):
            return {
                key: FILTERED if self.should_filter(key) else self._sanitize(value, depth + 1)
                for key, value in obj.items()
            }
        if isinstance(obj, (list, tuple, set, frozenset)):
            return [self._sanitize(item, depth + 1) for item in obj]
        if isinstance(obj, str):
            return _truncate(obj)
        return obj


def _build_pattern(keys: Iterable[str]) -> Optional[re.Pattern]:
    keys = list(keys)
    if not keys:
        return None  # never match
    return re.compile("|".join(re.escape(k) for k in keys), re.IGNORECASE)


def _truncate(value: str) -> str:
    if len(value) <= TRUNCATE_LIMIT:
        return value
    return value[: TRUNCATE_LIMIT - len(TRUNCATED_SUFFIX)] + TRUNCATED_SUFFIX
