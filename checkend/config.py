"""
Configuration loading and validation for the Checkend client.

Settings can come from three places: keyword arguments, environment variables
(optionally read from a ``.env`` file) or a JSON file with
``${ENV_VAR:-default}`` placeholders.  The rest of the client treats the
resulting ``Configuration`` as read-only.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import find_dotenv, load_dotenv

from .constants import (
    DEFAULT_ENDPOINT,
    DEFAULT_ENVIRONMENT,
    DEFAULT_FILTER_KEYS,
    DEFAULT_IGNORED_EXCEPTIONS,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_TIMEOUT,
    REPORTING_ENVIRONMENTS,
)
from .logging import setup_logger

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

# Settings that arrive as strings when a JSON file uses placeholders
_BOOL_FIELDS = frozenset({"ssl_verify", "send_request_data", "send_user_data", "async_mode", "debug"})
_INT_FIELDS = frozenset({"max_queue_size"})
_FLOAT_FIELDS = frozenset({"timeout", "open_timeout", "shutdown_timeout"})


class ConfigError(Exception):
    """Raised when a configuration file is missing or invalid."""


@dataclass
class Configuration:
    """All settings for one ``Notifier``."""

    api_key: Optional[str] = None
    endpoint: Optional[str] = DEFAULT_ENDPOINT
    environment: str = DEFAULT_ENVIRONMENT
    enabled: Optional[bool] = None  # None: only production / staging report

    # Application metadata
    app_name: Optional[str] = None
    revision: Optional[str] = None
    root_path: Optional[str] = None

    # HTTP
    timeout: float = DEFAULT_TIMEOUT
    open_timeout: float = DEFAULT_OPEN_TIMEOUT
    proxy: Optional[str] = None
    ssl_verify: bool = True
    ssl_ca_path: Optional[str] = None

    # Filtering
    ignored_exceptions: List[Any] = field(default_factory=lambda: list(DEFAULT_IGNORED_EXCEPTIONS))
    filter_keys: List[str] = field(default_factory=lambda: list(DEFAULT_FILTER_KEYS))
    before_notify: List[Callable[[Any], Any]] = field(default_factory=list)

    # Integrations
    send_request_data: bool = True
    send_user_data: bool = True

    # Async delivery
    async_mode: bool = True
    max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT

    # Logging
    debug: bool = False
    logger: Optional[logging.Logger] = None

    @classmethod
    def from_env(cls, **overrides: Any) -> "Configuration":
        """Build a configuration from ``CHECKEND_*`` environment variables.

        A ``.env`` file in the working directory is loaded first; variables
        already present in the environment win.  Keyword arguments override
        anything read from the environment.
        """
        load_dotenv(find_dotenv(usecwd=True))
        values: Dict[str, Any] = {
            "api_key": os.environ.get("CHECKEND_API_KEY"),
            "endpoint": os.environ.get("CHECKEND_ENDPOINT", DEFAULT_ENDPOINT),
            "environment": _detect_environment(),
            "debug": _env_flag("CHECKEND_DEBUG", False),
        }
        if "CHECKEND_ENABLED" in os.environ:
            values["enabled"] = _env_flag("CHECKEND_ENABLED", False)
        values.update(overrides)
        return cls(**values)

    # ── Derived settings ─────────────────────────────────────────

    @property
    def valid(self) -> bool:
        """``True`` when the client has everything it needs to send."""
        return not validate_config(self)

    def is_enabled(self) -> bool:
        if self.enabled is not None:
            return bool(self.enabled)
        return self.environment in REPORTING_ENVIRONMENTS

    def resolved_logger(self) -> logging.Logger:
        if self.logger is not None:
            return self.logger
        return setup_logger(debug=self.debug)


def load_config(config_path: str) -> Configuration:
    """
    Load configuration from a JSON file and resolve ``${ENV_VAR:-default}``
    placeholders in all string values.

    Args:
        config_path: Path to the JSON file.

    Returns:
        A ``Configuration`` built from the file's top-level keys.

    Raises:
        ConfigError: If the file cannot be read, parsed, or names unknown settings.
    """
    full_path = Path(config_path)

    if not full_path.exists():
        raise ConfigError(f"Configuration file not found: {full_path}")

    try:
        with open(full_path, "r") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {full_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration in {full_path} must be a JSON object")

    known = {f.name for f in fields(Configuration)} - {"logger", "before_notify"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys in {full_path}: {', '.join(unknown)}")

    return Configuration(**_coerce(_resolve(raw), full_path))


def validate_config(config: Configuration) -> List[str]:
    """
    Validate a configuration.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    errors: List[str] = []

    if not config.api_key:
        errors.append("Missing api_key. Set CHECKEND_API_KEY or pass api_key.")

    if not config.endpoint:
        errors.append("Missing endpoint. Set CHECKEND_ENDPOINT or pass endpoint.")
    elif not config.endpoint.startswith(("http://", "https://")):
        errors.append(f"endpoint must start with http:// or https://, got '{config.endpoint}'")

    if config.max_queue_size < 1:
        errors.append(f"max_queue_size must be at least 1, got {config.max_queue_size}")

    if config.shutdown_timeout < 0:
        errors.append(f"shutdown_timeout must not be negative, got {config.shutdown_timeout}")

    return errors


# ── Private helpers ──────────────────────────────────────────────

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _resolve(obj: Any) -> Any:
    """Recursively resolve ``${ENV_VAR:-default}`` in string values."""
    if isinstance(obj, str):
        return _PLACEHOLDER_RE.sub(_replace_match, obj)
    elif isinstance(obj, dict):
        return {k: _resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve(v) for v in obj]
    return obj


def _replace_match(m: re.Match) -> str:
    var = m.group(1)
    default = m.group(2) if m.group(2) is not None else ""
    return os.environ.get(var, default)


def _coerce(values: Dict[str, Any], source: Path) -> Dict[str, Any]:
    """Convert resolved placeholder strings to the type each setting expects.

    Raises:
        ConfigError: If a string cannot be read as the setting's type.
    """
    coerced = dict(values)
    for key, value in values.items():
        if not isinstance(value, str):
            continue
        try:
            if key in _BOOL_FIELDS:
                coerced[key] = _parse_flag(value)
            elif key == "enabled":
                coerced[key] = None if not value.strip() else _parse_flag(value)
            elif key in _INT_FIELDS:
                coerced[key] = int(value)
            elif key in _FLOAT_FIELDS:
                coerced[key] = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid value for {key} in {source}: {value!r}") from exc
    return coerced


def _parse_flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(value)


def _detect_environment() -> str:
    return (
        os.environ.get("CHECKEND_ENVIRONMENT")
        or os.environ.get("FLASK_ENV")
        or os.environ.get("APP_ENV")
        or DEFAULT_ENVIRONMENT
    )


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES
