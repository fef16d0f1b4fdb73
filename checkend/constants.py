"""
Centralised constants for the Checkend client.

Limits, markers and default values live here so they can be imported by any
module without circular dependencies.
"""

import platform

# ── Version ──────────────────────────────────────────────────────
VERSION = "0.1.0"
NOTIFIER_NAME = "checkend-python"
NOTIFIER_LANGUAGE = "python"
USER_AGENT = f"{NOTIFIER_NAME}/{VERSION} Python/{platform.python_version()}"

# ── Transport ────────────────────────────────────────────────────
DEFAULT_ENDPOINT = "https://app.checkend.io"
INGEST_PATH = "/ingest/v1/errors"
INGESTION_KEY_HEADER = "Checkend-Ingestion-Key"
DEFAULT_TIMEOUT = 15  # seconds, read timeout and default flush wait
DEFAULT_OPEN_TIMEOUT = 5

# ── Notice limits ────────────────────────────────────────────────
MAX_BACKTRACE_LINES = 100
MAX_MESSAGE_LENGTH = 10_000
DEFAULT_ERROR_CLASS = "Notice"
PROJECT_ROOT_PLACEHOLDER = "[PROJECT_ROOT]"

# ── Sanitizing ───────────────────────────────────────────────────
FILTERED = "[FILTERED]"
TRUNCATED_SUFFIX = "...[TRUNCATED]"
TRUNCATE_LIMIT = 10_000
MAX_SANITIZE_DEPTH = 10

DEFAULT_FILTER_KEYS = (
    "password",
    "password_confirmation",
    "passwd",
    "secret",
    "token",
    "api_key",
    "access_token",
    "refresh_token",
    "authorization",
    "bearer",
    "credit_card",
    "card_number",
    "cvv",
    "cvc",
    "ssn",
)

# Framework "not found" errors that are noise rather than bugs
DEFAULT_IGNORED_EXCEPTIONS = (
    "werkzeug.exceptions.NotFound",
    "werkzeug.exceptions.MethodNotAllowed",
    "django.http.response.Http404",
)

# ── Async delivery ───────────────────────────────────────────────
DEFAULT_MAX_QUEUE_SIZE = 1000
DEFAULT_SHUTDOWN_TIMEOUT = 5
BASE_THROTTLE = 1.05
MAX_THROTTLE = 100
WORKER_THREAD_NAME = "checkend-worker"

# ── Environments ─────────────────────────────────────────────────
DEFAULT_ENVIRONMENT = "development"
REPORTING_ENVIRONMENTS = frozenset({"production", "staging"})
