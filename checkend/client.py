"""HTTP client that delivers notices to the Checkend ingestion API."""

import json
from typing import Any, Dict, Optional, Protocol

import requests

from .config import Configuration
from .constants import INGEST_PATH, INGESTION_KEY_HEADER, USER_AGENT
from .notice import Notice

_SUCCESS_CODES = frozenset({200, 201, 202})


class Sender(Protocol):
    """Anything that can deliver a notice.

    ``send_notice`` returns the parsed response on success and ``None`` on
    failure.  It should not raise, but callers treat an exception as a failure.
    """

    def send_notice(self, notice: Notice) -> Optional[Dict[str, Any]]: ...


class Client:
    """POST notices as JSON to ``<endpoint>/ingest/v1/errors``."""

    def __init__(self, config: Configuration) -> None:
        """Initialise the client.

        Args:
            config: Supplies endpoint, api key, timeouts, proxy and TLS settings.
        """
        self.config = config
        self.url = f"{(config.endpoint or '').rstrip('/')}{INGEST_PATH}"
        self.logger = config.resolved_logger()

    # ── Public API ───────────────────────────────────────────────

    def send_notice(self, notice: Notice) -> Optional[Dict[str, Any]]:
        """Send one notice.

        Returns:
            The response body on success, ``None`` on any failure.
        """
        try:
            response = requests.post(
                self.url,
                data=notice.to_json().encode("utf-8"),
                headers=self._headers(),
                timeout=(self.config.open_timeout, self.config.timeout),
                proxies=self._proxies(),
                verify=self._verify(),
            )
        except Exception as e:
            self.logger.error("Failed to send notice: %s - %s", type(e).__name__, e)
            return None

        return self._handle_response(response)

    # ── Request building ─────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            INGESTION_KEY_HEADER: self.config.api_key or "",
            "User-Agent": USER_AGENT,
        }

    def _proxies(self) -> Optional[Dict[str, str]]:
        if not self.config.proxy:
            return None
        return {"http": self.config.proxy, "https": self.config.proxy}

    def _verify(self):
        if not self.config.ssl_verify:
            return False
        return self.config.ssl_ca_path or True

    # ── Response handling ────────────────────────────────────────

    def _handle_response(self, response) -> Optional[Dict[str, Any]]:
        status = response.status_code

        if status in _SUCCESS_CODES:
            try:
                result = response.json()
            except (ValueError, json.JSONDecodeError):
                result = {}
            if not isinstance(result, dict):
                result = {}
            self.logger.debug(
                "Notice sent successfully: id=%s problem_id=%s",
                result.get("id"),
                result.get("problem_id"),
            )
            return result

        if status == 400:
            self.logger.warning("Bad request: %s", response.text)
        elif status == 401:
            self.logger.error("Authentication failed - check your API key")
        elif status == 422:
            self.logger.warning("Invalid notice payload: %s", response.text)
        elif status == 429:
            self.logger.warning("Rate limited by server - backing off")
        elif 500 <= status < 600:
            self.logger.error("Server error: %s - %s", status, response.text)
        else:
            self.logger.error("Unexpected response: %s - %s", status, response.text)
        return None
