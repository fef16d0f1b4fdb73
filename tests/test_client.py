"""Tests for the HTTP Client (requests is mocked)."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import TEST_ENDPOINT, VALID_API_KEY

from checkend.client import Client
from checkend.constants import USER_AGENT


def _response(status_code, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def client(config):
    config.logger = MagicMock()
    return Client(config)


class TestRequest:
    @patch("requests.post")
    def test_posts_json_to_ingest_path(self, mock_post, client, make_notice):
        mock_post.return_value = _response(201, {"id": 1, "problem_id": 2})
        client.send_notice(make_notice("Boom", "bad"))

        args, kwargs = mock_post.call_args
        assert args[0] == f"{TEST_ENDPOINT}/ingest/v1/errors"
        payload = json.loads(kwargs["data"].decode("utf-8"))
        assert payload["error"]["class"] == "Boom"
        assert payload["error"]["message"] == "bad"

    @patch("requests.post")
    def test_headers(self, mock_post, client, make_notice):
        mock_post.return_value = _response(201, {})
        client.send_notice(make_notice())

        headers = mock_post.call_args.kwargs["headers"]
        assert headers["Content-Type"] == "application/json"
        assert headers["Checkend-Ingestion-Key"] == VALID_API_KEY
        assert headers["User-Agent"] == USER_AGENT

    @patch("requests.post")
    def test_trailing_slash_on_endpoint(self, mock_post, config, make_notice):
        config.endpoint = TEST_ENDPOINT + "/"
        mock_post.return_value = _response(201, {})
        Client(config).send_notice(make_notice())
        assert mock_post.call_args.args[0] == f"{TEST_ENDPOINT}/ingest/v1/errors"

    @patch("requests.post")
    def test_timeouts_proxy_and_tls(self, mock_post, config, make_notice):
        config.timeout = 9
        config.open_timeout = 3
        config.proxy = "http://proxy.local:3128"
        config.ssl_ca_path = "/etc/ssl/custom.pem"
        mock_post.return_value = _response(201, {})
        Client(config).send_notice(make_notice())

        kwargs = mock_post.call_args.kwargs
        assert kwargs["timeout"] == (3, 9)
        assert kwargs["proxies"] == {"http": "http://proxy.local:3128", "https": "http://proxy.local:3128"}
        assert kwargs["verify"] == "/etc/ssl/custom.pem"

    @patch("requests.post")
    def test_defaults_no_proxy_verify_on(self, mock_post, client, make_notice):
        mock_post.return_value = _response(201, {})
        client.send_notice(make_notice())
        kwargs = mock_post.call_args.kwargs
        assert kwargs["proxies"] is None
        assert kwargs["verify"] is True

    @patch("requests.post")
    def test_ssl_verify_off(self, mock_post, config, make_notice):
        config.ssl_verify = False
        mock_post.return_value = _response(201, {})
        Client(config).send_notice(make_notice())
        assert mock_post.call_args.kwargs["verify"] is False


class TestResponses:
    @pytest.mark.parametrize("status", [200, 201, 202])
    @patch("requests.post")
    def test_success_returns_body(self, mock_post, status, client, make_notice):
        mock_post.return_value = _response(status, {"id": 5, "problem_id": 9})
        assert client.send_notice(make_notice()) == {"id": 5, "problem_id": 9}

    @patch("requests.post")
    def test_success_with_unparseable_body(self, mock_post, client, make_notice):
        mock_post.return_value = _response(201, ValueError("no json"))
        assert client.send_notice(make_notice()) == {}

    @patch("requests.post")
    def test_success_with_non_object_body(self, mock_post, client, make_notice):
        mock_post.return_value = _response(201, ["not", "a", "dict"])
        assert client.send_notice(make_notice()) == {}

    @pytest.mark.parametrize("status", [400, 422, 429])
    @patch("requests.post")
    def test_client_errors_warn(self, mock_post, status, client, make_notice):
        mock_post.return_value = _response(status, text="nope")
        assert client.send_notice(make_notice()) is None
        assert client.logger.warning.called

    @pytest.mark.parametrize("status", [401, 500, 503, 302])
    @patch("requests.post")
    def test_other_failures_log_errors(self, mock_post, status, client, make_notice):
        mock_post.return_value = _response(status, text="oops")
        assert client.send_notice(make_notice()) is None
        assert client.logger.error.called


class TestTransportErrors:
    @pytest.mark.parametrize(
        "exc",
        [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            requests.exceptions.SSLError("bad cert"),
            RuntimeError("unexpected"),
        ],
    )
    @patch("requests.post")
    def test_exceptions_return_none(self, mock_post, exc, client, make_notice):
        mock_post.side_effect = exc
        assert client.send_notice(make_notice()) is None
        assert client.logger.error.called
