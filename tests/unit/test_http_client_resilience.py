"""Tests for HTTP client retry behaviour."""
from unittest.mock import Mock

import pytest
import requests
from requests.adapters import HTTPAdapter

from medbook.http_client import create_http_session, send_with_retry


class TestSessionConfiguration:

    def test_mounts_retrying_adapter(self):
        session = create_http_session(max_retries=2)

        adapter = session.get_adapter("https://auth.example.com")
        assert isinstance(adapter, HTTPAdapter)
        assert adapter.max_retries.total == 2
        assert 503 in adapter.max_retries.status_forcelist
        assert 429 in adapter.max_retries.status_forcelist

    def test_status_retries_do_not_raise(self):
        """Final 5xx responses come back to the caller for translation."""
        session = create_http_session()

        adapter = session.get_adapter("http://auth.example.com")
        assert adapter.max_retries.raise_on_status is False


class TestTenacityRetries:
    """Connection-level retries with exponential backoff."""

    def test_retries_on_connection_error(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError("Connection failed")

        with pytest.raises(requests.exceptions.ConnectionError):
            send_with_retry(session, "POST", "http://test.com/api", max_retries=3, wait_multiplier=0)

        # 1 initial + 3 retries
        assert session.request.call_count == 4

    def test_retries_on_timeout(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.Timeout("Request timeout")

        with pytest.raises(requests.exceptions.Timeout):
            send_with_retry(session, "GET", "http://test.com/api", max_retries=2, wait_multiplier=0)

        assert session.request.call_count == 3

    def test_recovers_after_transient_failure(self):
        ok = Mock(status_code=200)
        session = Mock()
        session.request.side_effect = [requests.exceptions.ConnectionError("blip"), ok]

        response = send_with_retry(session, "GET", "http://test.com/api", wait_multiplier=0)

        assert response is ok
        assert session.request.call_count == 2

    def test_http_error_status_is_returned_not_retried(self):
        session = Mock()
        session.request.return_value = Mock(status_code=400)

        response = send_with_retry(session, "POST", "http://test.com/api", wait_multiplier=0)

        assert response.status_code == 400
        assert session.request.call_count == 1

    def test_passes_timeout_and_kwargs(self):
        session = Mock()
        session.request.return_value = Mock(status_code=200)

        send_with_retry(session, "POST", "http://test.com/api", timeout=5, json={"a": 1})

        session.request.assert_called_once_with("POST", "http://test.com/api", timeout=5, json={"a": 1})
