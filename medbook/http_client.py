"""HTTP transport for the hosted identity API.

Two retry layers:
- urllib3 Retry on the session adapter re-sends on 429/5xx responses
- tenacity around each call re-sends on connection errors and timeouts
Final error statuses are handed back to the caller, which maps them to
application exceptions.
"""
import logging

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

from medbook import config

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)
TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


def create_http_session(
    max_retries: int = config.HTTP_MAX_RETRIES,
    backoff_factor: float = 1.0
) -> requests.Session:
    """
    Pooled session whose adapter retries 429/5xx for GET and POST.

    Args:
        max_retries: Status retries per request
        backoff_factor: urllib3 backoff (1.0 gives 1s, 2s, 4s)
    """
    adapter = HTTPAdapter(
        pool_connections=10,
        pool_maxsize=10,
        max_retries=Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=list(RETRY_STATUSES),
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
        ),
    )

    session = requests.Session()
    for prefix in ("http://", "https://"):
        session.mount(prefix, adapter)
    return session


def send_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    max_retries: int = config.HTTP_MAX_RETRIES,
    timeout: int = config.HTTP_TIMEOUT_SECONDS,
    wait_multiplier: float = 1.0,
    **kwargs
) -> requests.Response:
    """
    Issue one request, re-sending after connection failures and timeouts.

    Args:
        session: Session from create_http_session()
        method: HTTP verb
        url: Absolute URL
        max_retries: Extra attempts after the first
        timeout: Seconds per attempt
        wait_multiplier: Exponential backoff multiplier (0 disables waiting)
        **kwargs: Forwarded to session.request

    Raises:
        requests.exceptions.ConnectionError: Still failing after the last attempt
        requests.exceptions.Timeout: Still timing out after the last attempt
    """
    kwargs.setdefault("timeout", timeout)

    @retry(
        reraise=True,
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=wait_multiplier, min=0, max=8),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    def attempt():
        return session.request(method, url, **kwargs)

    return attempt()
