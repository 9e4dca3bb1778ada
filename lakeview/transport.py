"""HTTP transport with fixed-delay retries, shared by every backend session."""

import logging
import time

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

HTTP_CLIENT_DEFAULT_TIMEOUT_SECONDS = 5
HTTP_CLIENT_MAX_ATTEMPTS = 3
HTTP_CLIENT_RETRY_DELAY_SECONDS = 1.0
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS"})


class RetryAdapter(HTTPAdapter):
    """HTTPAdapter that re-sends failed exchanges after a constant delay.

    A connection error or timeout, or a response whose status is in
    ``retry_statuses``, counts as a failed attempt. Once ``max_attempts`` is
    spent the last exception is raised as is, or the last response is
    returned as is, so callers see the root cause.

    Only idempotent requests with a replayable body are retried.
    """

    def __init__(
        self,
        max_attempts: int = HTTP_CLIENT_MAX_ATTEMPTS,
        retry_delay: float = HTTP_CLIENT_RETRY_DELAY_SECONDS,
        timeout: float | None = HTTP_CLIENT_DEFAULT_TIMEOUT_SECONDS,
        retry_statuses: frozenset[int] = RETRY_STATUS_CODES,
        **kwargs,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.retry_statuses = frozenset(retry_statuses)
        super().__init__(**kwargs)

    @staticmethod
    def is_replayable(request: requests.PreparedRequest) -> bool:
        """Whether the request can be sent again without side effects."""
        if request.method not in IDEMPOTENT_METHODS:
            return False
        return request.body is None or isinstance(request.body, (bytes, str))

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout

        attempts = self.max_attempts if self.is_replayable(request) else 1
        for attempt in range(1, attempts + 1):
            try:
                response = super().send(request, **kwargs)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    "%s %s failed (%s), retrying in %ss (attempt %d/%d)",
                    request.method, request.url, e, self.retry_delay, attempt, attempts,
                )
            else:
                if response.status_code not in self.retry_statuses or attempt == attempts:
                    return response
                logger.warning(
                    "%s %s returned %d, retrying in %ss (attempt %d/%d)",
                    request.method, request.url, response.status_code,
                    self.retry_delay, attempt, attempts,
                )
                response.close()
            time.sleep(self.retry_delay)


def mount_retry_adapter(
    session: requests.Session,
    max_attempts: int = HTTP_CLIENT_MAX_ATTEMPTS,
    retry_delay: float = HTTP_CLIENT_RETRY_DELAY_SECONDS,
    timeout: float | None = HTTP_CLIENT_DEFAULT_TIMEOUT_SECONDS,
) -> requests.Session:
    """Route every http(s) exchange of a session through a RetryAdapter."""
    adapter = RetryAdapter(max_attempts=max_attempts, retry_delay=retry_delay, timeout=timeout)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
