"""Outbound HTTP with bounded retry for transient Jira failures."""

import logging
import time
from typing import Optional

import requests

from services.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class RetryingFetcher:
    """Wraps GET requests with linear backoff on 503 and network errors.

    Attempt ``n`` that fails waits ``n * backoff_seconds`` before the next one
    (2s, 4s, ... with the defaults). Any other status, including other 5xx
    and 4xx, is handed back untouched for the caller to interpret.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 max_retries: int = 3, backoff_seconds: float = 2.0,
                 timeout: float = 30, sleep=time.sleep):
        self.session = session
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self._sleep = sleep

    def _get(self, url, **kwargs):
        # No shared Session by default, replay calls this from worker threads
        if self.session is not None:
            return self.session.get(url, **kwargs)
        return requests.get(url, **kwargs)

    def fetch(self, url: str, params: Optional[dict] = None, auth=None,
              headers: Optional[dict] = None,
              max_retries: Optional[int] = None) -> requests.Response:
        """GET ``url``, retrying up to ``max_retries`` attempts in total.

        Raises:
            UpstreamUnavailableError: every attempt returned 503 or failed at
                the network level.
        """
        attempts = max_retries or self.max_retries

        for attempt in range(1, attempts + 1):
            try:
                response = self._get(
                    url,
                    params=params,
                    auth=auth,
                    headers=headers or {"Accept": "application/json"},
                    timeout=self.timeout
                )
            except requests.exceptions.RequestException as e:
                if attempt == attempts:
                    raise UpstreamUnavailableError(
                        f"Failed to connect to Jira after {attempts} attempts: {e}"
                    ) from e
                delay = attempt * self.backoff_seconds
                logger.warning(
                    "Request to %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    url, e, delay, attempt, attempts
                )
                self._sleep(delay)
                continue

            if response.status_code != 503:
                return response

            if attempt == attempts:
                raise UpstreamUnavailableError(
                    f"Jira returned 503 after {attempts} attempts", status_code=503
                )

            delay = attempt * self.backoff_seconds
            logger.warning(
                "Jira returned 503 for %s, retrying in %.1fs (attempt %d/%d)",
                url, delay, attempt, attempts
            )
            self._sleep(delay)

        # Only reachable with attempts < 1
        raise UpstreamUnavailableError("Max retries exceeded")
