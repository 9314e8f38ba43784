"""Webhook dispatcher with bounded retries."""

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from task_notifier.config import RetryPolicy
from task_notifier.models import DispatchResult

logger = logging.getLogger(__name__)

# Keep error messages readable in the audit log
_MAX_ERROR_BODY = 500


class Dispatcher(Protocol):
    """Protocol for sending a rendered card to a webhook."""

    def send(self, endpoint: str, payload: dict[str, Any]) -> DispatchResult:
        """Send payload; never raises on delivery failure."""
        ...


class WebhookDispatcher:
    """POSTs JSON payloads with linear backoff between failed attempts.

    An attempt fails if the transport raises or the response status is
    outside [200, 300). After attempt n fails, the dispatcher sleeps
    base_delay_ms * n before trying again, up to max_attempts in total.
    Retried deliveries are not deduplicated on the receiving side.
    """

    def __init__(
        self,
        retry: RetryPolicy | None = None,
        client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize dispatcher.

        Args:
            retry: Retry policy (defaults to 3 attempts, 500ms base delay)
            client: HTTP client to use; one is created if not given
            timeout_seconds: Request timeout for the created client
            sleep: Sleep function, replaced in tests
        """
        self._retry = retry or RetryPolicy()
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._sleep = sleep

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def send(self, endpoint: str, payload: dict[str, Any]) -> DispatchResult:
        """Send payload to endpoint.

        Args:
            endpoint: Webhook URL
            payload: JSON-serializable card payload

        Returns:
            DispatchResult with ok=True on the first 2xx response, or ok=False
            and the last error once all attempts have failed
        """
        max_attempts = max(1, self._retry.max_attempts)
        error = "no attempt made"

        for attempt in range(1, max_attempts + 1):
            try:
                response = self._client.post(endpoint, json=payload)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                error = f"{type(e).__name__}: {e}"
            else:
                if 200 <= response.status_code < 300:
                    if attempt > 1:
                        logger.info(f"[Dispatcher] Delivered on attempt {attempt}")
                    return DispatchResult(ok=True, attempts=attempt)
                error = f"HTTP {response.status_code}: {response.text[:_MAX_ERROR_BODY]}"

            logger.warning(f"[Dispatcher] Attempt {attempt}/{max_attempts} failed: {error}")
            if attempt < max_attempts:
                self._sleep(self._retry.base_delay_ms * attempt / 1000)

        logger.error(f"[Dispatcher] Giving up after {max_attempts} attempts: {error}")
        return DispatchResult(ok=False, error=error, attempts=max_attempts)
