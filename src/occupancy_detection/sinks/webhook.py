"""
Webhook Sink - Generic HTTP webhook notifications.

Sends JSON payloads for occupancy events and alerts to a configured endpoint.
Compatible with Home Assistant, IFTTT, Zapier, and custom endpoints.
"""

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import requests

from ..models import DetectionEvent, DetectionResult

if TYPE_CHECKING:
    from ..core.alerts import OccupancyAlert

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0  # seconds


def with_retry(
    func: Callable[[], requests.Response],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    Execute a request function with exponential backoff retry.

    Retries on transient network errors and 5xx responses.
    Does NOT retry on 4xx client errors.

    Args:
        func: Callable that performs the request and returns Response
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds, doubles each retry
        sleep: Sleep function (injectable for tests)

    Returns:
        The last Response received

    Raises:
        requests.RequestException: If all retries exhausted on network errors
    """
    last_exception: requests.RequestException | None = None

    for attempt in range(max_retries + 1):
        try:
            response = func()
            if response.status_code < 500 or attempt == max_retries:
                return response
            delay = base_delay * (2**attempt)
            logger.warning(
                f"Server error {response.status_code}, retry {attempt + 1}/{max_retries} in {delay}s"
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            last_exception = e
            if attempt == max_retries:
                break
            delay = base_delay * (2**attempt)
            logger.warning(f"Network error: {e}, retry {attempt + 1}/{max_retries} in {delay}s")
        sleep(delay)

    raise last_exception


class WebhookSink:
    """
    Sink that POSTs JSON payloads to an HTTP webhook.

    Events and alerts are always sent; results only when include_results
    is set (they arrive every cycle).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        include_results: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        session: requests.Session | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._include_results = include_results
        self._max_retries = max_retries
        self._session = session or requests.Session()

        logger.debug(f"WebhookSink initialized -> {self._url}")

    def _post(self, kind: str, data: dict[str, Any]) -> bool:
        payload = {"type": kind, "data": data}
        try:
            response = with_retry(
                lambda: self._session.post(
                    self._url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self._timeout,
                ),
                max_retries=self._max_retries,
            )
        except requests.RequestException as e:
            logger.error(f"Webhook error: {e}")
            return False

        if not response.ok:
            logger.warning(f"Webhook failed: {response.status_code} {response.text[:100]}")
            return False

        logger.debug(f"Webhook sent {kind} to {self._url}")
        return True

    def handle_result(self, result: DetectionResult) -> None:
        if self._include_results:
            self._post("detection_result", result.to_dict())

    def handle_event(self, event: DetectionEvent) -> None:
        self._post("detection_event", event.to_dict())

    def handle_alert(self, alert: "OccupancyAlert") -> None:
        self._post("occupancy_alert", alert.to_dict())
