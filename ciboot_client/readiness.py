"""Readiness polling for the control plane's administrative API."""

import logging
import time

from .client import ControlPlaneClient

logger = logging.getLogger(__name__)

LIVENESS_PATH = "/api/json"
READY_MARKER = '"mode"'


def wait_until_ready(
    client: ControlPlaneClient,
    max_attempts: int = 30,
    interval: float = 1.0,
    marker: str = READY_MARKER,
    path: str = LIVENESS_PATH,
) -> bool:
    """
    Block until the administrative API answers liveness queries.

    Args:
        client: Control plane client
        max_attempts: Hard ceiling on GET calls
        interval: Fixed seconds between attempts (no backoff)
        marker: Substring that marks a ready response
        path: Liveness endpoint

    Returns:
        True once a response contains the marker, False after max_attempts
        failed calls. The caller decides whether False is fatal.

    Cancellation is left to the caller: a KeyboardInterrupt raised during
    the sleep propagates unchanged.
    """
    for attempt in range(1, max_attempts + 1):
        body = client.get(path)
        if body is not None and marker in body:
            logger.info(f"Control plane API ready after {attempt} attempt(s)")
            return True

        logger.debug(f"Control plane not ready ({attempt}/{max_attempts})")
        if attempt < max_attempts:
            time.sleep(interval)

    logger.warning(f"Control plane API not ready after {max_attempts} attempts")
    return False
