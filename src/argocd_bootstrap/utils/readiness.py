# ABOUTME: Bounded readiness polling for cluster bring-up
# ABOUTME: Polls a condition until true or a deadline passes, then raises ReadinessTimeout

"""Bounded readiness polling.

Each wait in the run answers "is dependency X ready yet?" by probing,
sleeping a short interval, and probing again until either the probe passes
or the deadline expires:

    wait_until(
        lambda: kubectl.namespace_exists("grafana"),
        description="namespace grafana",
        timeout=300,
        interval=5,
    )

The deadline is enforced both in wall-clock time and in attempts
(``ceil(timeout / interval) + 1``), so a slow probe cannot stretch the wait
indefinitely and a test with a no-op sleep still terminates.
"""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING

import structlog
from tenacity import (
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from argocd_bootstrap.errors import ReadinessTimeout

if TYPE_CHECKING:
    from collections.abc import Callable

    from tenacity import RetryCallState

logger = structlog.get_logger(__name__)


def max_attempts(timeout: float, interval: float) -> int:
    """Number of probes that fit into timeout, counting the first one."""
    return math.ceil(timeout / interval) + 1


def wait_until(
    check: Callable[[], bool],
    *,
    description: str,
    timeout: float,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Poll check until it returns True.

    Args:
        check: Probe returning True once the condition holds. Exceptions from
               the probe are not caught: probes report "not yet" by returning False.
        description: What is being waited for, used in logs and the timeout error.
        timeout: Deadline in seconds.
        interval: Seconds between probes.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Number of probes it took.

    Raises:
        ReadinessTimeout: If the condition did not hold before the deadline.
    """
    attempts = max_attempts(timeout, interval)
    log = logger.bind(waiting_for=description, timeout=timeout)
    log.info("Waiting for readiness")

    probes = 0

    def _probe() -> bool:
        nonlocal probes
        probes += 1
        return bool(check())

    def _log_not_ready(retry_state: RetryCallState) -> None:
        log.debug("Not ready yet", attempt=retry_state.attempt_number)

    retrying = Retrying(
        retry=retry_if_result(lambda ready: not ready),
        stop=stop_after_delay(timeout) | stop_after_attempt(attempts),
        wait=wait_fixed(interval),
        sleep=sleep,
        before_sleep=_log_not_ready,
    )

    try:
        retrying(_probe)
    except RetryError:
        log.warning("Readiness timeout", attempts=probes)
        raise ReadinessTimeout(description, timeout, probes) from None

    log.info("Ready", attempts=probes)
    return probes
