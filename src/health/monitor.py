# src/health/monitor.py — v1
"""Application health monitoring with bounded polling and degraded fail-fast.

With retries disabled the monitor checks exactly once and never sleeps.
With retries enabled it polls at a fixed interval until the wall-clock budget,
measured from the start of the loop, runs out:

    Healthy                         -> stop, healthy
    Degraded / Missing              -> stop, degraded (no waiting for the timeout)
    Progressing / Suspended / Unknown -> keep polling, else timed_out
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.models import FAST_FAIL_STATUSES, HealthCheckResult, HealthStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 30
DEFAULT_TIMEOUT_S = 300
INTERVAL_BOUNDS = (10, 300)
TIMEOUT_BOUNDS = (60, 1800)


def clamp_interval(interval: int) -> int:
    """Return interval, or the default with a warning when out of [10, 300]."""
    low, high = INTERVAL_BOUNDS
    if not low <= interval <= high:
        logger.warning(
            "Invalid health_check_interval: %s. Using default: %d", interval, DEFAULT_INTERVAL_S
        )
        return DEFAULT_INTERVAL_S
    return interval


def clamp_timeout(timeout: int) -> int:
    """Return timeout, or the default with a warning when out of [60, 1800]."""
    low, high = TIMEOUT_BOUNDS
    if not low <= timeout <= high:
        logger.warning(
            "Invalid health_check_timeout: %s. Using default: %d", timeout, DEFAULT_TIMEOUT_S
        )
        return DEFAULT_TIMEOUT_S
    return timeout


class HealthMonitor:
    """Poll controller-reported health and classify the outcome.

    Args:
        controller: Source of the health signal.
        clock: Monotonic seconds source (injectable for tests).
        sleep: Blocking sleep used between polls (injectable for tests).
    """

    def __init__(
        self,
        controller: BaseController,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._controller = controller
        self._clock = clock
        self._sleep = sleep

    def check(self, app: str) -> HealthStatus:
        """Read the current health status once."""
        status = self._controller.health_status(app)
        if status == "Healthy":
            logger.debug("Application is healthy")
        elif status == "Degraded":
            logger.error("Application is degraded")
        elif status == "Missing":
            logger.error("Application resources are missing")
        elif status == "Suspended":
            logger.warning("Application is suspended")
        elif status == "Unknown":
            logger.warning("Unknown application status")
        else:
            logger.debug("Application is progressing...")
        return status

    def monitor(
        self,
        app: str,
        retry_enabled: bool = True,
        interval: int = DEFAULT_INTERVAL_S,
        timeout: int = DEFAULT_TIMEOUT_S,
    ) -> HealthCheckResult:
        """Run one monitoring session.

        Args:
            app: Application name.
            retry_enabled: False for a single strict check.
            interval: Seconds between polls, clamped to [10, 300].
            timeout: Total polling budget in seconds, clamped to [60, 1800].
        """
        if not retry_enabled:
            return self._single_check(app)

        interval = clamp_interval(interval)
        timeout = clamp_timeout(timeout)
        logger.info(
            "Starting health monitoring for %s (interval %ds, timeout %ds)", app, interval, timeout
        )

        start = self._clock()
        end = start + timeout
        checks = 0
        status: HealthStatus = "Unknown"

        while self._clock() < end:
            checks += 1
            logger.debug("Health check attempt #%d", checks)
            status = self.check(app)

            if status == "Healthy":
                logger.info("Application health check passed after %d attempts", checks)
                return self._result("healthy", status, checks, start)
            if status in FAST_FAIL_STATUSES:
                logger.error(
                    "Application is %s - failing fast instead of waiting for timeout", status
                )
                return self._result("degraded", status, checks, start)

            remaining = end - self._clock()
            if remaining > 0:
                logger.info(
                    "Waiting %ds before next health check (%ds remaining)...",
                    interval, int(remaining),
                )
                self._sleep(interval)

        logger.error(
            "Health check timeout reached after %d attempts (application never became healthy)",
            checks,
        )
        return self._result("timed_out", status, checks, start)

    # --- Internal ---

    def _single_check(self, app: str) -> HealthCheckResult:
        logger.info("Manual rollback mode - checking health once without retry")
        start = self._clock()
        status = self.check(app)
        if status == "Healthy":
            logger.info("Application health check passed")
            return self._result("healthy", status, 1, start)
        logger.error("Application is unhealthy (%s) - manual intervention required", status)
        outcome = "degraded" if status in FAST_FAIL_STATUSES else "timed_out"
        return self._result(outcome, status, 1, start)

    def _result(self, outcome, status: HealthStatus, checks: int, start: float) -> HealthCheckResult:
        return HealthCheckResult(
            outcome=outcome,
            last_status=status,
            checks=checks,
            elapsed_s=max(0.0, self._clock() - start),
        )
