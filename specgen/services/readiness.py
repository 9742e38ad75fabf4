"""Readiness polling for the target application's description endpoint."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from specgen.core.exceptions import StartupTimeoutError
from specgen.services.http_probe import HttpProbe

logger = structlog.get_logger(__name__)

POLL_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of a successful wait."""

    url: str
    attempts: int
    elapsed_seconds: float


class ReadinessPoller:
    """
    Polls an endpoint until it answers HTTP 200 or a deadline passes.

    Polling confirms the HTTP layer itself is live, so it works regardless of
    how the target logs or how long it takes to start.
    """

    def __init__(
        self,
        probe: HttpProbe | None = None,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.probe = probe or HttpProbe()
        self.interval = interval
        self.clock = clock
        self.sleep = sleep

    def wait_until_ready(
        self,
        url: str,
        timeout_seconds: int,
        abort_check: Callable[[], None] | None = None,
    ) -> ReadinessResult:
        """
        Block until ``url`` answers HTTP 200.

        Args:
            url: Endpoint to probe
            timeout_seconds: Overall deadline, measured from the first attempt
            abort_check: Called before each attempt; raise from it to stop waiting early

        Returns:
            ReadinessResult describing how long readiness took

        Raises:
            StartupTimeoutError: If the endpoint is not ready before the deadline
        """
        logger.info("waiting_for_target", url=url, timeout_seconds=timeout_seconds)
        start = self.clock()
        attempts = 0

        while (remaining := timeout_seconds - (self.clock() - start)) > 0:
            if abort_check is not None:
                abort_check()

            attempts += 1
            # A hung request may not outlast the deadline
            if self.probe.probe(url, timeout=remaining):
                elapsed = self.clock() - start
                logger.info("target_ready", url=url, attempts=attempts, elapsed_seconds=round(elapsed, 2))
                return ReadinessResult(url=url, attempts=attempts, elapsed_seconds=elapsed)

            self.sleep(self.interval)

        logger.warning("target_not_ready", url=url, attempts=attempts, timeout_seconds=timeout_seconds)
        raise StartupTimeoutError(timeout_seconds)
