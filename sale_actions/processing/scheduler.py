"""
Process-wide control loop.

Checks store connectivity once, then alternates between running every
pipeline's pass and sleeping for the configured delay. Passes never
overlap. ``stop()`` ends the loop after the pass in progress.
"""

import threading
from enum import Enum

from sale_actions.core.models import PassReport
from sale_actions.observability.logger import get_logger
from sale_actions.store.gateway import StoreGateway

from .pipeline import Pipeline

logger = get_logger(__name__)


class StoreUnavailableError(Exception):
    """Raised when the store does not answer the startup connectivity check."""


class SchedulerState(str, Enum):
    STARTING = "starting"
    RUNNING_PASS = "running_pass"
    SLEEPING = "sleeping"
    STOPPED = "stopped"
    FAILED = "failed"


class Scheduler:
    """
    Runs pipeline passes on a fixed interval.

    Args:
        store: Store gateway, pinged once before the first pass
        pipelines: Pipelines run in order during each pass
        interval_seconds: Sleep between the end of one pass and the next
    """

    def __init__(self, store: StoreGateway, pipelines: list[Pipeline], interval_seconds: float):
        if interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {interval_seconds}")
        self.store = store
        self.pipelines = pipelines
        self.interval_seconds = interval_seconds
        self.state = SchedulerState.STARTING
        self.passes = 0
        self._stop_event = threading.Event()

    def check_connectivity(self) -> None:
        """
        Raises:
            StoreUnavailableError: If the store does not answer
        """
        if not self.store.ping():
            self.state = SchedulerState.FAILED
            logger.critical("Could not connect to the store, giving up")
            raise StoreUnavailableError("Store did not answer the connectivity check")
        logger.info("Store connectivity check passed")

    def run_once(self) -> list[PassReport]:
        """
        Run one pass of every pipeline.

        A pipeline raising does not prevent the others from running.
        """
        self.state = SchedulerState.RUNNING_PASS
        reports = []
        for pipeline in self.pipelines:
            try:
                reports.append(pipeline.run_pass())
            except Exception as e:
                logger.error(f"{pipeline.name} pass failed: {e}", exc_info=True)
        self.passes += 1
        return reports

    def run_forever(self, max_passes: int | None = None) -> None:
        """
        Check connectivity, then run passes until stopped.

        Args:
            max_passes: Stop after this many passes (unbounded when None)

        Raises:
            StoreUnavailableError: If the startup connectivity check fails
        """
        self.check_connectivity()
        names = ", ".join(pipeline.name for pipeline in self.pipelines)
        logger.info(f"Scheduler started for {names}, check delay {self.interval_seconds}s")

        while not self._stop_event.is_set():
            self.run_once()
            if max_passes is not None and self.passes >= max_passes:
                break
            self.state = SchedulerState.SLEEPING
            self._stop_event.wait(self.interval_seconds)

        self.state = SchedulerState.STOPPED
        logger.info(f"Scheduler stopped after {self.passes} pass(es)")

    def stop(self) -> None:
        """Request the loop to end once the current pass completes."""
        self._stop_event.set()
