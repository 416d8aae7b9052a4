"""
Periodic driver for pod cleanup runs
"""

import time
from threading import Event

from kubeclean import metrics
from kubeclean.logger import get_logger

logger = get_logger(__name__)

# Hard ceiling for a single cleanup run
DEFAULT_RUN_TIMEOUT = 10 * 60


class RunContext:
    """Cancellation scope of one cleanup run.

    A run is done once the process stop event fires or its deadline passes.
    Calls already in flight are not interrupted; the run checks done()
    between rules, namespaces and batches.
    """

    def __init__(self, stop_event=None, timeout=DEFAULT_RUN_TIMEOUT):
        self.stop_event = stop_event or Event()
        self.deadline = time.monotonic() + timeout

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.cancelled() or self.expired()

    def wait(self, seconds: float) -> bool:
        """Sleep up to seconds; returns True if the run became done meanwhile"""
        self.stop_event.wait(min(seconds, self.remaining()))
        return self.done()


def run_pod_clean_job(cleaner, interval, stop_event, run_timeout=DEFAULT_RUN_TIMEOUT):
    """Run cleaner.run_cleanup every interval seconds until stop_event is set"""
    logger.info("Starting cleanup loop", interval_seconds=interval, run_timeout_seconds=run_timeout)

    cycle_count = 0
    # Ticks are anchored to the start time so run duration does not shift them
    next_run = time.monotonic() + interval
    while not stop_event.wait(max(0.0, next_run - time.monotonic())):
        next_run += interval
        cycle_count += 1
        metrics.CLEANUP_RUNS.inc()
        ctx = RunContext(stop_event, run_timeout)
        try:
            cleaner.run_cleanup(ctx)
        except Exception as e:
            logger.error("Cleanup cycle failed", cycle=cycle_count, error=str(e), exc_info=True)

        if ctx.expired() and not ctx.cancelled():
            logger.warning("Cleanup cycle hit its timeout", cycle=cycle_count)

        # Ticks missed by an overrunning cycle are dropped
        now = time.monotonic()
        while interval > 0 and next_run <= now:
            next_run += interval

    logger.info("Cleanup loop stopped", cycles=cycle_count)
