from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    name: str
    interval_seconds: float
    run: Callable[[], object]
    next_run_at: float = 0.0


class SyncScheduler:
    """
    Runs sync jobs at fixed intervals from a single thread.

    A job's next run is scheduled from the time it finished, so two passes
    never overlap. A failing job is logged and retried at its next slot.
    """

    def __init__(
        self,
        jobs: list[ScheduledJob],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not jobs:
            raise ValueError('At least one job is required')
        self.jobs = jobs
        self.clock = clock
        self.sleep = sleep
        start = clock()
        for job in jobs:
            job.next_run_at = start

    def run_pending(self) -> list[str]:
        ran: list[str] = []
        for job in self.jobs:
            if self.clock() < job.next_run_at:
                continue
            logger.info('Running scheduled %s', job.name)
            try:
                result = job.run()
                logger.info('Scheduled %s complete: %s', job.name, result)
            except Exception:
                logger.exception('Scheduled %s failed', job.name)
            job.next_run_at = self.clock() + job.interval_seconds
            ran.append(job.name)
        return ran

    def seconds_until_next(self) -> float:
        return max(0.0, min(job.next_run_at for job in self.jobs) - self.clock())

    def run_forever(self, *, max_cycles: int | None = None) -> None:
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_pending()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self.sleep(self.seconds_until_next())
