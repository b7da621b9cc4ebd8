"""
jobs.py - Self-replenishing job loop.

Jobs are run from a work queue by a pool of worker tasks. Every job returns
its follow-up jobs, which go straight back on the queue; import and
calculate jobs always return a fresh copy of themselves, so the loop runs
forever. The queue draining with nothing in flight is an anomaly: run()
logs it and returns.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Union

from realtps.chains import Chain

logger = logging.getLogger("jobs")


@dataclass(frozen=True)
class ImportJob:
    chain: Chain

    def __str__(self) -> str:
        return f"import({self.chain})"


@dataclass(frozen=True)
class CalculateJob:

    def __str__(self) -> str:
        return "calculate"


Job = Union[ImportJob, CalculateJob]
JobRunner = Callable[[Job], Awaitable[List[Job]]]


class Command(enum.Enum):
    RUN = "run"
    IMPORT = "import"
    CALCULATE = "calculate"


def init_jobs(command: Command, chains: Iterable[Chain]) -> List[Job]:
    if command is Command.RUN:
        chains = list(chains)
        return init_jobs(Command.IMPORT, chains) + init_jobs(Command.CALCULATE, chains)
    if command is Command.IMPORT:
        return [ImportJob(chain) for chain in chains]
    return [CalculateJob()]


class JobScheduler:
    """Work queue plus a pool of workers pulling from it."""

    def __init__(self, runner: JobRunner, max_workers: Optional[int] = None):
        self._runner = runner
        self._max_workers = max_workers
        self._queue: "asyncio.Queue[Job]" = asyncio.Queue()
        self._in_flight = 0
        self._completed = 0
        self._drained: Optional[asyncio.Event] = None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, job: Job):
        self._queue.put_nowait(job)

    async def _worker(self, worker_id: int):
        while True:
            job = await self._queue.get()
            self._in_flight += 1
            try:
                new_jobs = await self._runner(job)
            finally:
                self._in_flight -= 1
                self._queue.task_done()
            self._completed += 1
            for new_job in new_jobs:
                logger.debug("worker %d queued %s", worker_id, new_job)
                self.submit(new_job)
            if self._queue.empty() and self._in_flight == 0:
                self._drained.set()

    async def run(self, jobs: Iterable[Job]):
        """Run until no job is queued or running."""
        jobs = list(jobs)
        self._drained = asyncio.Event()
        for job in jobs:
            self.submit(job)

        if not jobs:
            logger.error("no more jobs?!")
            return

        num_workers = self._max_workers or len(jobs)
        logger.info("starting %d workers for %d jobs", num_workers, len(jobs))
        workers = [asyncio.create_task(self._worker(i)) for i in range(num_workers)]
        drained = asyncio.create_task(self._drained.wait())
        try:
            done, _ = await asyncio.wait(
                [drained, *workers], return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                if task is not drained:
                    # A worker died; surface its exception
                    task.result()
            logger.error("no more jobs?!")
        finally:
            drained.cancel()
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, drained, return_exceptions=True)
