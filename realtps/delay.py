"""
delay.py - Fixed pauses used by the importer and the job loop.

Five independent delays, each with its own purpose:
 - job_error:   before re-running a job that raised
 - retry:       between refetches of a block the node does not have yet
 - courtesy:    between consecutive block fetches during a walk
 - rescan:      after a successful import pass, before the next one
 - recalculate: after a TPS pass, before the next one
"""

import asyncio
from dataclasses import dataclass, fields

JOB_ERROR_DELAY = 10.0
RETRY_DELAY = 1.0
COURTESY_DELAY = 0.1
RESCAN_DELAY = 30.0
RECALCULATE_DELAY = 60.0


@dataclass(frozen=True)
class Delays:
    job_error: float = JOB_ERROR_DELAY
    retry: float = RETRY_DELAY
    courtesy: float = COURTESY_DELAY
    rescan: float = RESCAN_DELAY
    recalculate: float = RECALCULATE_DELAY

    @classmethod
    def zero(cls) -> "Delays":
        return cls(**{f.name: 0.0 for f in fields(cls)})

    async def job_error_delay(self):
        await asyncio.sleep(self.job_error)

    async def retry_delay(self):
        await asyncio.sleep(self.retry)

    async def courtesy_delay(self):
        await asyncio.sleep(self.courtesy)

    async def rescan_delay(self):
        await asyncio.sleep(self.rescan)

    async def recalculate_delay(self):
        await asyncio.sleep(self.recalculate)
