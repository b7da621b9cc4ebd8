"""
importer.py - Block import and reorg reconciliation.

One import pass per chain walks backward from the remote head, storing every
block, until the freshly stored blocks link up (by hash) with the prefix that
was already synced. A hash mismatch against a stored block means the remote
reorganized: the walk keeps going and overwrites the stale block. The pass
then records the head as the chain's new high-water mark.

The same Importer also runs the periodic TPS calculation across all chains.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from realtps.chains import Block, Chain
from realtps.delay import Delays
from realtps.errors import InvariantError, log_error_chain
from realtps.jobs import CalculateJob, ImportJob, Job
from realtps.tps import calculate_for_chain

if TYPE_CHECKING:
    from realtps.clients import Client
    from realtps.storage import StorageManager

logger = logging.getLogger("importer")

INITIAL_SYNC_BLOCKS = 100


class StopReason(enum.Enum):
    INITIAL_SYNC_CAP = "initial_sync_cap"
    GENESIS = "genesis"
    RECONNECTED = "reconnected"


@dataclass(frozen=True)
class WalkResult:
    reason: StopReason
    blocks_stored: int
    reorgs: int
    lowest_block_number: int


class Importer:

    def __init__(
        self,
        store: "StorageManager",
        clients: Dict[Chain, "Client"],
        delays: Optional[Delays] = None,
    ):
        self.store = store
        self.clients = clients
        self.delays = delays or Delays()

    @property
    def chains(self) -> List[Chain]:
        return list(self.clients)

    async def do_job(self, job: Job) -> List[Job]:
        """Run one job; on failure log it and hand back the same job."""
        try:
            if isinstance(job, ImportJob):
                return await self.import_chain(job.chain)
            return await self.calculate()
        except Exception as e:
            log_error_chain(logger, e)
            logger.error("error running job %s. repeating", job)
            await self.delays.job_error_delay()
            return [job]

    # -------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------

    async def import_chain(self, chain: Chain) -> List[Job]:
        logger.info("beginning import for %s", chain)
        client = self.clients[chain]

        head_block_number = await client.head_height()
        logger.debug("head block number for %s: %d", chain, head_block_number)

        highest_block_number = await self.store.get_high_water_mark(chain)

        if highest_block_number is not None:
            logger.debug("highest block number for %s: %d", chain, highest_block_number)
            if head_block_number < highest_block_number:
                raise InvariantError(
                    f"head block number behind highest block number for chain {chain}. "
                    f"head: {head_block_number}; highest: {highest_block_number}"
                )
            logger.info(
                "importing %d blocks for %s", head_block_number - highest_block_number, chain,
            )
        else:
            logger.info("no highest block number for %s", chain)

        if head_block_number != highest_block_number:
            result = await self.walk_back(chain, head_block_number, highest_block_number)
            logger.info(
                "walk for %s stopped (%s) at block %d after %d blocks, %d reorgs",
                chain, result.reason.value, result.lowest_block_number,
                result.blocks_stored, result.reorgs,
            )
            await self.store.set_high_water_mark(chain, head_block_number)
        else:
            logger.info("no new blocks for %s", chain)

        await self.delays.rescan_delay()
        return [ImportJob(chain)]

    async def fetch_block(self, chain: Chain, block_number: int) -> Block:
        """Fetch a block, waiting out node lag until it is available."""
        client = self.clients[chain]
        while True:
            block = await client.fetch_block(block_number)
            if block is not None:
                return block
            logger.debug("received no block for number %d on chain %s", block_number, chain)
            await self.delays.retry_delay()

    async def walk_back(
        self,
        chain: Chain,
        head_block_number: int,
        highest_block_number: Optional[int],
    ) -> WalkResult:
        initial_sync = highest_block_number is None
        synced = 0
        reorgs = 0
        block_number = head_block_number

        while True:
            logger.debug("fetching block %d for %s", block_number, chain)
            block = await self.fetch_block(chain, block_number)
            await self.store.put_block(block)
            synced += 1

            if initial_sync and synced == INITIAL_SYNC_BLOCKS:
                logger.info("finished initial sync for %s", chain)
                return WalkResult(StopReason.INITIAL_SYNC_CAP, synced, reorgs, block_number)

            if block_number == 0:
                logger.info("completed import of chain %s to genesis", chain)
                return WalkResult(StopReason.GENESIS, synced, reorgs, block_number)

            prev_block_number = block_number - 1
            prev_block = await self.store.get_block(chain, prev_block_number)

            if prev_block is None:
                pass
            elif prev_block.hash != block.parent_hash:
                reorgs += 1
                logger.warning(
                    "reorg of chain %s at block %d; old hash: %s; new hash: %s",
                    chain, prev_block_number, prev_block.hash, block.parent_hash,
                )
            elif highest_block_number is not None and prev_block_number <= highest_block_number:
                logger.info(
                    "completed import of chain %s to block %d / %s",
                    chain, prev_block_number, block.parent_hash,
                )
                return WalkResult(StopReason.RECONNECTED, synced, reorgs, block_number)
            else:
                # Leftover run from an incomplete earlier import; overwrite it
                logger.warning(
                    "found incomplete previous import for %s at block %d",
                    chain, prev_block_number,
                )

            logger.debug("still need block %d for %s", prev_block_number, chain)
            block_number = prev_block_number
            await self.delays.courtesy_delay()

    # -------------------------------------------------------------------
    # TPS
    # -------------------------------------------------------------------

    async def calculate(self) -> List[Job]:
        logger.info("beginning tps calculation")
        tasks = [
            (chain, asyncio.create_task(calculate_for_chain(self.store, chain)))
            for chain in self.chains
        ]

        try:
            for chain, task in tasks:
                try:
                    calcs = await task
                except Exception as e:
                    log_error_chain(logger, e)
                    logger.error("error calculating for %s", chain)
                    continue
                logger.info("calculated %.4f tps for chain %s", calcs.tps, calcs.chain)
                await self.store.set_tps(calcs.chain, calcs.tps)
        finally:
            # Only reached with unfinished tasks if storing a result failed
            for _, task in tasks:
                task.cancel()
            await asyncio.gather(*(task for _, task in tasks), return_exceptions=True)

        await self.delays.recalculate_delay()
        return [CalculateJob()]
