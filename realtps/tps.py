"""
tps.py - Trailing-window transactions-per-second for one chain.

Works only from locally imported blocks. Starting at the chain's high-water
mark it walks backward, summing each block's transaction count, until it
crosses the start of the 7-day window, reaches genesis, or runs out of local
blocks. The rate is the summed count over the seconds spanned.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from realtps.chains import Chain
from realtps.errors import InvariantError, TpsOverflowError

if TYPE_CHECKING:
    from realtps.storage import StorageManager

logger = logging.getLogger("tps")

SECONDS_PER_WEEK = 60 * 60 * 24 * 7
U32_MAX = 2**32 - 1


@dataclass(frozen=True)
class ChainCalcs:
    chain: Chain
    tps: float
    num_txs: int
    total_seconds: int
    blocks: int


async def calculate_for_chain(store: "StorageManager", chain: Chain) -> ChainCalcs:
    highest_block_number = await store.get_high_water_mark(chain)
    if highest_block_number is None:
        raise InvariantError(f"no data for chain {chain}")

    current_block = await store.get_block(chain, highest_block_number)
    if current_block is None:
        raise InvariantError(
            f"highest block {highest_block_number} for {chain} is not stored"
        )
    latest_timestamp = current_block.timestamp

    if latest_timestamp < SECONDS_PER_WEEK:
        raise InvariantError(
            f"latest timestamp {latest_timestamp} for {chain} is inside the first week of the epoch"
        )
    min_timestamp = latest_timestamp - SECONDS_PER_WEEK

    num_txs = 0
    blocks = 0
    current_block_number = highest_block_number

    while True:
        if current_block_number == 0:
            raise InvariantError(f"no window below genesis for {chain}")

        prev_block_number = current_block_number - 1
        prev_block = await store.get_block(chain, prev_block_number)

        if prev_block is None:
            # Early stop with whatever window is locally available
            init_timestamp = current_block.timestamp
            break

        num_txs += current_block.num_txs
        blocks += 1

        if prev_block.timestamp > current_block.timestamp:
            logger.warning(
                "non-monotonic timestamp in block %d for chain %s. prev: %d; current: %d",
                current_block_number, chain, prev_block.timestamp, current_block.timestamp,
            )

        if prev_block.timestamp <= min_timestamp:
            init_timestamp = prev_block.timestamp
            break
        if prev_block.block_number == 0:
            init_timestamp = prev_block.timestamp
            break

        current_block_number = prev_block_number
        current_block = prev_block

    if init_timestamp > latest_timestamp:
        raise InvariantError(
            f"window start {init_timestamp} is after latest block {latest_timestamp} for {chain}"
        )
    total_seconds = latest_timestamp - init_timestamp

    if total_seconds > U32_MAX:
        raise TpsOverflowError(f"seconds overflows u32 for {chain}: {total_seconds}")
    if num_txs > U32_MAX:
        raise TpsOverflowError(f"num txs overflows u32 for {chain}: {num_txs}")
    if total_seconds == 0:
        raise InvariantError(f"empty time window for {chain}")

    tps = num_txs / total_seconds
    logger.debug(
        "%s: %d txs over %d s in %d blocks", chain, num_txs, total_seconds, blocks,
    )
    return ChainCalcs(
        chain=chain, tps=tps, num_txs=num_txs, total_seconds=total_seconds, blocks=blocks,
    )
