"""
chain_simulator.py - In-process blockchain simulator.

Implements the Client interface over an in-memory chain for fully offline
runs and tests:
 - advance(n)        -> mint n new blocks on top of the head
 - reorg(depth)      -> replace the top `depth` blocks with a new fork
 - lag_heights       -> heights that report "not available" a number of times
 - fail_next(n)      -> make the next n calls raise ClientError

In live mode (block_interval > 0) the head advances with wall-clock time and
an occasional reorg is injected.

Usage (standalone, through the entry point):
    python -m realtps run --simulate
"""

import hashlib
import logging
import random
import time
from typing import Callable, Dict, List, Optional

from realtps.chains import Block, Chain
from realtps.clients import Client
from realtps.errors import ClientError

logger = logging.getLogger("chain")

DEFAULT_GENESIS_TIMESTAMP = 1_600_000_000
DEFAULT_BLOCK_TIME = 12
DEFAULT_TXS_PER_BLOCK = 150
SIMULATOR_VERSION = "realtps-simulator/1.0"


def _block_hash(chain: Chain, height: int, fork: int) -> str:
    digest = hashlib.sha256(f"{chain.value}:{height}:{fork}".encode()).hexdigest()
    return "0x" + digest


class ChainSimulator(Client):
    """Mock blockchain node for one chain."""

    def __init__(
        self,
        chain: Chain,
        initial_height: int = 0,
        block_time: int = DEFAULT_BLOCK_TIME,
        genesis_timestamp: int = DEFAULT_GENESIS_TIMESTAMP,
        txs_per_block: Callable[[int], int] = lambda height: DEFAULT_TXS_PER_BLOCK,
        block_interval: float = 0.0,
        reorg_probability: float = 0.0,
        max_reorg_depth: int = 3,
    ):
        self.chain = chain
        self._block_time = block_time
        self._genesis_timestamp = genesis_timestamp
        self._txs_per_block = txs_per_block
        self._block_interval = block_interval
        self._reorg_probability = reorg_probability
        self._max_reorg_depth = max_reorg_depth

        self._blocks: List[Block] = []
        self._next_fork = 0
        self._last_mint = time.monotonic()
        self._failures_pending = 0

        # height -> remaining polls that report "not available"
        self.lag_heights: Dict[int, int] = {}
        self.calls: Dict[str, int] = {"version": 0, "head_height": 0, "fetch_block": 0}

        self._mint(initial_height + 1)
        logger.info("Chain simulator for %s initialized at height %d", chain, self.head)

    # -------------------------------------------------------------------
    # Core chain operations
    # -------------------------------------------------------------------

    @property
    def head(self) -> int:
        return len(self._blocks) - 1

    def block_at(self, height: int) -> Block:
        return self._blocks[height]

    def _make_block(self, height: int, fork: int, parent_hash: str) -> Block:
        return Block(
            chain=self.chain,
            block_number=height,
            timestamp=self._genesis_timestamp + height * self._block_time,
            num_txs=self._txs_per_block(height),
            hash=_block_hash(self.chain, height, fork),
            parent_hash=parent_hash,
        )

    def _mint(self, count: int, fork: int = 0):
        for _ in range(count):
            height = len(self._blocks)
            parent_hash = self._blocks[-1].hash if self._blocks else "0x" + "00" * 32
            self._blocks.append(self._make_block(height, fork, parent_hash))

    def advance(self, count: int = 1):
        self._mint(count)

    def reorg(self, depth: int):
        """Replace the top ``depth`` blocks with a fresh fork of equal length."""
        depth = min(depth, len(self._blocks) - 1)
        if depth <= 0:
            return
        self._next_fork += 1
        del self._blocks[-depth:]
        self._mint(depth, fork=self._next_fork)
        logger.info("Simulated reorg of %s: depth=%d fork=%d", self.chain, depth, self._next_fork)

    def fail_next(self, count: int = 1):
        self._failures_pending += count

    def _maybe_fail(self, call: str):
        self.calls[call] += 1
        if self._failures_pending > 0:
            self._failures_pending -= 1
            raise ClientError(f"simulated {call} failure on {self.chain}")

    def _tick(self):
        if self._block_interval <= 0:
            return
        now = time.monotonic()
        due = int((now - self._last_mint) / self._block_interval)
        if due <= 0:
            return
        self._last_mint += due * self._block_interval
        if self._reorg_probability and random.random() < self._reorg_probability:
            self.reorg(random.randint(1, self._max_reorg_depth))
        self.advance(due)

    # -------------------------------------------------------------------
    # Client interface
    # -------------------------------------------------------------------

    async def version(self) -> str:
        self._maybe_fail("version")
        return SIMULATOR_VERSION

    async def head_height(self) -> int:
        self._maybe_fail("head_height")
        self._tick()
        return self.head

    async def fetch_block(self, height: int) -> Optional[Block]:
        self._maybe_fail("fetch_block")
        remaining = self.lag_heights.get(height, 0)
        if remaining > 0:
            self.lag_heights[height] = remaining - 1
            return None
        if height > self.head:
            return None
        return self._blocks[height]

    def get_stats(self) -> dict:
        return {
            "chain": self.chain.value,
            "head": self.head,
            "forks": self._next_fork,
            "calls": dict(self.calls),
        }


def make_simulated_clients(chains: List[Chain], block_interval: float = 2.0) -> Dict[Chain, Client]:
    """One live-mode simulator per chain, started well past the 7-day TPS window."""
    week_of_blocks = 7 * 24 * 3600 // DEFAULT_BLOCK_TIME
    return {
        chain: ChainSimulator(
            chain,
            initial_height=week_of_blocks + 1000,
            block_interval=block_interval,
            reorg_probability=0.05,
        )
        for chain in chains
    }
