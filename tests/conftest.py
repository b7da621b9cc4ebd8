"""Shared fixtures for the realtps test suite."""

import pytest
import pytest_asyncio

from realtps.chains import Block, Chain
from realtps.delay import Delays
from realtps.storage import StorageManager


# ── Constants ───────────────────────────────────────────────────────────────

BASE_TIMESTAMP = 1_700_000_000


# ── Helpers ─────────────────────────────────────────────────────────────────

def block_hash(height: int, fork: int = 0) -> str:
    return f"0x{fork:02x}{height:062x}"


def make_block(height: int,
               chain: Chain = Chain.ETHEREUM,
               timestamp: int = None,
               num_txs: int = 5,
               fork: int = 0,
               parent_fork: int = None) -> Block:
    """Build a block hash-linked to the same fork at height - 1."""
    if timestamp is None:
        timestamp = BASE_TIMESTAMP + height * 60
    if parent_fork is None:
        parent_fork = fork
    parent = block_hash(height - 1, parent_fork) if height > 0 else "0x" + "00" * 32
    return Block(
        chain=chain,
        block_number=height,
        timestamp=timestamp,
        num_txs=num_txs,
        hash=block_hash(height, fork),
        parent_hash=parent,
    )


async def store_blocks(storage, blocks):
    for block in blocks:
        await storage.put_block(block)


async def assert_continuity(storage, chain: Chain, low: int, high: int):
    """Every stored pair (h, h-1) in [low, high] must be hash-linked."""
    for height in range(low + 1, high + 1):
        block = await storage.get_block(chain, height)
        prev = await storage.get_block(chain, height - 1)
        assert block is not None, f"missing block {height}"
        assert prev is not None, f"missing block {height - 1}"
        assert block.parent_hash == prev.hash, f"broken link at {height}"


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(":memory:")
    await sm.initialize()
    yield sm
    await sm.close()


@pytest.fixture
def delays():
    return Delays.zero()
