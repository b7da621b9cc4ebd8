"""
test_import.py - Backward-walking import and reorg reconciliation.

Validates:
 - First pass on a fresh chain stores exactly 100 blocks, high-water mark = head
 - Short chains are imported down to genesis
 - Incremental passes stop once they reconnect to the synced prefix
 - Reorgs overwrite stale blocks and the walk continues past them
 - Leftover runs from an interrupted pass are overwritten
 - Node lag is waited out; RPC failures fail the job and it is retried
 - Head behind the high-water mark is rejected
"""

import pytest

from realtps.chain_simulator import ChainSimulator
from realtps.chains import Chain
from realtps.errors import InvariantError
from realtps.importer import INITIAL_SYNC_BLOCKS, Importer, StopReason
from realtps.jobs import ImportJob

from ..conftest import assert_continuity, make_block, store_blocks

pytestmark = pytest.mark.asyncio

ETH = Chain.ETHEREUM


def make_importer(storage, delays, sim):
    return Importer(storage, {sim.chain: sim}, delays)


# ── Initial sync ──────────────────────────────────────────────────────────

class TestInitialSync:

    async def test_caps_first_pass_at_100_blocks(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)

        jobs = await importer.import_chain(ETH)

        assert jobs == [ImportJob(ETH)]
        assert await storage.blocks.count(ETH) == INITIAL_SYNC_BLOCKS
        assert await storage.get_high_water_mark(ETH) == 250
        assert await storage.get_block(ETH, 151) is not None
        assert await storage.get_block(ETH, 150) is None

    async def test_walk_reports_cap(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)

        result = await importer.walk_back(ETH, 250, None)

        assert result.reason is StopReason.INITIAL_SYNC_CAP
        assert result.blocks_stored == 100
        assert result.lowest_block_number == 151

    async def test_exactly_100_blocks_stops_at_cap_before_genesis(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=99)
        importer = make_importer(storage, delays, sim)

        result = await importer.walk_back(ETH, 99, None)

        assert result.reason is StopReason.INITIAL_SYNC_CAP
        assert result.lowest_block_number == 0

    async def test_short_chain_reaches_genesis(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=9)
        importer = make_importer(storage, delays, sim)

        result = await importer.walk_back(ETH, 9, None)

        assert result.reason is StopReason.GENESIS
        assert result.blocks_stored == 10
        await assert_continuity(storage, ETH, 0, 9)

    async def test_initial_sync_prefix_is_linked(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)

        await importer.import_chain(ETH)

        await assert_continuity(storage, ETH, 151, 250)


# ── Incremental passes ────────────────────────────────────────────────────

class TestIncrementalImport:

    async def test_reconnects_to_synced_prefix(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)

        sim.advance(5)
        result = await importer.walk_back(ETH, 255, 250)

        assert result.reason is StopReason.RECONNECTED
        assert result.blocks_stored == 5
        assert result.reorgs == 0

    async def test_pass_updates_high_water_mark(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)

        sim.advance(7)
        await importer.import_chain(ETH)

        assert await storage.get_high_water_mark(ETH) == 257
        await assert_continuity(storage, ETH, 151, 257)

    async def test_no_new_blocks_is_a_noop(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)
        fetches = sim.calls["fetch_block"]

        jobs = await importer.import_chain(ETH)

        assert jobs == [ImportJob(ETH)]
        assert sim.calls["fetch_block"] == fetches
        assert await storage.get_high_water_mark(ETH) == 250

    async def test_restore_same_block_is_idempotent(self, storage):
        block = make_block(42)
        await storage.put_block(block)
        await storage.put_block(block)

        assert await storage.get_block(ETH, 42) == block
        assert await storage.blocks.count(ETH) == 1


# ── Reorgs ────────────────────────────────────────────────────────────────

class TestReorgRepair:

    async def test_reorg_overwrites_stale_blocks(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)
        stale = await storage.get_block(ETH, 249)

        sim.reorg(3)
        sim.advance(2)
        result = await importer.walk_back(ETH, 252, 250)

        assert result.reason is StopReason.RECONNECTED
        assert result.reorgs == 3
        assert result.blocks_stored == 5
        assert result.lowest_block_number == 248
        repaired = await storage.get_block(ETH, 249)
        assert repaired != stale
        assert repaired == sim.block_at(249)
        await assert_continuity(storage, ETH, 151, 252)

    async def test_mismatched_parent_does_not_stop_walk(self, storage, delays):
        # Stored h=10 has hash "A"; fetched h=11 points at "B"
        sim = ChainSimulator(ETH, initial_height=11)
        await store_blocks(storage, [make_block(h, fork=9) for h in range(0, 11)])
        await storage.set_high_water_mark(ETH, 10)
        importer = make_importer(storage, delays, sim)

        result = await importer.walk_back(ETH, 11, 10)

        assert result.reason is StopReason.GENESIS
        assert result.reorgs == 11
        for height in range(0, 12):
            assert await storage.get_block(ETH, height) == sim.block_at(height)

    async def test_reorg_below_high_water_mark_is_repaired(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)

        sim.reorg(10)
        sim.advance(1)
        await importer.import_chain(ETH)

        assert await storage.get_high_water_mark(ETH) == 251
        for height in range(240, 252):
            assert await storage.get_block(ETH, height) == sim.block_at(height)
        await assert_continuity(storage, ETH, 151, 251)

    async def test_reorg_at_unchanged_head_waits_for_next_block(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)
        stale = await storage.get_block(ETH, 250)

        sim.reorg(1)
        await importer.import_chain(ETH)

        assert await storage.get_block(ETH, 250) == stale


# ── Leftovers, lag and failures ───────────────────────────────────────────

class TestWalkEdgeCases:

    async def test_overwrites_leftover_partial_import(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=210)
        await store_blocks(storage, [sim.block_at(h) for h in range(0, 101)])
        await storage.set_high_water_mark(ETH, 100)
        # An interrupted pass left 200..210 behind without moving the mark
        await store_blocks(storage, [sim.block_at(h) for h in range(200, 211)])
        importer = make_importer(storage, delays, sim)

        result = await importer.walk_back(ETH, 210, 100)

        assert result.reason is StopReason.RECONNECTED
        assert result.blocks_stored == 110
        assert result.lowest_block_number == 101
        await assert_continuity(storage, ETH, 0, 210)

    async def test_waits_out_node_lag(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=20)
        sim.lag_heights[20] = 3
        sim.lag_heights[15] = 1
        importer = make_importer(storage, delays, sim)

        await importer.import_chain(ETH)

        assert sim.calls["fetch_block"] == 21 + 3 + 1
        await assert_continuity(storage, ETH, 0, 20)

    async def test_rpc_failure_retries_same_job(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=20)
        sim.fail_next(1)
        importer = make_importer(storage, delays, sim)

        jobs = await importer.do_job(ImportJob(ETH))

        assert jobs == [ImportJob(ETH)]
        assert await storage.get_high_water_mark(ETH) is None

    async def test_failure_mid_walk_keeps_old_high_water_mark(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=250)
        importer = make_importer(storage, delays, sim)
        await importer.import_chain(ETH)

        sim.advance(10)

        async def flaky_fetch(height, _orig=sim.fetch_block):
            if height == 255:
                sim.fail_next(1)
            return await _orig(height)

        sim.fetch_block = flaky_fetch
        jobs = await importer.do_job(ImportJob(ETH))

        assert jobs == [ImportJob(ETH)]
        assert await storage.get_high_water_mark(ETH) == 250

    async def test_head_behind_high_water_mark_is_rejected(self, storage, delays):
        sim = ChainSimulator(ETH, initial_height=50)
        await storage.set_high_water_mark(ETH, 60)
        importer = make_importer(storage, delays, sim)

        with pytest.raises(InvariantError):
            await importer.import_chain(ETH)

        assert await importer.do_job(ImportJob(ETH)) == [ImportJob(ETH)]
        assert await storage.get_high_water_mark(ETH) == 60
