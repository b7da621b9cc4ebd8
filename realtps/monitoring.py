"""
monitoring.py - Per-chain sync and TPS status, read from the store.
"""

import logging
import time
from typing import TYPE_CHECKING, List, Optional

from realtps.chains import Chain, all_chains

if TYPE_CHECKING:
    from realtps.storage import StorageManager

logger = logging.getLogger("monitoring")

STALE_TPS_THRESHOLD = 15 * 60  # seconds since the last TPS write


class StatusService:
    def __init__(self, store: "StorageManager"):
        self._store = store

    async def get_chain_status(self, chain: Chain) -> dict:
        now = time.time()
        state = await self._store.chain_state.get(chain) or {}
        highest = state.get("highest_block_number")
        head_timestamp: Optional[int] = None
        if highest is not None:
            block = await self._store.get_block(chain, highest)
            if block is not None:
                head_timestamp = block.timestamp
        tps_updated_at = state.get("tps_updated_at")
        return {
            "chain": chain.value,
            "highest_block_number": highest,
            "head_timestamp": head_timestamp,
            "synced_at": state.get("synced_at"),
            "tps": state.get("tps"),
            "tps_updated_at": tps_updated_at,
            "stale": tps_updated_at is None or (now - tps_updated_at) >= STALE_TPS_THRESHOLD,
        }

    async def list_chain_status(self) -> List[dict]:
        return [await self.get_chain_status(chain) for chain in all_chains()]

    async def list_tps(self) -> List[dict]:
        return await self._store.list_tps()
