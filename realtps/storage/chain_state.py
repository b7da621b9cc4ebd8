import time
from typing import List, Optional

import aiosqlite

from realtps.chains import Chain


class ChainStateRepo:
    """Per-chain high-water mark and TPS record."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get_highest_block_number(self, chain: Chain) -> Optional[int]:
        async with self._db.execute(
            "SELECT highest_block_number FROM chain_state WHERE chain = ?",
            (chain.value,),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set_highest_block_number(self, chain: Chain, block_number: int):
        await self._db.execute(
            "INSERT INTO chain_state (chain, highest_block_number, synced_at) VALUES (?, ?, ?) "
            "ON CONFLICT(chain) DO UPDATE SET "
            "highest_block_number=excluded.highest_block_number, synced_at=excluded.synced_at",
            (chain.value, block_number, time.time()),
        )
        await self._db.commit()

    async def set_tps(self, chain: Chain, tps: float):
        await self._db.execute(
            "INSERT INTO chain_state (chain, tps, tps_updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(chain) DO UPDATE SET "
            "tps=excluded.tps, tps_updated_at=excluded.tps_updated_at",
            (chain.value, tps, time.time()),
        )
        await self._db.commit()

    async def get(self, chain: Chain) -> Optional[dict]:
        async with self._db.execute(
            "SELECT chain, highest_block_number, synced_at, tps, tps_updated_at "
            "FROM chain_state WHERE chain = ?",
            (chain.value,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return {
            "chain": row[0],
            "highest_block_number": row[1],
            "synced_at": row[2],
            "tps": row[3],
            "tps_updated_at": row[4],
        }

    async def list_tps(self) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT chain, tps, tps_updated_at FROM chain_state "
            "WHERE tps IS NOT NULL ORDER BY tps DESC, chain"
        ) as cursor:
            async for row in cursor:
                results.append({
                    "chain": row[0],
                    "tps": row[1],
                    "updated_at": row[2],
                })
        return results
