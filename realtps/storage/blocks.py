import time
from typing import Optional

import aiosqlite

from realtps.chains import Block, Chain
from realtps.errors import RealTpsError

_COLUMNS = "chain, block_number, timestamp, num_txs, hash, parent_hash"

# SQLite INTEGER is signed 64-bit
SQLITE_INT_MAX = 2**63 - 1


def _row_to_block(row) -> Block:
    return Block(
        chain=Chain(row[0]),
        block_number=row[1],
        timestamp=row[2],
        num_txs=row[3],
        hash=row[4],
        parent_hash=row[5],
    )


class BlockRepo:
    """Keyed storage of blocks by (chain, block_number)."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def put(self, block: Block):
        """Store a block, replacing whatever was stored at its height."""
        for column in ("block_number", "timestamp", "num_txs"):
            value = getattr(block, column)
            if value > SQLITE_INT_MAX:
                raise RealTpsError(
                    f"{block.chain} block {column} {value} exceeds the SQLite integer range"
                )
        await self._db.execute(
            f"INSERT INTO blocks ({_COLUMNS}, stored_at) VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(chain, block_number) DO UPDATE SET "
            "timestamp=excluded.timestamp, num_txs=excluded.num_txs, hash=excluded.hash, "
            "parent_hash=excluded.parent_hash, stored_at=excluded.stored_at",
            (block.chain.value, block.block_number, block.timestamp, block.num_txs,
             block.hash, block.parent_hash, time.time()),
        )
        await self._db.commit()

    async def get(self, chain: Chain, block_number: int) -> Optional[Block]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM blocks WHERE chain = ? AND block_number = ?",
            (chain.value, block_number),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_block(row)

    async def count(self, chain: Optional[Chain] = None) -> int:
        if chain is not None:
            async with self._db.execute(
                "SELECT COUNT(*) FROM blocks WHERE chain = ?", (chain.value,)
            ) as cursor:
                row = await cursor.fetchone()
        else:
            async with self._db.execute("SELECT COUNT(*) FROM blocks") as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0
