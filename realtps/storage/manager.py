import logging
from typing import List, Optional

try:
    import aiosqlite
except ImportError:
    raise ImportError(
        "aiosqlite is required for the storage layer. "
        "Install with: pip install aiosqlite"
    )

from realtps.chains import Block, Chain
from ._migrate import run_migrations
from .blocks import BlockRepo
from .chain_state import ChainStateRepo

logger = logging.getLogger("storage")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos.

    Also the store handle shared by every import and TPS job. All calls go
    through a single aiosqlite connection, which serializes them on its
    worker thread, so concurrent callers need no extra locking.
    """

    def __init__(self, db_path: str = "data/realtps.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self.blocks: Optional[BlockRepo] = None
        self.chain_state: Optional[ChainStateRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await run_migrations(self._db, logger)

        self.blocks = BlockRepo(self._db)
        self.chain_state = ChainStateRepo(self._db)

        logger.info("Storage initialized: %s", self.db_path)

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")

    # -------------------------------------------------------------------
    # Store contract used by the importer and the TPS calculation
    # -------------------------------------------------------------------

    async def get_high_water_mark(self, chain: Chain) -> Optional[int]:
        return await self.chain_state.get_highest_block_number(chain)

    async def set_high_water_mark(self, chain: Chain, block_number: int):
        await self.chain_state.set_highest_block_number(chain, block_number)

    async def get_block(self, chain: Chain, block_number: int) -> Optional[Block]:
        return await self.blocks.get(chain, block_number)

    async def put_block(self, block: Block):
        await self.blocks.put(block)

    async def set_tps(self, chain: Chain, tps: float):
        await self.chain_state.set_tps(chain, tps)

    async def get_tps(self, chain: Chain) -> Optional[float]:
        state = await self.chain_state.get(chain)
        return state["tps"] if state else None

    async def list_tps(self) -> List[dict]:
        return await self.chain_state.list_tps()
