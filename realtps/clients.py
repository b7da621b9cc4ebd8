"""
clients.py - Per-chain-family RPC adapters.

Every adapter exposes the same three calls:
 - version()            -> node software version string
 - head_height()        -> highest block number the node reports
 - fetch_block(height)  -> Block, or None if the node does not have it yet

``None`` from fetch_block is the node-lag signal. Anything that goes wrong on
the wire raises ClientError.
"""

import abc
import asyncio
import itertools
import logging
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from realtps.chains import EVM_CHAINS, Block, Chain
from realtps.config import RpcConfig
from realtps.errors import ClientError

logger = logging.getLogger("clients")

REQUEST_TIMEOUT = 30.0

# Solana JSON-RPC error codes
SOLANA_BLOCK_NOT_AVAILABLE = -32004
SOLANA_SLOT_SKIPPED = -32007
SOLANA_SLOT_SKIPPED_LONG_TERM = -32009
SOLANA_SKIPPED_SLOTS = (SOLANA_SLOT_SKIPPED, SOLANA_SLOT_SKIPPED_LONG_TERM)

# How far below a skipped slot to look for the last produced block
SKIPPED_SLOT_LOOKBACK = 512


class RpcError(ClientError):
    """A JSON-RPC error object returned by the node."""

    def __init__(self, method: str, code: Optional[int], message: str):
        super().__init__(f"{method} failed: [{code}] {message}")
        self.method = method
        self.code = code


class Client(abc.ABC):
    """Capability interface implemented once per chain family."""

    @abc.abstractmethod
    async def version(self) -> str:
        ...

    @abc.abstractmethod
    async def head_height(self) -> int:
        ...

    @abc.abstractmethod
    async def fetch_block(self, height: int) -> Optional[Block]:
        ...

    async def close(self):
        pass


_request_ids = itertools.count(1)


async def _rpc_call(session: aiohttp.ClientSession, url: str, method: str, params: list) -> Any:
    payload = {"jsonrpc": "2.0", "id": next(_request_ids), "method": method, "params": params}
    try:
        async with session.post(url, json=payload) as response:
            if response.status != 200:
                raise ClientError(f"{method}: HTTP {response.status} from {url}")
            data = await response.json(content_type=None)
    except aiohttp.ClientError as e:
        raise ClientError(f"{method}: request to {url} failed") from e
    except asyncio.TimeoutError as e:
        raise ClientError(f"{method}: request to {url} timed out") from e
    except ValueError as e:
        raise ClientError(f"{method}: invalid JSON from {url}") from e

    if not isinstance(data, dict):
        raise ClientError(f"{method}: unexpected response shape from {url}")
    error = data.get("error")
    if error:
        if isinstance(error, dict):
            raise RpcError(method, error.get("code"), str(error.get("message", "")))
        raise RpcError(method, None, str(error))
    if "result" not in data:
        raise ClientError(f"{method}: response from {url} has no result")
    return data["result"]


def _new_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT))


def _parse_quantity(value: Any, name: str) -> int:
    if not isinstance(value, str):
        raise ClientError(f"{name} is not a hex quantity: {value!r}")
    try:
        return int(value, 16)
    except ValueError as e:
        raise ClientError(f"{name} is not a hex quantity: {value!r}") from e


# ---------------------------------------------------------------------------
# EVM family
# ---------------------------------------------------------------------------


def eth_block_to_block(chain: Chain, raw: dict) -> Block:
    """Convert an ``eth_getBlockByNumber`` result into a Block."""
    if raw.get("number") is None or raw.get("hash") is None:
        raise ClientError(f"{chain} returned a pending block without number or hash")
    try:
        return Block(
            chain=chain,
            block_number=_parse_quantity(raw["number"], "number"),
            timestamp=_parse_quantity(raw.get("timestamp"), "timestamp"),
            num_txs=len(raw.get("transactions") or []),
            hash=raw["hash"],
            parent_hash=raw.get("parentHash", ""),
        )
    except ValueError as e:
        raise ClientError(f"invalid block from {chain}") from e


class EthRpcClient(Client):
    """Ethereum-style JSON-RPC node."""

    def __init__(self, chain: Chain, url: str, session: Optional[aiohttp.ClientSession] = None):
        self.chain = chain
        self.url = url
        self._session = session or _new_session()

    async def version(self) -> str:
        return str(await _rpc_call(self._session, self.url, "web3_clientVersion", []))

    async def head_height(self) -> int:
        result = await _rpc_call(self._session, self.url, "eth_blockNumber", [])
        return _parse_quantity(result, "eth_blockNumber")

    async def fetch_block(self, height: int) -> Optional[Block]:
        raw = await _rpc_call(
            self._session, self.url, "eth_getBlockByNumber", [hex(height), False],
        )
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise ClientError(f"eth_getBlockByNumber: unexpected result for {self.chain} {height}")
        block = eth_block_to_block(self.chain, raw)
        if block.block_number != height:
            raise ClientError(
                f"{self.chain} returned block {block.block_number} for requested {height}"
            )
        return block

    async def close(self):
        await self._session.close()


# ---------------------------------------------------------------------------
# Solana
# ---------------------------------------------------------------------------


def solana_block_to_block(slot: int, raw: dict) -> Block:
    """Convert a ``getBlock`` result (signatures detail) into a Block."""
    if raw.get("blockTime") is None:
        raise ClientError(f"Solana block at slot {slot} has no blockTime")
    try:
        return Block(
            chain=Chain.SOLANA,
            block_number=slot,
            timestamp=int(raw["blockTime"]),
            num_txs=len(raw.get("signatures") or []),
            hash=raw["blockhash"],
            parent_hash=raw["previousBlockhash"],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ClientError(f"invalid Solana block at slot {slot}") from e


class SolanaClient(Client):
    """Solana JSON-RPC node. Block heights are slots."""

    GET_BLOCK_OPTIONS = {
        "encoding": "json",
        "transactionDetails": "signatures",
        "rewards": False,
        "maxSupportedTransactionVersion": 0,
    }

    def __init__(self, url: str, session: Optional[aiohttp.ClientSession] = None):
        self.chain = Chain.SOLANA
        self.url = url
        self._session = session or _new_session()

    async def version(self) -> str:
        result = await _rpc_call(self._session, self.url, "getVersion", [])
        if not isinstance(result, dict) or "solana-core" not in result:
            raise ClientError("getVersion: missing solana-core")
        return str(result["solana-core"])

    async def head_height(self) -> int:
        result = await _rpc_call(self._session, self.url, "getSlot", [{"commitment": "finalized"}])
        if isinstance(result, bool) or not isinstance(result, int):
            raise ClientError(f"getSlot: unexpected result {result!r}")
        return result

    async def _get_block(self, slot: int) -> Optional[dict]:
        return await _rpc_call(self._session, self.url, "getBlock", [slot, self.GET_BLOCK_OPTIONS])

    async def fetch_block(self, height: int) -> Optional[Block]:
        try:
            raw = await self._get_block(height)
        except RpcError as e:
            if e.code == SOLANA_BLOCK_NOT_AVAILABLE:
                return None
            if e.code in SOLANA_SKIPPED_SLOTS:
                return await self._skipped_slot_block(height)
            raise
        if raw is None:
            return None
        return solana_block_to_block(height, raw)

    async def _skipped_slot_block(self, slot: int) -> Block:
        """Stand-in for a slot that produced no block.

        Carries the hash of the nearest produced block below it as both its
        hash and parent hash, so the hash links stay intact across the gap.
        """
        if slot == 0:
            raise ClientError("Solana genesis slot reported as skipped")
        start = max(0, slot - SKIPPED_SLOT_LOOKBACK)
        produced = await _rpc_call(
            self._session, self.url, "getBlocks", [start, slot - 1, {"commitment": "finalized"}],
        )
        if not produced:
            raise ClientError(f"no produced Solana block within {SKIPPED_SLOT_LOOKBACK} slots of {slot}")
        prev_slot = max(produced)
        raw = await self._get_block(prev_slot)
        if raw is None:
            raise ClientError(f"Solana block at slot {prev_slot} vanished")
        prev = solana_block_to_block(prev_slot, raw)
        logger.debug("Solana slot %d skipped, linking to slot %d", slot, prev_slot)
        return Block(
            chain=Chain.SOLANA,
            block_number=slot,
            timestamp=prev.timestamp,
            num_txs=0,
            hash=prev.hash,
            parent_hash=prev.hash,
        )

    async def close(self):
        await self._session.close()


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


async def make_client(chain: Chain, rpc_url: str) -> Client:
    logger.info("creating client for %s at %s", chain, rpc_url)

    if chain in EVM_CHAINS:
        client: Client = EthRpcClient(chain, rpc_url)
    elif chain is Chain.SOLANA:
        client = SolanaClient(rpc_url)
    else:
        raise ClientError(f"no client implementation for {chain}")

    try:
        version = await client.version()
    except BaseException:
        await client.close()
        raise
    logger.info("node version for %s: %s", chain, version)
    return client


async def close_all(clients: Iterable[Client]):
    for client in clients:
        try:
            await client.close()
        except Exception:
            logger.exception("Error closing client")


async def make_all_clients(rpc_config: RpcConfig, chains: List[Chain]) -> Dict[Chain, Client]:
    """Build one client per chain concurrently.

    Any failure aborts the whole set; clients that were built are closed.
    """
    chains = rpc_config.require(chains)
    results = await asyncio.gather(
        *(make_client(chain, rpc_config.get_rpc_url(chain)) for chain in chains),
        return_exceptions=True,
    )

    clients: Dict[Chain, Client] = {}
    failure: Optional[BaseException] = None
    for chain, result in zip(chains, results):
        if isinstance(result, BaseException):
            logger.error("failed to create client for %s: %s", chain, result)
            if failure is None:
                failure = result
        else:
            clients[chain] = result

    if failure is not None:
        await close_all(clients.values())
        raise failure
    return clients
