"""
chains.py - Supported networks and the normalized block record.

Every chain family's RPC response is converted into a ``Block`` before it
reaches the importer or the store.
"""

import enum
from dataclasses import dataclass
from typing import List

U64_MAX = 2**64 - 1


class Chain(enum.Enum):
    ARBITRUM = "arbitrum"
    AVALANCHE = "avalanche"
    BINANCE = "binance"
    CELO = "celo"
    CRONOS = "cronos"
    ETHEREUM = "ethereum"
    FANTOM = "fantom"
    FUSE = "fuse"
    HARMONY = "harmony"
    HECO = "heco"
    KUCOIN = "kucoin"
    MOONRIVER = "moonriver"
    OKEX = "okex"
    POLYGON = "polygon"
    ROOTSTOCK = "rootstock"
    SOLANA = "solana"
    TELOS = "telos"
    XDAI = "xdai"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Chain":
        """Look up a chain by its config name, case-insensitively."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown chain: {name}") from None


# Chains served by an Ethereum-style JSON-RPC node
EVM_CHAINS = frozenset({
    Chain.ARBITRUM,
    Chain.AVALANCHE,
    Chain.BINANCE,
    Chain.CELO,
    Chain.CRONOS,
    Chain.ETHEREUM,
    Chain.FANTOM,
    Chain.FUSE,
    Chain.HARMONY,
    Chain.HECO,
    Chain.KUCOIN,
    Chain.MOONRIVER,
    Chain.OKEX,
    Chain.POLYGON,
    Chain.ROOTSTOCK,
    Chain.TELOS,
    Chain.XDAI,
})


def all_chains() -> List[Chain]:
    return list(Chain)


def _check_u64(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} out of u64 range: {value}")


@dataclass(frozen=True)
class Block:
    chain: Chain
    block_number: int
    timestamp: int
    num_txs: int
    hash: str
    parent_hash: str

    def __post_init__(self):
        _check_u64("block_number", self.block_number)
        _check_u64("timestamp", self.timestamp)
        _check_u64("num_txs", self.num_txs)

