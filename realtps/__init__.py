"""
realtps - Multi-chain block importer and TPS calculator.

Polls every configured network's RPC node, keeps a hash-linked local copy of
recent blocks (repairing it across reorgs), and derives a rolling 7-day
transactions-per-second figure per network.
"""

__version__ = "0.1.0"

__all__ = [
    "chain_simulator",
    "chains",
    "clients",
    "config",
    "delay",
    "errors",
    "importer",
    "jobs",
    "main",
    "monitoring",
    "storage",
    "tps",
    "web",
]
