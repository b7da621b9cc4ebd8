from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .blocks import BlockRepo
from .chain_state import ChainStateRepo
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "BlockRepo",
    "ChainStateRepo",
    "StorageManager",
]
