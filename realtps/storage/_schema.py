SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Blocks: one row per (chain, height), overwritten on reorg
CREATE TABLE IF NOT EXISTS blocks (
    chain        TEXT NOT NULL,
    block_number INTEGER NOT NULL CHECK (block_number >= 0),
    timestamp    INTEGER NOT NULL,
    num_txs      INTEGER NOT NULL DEFAULT 0,
    hash         TEXT NOT NULL,
    parent_hash  TEXT NOT NULL,
    stored_at    REAL NOT NULL,
    PRIMARY KEY (chain, block_number)
);

-- Chain state: high-water mark and latest TPS per chain
CREATE TABLE IF NOT EXISTS chain_state (
    chain                TEXT PRIMARY KEY,
    highest_block_number INTEGER,
    synced_at            REAL,
    tps                  REAL,
    tps_updated_at       REAL
);
"""
