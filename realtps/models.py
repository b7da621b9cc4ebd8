"""Pydantic response models for the REST API."""

from typing import Optional
from pydantic import BaseModel


class TpsRecord(BaseModel):
    chain: str
    tps: float
    updated_at: Optional[float] = None


class ChainStatus(BaseModel):
    chain: str
    highest_block_number: Optional[int] = None
    head_timestamp: Optional[int] = None
    synced_at: Optional[float] = None
    tps: Optional[float] = None
    tps_updated_at: Optional[float] = None
    stale: bool = True
