"""Chains router: /api/tps and /api/chains/* endpoints."""

from typing import List

from fastapi import APIRouter, HTTPException
from starlette.requests import Request

from realtps.chains import Chain
from realtps.deps import get_status
from realtps.models import ChainStatus, TpsRecord

router = APIRouter()


@router.get("/api/tps", response_model=List[TpsRecord])
async def list_tps(request: Request):
    return await get_status(request).list_tps()


@router.get("/api/chains", response_model=List[ChainStatus])
async def list_chains(request: Request):
    return await get_status(request).list_chain_status()


@router.get("/api/chains/{chain_name}", response_model=ChainStatus)
async def get_chain(request: Request, chain_name: str):
    try:
        chain = Chain.parse(chain_name)
    except ValueError:
        raise HTTPException(status_code=404, detail="Unknown chain")
    return await get_status(request).get_chain_status(chain)
