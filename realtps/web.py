"""
web.py - Read-only status API over the TPS store.

Serves what the import and calculate jobs write; never touches RPC nodes.
"""

import logging

from fastapi import FastAPI

from realtps import __version__
from realtps.monitoring import StatusService
from realtps.routers import register_all_routers

logger = logging.getLogger("api")


def create_app(status: StatusService) -> FastAPI:
    app = FastAPI(title="realtps", version=__version__)
    app.state.status = status

    @app.get("/")
    async def root():
        return {
            "service": "realtps",
            "version": __version__,
        }

    register_all_routers(app)
    return app
