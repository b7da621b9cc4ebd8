"""Router package: collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from realtps.routers import chains


def register_all_routers(app: FastAPI):
    app.include_router(chains.router)
