"""Dependency helpers for router modules."""

from starlette.requests import Request


def get_status(request: Request):
    return request.app.state.status
